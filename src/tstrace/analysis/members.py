from typing import List, Optional

import tree_sitter as ts

from tstrace.analysis.common import symbol_ref
from tstrace.errors import NotATypeError
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.models import MemberInfo, MemberKind, MembersResult
from tstrace.parsers import get_node_text, node_line
from tstrace.project import ProjectIndex

TRACKED_MODIFIERS = ("public", "private", "protected", "static", "abstract", "readonly", "async", "override")

_SIGNATURE_KINDS = {
    "index_signature": MemberKind.INDEX_SIGNATURE,
    "call_signature": MemberKind.CALL_SIGNATURE,
    "construct_signature": MemberKind.CONSTRUCT_SIGNATURE,
}

_CLASS_MEMBER_KINDS = {
    DeclKind.CONSTRUCTOR: MemberKind.CONSTRUCTOR,
    DeclKind.PROPERTY: MemberKind.PROPERTY,
    DeclKind.METHOD: MemberKind.METHOD,
    DeclKind.GETTER: MemberKind.GETTER,
    DeclKind.SETTER: MemberKind.SETTER,
}


def _annotation_text(ann: Optional[ts.Node]) -> Optional[str]:
    if ann is None:
        return None
    if ann.type == "type_annotation" and ann.named_children:
        return get_node_text(ann.named_children[0]).strip()
    return get_node_text(ann).lstrip(":").strip()


def _modifiers(node: ts.Node, stop: Optional[ts.Node]) -> List[str]:
    """Tracked modifier keywords before the member name, in source order."""
    out: List[str] = []
    for child in node.children:
        if stop is not None and child.start_byte >= stop.start_byte:
            break
        text = get_node_text(child) if child.type in ("accessibility_modifier", "override_modifier") else child.type
        if text in TRACKED_MODIFIERS and text not in out:
            out.append(text)
    if node.type == "abstract_method_signature" and "abstract" not in out:
        out.append("abstract")
    return out


def _signature_text(node: ts.Node) -> str:
    return get_node_text(node).strip().rstrip(";").strip()


class MemberResolver:
    """Ordered member listing for a class or interface."""

    def __init__(self, index: ProjectIndex) -> None:
        self.checker = index.checker

    def resolve(self, decl: Declaration) -> MembersResult:
        if decl.kind == DeclKind.CLASS:
            members = self._class_members(decl)
        elif decl.kind == DeclKind.INTERFACE:
            members = self._interface_members(decl)
        else:
            raise NotATypeError(decl.name, decl.kind.value)
        members.sort(key=lambda m: m.line)
        return MembersResult(symbol=symbol_ref(decl), members=members)

    def _class_members(self, decl: Declaration) -> List[MemberInfo]:
        out: List[MemberInfo] = []
        for m in decl.members:
            # parameter properties live on the constructor, not the class body
            if m.node.type in ("required_parameter", "optional_parameter"):
                continue
            kind = _CLASS_MEMBER_KINDS.get(m.kind)
            if kind is None:
                continue
            out.append(
                MemberInfo(
                    name=m.name,
                    kind=kind,
                    line=m.line,
                    type=self._member_type(m),
                    modifiers=_modifiers(m.node, m.name_node),
                )
            )
        for sig in decl.signatures:
            if sig.type == "index_signature":
                out.append(
                    MemberInfo(
                        name="",
                        kind=MemberKind.INDEX_SIGNATURE,
                        line=node_line(sig),
                        type=_signature_text(sig),
                        modifiers=_modifiers(sig, sig.named_children[0] if sig.named_children else None),
                    )
                )
        return out

    def _interface_members(self, decl: Declaration) -> List[MemberInfo]:
        out: List[MemberInfo] = []
        for m in decl.members:
            if m.kind == DeclKind.PROPERTY:
                out.append(
                    MemberInfo(
                        name=m.name,
                        kind=MemberKind.PROPERTY,
                        line=m.line,
                        type=self._member_type(m),
                        modifiers=["readonly"] if "readonly" in m.modifiers else [],
                    )
                )
            elif m.kind == DeclKind.METHOD:
                out.append(MemberInfo(name=m.name, kind=MemberKind.METHOD, line=m.line, type=self._member_type(m)))
        for sig in decl.signatures:
            kind = _SIGNATURE_KINDS.get(sig.type)
            if kind is not None:
                out.append(MemberInfo(name="", kind=kind, line=node_line(sig), type=_signature_text(sig)))
        return out

    def _member_type(self, m: Declaration) -> Optional[str]:
        if m.kind == DeclKind.PROPERTY:
            written = _annotation_text(m.node.child_by_field_name("type"))
            return written or self.checker.get_type_of_declaration(m).text
        if m.kind == DeclKind.CONSTRUCTOR:
            return "(" + ", ".join(f"{name}: {text}" for name, text in self._parameter_texts(m)) + ")"
        if m.kind == DeclKind.SETTER:
            params = self._parameter_texts(m)
            return params[0][1] if params else None
        written = _annotation_text(m.node.child_by_field_name("return_type"))
        if written:
            return written
        rtype = self.checker.get_return_type(m)
        return rtype.text if rtype is not None else None

    def _parameter_texts(self, m: Declaration) -> List[tuple[str, str]]:
        """Parameter names with the written annotation, or the inferred type text."""
        sig = self.checker.get_signature(m)
        params_node = m.node.child_by_field_name("parameters")
        nodes = [
            p
            for p in (params_node.named_children if params_node is not None else [])
            if p.type in ("required_parameter", "optional_parameter")
            and get_node_text(p.child_by_field_name("pattern")) != "this"
        ]
        out: List[tuple[str, str]] = []
        for i, (name, t) in enumerate(sig.parameters):
            ann = nodes[i].child_by_field_name("type") if i < len(nodes) else None
            out.append((name, _annotation_text(ann) or t.text))
        return out


def resolve_members(index: ProjectIndex, decl: Declaration) -> MembersResult:
    return MemberResolver(index).resolve(decl)

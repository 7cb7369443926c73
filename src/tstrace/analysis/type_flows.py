from typing import List, Optional

import tree_sitter as ts

from tstrace.analysis.common import function_node, is_user_declaration, symbol_ref
from tstrace.checker import Checker, TypeInfo, TypeKind, widen
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.models import TypeFlow, TypeFlowParam, TypeFlowType
from tstrace.parsers import SourceFile, get_node_text, iter_descendants
from tstrace.project import ProjectIndex

BUILTIN_NAMES = {
    "string", "number", "boolean", "bigint", "symbol",
    "undefined", "null", "void", "never", "unknown", "any", "object",
    "String", "Number", "Boolean", "BigInt", "Symbol", "Object",
    "Promise", "Array", "Map", "Set", "WeakMap", "WeakSet", "WeakRef",
    "Record", "Partial", "Required", "Readonly", "Pick", "Omit",
    "Exclude", "Extract", "NonNullable", "ReturnType", "Parameters",
    "ConstructorParameters", "InstanceType", "ThisParameterType",
    "OmitThisParameter", "Uppercase", "Lowercase", "Capitalize",
    "Uncapitalize", "Awaited",
    "ReadonlyArray", "ReadonlyMap", "ReadonlySet",
    "IterableIterator", "AsyncIterableIterator", "Generator",
    "AsyncGenerator", "Iterable", "AsyncIterable",
    "ArrayLike", "PromiseLike",
    "Date", "RegExp", "Error", "TypeError", "RangeError",
    "Function",
}

_FLOW_KINDS = (DeclKind.CLASS, DeclKind.INTERFACE, DeclKind.TYPE, DeclKind.ENUM)


class _Collector:
    """Accumulates user-defined type declarations for one parameter or return value."""

    def __init__(self, checker: Checker) -> None:
        self.checker = checker
        self.visited: set[str] = set()
        self.expanded: set[str] = set()
        self.results: List[TypeFlowType] = []

    def add(self, decl: Optional[Declaration]) -> bool:
        if decl is None or decl.kind not in _FLOW_KINDS:
            return False
        if decl.name in BUILTIN_NAMES or not is_user_declaration(decl):
            return False
        key = f"{decl.path}:{decl.line}"
        if key in self.visited:
            return False
        self.visited.add(key)
        self.results.append(TypeFlowType(name=decl.name, file_path=decl.rel_path, line=decl.line))
        return True

    # --- annotation pass -----------------------------------------------
    def from_annotation(self, type_node: ts.Node, sf: SourceFile) -> None:
        nodes = [type_node, *iter_descendants(type_node)]
        for node in nodes:
            if node.type == "nested_type_identifier":
                target = node
            elif node.type == "type_identifier" and (
                node.parent is None or node.parent.type != "nested_type_identifier"
            ):
                target = node
            else:
                continue
            name_node = target.child_by_field_name("name") if target.type == "nested_type_identifier" else target
            if get_node_text(name_node) in BUILTIN_NAMES:
                continue
            sym = self.checker.resolve_type_reference(target, sf)
            if sym is None:
                continue
            decl = next((d for d in sym.declarations if d.kind != DeclKind.IMPORT), None)
            if decl is not None and decl.kind == DeclKind.ENUM_MEMBER:
                decl = decl.container
            self.add(decl)

    # --- semantic pass -------------------------------------------------
    def from_type(self, t: Optional[TypeInfo], _stack: Optional[set[int]] = None) -> None:
        if t is None:
            return
        stack = _stack if _stack is not None else set()
        if id(t) in stack:
            return
        stack.add(id(t))

        if t.kind == TypeKind.ENUM_LITERAL:
            decl = t.symbol.declaration if t.symbol is not None else None
            if decl is not None and decl.container is not None:
                self.add(decl.container)
            return
        if t.alias_symbol is not None:
            self.add(t.alias_symbol.declaration)
            for arg in t.alias_type_arguments:
                self.from_type(arg, stack)
        if t.kind in (TypeKind.UNION, TypeKind.INTERSECTION, TypeKind.TUPLE):
            for member in t.types:
                self.from_type(member, stack)
            return
        if t.kind == TypeKind.ARRAY:
            self.from_type(t.element_type, stack)
            return
        if t.kind == TypeKind.REFERENCE:
            decl = t.symbol.declaration if t.symbol is not None else None
            self.add(decl)
            for arg in self.checker.get_type_arguments(t):
                self.from_type(arg, stack)
            if decl is not None:
                key = f"{decl.path}:{decl.line}"
                if key in self.expanded:
                    return
                self.expanded.add(key)
        if t.kind in (TypeKind.FUNCTION, TypeKind.OBJECT, TypeKind.REFERENCE):
            for sig in self.checker.get_call_signatures(t):
                for _name, ptype in sig.parameters:
                    self.from_type(ptype, stack)
                self.from_type(sig.return_type, stack)


class TypeFlowResolver:
    """Parameter and return type provenance for a callable."""

    def __init__(self, index: ProjectIndex) -> None:
        self.index = index
        self.checker = index.checker

    def resolve(self, decl: Declaration) -> TypeFlow:
        fn = function_node(decl)
        if fn is None or decl.kind in (DeclKind.GETTER, DeclKind.SETTER):
            raise NotCallableError(decl.name, decl.kind.value)
        sf = decl.file
        parameters = self._parameters(fn, sf)
        return_type = self._return_type(decl, fn, sf)

        merged: dict[tuple[str, int], TypeFlowType] = {}
        for entry in [*parameters, *([return_type] if return_type else [])]:
            for t in entry.resolved_types:
                merged.setdefault((t.file_path, t.line), t)
        referenced = [merged[k] for k in sorted(merged)]
        return TypeFlow(
            symbol=symbol_ref(decl),
            parameters=parameters,
            return_type=return_type,
            referenced_types=referenced,
        )

    def _parameters(self, fn: ts.Node, sf: SourceFile) -> List[TypeFlowParam]:
        out: List[TypeFlowParam] = []
        params = fn.child_by_field_name("parameters")
        for p in params.named_children if params is not None else []:
            if p.type not in ("required_parameter", "optional_parameter"):
                continue
            pattern = p.child_by_field_name("pattern")
            name = get_node_text(pattern)
            if name == "this":
                continue
            ann = p.child_by_field_name("type")
            type_node = ann.named_children[0] if ann is not None and ann.named_children else None
            if type_node is not None:
                ptype = self.checker.get_type_of_type_node(type_node, sf)
                text = get_node_text(type_node)
            else:
                value = p.child_by_field_name("value")
                ptype = widen(self.checker.get_type_of_expression(value, sf)) if value is not None else None
                text = ptype.text if ptype is not None else "any"
            collector = _Collector(self.checker)
            if type_node is not None:
                collector.from_annotation(type_node, sf)
            collector.from_type(ptype)
            out.append(TypeFlowParam(name=name, type=text, resolved_types=collector.results))
        single = fn.child_by_field_name("parameter")
        if single is not None:
            out.append(TypeFlowParam(name=get_node_text(single), type="any"))
        return out

    def _return_type(self, decl: Declaration, fn: ts.Node, sf: SourceFile) -> Optional[TypeFlowParam]:
        if decl.kind == DeclKind.CONSTRUCTOR:
            return None
        ret = fn.child_by_field_name("return_type")
        type_node = None
        if ret is not None and ret.type == "type_annotation" and ret.named_children:
            type_node = ret.named_children[0]
        sig = self.checker.signature_of(fn, sf, decl)
        rtype = sig.return_type
        if ret is not None:
            text = get_node_text(type_node if type_node is not None else ret).lstrip(":").strip()
        else:
            text = rtype.text if rtype is not None else "void"
            if text == "void":
                return None
        collector = _Collector(self.checker)
        if type_node is not None:
            collector.from_annotation(type_node, sf)
        collector.from_type(rtype)
        return TypeFlowParam(name="return", type=text, resolved_types=collector.results)


def resolve_type_flows(index: ProjectIndex, decl: Declaration) -> TypeFlow:
    return TypeFlowResolver(index).resolve(decl)

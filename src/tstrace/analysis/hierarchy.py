from typing import List, Optional

from tstrace.analysis.common import symbol_ref
from tstrace.errors import NotATypeError
from tstrace.helpers import Deadline
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.logger import logger
from tstrace.models import SymbolRef, TypeHierarchy, TypeParameter
from tstrace.parsers import get_node_text
from tstrace.project import ProjectIndex

_TYPE_DECLS = (DeclKind.CLASS, DeclKind.INTERFACE)


def type_parameters(decl: Declaration) -> List[TypeParameter]:
    params = decl.node.child_by_field_name("type_parameters")
    out: List[TypeParameter] = []
    for tp in params.named_children if params is not None else []:
        if tp.type != "type_parameter":
            continue
        name = tp.child_by_field_name("name")
        constraint = tp.child_by_field_name("constraint")
        default = tp.child_by_field_name("value")
        out.append(
            TypeParameter(
                name=get_node_text(name),
                constraint=get_node_text(constraint.named_children[-1]) if constraint and constraint.named_children else None,
                default=get_node_text(default.named_children[-1]) if default and default.named_children else None,
            )
        )
    return out


class TypeHierarchyResolver:
    """
    Supertypes, implemented interfaces and one-level subtypes of a class or
    interface. Heritage names are matched by resolved declaration, never by
    name alone.
    """

    def __init__(self, index: ProjectIndex, deadline: Optional[Deadline] = None) -> None:
        self.index = index
        self.checker = index.checker
        self.deadline = deadline
        self.partial = False

    def resolve(self, decl: Declaration) -> TypeHierarchy:
        if decl.kind not in _TYPE_DECLS:
            raise NotATypeError(decl.name, decl.kind.value)
        result = TypeHierarchy(symbol=symbol_ref(decl), type_parameters=type_parameters(decl))
        if "abstract" in decl.modifiers:
            result.is_abstract = True

        for clause, _node, target in self.checker.get_heritage(decl):
            if target is None:
                continue
            ref = symbol_ref(target)
            if clause == "extends" and decl.kind == DeclKind.CLASS:
                if result.extends is None:
                    result.extends = ref
            else:
                result.implements.append(ref)
        result.subtypes = self.subtypes(decl)
        return result

    def subtypes(self, decl: Declaration) -> List[SymbolRef]:
        out: List[SymbolRef] = []
        for sf in self.index.source_files:
            if self.deadline is not None and self.deadline.expired:
                logger.warning("Subtype scan timed out", symbol=decl.name, found=len(out))
                self.partial = True
                break
            if not sf.is_user_file:
                continue
            for candidate in self.index.module_info(sf).declarations:
                if candidate.kind not in _TYPE_DECLS or candidate is decl:
                    continue
                if self._is_subtype_of(candidate, decl):
                    out.append(symbol_ref(candidate))
        return out

    def _is_subtype_of(self, candidate: Declaration, decl: Declaration) -> bool:
        for _clause, _node, target in self.checker.get_heritage(candidate):
            if target is None:
                continue
            if target is decl or (target.path == decl.path and target.line == decl.line):
                return True
        return False


def resolve_type_hierarchy(index: ProjectIndex, decl: Declaration) -> TypeHierarchy:
    return TypeHierarchyResolver(index).resolve(decl)

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import tree_sitter as ts

from tstrace.analysis.common import (
    decl_key,
    enclosing_callable,
    function_node,
    is_user_declaration,
    symbol_ref,
)
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.logger import logger
from tstrace.models import CallHierarchy, IncomingCaller, OutgoingCall
from tstrace.parsers import (
    SourceFile,
    iter_descendants,
    node_line,
    unwrap_expression,
)
from tstrace.project import ProjectIndex

_TARGET_KINDS = (DeclKind.FUNCTION, DeclKind.METHOD)
_ROOT_KINDS = (DeclKind.FUNCTION, DeclKind.METHOD, DeclKind.CONSTRUCTOR)


@dataclass
class CallEdge:
    declaration: Declaration
    name: str
    lines: List[int] = field(default_factory=list)

    def add_line(self, line: int) -> None:
        if line not in self.lines:
            self.lines.append(line)

    @property
    def sorted_lines(self) -> List[int]:
        return sorted(self.lines)


def callee_name_node(callee: Optional[ts.Node]) -> Optional[ts.Node]:
    """Identifier of a call target: `foo` in `foo()`, `bar` in `a.bar()`."""
    callee = unwrap_expression(callee)
    if callee is None:
        return None
    if callee.type == "identifier":
        return callee
    if callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        if prop is not None and prop.type in ("property_identifier", "private_property_identifier"):
            return prop
    return None


class CallGraphResolver:
    """
    Outgoing and incoming call trees for a function, method or constructor.

    `depth` is a hop budget: 1 returns direct edges only, N expands N levels
    and -1 is unlimited. A target already on the current path is emitted as
    `cyclic` and not expanded.
    """

    def __init__(self, index: ProjectIndex) -> None:
        self.index = index
        self.checker = index.checker
        self._outgoing_cache: Dict[str, List[CallEdge]] = {}
        self._incoming_cache: Dict[str, List[CallEdge]] = {}

    # --- public --------------------------------------------------------
    def resolve(self, decl: Declaration, depth: int = 1) -> CallHierarchy:
        if decl.kind not in _ROOT_KINDS:
            raise NotCallableError(decl.name, decl.kind.value)
        root_key = decl_key(decl)
        return CallHierarchy(
            symbol=symbol_ref(decl),
            outgoing_calls=self._outgoing(decl, 1, depth, {root_key}),
            incoming_callers=self._incoming(decl, 1, depth, {root_key}),
        )

    def max_depth(self, hierarchy: CallHierarchy) -> int:
        def _out(calls: List[OutgoingCall]) -> int:
            return max((1 + _out(c.outgoing_calls) for c in calls), default=0)

        def _in(callers: List[IncomingCaller]) -> int:
            return max((1 + _in(c.incoming_callers) for c in callers), default=0)

        return max(_out(hierarchy.outgoing_calls), _in(hierarchy.incoming_callers))

    # --- outgoing ------------------------------------------------------
    def _outgoing(self, decl: Declaration, current: int, max_depth: int, ancestors: set[str]) -> List[OutgoingCall]:
        result: List[OutgoingCall] = []
        for edge in self.outgoing_edges(decl):
            target = edge.declaration
            key = decl_key(target)
            call = OutgoingCall(target=symbol_ref(target, edge.name), call_site_lines=edge.sorted_lines)
            if key in ancestors:
                call.cyclic = True
            elif max_depth != -1 and current >= max_depth:
                if self.outgoing_edges(target):
                    call.depth_limited = True
            else:
                ancestors.add(key)
                call.outgoing_calls = self._outgoing(target, current + 1, max_depth, ancestors)
                ancestors.discard(key)
            result.append(call)
        return result

    def outgoing_edges(self, decl: Declaration) -> List[CallEdge]:
        key = decl_key(decl)
        cached = self._outgoing_cache.get(key)
        if cached is not None:
            return cached

        edges: Dict[str, CallEdge] = {}
        fn = function_node(decl)
        body = fn.child_by_field_name("body") if fn is not None else None
        if body is not None:
            for node in iter_descendants(body):
                if node.type == "call_expression":
                    target = self._call_target(node, decl.file)
                    name = target.name if target is not None else None
                elif node.type == "new_expression":
                    target = self._constructor_target(node, decl.file)
                    name = target.container.name if target is not None and target.container else None
                else:
                    continue
                if target is None or not is_user_declaration(target):
                    continue
                edge_key = f"{target.rel_path}:{name}:{target.line}"
                edge = edges.get(edge_key)
                if edge is None:
                    edge = edges[edge_key] = CallEdge(target, name)
                edge.add_line(node_line(node))
        result = list(edges.values())
        self._outgoing_cache[key] = result
        return result

    def _call_target(self, call: ts.Node, sf: SourceFile) -> Optional[Declaration]:
        name_node = callee_name_node(call.child_by_field_name("function"))
        if name_node is None:
            return None
        for d in self.checker.get_definitions(name_node, sf):
            if d.kind in _TARGET_KINDS:
                return d
        return None

    def _constructor_target(self, new_expr: ts.Node, sf: SourceFile) -> Optional[Declaration]:
        name_node = callee_name_node(new_expr.child_by_field_name("constructor"))
        if name_node is None:
            return None
        for d in self.checker.get_definitions(name_node, sf):
            if d.kind == DeclKind.CLASS:
                ctor = next((m for m in d.members if m.kind == DeclKind.CONSTRUCTOR), None)
                if ctor is not None:
                    return ctor
        return None

    # --- incoming ------------------------------------------------------
    def _incoming(self, decl: Declaration, current: int, max_depth: int, descendants: set[str]) -> List[IncomingCaller]:
        result: List[IncomingCaller] = []
        for edge in self.incoming_edges(decl):
            caller = edge.declaration
            key = decl_key(caller)
            item = IncomingCaller(source=symbol_ref(caller), call_site_lines=edge.sorted_lines)
            if key in descendants:
                item.cyclic = True
            elif max_depth != -1 and current >= max_depth:
                if self.has_call_references(caller):
                    item.depth_limited = True
            else:
                descendants.add(key)
                item.incoming_callers = self._incoming(caller, current + 1, max_depth, descendants)
                descendants.discard(key)
            result.append(item)
        return result

    def _call_sites(self, decl: Declaration):
        """(file, call node) for every reference that is the target of a call."""
        if decl.kind == DeclKind.CONSTRUCTOR:
            if decl.container is None:
                return
            refs = self.checker.find_references(decl.container)
            call_types = ("new_expression",)
            owner = decl.container
        else:
            refs = self.checker.find_references(decl)
            call_types = ("call_expression", "new_expression")
            owner = decl
        for ref in refs:
            if self.checker.is_definition_name(ref, owner):
                continue
            call = ref.node.parent
            while call is not None and call.type not in ("call_expression", "new_expression"):
                call = call.parent
            if call is None or call.type not in call_types:
                continue
            field_name = "function" if call.type == "call_expression" else "constructor"
            name_node = callee_name_node(call.child_by_field_name(field_name))
            if name_node is None or name_node.start_byte != ref.node.start_byte:
                continue
            yield ref.file, call

    def incoming_edges(self, decl: Declaration) -> List[CallEdge]:
        key = decl_key(decl)
        cached = self._incoming_cache.get(key)
        if cached is not None:
            return cached
        edges: Dict[str, CallEdge] = {}
        for sf, call in self._call_sites(decl):
            caller = enclosing_callable(call, sf, self.index)
            if caller is None or not is_user_declaration(caller):
                continue
            edge_key = f"{caller.rel_path}:{caller.name}:{caller.line}"
            edge = edges.get(edge_key)
            if edge is None:
                edge = edges[edge_key] = CallEdge(caller, caller.name)
            edge.add_line(node_line(call))
        result = list(edges.values())
        self._incoming_cache[key] = result
        logger.debug("Incoming callers resolved", symbol=decl.name, path=decl.rel_path, callers=len(result))
        return result

    def has_call_references(self, decl: Declaration) -> bool:
        return next(iter(self._call_sites(decl)), None) is not None


def resolve_call_hierarchy(index: ProjectIndex, decl: Declaration, depth: int = 1) -> CallHierarchy:
    return CallGraphResolver(index).resolve(decl, depth)

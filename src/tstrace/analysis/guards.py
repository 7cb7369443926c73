import re
from typing import Callable, List, Optional

import tree_sitter as ts

from tstrace.analysis.common import function_node, symbol_ref
from tstrace.errors import NotCallableError
from tstrace.helpers import format_js_number, parse_js_number
from tstrace.lang.typescript import Declaration
from tstrace.logger import logger
from tstrace.models import GuardKind, TypeGuardAnalysis, TypeGuardEntry
from tstrace.parsers import get_node_text, iter_descendants, node_line, string_value

_IS_RE = re.compile(r"^(\w+)\s+is\s+(.+)$", re.DOTALL)
_ASSERTS_IS_RE = re.compile(r"^asserts\s+(\w+)\s+is\s+(.+)$", re.DOTALL)
_ASSERTS_RE = re.compile(r"^asserts\s+(\w+)$")

_EQUALITY_OPS = ("===", "==", "!==", "!=")


def _operator(node: ts.Node) -> str:
    op = node.child_by_field_name("operator")
    return op.type if op is not None else ""


def _unwrap_parens(node: Optional[ts.Node]) -> Optional[ts.Node]:
    while node is not None and node.type == "parenthesized_expression" and node.named_children:
        node = node.named_children[0]
    return node


def _identifier_name(node: Optional[ts.Node]) -> Optional[str]:
    node = _unwrap_parens(node)
    if node is not None and node.type == "identifier":
        return get_node_text(node)
    return None


def _literal_value(node: Optional[ts.Node]) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return string_value(node)
    if node.type == "number":
        value = parse_js_number(get_node_text(node))
        return format_js_number(value) if value is not None else get_node_text(node)
    if node.type in ("true", "false"):
        return node.type
    return None


def _is_nullish(node: Optional[ts.Node]) -> bool:
    if node is None:
        return False
    return node.type in ("null", "undefined") or (node.type == "identifier" and get_node_text(node) == "undefined")


def _typeof_operand(node: ts.Node) -> Optional[str]:
    if node.type == "unary_expression" and _operator(node) == "typeof":
        return _identifier_name(node.child_by_field_name("argument"))
    return None


class TypeGuardAnalyzer:
    """
    Classifies the narrowing constructs of a function or method: return type
    predicates, guarded `if` conditions, discriminating `switch` statements and
    exhaustiveness checks.
    """

    def __init__(self) -> None:
        self._statement_handlers: dict[str, Callable[[ts.Node, List[TypeGuardEntry]], None]] = {
            "if_statement": self._handle_if,
            "switch_statement": self._handle_switch,
            "variable_declarator": self._handle_declarator,
        }
        self._expression_handlers: dict[str, Callable[[ts.Node, List[TypeGuardEntry]], None]] = {
            "binary_expression": self._handle_binary,
            "call_expression": self._handle_call,
            "parenthesized_expression": self._handle_parenthesized,
        }

    def analyze(self, decl: Declaration) -> TypeGuardAnalysis:
        fn = function_node(decl)
        if fn is None:
            raise NotCallableError(decl.name, decl.kind.value)
        guards: List[TypeGuardEntry] = []
        self._return_type_guards(fn, guards)
        body = fn.child_by_field_name("body")
        if body is not None:
            for node in iter_descendants(body):
                handler = self._statement_handlers.get(node.type)
                if handler is None:
                    continue
                try:
                    handler(node, guards)
                except (AttributeError, ValueError) as ex:
                    logger.debug(
                        "Unrecognized guard shape",
                        path=decl.rel_path,
                        node_type=node.type,
                        line=node_line(node),
                        error=str(ex),
                    )
        guards.sort(key=lambda g: g.line)
        return TypeGuardAnalysis(symbol=symbol_ref(decl), guards=guards)

    # --- return type ---------------------------------------------------
    def _return_type_guards(self, fn: ts.Node, guards: List[TypeGuardEntry]) -> None:
        ret = fn.child_by_field_name("return_type")
        if ret is None:
            return
        text = get_node_text(ret).lstrip(":").strip()
        line = node_line(ret)
        m = _IS_RE.match(text)
        if m and not text.startswith("asserts "):
            guards.append(
                TypeGuardEntry(
                    kind=GuardKind.USER_DEFINED,
                    line=line,
                    guard_text=text,
                    narrowed_name=m.group(1),
                    narrowed_to=m.group(2).strip(),
                    is_return_type_guard=True,
                )
            )
            return
        m = _ASSERTS_IS_RE.match(text)
        if m:
            guards.append(
                TypeGuardEntry(
                    kind=GuardKind.ASSERTION,
                    line=line,
                    guard_text=text,
                    narrowed_name=m.group(1),
                    narrowed_to=m.group(2).strip(),
                    is_return_type_guard=True,
                )
            )
            return
        m = _ASSERTS_RE.match(text)
        if m:
            guards.append(
                TypeGuardEntry(
                    kind=GuardKind.ASSERTION,
                    line=line,
                    guard_text=text,
                    narrowed_name=m.group(1),
                    is_return_type_guard=True,
                )
            )

    # --- statements ----------------------------------------------------
    def _handle_if(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        condition = _unwrap_parens(node.child_by_field_name("condition"))
        if condition is None:
            return
        consequence = node.child_by_field_name("consequence")
        if self._is_bail_out(consequence):
            negated = self._negated_name(condition)
            if negated is not None:
                guards.append(
                    TypeGuardEntry(
                        kind=GuardKind.EARLY_RETURN,
                        line=node_line(node),
                        guard_text=get_node_text(condition).strip(),
                        narrowed_name=negated,
                    )
                )
                return
        self._expression_guards(condition, guards)

    def _handle_switch(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        value = _unwrap_parens(node.child_by_field_name("value"))
        if value is None or value.type != "member_expression":
            return
        obj_name = _identifier_name(value.child_by_field_name("object"))
        if obj_name is None:
            return
        switch_text = get_node_text(value).strip()
        body = node.child_by_field_name("body")
        for clause in body.named_children if body is not None else []:
            if clause.type != "switch_case":
                continue
            case_expr = clause.child_by_field_name("value")
            case_value = _literal_value(case_expr)
            if case_value is None:
                continue
            guards.append(
                TypeGuardEntry(
                    kind=GuardKind.DISCRIMINANT,
                    line=node_line(clause),
                    guard_text=f"{switch_text} === {get_node_text(case_expr).strip()}",
                    narrowed_name=obj_name,
                    narrowed_to=case_value,
                )
            )

    def _handle_declarator(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        ann = node.child_by_field_name("type")
        if ann is None or not ann.named_children or get_node_text(ann.named_children[0]).strip() != "never":
            return
        init_name = _identifier_name(node.child_by_field_name("value"))
        if init_name is None:
            return
        name = get_node_text(node.child_by_field_name("name"))
        guards.append(
            TypeGuardEntry(
                kind=GuardKind.EXHAUSTIVE,
                line=node_line(node),
                guard_text=f"{name}: never = {init_name}",
                narrowed_name=init_name,
                narrowed_to="never",
            )
        )

    @staticmethod
    def _is_bail_out(stmt: Optional[ts.Node]) -> bool:
        if stmt is None:
            return False
        if stmt.type in ("return_statement", "throw_statement"):
            return True
        if stmt.type == "statement_block" and stmt.named_children:
            last = stmt.named_children[-1]
            return last.type in ("return_statement", "throw_statement")
        return False

    @staticmethod
    def _negated_name(condition: ts.Node) -> Optional[str]:
        if condition.type == "unary_expression" and _operator(condition) == "!":
            return _identifier_name(condition.child_by_field_name("argument"))
        # only `==`/`===` comparisons with null are bail-outs; `!=` checks guard the happy path
        if condition.type == "binary_expression" and _operator(condition) in ("==", "==="):
            left = condition.child_by_field_name("left")
            right = condition.child_by_field_name("right")
            if _is_nullish(left):
                return _identifier_name(right)
            if _is_nullish(right):
                return _identifier_name(left)
        return None

    # --- expressions ---------------------------------------------------
    def _expression_guards(self, expr: Optional[ts.Node], guards: List[TypeGuardEntry]) -> None:
        if expr is None:
            return
        handler = self._expression_handlers.get(expr.type)
        if handler is not None:
            handler(expr, guards)

    def _handle_parenthesized(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        self._expression_guards(_unwrap_parens(node), guards)

    def _handle_binary(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        op = _operator(node)
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        line = node_line(node)
        text = get_node_text(node).strip()

        if op in ("&&", "||"):
            left_guards: List[TypeGuardEntry] = []
            right_guards: List[TypeGuardEntry] = []
            self._expression_guards(left, left_guards)
            self._expression_guards(right, right_guards)
            if left_guards and right_guards:
                parts = [*left_guards, *right_guards]
                names: List[str] = []
                for g in parts:
                    if g.narrowed_name not in names:
                        names.append(g.narrowed_name)
                narrowed_to = " | ".join(g.narrowed_to for g in parts if g.narrowed_to is not None)
                guards.append(
                    TypeGuardEntry(
                        kind=GuardKind.COMPOUND,
                        line=line,
                        guard_text=text,
                        narrowed_name=", ".join(names),
                        narrowed_to=narrowed_to or None,
                    )
                )
            else:
                guards.extend(left_guards)
                guards.extend(right_guards)
            return

        if op in _EQUALITY_OPS:
            entry = self._equality_guard(op, left, right, line, text)
            if entry is not None:
                guards.append(entry)
            return

        if op == "instanceof":
            name = _identifier_name(left)
            type_name = _identifier_name(right)
            if name and type_name:
                guards.append(
                    TypeGuardEntry(
                        kind=GuardKind.INSTANCEOF,
                        line=line,
                        guard_text=text,
                        narrowed_name=name,
                        narrowed_to=type_name,
                    )
                )
            return

        if op == "in":
            obj_name = _identifier_name(right)
            key = string_value(left)
            if obj_name and key:
                guards.append(
                    TypeGuardEntry(
                        kind=GuardKind.IN_OPERATOR,
                        line=line,
                        guard_text=text,
                        narrowed_name=obj_name,
                        narrowed_to=key,
                    )
                )

    def _equality_guard(
        self,
        op: str,
        left: ts.Node,
        right: ts.Node,
        line: int,
        text: str,
    ) -> Optional[TypeGuardEntry]:
        # typeof x === 'string' / 'string' === typeof x
        for typeof_side, literal_side in ((left, right), (right, left)):
            name = _typeof_operand(typeof_side)
            if name is not None and literal_side.type == "string":
                return TypeGuardEntry(
                    kind=GuardKind.TYPEOF,
                    line=line,
                    guard_text=text,
                    narrowed_name=name,
                    narrowed_to=string_value(literal_side),
                )

        for value_side, null_side in ((left, right), (right, left)):
            if _is_nullish(null_side):
                name = _identifier_name(value_side)
                if name is not None:
                    return TypeGuardEntry(kind=GuardKind.NULLISH, line=line, guard_text=text, narrowed_name=name)

        if op not in ("===", "=="):
            return None

        for member_side, literal_side in ((left, right), (right, left)):
            if member_side.type != "member_expression":
                continue
            value = _literal_value(literal_side)
            obj_name = _identifier_name(member_side.child_by_field_name("object"))
            if value is not None and obj_name is not None:
                return TypeGuardEntry(
                    kind=GuardKind.DISCRIMINANT,
                    line=line,
                    guard_text=text,
                    narrowed_name=obj_name,
                    narrowed_to=value,
                )

        for ident_side, literal_side in ((left, right), (right, left)):
            if ident_side.type != "identifier":
                continue
            value = _literal_value(literal_side)
            if value is not None:
                return TypeGuardEntry(
                    kind=GuardKind.EQUALITY,
                    line=line,
                    guard_text=text,
                    narrowed_name=get_node_text(ident_side),
                    narrowed_to=value,
                )
        return None

    def _handle_call(self, node: ts.Node, guards: List[TypeGuardEntry]) -> None:
        fn = node.child_by_field_name("function")
        if fn is None or get_node_text(fn).strip() != "Array.isArray":
            return
        args = node.child_by_field_name("arguments")
        first = args.named_children[0] if args is not None and args.named_children else None
        name = _identifier_name(first)
        if name is not None:
            guards.append(
                TypeGuardEntry(
                    kind=GuardKind.ARRAY_ISARRAY,
                    line=node_line(node),
                    guard_text=get_node_text(node).strip(),
                    narrowed_name=name,
                    narrowed_to="Array",
                )
            )


def resolve_type_guards(decl: Declaration) -> TypeGuardAnalysis:
    return TypeGuardAnalyzer().analyze(decl)

from typing import List, Optional

import tree_sitter as ts

from tstrace.analysis.common import function_node, symbol_ref
from tstrace.checker import Checker, TypeInfo, TypeKind
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import Declaration
from tstrace.models import CallbackAnalysis, CallbackParameter, CallbackUsage
from tstrace.parsers import get_node_text, node_line
from tstrace.project import ProjectIndex

# Wrappers that keep the identity of the wrapped expression.
_TRANSPARENT_WRAPPERS = ("parenthesized_expression", "as_expression", "satisfies_expression")


def is_function_type(checker: Checker, t: Optional[TypeInfo]) -> bool:
    """True when `t` has call signatures, or any union member does."""
    if t is None:
        return False
    if checker.get_call_signatures(t):
        return True
    if t.kind == TypeKind.UNION:
        return any(is_function_type(checker, member) for member in t.types)
    return False


def _call_name(expr: Optional[ts.Node]) -> Optional[str]:
    if expr is None:
        return None
    if expr.type == "identifier":
        return get_node_text(expr)
    if expr.type == "member_expression":
        prop = expr.child_by_field_name("property")
        return get_node_text(prop) if prop is not None else None
    return None


class CallbackAnalyzer:
    """
    Finds the call sites that receive a function as an argument, the
    function-typed parameters it accepts, and whether it returns a function.
    """

    def __init__(self, index: ProjectIndex) -> None:
        self.index = index
        self.checker = index.checker

    def analyze(self, decl: Declaration) -> CallbackAnalysis:
        fn = function_node(decl)
        if fn is None:
            raise NotCallableError(decl.name, decl.kind.value)
        returns_function, return_text = self.return_function_type(decl, fn)
        return CallbackAnalysis(
            symbol=symbol_ref(decl),
            used_as_callback_in=self.usages(decl),
            callback_parameters=self.callback_parameters(decl, fn),
            returns_function=returns_function,
            return_function_type=return_text,
        )

    # --- usages ----------------------------------------------------------
    def usages(self, decl: Declaration) -> List[CallbackUsage]:
        out: List[CallbackUsage] = []
        for ref in self.checker.find_references(decl):
            if ref.file.is_declaration_file or ref.file.is_external:
                continue
            if ref.file is decl.file and ref.line == decl.line:
                continue
            usage = self._classify(ref.node, decl.name)
            if usage is None:
                continue
            called_by, index, bound = usage
            out.append(
                CallbackUsage(
                    callback_name=decl.name,
                    called_by=called_by,
                    file_path=ref.file.rel_path,
                    line=ref.line,
                    parameter_index=index,
                    bound_with_bind=True if bound else None,
                )
            )
        out.sort(key=lambda u: (u.file_path, u.line))
        return out

    def _classify(self, node: ts.Node, name: str) -> Optional[tuple[str, int, bool]]:
        current = node
        bound = False

        # this.handler -> the member expression
        parent = current.parent
        if (
            parent is not None
            and parent.type == "member_expression"
            and parent.child_by_field_name("property") == current
            and get_node_text(current) == name
        ):
            current = parent

        # handler.bind(this) -> the bind call
        parent = current.parent
        if (
            parent is not None
            and parent.type == "member_expression"
            and parent.child_by_field_name("object") == current
            and get_node_text(parent.child_by_field_name("property")) == "bind"
            and parent.parent is not None
            and parent.parent.type == "call_expression"
        ):
            current = parent.parent
            bound = True

        while current.parent is not None and current.parent.type in _TRANSPARENT_WRAPPERS:
            current = current.parent

        args = current.parent
        if args is None or args.type != "arguments":
            return None
        call = args.parent
        if call is None or call.type != "call_expression":
            return None
        positions = [c for c in args.named_children if c.type != "comment"]
        index = next((i for i, c in enumerate(positions) if c == current), -1)
        if index < 0:
            return None
        called_by = _call_name(call.child_by_field_name("function"))
        if called_by is None:
            return None
        return called_by, index, bound

    # --- higher-order analysis ------------------------------------------
    def callback_parameters(self, decl: Declaration, fn: ts.Node) -> List[CallbackParameter]:
        out: List[CallbackParameter] = []
        sig = self.checker.signature_of(fn, decl.file, decl)
        params = fn.child_by_field_name("parameters")
        nodes = [
            p
            for p in (params.named_children if params is not None else [])
            if p.type in ("required_parameter", "optional_parameter")
            and get_node_text(p.child_by_field_name("pattern")) != "this"
        ]
        for i, (pname, ptype) in enumerate(sig.parameters):
            if not is_function_type(self.checker, ptype):
                continue
            ann = nodes[i].child_by_field_name("type") if i < len(nodes) else None
            if ann is not None and ann.named_children:
                text = get_node_text(ann.named_children[0]).strip()
            else:
                text = ptype.text.strip()
            out.append(CallbackParameter(name=pname, parameter_index=i, type=text))
        return out

    def return_function_type(self, decl: Declaration, fn: ts.Node) -> tuple[bool, Optional[str]]:
        rtype = self.checker.signature_of(fn, decl.file, decl).return_type
        if not is_function_type(self.checker, rtype):
            return False, None
        ret = fn.child_by_field_name("return_type")
        if ret is not None and ret.named_children:
            return True, get_node_text(ret.named_children[0]).strip()
        return True, rtype.text.strip()


def resolve_callbacks(index: ProjectIndex, decl: Declaration) -> CallbackAnalysis:
    return CallbackAnalyzer(index).analyze(decl)

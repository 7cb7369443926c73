from typing import List, Optional

import tree_sitter as ts

from tstrace.analysis.common import symbol_ref
from tstrace.errors import NotATypeError
from tstrace.helpers import format_js_number, parse_js_number
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.models import EnumAnalysis, EnumMemberEntry
from tstrace.parsers import get_node_text, node_line


def is_simple_literal(node: ts.Node) -> bool:
    """Numeric, string, negated numeric or substitution-free template literal."""
    if node.type in ("number", "string"):
        return True
    if node.type == "unary_expression":
        arg = node.child_by_field_name("argument")
        return arg is not None and arg.type == "number"
    if node.type == "template_string":
        return not any(c.type == "template_substitution" for c in node.named_children)
    return False


def enum_members(decl: Declaration) -> List[EnumMemberEntry]:
    out: List[EnumMemberEntry] = []
    auto_value: float = 0
    for member in decl.members:
        node = member.node
        init: Optional[ts.Node] = node.child_by_field_name("value") if node.type == "enum_assignment" else None
        if init is not None:
            out.append(
                EnumMemberEntry(
                    name=member.name,
                    value=get_node_text(init).strip(),
                    is_computed=not is_simple_literal(init),
                    line=node_line(node),
                )
            )
            # only a plain numeric initializer keeps the auto-increment going
            parsed = parse_js_number(get_node_text(init)) if init.type == "number" else None
            auto_value = parsed + 1 if parsed is not None else float("nan")
        else:
            out.append(
                EnumMemberEntry(
                    name=member.name,
                    value=format_js_number(auto_value),
                    is_computed=False,
                    line=node_line(node),
                )
            )
            auto_value += 1
    return out


def resolve_enum_members(decl: Declaration) -> EnumAnalysis:
    if decl.kind != DeclKind.ENUM:
        raise NotATypeError(decl.name, decl.kind.value, "an enum")
    return EnumAnalysis(
        symbol=symbol_ref(decl),
        is_const="const" in decl.modifiers,
        is_declare="declare" in decl.modifiers,
        members=enum_members(decl),
    )

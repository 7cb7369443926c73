from typing import Optional

import tree_sitter as ts

from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.models import SymbolRef
from tstrace.parsers import SourceFile, unwrap_expression

CALLABLE_KINDS = {
    DeclKind.FUNCTION,
    DeclKind.METHOD,
    DeclKind.CONSTRUCTOR,
    DeclKind.GETTER,
    DeclKind.SETTER,
}
TYPE_DECL_KINDS = {DeclKind.CLASS, DeclKind.INTERFACE, DeclKind.TYPE, DeclKind.ENUM}
FUNCTION_EXPRESSION_TYPES = ("arrow_function", "function_expression", "function", "generator_function")
CALLER_NODE_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "method_definition",
)


def display_name(decl: Declaration) -> str:
    if decl.kind == DeclKind.CONSTRUCTOR and decl.container is not None:
        return decl.container.name
    return decl.name


def symbol_ref(decl: Declaration, name: Optional[str] = None) -> SymbolRef:
    ref = SymbolRef(name=name or display_name(decl), file_path=decl.rel_path, line=decl.line)
    if decl.kind == DeclKind.CLASS and "abstract" in decl.modifiers:
        ref.is_abstract = True
    return ref


def decl_key(decl: Declaration) -> str:
    return f"{decl.rel_path}:{decl.line}"


def is_user_declaration(decl: Declaration) -> bool:
    return decl.file.is_user_file


def function_node(decl: Declaration) -> Optional[ts.Node]:
    """The syntax node carrying parameters and body for a callable declaration."""
    if decl.kind in CALLABLE_KINDS:
        return decl.node
    if decl.kind == DeclKind.VARIABLE:
        init = unwrap_expression(decl.initializer)
        if init is not None and init.type in FUNCTION_EXPRESSION_TYPES:
            return init
    return None


def is_callable(decl: Declaration) -> bool:
    return function_node(decl) is not None


def enclosing_callable(node: ts.Node, sf: SourceFile, index) -> Optional[Declaration]:
    """Nearest function, method or constructor declaration around `node`."""
    info = index.module_info(sf)
    cur = node.parent
    while cur is not None:
        if cur.type in CALLER_NODE_TYPES:
            name = cur.child_by_field_name("name")
            decl = info.declaration_at(name) if name is not None else None
            if decl is not None and decl.kind in CALLABLE_KINDS:
                return decl
        cur = cur.parent
    return None


def enclosing_declaration(node: ts.Node, sf: SourceFile, index) -> Optional[Declaration]:
    """
    Nearest named declaration containing `node`: a callable, a class or
    interface, or a variable. Used to attribute references to dependents.
    """
    info = index.module_info(sf)
    cur = node.parent
    while cur is not None:
        name = cur.child_by_field_name("name")
        if name is not None and cur.type in (
            *CALLER_NODE_TYPES,
            "class_declaration",
            "abstract_class_declaration",
            "interface_declaration",
            "type_alias_declaration",
            "variable_declarator",
            "public_field_definition",
        ):
            decl = info.declaration_at(name)
            if decl is not None and decl.kind != DeclKind.PARAMETER:
                return decl
        cur = cur.parent
    return None


def declaration_kind_label(decl: Declaration) -> str:
    """Kind label used in reports; `const` variables are reported as constants."""
    if decl.kind == DeclKind.VARIABLE and "const" in decl.modifiers:
        return "constant"
    return decl.kind.value

from dataclasses import dataclass, field, replace
from enum import Enum, IntFlag
from typing import TYPE_CHECKING, Iterator, List, Optional

import tree_sitter as ts

from tstrace.lang.typescript import (
    TYPE_KINDS,
    VALUE_KINDS,
    Declaration,
    DeclKind,
    ImportBinding,
    ModuleBody,
    Scope,
)
from tstrace.helpers import Deadline
from tstrace.logger import logger
from tstrace.parsers import (
    SourceFile,
    find_ancestor,
    get_node_text,
    iter_descendants,
    string_value,
    unwrap_expression,
)

if TYPE_CHECKING:
    from tstrace.project import ProjectIndex


class Meaning(IntFlag):
    VALUE = 1
    TYPE = 2
    NAMESPACE = 4
    ALL = 7


_NAMESPACE_KINDS = {DeclKind.NAMESPACE, DeclKind.ENUM, DeclKind.CLASS, DeclKind.IMPORT}

IDENTIFIER_TYPES = {
    "identifier",
    "type_identifier",
    "property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
    "private_property_identifier",
}

CLASS_NODE_TYPES = ("class_declaration", "abstract_class_declaration", "class")
FUNCTION_NODE_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
)


def _has_meaning(decl: Declaration, meaning: Meaning) -> bool:
    if meaning & Meaning.VALUE and decl.kind in VALUE_KINDS:
        return True
    if meaning & Meaning.TYPE and decl.kind in TYPE_KINDS:
        return True
    if meaning & Meaning.NAMESPACE and decl.kind in _NAMESPACE_KINDS:
        return True
    return False


@dataclass(eq=False)
class Symbol:
    """Semantic identity of a name. Merged declarations share one symbol."""

    name: str
    declarations: List[Declaration] = field(default_factory=list)
    module: Optional[ModuleBody] = None

    @property
    def declaration(self) -> Optional[Declaration]:
        return self.declarations[0] if self.declarations else None

    @property
    def is_alias(self) -> bool:
        return bool(self.declarations) and all(d.kind == DeclKind.IMPORT for d in self.declarations)

    def shares_declaration(self, other: "Symbol") -> bool:
        if self.module is not None or other.module is not None:
            return self.module is not None and self.module is other.module
        ids = {id(d) for d in self.declarations}
        return any(id(d) in ids for d in other.declarations)


class TypeKind(str, Enum):
    PRIMITIVE = "primitive"
    LITERAL = "literal"
    ENUM_LITERAL = "enum-literal"
    REFERENCE = "reference"
    UNION = "union"
    INTERSECTION = "intersection"
    ARRAY = "array"
    TUPLE = "tuple"
    FUNCTION = "function"
    OBJECT = "object"
    TYPE_PARAMETER = "type-parameter"
    UNKNOWN = "unknown"


@dataclass(eq=False)
class Signature:
    parameters: List[tuple[str, "TypeInfo"]] = field(default_factory=list)
    return_type: Optional["TypeInfo"] = None
    declaration: Optional[Declaration] = None


@dataclass(eq=False)
class TypeInfo:
    kind: TypeKind
    text: str
    symbol: Optional[Symbol] = None
    type_arguments: List["TypeInfo"] = field(default_factory=list)
    types: List["TypeInfo"] = field(default_factory=list)
    element_type: Optional["TypeInfo"] = None
    signatures: List[Signature] = field(default_factory=list)
    alias_symbol: Optional[Symbol] = None
    alias_type_arguments: List["TypeInfo"] = field(default_factory=list)

    @property
    def is_void(self) -> bool:
        return self.kind == TypeKind.PRIMITIVE and self.text == "void"


ANY = TypeInfo(TypeKind.PRIMITIVE, "any")
VOID = TypeInfo(TypeKind.PRIMITIVE, "void")
BOOLEAN = TypeInfo(TypeKind.PRIMITIVE, "boolean")
NUMBER = TypeInfo(TypeKind.PRIMITIVE, "number")
STRING = TypeInfo(TypeKind.PRIMITIVE, "string")
UNKNOWN = TypeInfo(TypeKind.UNKNOWN, "unknown")
STRING_ARRAY = TypeInfo(TypeKind.ARRAY, "string[]", element_type=STRING)

# result types of well-known members on primitive receivers; calls and plain accesses share one table
_PRIMITIVE_MEMBERS: dict[str, dict[str, TypeInfo]] = {
    "string": {
        "length": NUMBER,
        "at": STRING,
        "charAt": STRING,
        "charCodeAt": NUMBER,
        "codePointAt": NUMBER,
        "concat": STRING,
        "endsWith": BOOLEAN,
        "includes": BOOLEAN,
        "indexOf": NUMBER,
        "lastIndexOf": NUMBER,
        "localeCompare": NUMBER,
        "normalize": STRING,
        "padEnd": STRING,
        "padStart": STRING,
        "repeat": STRING,
        "replace": STRING,
        "replaceAll": STRING,
        "search": NUMBER,
        "slice": STRING,
        "split": STRING_ARRAY,
        "startsWith": BOOLEAN,
        "substring": STRING,
        "toLowerCase": STRING,
        "toLocaleLowerCase": STRING,
        "toUpperCase": STRING,
        "toLocaleUpperCase": STRING,
        "toString": STRING,
        "trim": STRING,
        "trimEnd": STRING,
        "trimStart": STRING,
        "valueOf": STRING,
    },
    "number": {
        "toExponential": STRING,
        "toFixed": STRING,
        "toLocaleString": STRING,
        "toPrecision": STRING,
        "toString": STRING,
        "valueOf": NUMBER,
    },
    "boolean": {
        "toString": STRING,
        "valueOf": BOOLEAN,
    },
}

_COMPARISON_OPS = {"==", "===", "!=", "!==", "<", ">", "<=", ">=", "instanceof", "in"}
_ARITHMETIC_OPS = {"-", "*", "/", "%", "**", "<<", ">>", ">>>", "&", "|", "^"}


@dataclass(eq=False)
class Reference:
    """One identifier that resolves to a symbol."""

    file: SourceFile
    node: ts.Node

    @property
    def line(self) -> int:
        return self.node.start_point[0] + 1

    @property
    def column(self) -> int:
        return self.node.start_point[1] + 1


def widen(t: TypeInfo) -> TypeInfo:
    if t.kind == TypeKind.LITERAL:
        if t.text in ("true", "false"):
            return BOOLEAN
        if t.text[:1] in ("'", '"', "`"):
            return STRING
        return NUMBER
    return t


def union_of(types: List[TypeInfo]) -> TypeInfo:
    unique: List[TypeInfo] = []
    seen: set[str] = set()
    for t in types:
        if t.text not in seen:
            seen.add(t.text)
            unique.append(t)
    if not unique:
        return ANY
    if len(unique) == 1:
        return unique[0]
    return TypeInfo(TypeKind.UNION, " | ".join(t.text for t in unique), types=unique)


class Checker:
    """
    A narrow semantic model over the parsed project: symbol lookup, alias
    resolution, a light-weight type model and project-wide reference search.
    """

    def __init__(self, index: "ProjectIndex") -> None:
        self.index = index
        self._inferring: set[tuple[str, int]] = set()

    # ------------------------------------------------------------------
    # Modules and exports
    # ------------------------------------------------------------------
    def module_for_specifier(self, specifier: Optional[str], from_file: SourceFile) -> Optional[ModuleBody]:
        if not specifier:
            return None
        path = self.index.resolver.resolve(specifier, from_file.path)
        if path is not None:
            sf = self.index.ensure_file(path)
            if sf is not None:
                return self.index.module_info(sf).body
        ambient = self.index.ambient_modules(specifier)
        return ambient[0] if ambient else None

    def get_export(
        self,
        body: ModuleBody,
        name: str,
        _seen: Optional[set[tuple[int, str]]] = None,
    ) -> Optional[Symbol]:
        """Resolve an export name of a module through re-exports and `export *`."""
        seen = _seen if _seen is not None else set()
        key = (id(body), name)
        if key in seen:
            return None
        seen.add(key)

        decls: List[Declaration] = []
        for entry in body.exports.get(name, []):
            if entry.source is not None:
                target = self.module_for_specifier(entry.source, body.file)
                if target is None:
                    continue
                if entry.imported == "*":
                    return Symbol(name, module=target)
                sym = self.get_export(target, entry.imported or name, seen)
                if sym is not None:
                    return sym
            elif entry.declarations:
                decls.extend(d for d in entry.declarations if d not in decls)
            elif entry.local:
                sym = self._lookup(body.scope, entry.local, Meaning.ALL)
                if sym is None:
                    continue
                sym = self.resolve_alias_chain(sym)
                if sym.module is not None:
                    return sym
                decls.extend(d for d in sym.declarations if d not in decls)
        if decls:
            return Symbol(name, decls)

        if name == "default":
            return None
        for spec, _stmt in body.export_stars:
            target = self.module_for_specifier(spec, body.file)
            if target is None:
                continue
            sym = self.get_export(target, name, seen)
            if sym is not None:
                return sym
        return None

    def get_export_names(self, body: ModuleBody, _seen: Optional[set[int]] = None) -> List[str]:
        seen = _seen if _seen is not None else set()
        if id(body) in seen:
            return []
        seen.add(id(body))
        names = list(body.exports.keys())
        for spec, _stmt in body.export_stars:
            target = self.module_for_specifier(spec, body.file)
            if target is None:
                continue
            for n in self.get_export_names(target, seen):
                if n != "default" and n not in names:
                    names.append(n)
        return names

    # ------------------------------------------------------------------
    # Names and aliases
    # ------------------------------------------------------------------
    def _lookup(self, scope: Scope, name: str, meaning: Meaning) -> Optional[Symbol]:
        for decls in scope.lookup(name):
            matched = [d for d in decls if _has_meaning(d, meaning)]
            if matched:
                return Symbol(name, matched)
        return None

    def resolve_name(self, sf: SourceFile, node: ts.Node, name: str, meaning: Meaning) -> Optional[Symbol]:
        scope = self.index.module_info(sf).scope_for(node)
        return self._lookup(scope, name, meaning)

    def symbol_for_declaration(self, decl: Declaration) -> Symbol:
        """All declarations merged with `decl` (same scope, same name)."""
        if decl.kind == DeclKind.IMPORT or decl.scope is None:
            return Symbol(decl.name, [decl])
        merged = [d for d in decl.scope.bindings.get(decl.name, []) if d.kind != DeclKind.IMPORT]
        return Symbol(decl.name, merged or [decl])

    def resolve_import(self, binding: ImportBinding, sf: SourceFile) -> Optional[Symbol]:
        """One hop: the symbol an import binding points at."""
        if binding.entity is not None:
            parts = binding.entity.split(".")
            sym = self.resolve_name(sf, binding.statement, parts[0], Meaning.NAMESPACE | Meaning.VALUE)
            for part in parts[1:]:
                if sym is None:
                    return None
                sym = self._symbol_member(self.resolve_alias_chain(sym), part)
            return sym
        body = self.module_for_specifier(binding.specifier, sf)
        if body is None:
            return None
        if binding.imported == "*":
            if "=" in body.exports:
                return self.get_export(body, "=")
            return Symbol(binding.local, module=body)
        return self.get_export(body, binding.imported or binding.local)

    def resolve_alias_chain(self, symbol: Symbol) -> Symbol:
        """Follow import aliases until a non-alias symbol. Unresolvable aliases are returned as-is."""
        seen: set[int] = set()
        cur = symbol
        while cur.is_alias:
            decl = cur.declarations[0]
            if id(decl) in seen:
                break
            seen.add(id(decl))
            nxt = self.resolve_import(decl.import_binding, decl.file) if decl.import_binding else None
            if nxt is None:
                logger.debug(
                    "Alias chain ends unresolved",
                    name=decl.name,
                    path=decl.rel_path,
                    specifier=decl.import_binding.specifier if decl.import_binding else None,
                )
                break
            cur = nxt
        return cur

    def get_symbol_at_location(self, node: ts.Node, sf: SourceFile) -> Optional[Symbol]:
        info = self.index.module_info(sf)
        decl = info.declaration_at(node)
        if decl is not None:
            return self.symbol_for_declaration(decl)

        parent = node.parent
        name = get_node_text(node)
        if parent is not None:
            pt = parent.type
            if pt == "import_specifier":
                # the imported name in `import { a as b }`
                local_node = parent.child_by_field_name("alias") or parent.child_by_field_name("name")
                local = info.declaration_at(local_node) if local_node is not None else None
                if local is not None and local.import_binding is not None:
                    return self.resolve_import(local.import_binding, sf)
                return None
            if pt == "export_specifier":
                return self._export_specifier_symbol(parent, sf)
            if pt == "member_expression" and node.type in ("property_identifier", "private_property_identifier"):
                return self._member_access(parent.child_by_field_name("object"), name, sf)
            if pt == "nested_type_identifier" and node.type == "type_identifier":
                ns = self._namespace_symbol(parent.child_by_field_name("module"), sf)
                return self._symbol_member(ns, name) if ns is not None else None
            if pt == "nested_identifier" and parent.named_children and node.start_byte != parent.named_children[0].start_byte:
                ns = self._namespace_symbol(parent.named_children[0], sf)
                return self._symbol_member(ns, name) if ns is not None else None
            if pt == "pair" and node.type == "property_identifier":
                return None

        if node.type == "type_identifier":
            return self.resolve_name(sf, node, name, Meaning.TYPE)
        if node.type in ("identifier", "shorthand_property_identifier"):
            meaning = Meaning.VALUE
            if parent is not None and parent.type in ("nested_type_identifier", "nested_identifier"):
                meaning = Meaning.NAMESPACE
            return self.resolve_name(sf, node, name, meaning)
        return None

    def _export_specifier_symbol(self, spec: ts.Node, sf: SourceFile) -> Optional[Symbol]:
        stmt = spec.parent.parent if spec.parent is not None else None
        name_node = spec.child_by_field_name("name")
        if name_node is None:
            return None
        orig = string_value(name_node) if name_node.type == "string" else get_node_text(name_node)
        source = string_value(stmt.child_by_field_name("source")) if stmt is not None else None
        if source is not None:
            body = self.module_for_specifier(source, sf)
            return self.get_export(body, orig) if body is not None else None
        scope = self.index.module_info(sf).scope_for(spec)
        return self._lookup(scope, orig, Meaning.ALL)

    def _namespace_symbol(self, node: Optional[ts.Node], sf: SourceFile) -> Optional[Symbol]:
        if node is None:
            return None
        if node.type == "identifier":
            sym = self.resolve_name(sf, node, get_node_text(node), Meaning.NAMESPACE)
            return self.resolve_alias_chain(sym) if sym is not None else None
        if node.type in ("nested_identifier", "member_expression"):
            parts = node.named_children
            if len(parts) < 2:
                return None
            ns = self._namespace_symbol(parts[0], sf)
            if ns is None:
                return None
            member = self._symbol_member(ns, get_node_text(parts[-1]))
            return self.resolve_alias_chain(member) if member is not None else None
        return None

    def _symbol_member(self, sym: Symbol, name: str) -> Optional[Symbol]:
        """Static member access on a module, namespace, enum or class symbol."""
        if sym.module is not None:
            return self.get_export(sym.module, name)
        found: List[Declaration] = []
        for decl in sym.declarations:
            if decl.kind == DeclKind.NAMESPACE and decl.body is not None:
                exported = self.get_export(decl.body, name)
                if exported is not None:
                    found.extend(exported.declarations)
            elif decl.kind == DeclKind.ENUM:
                found.extend(m for m in decl.members if m.name == name)
            elif decl.kind == DeclKind.CLASS:
                members = self.get_members(decl, name, static=True) or self.get_members(decl, name)
                found.extend(members)
        return Symbol(name, found) if found else None

    def _member_access(self, obj: Optional[ts.Node], name: str, sf: SourceFile) -> Optional[Symbol]:
        obj = unwrap_expression(obj)
        if obj is None:
            return None
        if obj.type in ("this", "super"):
            cls_node = find_ancestor(obj, CLASS_NODE_TYPES)
            cls = self._class_declaration_for(cls_node, sf)
            if cls is None:
                return None
            if obj.type == "super":
                for base in self.get_base_declarations(cls, "extends"):
                    members = self.get_members(base, name)
                    if members:
                        return Symbol(name, members)
                return None
            method = find_ancestor(obj, ("method_definition", "public_field_definition"))
            is_static = method is not None and any(c.type == "static" for c in method.children)
            members = self.get_members(cls, name, static=is_static) or self.get_members(cls, name)
            return Symbol(name, members) if members else None

        if obj.type in ("identifier", "member_expression"):
            target = self._expression_symbol(obj, sf)
            if target is not None:
                if target.module is not None or any(
                    d.kind in (DeclKind.NAMESPACE, DeclKind.ENUM, DeclKind.CLASS) for d in target.declarations
                ):
                    return self._symbol_member(target, name)
                decl = target.declaration
                if decl is not None:
                    return self._members_of_type(self.get_type_of_declaration(decl), name)
        return self._members_of_type(self.get_type_of_expression(obj, sf), name)

    def _expression_symbol(self, expr: ts.Node, sf: SourceFile) -> Optional[Symbol]:
        expr = unwrap_expression(expr)
        if expr is None:
            return None
        if expr.type == "identifier":
            sym = self.resolve_name(sf, expr, get_node_text(expr), Meaning.VALUE)
        elif expr.type == "member_expression":
            prop = expr.child_by_field_name("property")
            if prop is None:
                return None
            sym = self._member_access(expr.child_by_field_name("object"), get_node_text(prop), sf)
        else:
            return None
        return self.resolve_alias_chain(sym) if sym is not None else None

    def _members_of_type(self, t: TypeInfo, name: str) -> Optional[Symbol]:
        if t.kind in (TypeKind.UNION, TypeKind.INTERSECTION):
            for part in t.types:
                found = self._members_of_type(part, name)
                if found is not None:
                    return found
            return None
        if t.symbol is None:
            return None
        found: List[Declaration] = []
        for decl in t.symbol.declarations:
            if decl.kind in (DeclKind.CLASS, DeclKind.INTERFACE):
                found.extend(self.get_members(decl, name, static=False))
        return Symbol(name, found) if found else None

    def _class_declaration_for(self, cls_node: Optional[ts.Node], sf: SourceFile) -> Optional[Declaration]:
        if cls_node is None:
            return None
        info = self.index.module_info(sf)
        for decl in info.declarations:
            if decl.kind == DeclKind.CLASS and decl.node.start_byte == cls_node.start_byte and decl.node.end_byte == cls_node.end_byte:
                return decl
        return None

    def declaration_for_node(self, node: ts.Node, sf: SourceFile) -> Optional[Declaration]:
        """The declaration whose syntax node is exactly `node`."""
        for decl in self.index.module_info(sf).declarations:
            if decl.node.start_byte == node.start_byte and decl.node.end_byte == node.end_byte and decl.node.type == node.type:
                return decl
        return None

    # ------------------------------------------------------------------
    # Members and heritage
    # ------------------------------------------------------------------
    def get_members(
        self,
        decl: Declaration,
        name: str,
        static: Optional[bool] = None,
        _seen: Optional[set[int]] = None,
    ) -> List[Declaration]:
        seen = _seen if _seen is not None else set()
        if id(decl) in seen:
            return []
        seen.add(id(decl))
        out = [m for m in decl.members if m.name == name and (static is None or m.is_static == static)]
        if out:
            return out
        for base in self.get_base_declarations(decl):
            out = self.get_members(base, name, static, seen)
            if out:
                return out
        return []

    def get_heritage(self, decl: Declaration) -> List[tuple[str, ts.Node, Optional[Declaration]]]:
        """
        (clause, name node, resolved declaration) for every heritage entry of a
        class or interface. Classes report `extends` and `implements`, interfaces
        report their `extends` list.
        """
        out: List[tuple[str, ts.Node, Optional[Declaration]]] = []
        sf = decl.file
        if decl.kind == DeclKind.CLASS:
            heritage = next((c for c in decl.node.named_children if c.type == "class_heritage"), None)
            if heritage is None:
                return out
            for clause in heritage.named_children:
                if clause.type == "extends_clause":
                    for value in clause.children_by_field_name("value"):
                        sym = self._expression_symbol(value, sf)
                        target = self._first_of(sym, (DeclKind.CLASS,))
                        out.append(("extends", self._name_node(value), target))
                elif clause.type == "implements_clause":
                    for type_node in clause.named_children:
                        name_node = self._name_node(type_node)
                        sym = self.resolve_type_reference(name_node, sf)
                        out.append(("implements", name_node, self._first_of(sym, (DeclKind.INTERFACE, DeclKind.CLASS))))
        elif decl.kind == DeclKind.INTERFACE:
            clause = next((c for c in decl.node.named_children if c.type == "extends_type_clause"), None)
            if clause is None:
                return out
            for type_node in clause.named_children:
                name_node = self._name_node(type_node)
                sym = self.resolve_type_reference(name_node, sf)
                out.append(("extends", name_node, self._first_of(sym, (DeclKind.INTERFACE, DeclKind.CLASS))))
        return out

    def get_base_declarations(self, decl: Declaration, clause: Optional[str] = None) -> List[Declaration]:
        return [
            target
            for kind, _node, target in self.get_heritage(decl)
            if target is not None and (clause is None or kind == clause)
        ]

    @staticmethod
    def _first_of(sym: Optional[Symbol], kinds) -> Optional[Declaration]:
        if sym is None:
            return None
        return next((d for d in sym.declarations if d.kind in kinds), None)

    @staticmethod
    def _name_node(node: ts.Node) -> ts.Node:
        if node.type == "generic_type":
            inner = node.child_by_field_name("name")
            return inner if inner is not None else node
        if node.type == "member_expression":
            prop = node.child_by_field_name("property")
            return prop if prop is not None else node
        if node.type == "call_expression":
            fn = node.child_by_field_name("function")
            return fn if fn is not None else node
        return node

    def resolve_type_reference(self, node: ts.Node, sf: SourceFile) -> Optional[Symbol]:
        """Resolve a written type name (plain or qualified) to its target symbol."""
        if node.type == "generic_type":
            node = node.child_by_field_name("name") or node
        if node.type == "type_identifier":
            sym = self.resolve_name(sf, node, get_node_text(node), Meaning.TYPE)
        elif node.type == "nested_type_identifier":
            ns = self._namespace_symbol(node.child_by_field_name("module"), sf)
            name = node.child_by_field_name("name")
            sym = self._symbol_member(ns, get_node_text(name)) if ns is not None and name is not None else None
        elif node.type == "identifier":
            sym = self.resolve_name(sf, node, get_node_text(node), Meaning.ALL)
        else:
            return None
        return self.resolve_alias_chain(sym) if sym is not None else None

    def get_definitions(self, node: ts.Node, sf: SourceFile) -> List[Declaration]:
        sym = self.get_symbol_at_location(node, sf)
        if sym is None:
            return []
        sym = self.resolve_alias_chain(sym)
        return [d for d in sym.declarations if d.kind != DeclKind.IMPORT]

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------
    def get_type_of_type_node(
        self,
        node: Optional[ts.Node],
        sf: SourceFile,
        _aliases: tuple = (),
    ) -> TypeInfo:
        if node is None:
            return ANY
        t = node.type
        text = get_node_text(node)
        if t in ("type_annotation", "parenthesized_type", "readonly_type", "optional_type", "rest_type"):
            inner = node.named_children[-1] if node.named_children else None
            return self.get_type_of_type_node(inner, sf, _aliases)
        if t == "predefined_type":
            return TypeInfo(TypeKind.PRIMITIVE, text)
        if t == "literal_type":
            inner = node.named_children[0] if node.named_children else None
            if inner is not None and inner.type in ("null", "undefined"):
                return TypeInfo(TypeKind.PRIMITIVE, inner.type)
            return TypeInfo(TypeKind.LITERAL, text)
        if t in ("this_type",):
            return TypeInfo(TypeKind.UNKNOWN, text)
        if t in ("type_identifier", "nested_type_identifier", "generic_type"):
            name_node = node.child_by_field_name("name") if t == "generic_type" else node
            args_node = node.child_by_field_name("type_arguments") if t == "generic_type" else None
            args = [self.get_type_of_type_node(a, sf, _aliases) for a in (args_node.named_children if args_node else [])]
            sym = self.resolve_type_reference(name_node, sf) if name_node is not None else None
            return self._type_from_symbol(sym, get_node_text(name_node), args, text, _aliases)
        if t in ("union_type", "intersection_type"):
            kind = TypeKind.UNION if t == "union_type" else TypeKind.INTERSECTION
            parts: List[TypeInfo] = []
            for child in node.named_children:
                sub = self.get_type_of_type_node(child, sf, _aliases)
                if sub.kind == kind and child.type == t:
                    parts.extend(sub.types)
                else:
                    parts.append(sub)
            return TypeInfo(kind, text, types=parts)
        if t == "array_type":
            elem = self.get_type_of_type_node(node.named_children[0], sf, _aliases) if node.named_children else ANY
            return TypeInfo(TypeKind.ARRAY, text, element_type=elem)
        if t == "tuple_type":
            members: List[TypeInfo] = []
            for child in node.named_children:
                if child.type in ("tuple_parameter", "optional_tuple_parameter"):
                    child = child.child_by_field_name("type") or child
                members.append(self.get_type_of_type_node(child, sf, _aliases))
            return TypeInfo(TypeKind.TUPLE, text, types=members)
        if t in ("function_type", "constructor_type"):
            sig = self.signature_of(node, sf, None)
            return TypeInfo(TypeKind.FUNCTION, text, signatures=[sig])
        if t == "object_type":
            sigs = [
                self.signature_of(m, sf, None)
                for m in node.named_children
                if m.type == "call_signature"
            ]
            return TypeInfo(TypeKind.OBJECT, text, signatures=sigs)
        if t == "type_query":
            target = node.named_children[0] if node.named_children else None
            if target is not None:
                sym = self._expression_symbol(target, sf)
                if sym is not None and sym.declaration is not None:
                    return self.get_type_of_declaration(sym.declaration)
            return TypeInfo(TypeKind.UNKNOWN, text)
        if t == "type_predicate":
            return TypeInfo(TypeKind.PRIMITIVE, "boolean")
        return TypeInfo(TypeKind.UNKNOWN, text)

    def _type_from_symbol(
        self,
        sym: Optional[Symbol],
        name: str,
        args: List[TypeInfo],
        text: str,
        aliases: tuple,
    ) -> TypeInfo:
        decl = next((d for d in sym.declarations if d.kind != DeclKind.IMPORT), None) if sym else None
        if decl is None:
            if name in ("Array", "ReadonlyArray") and args:
                return TypeInfo(TypeKind.ARRAY, text, element_type=args[0], type_arguments=args)
            return TypeInfo(TypeKind.REFERENCE, text, symbol=sym, type_arguments=args)
        if decl.kind == DeclKind.TYPE:
            if decl in aliases:
                return TypeInfo(TypeKind.REFERENCE, text, alias_symbol=sym, alias_type_arguments=args)
            inner = self.get_type_of_type_node(decl.child("value"), decl.file, aliases + (decl,))
            if inner.kind in (TypeKind.PRIMITIVE, TypeKind.LITERAL, TypeKind.REFERENCE, TypeKind.ENUM_LITERAL):
                # aliases of primitives and named types do not survive as alias symbols
                return inner
            return replace(inner, text=text, alias_symbol=sym, alias_type_arguments=args)
        if decl.kind in (DeclKind.CLASS, DeclKind.INTERFACE, DeclKind.ENUM):
            return TypeInfo(TypeKind.REFERENCE, text, symbol=sym, type_arguments=args)
        if decl.kind == DeclKind.ENUM_MEMBER:
            return TypeInfo(TypeKind.ENUM_LITERAL, text, symbol=sym)
        if decl.kind == DeclKind.TYPE_PARAMETER:
            return TypeInfo(TypeKind.TYPE_PARAMETER, text, symbol=sym)
        return TypeInfo(TypeKind.UNKNOWN, text, symbol=sym)

    def get_type_of_declaration(self, decl: Declaration) -> TypeInfo:
        k = decl.kind
        if k == DeclKind.IMPORT:
            target = self.resolve_alias_chain(Symbol(decl.name, [decl]))
            if target.is_alias or target.declaration is None:
                return ANY
            return self.get_type_of_declaration(target.declaration)
        if k in (DeclKind.VARIABLE, DeclKind.PARAMETER, DeclKind.PROPERTY):
            if decl.type_node is not None:
                return self.get_type_of_type_node(decl.type_node, decl.file)
            init = decl.initializer
            if init is not None:
                return widen(self.get_type_of_expression(init, decl.file))
            return ANY
        if k in (DeclKind.FUNCTION, DeclKind.METHOD, DeclKind.CONSTRUCTOR, DeclKind.SETTER):
            sig = self.get_signature(decl)
            return TypeInfo(TypeKind.FUNCTION, self.signature_text(sig), signatures=[sig])
        if k == DeclKind.GETTER:
            return self.get_return_type(decl) or ANY
        if k in (DeclKind.CLASS, DeclKind.INTERFACE, DeclKind.ENUM):
            return TypeInfo(TypeKind.REFERENCE, decl.name, symbol=self.symbol_for_declaration(decl))
        if k == DeclKind.ENUM_MEMBER:
            return TypeInfo(
                TypeKind.ENUM_LITERAL,
                f"{decl.container.name}.{decl.name}" if decl.container else decl.name,
                symbol=Symbol(decl.name, [decl]),
            )
        if k == DeclKind.TYPE:
            return self.get_type_of_type_node(decl.child("value"), decl.file, (decl,))
        return TypeInfo(TypeKind.UNKNOWN, decl.name)

    def get_signature(self, decl: Declaration) -> Signature:
        return self.signature_of(decl.node, decl.file, decl)

    def signature_of(self, node: ts.Node, sf: SourceFile, decl: Optional[Declaration]) -> Signature:
        params: List[tuple[str, TypeInfo]] = []
        params_node = node.child_by_field_name("parameters")
        for p in params_node.named_children if params_node is not None else []:
            if p.type not in ("required_parameter", "optional_parameter"):
                continue
            pattern = p.child_by_field_name("pattern")
            pname = get_node_text(pattern) if pattern is not None else ""
            if pname == "this":
                continue
            ann = p.child_by_field_name("type")
            if ann is not None:
                ptype = self.get_type_of_type_node(ann, sf)
            elif p.child_by_field_name("value") is not None:
                ptype = widen(self.get_type_of_expression(p.child_by_field_name("value"), sf))
            else:
                ptype = ANY
            params.append((pname, ptype))
        single = node.child_by_field_name("parameter")
        if single is not None:
            params.append((get_node_text(single), ANY))
        sig = Signature(parameters=params, declaration=decl)
        sig.return_type = self._return_type_of_node(node, sf, decl)
        return sig

    def get_return_type(self, decl: Declaration) -> Optional[TypeInfo]:
        if decl.kind == DeclKind.CONSTRUCTOR:
            return None
        return self._return_type_of_node(decl.node, decl.file, decl)

    def _return_type_of_node(self, node: ts.Node, sf: SourceFile, decl: Optional[Declaration]) -> TypeInfo:
        ret = node.child_by_field_name("return_type")
        if ret is not None:
            if ret.type == "type_predicate_annotation":
                return BOOLEAN
            if ret.type == "asserts_annotation":
                return VOID
            return self.get_type_of_type_node(ret, sf)
        if node.type == "constructor_type" or node.type == "function_type":
            return ANY
        return self._infer_return_type(node, sf)

    def _infer_return_type(self, node: ts.Node, sf: SourceFile) -> TypeInfo:
        key = (sf.path, node.start_byte)
        if key in self._inferring:
            return ANY
        self._inferring.add(key)
        try:
            body = node.child_by_field_name("body")
            is_async = any(c.type == "async" for c in node.children)
            if body is None:
                return VOID if node.type in ("function_signature", "method_signature", "abstract_method_signature") else ANY
            if body.type != "statement_block":
                inner = widen(self.get_type_of_expression(body, sf))
            else:
                returned = [
                    widen(self.get_type_of_expression(r.named_children[0], sf))
                    for r in self._return_statements(body)
                    if r.named_children
                ]
                inner = union_of(returned) if returned else VOID
            if is_async:
                return TypeInfo(TypeKind.REFERENCE, f"Promise<{inner.text}>", type_arguments=[inner])
            return inner
        finally:
            self._inferring.discard(key)

    @staticmethod
    def _return_statements(body: ts.Node) -> Iterator[ts.Node]:
        stack = list(body.named_children)
        while stack:
            cur = stack.pop()
            if cur.type == "return_statement":
                yield cur
                continue
            if cur.type in FUNCTION_NODE_TYPES or cur.type in CLASS_NODE_TYPES:
                continue
            stack.extend(cur.named_children)

    def _primitive_member_type(self, member: ts.Node, sf: SourceFile) -> Optional[TypeInfo]:
        """Result of `x.name` or `x.name()` when `x` is a string, number or boolean."""
        obj = member.child_by_field_name("object")
        prop = member.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        receiver = widen(self.get_type_of_expression(obj, sf))
        members = _PRIMITIVE_MEMBERS.get(receiver.text) if receiver.kind == TypeKind.PRIMITIVE else None
        if members is None:
            return None
        return members.get(get_node_text(prop), UNKNOWN)

    def get_type_of_expression(self, expr: Optional[ts.Node], sf: SourceFile) -> TypeInfo:
        if expr is None:
            return ANY
        t = expr.type
        text = get_node_text(expr)
        if t == "number":
            return TypeInfo(TypeKind.LITERAL, text)
        if t == "string":
            return TypeInfo(TypeKind.LITERAL, text)
        if t == "template_string":
            return STRING
        if t in ("true", "false"):
            return TypeInfo(TypeKind.LITERAL, t)
        if t in ("null", "undefined"):
            return TypeInfo(TypeKind.PRIMITIVE, t)
        if t in ("parenthesized_expression", "non_null_expression", "satisfies_expression"):
            return self.get_type_of_expression(expr.named_children[0] if expr.named_children else None, sf)
        if t == "as_expression":
            if len(expr.named_children) >= 2:
                return self.get_type_of_type_node(expr.named_children[-1], sf)
            return ANY
        if t == "await_expression":
            inner = self.get_type_of_expression(expr.named_children[0] if expr.named_children else None, sf)
            if inner.kind == TypeKind.REFERENCE and inner.text.startswith("Promise") and inner.type_arguments:
                return inner.type_arguments[0]
            return inner
        if t == "identifier":
            if text == "undefined":
                return TypeInfo(TypeKind.PRIMITIVE, "undefined")
            sym = self._expression_symbol(expr, sf)
            if sym is not None and sym.declaration is not None:
                decl = sym.declaration
                if decl.kind in (DeclKind.CLASS, DeclKind.ENUM, DeclKind.NAMESPACE):
                    return TypeInfo(TypeKind.OBJECT, f"typeof {decl.name}", symbol=sym)
                return self.get_type_of_declaration(decl)
            return ANY
        if t == "member_expression":
            prop = expr.child_by_field_name("property")
            if prop is None:
                return ANY
            sym = self._member_access(expr.child_by_field_name("object"), get_node_text(prop), sf)
            if sym is not None and sym.declaration is not None:
                return self.get_type_of_declaration(sym.declaration)
            primitive = self._primitive_member_type(expr, sf)
            return primitive if primitive is not None else ANY
        if t == "new_expression":
            ctor = expr.child_by_field_name("constructor")
            sym = self._expression_symbol(ctor, sf) if ctor is not None else None
            args_node = expr.child_by_field_name("type_arguments")
            args = [self.get_type_of_type_node(a, sf) for a in (args_node.named_children if args_node else [])]
            name = get_node_text(ctor) if ctor is not None else "unknown"
            cls = self._first_of(sym, (DeclKind.CLASS,))
            label = name + (get_node_text(args_node) if args_node is not None else "")
            if cls is not None:
                return TypeInfo(TypeKind.REFERENCE, label, symbol=self.symbol_for_declaration(cls), type_arguments=args)
            return TypeInfo(TypeKind.REFERENCE, label, type_arguments=args)
        if t == "call_expression":
            fn = expr.child_by_field_name("function")
            if fn is None:
                return ANY
            if fn.type == "member_expression":
                primitive = self._primitive_member_type(fn, sf)
                if primitive is not None:
                    return primitive
            callee = self.get_type_of_expression(fn, sf)
            sigs = self.get_call_signatures(callee)
            if sigs and sigs[0].return_type is not None:
                return sigs[0].return_type
            return ANY
        if t in ("arrow_function", "function_expression", "function", "generator_function"):
            sig = self.signature_of(expr, sf, None)
            return TypeInfo(TypeKind.FUNCTION, self.signature_text(sig), signatures=[sig])
        if t == "array":
            elems = [widen(self.get_type_of_expression(e, sf)) for e in expr.named_children if e.type != "spread_element"]
            elem = union_of(elems) if elems else ANY
            label = f"({elem.text})[]" if elem.kind == TypeKind.UNION else f"{elem.text}[]"
            return TypeInfo(TypeKind.ARRAY, label, element_type=elem)
        if t == "object":
            return TypeInfo(TypeKind.OBJECT, "{ ... }")
        if t == "binary_expression":
            op_node = expr.child_by_field_name("operator")
            op = op_node.type if op_node is not None else ""
            if op in _COMPARISON_OPS:
                return BOOLEAN
            if op in _ARITHMETIC_OPS:
                return NUMBER
            left = widen(self.get_type_of_expression(expr.child_by_field_name("left"), sf))
            right = widen(self.get_type_of_expression(expr.child_by_field_name("right"), sf))
            if op == "+":
                return STRING if STRING.text in (left.text, right.text) else NUMBER
            return union_of([left, right])
        if t == "unary_expression":
            op_node = expr.child_by_field_name("operator")
            op = op_node.type if op_node is not None else ""
            if op == "!" or op == "delete":
                return BOOLEAN
            if op == "typeof":
                return STRING
            if op == "void":
                return TypeInfo(TypeKind.PRIMITIVE, "undefined")
            return NUMBER
        if t == "ternary_expression":
            return union_of(
                [
                    widen(self.get_type_of_expression(expr.child_by_field_name("consequence"), sf)),
                    widen(self.get_type_of_expression(expr.child_by_field_name("alternative"), sf)),
                ]
            )
        return ANY

    def get_call_signatures(self, t: TypeInfo) -> List[Signature]:
        if t.kind in (TypeKind.FUNCTION, TypeKind.OBJECT):
            return t.signatures
        if t.kind == TypeKind.REFERENCE and t.symbol is not None:
            out: List[Signature] = []
            for decl in t.symbol.declarations:
                if decl.kind == DeclKind.INTERFACE:
                    out.extend(
                        self.signature_of(sig, decl.file, None)
                        for sig in decl.signatures
                        if sig.type == "call_signature"
                    )
            return out
        return []

    def get_type_arguments(self, t: TypeInfo) -> List[TypeInfo]:
        if t.kind == TypeKind.ARRAY and t.element_type is not None and not t.type_arguments:
            return [t.element_type]
        if t.kind == TypeKind.TUPLE:
            return t.types
        return t.type_arguments

    @staticmethod
    def signature_text(sig: Signature) -> str:
        params = ", ".join(f"{name}: {ptype.text}" for name, ptype in sig.parameters)
        ret = sig.return_type.text if sig.return_type is not None else "void"
        return f"({params}) => {ret}"

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------
    def find_references(self, decl: Declaration, deadline: Optional[Deadline] = None) -> List[Reference]:
        """
        Every identifier in the indexed files that resolves to the symbol of
        `decl`, including the declaration's own name and import/export
        specifiers that alias it.

        The scan stops between files once `deadline` expires and returns what
        it found so far.
        """
        target = self.symbol_for_declaration(decl)
        target_ids = {id(d) for d in target.declarations}

        def _hits(sym: Optional[Symbol]) -> bool:
            if sym is None:
                return False
            sym = self.resolve_alias_chain(sym)
            return any(id(d) in target_ids for d in sym.declarations)

        names = {decl.name}
        files = self.index.all_files
        changed = True
        while changed and not (deadline is not None and deadline.expired):
            changed = False
            for sf in files:
                info = self.index.module_info(sf)
                for binding in info.imports:
                    if binding.local in names:
                        continue
                    if binding.imported not in names and binding.imported not in ("default", "*") and binding.entity is None:
                        continue
                    if binding.imported == "*":
                        continue
                    local = info.declaration_at(binding.name_node)
                    if local is not None and _hits(Symbol(local.name, [local])):
                        names.add(binding.local)
                        changed = True
                for entries in info.body.exports.values():
                    for entry in entries:
                        if entry.name in names:
                            continue
                        orig = entry.imported if entry.source is not None else entry.local
                        if orig in names:
                            names.add(entry.name)
                            changed = True

        refs: List[Reference] = []
        for sf in files:
            if deadline is not None and deadline.expired:
                logger.warning("Reference search timed out", symbol=decl.name, found=len(refs))
                break
            for node in iter_descendants(sf.root):
                if node.type not in IDENTIFIER_TYPES:
                    continue
                if get_node_text(node) not in names:
                    continue
                try:
                    sym = self.get_symbol_at_location(node, sf)
                except RecursionError:
                    logger.debug("Symbol resolution recursion limit", path=sf.rel_path, line=node.start_point[0] + 1)
                    continue
                if _hits(sym):
                    refs.append(Reference(sf, node))
        return refs

    def is_definition_name(self, ref: Reference, decl: Declaration) -> bool:
        return (
            decl.name_node is not None
            and ref.file is decl.file
            and ref.node.start_byte == decl.name_node.start_byte
            and ref.node.end_byte == decl.name_node.end_byte
        )

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, List, Optional

import tree_sitter as ts

from tstrace.logger import logger
from tstrace.parsers import (
    SourceFile,
    get_node_text,
    node_key,
    node_line,
    string_value,
)


class DeclKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    ENUM_MEMBER = "enum-member"
    VARIABLE = "variable"
    PARAMETER = "parameter"
    PROPERTY = "property"
    CONSTRUCTOR = "constructor"
    GETTER = "getter"
    SETTER = "setter"
    IMPORT = "import"
    NAMESPACE = "namespace"
    TYPE_PARAMETER = "type-parameter"


# Which name meanings a declaration kind contributes to.
VALUE_KINDS = {
    DeclKind.FUNCTION,
    DeclKind.CLASS,
    DeclKind.ENUM,
    DeclKind.VARIABLE,
    DeclKind.PARAMETER,
    DeclKind.NAMESPACE,
    DeclKind.IMPORT,
}
TYPE_KINDS = {
    DeclKind.CLASS,
    DeclKind.INTERFACE,
    DeclKind.TYPE,
    DeclKind.ENUM,
    DeclKind.TYPE_PARAMETER,
    DeclKind.NAMESPACE,
    DeclKind.IMPORT,
}
MEMBER_KINDS = {
    DeclKind.METHOD,
    DeclKind.PROPERTY,
    DeclKind.CONSTRUCTOR,
    DeclKind.GETTER,
    DeclKind.SETTER,
}

MODIFIER_TOKENS = {
    "public",
    "private",
    "protected",
    "static",
    "abstract",
    "readonly",
    "async",
    "override",
    "declare",
}


@dataclass(eq=False)
class ImportBinding:
    local: str
    # export name in the target module; "default", "*" for namespaces, None for `import X = A.B`
    imported: Optional[str]
    specifier: Optional[str]
    node: ts.Node
    name_node: ts.Node
    statement: ts.Node
    imported_node: Optional[ts.Node] = None
    type_only: bool = False
    entity: Optional[str] = None


@dataclass(eq=False)
class ExportEntry:
    name: str
    node: ts.Node
    local: Optional[str] = None
    declarations: List["Declaration"] = field(default_factory=list)
    source: Optional[str] = None
    imported: Optional[str] = None
    type_only: bool = False
    name_node: Optional[ts.Node] = None
    local_node: Optional[ts.Node] = None

    @property
    def is_reexport(self) -> bool:
        return self.source is not None


@dataclass(eq=False)
class Scope:
    node: ts.Node
    parent: Optional["Scope"] = None
    bindings: dict[str, List["Declaration"]] = field(default_factory=dict)

    def add(self, decl: "Declaration") -> None:
        self.bindings.setdefault(decl.name, []).append(decl)
        decl.scope = self

    def lookup(self, name: str) -> Iterator[List["Declaration"]]:
        scope: Optional[Scope] = self
        while scope is not None:
            decls = scope.bindings.get(name)
            if decls:
                yield decls
            scope = scope.parent


@dataclass(eq=False)
class ModuleBody:
    """Export surface of a file, a `declare module "x"` block or a namespace."""

    name: str
    file: SourceFile
    scope: Scope
    ambient: bool = False
    exports: dict[str, List[ExportEntry]] = field(default_factory=dict)
    export_stars: List[tuple[str, ts.Node]] = field(default_factory=list)

    def add_export(self, entry: ExportEntry) -> None:
        self.exports.setdefault(entry.name, []).append(entry)


@dataclass(eq=False)
class Declaration:
    kind: DeclKind
    name: str
    node: ts.Node
    name_node: Optional[ts.Node]
    file: SourceFile
    container: Optional["Declaration"] = None
    modifiers: set[str] = field(default_factory=set)
    exported: bool = False
    default_export: bool = False
    scope: Optional[Scope] = None
    import_binding: Optional[ImportBinding] = None
    members: List["Declaration"] = field(default_factory=list)
    signatures: List[ts.Node] = field(default_factory=list)
    body: Optional[ModuleBody] = None

    @property
    def line(self) -> int:
        return node_line(self.node)

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def rel_path(self) -> str:
        return self.file.rel_path

    @property
    def key(self) -> str:
        return f"{self.file.rel_path}:{self.line}"

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers

    @property
    def is_top_level(self) -> bool:
        return self.scope is not None and self.scope.parent is None

    def child(self, name: str) -> Optional[ts.Node]:
        return self.node.child_by_field_name(name)

    @property
    def type_node(self) -> Optional[ts.Node]:
        """The written type of a variable, parameter or property, if any."""
        ann = self.node.child_by_field_name("type")
        if ann is None:
            return None
        if ann.type == "type_annotation":
            return ann.named_children[0] if ann.named_children else None
        return ann

    @property
    def initializer(self) -> Optional[ts.Node]:
        if self.kind in (DeclKind.VARIABLE, DeclKind.PARAMETER, DeclKind.PROPERTY):
            return self.node.child_by_field_name("value")
        return None

    def __repr__(self) -> str:
        return f"Declaration({self.kind.value} {self.name!r} @ {self.key})"


@dataclass(eq=False)
class ModuleInfo:
    file: SourceFile
    body: ModuleBody
    declarations: List[Declaration] = field(default_factory=list)
    imports: List[ImportBinding] = field(default_factory=list)
    ambient_modules: dict[str, List[ModuleBody]] = field(default_factory=dict)
    scopes: dict[tuple, Scope] = field(default_factory=dict)
    by_name_node: dict[tuple[int, int], Declaration] = field(default_factory=dict)

    def scope_for(self, node: ts.Node) -> Scope:
        cur: Optional[ts.Node] = node
        while cur is not None:
            scope = self.scopes.get(node_key(cur))
            if scope is not None:
                return scope
            cur = cur.parent
        return self.body.scope

    def declaration_at(self, name_node: ts.Node) -> Optional[Declaration]:
        return self.by_name_node.get((name_node.start_byte, name_node.end_byte))

    def top_level(self, *kinds: DeclKind) -> Iterator[Declaration]:
        for decl in self.declarations:
            if decl.kind in kinds and decl.is_top_level:
                yield decl


HandlerResult = List[Declaration]


class TypeScriptDeclarationCollector:
    """
    Walks a tree-sitter TypeScript tree and records scopes, declarations,
    imports and exports for one source file.
    """

    def __init__(self, source_file: SourceFile) -> None:
        self.file = source_file
        root = source_file.root
        root_scope = Scope(node=root)
        self.info = ModuleInfo(
            file=source_file,
            body=ModuleBody(name=source_file.rel_path, file=source_file, scope=root_scope),
        )
        self.info.scopes[node_key(root)] = root_scope
        self._handlers: dict[
            str, Callable[[ts.Node, Scope, ModuleBody], HandlerResult]
        ] = {
            "statement_block": self._handle_block,
            "import_statement": self._handle_import,
            "import_alias": self._handle_import_alias,
            "export_statement": self._handle_export,
            "function_declaration": self._handle_function,
            "generator_function_declaration": self._handle_function,
            "function_signature": self._handle_function,
            "class_declaration": self._handle_class,
            "abstract_class_declaration": self._handle_class,
            "class": self._handle_class_expression,
            "interface_declaration": self._handle_interface,
            "type_alias_declaration": self._handle_type_alias,
            "enum_declaration": self._handle_enum,
            "lexical_declaration": self._handle_variables,
            "variable_declaration": self._handle_variables,
            "ambient_declaration": self._handle_ambient,
            "module": self._handle_module,
            "internal_module": self._handle_module,
            "arrow_function": self._handle_function_expression,
            "function_expression": self._handle_function_expression,
            "function": self._handle_function_expression,
            "generator_function": self._handle_function_expression,
            "method_definition": self._handle_object_method,
            "catch_clause": self._handle_catch,
            "for_statement": self._handle_loop,
            "for_in_statement": self._handle_loop,
        }

    # --- public --------------------------------------------------------
    def collect(self) -> ModuleInfo:
        body = self.info.body
        for child in self.file.root.named_children:
            self._visit(child, body.scope, body)
        return self.info

    # --- dispatch ------------------------------------------------------
    def _visit(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        handler = self._handlers.get(node.type)
        if handler is None:
            self._visit_children(node, scope, body)
            return []
        try:
            return handler(node, scope, body)
        except Exception as ex:
            logger.warning(
                "TS declaration handler error",
                path=self.file.rel_path,
                node_type=node.type,
                line=node_line(node),
                error=str(ex),
            )
            return []

    def _visit_children(self, node: ts.Node, scope: Scope, body: ModuleBody) -> None:
        for child in node.named_children:
            self._visit(child, scope, body)

    # --- helpers -------------------------------------------------------
    def _new_scope(self, node: ts.Node, parent: Scope) -> Scope:
        scope = Scope(node=node, parent=parent)
        self.info.scopes[node_key(node)] = scope
        return scope

    def _declare(
        self,
        kind: DeclKind,
        name: str,
        node: ts.Node,
        name_node: Optional[ts.Node],
        scope: Optional[Scope],
        container: Optional[Declaration] = None,
        modifiers: Optional[set[str]] = None,
    ) -> Declaration:
        decl = Declaration(
            kind=kind,
            name=name,
            node=node,
            name_node=name_node,
            file=self.file,
            container=container,
            modifiers=modifiers or set(),
        )
        if scope is not None:
            scope.add(decl)
        if name_node is not None:
            self.info.by_name_node[(name_node.start_byte, name_node.end_byte)] = decl
        self.info.declarations.append(decl)
        return decl

    @staticmethod
    def _modifiers(node: ts.Node, stop: Optional[ts.Node] = None) -> set[str]:
        mods: set[str] = set()
        for child in node.children:
            if stop is not None and child.start_byte >= stop.start_byte:
                break
            if child.type == "accessibility_modifier":
                mods.add(get_node_text(child))
            elif child.type == "override_modifier":
                mods.add("override")
            elif child.type in MODIFIER_TOKENS:
                mods.add(child.type)
        return mods

    @staticmethod
    def _member_name(name_node: Optional[ts.Node]) -> Optional[str]:
        if name_node is None:
            return None
        if name_node.type == "string":
            return string_value(name_node)
        return get_node_text(name_node)

    def _bind_pattern(
        self,
        pattern: Optional[ts.Node],
        kind: DeclKind,
        node: ts.Node,
        scope: Scope,
        modifiers: Optional[set[str]] = None,
    ) -> HandlerResult:
        out: HandlerResult = []
        for ident in self._pattern_identifiers(pattern):
            out.append(
                self._declare(kind, get_node_text(ident), node, ident, scope, modifiers=set(modifiers or ()))
            )
        return out

    def _pattern_identifiers(self, pattern: Optional[ts.Node]) -> Iterator[ts.Node]:
        if pattern is None:
            return
        if pattern.type in ("identifier", "shorthand_property_identifier_pattern"):
            yield pattern
        elif pattern.type == "pair_pattern":
            yield from self._pattern_identifiers(pattern.child_by_field_name("value"))
        elif pattern.type in ("assignment_pattern", "object_assignment_pattern"):
            yield from self._pattern_identifiers(pattern.child_by_field_name("left"))
        elif pattern.type in ("object_pattern", "array_pattern", "rest_pattern"):
            for child in pattern.named_children:
                yield from self._pattern_identifiers(child)

    def _bind_type_parameters(self, node: ts.Node, scope: Scope) -> None:
        params = node.child_by_field_name("type_parameters")
        if params is None:
            return
        for tp in params.named_children:
            if tp.type != "type_parameter":
                continue
            name = tp.child_by_field_name("name")
            if name is not None:
                self._declare(DeclKind.TYPE_PARAMETER, get_node_text(name), tp, name, scope)

    def _visit_callable(
        self,
        node: ts.Node,
        scope: Scope,
        body: ModuleBody,
        owner: Optional[Declaration] = None,
    ) -> Scope:
        """Bind type parameters and parameters in a fresh scope, then walk the body."""
        fn_scope = self._new_scope(node, scope)
        self._bind_type_parameters(node, fn_scope)
        params = node.child_by_field_name("parameters")
        if params is not None:
            for param in params.named_children:
                if param.type in ("required_parameter", "optional_parameter"):
                    self._handle_parameter(param, fn_scope, body, owner)
                else:
                    self._visit(param, fn_scope, body)
        single = node.child_by_field_name("parameter")
        if single is not None and single.type == "identifier":
            self._declare(DeclKind.PARAMETER, get_node_text(single), single, single, fn_scope)
        fn_body = node.child_by_field_name("body")
        if fn_body is not None:
            if fn_body.type == "statement_block":
                for child in fn_body.named_children:
                    self._visit(child, fn_scope, body)
            else:
                self._visit(fn_body, fn_scope, body)
        return fn_scope

    def _handle_parameter(
        self,
        param: ts.Node,
        scope: Scope,
        body: ModuleBody,
        owner: Optional[Declaration],
    ) -> None:
        pattern = param.child_by_field_name("pattern")
        decls = self._bind_pattern(pattern, DeclKind.PARAMETER, param, scope)
        mods = self._modifiers(param, stop=pattern)
        # constructor parameter properties are class members too
        if (
            owner is not None
            and owner.kind == DeclKind.CONSTRUCTOR
            and owner.container is not None
            and mods & {"public", "private", "protected", "readonly", "override"}
            and decls
        ):
            prop = self._declare(
                DeclKind.PROPERTY,
                decls[0].name,
                param,
                None,
                None,
                container=owner.container,
                modifiers=mods,
            )
            owner.container.members.append(prop)
        value = param.child_by_field_name("value")
        if value is not None:
            self._visit(value, scope, body)

    # --- handlers ------------------------------------------------------
    def _handle_block(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        block_scope = self._new_scope(node, scope)
        self._visit_children(node, block_scope, body)
        return []

    def _handle_loop(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        loop_scope = self._new_scope(node, scope)
        if node.type == "for_in_statement" and node.child_by_field_name("kind") is not None:
            kind_text = get_node_text(node.child_by_field_name("kind"))
            self._bind_pattern(
                node.child_by_field_name("left"),
                DeclKind.VARIABLE,
                node,
                loop_scope,
                modifiers={"const"} if kind_text == "const" else set(),
            )
            for fname in ("right", "body"):
                child = node.child_by_field_name(fname)
                if child is not None:
                    self._visit(child, loop_scope, body)
            return []
        self._visit_children(node, loop_scope, body)
        return []

    def _handle_catch(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        catch_scope = self._new_scope(node, scope)
        self._bind_pattern(node.child_by_field_name("parameter"), DeclKind.VARIABLE, node, catch_scope)
        block = node.child_by_field_name("body")
        if block is not None:
            for child in block.named_children:
                self._visit(child, catch_scope, body)
        return []

    def _handle_import(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        source = string_value(node.child_by_field_name("source"))
        type_only = any(c.type == "type" for c in node.children)
        out: HandlerResult = []

        def _bind(binding: ImportBinding) -> None:
            decl = self._declare(DeclKind.IMPORT, binding.local, binding.node, binding.name_node, scope)
            decl.import_binding = binding
            self.info.imports.append(binding)
            out.append(decl)

        for child in node.named_children:
            if child.type == "import_clause":
                for part in child.named_children:
                    if part.type == "identifier":
                        _bind(
                            ImportBinding(
                                local=get_node_text(part),
                                imported="default",
                                specifier=source,
                                node=child,
                                name_node=part,
                                statement=node,
                                type_only=type_only,
                            )
                        )
                    elif part.type == "namespace_import":
                        ident = next((c for c in part.named_children if c.type == "identifier"), None)
                        if ident is not None:
                            _bind(
                                ImportBinding(
                                    local=get_node_text(ident),
                                    imported="*",
                                    specifier=source,
                                    node=part,
                                    name_node=ident,
                                    statement=node,
                                    type_only=type_only,
                                )
                            )
                    elif part.type == "named_imports":
                        for spec in part.named_children:
                            if spec.type != "import_specifier":
                                continue
                            name = spec.child_by_field_name("name")
                            alias = spec.child_by_field_name("alias")
                            if name is None:
                                continue
                            imported = self._member_name(name)
                            local_node = alias or name
                            _bind(
                                ImportBinding(
                                    local=get_node_text(local_node),
                                    imported=imported,
                                    specifier=source,
                                    node=spec,
                                    name_node=local_node,
                                    statement=node,
                                    imported_node=name,
                                    type_only=type_only or any(c.type == "type" for c in spec.children),
                                )
                            )
            elif child.type == "import_require_clause":
                ident = next((c for c in child.named_children if c.type == "identifier"), None)
                req_source = string_value(child.child_by_field_name("source")) or source
                if ident is not None:
                    _bind(
                        ImportBinding(
                            local=get_node_text(ident),
                            imported="*",
                            specifier=req_source,
                            node=child,
                            name_node=ident,
                            statement=node,
                        )
                    )
        return out

    def _handle_import_alias(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        named = node.named_children
        if len(named) < 2:
            return []
        ident, target = named[0], named[-1]
        binding = ImportBinding(
            local=get_node_text(ident),
            imported=None,
            specifier=None,
            node=node,
            name_node=ident,
            statement=node,
            entity=get_node_text(target),
        )
        decl = self._declare(DeclKind.IMPORT, binding.local, node, ident, scope)
        decl.import_binding = binding
        self.info.imports.append(binding)
        return [decl]

    def _handle_export(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        source = string_value(node.child_by_field_name("source"))
        is_default = any(c.type == "default" for c in node.children)
        type_only = any(c.type == "type" for c in node.children)

        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            decls = self._visit(declaration, scope, body)
            for decl in decls:
                decl.exported = True
                if is_default:
                    decl.default_export = True
                    body.add_export(
                        ExportEntry(name="default", node=node, local=decl.name, declarations=[decl])
                    )
                else:
                    body.add_export(
                        ExportEntry(name=decl.name, node=decl.node, local=decl.name, declarations=[decl])
                    )
            return decls

        value = node.child_by_field_name("value")
        if value is not None and is_default:
            if value.type == "identifier":
                body.add_export(
                    ExportEntry(name="default", node=node, local=get_node_text(value), local_node=value)
                )
            else:
                decls = self._visit(value, scope, body)
                for decl in decls:
                    decl.exported = True
                    decl.default_export = True
                body.add_export(ExportEntry(name="default", node=node, declarations=decls))
            return []

        has_clause = False
        for child in node.named_children:
            if child.type == "export_clause":
                has_clause = True
                for spec in child.named_children:
                    if spec.type != "export_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    orig = self._member_name(name)
                    exported = self._member_name(alias) if alias is not None else orig
                    spec_type_only = type_only or any(c.type == "type" for c in spec.children)
                    if source is not None:
                        body.add_export(
                            ExportEntry(
                                name=exported,
                                node=spec,
                                source=source,
                                imported=orig,
                                type_only=spec_type_only,
                                name_node=alias or name,
                                local_node=name,
                            )
                        )
                    else:
                        body.add_export(
                            ExportEntry(
                                name=exported,
                                node=spec,
                                local=orig,
                                type_only=spec_type_only,
                                name_node=alias or name,
                                local_node=name,
                            )
                        )
            elif child.type == "namespace_export":
                has_clause = True
                ident = child.named_children[-1] if child.named_children else None
                if ident is not None and source is not None:
                    body.add_export(
                        ExportEntry(
                            name=self._member_name(ident),
                            node=child,
                            source=source,
                            imported="*",
                            name_node=ident,
                        )
                    )
        if not has_clause and source is not None and any(c.type == "*" for c in node.children):
            body.export_stars.append((source, node))
            return []
        if not has_clause and any(c.type == "=" for c in node.children):
            target = node.named_children[-1] if node.named_children else None
            if target is not None and target.type == "identifier":
                body.add_export(
                    ExportEntry(name="=", node=node, local=get_node_text(target), local_node=target)
                )
            elif target is not None:
                self._visit(target, scope, body)
        return []

    def _handle_function(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        name = get_node_text(name_node) if name_node is not None else "default"
        mods = self._modifiers(node, stop=name_node)
        if node.type == "generator_function_declaration":
            mods.add("generator")
        decl = self._declare(DeclKind.FUNCTION, name, node, name_node, scope, modifiers=mods)
        self._visit_callable(node, scope, body, owner=decl)
        return [decl]

    def _handle_function_expression(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        fn_scope = self._visit_callable(node, scope, body)
        name_node = node.child_by_field_name("name")
        if name_node is not None and node.type != "arrow_function":
            # a named function expression sees its own name
            self._declare(DeclKind.VARIABLE, get_node_text(name_node), node, name_node, fn_scope)
        return []

    def _handle_object_method(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        self._visit_callable(node, scope, body)
        return []

    def _handle_class(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        name = get_node_text(name_node) if name_node is not None else "default"
        mods = self._modifiers(node, stop=name_node)
        if node.type == "abstract_class_declaration":
            mods.add("abstract")
        decl = self._declare(DeclKind.CLASS, name, node, name_node, scope, modifiers=mods)
        self._collect_class_body(node, decl, scope, body)
        return [decl]

    def _handle_class_expression(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        name = get_node_text(name_node) if name_node is not None else "default"
        decl = self._declare(DeclKind.CLASS, name, node, name_node, None)
        self._collect_class_body(node, decl, scope, body)
        return [decl]

    def _collect_class_body(
        self,
        node: ts.Node,
        decl: Declaration,
        scope: Scope,
        body: ModuleBody,
    ) -> None:
        class_scope = self._new_scope(node, scope)
        self._bind_type_parameters(node, class_scope)
        for child in node.named_children:
            if child.type in ("class_heritage", "decorator"):
                self._visit_children(child, class_scope, body)
        class_body = node.child_by_field_name("body")
        if class_body is None:
            return
        for member in class_body.named_children:
            t = member.type
            if t in ("method_definition", "method_signature", "abstract_method_signature"):
                name_node = member.child_by_field_name("name")
                name = self._member_name(name_node) or ""
                mods = self._modifiers(member, stop=name_node)
                if t == "abstract_method_signature":
                    mods.add("abstract")
                tokens = {c.type for c in member.children if name_node is None or c.start_byte < name_node.start_byte}
                if name == "constructor":
                    kind = DeclKind.CONSTRUCTOR
                elif "get" in tokens:
                    kind = DeclKind.GETTER
                elif "set" in tokens:
                    kind = DeclKind.SETTER
                else:
                    kind = DeclKind.METHOD
                m = self._declare(kind, name, member, name_node, None, container=decl, modifiers=mods)
                decl.members.append(m)
                self._visit_callable(member, class_scope, body, owner=m)
            elif t == "public_field_definition":
                name_node = member.child_by_field_name("name")
                mods = self._modifiers(member, stop=name_node)
                m = self._declare(
                    DeclKind.PROPERTY,
                    self._member_name(name_node) or "",
                    member,
                    name_node,
                    None,
                    container=decl,
                    modifiers=mods,
                )
                decl.members.append(m)
                value = member.child_by_field_name("value")
                if value is not None:
                    self._visit(value, class_scope, body)
            elif t == "index_signature":
                decl.signatures.append(member)
            else:
                self._visit(member, class_scope, body)

    def _handle_interface(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        decl = self._declare(
            DeclKind.INTERFACE,
            get_node_text(name_node),
            node,
            name_node,
            scope,
            modifiers=self._modifiers(node, stop=name_node),
        )
        iface_scope = self._new_scope(node, scope)
        self._bind_type_parameters(node, iface_scope)
        iface_body = node.child_by_field_name("body")
        if iface_body is None:
            return [decl]
        for member in iface_body.named_children:
            t = member.type
            if t in ("property_signature", "method_signature"):
                name_node = member.child_by_field_name("name")
                kind = DeclKind.PROPERTY if t == "property_signature" else DeclKind.METHOD
                m = self._declare(
                    kind,
                    self._member_name(name_node) or "",
                    member,
                    name_node,
                    None,
                    container=decl,
                    modifiers=self._modifiers(member, stop=name_node),
                )
                decl.members.append(m)
                if t == "method_signature":
                    sig_scope = self._new_scope(member, iface_scope)
                    self._bind_type_parameters(member, sig_scope)
            elif t in ("call_signature", "construct_signature", "index_signature"):
                decl.signatures.append(member)
        return [decl]

    def _handle_type_alias(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        decl = self._declare(DeclKind.TYPE, get_node_text(name_node), node, name_node, scope)
        alias_scope = self._new_scope(node, scope)
        self._bind_type_parameters(node, alias_scope)
        return [decl]

    def _handle_enum(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        mods = self._modifiers(node, stop=name_node)
        if any(c.type == "const" for c in node.children):
            mods.add("const")
        decl = self._declare(DeclKind.ENUM, get_node_text(name_node), node, name_node, scope, modifiers=mods)
        enum_body = node.child_by_field_name("body")
        if enum_body is None:
            return [decl]
        for member in enum_body.named_children:
            if member.type == "enum_assignment":
                m_name = member.child_by_field_name("name")
            elif member.type in ("property_identifier", "string", "identifier"):
                m_name = member
            else:
                continue
            m = self._declare(
                DeclKind.ENUM_MEMBER,
                self._member_name(m_name) or "",
                member,
                m_name,
                None,
                container=decl,
            )
            decl.members.append(m)
        return [decl]

    def _handle_variables(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        first = node.children[0] if node.children else None
        mods = {"const"} if first is not None and first.type == "const" else set()
        out: HandlerResult = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            out.extend(
                self._bind_pattern(
                    declarator.child_by_field_name("name"),
                    DeclKind.VARIABLE,
                    declarator,
                    scope,
                    modifiers=mods,
                )
            )
            value = declarator.child_by_field_name("value")
            if value is not None:
                self._visit(value, scope, body)
        return out

    def _handle_ambient(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        out: HandlerResult = []
        for child in node.named_children:
            if child.type == "statement_block":
                # declare global { ... } augments the file scope
                for stmt in child.named_children:
                    self._visit(stmt, self.info.body.scope, self.info.body)
                continue
            decls = self._visit(child, scope, body)
            for decl in decls:
                decl.modifiers.add("declare")
            out.extend(decls)
        return out

    def _handle_module(self, node: ts.Node, scope: Scope, body: ModuleBody) -> HandlerResult:
        name_node = node.child_by_field_name("name")
        block = node.child_by_field_name("body")
        if name_node is None:
            return []
        if name_node.type == "string":
            spec = string_value(name_node) or ""
            mod_scope = self._new_scope(node, scope)
            ambient = ModuleBody(name=spec, file=self.file, scope=mod_scope, ambient=True)
            self.info.ambient_modules.setdefault(spec, []).append(ambient)
            if block is not None:
                self._collect_module_block(block, ambient)
            return []

        # namespace A.B.C { } is sugar for nested namespaces
        parts = [p for p in get_node_text(name_node).split(".") if p]
        ident_nodes = [n for n in self._iter_identifiers(name_node)]
        outer_decl: Optional[Declaration] = None
        cur_scope, cur_body = scope, body
        ambient = body.ambient or (node.parent is not None and node.parent.type == "ambient_declaration")
        for i, part in enumerate(parts):
            ident = ident_nodes[i] if i < len(ident_nodes) else None
            decl = self._declare(DeclKind.NAMESPACE, part, node, ident, cur_scope)
            ns_scope = Scope(node=node, parent=cur_scope)
            decl.body = ModuleBody(name=part, file=self.file, scope=ns_scope, ambient=ambient)
            if i > 0:
                decl.exported = True
                cur_body.add_export(ExportEntry(name=part, node=node, local=part, declarations=[decl]))
            if outer_decl is None:
                outer_decl = decl
            cur_scope, cur_body = ns_scope, decl.body
        self.info.scopes[node_key(node)] = cur_scope
        if block is not None:
            self._collect_module_block(block, cur_body)
        return [outer_decl] if outer_decl is not None else []

    def _iter_identifiers(self, node: ts.Node) -> Iterator[ts.Node]:
        if node.type == "identifier":
            yield node
            return
        for child in node.named_children:
            yield from self._iter_identifiers(child)

    def _collect_module_block(self, block: ts.Node, mod_body: ModuleBody) -> None:
        self.info.scopes[node_key(block)] = mod_body.scope
        for stmt in block.named_children:
            decls = self._visit(stmt, mod_body.scope, mod_body)
            if mod_body.ambient and stmt.type != "export_statement":
                # members of ambient modules and namespaces are implicitly exported
                for decl in decls:
                    if decl.kind == DeclKind.IMPORT:
                        continue
                    decl.exported = True
                    mod_body.add_export(
                        ExportEntry(name=decl.name, node=decl.node, local=decl.name, declarations=[decl])
                    )


def collect_module_info(source_file: SourceFile) -> ModuleInfo:
    return TypeScriptDeclarationCollector(source_file).collect()

from typing import Dict, List, Optional

import tree_sitter as ts

from tstrace.analysis.common import symbol_ref
from tstrace.lang.typescript import Declaration, ModuleBody
from tstrace.models import AliasChain, AliasEntry, AliasGraph, AliasHop, AliasKind, SymbolRef
from tstrace.parsers import SourceFile, find_ancestor, get_node_text, node_line
from tstrace.project import ProjectIndex

RENAME_KINDS = (
    AliasKind.IMPORT_RENAME,
    AliasKind.EXPORT_RENAME,
    AliasKind.DEFAULT_AS_NAMED,
    AliasKind.TYPE_ONLY,
)


def _has_type_keyword(node: Optional[ts.Node]) -> bool:
    return node is not None and any(c.type == "type" for c in node.children)


class AliasResolver:
    """
    Alias graph of a declaration: renamed imports and exports, namespace
    imports and `import X = NS.Y` aliases, plus the rename chains that lead
    away from the canonical name.
    """

    def __init__(self, index: ProjectIndex) -> None:
        self.index = index
        self.checker = index.checker

    def resolve(self, decl: Declaration) -> AliasGraph:
        canonical = symbol_ref(decl)
        target_ids = {id(d) for d in self.checker.symbol_for_declaration(decl).declarations}
        aliases: List[AliasEntry] = []

        for ref in self.checker.find_references(decl):
            if ref.file.is_declaration_file or ref.file.is_external:
                continue
            if ref.file is decl.file and ref.line == decl.line:
                continue
            entry = self._classify(ref.node, decl.name, ref.file)
            if entry is not None:
                aliases.append(entry)

        for sf in self.index.source_files:
            if not sf.is_user_file:
                continue
            self._namespace_aliases(sf, decl, target_ids, aliases)

        aliases = self._dedupe(aliases)
        return AliasGraph(canonical=canonical, aliases=aliases, chains=self.chains(aliases, canonical))

    # --- specifiers ------------------------------------------------------
    def _classify(self, node: ts.Node, original: str, sf: SourceFile) -> Optional[AliasEntry]:
        parent = node.parent
        if parent is None:
            return None
        if parent.type == "import_specifier":
            return self._import_specifier(parent, original, sf)
        if parent.type == "export_specifier":
            return self._export_specifier(parent, original, sf)
        import_alias = find_ancestor(node, ("import_alias",))
        if import_alias is not None and import_alias.named_children:
            alias_name = get_node_text(import_alias.named_children[0])
            if alias_name != original:
                return AliasEntry(
                    name=alias_name,
                    file_path=sf.rel_path,
                    line=node_line(import_alias),
                    kind=AliasKind.NAMESPACE_ALIAS,
                    original_name=original,
                )
        return None

    def _import_specifier(self, spec: ts.Node, original: str, sf: SourceFile) -> Optional[AliasEntry]:
        alias = spec.child_by_field_name("alias")
        if alias is None:
            return None
        alias_name = get_node_text(alias)
        if alias_name == original:
            return None
        imported = get_node_text(spec.child_by_field_name("name"))
        statement = find_ancestor(spec, ("import_statement",))
        if _has_type_keyword(statement) or _has_type_keyword(spec):
            kind = AliasKind.TYPE_ONLY
        elif imported == "default":
            kind = AliasKind.DEFAULT_AS_NAMED
        else:
            kind = AliasKind.IMPORT_RENAME
        return AliasEntry(
            name=alias_name,
            file_path=sf.rel_path,
            line=node_line(spec),
            kind=kind,
            original_name=original if imported == "default" else imported,
        )

    def _export_specifier(self, spec: ts.Node, original: str, sf: SourceFile) -> Optional[AliasEntry]:
        alias = spec.child_by_field_name("alias")
        if alias is None:
            return None
        local = get_node_text(spec.child_by_field_name("name"))
        alias_name = get_node_text(alias)
        if alias_name == local:
            return None
        statement = find_ancestor(spec, ("export_statement",))
        if _has_type_keyword(statement) or _has_type_keyword(spec):
            kind = AliasKind.TYPE_ONLY
        elif local == "default":
            kind = AliasKind.DEFAULT_AS_NAMED
        else:
            kind = AliasKind.EXPORT_RENAME
        return AliasEntry(
            name=alias_name,
            file_path=sf.rel_path,
            line=node_line(spec),
            kind=kind,
            original_name=original if local == "default" else local,
        )

    # --- namespaces ------------------------------------------------------
    def _exposes(self, body: Optional[ModuleBody], decl: Declaration, target_ids: set[int]) -> bool:
        if body is None:
            return False
        if body.file is decl.file and body is self.index.module_info(decl.file).body:
            return True
        sym = self.checker.get_export(body, decl.name)
        if sym is None:
            return False
        sym = self.checker.resolve_alias_chain(sym)
        return any(id(d) in target_ids for d in sym.declarations)

    def _namespace_aliases(
        self,
        sf: SourceFile,
        decl: Declaration,
        target_ids: set[int],
        out: List[AliasEntry],
    ) -> None:
        info = self.index.module_info(sf)
        for binding in info.imports:
            if binding.imported != "*" or binding.specifier is None:
                continue
            body = self.checker.module_for_specifier(binding.specifier, sf)
            if self._exposes(body, decl, target_ids):
                out.append(
                    AliasEntry(
                        name=binding.local,
                        file_path=sf.rel_path,
                        line=node_line(binding.statement),
                        kind=AliasKind.NAMESPACE,
                        original_name=decl.name,
                    )
                )
        for entries in info.body.exports.values():
            for entry in entries:
                if entry.imported != "*" or entry.source is None:
                    continue
                body = self.checker.module_for_specifier(entry.source, sf)
                if self._exposes(body, decl, target_ids):
                    statement = entry.node.parent if entry.node.parent is not None else entry.node
                    out.append(
                        AliasEntry(
                            name=entry.name,
                            file_path=sf.rel_path,
                            line=node_line(statement),
                            kind=AliasKind.NAMESPACE,
                            original_name=decl.name,
                        )
                    )

    @staticmethod
    def _dedupe(aliases: List[AliasEntry]) -> List[AliasEntry]:
        seen: set[tuple] = set()
        out: List[AliasEntry] = []
        for a in aliases:
            key = (a.name, a.file_path, a.line, a.kind)
            if key not in seen:
                seen.add(key)
                out.append(a)
        out.sort(key=lambda a: (a.file_path, a.line, a.name))
        return out

    # --- chains ----------------------------------------------------------
    @staticmethod
    def chains(aliases: List[AliasEntry], canonical: SymbolRef) -> List[AliasChain]:
        """Rename chains that start at the canonical name, e.g. A -> B -> C."""
        adjacency: Dict[str, List[AliasEntry]] = {}
        for a in aliases:
            if a.kind in RENAME_KINDS:
                adjacency.setdefault(a.original_name, []).append(a)

        visited: set[tuple] = set()

        def _walk(entry: AliasEntry) -> List[AliasHop]:
            key = (entry.name, entry.file_path, entry.line)
            if key in visited:
                return []
            visited.add(key)
            hop = AliasHop(name=entry.name, file_path=entry.file_path, line=entry.line)
            for nxt in adjacency.get(entry.name, []):
                if (nxt.name, nxt.file_path, nxt.line) not in visited:
                    return [hop, *_walk(nxt)]
            return [hop]

        out: List[AliasChain] = []
        for root in adjacency.get(canonical.name, []):
            hops = _walk(root)
            if len(hops) > 1:
                start = AliasHop(name=canonical.name, file_path=canonical.file_path, line=canonical.line)
                out.append(AliasChain(hops=[start, *hops]))
        return out


def resolve_aliases(index: ProjectIndex, decl: Declaration) -> AliasGraph:
    return AliasResolver(index).resolve(decl)

from typing import Callable, Dict, List, Optional

import tree_sitter as ts

from tstrace.checker import Reference
from tstrace.helpers import Deadline, is_test_file, truncate
from tstrace.lang.typescript import Declaration, ModuleBody
from tstrace.logger import logger
from tstrace.models import (
    FileReference,
    PartialReason,
    ReExportInfo,
    ReferenceFileSummary,
    ReferenceInfo,
    ReferenceKind,
    References,
)
from tstrace.parsers import SourceFile, get_node_text, node_line
from tstrace.project import ProjectIndex

IMPORT_PARENTS = ("import_specifier", "import_clause", "namespace_import", "import_require_clause", "import_alias")
_TYPE_CONTEXTS = (
    "type_annotation",
    "type_query",
    "class_heritage",
    "extends_type_clause",
    "implements_clause",
    "type_arguments",
    "type_alias_declaration",
    "constraint",
    "default_type",
)
_STATEMENT_BOUNDARIES = (
    "statement_block",
    "program",
    "class_body",
    "expression_statement",
    "lexical_declaration",
    "variable_declaration",
    "arguments",
)
WRITE_OPERATORS = {
    "=", "+=", "-=", "*=", "/=", "%=", "<<=", ">>=", ">>>=",
    "&=", "|=", "^=", "**=", "&&=", "||=", "??=",
}


def is_call_target(node: ts.Node) -> bool:
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "member_expression" and parent.child_by_field_name("property") == node:
        node, parent = parent, parent.parent
        if parent is None:
            return False
    if parent.type == "call_expression":
        return parent.child_by_field_name("function") == node
    if parent.type == "new_expression":
        return parent.child_by_field_name("constructor") == node
    return False


def _is_type_position(node: ts.Node) -> bool:
    if node.type == "type_identifier":
        return True
    cur = node.parent
    while cur is not None and cur.type not in _STATEMENT_BOUNDARIES:
        if cur.type in _TYPE_CONTEXTS:
            return True
        if cur.type == "nested_type_identifier":
            return True
        cur = cur.parent
    return False


def _is_write(node: ts.Node, is_declaration_name: bool) -> bool:
    if is_declaration_name:
        return True
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "pair" and parent.child_by_field_name("key") == node:
        return True
    target = node
    if parent.type == "member_expression" and parent.child_by_field_name("property") == node:
        target, parent = parent, parent.parent
        if parent is None:
            return False
    if parent.type in ("assignment_expression", "augmented_assignment_expression"):
        op = parent.child_by_field_name("operator")
        op_text = get_node_text(op) if op is not None else "="
        return parent.child_by_field_name("left") == target and op_text in WRITE_OPERATORS
    return False


def classify_reference(node: ts.Node, is_declaration_name: bool = False) -> ReferenceKind:
    """Usage kind of one reference, first match wins."""
    parent = node.parent
    if parent is not None and parent.type in IMPORT_PARENTS:
        return ReferenceKind.IMPORT
    if is_call_target(node):
        return ReferenceKind.CALL
    if _is_type_position(node):
        return ReferenceKind.TYPE_REF
    if _is_write(node, is_declaration_name):
        return ReferenceKind.WRITE
    return ReferenceKind.READ


class ReferenceResolver:
    """Project-wide usages of a declaration, excluding its own site."""

    def __init__(
        self,
        index: ProjectIndex,
        deadline: Optional[Deadline] = None,
        is_ignored: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self.index = index
        self.checker = index.checker
        self.deadline = deadline
        self.is_ignored = is_ignored
        self.partial = False

    def find(self, decl: Declaration) -> List[Reference]:
        out: List[Reference] = []
        own_line = decl.name_node.start_point[0] + 1 if decl.name_node is not None else decl.line
        for ref in self.checker.find_references(decl, self.deadline):
            if not ref.file.is_user_file:
                continue
            if self.is_ignored is not None and self.is_ignored(ref.file.path):
                continue
            if ref.file is decl.file and ref.line in (own_line, decl.line):
                continue
            out.append(ref)
        if self.deadline is not None and self.deadline.expired:
            self.partial = True
        return out

    def summarize(self, refs: List[Reference]) -> References:
        by_file: Dict[str, set[int]] = {}
        for ref in refs:
            by_file.setdefault(ref.file.rel_path, set()).add(ref.line)
        files = [FileReference(file_path=path, lines=sorted(lines)) for path, lines in by_file.items()]
        return References(
            total_count=sum(len(f.lines) for f in files),
            file_count=len(files),
            files=files,
        )

    def resolve(self, decl: Declaration) -> References:
        result = self.summarize(self.find(decl))
        if self.partial:
            result.partial = True
            result.partial_reason = PartialReason.TIMEOUT
        return result

    def describe(self, refs: List[Reference]) -> List[ReferenceInfo]:
        infos: List[ReferenceInfo] = []
        for ref in refs:
            info = self.index.module_info(ref.file)
            own = info.declaration_at(ref.node) is not None
            infos.append(
                ReferenceInfo(
                    file=ref.file.rel_path,
                    line=ref.line,
                    column=ref.column,
                    kind=classify_reference(ref.node, own),
                    context=truncate(ref.file.line_text(ref.line).strip()),
                )
            )
        return infos

    @staticmethod
    def file_summaries(infos: List[ReferenceInfo]) -> List[ReferenceFileSummary]:
        grouped: Dict[str, ReferenceFileSummary] = {}
        for info in infos:
            summary = grouped.get(info.file)
            if summary is None:
                summary = grouped[info.file] = ReferenceFileSummary(
                    file=info.file, is_test_file=is_test_file(info.file)
                )
            if info.kind not in summary.kinds:
                summary.kinds.append(info.kind)
            summary.count += 1
        return list(grouped.values())

    def re_exports(self, decl: Declaration) -> List[ReExportInfo]:
        """
        Named, aliased and star re-exports that surface `decl` from another
        module, including barrels that re-export the defining file indirectly.
        """
        target_ids = {id(d) for d in self.checker.symbol_for_declaration(decl).declarations}
        out: List[ReExportInfo] = []
        seen: set[str] = set()

        def _add(sf: SourceFile, exported_as: str, spec: str, node: ts.Node, original: str) -> None:
            key = f"{sf.rel_path}:{original}:{exported_as}"
            if key in seen:
                return
            seen.add(key)
            out.append(
                ReExportInfo(
                    exported_as=exported_as,
                    file=sf.rel_path,
                    from_=spec,
                    line=node_line(node),
                    original_name=original,
                )
            )

        def _resolves(body: Optional[ModuleBody], name: str) -> bool:
            if body is None:
                return False
            sym = self.checker.get_export(body, name)
            if sym is None:
                return False
            sym = self.checker.resolve_alias_chain(sym)
            return any(id(d) in target_ids for d in sym.declarations)

        for sf in self.index.source_files:
            if self.deadline is not None and self.deadline.expired:
                logger.warning("Re-export scan timed out", symbol=decl.name)
                break
            if not sf.is_user_file:
                continue
            body = self.index.module_info(sf).body
            for entries in body.exports.values():
                for entry in entries:
                    if entry.source is None or entry.imported in (None, "*"):
                        continue
                    if decl.name not in (entry.imported, entry.name):
                        continue
                    target = self.checker.module_for_specifier(entry.source, sf)
                    if target is None or _resolves(target, entry.imported):
                        _add(sf, entry.name, entry.source, entry.node, entry.imported)
            for spec, stmt in body.export_stars:
                target = self.checker.module_for_specifier(spec, sf)
                if _resolves(target, decl.name):
                    _add(sf, decl.name, spec, stmt, decl.name)
        return out


def find_references(index: ProjectIndex, decl: Declaration, deadline: Optional[Deadline] = None) -> References:
    return ReferenceResolver(index, deadline=deadline).resolve(decl)


import os
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tstrace.analysis.calls import CallGraphResolver
from tstrace.analysis.common import CALLABLE_KINDS, enclosing_callable, enclosing_declaration
from tstrace.analysis.dead_code import DeadCodeDetector
from tstrace.analysis.hierarchy import TypeHierarchyResolver
from tstrace.analysis.references import IMPORT_PARENTS, ReferenceResolver, is_call_target
from tstrace.analysis.type_flows import TypeFlowResolver
from tstrace.checker import Reference
from tstrace.errors import NoMatchingFilesError, NoProjectError, NotATypeError, NotCallableError, SymbolNotFoundError
from tstrace.helpers import Deadline, normalize_path
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.locator import SymbolLocator
from tstrace.logger import logger
from tstrace.models import (
    CallHierarchy,
    DeadCodeResult,
    DeadCodeSummary,
    DefinitionInfo,
    ImpactDependent,
    ImpactInfo,
    ImpactSummary,
    NotFoundReason,
    PartialReason,
    RiskLevel,
    TraceSummary,
    TraceSymbolResult,
)
from tstrace.parsers import get_node_text
from tstrace.project import ProjectIndex, find_nearest_project_root, get_project_index
from tstrace.settings import ProjectSettings

SIGNATURE_LIMIT = 200
MAX_TIMEOUT_MS = 300_000
DIAGNOSTIC_THRESHOLD = 5
TRANSITIVE_LIMIT = 50

INCLUDE_SECTIONS = ("all", "definitions", "references", "reexports", "calls", "type-flows", "hierarchy")


class TraceSymbolParams(BaseModel):
    """Request for a full symbol trace. Unset fields fall back to `TraceSettings`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    root_dir: Optional[str] = Field(default=None, description="Project or workspace root.")
    symbol: str = Field(description="Name of the symbol to trace.")
    file: Optional[str] = Field(default=None, description="File containing the symbol, relative to root_dir.")
    line: Optional[int] = Field(default=None, description="1-indexed line hint inside `file`.")
    column: Optional[int] = Field(default=None, description="1-indexed column hint inside `file`.")
    depth: Optional[int] = Field(default=None, description="Call hierarchy depth, -1 for unlimited.")
    include: Optional[List[str]] = Field(default=None, description="Sections to compute.")
    max_references: Optional[int] = Field(default=None, description="Cap on returned references.")
    timeout_ms: Optional[int] = Field(default=None, description="Requested wall-clock budget.")
    force_refresh: bool = Field(default=False, description="Rebuild the cached project index first.")
    include_patterns: Optional[List[str]] = Field(default=None, description="Only analyze matching files.")
    exclude_patterns: Optional[List[str]] = Field(default=None, description="Skip matching files.")
    include_impact: Optional[bool] = Field(default=None, description="Add blast-radius analysis.")


class DeadCodeParams(BaseModel):
    """Request for a dead code scan. Unset fields fall back to `DeadCodeSettings`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    root_dir: Optional[str] = Field(default=None, description="Project or workspace root.")
    exported_only: Optional[bool] = None
    exclude_tests: Optional[bool] = None
    limit: Optional[int] = None
    kinds: Optional[List[str]] = None
    timeout_ms: Optional[int] = None
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def effective_timeout(user_ms: int, file_count: int, max_references: int, depth: int) -> int:
    """Requested budget, raised to a floor scaled by project size and query cost."""
    scaled = 5000 + file_count * 12 + depth * 500 + min(max_references / 100, 10) * 500
    return int(max(user_ms, min(scaled, MAX_TIMEOUT_MS)))


def shorten_signature(text: str, limit: int = SIGNATURE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    brace = text.find("{")
    if brace > 0:
        return f"{text[:brace].strip()} {{ ... }}"
    return f"{text[:limit]}…"


def risk_level(total: int, direct_files: int) -> RiskLevel:
    if total > 20 or direct_files > 5:
        return RiskLevel.HIGH
    if total > 5 or direct_files > 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def symbol_not_found_message(params: TraceSymbolParams, file_count: int) -> str:
    parts = [f"Symbol '{params.symbol}' not found in project ({file_count} files scanned)."]
    if params.file:
        where = f"Searched in file: {params.file}"
        if params.line is not None:
            column = f":{params.column}" if params.column is not None else ""
            where += f" at line {params.line}{column}"
        parts.append(f"{where}. Verify the file is included in tsconfig.json.")
    else:
        parts.append("Try specifying a file path to narrow the search, or check if the symbol is exported.")
    return " ".join(parts)


def error_message(ex: Exception, params: TraceSymbolParams) -> str:
    text = str(ex)
    if isinstance(ex, (FileNotFoundError, ModuleNotFoundError)):
        return f"File not found. Ensure the file exists and is accessible: {params.file or params.root_dir}"
    if "tsconfig" in text or "Cannot parse" in text:
        return f"TypeScript configuration error. Check tsconfig.json for syntax errors: {text}"
    if isinstance(ex, (MemoryError, RecursionError)):
        return "Memory limit exceeded. Try reducing maxReferences or narrowing the search with a file hint."
    if isinstance(ex, TimeoutError) or "timeout" in text.lower():
        return "Operation timed out. The project may be too large. Try increasing timeout or using forceRefresh=false."
    return f"Unexpected error while tracing '{params.symbol}': {text}"


def definition_info(decl: Declaration, unresolved: bool = False) -> DefinitionInfo:
    node = decl.name_node if decl.name_node is not None else decl.node
    return DefinitionInfo(
        file=decl.rel_path,
        line=decl.line,
        column=node.start_point[1] + 1,
        kind=decl.kind.value,
        signature=shorten_signature(decl.file.source[decl.node.start_byte:decl.node.end_byte].decode("utf-8", "replace")),
        unresolved=True if unresolved else None,
    )


class ImpactAnalyzer:
    """Direct and transitive dependents of a declaration with a coarse risk level."""

    def __init__(self, index: ProjectIndex, is_ignored: Optional[Callable[[str], bool]] = None) -> None:
        self.index = index
        self.checker = index.checker
        self.is_ignored = is_ignored

    def _ignored(self, ref: Reference) -> bool:
        return self.is_ignored is not None and self.is_ignored(ref.file.path)

    def analyze(self, refs: List[Reference], depth: int) -> ImpactInfo:
        visited: set[str] = set()
        direct: List[ImpactDependent] = []
        dependents: List[Optional[Declaration]] = []
        for ref in refs:
            if self._ignored(ref):
                continue
            key = f"{ref.file.rel_path}:{ref.line}"
            if key in visited:
                continue
            visited.add(key)
            symbol, kind, owner = self._container(ref)
            direct.append(ImpactDependent(symbol=symbol, kind=kind, file=ref.file.rel_path, line=ref.line))
            dependents.append(owner)

        transitive: List[ImpactDependent] = []
        if (depth > 1 or depth < 0) and len(direct) < TRANSITIVE_LIMIT:
            for owner in dependents:
                if owner is None or owner.kind not in (DeclKind.FUNCTION, DeclKind.METHOD):
                    continue
                for ref in self.checker.find_references(owner):
                    if self._ignored(ref) or not is_call_target(ref.node):
                        continue
                    key = f"{ref.file.rel_path}:{ref.line}"
                    if key in visited:
                        continue
                    visited.add(key)
                    caller = enclosing_callable(ref.node, ref.file, self.index)
                    transitive.append(
                        ImpactDependent(
                            symbol=caller.name if caller is not None else "unknown",
                            kind="function",
                            file=ref.file.rel_path,
                            line=ref.line,
                        )
                    )

        direct_files = {d.file for d in direct}
        total = len(direct) + len(transitive)
        return ImpactInfo(
            direct_dependents=direct,
            transitive_dependents=transitive,
            impact_summary=ImpactSummary(
                direct_files=len(direct_files),
                transitive_files=len({d.file for d in transitive}),
                total_symbols_affected=total,
                risk_level=risk_level(total, len(direct_files)),
            ),
        )

    def _container(self, ref: Reference) -> tuple[str, str, Optional[Declaration]]:
        parent = ref.node.parent
        if parent is not None and parent.type in IMPORT_PARENTS:
            return get_node_text(ref.node), "import", None
        owner = enclosing_declaration(ref.node, ref.file, self.index)
        if owner is None:
            return "unknown", "unknown", None
        return owner.name, owner.kind.value, owner


def build_diagnostics(
    result: TraceSymbolResult,
    params: TraceSymbolParams,
    line_hint_ignored: bool = False,
) -> List[str]:
    node_modules = 0
    declaration_files = 0
    paths = [r.file for r in result.references]
    if result.calls is not None:
        paths.extend(c.target.file_path for c in result.calls.outgoing_calls)
        paths.extend(c.source.file_path for c in result.calls.incoming_callers)
    for path in paths:
        if "node_modules/" in path:
            node_modules += 1
        if path.endswith(".d.ts"):
            declaration_files += 1

    out: List[str] = []
    if line_hint_ignored and result.definition is not None:
        out.append(
            f"Line {params.line} hint was ignored: symbol '{params.symbol}' was found at line "
            f"{result.definition.line} instead. Verify the line number matches the symbol definition."
        )
    if node_modules >= DIAGNOSTIC_THRESHOLD:
        out.append(
            f"Found {node_modules} references in node_modules. Consider adding \"node_modules\" to "
            ".devtoolsignore to exclude third-party code from analysis."
        )
    if declaration_files >= DIAGNOSTIC_THRESHOLD:
        out.append(
            f"Found {declaration_files} references in .d.ts declaration files. Consider adding "
            "\"**/*.d.ts\" to .devtoolsignore to exclude type declarations from analysis."
        )
    if params.include_patterns and not result.references and result.definition is None:
        out.append(
            f"Include patterns [{', '.join(params.include_patterns)}] may not match any files in project "
            f"root \"{result.resolved_root_dir or '(unknown)'}\". Check that patterns are relative to the project root."
        )
    return out


# ---------------------------------------------------------------------------
# Orchestrators
# ---------------------------------------------------------------------------


def trace_symbol(params: TraceSymbolParams, settings: Optional[ProjectSettings] = None) -> TraceSymbolResult:
    """
    Definition, references, re-exports, call hierarchy, type flows, type
    hierarchy and optional impact for one symbol.

    Never raises: failures are reported through `not_found_reason`,
    `error_message` and `partial`.
    """
    clock = Deadline()
    defaults = (settings or ProjectSettings()).trace
    depth = params.depth if params.depth is not None else defaults.depth
    max_refs = params.max_references if params.max_references is not None else defaults.max_references
    user_timeout = params.timeout_ms if params.timeout_ms is not None else defaults.timeout_ms
    include = set(params.include or defaults.include)
    include_all = "all" in include
    include_impact = params.include_impact if params.include_impact is not None else defaults.include_impact

    def _wants(section: str) -> bool:
        return include_all or section in include

    result = TraceSymbolResult(symbol=params.symbol)
    if not params.root_dir:
        result.not_found_reason = NotFoundReason.NO_PROJECT
        result.error_message = str(NoProjectError())
        result.elapsed_ms = clock.elapsed_ms
        return result

    root_dir = normalize_path(params.root_dir)
    try:
        file_hint = None
        if params.file:
            file_hint = normalize_path(os.path.join(root_dir, params.file))
            root_dir = find_nearest_project_root(file_hint, root_dir)
        index = get_project_index(root_dir, settings, force_refresh=params.force_refresh)
        is_ignored = index.file_filter(params.include_patterns, params.exclude_patterns)

        file_count = len(index.source_files)
        clock.timeout_ms = effective_timeout(user_timeout, file_count, max_refs, depth)
        result.resolved_root_dir = root_dir
        result.source_file_count = file_count
        result.effective_timeout = clock.timeout_ms

        if file_count == 0:
            result.not_found_reason = NotFoundReason.NO_MATCHING_FILES
            result.error_message = str(NoMatchingFilesError(root_dir))
            result.elapsed_ms = clock.elapsed_ms
            return result

        try:
            located = SymbolLocator(index).locate(
                params.symbol,
                file_hint=file_hint,
                line=params.line,
                deadline=clock,
                is_ignored=is_ignored,
            )
        except SymbolNotFoundError:
            logger.info("Symbol not found", symbol=params.symbol, root=root_dir, file=params.file)
            result.not_found_reason = NotFoundReason.SYMBOL_NOT_FOUND
            result.error_message = symbol_not_found_message(params, file_count)
            result.elapsed_ms = clock.elapsed_ms
            return result

        decl = located.declaration
        if _wants("definitions"):
            result.definition = definition_info(decl, located.unresolved)

        refs: List[Reference] = []
        references = ReferenceResolver(index, deadline=clock, is_ignored=is_ignored)
        if not clock.expired and (_wants("references") or include_impact):
            refs = references.find(decl)
        if not clock.expired and _wants("references"):
            infos = references.describe(refs)
            infos.sort(key=lambda r: (r.file, r.line, r.column))
            if len(infos) > max_refs:
                infos = infos[:max_refs]
                result.partial = True
                result.partial_reason = PartialReason.MAX_REFERENCES
            result.references = infos
            result.reference_files = ReferenceResolver.file_summaries(infos)

        if not clock.expired and _wants("reexports"):
            result.re_exports = references.re_exports(decl)

        calls: Optional[CallHierarchy] = None
        graph = CallGraphResolver(index)
        if not clock.expired and _wants("calls") and decl.kind in CALLABLE_KINDS:
            try:
                calls = result.calls = graph.resolve(decl, depth)
            except NotCallableError as ex:
                logger.debug("Call hierarchy skipped", symbol=decl.name, reason=str(ex))

        if not clock.expired and _wants("type-flows"):
            try:
                result.type_flows = TypeFlowResolver(index).resolve(decl)
            except NotCallableError as ex:
                logger.debug("Type flows skipped", symbol=decl.name, reason=str(ex))

        hierarchy = TypeHierarchyResolver(index, deadline=clock)
        if not clock.expired and _wants("hierarchy"):
            try:
                result.hierarchy = hierarchy.resolve(decl)
            except NotATypeError as ex:
                logger.debug("Type hierarchy skipped", symbol=decl.name, reason=str(ex))

        if not clock.expired and include_impact:
            result.impact = ImpactAnalyzer(index, is_ignored).analyze(refs, depth)

        if (clock.expired or references.partial or hierarchy.partial) and not result.partial:
            result.partial = True
            result.partial_reason = PartialReason.TIMEOUT

        files = {r.file for r in result.references}
        if result.definition is not None:
            files.add(result.definition.file)
        result.summary = TraceSummary(
            total_references=len(result.references),
            total_files=len(files),
            max_call_depth=graph.max_depth(calls) if calls is not None else 0,
        )
        result.diagnostics = build_diagnostics(result, params, located.line_hint_ignored) or None
        result.elapsed_ms = clock.elapsed_ms
        return result
    except Exception as ex:
        logger.warning("Trace failed", symbol=params.symbol, root=root_dir, error=str(ex), exc_info=True)
        failed = TraceSymbolResult(symbol=params.symbol)
        failed.partial = True
        failed.error_message = error_message(ex, params)
        failed.resolved_root_dir = root_dir
        failed.elapsed_ms = clock.elapsed_ms
        return failed


def find_dead_code(params: DeadCodeParams, settings: Optional[ProjectSettings] = None) -> DeadCodeResult:
    """Project-wide dead code scan. Never raises."""
    clock = Deadline()
    if not params.root_dir:
        return DeadCodeResult(error_message=str(NoProjectError()))

    root_dir = normalize_path(params.root_dir)
    try:
        index = get_project_index(root_dir, settings)
        if not index.source_files:
            logger.info("Dead code scan found no source files", root=root_dir)
            return DeadCodeResult(
                error_message=str(NoMatchingFilesError(root_dir)),
                resolved_root_dir=root_dir,
                summary=DeadCodeSummary(scan_duration_ms=clock.elapsed_ms),
            )
        defaults = index.settings.dead_code
        overrides = {
            k: v
            for k, v in {
                "exported_only": params.exported_only,
                "exclude_tests": params.exclude_tests,
                "limit": params.limit,
                "kinds": set(params.kinds) if params.kinds is not None else None,
                "timeout_ms": params.timeout_ms,
            }.items()
            if v is not None
        }
        scan_settings = defaults.model_copy(update=overrides)
        clock.timeout_ms = scan_settings.timeout_ms
        detector = DeadCodeDetector(
            index,
            scan_settings,
            is_ignored=index.file_filter(params.include_patterns, params.exclude_patterns),
            deadline=clock,
        )
        return detector.detect()
    except Exception as ex:
        logger.warning("Dead code scan failed", root=root_dir, error=str(ex), exc_info=True)
        return DeadCodeResult(
            error_message=str(ex),
            resolved_root_dir=root_dir,
            summary=DeadCodeSummary(scan_duration_ms=clock.elapsed_ms),
        )

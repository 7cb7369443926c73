from typing import Callable, Dict, List, Optional

from tstrace.analysis.common import declaration_kind_label
from tstrace.checker import Checker
from tstrace.helpers import Deadline, is_test_file
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.logger import logger
from tstrace.models import Confidence, DeadCodeItem, DeadCodeResult, DeadCodeSummary, PartialReason
from tstrace.parsers import SourceFile
from tstrace.project import ProjectIndex
from tstrace.settings import DeadCodeSettings

EXPORTED_REASON = "exported but never imported or referenced by any other module"

# kind -> (confidence, reason) for non-exported declarations, in scan order
_INTERNAL_RULES: Dict[DeclKind, tuple[Confidence, str]] = {
    DeclKind.FUNCTION: (Confidence.HIGH, "non-exported function with no internal callers"),
    DeclKind.VARIABLE: (Confidence.HIGH, "variable assigned but never read"),
    DeclKind.CLASS: (Confidence.HIGH, "non-exported class with no internal usage"),
    DeclKind.INTERFACE: (Confidence.MEDIUM, "non-exported interface with no internal usage"),
    DeclKind.TYPE: (Confidence.MEDIUM, "non-exported type alias with no internal usage"),
    DeclKind.ENUM: (Confidence.MEDIUM, "non-exported enum with no internal usage"),
}


class DeadCodeDetector:
    """
    Finds exported declarations nothing else references and, optionally,
    non-exported top-level declarations with no usage in their own file.
    """

    def __init__(
        self,
        index: ProjectIndex,
        settings: Optional[DeadCodeSettings] = None,
        is_ignored: Optional[Callable[[str], bool]] = None,
        deadline: Optional[Deadline] = None,
    ) -> None:
        self.index = index
        self.checker: Checker = index.checker
        self.settings = settings or index.settings.dead_code
        self.is_ignored = is_ignored or index.file_filter()
        self.deadline = deadline or Deadline(self.settings.timeout_ms)
        self.items: List[DeadCodeItem] = []
        self.by_kind: Dict[str, int] = {}
        self.total_scanned = 0
        self.timed_out = False

    @property
    def full(self) -> bool:
        return len(self.items) >= self.settings.limit

    @property
    def stopped(self) -> bool:
        if not self.timed_out and self.deadline.expired:
            logger.warning(
                "Dead code scan timed out",
                root=self.index.root_dir,
                scanned=self.total_scanned,
                found=len(self.items),
            )
            self.timed_out = True
        return self.full or self.timed_out

    def detect(self) -> DeadCodeResult:
        for sf in self.index.source_files:
            if self.stopped:
                break
            if not sf.is_user_file or self.is_ignored(sf.path):
                continue
            if self.settings.exclude_tests and is_test_file(sf.rel_path):
                continue
            self._scan_exports(sf)
            if not self.settings.exported_only:
                self._scan_internal(sf)

        return DeadCodeResult(
            dead_code=self.items,
            summary=DeadCodeSummary(
                total_scanned=self.total_scanned,
                total_dead=len(self.items),
                scan_duration_ms=self.deadline.elapsed_ms,
                by_kind=self.by_kind or None,
            ),
            partial=True if self.timed_out else None,
            partial_reason=PartialReason.TIMEOUT if self.timed_out else None,
            resolved_root_dir=self.index.root_dir,
        )

    def _add(self, decl: Declaration, name: str, kind: str, exported: bool, confidence: Confidence, reason: str) -> None:
        self.items.append(
            DeadCodeItem(
                name=name,
                kind=kind,
                file=decl.rel_path,
                line=decl.line,
                exported=exported,
                confidence=confidence,
                reason=reason,
            )
        )
        self.by_kind[kind] = self.by_kind.get(kind, 0) + 1

    def _scan_exports(self, sf: SourceFile) -> None:
        body = self.index.module_info(sf).body
        for name, entries in body.exports.items():
            if self.stopped:
                return
            # re-exports are reported where they are declared
            if all(e.source is not None for e in entries):
                continue
            sym = self.checker.get_export(body, name)
            decl = sym.declaration if sym is not None else None
            if decl is None or decl.file is not sf:
                continue
            kind = declaration_kind_label(decl)
            if kind not in self.settings.kinds and decl.kind.value not in self.settings.kinds:
                continue
            self.total_scanned += 1
            external = [
                ref for ref in self.checker.find_references(decl, self.deadline)
                if ref.file is not sf or ref.line != decl.line
            ]
            # a search cut short by the deadline proves nothing
            if not external and not self.stopped:
                self._add(decl, name, kind, True, Confidence.HIGH, EXPORTED_REASON)

    def _scan_internal(self, sf: SourceFile) -> None:
        info = self.index.module_info(sf)
        for decl_kind, (confidence, reason) in _INTERNAL_RULES.items():
            for decl in info.top_level(decl_kind):
                if self.stopped:
                    return
                if decl.exported or not decl.name or decl.name == "default":
                    continue
                kind = declaration_kind_label(decl)
                if kind not in self.settings.kinds and decl_kind.value not in self.settings.kinds:
                    continue
                self.total_scanned += 1
                if len(self.checker.find_references(decl, self.deadline)) > 1:
                    continue
                if self.stopped:
                    return
                if decl_kind == DeclKind.VARIABLE and decl.initializer is None:
                    confidence = Confidence.MEDIUM
                elif decl_kind == DeclKind.VARIABLE:
                    confidence = Confidence.HIGH
                self._add(decl, decl.name, kind, False, confidence, reason)


def detect_dead_code(index: ProjectIndex, settings: Optional[DeadCodeSettings] = None) -> DeadCodeResult:
    return DeadCodeDetector(index, settings).detect()

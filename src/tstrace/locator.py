import os
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from tstrace.checker import Symbol
from tstrace.errors import SymbolNotFoundError
from tstrace.helpers import Deadline, normalize_path
from tstrace.lang.typescript import Declaration, DeclKind
from tstrace.logger import logger
from tstrace.parsers import SourceFile, get_node_text, iter_descendants
from tstrace.project import ProjectIndex

# Priority order for same-named declarations inside one file.
_TOP_LEVEL_ORDER = (
    DeclKind.FUNCTION,
    DeclKind.CLASS,
    DeclKind.INTERFACE,
    DeclKind.TYPE,
    DeclKind.ENUM,
    DeclKind.ENUM_MEMBER,
    DeclKind.VARIABLE,
)
_IDENTIFIER_TYPES = ("identifier", "type_identifier", "property_identifier")


@dataclass
class LocatedSymbol:
    declaration: Declaration
    scanned_files: int = 0
    line_hint_ignored: bool = False
    unresolved: bool = False

    @property
    def file(self) -> SourceFile:
        return self.declaration.file


class SymbolLocator:
    """Finds the authoritative declaration for a symbol name."""

    def __init__(self, index: ProjectIndex) -> None:
        self.index = index
        self.checker = index.checker

    def locate(
        self,
        name: str,
        file_hint: Optional[str] = None,
        line: Optional[int] = None,
        deadline: Optional[Deadline] = None,
        is_ignored: Optional[Callable[[str], bool]] = None,
    ) -> LocatedSymbol:
        if file_hint:
            if not os.path.isabs(file_hint):
                file_hint = os.path.join(self.index.root_dir, file_hint)
            sf = self.index.ensure_file(file_hint)
            if sf is None:
                raise SymbolNotFoundError(name, 0, file_hint=file_hint)
            decl, hint_ignored = self._find_with_line(sf, name, line)
            if decl is None:
                raise SymbolNotFoundError(name, 1, file_hint=file_hint)
            target, unresolved = self.resolve_declaration(decl)
            return LocatedSymbol(target, 1, hint_ignored, unresolved)

        scanned = 0
        for sf in self.index.source_files:
            if deadline is not None and deadline.expired:
                logger.warning("Symbol search timed out", name=name, scanned=scanned)
                break
            if not sf.is_user_file:
                continue
            if is_ignored is not None and is_ignored(sf.path):
                continue
            scanned += 1
            decl = self.find_in_file(sf, name)
            if decl is not None:
                target, unresolved = self.resolve_declaration(decl)
                return LocatedSymbol(target, scanned, False, unresolved)
        raise SymbolNotFoundError(name, scanned)

    def _find_with_line(self, sf: SourceFile, name: str, line: Optional[int]) -> tuple[Optional[Declaration], bool]:
        if line is None:
            return self.find_in_file(sf, name), False
        candidates = list(self.iter_candidates(sf, name))
        for decl in candidates:
            if decl.line == line:
                return decl, False
        if candidates:
            logger.debug("Line hint ignored", name=name, path=sf.rel_path, line=line, found=candidates[0].line)
            return candidates[0], True
        return None, False

    def find_in_file(self, sf: SourceFile, name: str) -> Optional[Declaration]:
        return next(self.iter_candidates(sf, name), None)

    def iter_candidates(self, sf: SourceFile, name: str) -> Iterator[Declaration]:
        """Declarations named `name` in `sf`, in lookup priority order."""
        info = self.index.module_info(sf)
        decls = [d for d in info.declarations if d.name == name]
        seen: set[int] = set()

        def _emit(items: List[Declaration]) -> Iterator[Declaration]:
            for d in items:
                if id(d) not in seen:
                    seen.add(id(d))
                    yield d

        for kind in _TOP_LEVEL_ORDER:
            yield from _emit([d for d in decls if d.kind == kind])

        class_members = [
            d for d in info.declarations
            if d.container is not None and d.container.kind == DeclKind.CLASS
        ]
        if name == "constructor":
            yield from _emit([d for d in class_members if d.kind == DeclKind.CONSTRUCTOR][:1])
        named = [d for d in class_members if d.name == name]
        yield from _emit([d for d in named if d.kind == DeclKind.METHOD and not d.is_static])
        yield from _emit([d for d in named if d.kind == DeclKind.PROPERTY and not d.is_static])
        yield from _emit([d for d in named if d.is_static])
        yield from _emit([d for d in named if d.kind in (DeclKind.GETTER, DeclKind.SETTER)])

        yield from _emit(
            [d for d in decls if d.container is not None and d.container.kind == DeclKind.INTERFACE]
        )

        exported = self.checker.get_export(info.body, name)
        if exported is not None:
            yield from _emit([d for d in exported.declarations if d.file is sf])

        for node in iter_descendants(sf.root):
            if node.type in _IDENTIFIER_TYPES and get_node_text(node) == name:
                decl = info.declaration_at(node)
                if decl is not None:
                    yield from _emit([decl])

    def resolve_declaration(self, decl: Declaration) -> tuple[Declaration, bool]:
        """
        Follow an import declaration to the declaration it names. Returns the
        declaration itself and an `unresolved` flag when every strategy fails.
        """
        if decl.kind != DeclKind.IMPORT or decl.import_binding is None:
            return decl, False
        binding = decl.import_binding

        sym = self.checker.resolve_alias_chain(Symbol(decl.name, [decl]))
        target = self._first_real(sym)
        if target is not None:
            return target, False
        if sym.module is not None:
            return decl, False

        imported = binding.imported if binding.imported not in (None, "*") else decl.name
        spec = binding.specifier
        if spec and not self.index.resolver.is_relative(spec):
            path = self.index.resolver.resolve_package_exports(spec, decl.path)
            if path is not None:
                sf = self.index.ensure_file(normalize_path(path))
                if sf is not None:
                    found = self.checker.get_export(self.index.module_info(sf).body, imported)
                    target = self._first_real(self.checker.resolve_alias_chain(found)) if found else None
                    if target is not None:
                        return target, False
            logger.debug("Package exports resolution failed", specifier=spec, path=decl.rel_path)

        if spec:
            for body in self.index.ambient_modules(spec, wildcards=True):
                found = self.checker.get_export(body, imported)
                target = self._first_real(self.checker.resolve_alias_chain(found)) if found else None
                if target is not None:
                    return target, False
            logger.debug("Ambient module scan failed", specifier=spec, path=decl.rel_path)
        return decl, True

    @staticmethod
    def _first_real(sym: Optional[Symbol]) -> Optional[Declaration]:
        if sym is None:
            return None
        return next((d for d in sym.declarations if d.kind != DeclKind.IMPORT), None)

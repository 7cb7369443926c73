import os
from pathlib import Path
from typing import Any, Callable, Optional

import pathspec

from tstrace.helpers import build_file_filter, normalize_path, to_rel_path
from tstrace.lang.typescript import ModuleBody, ModuleInfo, collect_module_info
from tstrace.logger import logger
from tstrace.parsers import SourceFile
from tstrace.resolver import ModuleResolver, TsConfig, load_tsconfig
from tstrace.settings import ProjectSettings


class ProjectCache:
    """
    Mutable cache of project indexes keyed by normalized root path. Entries
    live until the caller explicitly invalidates them.
    """

    def __init__(self) -> None:
        self._cache: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()


class ProjectIndex:
    """
    Parse and checker session for a single project root.

    The initial file set comes from a directory scan narrowed by tsconfig
    include/exclude globs. Files reached through module resolution (for
    example package typings) are parsed on demand and added to the index.
    """

    def __init__(
        self,
        root_dir: str,
        settings: Optional[ProjectSettings] = None,
        tsconfig: Optional[TsConfig] = None,
    ) -> None:
        from tstrace.checker import Checker

        self.root_dir = normalize_path(root_dir)
        self.settings = settings or ProjectSettings(root_path=self.root_dir)
        self.tsconfig = (
            tsconfig
            or load_tsconfig(os.path.join(self.root_dir, "tsconfig.json"))
            or TsConfig(dir=self.root_dir, patterns_base=self.root_dir)
        )
        self.resolver = ModuleResolver(self.tsconfig)
        self._files: dict[str, SourceFile] = {}
        self._modules: dict[str, ModuleInfo] = {}
        self._project_paths: list[str] = []
        self._ambient: dict[str, list[ModuleBody]] = {}
        self.checker = Checker(self)

    # --- construction --------------------------------------------------
    @classmethod
    def build(cls, root_dir: str, settings: Optional[ProjectSettings] = None) -> "ProjectIndex":
        index = cls(root_dir, settings)
        index.scan()
        return index

    def scan(self) -> None:
        paths = self._discover_files()
        for path in paths:
            if self._add(path) is not None:
                self._project_paths.append(path)
        logger.debug(
            "Project index built",
            root=self.root_dir,
            files=len(self._project_paths),
            tsconfig=self.tsconfig.path,
        )

    def _tsconfig_specs(self) -> tuple[Optional[pathspec.PathSpec], Optional[pathspec.PathSpec]]:
        cfg = self.tsconfig
        base = cfg.patterns_base or cfg.dir

        def _spec(patterns: Optional[list[str]]) -> Optional[pathspec.PathSpec]:
            if patterns is None:
                return None
            rel = []
            for p in patterns:
                anchored = to_rel_path(self.root_dir, os.path.join(base, p))
                rel.append(anchored if anchored != "." else "**")
            return pathspec.PathSpec.from_lines("gitwildmatch", rel)

        return _spec(cfg.include), _spec(cfg.exclude)

    def _discover_files(self) -> list[str]:
        ignored_dirs = self.settings.ignored_dirs
        suffixes = tuple(self.settings.extensions)
        include_spec, exclude_spec = self._tsconfig_specs()
        explicit = set(self.tsconfig.files or [])

        out: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            dirnames[:] = sorted(d for d in dirnames if d not in ignored_dirs)
            for fname in sorted(filenames):
                if not fname.endswith(suffixes):
                    continue
                abs_path = Path(dirpath, fname).as_posix()
                if abs_path in explicit:
                    out.append(abs_path)
                    continue
                rel = to_rel_path(self.root_dir, abs_path)
                if (
                    self.tsconfig.files is not None
                    and self.tsconfig.include is None
                    and not self.tsconfig.is_solution_style
                ):
                    continue
                if include_spec is not None and not include_spec.match_file(rel):
                    continue
                if exclude_spec is not None and exclude_spec.match_file(rel):
                    continue
                out.append(abs_path)
        for path in sorted(explicit):
            if path not in out and os.path.isfile(path):
                out.append(path)
        return out

    def _add(self, path: str) -> Optional[SourceFile]:
        sf = SourceFile.load(path, to_rel_path(self.root_dir, path))
        if sf is None:
            return None
        info = collect_module_info(sf)
        self._files[path] = sf
        self._modules[path] = info
        for spec, bodies in info.ambient_modules.items():
            self._ambient.setdefault(spec, []).extend(bodies)
        return sf

    # --- access --------------------------------------------------------
    @property
    def source_files(self) -> list[SourceFile]:
        """Files of the project proper, in index order."""
        return [self._files[p] for p in self._project_paths]

    @property
    def all_files(self) -> list[SourceFile]:
        """Project files followed by files added through module resolution."""
        return list(self._files.values())

    def get_file(self, path: str) -> Optional[SourceFile]:
        return self._files.get(normalize_path(path))

    def ensure_file(self, path: str) -> Optional[SourceFile]:
        """Return the indexed file for `path`, parsing and adding it if needed."""
        path = normalize_path(path)
        sf = self._files.get(path)
        if sf is None and os.path.isfile(path):
            logger.debug("Adding resolved file to index", path=path)
            sf = self._add(path)
        return sf

    def module_info(self, sf: SourceFile) -> ModuleInfo:
        info = self._modules.get(sf.path)
        if info is None:
            info = collect_module_info(sf)
            self._modules[sf.path] = info
        return info

    def rel_path(self, path: str) -> str:
        return to_rel_path(self.root_dir, path)

    def ambient_modules(self, specifier: str, wildcards: bool = False) -> list[ModuleBody]:
        """`declare module "..."` bodies matching a specifier."""
        bodies = list(self._ambient.get(specifier, []))
        if wildcards:
            for pattern, found in self._ambient.items():
                if "*" not in pattern:
                    continue
                prefix, _, suffix = pattern.partition("*")
                if specifier.startswith(prefix) and specifier.endswith(suffix):
                    bodies.extend(found)
        return bodies

    def file_filter(
        self,
        include_patterns: Optional[list[str]] = None,
        exclude_patterns: Optional[list[str]] = None,
    ) -> Callable[[str], bool]:
        return build_file_filter(
            self.root_dir,
            include_patterns if include_patterns is not None else self.settings.include_patterns,
            exclude_patterns if exclude_patterns is not None else self.settings.exclude_patterns,
            ignore_file=self.settings.ignore_file,
        )


_cache = ProjectCache()


def get_project_index(
    root_dir: str,
    settings: Optional[ProjectSettings] = None,
    force_refresh: bool = False,
) -> ProjectIndex:
    """Return the cached index for `root_dir`, building it on first use."""
    key = normalize_path(root_dir)
    if force_refresh:
        _cache.invalidate(key)
    index = _cache.get(key)
    if index is None:
        index = ProjectIndex.build(key, settings)
        _cache.set(key, index)
    return index


def invalidate_project_index(root_dir: Optional[str] = None) -> None:
    if root_dir is None:
        _cache.clear()
    else:
        _cache.invalidate(normalize_path(root_dir))


def _covers(config: TsConfig, file_path: str, seen: Optional[set[str]] = None) -> bool:
    """True if a solution-style config references a project containing the file."""
    seen = seen if seen is not None else set()
    for ref in config.references:
        ref_path = ref if ref.endswith(".json") else os.path.join(ref, "tsconfig.json")
        if ref_path in seen:
            continue
        seen.add(ref_path)
        ref_cfg = load_tsconfig(ref_path)
        if ref_cfg is None:
            # unreadable or missing config: the referenced directory still bounds the project
            ref_dir = os.path.dirname(ref_path)
            logger.debug("Unable to load referenced tsconfig", path=ref_path)
            if file_path == ref_dir or file_path.startswith(ref_dir + "/"):
                return True
            continue
        if ref_cfg.is_solution_style:
            if _covers(ref_cfg, file_path, seen):
                return True
        elif file_path == ref_cfg.dir or file_path.startswith(ref_cfg.dir + "/"):
            return True
    return False


def find_nearest_project_root(file_path: str, workspace_root: str) -> str:
    """
    Pick the project root for a file: the highest ancestor tsconfig.json (up to
    the workspace root) that is either a regular config or a solution-style
    config whose references cover the file. Falls back to the nearest config
    directory, then to the workspace root.
    """
    workspace = normalize_path(workspace_root)
    target = normalize_path(file_path if os.path.isabs(file_path) else os.path.join(workspace, file_path))
    candidates: list[str] = []
    cur = Path(target).parent
    while True:
        if (cur / "tsconfig.json").is_file():
            candidates.append(cur.as_posix())
        if cur.as_posix() == workspace or cur.parent == cur:
            break
        if not cur.as_posix().startswith(workspace):
            break
        cur = cur.parent

    for candidate in reversed(candidates):
        cfg = load_tsconfig(os.path.join(candidate, "tsconfig.json"))
        if cfg is None:
            continue
        if not cfg.is_solution_style:
            return candidate
        if _covers(cfg, target):
            return candidate
    if candidates:
        return candidates[0]
    return workspace


import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

from tstrace.helpers import load_jsonc, normalize_path
from tstrace.logger import logger

TS_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".mts", ".cts", ".js", ".jsx")
JS_TO_TS = {
    ".js": (".ts", ".tsx", ".d.ts"),
    ".jsx": (".tsx", ".d.ts"),
    ".mjs": (".mts", ".d.mts"),
    ".cjs": (".cts", ".d.cts"),
}
EXPORT_CONDITIONS = ("types", "import", "require", "node", "default")
EXPORTS_AWARE_RESOLUTION = ("node16", "nodenext", "bundler")


@dataclass
class TsConfig:
    """The subset of a tsconfig.json that drives file selection and module resolution."""

    dir: str
    path: Optional[str] = None
    base_url: Optional[str] = None
    paths: dict[str, list[str]] = field(default_factory=dict)
    paths_base: Optional[str] = None
    include: Optional[list[str]] = None
    exclude: Optional[list[str]] = None
    files: Optional[list[str]] = None
    patterns_base: Optional[str] = None
    references: list[str] = field(default_factory=list)
    module_resolution: Optional[str] = None

    @property
    def is_solution_style(self) -> bool:
        return self.files is not None and len(self.files) == 0 and self.include is None


def _extends_path(config_dir: str, ref: str) -> Optional[str]:
    if ref.startswith(("./", "../", "/")):
        p = Path(config_dir, ref)
        if p.is_dir():
            p = p / "tsconfig.json"
        elif p.suffix != ".json":
            p = p.with_name(p.name + ".json")
        return str(p)
    # package reference, e.g. "@tsconfig/node18/tsconfig.json"
    cur = Path(config_dir)
    for d in [cur, *cur.parents]:
        candidate = d / "node_modules" / ref
        if candidate.is_file():
            return str(candidate)
        if (candidate / "tsconfig.json").is_file():
            return str(candidate / "tsconfig.json")
        if candidate.with_name(candidate.name + ".json").is_file():
            return str(candidate.with_name(candidate.name + ".json"))
    return None


def load_tsconfig(path: str | Path, _seen: Optional[set[str]] = None) -> Optional[TsConfig]:
    """Load a tsconfig.json, following `extends` chains."""
    config_path = normalize_path(path)
    seen = _seen if _seen is not None else set()
    if config_path in seen:
        return None
    seen.add(config_path)

    raw = load_jsonc(config_path)
    if raw is None:
        return None
    config_dir = os.path.dirname(config_path)

    parents: list[TsConfig] = []
    ext = raw.get("extends")
    for ref in ext if isinstance(ext, list) else [ext] if isinstance(ext, str) else []:
        parent_path = _extends_path(config_dir, ref)
        parent = load_tsconfig(parent_path, seen) if parent_path else None
        if parent is None:
            logger.debug("Unable to load extended tsconfig", path=config_path, extends=ref)
            continue
        parents.append(parent)

    cfg = TsConfig(dir=config_dir, path=config_path)
    for parent in parents:
        cfg.base_url = parent.base_url or cfg.base_url
        cfg.paths = parent.paths or cfg.paths
        cfg.paths_base = parent.paths_base or cfg.paths_base
        cfg.module_resolution = parent.module_resolution or cfg.module_resolution
        if parent.include is not None:
            cfg.include, cfg.patterns_base = parent.include, parent.patterns_base
        if parent.exclude is not None:
            cfg.exclude = parent.exclude
        if parent.files is not None:
            cfg.files = parent.files

    opts: dict[str, Any] = raw.get("compilerOptions") or {}
    if isinstance(opts.get("baseUrl"), str):
        cfg.base_url = normalize_path(Path(config_dir, opts["baseUrl"]))
    if isinstance(opts.get("paths"), dict):
        cfg.paths = {k: list(v) for k, v in opts["paths"].items() if isinstance(v, list)}
        cfg.paths_base = cfg.base_url or config_dir
    elif cfg.base_url and cfg.paths:
        cfg.paths_base = cfg.base_url
    if isinstance(opts.get("moduleResolution"), str):
        cfg.module_resolution = opts["moduleResolution"].lower()

    if isinstance(raw.get("include"), list):
        cfg.include = [str(p) for p in raw["include"]]
        cfg.patterns_base = config_dir
    if isinstance(raw.get("exclude"), list):
        cfg.exclude = [str(p) for p in raw["exclude"]]
    if isinstance(raw.get("files"), list):
        cfg.files = [normalize_path(Path(config_dir, p)) for p in raw["files"]]
    if cfg.patterns_base is None:
        cfg.patterns_base = config_dir
    for ref in raw.get("references") or []:
        if isinstance(ref, dict) and isinstance(ref.get("path"), str):
            cfg.references.append(normalize_path(Path(config_dir, ref["path"])))
    return cfg


def split_package_specifier(specifier: str) -> tuple[str, str]:
    """`@scope/pkg/sub/path` -> (`@scope/pkg`, `sub/path`)."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


class ModuleResolver:
    """
    Resolves import specifiers to files on disk.

    `resolve` mirrors what the compiler does for the project's module resolution
    mode. `resolve_package_exports` always consults package.json `exports` maps
    and is used as a fallback when the standard resolution misses.
    """

    def __init__(self, config: TsConfig) -> None:
        self.config = config
        self._cache: dict[tuple[str, str, bool], Optional[str]] = {}

    @property
    def uses_exports(self) -> bool:
        return self.config.module_resolution in EXPORTS_AWARE_RESOLUTION

    # --- public --------------------------------------------------------
    def resolve(
        self,
        specifier: str,
        from_path: str,
        use_exports: Optional[bool] = None,
    ) -> Optional[str]:
        if use_exports is None:
            use_exports = self.uses_exports
        from_dir = os.path.dirname(from_path)
        key = (specifier, from_dir, use_exports)
        if key in self._cache:
            return self._cache[key]
        result = self._resolve(specifier, from_dir, use_exports)
        if result is None:
            logger.debug("Module resolution failed", specifier=specifier, path=from_path)
        self._cache[key] = result
        return result

    def resolve_package_exports(self, specifier: str, from_path: str) -> Optional[str]:
        if self.is_relative(specifier):
            return None
        return self._resolve_node_module(specifier, os.path.dirname(from_path), True)

    @staticmethod
    def is_relative(specifier: str) -> bool:
        return specifier.startswith(("./", "../", "/")) or specifier in (".", "..")

    # --- strategies ----------------------------------------------------
    def _resolve(self, specifier: str, from_dir: str, use_exports: bool) -> Optional[str]:
        if self.is_relative(specifier):
            return self._resolve_file_or_dir(os.path.join(from_dir, specifier))

        mapped = self._resolve_paths(specifier)
        if mapped is not None:
            return mapped

        if self.config.base_url:
            found = self._resolve_file_or_dir(os.path.join(self.config.base_url, specifier))
            if found is not None:
                return found

        return self._resolve_node_module(specifier, from_dir, use_exports)

    def _resolve_paths(self, specifier: str) -> Optional[str]:
        base = self.config.paths_base or self.config.dir
        best: Optional[tuple[int, str, list[str]]] = None
        for pattern, targets in self.config.paths.items():
            if "*" in pattern:
                prefix, _, suffix = pattern.partition("*")
                if (
                    specifier.startswith(prefix)
                    and specifier.endswith(suffix)
                    and len(specifier) >= len(prefix) + len(suffix)
                ):
                    star = specifier[len(prefix) : len(specifier) - len(suffix)]
                    # longest prefix wins
                    if best is None or len(prefix) > best[0]:
                        best = (len(prefix), star, targets)
            elif pattern == specifier:
                best = (len(pattern) + 1, "", targets)
                break
        if best is None:
            return None
        _, star, targets = best
        for target in targets:
            found = self._resolve_file_or_dir(os.path.join(base, target.replace("*", star)))
            if found is not None:
                return found
        return None

    def _resolve_file_or_dir(self, base: str) -> Optional[str]:
        base = os.path.normpath(base)
        root, ext = os.path.splitext(base)
        if ext in JS_TO_TS:
            for ts_ext in JS_TO_TS[ext]:
                if os.path.isfile(root + ts_ext):
                    return normalize_path(root + ts_ext)
        if os.path.isfile(base) and base.endswith(TS_EXTENSIONS + (".mjs", ".cjs")):
            return normalize_path(base)
        for ts_ext in TS_EXTENSIONS:
            if os.path.isfile(base + ts_ext):
                return normalize_path(base + ts_ext)
        if os.path.isdir(base):
            pkg = load_jsonc(os.path.join(base, "package.json"))
            if pkg:
                for fld in ("types", "typings", "main"):
                    value = pkg.get(fld)
                    if isinstance(value, str):
                        found = self._resolve_file_or_dir(os.path.join(base, value))
                        if found is not None:
                            return found
            for ts_ext in TS_EXTENSIONS:
                candidate = os.path.join(base, "index" + ts_ext)
                if os.path.isfile(candidate):
                    return normalize_path(candidate)
        return None

    def _resolve_node_module(self, specifier: str, from_dir: str, use_exports: bool) -> Optional[str]:
        pkg_name, subpath = split_package_specifier(specifier)
        if not pkg_name:
            return None
        types_name = pkg_name[1:].replace("/", "__") if pkg_name.startswith("@") else pkg_name
        cur = Path(from_dir)
        for d in [cur, *cur.parents]:
            pkg_dir = d / "node_modules" / pkg_name
            if pkg_dir.is_dir():
                found = self._resolve_package(str(pkg_dir), subpath, use_exports)
                if found is not None:
                    return found
            types_dir = d / "node_modules" / "@types" / types_name
            if types_dir.is_dir():
                found = self._resolve_package(str(types_dir), subpath, False)
                if found is not None:
                    return found
        return None

    def _resolve_package(self, pkg_dir: str, subpath: str, use_exports: bool) -> Optional[str]:
        pkg = load_jsonc(os.path.join(pkg_dir, "package.json")) or {}
        exports = pkg.get("exports")
        if use_exports and exports is not None:
            for target in iter_exports_targets(exports, "./" + subpath if subpath else "."):
                found = self._resolve_file_or_dir(os.path.join(pkg_dir, target))
                if found is not None:
                    return found
        if subpath:
            return self._resolve_file_or_dir(os.path.join(pkg_dir, subpath))
        return self._resolve_file_or_dir(pkg_dir)


def resolve_exports_target(exports: Any, subpath: str) -> Optional[str]:
    """Pick the file a package.json `exports` field maps `subpath` to."""
    return next(iter_exports_targets(exports, subpath), None)


def iter_exports_targets(exports: Any, subpath: str) -> Iterator[str]:
    """All candidate targets for `subpath`, in condition priority order."""
    if isinstance(exports, (str, list)):
        if subpath == ".":
            yield from _iter_conditions(exports)
        return
    if not isinstance(exports, dict):
        return
    keys = list(exports.keys())
    if not keys or not all(k.startswith(".") for k in keys):
        # bare condition object applies to the package root
        if subpath == ".":
            yield from _iter_conditions(exports)
        return
    if subpath in exports:
        yield from _iter_conditions(exports[subpath])
        return
    best: Optional[tuple[str, str]] = None
    for key in keys:
        if "*" not in key:
            continue
        prefix, _, suffix = key.partition("*")
        if subpath.startswith(prefix) and subpath.endswith(suffix):
            if best is None or len(prefix) > len(best[0].partition("*")[0]):
                best = (key, subpath[len(prefix) : len(subpath) - len(suffix)])
    if best is not None:
        yield from _iter_conditions(exports[best[0]], best[1])


def _iter_conditions(value: Any, star: Optional[str] = None) -> Iterator[str]:
    if isinstance(value, str):
        yield value.replace("*", star) if star is not None else value
    elif isinstance(value, list):
        for item in value:
            yield from _iter_conditions(item, star)
    elif isinstance(value, dict):
        for cond, target in value.items():
            if cond in EXPORT_CONDITIONS:
                yield from _iter_conditions(target, star)

import json
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import pathspec

TEST_FILE_PATTERN = re.compile(r"[./](test|spec|__tests__)[./]", re.IGNORECASE)


def normalize_path(path: str | Path) -> str:
    """Absolute, symlink-free path with forward slashes."""
    return Path(path).resolve().as_posix()


def to_rel_path(root_dir: str | Path, abs_path: str | Path) -> str:
    """
    Project-relative path with forward slashes. Paths outside the root keep
    their `..` segments so they still identify the file.
    """
    rel = os.path.relpath(str(abs_path), str(root_dir))
    return rel.replace("\\", "/")


def is_test_file(rel_path: str) -> bool:
    return bool(TEST_FILE_PATTERN.search(rel_path))


def parse_gitignore(
    gitignore_path: str | Path, *, extra: Optional[Iterable[str]] = None
) -> "pathspec.PathSpec":
    """
    Parse a gitignore-style file and return a pathspec.PathSpec built with the
    'gitwildmatch' syntax (same as Git). Missing files yield an empty spec
    unless `extra` patterns are supplied.
    """
    lines: list[str] = []
    ignore_file = Path(gitignore_path)
    if ignore_file.exists() and ignore_file.is_file():
        for raw in ignore_file.read_text().splitlines():
            raw = raw.rstrip()
            if not raw or raw.lstrip().startswith("#"):
                continue
            lines.append(raw)
    if extra:
        lines.extend(p for p in extra if p)
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def build_file_filter(
    root_dir: str | Path,
    include_patterns: Optional[list[str]] = None,
    exclude_patterns: Optional[list[str]] = None,
    ignore_file: str = ".devtoolsignore",
) -> Callable[[str], bool]:
    """
    Return an `is_ignored(abs_path)` predicate.

    When include patterns are given a file must match at least one of them.
    The ignore file at the root and the exclude patterns then narrow the
    selection further.
    """
    root = Path(root_dir)
    ignore_spec = parse_gitignore(root / ignore_file, extra=exclude_patterns)
    include_spec = (
        pathspec.PathSpec.from_lines("gitwildmatch", include_patterns)
        if include_patterns
        else None
    )

    def is_ignored(abs_path: str) -> bool:
        rel = to_rel_path(root, abs_path)
        if rel.startswith("../"):
            return False
        if include_spec is not None and not include_spec.match_file(rel):
            return True
        return ignore_spec.match_file(rel)

    return is_ignored


_JSONC_TOKEN_RE = re.compile(
    r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/',
    re.DOTALL,
)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _strip_jsonc(text: str) -> str:
    def _sub(m: re.Match) -> str:
        tok = m.group(0)
        return tok if tok.startswith('"') else ""

    text = _JSONC_TOKEN_RE.sub(_sub, text)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def load_jsonc(path: str | Path) -> Optional[dict[str, Any]]:
    """
    Load a JSON-with-comments document (tsconfig.json, package.json).
    Returns None when the file is missing or not an object.
    """
    p = Path(path)
    if not p.is_file():
        return None
    try:
        data = json.loads(_strip_jsonc(p.read_text(encoding="utf-8")))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def format_js_number(value: float) -> str:
    """Render a number the way JavaScript's String() does for common values."""
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "Infinity" if value > 0 else "-Infinity"
    if float(value).is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def parse_js_number(text: str) -> Optional[float]:
    """Parse a JavaScript numeric literal, returning None if it is not one."""
    t = text.replace("_", "").strip()
    if not t:
        return None
    try:
        lower = t.lower()
        if lower.startswith("0x"):
            return float(int(t[2:], 16))
        if lower.startswith("0o"):
            return float(int(t[2:], 8))
        if lower.startswith("0b"):
            return float(int(t[2:], 2))
        if lower.endswith("n"):
            return float(int(t[:-1]))
        return float(t)
    except ValueError:
        return None


def truncate(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else text[:limit]


class Deadline:
    """Wall-clock budget polled between units of work."""

    def __init__(self, timeout_ms: Optional[int] = None) -> None:
        self.started = time.monotonic()
        self.timeout_ms = timeout_ms

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    @property
    def expired(self) -> bool:
        return self.timeout_ms is not None and self.elapsed_ms >= self.timeout_ms

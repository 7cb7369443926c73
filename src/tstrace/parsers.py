from pathlib import Path
from typing import Iterator, Optional

import tree_sitter as ts
import tree_sitter_typescript as tsts

from tstrace.logger import logger

TS_LANGUAGE = ts.Language(tsts.language_typescript())
TSX_LANGUAGE = ts.Language(tsts.language_tsx())
_parsers: dict[bool, ts.Parser] = {}

DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")
TSX_SUFFIXES = (".tsx", ".jsx")


def _get_parser(tsx: bool) -> ts.Parser:
    parser = _parsers.get(tsx)
    if parser is None:
        parser = ts.Parser(TSX_LANGUAGE if tsx else TS_LANGUAGE)
        _parsers[tsx] = parser
    return parser


def get_node_text(node) -> str:
    """
    Get text of the tree sitter node
    """
    if not node or not node.text:
        return ""

    return node.text.decode("utf-8")


def node_line(node: ts.Node) -> int:
    return node.start_point[0] + 1


def node_column(node: ts.Node) -> int:
    return node.start_point[1] + 1


def node_key(node: ts.Node) -> tuple[str, int, int]:
    return (node.type, node.start_byte, node.end_byte)


def iter_descendants(node: ts.Node) -> Iterator[ts.Node]:
    """Pre-order walk over named descendants (the node itself excluded)."""
    stack = list(reversed(node.named_children))
    while stack:
        cur = stack.pop()
        yield cur
        stack.extend(reversed(cur.named_children))


def find_ancestor(node: ts.Node, types) -> Optional[ts.Node]:
    cur = node.parent
    while cur is not None:
        if cur.type in types:
            return cur
        cur = cur.parent
    return None


def is_within(node: ts.Node, container: ts.Node) -> bool:
    return container.start_byte <= node.start_byte and node.end_byte <= container.end_byte


def unwrap_expression(node: Optional[ts.Node]) -> Optional[ts.Node]:
    """Strip parentheses and type-only wrappers (`as`, `satisfies`, `!`)."""
    while node is not None and node.type in (
        "parenthesized_expression",
        "as_expression",
        "satisfies_expression",
        "non_null_expression",
    ):
        inner = node.named_children[0] if node.named_children else None
        if inner is None:
            break
        node = inner
    return node


def string_value(node: Optional[ts.Node]) -> Optional[str]:
    """Content of a string literal node without quotes."""
    if node is None or node.type != "string":
        return None
    text = get_node_text(node)
    return text[1:-1] if len(text) >= 2 else ""


class SourceFile:
    """A parsed TypeScript source file."""

    def __init__(self, path: str, text: str, rel_path: Optional[str] = None) -> None:
        self.path = path
        self.rel_path = rel_path or path
        self.text = text
        self.source = text.encode("utf-8")
        self.tree = _get_parser(path.endswith(TSX_SUFFIXES)).parse(self.source)
        self._lines: Optional[list[str]] = None

    @classmethod
    def load(cls, path: str, rel_path: Optional[str] = None) -> Optional["SourceFile"]:
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as ex:
            logger.warning("Unable to read source file", path=path, error=str(ex))
            return None
        return cls(path, text, rel_path)

    @property
    def root(self) -> ts.Node:
        return self.tree.root_node

    @property
    def is_declaration_file(self) -> bool:
        return self.path.endswith(DECLARATION_SUFFIXES)

    @property
    def is_external(self) -> bool:
        return "/node_modules/" in self.path

    @property
    def is_user_file(self) -> bool:
        return not (self.is_declaration_file or self.is_external)

    def line_text(self, line: int) -> str:
        if self._lines is None:
            self._lines = self.text.splitlines()
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return ""

    def __repr__(self) -> str:
        return f"SourceFile({self.rel_path!r})"

import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Optional

import tree_sitter as ts

from tstrace.models import ConfusablePair, Severity, UnicodeIdentifierAnalysis, UnicodeIdentifierEntry
from tstrace.parsers import SourceFile, get_node_text, node_line

BIDI_OVERRIDES = frozenset(
    {
        0x202A,  # LEFT-TO-RIGHT EMBEDDING
        0x202B,  # RIGHT-TO-LEFT EMBEDDING
        0x202C,  # POP DIRECTIONAL FORMATTING
        0x202D,  # LEFT-TO-RIGHT OVERRIDE
        0x202E,  # RIGHT-TO-LEFT OVERRIDE
        0x2066,  # LEFT-TO-RIGHT ISOLATE
        0x2067,  # RIGHT-TO-LEFT ISOLATE
        0x2068,  # FIRST STRONG ISOLATE
        0x2069,  # POP DIRECTIONAL ISOLATE
    }
)

ZERO_WIDTH_CHARS = frozenset({0x200B, 0x200C, 0x200D, 0x2060, 0xFEFF})

# Homoglyph code point -> (latin letter, label)
CONFUSABLE_TO_LATIN: Dict[int, tuple[str, str]] = {
    0x0430: ("a", "Cyrillic а"),
    0x0435: ("e", "Cyrillic е"),
    0x043E: ("o", "Cyrillic о"),
    0x0440: ("p", "Cyrillic р"),
    0x0441: ("c", "Cyrillic с"),
    0x0443: ("y", "Cyrillic у"),
    0x0445: ("x", "Cyrillic х"),
    0x0410: ("A", "Cyrillic А"),
    0x0412: ("B", "Cyrillic В"),
    0x0415: ("E", "Cyrillic Е"),
    0x041A: ("K", "Cyrillic К"),
    0x041C: ("M", "Cyrillic М"),
    0x041D: ("H", "Cyrillic Н"),
    0x041E: ("O", "Cyrillic О"),
    0x0420: ("P", "Cyrillic Р"),
    0x0421: ("C", "Cyrillic С"),
    0x0422: ("T", "Cyrillic Т"),
    0x0425: ("X", "Cyrillic Х"),
    0x0427: ("u", "Cyrillic ч"),
    0x03B1: ("a", "Greek α"),
    0x03BF: ("o", "Greek ο"),
    0x03C1: ("p", "Greek ρ"),
    0x0391: ("A", "Greek Α"),
    0x0392: ("B", "Greek Β"),
    0x0395: ("E", "Greek Ε"),
    0x0397: ("H", "Greek Η"),
    0x0399: ("I", "Greek Ι"),
    0x039A: ("K", "Greek Κ"),
    0x039C: ("M", "Greek Μ"),
    0x039D: ("N", "Greek Ν"),
    0x039F: ("O", "Greek Ο"),
    0x03A1: ("P", "Greek Ρ"),
    0x03A4: ("T", "Greek Τ"),
    0x03A5: ("Y", "Greek Υ"),
    0x03A7: ("X", "Greek Χ"),
    0x03B5: ("e", "Greek ε"),
}

SCRIPT_RANGES: List[tuple[int, int, str]] = [
    (0x0000, 0x007F, "Latin"),
    (0x0080, 0x024F, "Latin"),
    (0x1E00, 0x1EFF, "Latin"),
    (0x2C60, 0x2C7F, "Latin"),
    (0xA720, 0xA7FF, "Latin"),
    (0x0370, 0x03FF, "Greek"),
    (0x1F00, 0x1FFF, "Greek"),
    (0x0400, 0x04FF, "Cyrillic"),
    (0x0500, 0x052F, "Cyrillic"),
    (0x0530, 0x058F, "Armenian"),
    (0x0600, 0x06FF, "Arabic"),
    (0x0750, 0x077F, "Arabic"),
    (0x0900, 0x097F, "Devanagari"),
    (0x4E00, 0x9FFF, "CJK"),
    (0x3400, 0x4DBF, "CJK"),
    (0x3040, 0x309F, "Hiragana"),
    (0x30A0, 0x30FF, "Katakana"),
    (0xAC00, 0xD7AF, "Hangul"),
    (0x1F300, 0x1F9FF, "Emoji"),
    (0x2600, 0x26FF, "Symbol"),
    (0x2700, 0x27BF, "Symbol"),
    (0x0300, 0x036F, "Combining"),
]

# Declaration node type -> field holding the declared name
_DECLARATION_NAME_FIELDS = {
    "variable_declarator": "name",
    "function_declaration": "name",
    "generator_function_declaration": "name",
    "class_declaration": "name",
    "abstract_class_declaration": "name",
    "interface_declaration": "name",
    "type_alias_declaration": "name",
    "required_parameter": "pattern",
    "optional_parameter": "pattern",
    "public_field_definition": "name",
    "property_signature": "name",
    "method_definition": "name",
    "method_signature": "name",
    "abstract_method_signature": "name",
    "enum_declaration": "name",
    "enum_assignment": "name",
}
_NAME_NODE_TYPES = ("identifier", "type_identifier", "property_identifier")


def script_of(cp: int) -> str:
    for start, end, script in SCRIPT_RANGES:
        if start <= cp <= end:
            return script
    return "Unknown"


def scripts_of(name: str) -> set[str]:
    scripts: set[str] = set()
    for ch in name:
        if ch in ("_", "$"):
            continue
        script = script_of(ord(ch))
        if script != "Combining":
            scripts.add(script)
    return scripts


def has_bidi(name: str) -> bool:
    return any(ord(ch) in BIDI_OVERRIDES for ch in name)


def has_zero_width(name: str) -> bool:
    return any(ord(ch) in ZERO_WIDTH_CHARS for ch in name)


def skeleton(name: str) -> str:
    """Name with known homoglyphs replaced by their Latin counterparts, NFC-normalized."""
    mapped = "".join(CONFUSABLE_TO_LATIN.get(ord(ch), (ch, ""))[0] for ch in name)
    return unicodedata.normalize("NFC", mapped)


def confusable_reason(a: str, b: str) -> str:
    differences: List[str] = []
    for ca, cb in zip(a, b):
        if ca == cb:
            continue
        mapping = CONFUSABLE_TO_LATIN.get(ord(ca)) or CONFUSABLE_TO_LATIN.get(ord(cb))
        if mapping is not None:
            latin, label = mapping
            differences.append(f"{label} vs Latin {latin}")
    if not differences:
        return f'"{a}" and "{b}" are visually confusable'
    return ", ".join(differences)


def classify_severity(mixed: bool, bidi: bool, zero_width: bool, confusable: bool) -> Severity:
    if bidi or zero_width or confusable:
        return Severity.CRITICAL
    if mixed:
        return Severity.WARNING
    return Severity.INFO


def _name_of(node: Optional[ts.Node]) -> Optional[str]:
    if node is None:
        return None
    field = node.child_by_field_name("name")
    return get_node_text(field) if field is not None else None


def resolve_scope(decl_node: ts.Node) -> str:
    """Innermost named scope enclosing a declaration, as `kind:name`."""
    cur = decl_node.parent
    while cur is not None:
        t = cur.type
        if t in ("function_declaration", "generator_function_declaration"):
            return f"function:{_name_of(cur) or '<anonymous>'}"
        if t == "method_definition":
            cls = cur.parent.parent if cur.parent is not None and cur.parent.type == "class_body" else None
            cls_name = _name_of(cls) if cls is not None else None
            method = _name_of(cur)
            return f"method:{cls_name}.{method}" if cls_name else f"method:{method}"
        if t in ("class_declaration", "abstract_class_declaration", "class"):
            return f"class:{_name_of(cur) or '<anonymous>'}"
        if t in ("arrow_function", "function_expression", "function"):
            if cur.parent is not None and cur.parent.type == "variable_declarator":
                return f"function:{_name_of(cur.parent)}"
            return "function:<anonymous>"
        if t == "interface_declaration":
            return f"interface:{_name_of(cur)}"
        if t == "program":
            return "file"
        cur = cur.parent
    return "file"


@dataclass
class _RawIdentifier:
    name: str
    node: ts.Node
    line: int
    non_ascii: bool


def _declared_name_node(node: ts.Node) -> Optional[ts.Node]:
    field = _DECLARATION_NAME_FIELDS.get(node.type)
    if field is not None:
        name = node.child_by_field_name(field)
        if name is not None and name.type in _NAME_NODE_TYPES:
            return name
        return None
    # bare enum members are plain property identifiers inside the body
    if node.type == "property_identifier" and node.parent is not None and node.parent.type == "enum_body":
        return node
    return None


def collect_identifiers(sf: SourceFile) -> List[_RawIdentifier]:
    out: List[_RawIdentifier] = []
    seen: set[str] = set()
    stack = [sf.root]
    while stack:
        node = stack.pop()
        name_node = _declared_name_node(node)
        if name_node is not None:
            name = get_node_text(name_node)
            if name not in seen:
                seen.add(name)
                owner = node if name_node is not node else node.parent
                out.append(
                    _RawIdentifier(
                        name=name,
                        node=owner,
                        line=node_line(name_node),
                        non_ascii=any(ord(ch) > 0x7F for ch in name) or has_bidi(name) or has_zero_width(name),
                    )
                )
        stack.extend(reversed(node.named_children))
    return out


def resolve_unicode_identifiers(sf: SourceFile) -> UnicodeIdentifierAnalysis:
    """
    Report non-ASCII declaration identifiers in one file with their scripts,
    invisible characters and any homoglyph collisions between names.
    """
    identifiers = collect_identifiers(sf)

    by_skeleton: Dict[str, List[str]] = {}
    for raw in identifiers:
        names = by_skeleton.setdefault(skeleton(raw.name), [])
        if raw.name not in names:
            names.append(raw.name)

    pairs: List[ConfusablePair] = []
    confusable: set[str] = set()
    for names in by_skeleton.values():
        for i, a in enumerate(names):
            for b in names[i + 1:]:
                confusable.update((a, b))
                pairs.append(ConfusablePair(a=a, b=b, reason=confusable_reason(a, b)))

    entries: List[UnicodeIdentifierEntry] = []
    for raw in identifiers:
        if not raw.non_ascii:
            continue
        scripts = scripts_of(raw.name)
        mixed = len(scripts) > 1
        bidi = has_bidi(raw.name)
        zero_width = has_zero_width(raw.name)
        entries.append(
            UnicodeIdentifierEntry(
                name=raw.name,
                normalized_name=unicodedata.normalize("NFC", raw.name),
                scripts=sorted(scripts),
                is_mixed_script=mixed,
                has_bidi_override=bidi,
                has_zero_width=zero_width,
                severity=classify_severity(mixed, bidi, zero_width, raw.name in confusable),
                scope=resolve_scope(raw.node),
                line=raw.line,
            )
        )
    return UnicodeIdentifierAnalysis(file_path=sf.rel_path, identifiers=entries, confusable_pairs=pairs)

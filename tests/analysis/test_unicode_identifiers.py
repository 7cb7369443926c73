from tstrace.analysis.unicode import (
    classify_severity,
    confusable_reason,
    has_bidi,
    has_zero_width,
    resolve_unicode_identifiers,
    scripts_of,
    skeleton,
)
from tstrace.models import Severity
from tstrace.parsers import SourceFile

CYRILLIC_ES = "\u0441"

SOURCE = "\n".join(
    [
        "const score = 1;",
        f"const s{CYRILLIC_ES}ore = 2;",
        "function grüße(name: string) {",
        "  const π = 3.14;",
        "  return π;",
        "}",
        "let user\u200did = 0;",
        "class Account {",
        "  b\u0430lance = 0;",
        "}",
        "",
    ]
)


def _analyze(text: str = SOURCE):
    return resolve_unicode_identifiers(SourceFile("/project/src/names.ts", text, "src/names.ts"))


def _entry(analysis, name):
    return next(e for e in analysis.identifiers if e.name == name)


def test_only_non_ascii_identifiers_are_reported():
    analysis = _analyze()
    names = [e.name for e in analysis.identifiers]

    assert analysis.file_path == "src/names.ts"
    assert "score" not in names
    assert "name" not in names
    assert names == [f"s{CYRILLIC_ES}ore", "grüße", "π", "user\u200did", "b\u0430lance"]


def test_confusable_pair_names_the_homoglyph():
    analysis = _analyze()

    assert len(analysis.confusable_pairs) == 1
    pair = analysis.confusable_pairs[0]
    assert (pair.a, pair.b) == ("score", f"s{CYRILLIC_ES}ore")
    assert pair.reason == "Cyrillic с vs Latin c"

    spoof = _entry(analysis, f"s{CYRILLIC_ES}ore")
    assert spoof.scripts == ["Cyrillic", "Latin"]
    assert spoof.is_mixed_script is True
    assert spoof.severity == Severity.CRITICAL
    assert spoof.line == 2


def test_single_script_names_are_informational():
    analysis = _analyze()

    greeting = _entry(analysis, "grüße")
    assert greeting.scripts == ["Latin"]
    assert greeting.severity == Severity.INFO
    assert greeting.scope == "file"

    pi = _entry(analysis, "π")
    assert pi.scripts == ["Greek"]
    assert pi.scope == "function:grüße"
    assert pi.line == 4


def test_mixed_script_without_collision_is_a_warning():
    balance = _entry(_analyze(), "b\u0430lance")

    assert balance.is_mixed_script is True
    assert balance.severity == Severity.WARNING
    assert balance.scope == "class:Account"


def test_zero_width_is_critical():
    hidden = _entry(_analyze(), "user\u200did")

    assert hidden.has_zero_width is True
    assert hidden.has_bidi_override is False
    assert hidden.severity == Severity.CRITICAL


def test_helpers():
    assert has_bidi("admin\u202e")
    assert not has_bidi("admin")
    assert has_zero_width("a\ufeffb")
    assert scripts_of("_$value") == {"Latin"}
    assert skeleton(f"s{CYRILLIC_ES}ore") == "score"
    assert confusable_reason("ab", "cd") == '"ab" and "cd" are visually confusable'
    assert classify_severity(False, True, False, False) == Severity.CRITICAL
    assert classify_severity(True, False, False, False) == Severity.WARNING
    assert classify_severity(False, False, False, False) == Severity.INFO


def test_ascii_file_has_nothing_to_report():
    analysis = _analyze("export const value = 1;\n")
    assert analysis.identifiers == []
    assert analysis.confusable_pairs == []

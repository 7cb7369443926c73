import pytest

from tstrace.analysis.enums import is_simple_literal, resolve_enum_members
from tstrace.errors import NotATypeError
from tstrace.lang.typescript import DeclKind
from tstrace.parsers import SourceFile


ENUMS = """
export enum Flags { None = 0, A = 1, B = 2, C = 4 }

export enum Direction {
  Up = 1,
  Down,
  Left,
}

export const enum Color { Red = "RED", Green = `GREEN` }

declare enum Ambient { First, Second }

const size = 3;
export enum Mixed { A = "a".length, B, C = size * 2, D = 10, E }

export enum Hex { Mask = 0xff, Next }

export type NotAnEnum = string;
"""


@pytest.fixture()
def index(make_project):
    return make_project({"src/enums.ts": ENUMS})


def _enum(index, find_decl, name):
    return resolve_enum_members(find_decl(index, "src/enums.ts", name, DeclKind.ENUM))


def _values(analysis):
    return [m.value for m in analysis.members]


def test_explicit_numeric_values(index, find_decl):
    flags = _enum(index, find_decl, "Flags")

    assert [m.name for m in flags.members] == ["None", "A", "B", "C"]
    assert _values(flags) == ["0", "1", "2", "4"]
    assert all(m.is_computed is False for m in flags.members)
    assert flags.is_const is False


def test_auto_increment_continues_from_numeric_initializer(index, find_decl):
    direction = _enum(index, find_decl, "Direction")

    assert _values(direction) == ["1", "2", "3"]
    assert [m.line for m in direction.members] == [4, 5, 6]


def test_string_members_keep_their_literal(index, find_decl):
    color = _enum(index, find_decl, "Color")

    assert color.is_const is True
    assert _values(color) == ['"RED"', "`GREEN`"]
    assert all(m.is_computed is False for m in color.members)


def test_declare_enum_starts_at_zero(index, find_decl):
    ambient = _enum(index, find_decl, "Ambient")

    assert ambient.is_declare is True
    assert _values(ambient) == ["0", "1"]


def test_computed_members_break_auto_increment(index, find_decl):
    mixed = _enum(index, find_decl, "Mixed")

    assert _values(mixed) == ['"a".length', "NaN", "size * 2", "10", "11"]
    assert [m.is_computed for m in mixed.members] == [True, False, True, False, False]


def test_hex_initializer(index, find_decl):
    assert _values(_enum(index, find_decl, "Hex")) == ["0xff", "256"]


def test_symbol_ref(index, find_decl):
    flags = _enum(index, find_decl, "Flags")
    assert (flags.symbol.name, flags.symbol.file_path, flags.symbol.line) == ("Flags", "src/enums.ts", 1)


def test_non_enum_rejected(index, find_decl):
    with pytest.raises(NotATypeError) as exc:
        resolve_enum_members(find_decl(index, "src/enums.ts", "NotAnEnum"))
    assert "an enum" in str(exc.value)


def test_simple_literal_shapes():
    sf = SourceFile("/p/x.ts", "enum E { A = -1, B = `x${y}`, C = 'c' }\n", "x.ts")
    values = []
    stack = [sf.root]
    while stack:
        node = stack.pop()
        if node.type == "enum_assignment":
            values.append(node.child_by_field_name("value"))
        stack.extend(reversed(node.named_children))

    assert [is_simple_literal(v) for v in values] == [True, False, True]

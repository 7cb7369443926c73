from tstrace.lang.typescript import DeclKind, collect_module_info
from tstrace.parsers import SourceFile

SOURCE = """\
import React, { useState as useLocal, type FC } from "react";
import * as path from "path";
import Alias = Shapes.Circle;

export interface Shape {
  readonly id: string;
  area(): number;
  [key: string]: unknown;
}

export abstract class Base<T extends object = {}> implements Shape {
  readonly id = "base";
  static count = 0;
  constructor(private readonly name: string, size: number) {}
  abstract area(): number;
  get label(): string { return this.name; }
  set label(value: string) {}
}

export default function main(argv: string[]): void {
  const [first, ...rest] = argv;
  for (const item of rest) {
    console.log(item);
  }
}

export const enum Direction { Up = 1, Down }
type Point = { x: number; y: number };
export { Point as Coordinates };
export * from "./other";
export * as utils from "./utils";

namespace Shapes.Inner {
  export const depth = 2;
}
"""


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #
def _collect(text: str = SOURCE, name: str = "sample.ts"):
    sf = SourceFile(f"/project/{name}", text, name)
    return sf, collect_module_info(sf)


def _by_name(info, name, kind=None):
    return [d for d in info.declarations if d.name == name and (kind is None or d.kind == kind)]


# --------------------------------------------------------------------------- #
# Tests
# --------------------------------------------------------------------------- #
def test_imports_are_bound():
    _sf, info = _collect()
    imports = {b.local: b for b in info.imports}

    assert imports["React"].imported == "default"
    assert imports["React"].specifier == "react"
    assert imports["useLocal"].imported == "useState"
    assert imports["FC"].type_only is True
    assert imports["path"].imported == "*"
    assert imports["Alias"].entity == "Shapes.Circle"
    assert imports["Alias"].specifier is None


def test_top_level_declarations():
    _sf, info = _collect()
    top = {d.name: d for d in info.top_level(*DeclKind)}

    assert top["Shape"].kind == DeclKind.INTERFACE
    assert top["Shape"].exported is True
    assert top["Base"].kind == DeclKind.CLASS
    assert "abstract" in top["Base"].modifiers
    assert top["main"].kind == DeclKind.FUNCTION
    assert top["main"].default_export is True
    assert top["Direction"].kind == DeclKind.ENUM
    assert "const" in top["Direction"].modifiers
    assert top["Point"].kind == DeclKind.TYPE
    assert top["Point"].exported is False
    assert top["Shapes"].kind == DeclKind.NAMESPACE


def test_class_members_and_parameter_properties():
    _sf, info = _collect()
    base = _by_name(info, "Base", DeclKind.CLASS)[0]
    kinds = [(m.name, m.kind) for m in base.members]

    assert ("id", DeclKind.PROPERTY) in kinds
    assert ("count", DeclKind.PROPERTY) in kinds
    assert ("constructor", DeclKind.CONSTRUCTOR) in kinds
    assert ("area", DeclKind.METHOD) in kinds
    assert ("label", DeclKind.GETTER) in kinds
    assert ("label", DeclKind.SETTER) in kinds
    # `private readonly name` becomes a property, plain `size` does not
    assert ("name", DeclKind.PROPERTY) in kinds
    assert ("size", DeclKind.PROPERTY) not in kinds

    count = next(m for m in base.members if m.name == "count")
    assert count.is_static
    area = next(m for m in base.members if m.name == "area")
    assert "abstract" in area.modifiers


def test_interface_members_and_signatures():
    _sf, info = _collect()
    shape = _by_name(info, "Shape", DeclKind.INTERFACE)[0]

    assert [(m.name, m.kind) for m in shape.members] == [
        ("id", DeclKind.PROPERTY),
        ("area", DeclKind.METHOD),
    ]
    assert [s.type for s in shape.signatures] == ["index_signature"]


def test_enum_members():
    _sf, info = _collect()
    direction = _by_name(info, "Direction", DeclKind.ENUM)[0]
    assert [m.name for m in direction.members] == ["Up", "Down"]
    assert all(m.kind == DeclKind.ENUM_MEMBER for m in direction.members)


def test_exports_and_reexports():
    _sf, info = _collect()
    exports = info.body.exports

    assert exports["default"][0].local == "main"
    assert exports["Coordinates"][0].local == "Point"
    assert exports["utils"][0].source == "./utils"
    assert exports["utils"][0].imported == "*"
    assert [spec for spec, _node in info.body.export_stars] == ["./other"]


def test_destructured_and_loop_bindings_are_scoped():
    _sf, info = _collect()
    first = _by_name(info, "first", DeclKind.VARIABLE)
    rest = _by_name(info, "rest", DeclKind.VARIABLE)
    item = _by_name(info, "item", DeclKind.VARIABLE)

    assert first and rest and item
    assert not first[0].is_top_level
    assert "const" in item[0].modifiers


def test_nested_namespace_exports_inner_part():
    _sf, info = _collect()
    inner = _by_name(info, "Inner", DeclKind.NAMESPACE)[0]
    outer = _by_name(info, "Shapes", DeclKind.NAMESPACE)[0]

    assert "Inner" in outer.body.exports
    assert "depth" in inner.body.exports


def test_ambient_module_members_are_exported():
    text = """\
declare module "legacy-lib" {
  function legacy(value: string): number;
  interface Options { verbose: boolean }
}
"""
    _sf, info = _collect(text, "types.d.ts")
    bodies = info.ambient_modules["legacy-lib"]

    assert len(bodies) == 1
    assert set(bodies[0].exports) == {"legacy", "Options"}


def test_tsx_files_parse_with_jsx():
    text = """\
export function Button(props: { label: string }) {
  return <button>{props.label}</button>;
}
"""
    sf, info = _collect(text, "button.tsx")
    assert not sf.root.has_error
    assert _by_name(info, "Button", DeclKind.FUNCTION)

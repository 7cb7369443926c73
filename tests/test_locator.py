import json

import pytest

from tstrace.errors import SymbolNotFoundError
from tstrace.lang.typescript import DeclKind
from tstrace.locator import SymbolLocator


FILES = {
    "src/models.ts": """
        export interface Config { name: string }
        export class Config {
          load(): void {}
        }
        export function build(cfg: Config): Config { return cfg; }
    """,
    "src/service.ts": """
        import { build as make } from "./models";

        export class Service {
          static create(): Service { return new Service(); }
          run(): void { make({ name: "x" } as any); }
          name = "service";
        }

        export function build(): void {}
        export function build2(): void {}
    """,
    "src/dup.ts": """
        function helper(): number { return 1; }

        namespace Inner {
          export function helper(): number { return 2; }
        }
    """,
}


@pytest.fixture()
def index(make_project):
    return make_project(FILES)


def test_function_preferred_over_other_kinds(index):
    located = SymbolLocator(index).locate("build")

    assert located.declaration.kind == DeclKind.FUNCTION
    assert located.declaration.rel_path == "src/models.ts"
    assert located.scanned_files == 2
    assert located.unresolved is False


def test_class_preferred_over_interface(index):
    located = SymbolLocator(index).locate("Config", file_hint="src/models.ts")
    assert located.declaration.kind == DeclKind.CLASS


def test_class_members_when_no_top_level(index):
    locator = SymbolLocator(index)

    run = locator.locate("run").declaration
    assert run.kind == DeclKind.METHOD
    assert run.container.name == "Service"

    create = locator.locate("create").declaration
    assert create.is_static


def test_line_hint_selects_declaration(index):
    locator = SymbolLocator(index)

    nested = locator.locate("helper", file_hint="src/dup.ts", line=4)
    assert nested.declaration.line == 4
    assert nested.line_hint_ignored is False

    missed = locator.locate("helper", file_hint="src/dup.ts", line=40)
    assert missed.declaration.line == 1
    assert missed.line_hint_ignored is True


def test_import_followed_to_real_declaration(index):
    located = SymbolLocator(index).locate("make", file_hint="src/service.ts")

    assert located.declaration.kind == DeclKind.FUNCTION
    assert located.declaration.name == "build"
    assert located.declaration.rel_path == "src/models.ts"


def test_ignored_files_are_skipped(index):
    is_ignored = index.file_filter(exclude_patterns=["src/models.ts"])
    located = SymbolLocator(index).locate("build", is_ignored=is_ignored)
    assert located.declaration.rel_path == "src/service.ts"


def test_symbol_not_found(index):
    with pytest.raises(SymbolNotFoundError) as exc:
        SymbolLocator(index).locate("doesNotExist")

    assert exc.value.scanned_files == 3
    assert "doesNotExist" in str(exc.value)


def test_missing_hint_file(index):
    with pytest.raises(SymbolNotFoundError) as exc:
        SymbolLocator(index).locate("build", file_hint="src/nope.ts")
    assert exc.value.scanned_files == 0


def test_unresolved_package_import(make_project):
    index = make_project(
        {
            "src/app.ts": """
                import { missing } from "ghost-package";
                missing();
            """,
        }
    )
    located = SymbolLocator(index).locate("missing", file_hint="src/app.ts")

    assert located.declaration.kind == DeclKind.IMPORT
    assert located.unresolved is True


def test_import_resolved_through_package_exports(make_project):
    index = make_project(
        {
            "node_modules/modern/package.json": json.dumps({"exports": {".": {"types": "./lib.d.ts"}}}),
            "node_modules/modern/lib.d.ts": "export declare function feature(): void;\n",
            "src/app.ts": """
                import { feature } from "modern";
                feature();
            """,
        }
    )
    located = SymbolLocator(index).locate("feature", file_hint="src/app.ts")

    assert located.declaration.kind == DeclKind.FUNCTION
    assert located.declaration.file.is_external
    assert located.unresolved is False


def test_import_resolved_through_ambient_module(make_project):
    index = make_project(
        {
            "types/legacy.d.ts": """
                declare module "legacy-lib" {
                  export function legacy(value: string): number;
                }
            """,
            "src/app.ts": """
                import { legacy } from "legacy-lib";
                legacy("x");
            """,
        }
    )
    located = SymbolLocator(index).locate("legacy", file_hint="src/app.ts")

    assert located.declaration.kind == DeclKind.FUNCTION
    assert located.declaration.rel_path == "types/legacy.d.ts"

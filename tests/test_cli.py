import json

import pytest
from click.testing import CliRunner

from conftest import write_files
from tstrace.cli import cli, load_settings
from tstrace.project import invalidate_project_index


FILES = {
    "tsconfig.json": """
        {
          // comments are allowed
          "compilerOptions": { "moduleResolution": "bundler", "baseUrl": "." },
          "include": ["src"]
        }
    """,
    "src/lib.ts": """
        export enum Level { Low = 1, High }
        export function used(): Level { return Level.Low; }
        export function unused(): void {}
        function hidden(): void {}
    """,
    "src/main.ts": """
        import { used } from "./lib";

        used();
        const ñame = 1;
    """,
}


@pytest.fixture(autouse=True)
def _fresh_cache():
    yield
    invalidate_project_index()


@pytest.fixture()
def root(tmp_path):
    write_files(tmp_path, FILES)
    return str(tmp_path)


def _run(*args):
    result = CliRunner().invoke(cli, list(args))
    return result, (json.loads(result.output) if result.output.startswith("{") else None)


def test_trace(root):
    result, payload = _run("trace", "used", "--root", root, "--only", "references")

    assert result.exit_code == 0, result.output
    assert payload["symbol"] == "used"
    assert [(r["file"], r["line"]) for r in payload["references"]] == [("src/main.ts", 1), ("src/main.ts", 3)]
    assert "definition" not in payload


def test_trace_not_found_exits_non_zero(root):
    result, payload = _run("trace", "ghost", "--root", root)

    assert result.exit_code == 1
    assert payload["notFoundReason"] == "symbol-not-found"


def test_trace_exclude_glob(root):
    result, payload = _run("trace", "used", "--root", root, "--exclude", "src/main.ts", "--only", "references")

    assert result.exit_code == 0, result.output
    assert payload["references"] == []


def test_dead_code(root):
    result, payload = _run("dead-code", "--root", root)

    assert result.exit_code == 0, result.output
    assert [d["name"] for d in payload["deadCode"]] == ["unused"]


def test_dead_code_all_kinds(root):
    result, payload = _run("dead-code", "--root", root, "--all", "--kind", "function")

    assert result.exit_code == 0, result.output
    assert [(d["name"], d["exported"]) for d in payload["deadCode"]] == [("unused", True), ("hidden", False)]


def test_enum(root):
    result, payload = _run("enum", "Level", "--root", root)

    assert result.exit_code == 0, result.output
    assert [m["value"] for m in payload["members"]] == ["1", "2"]


def test_enum_rejects_non_enum(root):
    result, _payload = _run("enum", "used", "--root", root)

    assert result.exit_code != 0
    assert "not an enum" in result.output


def test_unicode(root):
    result, payload = _run("unicode", "src/main.ts", "--root", root)

    assert result.exit_code == 0, result.output
    assert [i["name"] for i in payload["identifiers"]] == ["ñame"]


def test_unicode_missing_file(root):
    result, _payload = _run("unicode", "src/nope.ts", "--root", root)

    assert result.exit_code == 1
    assert "not part of the project" in result.output


def test_debug(root):
    result, payload = _run("debug", "--root", root)

    assert result.exit_code == 0, result.output
    assert payload["tsconfig"].endswith("tsconfig.json")
    assert payload["moduleResolution"] == "bundler"
    assert payload["sourceFileCount"] == 2
    assert payload["sampleFiles"] == ["src/lib.ts", "src/main.ts"]


def test_load_settings_reads_env_prefix(monkeypatch):
    monkeypatch.setenv("TSTRACE_ROOT_PATH", "/tmp/project")
    assert load_settings(env_prefix="TSTRACE_").root_path == "/tmp/project"

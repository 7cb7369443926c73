import json

import pytest

from tstrace.settings import ProjectSettings, ToolOutput, ToolSettings
from tstrace.tools import FindDeadCodeTool, TraceSymbolTool


FILES = {
    "src/lib.ts": """
        export function used(): number { return 1; }
        export function unused(): number { return 2; }
    """,
    "src/main.ts": """
        import { used } from "./lib";

        export function main(): number {
          return used();
        }
        main();
    """,
}


@pytest.fixture()
def root(make_project):
    return make_project(FILES).root_dir


@pytest.mark.asyncio
async def test_trace_schema():
    schema = await TraceSymbolTool().get_openai_schema()

    assert schema["name"] == "trace_symbol"
    assert schema["parameters"]["required"] == ["symbol"]
    props = schema["parameters"]["properties"]
    assert props["depth"]["default"] == 3
    assert "type-flows" in props["include"]["items"]["enum"]


@pytest.mark.asyncio
async def test_trace_tool_uses_camel_case_fields(root):
    out = await TraceSymbolTool().execute(
        {"rootDir": root, "symbol": "used", "file": "src/lib.ts", "include": ["definitions", "references"]}
    )
    payload = json.loads(out)

    assert payload["definition"]["file"] == "src/lib.ts"
    assert [(r["file"], r["line"], r["kind"]) for r in payload["references"]] == [
        ("src/main.ts", 1, "import"),
        ("src/main.ts", 4, "call"),
    ]
    assert payload["summary"]["totalReferences"] == 2
    assert "calls" not in payload


@pytest.mark.asyncio
async def test_trace_tool_reports_not_found(root):
    payload = json.loads(await TraceSymbolTool().execute({"rootDir": root, "symbol": "ghost"}))

    assert payload["notFoundReason"] == "symbol-not-found"
    assert payload["errorMessage"].startswith("Symbol 'ghost' not found in project (2 files scanned).")


@pytest.mark.asyncio
async def test_trace_tool_without_root_reports_no_project():
    payload = json.loads(await TraceSymbolTool().execute({"symbol": "used"}))
    assert payload["notFoundReason"] == "no-project"


@pytest.mark.asyncio
async def test_dead_code_tool(root):
    payload = json.loads(await FindDeadCodeTool(ProjectSettings(root_path=root)).execute({}))

    assert [(d["name"], d["kind"], d["confidence"]) for d in payload["deadCode"]] == [
        ("unused", "function", "high")
    ]
    assert payload["summary"]["totalDead"] == 1


@pytest.mark.asyncio
async def test_dead_code_tool_structured_text(root):
    settings = ProjectSettings(tools=ToolSettings(outputs={"find_dead_code": ToolOutput.STRUCTURED_TEXT}))
    out = await FindDeadCodeTool(settings).execute({"rootDir": root, "limit": 5})

    assert "deadCode: " in out
    assert '"name": "unused"' in out

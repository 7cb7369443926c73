import json

import pytest

from tstrace.errors import NoProjectError, SymbolNotFoundError
from tstrace.settings import ProjectSettings, ToolOutput, ToolSettings
from tstrace.tools import (
    AliasesTool,
    CallHierarchyTool,
    EnumMembersTool,
    MembersTool,
    ReferencesTool,
    ToolRegistry,
    TypeGuardsTool,
    TypeHierarchyTool,
    UnicodeIdentifiersTool,
)


FILES = {
    "src/models.ts": """
        export interface Entity {
          id: string;
        }

        export class User implements Entity {
          id = "";
          greet(): string { return "hi"; }
        }

        export enum Role { Admin = 1, Guest }
    """,
    "src/app.ts": """
        import { User as Person, Role } from "./models";

        export function start(): Person {
          const user = new Person();
          isAdmin(Role.Admin);
          return user;
        }

        export function isAdmin(role: Role | undefined): boolean {
          if (typeof role === "number") {
            return role === Role.Admin;
          }
          return false;
        }
    """,
}


@pytest.fixture()
def root(make_project):
    index = make_project(FILES)
    return index.root_dir


# ---------------------------------------------------------------------------
# registry
# ---------------------------------------------------------------------------


def test_registry_has_every_tool():
    names = set(ToolRegistry.get_tools())
    assert {
        "trace_symbol",
        "find_dead_code",
        "call_hierarchy",
        "type_flows",
        "references",
        "type_hierarchy",
        "type_guards",
        "callbacks",
        "unicode_identifiers",
        "enum_members",
        "members",
        "aliases",
    } <= names


def test_disabled_tools_are_not_instantiated():
    settings = ProjectSettings(tools=ToolSettings(disabled={"members", "aliases"}))
    enabled = {t.tool_name for t in ToolRegistry.get_enabled_tools(settings)}

    assert "members" not in enabled
    assert "aliases" not in enabled
    assert "references" in enabled


@pytest.mark.asyncio
async def test_symbol_tool_schemas():
    for tool_cls in (ReferencesTool, TypeHierarchyTool, MembersTool, AliasesTool):
        schema = await tool_cls().get_openai_schema()
        assert schema["name"] == tool_cls.tool_name
        assert schema["parameters"]["required"] == ["symbol"]
        assert set(schema["parameters"]["properties"]) >= {"rootDir", "symbol", "file", "line"}


@pytest.mark.asyncio
async def test_call_hierarchy_schema_has_depth():
    schema = await CallHierarchyTool().get_openai_schema()
    assert schema["parameters"]["properties"]["depth"]["type"] == "integer"


# ---------------------------------------------------------------------------
# execution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_references_tool_returns_json(root):
    out = await ReferencesTool().execute({"rootDir": root, "symbol": "User", "file": "src/models.ts"})
    payload = json.loads(out)

    assert payload["fileCount"] == 1
    assert payload["files"][0]["filePath"] == "src/app.ts"
    assert payload["files"][0]["lines"] == [1, 3, 4]


@pytest.mark.asyncio
async def test_request_can_be_a_json_string(root):
    tool = TypeHierarchyTool()
    out = await tool.execute(json.dumps({"root_dir": root, "symbol": "User"}))
    payload = json.loads(out)

    assert payload["symbol"]["name"] == "User"
    assert [i["name"] for i in payload["implements"]] == ["Entity"]


@pytest.mark.asyncio
async def test_root_falls_back_to_settings(root):
    tool = EnumMembersTool(ProjectSettings(root_path=root))
    payload = json.loads(await tool.execute({"symbol": "Role"}))

    assert [(m["name"], m["value"]) for m in payload["members"]] == [("Admin", "1"), ("Guest", "2")]
    assert "isConst" in payload


@pytest.mark.asyncio
async def test_missing_root_raises():
    with pytest.raises(NoProjectError):
        await AliasesTool().execute({"symbol": "User"})


@pytest.mark.asyncio
async def test_unknown_symbol_raises(root):
    with pytest.raises(SymbolNotFoundError):
        await ReferencesTool().execute({"rootDir": root, "symbol": "Nope"})


@pytest.mark.asyncio
async def test_call_hierarchy_depth(root):
    out = await CallHierarchyTool().execute({"rootDir": root, "symbol": "start", "depth": 1})
    payload = json.loads(out)

    assert payload["symbol"]["name"] == "start"
    assert "isAdmin" in [c["target"]["name"] for c in payload["outgoingCalls"]]


@pytest.mark.asyncio
async def test_type_guards_tool(root):
    payload = json.loads(await TypeGuardsTool().execute({"rootDir": root, "symbol": "isAdmin"}))
    assert "typeof" in [g["kind"] for g in payload["guards"]]


@pytest.mark.asyncio
async def test_aliases_tool(root):
    payload = json.loads(await AliasesTool().execute({"rootDir": root, "symbol": "User", "file": "src/models.ts"}))
    assert [(a["name"], a["kind"]) for a in payload["aliases"]] == [("Person", "import-rename")]


# ---------------------------------------------------------------------------
# output formats
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_members_default_to_structured_text(root):
    out = await MembersTool().execute({"rootDir": root, "symbol": "User"})

    records = out.split("\n---\n")
    assert len(records) == 2
    assert records[0].splitlines() == [
        "kind: property",
        "line: 6",
        "modifiers: []",
        "name: id",
        "type: string",
    ]
    assert "name: greet" in records[1]


@pytest.mark.asyncio
async def test_output_override_to_json(root):
    settings = ProjectSettings(tools=ToolSettings(outputs={"members": ToolOutput.JSON}))
    payload = json.loads(await MembersTool(settings).execute({"rootDir": root, "symbol": "User"}))

    assert payload["symbol"]["name"] == "User"
    assert [m["name"] for m in payload["members"]] == ["id", "greet"]


@pytest.mark.asyncio
async def test_unicode_tool(root):
    tool = UnicodeIdentifiersTool()
    payload = json.loads(await tool.execute({"rootDir": root, "file": "src/app.ts"}))
    assert payload["filePath"] == "src/app.ts"
    assert payload.get("identifiers", []) == []

    with pytest.raises(ValueError):
        await tool.execute({"rootDir": root, "file": "src/missing.ts"})

from typing import Any

from tstrace.analysis.enums import resolve_enum_members
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class EnumMembersTool(BaseTool):
    tool_name = "enum_members"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        _index, decl = self.locate(req)
        return self.encode_output(resolve_enum_members(decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "List the members of an enum with their initializer text or auto-incremented "
                "value, and whether each value is computed."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

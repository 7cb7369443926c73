from typing import Any

from tstrace.analysis.members import resolve_members
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class MembersTool(BaseTool):
    tool_name = "members"
    tool_input = SymbolReq
    default_output = ToolOutput.STRUCTURED_TEXT

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        result = resolve_members(index, decl)
        if self.get_output_format() == ToolOutput.STRUCTURED_TEXT:
            return self.encode_output(result.members)
        return self.encode_output(result)

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "List the constructor, properties, methods, accessors and signatures of a "
                "class or interface in source order, with types and modifiers."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

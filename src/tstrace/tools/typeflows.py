from typing import Any

from tstrace.analysis.type_flows import resolve_type_flows
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class TypeFlowsTool(BaseTool):
    tool_name = "type_flows"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        return self.encode_output(resolve_type_flows(index, decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "For a function or method, list each parameter and the return type together "
                "with the user-defined classes, interfaces, type aliases and enums they refer to."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

from typing import Any

from tstrace.analysis.callbacks import resolve_callbacks
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class CallbacksTool(BaseTool):
    tool_name = "callbacks"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        return self.encode_output(resolve_callbacks(index, decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Show where a function is passed as an argument to other calls, which of "
                "its own parameters accept functions, and whether it returns a function."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

from typing import Any

from tstrace.analysis.references import find_references
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class ReferencesTool(BaseTool):
    tool_name = "references"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        return self.encode_output(find_references(index, decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Find every place in the project that uses a symbol, grouped by file with "
                "sorted line numbers. The declaration itself is not counted."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

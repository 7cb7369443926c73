from typing import Any

from tstrace.analysis.aliases import resolve_aliases
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class AliasesTool(BaseTool):
    tool_name = "aliases"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        return self.encode_output(resolve_aliases(index, decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Find the other names a symbol is known by: renamed imports and exports, "
                "namespace imports, `import X = NS.Y` aliases and the rename chains between them."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

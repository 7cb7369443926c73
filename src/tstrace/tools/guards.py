from typing import Any

from tstrace.analysis.guards import resolve_type_guards
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class TypeGuardsTool(BaseTool):
    tool_name = "type_guards"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        _index, decl = self.locate(req)
        return self.encode_output(resolve_type_guards(decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "List the narrowing constructs inside a function: typeof, instanceof, `in`, "
                "Array.isArray, nullish and equality checks, discriminants, user-defined type "
                "predicates and assertion signatures, and early returns."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

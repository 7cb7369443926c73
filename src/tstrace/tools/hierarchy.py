from typing import Any

from tstrace.analysis.hierarchy import resolve_type_hierarchy
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class TypeHierarchyTool(BaseTool):
    tool_name = "type_hierarchy"
    tool_input = SymbolReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        return self.encode_output(resolve_type_hierarchy(index, decl))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "For a class or interface, return its base class, implemented or extended "
                "interfaces, direct subtypes and generic type parameters."
            ),
            "parameters": {
                "type": "object",
                "properties": SYMBOL_PROPERTIES,
                "required": ["symbol"],
            },
        }

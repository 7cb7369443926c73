from typing import Any, Optional

from pydantic import Field

from tstrace.analysis.calls import resolve_call_hierarchy
from tstrace.settings import ToolOutput
from .base import SYMBOL_PROPERTIES, BaseTool, SymbolReq


class CallHierarchyReq(SymbolReq):
    depth: Optional[int] = Field(
        default=None,
        description="Hop budget: 1 for direct edges, N for N levels, -1 for unlimited.",
    )


class CallHierarchyTool(BaseTool):
    tool_name = "call_hierarchy"
    tool_input = CallHierarchyReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index, decl = self.locate(req)
        depth = req.depth if req.depth is not None else self.settings.trace.call_depth
        return self.encode_output(resolve_call_hierarchy(index, decl, depth))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Return the outgoing calls and incoming callers of a function, method or "
                "constructor. Recursive edges are marked `cyclic` and are not expanded."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    **SYMBOL_PROPERTIES,
                    "depth": {
                        "type": "integer",
                        "description": "Hop budget: 1 for direct edges, N for N levels, -1 for unlimited.",
                        "default": self.settings.trace.call_depth,
                    },
                },
                "required": ["symbol"],
            },
        }

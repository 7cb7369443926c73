from typing import Any

from tstrace.settings import ToolOutput
from tstrace.trace import DeadCodeParams, find_dead_code
from .base import BaseTool


class FindDeadCodeTool(BaseTool):
    tool_name = "find_dead_code"
    tool_input = DeadCodeParams
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        params = self.parse_input(req)
        if params.root_dir is None and self.settings.root_path:
            params.root_dir = self.settings.root_path
        return self.encode_output(find_dead_code(params, self.settings))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "List exported declarations that no other module imports or references. "
                "With exportedOnly=false, also reports non-exported top-level declarations "
                "that are never used in their own file."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "rootDir": {"type": "string", "description": "Absolute path of the project root."},
                    "exportedOnly": {
                        "type": "boolean",
                        "description": "Only check exported declarations.",
                        "default": True,
                    },
                    "excludeTests": {
                        "type": "boolean",
                        "description": "Skip test and spec files.",
                        "default": True,
                    },
                    "limit": {"type": "integer", "description": "Maximum items to report.", "default": 100},
                    "kinds": {
                        "type": "array",
                        "items": {
                            "type": "string",
                            "enum": ["function", "class", "interface", "type", "variable", "constant", "enum"],
                        },
                        "description": "Declaration kinds to consider.",
                    },
                    "timeoutMs": {"type": "integer", "description": "Scan budget in milliseconds."},
                    "includePatterns": {"type": "array", "items": {"type": "string"}},
                    "excludePatterns": {"type": "array", "items": {"type": "string"}},
                },
            },
        }

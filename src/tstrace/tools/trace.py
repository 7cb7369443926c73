from typing import Any

from tstrace.settings import ToolOutput
from tstrace.trace import TraceSymbolParams, trace_symbol
from .base import BaseTool


class TraceSymbolTool(BaseTool):
    """Full trace of one symbol: definition, references, calls, types and impact."""

    tool_name = "trace_symbol"
    tool_input = TraceSymbolParams
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        params = self.parse_input(req)
        if params.root_dir is None and self.settings.root_path:
            params.root_dir = self.settings.root_path
        result = trace_symbol(params, self.settings)
        return self.encode_output(result)

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Trace a TypeScript symbol across the project. Returns its definition, every "
                "reference with its kind, re-exports, the call hierarchy for functions and "
                "methods, parameter and return type provenance, and the class/interface "
                "hierarchy. Failures are reported through `notFoundReason` and `errorMessage`."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "rootDir": {"type": "string", "description": "Absolute path of the project root."},
                    "symbol": {"type": "string", "description": "Name of the symbol to trace."},
                    "file": {
                        "type": "string",
                        "description": "File containing the symbol, relative to rootDir.",
                    },
                    "line": {"type": "integer", "description": "1-indexed line of the declaration."},
                    "column": {"type": "integer", "description": "1-indexed column of the declaration."},
                    "depth": {
                        "type": "integer",
                        "description": "Call hierarchy depth. -1 means unlimited.",
                        "default": 3,
                    },
                    "include": {
                        "type": "array",
                        "items": {
                            "type": "string",
                            "enum": [
                                "all",
                                "definitions",
                                "references",
                                "reexports",
                                "calls",
                                "type-flows",
                                "hierarchy",
                            ],
                        },
                        "description": "Sections to compute. Defaults to all.",
                    },
                    "maxReferences": {
                        "type": "integer",
                        "description": "Maximum number of references to return.",
                        "default": 500,
                    },
                    "timeoutMs": {"type": "integer", "description": "Requested time budget in milliseconds."},
                    "forceRefresh": {"type": "boolean", "description": "Rebuild the project index first."},
                    "includePatterns": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Only analyze files matching these globs.",
                    },
                    "excludePatterns": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Skip files matching these globs.",
                    },
                    "includeImpact": {
                        "type": "boolean",
                        "description": "Add direct and transitive dependents with a risk level.",
                    },
                },
                "required": ["symbol"],
            },
        }

import os
from typing import Any

from pydantic import Field

from tstrace.analysis.unicode import resolve_unicode_identifiers
from tstrace.settings import ToolOutput
from .base import BaseTool, ToolReq


class UnicodeIdentifiersReq(ToolReq):
    file: str = Field(description="File to inspect, relative to the project root.")


class UnicodeIdentifiersTool(BaseTool):
    tool_name = "unicode_identifiers"
    tool_input = UnicodeIdentifiersReq
    default_output = ToolOutput.JSON

    async def execute(self, req: Any) -> str:
        req = self.parse_input(req)
        index = self.get_index(req)
        path = req.file if os.path.isabs(req.file) else os.path.join(index.root_dir, req.file)
        sf = index.ensure_file(path)
        if sf is None:
            raise ValueError(f"File '{req.file}' is not part of the project at {index.root_dir}")
        return self.encode_output(resolve_unicode_identifiers(sf))

    async def get_openai_schema(self) -> dict:
        return {
            "name": self.tool_name,
            "description": (
                "Report declaration names in a file that contain non-ASCII characters: their "
                "scripts, mixed-script names, bidi overrides, zero-width characters and "
                "identifiers that look alike but differ."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "rootDir": {"type": "string", "description": "Absolute path of the project root."},
                    "file": {"type": "string", "description": "File to inspect, relative to rootDir."},
                },
                "required": ["file"],
            },
        }

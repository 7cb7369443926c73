import inspect
import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tstrace.errors import NoProjectError
from tstrace.helpers import normalize_path
from tstrace.lang.typescript import Declaration
from tstrace.locator import SymbolLocator
from tstrace.project import ProjectIndex, get_project_index
from tstrace.settings import ProjectSettings, ToolOutput
from . import helpers


FENCE_START_RE = re.compile(r"(?m)^`+")


class ToolReq(BaseModel):
    """Common request fields; tools accept snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    root_dir: Optional[str] = Field(
        default=None,
        description="Project root. Falls back to `ProjectSettings.root_path`.",
    )


class SymbolReq(ToolReq):
    symbol: str = Field(description="Name of the symbol to analyze.")
    file: Optional[str] = Field(
        default=None,
        description="File containing the symbol, relative to the project root.",
    )
    line: Optional[int] = Field(
        default=None, description="1-indexed line used to pick between same-named declarations."
    )


SYMBOL_PROPERTIES = {
    "rootDir": {
        "type": "string",
        "description": "Absolute path of the TypeScript project root.",
    },
    "symbol": {
        "type": "string",
        "description": "Name of the symbol to analyze.",
    },
    "file": {
        "type": "string",
        "description": "File containing the symbol, relative to rootDir. Narrows the search.",
    },
    "line": {
        "type": "integer",
        "description": "1-indexed line of the declaration when the file has several with this name.",
    },
}


class BaseTool(ABC):
    tool_name: str
    tool_input: Type[BaseModel]
    default_output: ToolOutput = ToolOutput.JSON

    def __init_subclass__(cls, **kw):
        super().__init_subclass__(**kw)
        if not inspect.isabstract(cls):
            ToolRegistry.register_tool(cls)

    def __init__(self, settings: Optional[ProjectSettings] = None):
        self.settings = settings or ProjectSettings()

    @abstractmethod
    async def execute(self, req: Any) -> str:
        """
        Execute the tool for the provided request.
        Request can be:
          - dict-like (preferred),
          - a Pydantic BaseModel,
          - or a JSON string.
        Implementations should parse req via `self.parse_input(req)`.
        """
        pass

    @abstractmethod
    async def get_openai_schema(self) -> dict:
        """
        Returns OpenAI function calling schema.
        """
        pass

    def parse_input(self, req: Any) -> BaseModel:
        """
        Parse an arbitrary request payload into this tool's `tool_input` model.
        - If req is a string: attempt json.loads().
        - If req is a BaseModel: coerce into the tool_input model.
        - Otherwise: validate with Pydantic model_validate(req).
        """
        model_cls: Type[BaseModel] = getattr(self, "tool_input", None)
        if model_cls is None:
            raise TypeError(f"{type(self).__name__} missing tool_input model.")

        data: Any
        if isinstance(req, str):
            try:
                data = json.loads(req)
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"Invalid JSON string for {type(self).__name__}: {e}"
                ) from e
        elif isinstance(req, BaseModel):
            data = req.model_dump(by_alias=True, exclude_none=True)
        else:
            data = req

        return model_cls.model_validate(data)

    # project access
    def root_dir(self, req: ToolReq) -> str:
        root = req.root_dir or self.settings.root_path
        if not root:
            raise NoProjectError()
        return normalize_path(root)

    def get_index(self, req: ToolReq) -> ProjectIndex:
        return get_project_index(self.root_dir(req), self.settings)

    def locate(self, req: SymbolReq) -> tuple[ProjectIndex, Declaration]:
        """Index for the request's root and the declaration it names."""
        index = self.get_index(req)
        located = SymbolLocator(index).locate(req.symbol, file_hint=req.file, line=req.line)
        return index, located.declaration

    def get_output_format(self) -> ToolOutput:
        """
        Resolve the effective output format for this tool:
        - settings.tools.outputs[tool_name] if available
        - otherwise tool's default_output
        """
        return self.settings.tools.outputs.get(self.tool_name) or self.default_output

    def encode_output(self, obj: Any) -> str:
        """
        Convert a tool's execute() return value into a string to send as tool output.
        Uses settings.tools.outputs[tool_name] if provided; otherwise falls back to the tool's
        default_output (usually JSON).
        """
        encoding = self.get_output_format()

        if encoding == ToolOutput.STRUCTURED_TEXT:
            return self.format_structured_text(obj)

        if isinstance(obj, BaseModel):
            payload = obj.model_dump(mode="json", by_alias=True, exclude_none=True)
        else:
            payload = helpers.convert_to_python(obj)
        return json.dumps(payload, ensure_ascii=False)

    def format_structured_text(
        self,
        obj: Any,
        max_scalar_len: int | None = None,
        record_sep: str = "\n---\n",
    ) -> str:
        """
        Structured text: serialize to dict or list[dict] and print key:value pairs.
        Between records, add an object separator line.
        """

        converted = helpers.convert_to_python(obj)

        # Normalize to list[dict]
        records: list[dict[str, Any]] = []
        if isinstance(converted, dict):
            records = [converted]
        elif isinstance(converted, list):
            if all(isinstance(it, dict) for it in converted):
                records = converted
            else:
                records = [{"idx": i, "value": it} for i, it in enumerate(converted)]
        else:
            records = [{"value": converted}]

        chunks: list[str] = []

        for rec in records:
            lines: list[str] = []
            for k, v in sorted(rec.items(), key=lambda kv: kv[0]):
                s = helpers.stringify(v)
                if (
                    max_scalar_len is not None
                    and "\n" not in s
                    and len(s) > max_scalar_len
                ):
                    s = s[:max_scalar_len] + "…"
                if "\n" in s:
                    # choose a fence that won't collide with content
                    max_ticks = 3
                    runs = [len(m.group(0)) for m in FENCE_START_RE.finditer(s)]
                    if any(r >= 3 for r in runs):
                        max_ticks = max(runs) + 1
                    fence = "`" * max(max_ticks, 3)
                    lines.append(f"{k}:\n{fence}text\n{s}\n{fence}")
                else:
                    lines.append(f"{k}: {s}")
            chunks.append("\n".join(lines))

        return record_sep.join(chunks)


class ToolRegistry:
    _tools: Dict[str, Type[BaseTool]] = {}

    @classmethod
    def register_tool(cls, tool_cls: Type["BaseTool"]) -> None:
        name = getattr(tool_cls, "tool_name", None)
        if not name:
            raise ValueError(f"{tool_cls.__name__} missing `tool_name`")
        if name not in cls._tools:
            cls._tools[name] = tool_cls

    @classmethod
    def get_tools(cls) -> Dict[str, Type["BaseTool"]]:
        return cls._tools

    @classmethod
    def get_enabled_tools(cls, settings: Optional[ProjectSettings] = None) -> List["BaseTool"]:
        """Instantiate every registered tool not listed in `settings.tools.disabled`."""
        settings = settings or ProjectSettings()
        return [
            tool_cls(settings)
            for name, tool_cls in cls._tools.items()
            if name not in settings.tools.disabled
        ]

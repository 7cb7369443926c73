from typing import Optional, List
from enum import Enum

from pydantic import Field, BaseModel
from pydantic_settings import BaseSettings


class ToolOutput(str, Enum):
    JSON = "json"
    STRUCTURED_TEXT = "structured_text"


class ToolSettings(BaseSettings):
    """Settings for configuring tools."""

    disabled: set[str] = Field(
        default_factory=set, description="A set of tool names that should be disabled."
    )
    outputs: dict[str, ToolOutput] = Field(
        default_factory=dict,
        description=(
            "Per-tool output format overrides by tool name. "
            'Allowed values: "json", "structured_text".'
        ),
    )


class TraceSettings(BaseModel):
    """Defaults for call graph, type flow and reference tracing."""

    call_depth: int = Field(
        default=1,
        description=(
            "Hop budget for call hierarchy traversal. 1 returns direct calls only, "
            "-1 means unlimited."
        ),
    )
    depth: int = Field(
        default=3,
        description="Default call depth used by the trace_symbol orchestrator.",
    )
    max_references: int = Field(
        default=500,
        description="Maximum number of references returned before the result is marked partial.",
    )
    timeout_ms: int = Field(
        default=30_000,
        description=(
            "Requested wall-clock budget for a trace. The effective timeout is scaled "
            "with project size and capped at 300 seconds."
        ),
    )
    include: set[str] = Field(
        default_factory=lambda: {"all"},
        description=(
            'Sections to compute: "all", "definitions", "references", "reexports", '
            '"calls", "type-flows", "hierarchy".'
        ),
    )
    include_impact: bool = Field(
        default=False,
        description="If True, blast-radius impact analysis is added to trace results.",
    )


class DeadCodeSettings(BaseModel):
    """Defaults for dead code detection."""

    exported_only: bool = Field(
        default=True,
        description="If True, only exported declarations are checked.",
    )
    exclude_tests: bool = Field(
        default=True,
        description="If True, files matching the test naming convention are skipped.",
    )
    limit: int = Field(
        default=100, description="Maximum number of dead code items to report."
    )
    timeout_ms: int = Field(
        default=55_000,
        description="Wall-clock budget for a dead code scan in milliseconds.",
    )
    kinds: set[str] = Field(
        default_factory=lambda: {
            "function",
            "class",
            "interface",
            "type",
            "variable",
            "constant",
            "enum",
        },
        description="Declaration kinds that are considered during the scan.",
    )


class ProjectSettings(BaseSettings):
    """Top-level settings for a project."""

    root_path: Optional[str] = Field(
        default=None,
        description="The root directory of the TypeScript project to be analyzed.",
    )
    ignore_file: str = Field(
        default=".devtoolsignore",
        description="Name of a gitignore-style file at the project root listing paths to skip.",
    )
    ignored_dirs: set[str] = Field(
        default_factory=lambda: {
            ".git",
            ".hg",
            ".svn",
            "node_modules",
            ".idea",
            ".vscode",
            "coverage",
        },
        description="A set of directory names to ignore during project scanning.",
    )
    extensions: List[str] = Field(
        default_factory=lambda: [".ts", ".tsx", ".mts", ".cts"],
        description="File suffixes that are indexed as TypeScript sources (.d.ts is covered by .ts).",
    )
    include_patterns: List[str] = Field(
        default_factory=list,
        description="If non-empty, only files matching one of these gitignore-style patterns are analyzed.",
    )
    exclude_patterns: List[str] = Field(
        default_factory=list,
        description="Additional gitignore-style patterns for files that should be skipped.",
    )
    trace: TraceSettings = Field(
        default_factory=TraceSettings,
        description="Defaults for trace queries.",
    )
    dead_code: DeadCodeSettings = Field(
        default_factory=DeadCodeSettings,
        description="Defaults for dead code detection.",
    )
    tools: ToolSettings = Field(
        default_factory=ToolSettings,
        description="A `ToolSettings` object with tool-specific configurations.",
    )

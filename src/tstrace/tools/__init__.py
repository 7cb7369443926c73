from .base import BaseTool, ToolRegistry
from .aliases import AliasesTool
from .callbacks import CallbacksTool
from .calls import CallHierarchyTool
from .deadcode import FindDeadCodeTool
from .enums import EnumMembersTool
from .guards import TypeGuardsTool
from .hierarchy import TypeHierarchyTool
from .members import MembersTool
from .references import ReferencesTool
from .trace import TraceSymbolTool
from .typeflows import TypeFlowsTool
from .unicode import UnicodeIdentifiersTool

__all__ = [
    "BaseTool",
    "ToolRegistry",
    "AliasesTool",
    "CallbacksTool",
    "CallHierarchyTool",
    "FindDeadCodeTool",
    "EnumMembersTool",
    "TypeGuardsTool",
    "TypeHierarchyTool",
    "MembersTool",
    "ReferencesTool",
    "TraceSymbolTool",
    "TypeFlowsTool",
    "UnicodeIdentifiersTool",
]

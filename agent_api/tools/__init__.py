from .definitions import Tool, ToolDef, ToolInputError, ToolParam
from .registry import ToolRegistry, build_registry

__all__ = ["Tool", "ToolDef", "ToolInputError", "ToolParam", "ToolRegistry", "build_registry"]

"""工具注册表。

按 Agent 类型静态注册：plain（通用工具）与 crypto（链上/行情工具）两套配置，
在构造 Agent 时由调用方选择。
"""

from typing import Dict, Iterable, List, Literal, Optional

from agent_api.domain.exceptions import UnknownToolError, ValidationError
from .crypto import crypto_tools
from .definitions import Tool, ToolDef
from .plain import plain_tools


ToolsetName = Literal["plain", "crypto"]


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name!r} already registered")
        self._tools[tool.name] = tool

    def lookup(self, name: str, call_id: Optional[str] = None) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name, call_id=call_id)
        return tool

    def defs(self) -> List[ToolDef]:
        return [tool.definition for tool in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_registry(toolset: str) -> ToolRegistry:
    """根据名称构造工具注册表。"""

    key = (toolset or "").lower()
    if key == "plain":
        return ToolRegistry(plain_tools())
    if key == "crypto":
        return ToolRegistry(crypto_tools())
    raise ValidationError(code="UNKNOWN_TOOLSET", message=f"Unknown toolset: {toolset!r}")

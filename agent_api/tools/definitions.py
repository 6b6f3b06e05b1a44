"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDef / ToolParam）。
- 在 Agent 循环中执行模型触发的工具调用（Tool.invoke）。
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Union

from agent_api.domain.exceptions import ToolExecutionError
from agent_api.domain.models import ToolCallRequest, ToolResult


ToolFunc = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class ToolInputError(ValueError):
    """工具参数不合法。结果以 error 字段返回给模型，循环继续。"""


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def json_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in self.params.items():
            properties[name] = dict(param.schema or {"type": "string"})
            if param.description:
                properties[name]["description"] = param.description
            if param.required:
                required.append(name)
        return {"type": "object", "properties": properties, "required": required}


@dataclass
class Tool:
    """工具定义 + 执行函数。"""

    definition: ToolDef
    func: ToolFunc = field(repr=False)

    @property
    def name(self) -> str:
        return self.definition.name

    def missing_arguments(self, arguments: Mapping[str, Any]) -> List[str]:
        return [
            name
            for name, param in self.definition.params.items()
            if param.required and arguments.get(name) in (None, "")
        ]

    async def invoke(self, call: ToolCallRequest) -> ToolResult:
        """执行一次工具调用。

        参数缺失或 ToolInputError 视为可恢复错误，写入 ToolResult.error；
        其余异常包装为 ToolExecutionError 向上抛出。
        """

        args = dict(call.arguments or {})
        missing = self.missing_arguments(args)
        if missing:
            return ToolResult(
                call_id=call.call_id,
                tool_name=self.name,
                error=f"missing required argument(s): {', '.join(missing)}",
            )
        try:
            if inspect.iscoroutinefunction(self.func):
                output = await self.func(args)
            else:
                output = await asyncio.to_thread(self.func, args)
        except ToolInputError as exc:
            return ToolResult(call_id=call.call_id, tool_name=self.name, error=str(exc))
        except Exception as exc:  # noqa: BLE001 - 统一转换为工具执行错误
            raise ToolExecutionError(self.name, call.call_id, exc) from exc
        return ToolResult(call_id=call.call_id, tool_name=self.name, output=output)

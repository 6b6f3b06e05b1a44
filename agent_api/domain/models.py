"""统一的消息与工具调用数据模型。

本模块定义 Agent 循环在不同 Provider 之间共享的标准数据结构：

- Message: 一条对话消息（human/agent/tool），创建后不可变。
- ToolCallRequest: 模型发起的一次工具调用请求。
- ToolResult: 工具执行结果，与请求通过 call_id 一一对应。
- ConversationState: 只追加的消息序列，顺序即模型上下文顺序。

所有 Provider 适配器都只依赖这些模型，并负责在各自 API 的 JSON
与这些模型之间做转换。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Literal, Mapping, Optional, Sequence, Tuple, Union


# 消息角色：human（用户）/ agent（模型）/ tool（工具结果）
Role = Literal["human", "agent", "tool"]


@dataclass(frozen=True)
class ContentPart:
    """结构化内容片段（多模态消息中的一段）。"""

    type: Literal["text", "image_url"]
    text: str = ""
    url: Optional[str] = None


Content = Union[str, Sequence[ContentPart]]


@dataclass(frozen=True)
class ToolCallRequest:
    """模型发起的一次工具调用请求。"""

    name: str
    arguments: Mapping[str, Any]
    call_id: str


@dataclass(frozen=True)
class ToolResult:
    """一次工具调用的结果。

    - output: 文本或结构化值（结构化值在发送给模型时序列化为 JSON）。
    - error: 可恢复的工具错误信息；设置时模型会看到错误并可自行修正。
    """

    call_id: str
    tool_name: str
    output: Any = ""
    error: Optional[str] = None

    @property
    def text(self) -> str:
        if self.error:
            return f"Error: {self.error}"
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, ensure_ascii=False, default=str)


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - role: human / agent / tool。
    - content: 纯文本或结构化片段序列。
    - tool_calls: 当 role 为 "agent" 且模型触发工具调用时的请求列表。
    - tool_result: 当 role 为 "tool" 时携带的工具结果。
    - meta: 附加元数据（provider、usage 等），不发送给模型。
    """

    role: Role
    content: Content = ""
    tool_calls: Tuple[ToolCallRequest, ...] = ()
    tool_result: Optional[ToolResult] = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text for part in self.content if part.type == "text")

    @classmethod
    def human(cls, content: Content) -> "Message":
        return cls(role="human", content=content)

    @classmethod
    def agent(cls, content: Content = "", tool_calls: Iterable[ToolCallRequest] = (), **meta: Any) -> "Message":
        return cls(role="agent", content=content, tool_calls=tuple(tool_calls), meta=meta)

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(role="tool", content=result.text, tool_result=result)


class ConversationState:
    """只追加的消息序列。"""

    def __init__(self, messages: Iterable[Message] = ()):
        self._messages: List[Message] = list(messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def snapshot(self) -> "ConversationState":
        return ConversationState(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __repr__(self) -> str:
        return f"ConversationState(messages={len(self._messages)})"

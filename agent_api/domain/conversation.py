import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Protocol

from .models import ConversationState, Message


@dataclass
class ThreadContext:
    thread_id: str
    history: ConversationState = field(default_factory=ConversationState)


class ThreadStore(Protocol):
    """会话线程存储协议。

    get 返回历史快照（不存在时创建空线程）；append 仅在循环成功结束后调用；
    lock 返回该线程的互斥锁，调用方须在 get → 循环 → append 期间持有。
    """

    def get(self, thread_id: str) -> ConversationState:
        ...

    def append(self, thread_id: str, messages: Iterable[Message]) -> None:
        ...

    def lock(self, thread_id: str) -> asyncio.Lock:
        ...

    def thread_ids(self) -> List[str]:
        ...

    def clear(self, thread_id: str) -> None:
        ...

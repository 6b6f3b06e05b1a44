"""会话线程上下文与 ChatAgent。

InMemoryThreadStore 在进程内保存每个线程的消息历史（进程重启即丢失），
并为每个线程提供一把 asyncio.Lock。ChatAgent 在持有线程锁期间完成
读取历史 → 运行循环 → 写回新增消息，保证同一线程的并发请求不会交错。
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from agent_api.agents.loop import AgentLoop, CancelCheck, LoopResult
from agent_api.domain.conversation import ThreadContext, ThreadStore
from agent_api.domain.exceptions import ValidationError
from agent_api.domain.models import ConversationState, Message
from agent_api.infrastructure.logging.logger import logger


DEFAULT_THREAD_ID = "default"


class InMemoryThreadStore(ThreadStore):
    def __init__(self) -> None:
        self._threads: Dict[str, ThreadContext] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, thread_id: str) -> ConversationState:
        ctx = self._threads.get(thread_id)
        if ctx is None:
            ctx = self._threads[thread_id] = ThreadContext(thread_id=thread_id)
        return ctx.history.snapshot()

    def append(self, thread_id: str, messages: Iterable[Message]) -> None:
        ctx = self._threads.get(thread_id)
        if ctx is None:
            ctx = self._threads[thread_id] = ThreadContext(thread_id=thread_id)
        ctx.history.extend(messages)

    def lock(self, thread_id: str) -> asyncio.Lock:
        return self._locks.setdefault(thread_id, asyncio.Lock())

    def thread_ids(self) -> List[str]:
        return list(self._threads)

    def clear(self, thread_id: str) -> None:
        self._threads.pop(thread_id, None)


def validate_prompt(prompt: Any) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError(message="Prompt is required")
    return prompt


class ChatAgent:
    """一个 Agent 类型（flavor）：Provider + 工具集 + 系统提示词 + 线程存储。"""

    def __init__(
        self,
        name: str,
        loop: AgentLoop,
        store: ThreadStore,
        *,
        default_thread_id: str = DEFAULT_THREAD_ID,
    ):
        self.name = name
        self._loop = loop
        self._store = store
        self.default_thread_id = default_thread_id

    def thread_key(self, thread_id: Optional[str]) -> str:
        return f"{self.name}:{thread_id or self.default_thread_id}"

    def history(self, thread_id: Optional[str] = None) -> ConversationState:
        return self._store.get(self.thread_key(thread_id))

    async def run(
        self,
        prompt: Any,
        thread_id: Optional[str] = None,
        *,
        is_cancelled: Optional[CancelCheck] = None,
    ) -> str:
        """执行一次对话，返回最终回答文本。

        Args:
            prompt: 用户输入，缺失或为空时抛出 ValidationError（循环不会启动）。
            thread_id: 线程 ID，缺省使用该 Agent 的默认线程。
            is_cancelled: 可选的取消检查（例如 HTTP 客户端已断开）。
        """

        result = await self.run_loop(prompt, thread_id, is_cancelled=is_cancelled)
        return result.content

    async def run_loop(
        self,
        prompt: Any,
        thread_id: Optional[str] = None,
        *,
        is_cancelled: Optional[CancelCheck] = None,
    ) -> LoopResult:
        text = validate_prompt(prompt)
        key = self.thread_key(thread_id)
        trace_id = f"tr-{uuid4().hex}"
        log_ctx = {"trace_id": trace_id, "agent": self.name, "thread": key}
        start = time.time()

        async with self._store.lock(key):
            history = self._store.get(key)
            logger.info(
                "chat_agent.start",
                extra={"extra": {**log_ctx, "history": len(history)}},
            )
            result = await self._loop.run(
                Message.human(text),
                history.messages,
                is_cancelled=is_cancelled,
                trace_id=trace_id,
            )
            self._store.append(key, result.new_messages)

        logger.info(
            "chat_agent.completed",
            extra={"extra": {
                **log_ctx,
                "rounds": result.rounds,
                "appended": len(result.new_messages),
                "elapsed_seconds": round(time.time() - start, 2),
            }},
        )
        return result

"""工具调用 Agent 循环（显式状态机）。

状态：
    AWAITING_MODEL → 调用模型；响应带工具调用则进入 AWAITING_TOOLS，否则 DONE。
    AWAITING_TOOLS → 按模型给出的顺序逐个执行工具，结果按同一顺序追加，
                     然后回到 AWAITING_MODEL。
    任何 BusinessError → FAILED，异常原样抛给调用方。

模型调用次数达到 max_rounds 后仍需继续时以 LoopLimitExceeded 失败。
"""

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from agent_api.domain.exceptions import (
    BusinessError,
    InvocationTimeout,
    LoopCancelled,
    LoopLimitExceeded,
    ToolExecutionError,
)
from agent_api.domain.models import ConversationState, Message, ToolCallRequest
from agent_api.infrastructure.logging.logger import logger
from agent_api.providers.base import ModelInvoker
from agent_api.tools.registry import ToolRegistry


DEFAULT_MAX_ROUNDS = 25

CancelCheck = Callable[[], Awaitable[bool]]


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOLS = "awaiting_tools"
    DONE = "done"
    FAILED = "failed"


def next_state(message: Message) -> LoopState:
    """模型响应后的状态转移：有工具调用继续执行工具，否则结束。"""

    return LoopState.AWAITING_TOOLS if message.tool_calls else LoopState.DONE


@dataclass
class LoopResult:
    """一次成功的循环执行结果。

    - messages: 完整会话（历史 + 本次新增）。
    - new_messages: 本次循环新增的消息（含 human 提示），用于写回线程。
    - transitions: 经过的状态序列，以 DONE 结尾。
    - rounds: 模型调用次数。
    """

    messages: Tuple[Message, ...]
    new_messages: Tuple[Message, ...]
    transitions: List[LoopState] = field(default_factory=list)
    rounds: int = 0

    @property
    def state(self) -> LoopState:
        return LoopState.DONE

    @property
    def final_message(self) -> Message:
        return self.messages[-1]

    @property
    def content(self) -> str:
        return self.final_message.text


class AgentLoop:
    """驱动 ModelInvoker 与 ToolRegistry 直到得到最终回答。"""

    def __init__(
        self,
        invoker: ModelInvoker,
        registry: ToolRegistry,
        *,
        system_prompt: Optional[str] = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        round_timeout: Optional[float] = None,
        tool_timeout: Optional[float] = None,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be >= 1")
        self._invoker = invoker
        self._registry = registry
        self._system_prompt = system_prompt
        self._max_rounds = max_rounds
        self._round_timeout = round_timeout
        self._tool_timeout = tool_timeout

    @property
    def max_rounds(self) -> int:
        return self._max_rounds

    async def run(
        self,
        prompt: Message,
        history: Sequence[Message] = (),
        *,
        is_cancelled: Optional[CancelCheck] = None,
        trace_id: Optional[str] = None,
    ) -> LoopResult:
        conversation = ConversationState(history)
        seed_len = len(conversation)
        conversation.append(prompt)
        log_ctx = {"trace_id": trace_id, "provider": getattr(self._invoker, "name", "unknown")}

        state = LoopState.AWAITING_MODEL
        transitions: List[LoopState] = [state]
        rounds = 0
        start = time.time()
        try:
            while True:
                if state is LoopState.AWAITING_MODEL:
                    if rounds >= self._max_rounds:
                        raise LoopLimitExceeded(
                            message=f"Model kept requesting tools after {rounds} round-trips",
                            max_rounds=self._max_rounds,
                        )
                    await self._check_cancelled(is_cancelled)
                    reply = await self._infer(conversation.messages)
                    rounds += 1
                    conversation.append(reply)
                    state = next_state(reply)
                    logger.info(
                        "agent_loop.model_reply",
                        extra={"extra": {**log_ctx, "round": rounds, "tool_calls": len(reply.tool_calls)}},
                    )
                elif state is LoopState.AWAITING_TOOLS:
                    pending = conversation.last
                    for call in pending.tool_calls:
                        await self._check_cancelled(is_cancelled)
                        conversation.append(await self._run_tool(call, log_ctx))
                    state = LoopState.AWAITING_MODEL
                else:
                    break
                transitions.append(state)
                logger.debug("agent_loop.transition", extra={"extra": {**log_ctx, "state": state.value}})
        except BusinessError as exc:
            exc.extra.setdefault("state", LoopState.FAILED.value)
            exc.extra.setdefault("rounds", rounds)
            logger.warning(
                "agent_loop.failed",
                extra={"extra": {**log_ctx, "kind": exc.code, "rounds": rounds, "error": exc.message}},
            )
            raise

        messages = conversation.messages
        logger.info(
            "agent_loop.done",
            extra={"extra": {**log_ctx, "rounds": rounds, "elapsed_seconds": round(time.time() - start, 2)}},
        )
        return LoopResult(
            messages=messages,
            new_messages=messages[seed_len:],
            transitions=transitions,
            rounds=rounds,
        )

    async def _infer(self, messages: Sequence[Message]) -> Message:
        call = self._invoker.infer(
            messages,
            tools=self._registry.defs(),
            system_prompt=self._system_prompt,
        )
        if self._round_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, self._round_timeout)
        except asyncio.TimeoutError:
            raise InvocationTimeout(
                message=f"Model did not answer within {self._round_timeout}s",
                provider=getattr(self._invoker, "name", None),
            ) from None

    async def _run_tool(self, call: ToolCallRequest, log_ctx: dict) -> Message:
        tool = self._registry.lookup(call.name, call_id=call.call_id)
        logger.info(
            "agent_loop.tool_call",
            extra={"extra": {**log_ctx, "tool_name": call.name, "call_id": call.call_id}},
        )
        # 已发出的工具调用不随请求取消而中断
        task = asyncio.ensure_future(tool.invoke(call))
        try:
            if self._tool_timeout is None:
                result = await asyncio.shield(task)
            else:
                result = await asyncio.wait_for(asyncio.shield(task), self._tool_timeout)
        except asyncio.TimeoutError:
            task.add_done_callback(functools.partial(_log_late_tool, call, log_ctx))
            raise ToolExecutionError(
                call.name,
                call.call_id,
                TimeoutError(f"no result within {self._tool_timeout}s"),
            ) from None
        if result.error:
            logger.info(
                "agent_loop.tool_error",
                extra={"extra": {**log_ctx, "tool_name": call.name, "call_id": call.call_id, "error": result.error}},
            )
        return Message.tool(result)

    @staticmethod
    async def _check_cancelled(is_cancelled: Optional[CancelCheck]) -> None:
        if is_cancelled is not None and await is_cancelled():
            raise LoopCancelled(message="Request was cancelled")


def _log_late_tool(call: ToolCallRequest, log_ctx: dict, task: "asyncio.Future") -> None:
    """超时后仍在运行的工具结束时记录其结果。"""

    ctx = {**log_ctx, "tool_name": call.name, "call_id": call.call_id}
    if task.cancelled():
        logger.warning("agent_loop.late_tool_cancelled", extra={"extra": ctx})
        return
    exc = task.exception()
    if exc is not None:
        logger.error("agent_loop.late_tool_failed", extra={"extra": {**ctx, "error": repr(exc)}})
        return
    result = task.result()
    logger.warning("agent_loop.late_tool_finished", extra={"extra": {**ctx, "error": result.error}})

import asyncio
import random

import pytest

from agent_api.agents.loop import AgentLoop
from agent_api.agents.session import ChatAgent, InMemoryThreadStore
from agent_api.domain.exceptions import UnknownToolError, ValidationError
from agent_api.domain.models import Message, ToolCallRequest
from agent_api.tools import Tool, ToolDef, ToolParam, ToolRegistry


class EchoInvoker:
    """human → 调用 echo 工具；tool → 以工具结果作答。每一步都让出事件循环。"""

    name = "echo"

    def __init__(self):
        self.seen = []

    async def infer(self, messages, *, tools=(), system_prompt=None):
        self.seen.append(len(messages))
        await asyncio.sleep(random.random() / 200)
        last = messages[-1]
        if last.role == "human":
            return Message.agent("", [ToolCallRequest(name="echo", arguments={"text": last.text}, call_id=f"c-{last.text}")])
        return Message.agent(f"answer:{last.text}")


async def _echo(args):
    await asyncio.sleep(random.random() / 200)
    return args["text"]


def echo_registry():
    return ToolRegistry([
        Tool(
            definition=ToolDef(
                name="echo",
                description="echo",
                params={"text": ToolParam(name="text", description="text", required=True, schema={"type": "string"})},
            ),
            func=_echo,
        )
    ])


def make_agent(store=None, invoker=None, name="echo"):
    store = store or InMemoryThreadStore()
    loop = AgentLoop(invoker or EchoInvoker(), echo_registry())
    return ChatAgent(name, loop, store, default_thread_id="42")


def test_store_get_creates_empty_thread():
    store = InMemoryThreadStore()
    assert len(store.get("t1")) == 0
    assert store.thread_ids() == ["t1"]
    store.append("t1", [Message.human("hi")])
    snap = store.get("t1")
    store.append("t1", [Message.agent("hello")])
    assert len(snap) == 1
    assert len(store.get("t1")) == 2
    store.clear("t1")
    assert store.thread_ids() == []


@pytest.mark.parametrize("prompt", ["", "   ", None, 42])
def test_invalid_prompt_rejected_before_loop(prompt):
    invoker = EchoInvoker()
    agent = make_agent(invoker=invoker)
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(agent.run(prompt))
    assert exc_info.value.message == "Prompt is required"
    assert invoker.seen == []


def test_thread_history_carries_over():
    invoker = EchoInvoker()
    agent = make_agent(invoker=invoker)
    assert asyncio.run(agent.run("one")) == "answer:one"
    assert asyncio.run(agent.run("two")) == "answer:two"
    history = agent.history()
    assert [m.role for m in history] == ["human", "agent", "tool", "agent"] * 2
    # 第二次请求的首轮模型调用能看到第一次的 4 条消息 + 新提示
    assert invoker.seen[2] == 5


def test_threads_are_isolated():
    store = InMemoryThreadStore()
    a = make_agent(store, name="a")
    b = make_agent(store, name="b")
    asyncio.run(a.run("x", "t1"))
    asyncio.run(a.run("y", "t2"))
    asyncio.run(b.run("z", "t1"))
    assert [m.text for m in a.history("t1")][0] == "x"
    assert [m.text for m in a.history("t2")][0] == "y"
    assert [m.text for m in b.history("t1")][0] == "z"
    assert sorted(store.thread_ids()) == ["a:t1", "a:t2", "b:t1"]


def test_default_thread_id():
    store = InMemoryThreadStore()
    agent = make_agent(store)
    asyncio.run(agent.run("hello"))
    assert store.thread_ids() == ["echo:42"]


def test_failed_loop_does_not_append():
    class UnknownToolInvoker:
        name = "bad"

        async def infer(self, messages, *, tools=(), system_prompt=None):
            return Message.agent("", [ToolCallRequest(name="nope", arguments={}, call_id="c1")])

    store = InMemoryThreadStore()
    agent = make_agent(store, invoker=UnknownToolInvoker())
    with pytest.raises(UnknownToolError):
        asyncio.run(agent.run("hello"))
    assert len(agent.history()) == 0


def test_concurrent_requests_on_same_thread_do_not_interleave():
    agent = make_agent()
    prompts = [f"p{i}" for i in range(20)]

    async def scenario():
        return await asyncio.gather(*(agent.run(p) for p in prompts))

    answers = asyncio.run(scenario())
    assert answers == [f"answer:{p}" for p in prompts]

    history = list(agent.history())
    assert len(history) == 4 * len(prompts)
    for i in range(0, len(history), 4):
        human, call, result, final = history[i:i + 4]
        assert [m.role for m in (human, call, result, final)] == ["human", "agent", "tool", "agent"]
        assert call.tool_calls[0].arguments["text"] == human.text
        assert result.tool_result.call_id == call.tool_calls[0].call_id
        assert final.text == f"answer:{human.text}"
    assert sorted(h.text for h in history[::4]) == sorted(prompts)

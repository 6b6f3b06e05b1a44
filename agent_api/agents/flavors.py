"""Agent 类型（flavor）定义与装配。

每个 flavor 是一个静态组合：Provider + 工具集 + 系统提示词 + 默认线程 ID。
"""

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from agent_api.agents.loop import AgentLoop
from agent_api.agents.session import DEFAULT_THREAD_ID, ChatAgent, InMemoryThreadStore
from agent_api.config.settings import settings
from agent_api.domain.conversation import ThreadStore
from agent_api.domain.exceptions import UnknownAgentError
from agent_api.prompts import load_system_prompt
from agent_api.providers import create_provider
from agent_api.providers.base import ModelInvoker
from agent_api.tools.registry import ToolsetName, build_registry


@dataclass(frozen=True)
class AgentFlavor:
    name: str
    provider: str
    toolset: ToolsetName
    prompt: str = "default"
    default_thread_id: str = DEFAULT_THREAD_ID


FLAVORS: Mapping[str, AgentFlavor] = {
    "openai": AgentFlavor("openai", provider="openai", toolset="plain", default_thread_id="42"),
    "gemini": AgentFlavor("gemini", provider="gemini", toolset="plain"),
    "vertex": AgentFlavor("vertex", provider="vertex", toolset="plain"),
    "groq-crypto": AgentFlavor("groq-crypto", provider="groq", toolset="crypto", prompt="crypto", default_thread_id="43"),
    "openai-crypto": AgentFlavor(
        "openai-crypto", provider="openai", toolset="crypto", prompt="crypto", default_thread_id="44"
    ),
    "vertex-crypto": AgentFlavor("vertex-crypto", provider="vertex", toolset="crypto", prompt="crypto"),
    "blockchain": AgentFlavor("blockchain", provider="openai", toolset="crypto", prompt="blockchain"),
}


def get_flavor(name: str) -> AgentFlavor:
    flavor = FLAVORS.get(name)
    if flavor is None:
        raise UnknownAgentError(message=f"Unknown agent: {name!r}", agent=name)
    return flavor


def build_agent(
    flavor: AgentFlavor,
    store: ThreadStore,
    *,
    invoker_factory: Callable[[str], ModelInvoker] = create_provider,
) -> ChatAgent:
    loop = AgentLoop(
        invoker_factory(flavor.provider),
        build_registry(flavor.toolset),
        system_prompt=load_system_prompt(flavor.prompt),
        max_rounds=settings.max_tool_rounds,
        round_timeout=settings.round_timeout,
        tool_timeout=settings.tool_timeout,
    )
    return ChatAgent(flavor.name, loop, store, default_thread_id=flavor.default_thread_id)


def build_agents(
    store: Optional[ThreadStore] = None,
    *,
    invoker_factory: Callable[[str], ModelInvoker] = create_provider,
) -> Dict[str, ChatAgent]:
    """构造全部 flavor 的 ChatAgent，共享同一个线程存储。"""

    store = store or InMemoryThreadStore()
    return {name: build_agent(flavor, store, invoker_factory=invoker_factory) for name, flavor in FLAVORS.items()}

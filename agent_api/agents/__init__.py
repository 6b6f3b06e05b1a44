from agent_api.agents.flavors import FLAVORS, AgentFlavor, build_agent, build_agents, get_flavor
from agent_api.agents.loop import AgentLoop, LoopResult, LoopState, next_state
from agent_api.agents.session import ChatAgent, InMemoryThreadStore

__all__ = [
    "FLAVORS",
    "AgentFlavor",
    "AgentLoop",
    "ChatAgent",
    "InMemoryThreadStore",
    "LoopResult",
    "LoopState",
    "build_agent",
    "build_agents",
    "get_flavor",
    "next_state",
]

"""Minimal demonstration of a crypto agent run outside the HTTP server."""

import asyncio

from agent_api.agents import build_agent, get_flavor
from agent_api.agents.session import InMemoryThreadStore

if __name__ == "__main__":
    agent = build_agent(get_flavor("openai-crypto"), InMemoryThreadStore())
    question = "What is the current price of ethereum in usd?"
    reply = asyncio.run(agent.run(question))
    print("User:", question)
    print("Agent:", reply)

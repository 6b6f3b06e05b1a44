"""Agent API 顶层包。

通过 HTTP 将用户提示路由到不同的 LLM 后端（OpenAI 兼容、Gemini、Vertex AI），
由工具调用循环驱动模型与工具交互直至得到最终回答。
"""

from agent_api.agents import AgentLoop, ChatAgent, LoopState

__all__ = ["AgentLoop", "ChatAgent", "LoopState"]

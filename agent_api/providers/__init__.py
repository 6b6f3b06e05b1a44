"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Model Invoker 抽象接口 (base)。
- 提供各厂商的具体实现 (openai_client、gemini_client)。
"""

from typing import Literal, Optional

from agent_api.config.settings import settings
from agent_api.domain.exceptions import ValidationError
from agent_api.providers.base import ModelInvoker
from agent_api.providers.gemini_client import GeminiClient, VertexAIClient
from agent_api.providers.openai_client import OpenAICompatibleClient


ProviderName = Literal["openai", "groq", "gemini", "vertex"]


def create_provider(name: Optional[str] = None) -> ModelInvoker:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "openai")).lower()
    common = {"timeout": settings.http_timeout, "temperature": settings.temperature}
    if provider_name == "openai":
        return OpenAICompatibleClient(
            settings.openai_api_key,
            settings.openai_model,
            base_url=settings.openai_base_url,
            name="openai",
            **common,
        )
    if provider_name == "groq":
        return OpenAICompatibleClient(
            settings.groq_api_key,
            settings.groq_model,
            base_url=settings.groq_base_url,
            name="groq",
            **common,
        )
    if provider_name == "gemini":
        return GeminiClient(
            settings.gemini_api_key,
            settings.gemini_model,
            base_url=settings.gemini_base_url,
            **common,
        )
    if provider_name == "vertex":
        return VertexAIClient(
            settings.vertex_access_token,
            settings.vertex_model,
            project=settings.vertex_project,
            location=settings.vertex_location,
            **common,
        )
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {name!r}")


__all__ = [
    "GeminiClient",
    "ModelInvoker",
    "OpenAICompatibleClient",
    "ProviderName",
    "VertexAIClient",
    "create_provider",
]

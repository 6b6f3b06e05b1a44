"""Model Invoker 抽象接口。

Agent 循环不直接依赖具体厂商的 HTTP API，而是依赖此协议：

- 每个厂商实现一个 ModelInvoker（OpenAI 兼容、Gemini、Vertex AI）。
- 负责将 Message 序列转成具体 API 请求，并把响应 JSON 解析为
  统一的 Message / ToolCallRequest。

这样可以在不改循环代码的前提下接入更多厂商。
"""

from typing import Any, Dict, Optional, Protocol, Sequence

import httpx

from agent_api.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from agent_api.domain.models import Message
from agent_api.infrastructure.logging.logger import logger
from agent_api.tools.definitions import ToolDef


class ModelInvoker(Protocol):
    """LLM 后端协议。

    - name: Provider 名称，用于日志。
    - infer: 给定消息序列返回下一条 agent 消息，可能携带工具调用。
      失败时抛出 InvocationError，不做内部重试。
    """

    name: str

    async def infer(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[ToolDef] = (),
        system_prompt: Optional[str] = None,
    ) -> Message:
        ...


class HttpProviderClient:
    """基于 httpx.AsyncClient 的 Provider 公共部分：请求发送与错误映射。"""

    name = "http"

    def __init__(self, api_key: Optional[str], model: str, *, timeout: float = 30.0, temperature: float = 0.3):
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    def _require(self, messages: Sequence[Message], key_name: str) -> None:
        if not messages:
            raise ValidationError(code="EMPTY_CONVERSATION", message="messages must not be empty")
        if not self._api_key:
            raise ValidationError(code="MISSING_API_KEY", message=f"{key_name} not set")

    async def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        logger.info(
            "provider.request",
            extra={"extra": {"provider": self.name, "model": self._model}},
        )
        try:
            async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(message=str(e), provider=self.name) from e
        if resp.status_code == 429:
            raise RateLimitError(message=f"{self.name} rate limit", provider=self.name)
        if resp.status_code >= 400:
            raise ApiError(message=resp.text, provider=self.name, upstream_status=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(
                message=f"{self.name} returned a non-JSON body",
                provider=self.name,
                upstream_status=resp.status_code,
            ) from e

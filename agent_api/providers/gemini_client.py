"""Gemini / Vertex AI Provider 适配器。

两者共用 generateContent 的内容格式：
- 角色只有 user / model；工具结果以 functionResponse part 回传。
- 模型的工具调用以 functionCall part 返回，通常不带调用 ID，
  这里在解析时补一个，保证每个 ToolCallRequest 都有唯一 call_id。

差异仅在于 URL 与认证方式：Gemini 使用 API key，Vertex AI 使用
OAuth Bearer token 和 project/location 路径。
"""

from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from agent_api.domain.exceptions import ApiError, ValidationError
from agent_api.domain.models import Message, ToolCallRequest
from agent_api.tools.definitions import ToolDef
from .base import HttpProviderClient


_SCHEMA_KEYS = {"type", "description", "enum", "properties", "required", "items", "minimum", "maximum", "format"}


def _clean_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """只保留 Gemini Schema 支持的字段。"""

    cleaned: Dict[str, Any] = {}
    for key, value in schema.items():
        if key not in _SCHEMA_KEYS:
            continue
        if key == "properties":
            value = {name: _clean_schema(sub) for name, sub in value.items()}
        elif key == "items" and isinstance(value, dict):
            value = _clean_schema(value)
        cleaned[key] = value
    return cleaned


class GeminiClient(HttpProviderClient):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        temperature: float = 0.3,
    ):
        super().__init__(api_key, model, timeout=timeout, temperature=temperature)
        self._base_url = base_url.rstrip("/")

    async def infer(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[ToolDef] = (),
        system_prompt: Optional[str] = None,
    ) -> Message:
        self._require(messages, self._key_name())
        payload = self._build_payload(messages, tools, system_prompt)
        data = await self._post(self._endpoint(), payload, self._headers())
        return self._parse_response(data)

    def _key_name(self) -> str:
        return "GEMINI_API_KEY"

    def _endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": str(self._api_key), "Content-Type": "application/json"}

    def _build_payload(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDef],
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": self._build_contents(messages),
            "generationConfig": {"temperature": self._temperature},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if tools:
            payload["tools"] = [{"functionDeclarations": [self._serialize_tool(t) for t in tools]}]
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        decl: Dict[str, Any] = {"name": tool.name, "description": tool.description}
        if tool.params:
            decl["parameters"] = _clean_schema(tool.json_schema())
        return decl

    def _build_contents(self, messages: Sequence[Message]) -> List[Dict[str, Any]]:
        """转换为 contents 列表，相邻同角色的消息合并为一个 turn。"""

        contents: List[Dict[str, Any]] = []
        for message in messages:
            role = "model" if message.role == "agent" else "user"
            parts = self._message_parts(message)
            if not parts:
                continue
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"].extend(parts)
            else:
                contents.append({"role": role, "parts": parts})
        return contents

    @staticmethod
    def _message_parts(message: Message) -> List[Dict[str, Any]]:
        if message.role == "tool" and message.tool_result is not None:
            result = message.tool_result
            if result.error:
                response: Dict[str, Any] = {"error": result.error}
            elif isinstance(result.output, dict):
                response = dict(result.output)
            else:
                response = {"result": result.output}
            return [{"functionResponse": {"name": result.tool_name, "response": response}}]

        parts: List[Dict[str, Any]] = []
        if isinstance(message.content, str):
            if message.content:
                parts.append({"text": message.content})
        else:
            for part in message.content:
                if part.type == "image_url" and part.url:
                    parts.append({"fileData": {"fileUri": part.url, "mimeType": "image/*"}})
                elif part.text:
                    parts.append({"text": part.text})
        for call in message.tool_calls:
            parts.append({"functionCall": {"name": call.name, "args": dict(call.arguments)}})
        return parts

    def _parse_response(self, data: Dict[str, Any]) -> Message:
        candidates = data.get("candidates") or []
        if not candidates:
            # 提示被拦截时只有 promptFeedback
            raise ApiError(
                message=f"{self.name} response has no candidates",
                provider=self.name,
                block_reason=(data.get("promptFeedback") or {}).get("blockReason"),
            )
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        if not parts:
            raise ApiError(
                message=f"{self.name} candidate has no content",
                provider=self.name,
                finish_reason=candidate.get("finishReason"),
            )
        texts: List[str] = []
        tool_calls: List[ToolCallRequest] = []
        for part in parts:
            if "functionCall" in part:
                call = part["functionCall"] or {}
                tool_calls.append(
                    ToolCallRequest(
                        name=call.get("name") or "",
                        arguments=call.get("args") or {},
                        call_id=call.get("id") or f"call_{uuid4().hex[:12]}",
                    )
                )
            elif part.get("text") and not part.get("thought"):
                texts.append(part["text"])
        return Message.agent(
            "".join(texts),
            tool_calls,
            provider=self.name,
            model=self._model,
            finish_reason=candidate.get("finishReason"),
            usage=data.get("usageMetadata") or {},
        )


class VertexAIClient(GeminiClient):
    name = "vertex"

    def __init__(
        self,
        access_token: Optional[str],
        model: str,
        *,
        project: Optional[str],
        location: str = "us-central1",
        timeout: float = 30.0,
        temperature: float = 0.3,
    ):
        super().__init__(access_token, model, timeout=timeout, temperature=temperature)
        self._project = project
        self._location = location

    def _key_name(self) -> str:
        return "VERTEX_ACCESS_TOKEN"

    def _endpoint(self) -> str:
        return (
            f"https://{self._location}-aiplatform.googleapis.com/v1/projects/{self._project}"
            f"/locations/{self._location}/publishers/google/models/{self._model}:generateContent"
        )

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    def _require(self, messages: Sequence[Message], key_name: str) -> None:
        super()._require(messages, key_name)
        if not self._project:
            raise ValidationError(code="MISSING_VERTEX_PROJECT", message="VERTEX_PROJECT not set")

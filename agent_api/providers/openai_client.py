"""OpenAI 兼容 Provider 适配器。

OpenAI 与 Groq 共用 chat/completions 协议：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本模块负责 Message ⇄ OpenAI JSON 的双向转换（含 tool_calls）。
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from agent_api.domain.exceptions import ApiError
from agent_api.domain.models import ContentPart, Message, ToolCallRequest
from agent_api.tools.definitions import ToolDef
from .base import HttpProviderClient


_ROLE_MAP = {"human": "user", "agent": "assistant", "tool": "tool"}


class OpenAICompatibleClient(HttpProviderClient):
    """OpenAI chat/completions 协议客户端。

    name 用于区分同协议的不同厂商（openai / groq），并写入日志与消息 meta。
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        *,
        base_url: str,
        name: str = "openai",
        timeout: float = 30.0,
        temperature: float = 0.3,
    ):
        super().__init__(api_key, model, timeout=timeout, temperature=temperature)
        self.name = name
        self._base_url = base_url.rstrip("/")

    async def infer(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[ToolDef] = (),
        system_prompt: Optional[str] = None,
    ) -> Message:
        self._require(messages, f"{self.name.upper()}_API_KEY")
        payload = self._build_payload(messages, tools, system_prompt)
        data = await self._post(
            f"{self._base_url}/chat/completions",
            payload,
            {
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
        )
        return self._parse_response(data)

    def _build_payload(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDef],
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        msgs: List[Dict[str, Any]] = []
        if system_prompt:
            msgs.append({"role": "system", "content": system_prompt})
        msgs.extend(self._message_to_payload(m) for m in messages)
        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": msgs,
            "temperature": self._temperature,
        }
        if tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in tools]
            payload["tool_choice"] = "auto"
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.json_schema(),
            },
        }

    @staticmethod
    def _content_to_payload(message: Message) -> Any:
        if isinstance(message.content, str):
            return message.content
        parts = []
        for part in message.content:
            if part.type == "image_url":
                parts.append({"type": "image_url", "image_url": {"url": part.url}})
            else:
                parts.append({"type": "text", "text": part.text})
        return parts

    def _message_to_payload(self, message: Message) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": _ROLE_MAP[message.role]}
        if message.role == "tool" and message.tool_result is not None:
            payload["tool_call_id"] = message.tool_result.call_id
            payload["content"] = message.tool_result.text
            return payload
        payload["content"] = self._content_to_payload(message) or None
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(dict(call.arguments), ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        return payload

    def _parse_response(self, data: Dict[str, Any]) -> Message:
        """将原始响应 JSON 解析为 agent Message（仅取第一个候选）。"""

        choices = data.get("choices") or []
        if not choices:
            raise ApiError(message=f"{self.name} response has no choices", provider=self.name)
        raw = choices[0].get("message") or {}
        tool_calls: List[ToolCallRequest] = []
        for idx, call in enumerate(raw.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCallRequest(
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._parse_arguments(func.get("arguments")),
                    call_id=call.get("id") or f"tool_call_{idx}",
                )
            )
        # 旧版 function_call 字段
        function_call = raw.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCallRequest(
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                    call_id=function_call.get("id") or "function_call",
                )
            )
        content = raw.get("content") or ""
        if isinstance(content, list):
            content = [ContentPart(type="text", text=p.get("text", "")) for p in content if isinstance(p, dict)]
        return Message.agent(
            content,
            tool_calls,
            provider=self.name,
            model=self._model,
            finish_reason=choices[0].get("finish_reason"),
            usage=data.get("usage") or {},
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析工具调用的 arguments 字段。

        OpenAI 会把 arguments 作为 JSON 字符串返回，这里做一层 json.loads，
        失败时保留原始字符串到 `_raw`。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}

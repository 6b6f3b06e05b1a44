import asyncio

import pytest

from agent_api.domain.exceptions import ApiError, ValidationError
from agent_api.domain.models import Message, ToolCallRequest, ToolResult
from agent_api.providers.gemini_client import GeminiClient, VertexAIClient
from agent_api.tools.definitions import ToolDef, ToolParam


class Resp:
    status_code = 200

    def __init__(self, data):
        self._data = data

    def json(self):
        return self._data


def patch_client(monkeypatch, data, captured):
    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return Resp(data)

    monkeypatch.setattr("httpx.AsyncClient", Client)


WEATHER = ToolDef(
    name="weather",
    description="weather lookup",
    params={
        "city": ToolParam(
            name="city",
            description="City",
            required=True,
            schema={"type": "string", "pattern": "^[a-z]+$"},
        )
    },
)


def test_gemini_function_call_is_normalized(monkeypatch):
    captured = {}
    patch_client(
        monkeypatch,
        {
            "candidates": [{
                "content": {"role": "model", "parts": [
                    {"functionCall": {"name": "weather", "args": {"city": "sf"}}},
                    {"functionCall": {"name": "current_time", "args": {}}},
                ]},
                "finishReason": "STOP",
            }],
            "usageMetadata": {"totalTokenCount": 12},
        },
        captured,
    )
    client = GeminiClient("gm-test-1234567890", "gemini-1.5-flash", base_url="https://gemini.test/v1beta")
    msg = asyncio.run(client.infer([Message.human("weather in sf")], tools=[WEATHER], system_prompt="sys"))

    assert [c.name for c in msg.tool_calls] == ["weather", "current_time"]
    assert msg.tool_calls[0].arguments == {"city": "sf"}
    assert msg.tool_calls[0].call_id != msg.tool_calls[1].call_id
    assert msg.meta["provider"] == "gemini"

    assert captured["url"] == "https://gemini.test/v1beta/models/gemini-1.5-flash:generateContent"
    assert captured["headers"]["x-goog-api-key"] == "gm-test-1234567890"
    payload = captured["payload"]
    assert payload["systemInstruction"] == {"parts": [{"text": "sys"}]}
    decl = payload["tools"][0]["functionDeclarations"][0]
    assert "pattern" not in decl["parameters"]["properties"]["city"]


def test_gemini_contents_merge_tool_results(monkeypatch):
    captured = {}
    patch_client(monkeypatch, {"candidates": [{"content": {"parts": [{"text": "It's sunny."}]}}]}, captured)
    history = [
        Message.human("weather and time in sf"),
        Message.agent("", [
            ToolCallRequest(name="weather", arguments={"city": "sf"}, call_id="c1"),
            ToolCallRequest(name="current_time", arguments={}, call_id="c2"),
        ]),
        Message.tool(ToolResult(call_id="c1", tool_name="weather", output="sunny, 70F")),
        Message.tool(ToolResult(call_id="c2", tool_name="current_time", error="tz missing")),
    ]
    client = GeminiClient("gm-test-1234567890", "gemini-1.5-flash")
    msg = asyncio.run(client.infer(history))

    assert msg.content == "It's sunny."
    assert msg.tool_calls == ()
    contents = captured["payload"]["contents"]
    assert [c["role"] for c in contents] == ["user", "model", "user"]
    responses = [p["functionResponse"] for p in contents[2]["parts"]]
    assert responses == [
        {"name": "weather", "response": {"result": "sunny, 70F"}},
        {"name": "current_time", "response": {"error": "tz missing"}},
    ]


def test_vertex_endpoint_and_auth(monkeypatch):
    captured = {}
    patch_client(monkeypatch, {"candidates": [{"content": {"parts": [{"text": "AWS is a cloud."}]}}]}, captured)
    client = VertexAIClient("ya29.token", "gemini-1.5-flash-002", project="demo-project", location="asia-northeast1")
    msg = asyncio.run(client.infer([Message.human("what is AWS?")]))

    assert msg.content == "AWS is a cloud."
    assert captured["url"] == (
        "https://asia-northeast1-aiplatform.googleapis.com/v1/projects/demo-project"
        "/locations/asia-northeast1/publishers/google/models/gemini-1.5-flash-002:generateContent"
    )
    assert captured["headers"]["Authorization"] == "Bearer ya29.token"


def test_vertex_requires_project():
    client = VertexAIClient("ya29.token", "gemini-1.5-flash-002", project=None)
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(client.infer([Message.human("hi")]))
    assert exc_info.value.code == "MISSING_VERTEX_PROJECT"


def test_blocked_prompt_is_api_error(monkeypatch):
    patch_client(monkeypatch, {"promptFeedback": {"blockReason": "SAFETY"}}, {})
    client = GeminiClient("gm-test-1234567890", "gemini-1.5-flash")
    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.infer([Message.human("hi")]))
    assert exc_info.value.extra["block_reason"] == "SAFETY"
    assert exc_info.value.http_status == 502


def test_candidate_without_content_is_api_error(monkeypatch):
    patch_client(monkeypatch, {"candidates": [{"finishReason": "SAFETY"}]}, {})
    client = GeminiClient("gm-test-1234567890", "gemini-1.5-flash")
    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.infer([Message.human("hi")]))
    assert exc_info.value.extra["finish_reason"] == "SAFETY"

import dataclasses

import pytest

from agent_api.domain.models import ContentPart, ConversationState, Message, ToolCallRequest, ToolResult


def test_message_is_immutable():
    msg = Message.human("hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.content = "changed"  # type: ignore[misc]


def test_message_text_flattens_parts():
    msg = Message(
        role="human",
        content=[
            ContentPart(type="text", text="look at "),
            ContentPart(type="image_url", url="https://example.com/cat.png"),
            ContentPart(type="text", text="this"),
        ],
    )
    assert msg.text == "look at this"


def test_agent_message_keeps_tool_call_order():
    calls = [
        ToolCallRequest(name="a", arguments={}, call_id="1"),
        ToolCallRequest(name="b", arguments={}, call_id="2"),
    ]
    msg = Message.agent("", calls, provider="fake")
    assert [c.name for c in msg.tool_calls] == ["a", "b"]
    assert msg.meta["provider"] == "fake"


def test_tool_result_text():
    assert ToolResult(call_id="1", tool_name="t", output="plain").text == "plain"
    assert ToolResult(call_id="1", tool_name="t", output={"price": 1.5}).text == '{"price": 1.5}'
    assert ToolResult(call_id="1", tool_name="t", error="boom").text == "Error: boom"
    tool_msg = Message.tool(ToolResult(call_id="c9", tool_name="t", output=[1, 2]))
    assert tool_msg.role == "tool"
    assert tool_msg.content == "[1, 2]"
    assert tool_msg.tool_result.call_id == "c9"


def test_conversation_snapshot_is_independent():
    state = ConversationState([Message.human("one")])
    snap = state.snapshot()
    state.append(Message.agent("two"))
    assert len(state) == 2
    assert len(snap) == 1
    assert state.last.text == "two"
    assert [m.text for m in state] == ["one", "two"]

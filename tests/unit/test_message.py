import pytest
from pydantic import TypeAdapter, ValidationError

from agentflow.message import (
    AssistantMessage,
    AudioAttachment,
    FunctionCall,
    ImageAttachment,
    Message,
    MessageRole,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
    check_history,
)


def _call(call_id="call_1", name="get_weather", arguments='{"location": "Paris"}'):
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


# ---------------------------------------------------------------------------
# Construction and serialization
# ---------------------------------------------------------------------------

class TestMessageModels:
    def test_each_message_gets_unique_id(self):
        a = UserMessage(content="hi")
        b = UserMessage(content="hi")
        assert a.id != b.id

    def test_role_serializes_to_string(self):
        data = SystemMessage(content="Be brief.").model_dump()
        assert data["role"] == "system"

    def test_discriminated_union_parses_by_role(self):
        adapter = TypeAdapter(Message)
        msg = adapter.validate_python({
            "role": "tool", "tool_call_id": "call_1", "content": "ok",
        })
        assert isinstance(msg, ToolMessage)
        assert msg.role is MessageRole.TOOL

    def test_history_json_round_trip_keeps_types(self):
        adapter = TypeAdapter(list[Message])
        history = [
            SystemMessage(content="Be brief."),
            UserMessage(content="Weather?"),
            AssistantMessage(content="", tool_calls=[_call()]),
            ToolMessage(tool_call_id="call_1", content="Sunny"),
        ]

        restored = adapter.validate_json(adapter.dump_json(history))

        assert [type(m) for m in restored] == [
            SystemMessage, UserMessage, AssistantMessage, ToolMessage,
        ]
        assert restored[2].tool_calls[0].id == "call_1"
        assert restored[3].tool_call_id == "call_1"

    def test_raw_json_with_string_role_parses(self):
        msg = TypeAdapter(Message).validate_json(
            '{"role": "user", "content": "hello"}'
        )
        assert isinstance(msg, UserMessage)
        assert msg.role == "user"

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Message).validate_python({"role": "narrator", "content": "x"})

    def test_tool_call_accessors(self):
        call = _call()
        assert call.name == "get_weather"
        assert call.arguments == '{"location": "Paris"}'
        assert call.type == "function"


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

class TestToWire:
    def test_id_never_sent(self):
        assert "id" not in UserMessage(content="hi").to_wire()

    def test_user_plain_text(self):
        assert UserMessage(content="hi").to_wire() == {"role": "user", "content": "hi"}

    def test_user_with_attachments_uses_content_parts(self):
        msg = UserMessage(
            content="What is this?",
            attachments=[
                ImageAttachment(url="https://example.com/cat.png", detail="low"),
                AudioAttachment(data="UklGRg==", format="wav"),
            ],
        )
        assert msg.to_wire() == {
            "role": "user",
            "content": [
                {"type": "text", "text": "What is this?"},
                {
                    "type": "image_url",
                    "image_url": {"url": "https://example.com/cat.png", "detail": "low"},
                },
                {
                    "type": "input_audio",
                    "input_audio": {"data": "UklGRg==", "format": "wav"},
                },
            ],
        }

    def test_assistant_text_only(self):
        wire = AssistantMessage(content="Hello").to_wire()
        assert wire == {"role": "assistant", "content": "Hello"}

    def test_assistant_with_tool_calls_and_no_text(self):
        wire = AssistantMessage(tool_calls=[_call()]).to_wire()
        assert wire["content"] is None
        assert wire["tool_calls"] == [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"location": "Paris"}'},
        }]

    def test_assistant_keeps_text_alongside_tool_calls(self):
        wire = AssistantMessage(content="Checking.", tool_calls=[_call()]).to_wire()
        assert wire["content"] == "Checking."

    def test_thought_signature_round_trips_to_wire(self):
        call = ToolCall(
            id="call_1",
            function=FunctionCall(name="f", arguments="{}", thought_signature="sig"),
        )
        assert call.to_wire()["function"]["thought_signature"] == "sig"

    def test_reasoning_fields_included_when_present(self):
        wire = AssistantMessage(
            content="Done",
            reasoning="thinking...",
            reasoning_details=[{"type": "reasoning.text", "text": "thinking..."}],
        ).to_wire()
        assert wire["reasoning"] == "thinking..."
        assert wire["reasoning_details"][0]["type"] == "reasoning.text"

    def test_tool_message(self):
        wire = ToolMessage(tool_call_id="call_1", name="f", content="42").to_wire()
        assert wire == {
            "role": "tool", "tool_call_id": "call_1", "content": "42", "name": "f",
        }


# ---------------------------------------------------------------------------
# History invariant
# ---------------------------------------------------------------------------

class TestCheckHistory:
    def test_accepts_answered_calls(self):
        check_history([
            UserMessage(content="weather?"),
            AssistantMessage(tool_calls=[_call("call_1"), _call("call_2")]),
            ToolMessage(tool_call_id="call_2", content="b"),
            ToolMessage(tool_call_id="call_1", content="a"),
        ])

    def test_rejects_orphan_tool_message(self):
        with pytest.raises(ValueError, match="call_9"):
            check_history([
                UserMessage(content="hi"),
                ToolMessage(tool_call_id="call_9", content="?"),
            ])

    def test_rejects_answer_before_call(self):
        with pytest.raises(ValueError, match="position 0"):
            check_history([
                ToolMessage(tool_call_id="call_1", content="early"),
                AssistantMessage(tool_calls=[_call("call_1")]),
            ])

    def test_empty_history(self):
        check_history([])

import uuid
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_serializer


class MessageRole(str, Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


def _new_id() -> str:
    return str(uuid.uuid4())


class BaseMessage(BaseModel):
    """Fields shared by every conversation message.

    ``id`` is a client-side identifier for callers that need to track
    messages (e.g. a UI); it is never sent to the model.
    """

    id: str = Field(default_factory=_new_id)
    role: MessageRole

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError


class SystemMessage(BaseMessage):
    role: Literal[MessageRole.SYSTEM] = MessageRole.SYSTEM
    content: str

    def to_wire(self) -> dict[str, Any]:
        return {"role": "system", "content": self.content}


class ImageAttachment(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] | None = None

    def to_wire(self) -> dict[str, Any]:
        image_url: dict[str, Any] = {"url": self.url}
        if self.detail is not None:
            image_url["detail"] = self.detail
        return {"type": "image_url", "image_url": image_url}


class AudioAttachment(BaseModel):
    data: str
    format: Literal["wav", "mp3"]

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "input_audio",
            "input_audio": {"data": self.data, "format": self.format},
        }


Attachment = ImageAttachment | AudioAttachment


class UserMessage(BaseMessage):
    role: Literal[MessageRole.USER] = MessageRole.USER
    content: str
    attachments: list[Attachment] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        if not self.attachments:
            return {"role": "user", "content": self.content}
        parts: list[dict[str, Any]] = [{"type": "text", "text": self.content}]
        parts.extend(a.to_wire() for a in self.attachments)
        return {"role": "user", "content": parts}


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""
    thought_signature: str | None = None


class ToolCall(BaseModel):
    """A complete tool invocation requested by the model."""

    index: int = 0
    id: str
    type: str = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments

    def to_wire(self) -> dict[str, Any]:
        function: dict[str, Any] = {
            "name": self.function.name,
            "arguments": self.function.arguments,
        }
        if self.function.thought_signature is not None:
            function["thought_signature"] = self.function.thought_signature
        return {"id": self.id, "type": self.type, "function": function}


class AssistantMessage(BaseMessage):
    role: Literal[MessageRole.ASSISTANT] = MessageRole.ASSISTANT
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    reasoning: str | None = None
    reasoning_details: list[dict[str, Any]] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"role": "assistant"}
        if self.tool_calls:
            wire["content"] = self.content or None
            wire["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        else:
            wire["content"] = self.content
        if self.reasoning is not None:
            wire["reasoning"] = self.reasoning
        if self.reasoning_details:
            wire["reasoning_details"] = self.reasoning_details
        return wire


class ToolMessage(BaseMessage):
    role: Literal[MessageRole.TOOL] = MessageRole.TOOL
    tool_call_id: str
    name: str | None = None
    content: str

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }
        if self.name is not None:
            wire["name"] = self.name
        return wire


Message = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage,
    Field(discriminator="role"),
]


def check_history(messages: list[Message]) -> None:
    """Verify every tool message answers a tool call made earlier.

    Raises:
        ValueError: If a ``ToolMessage`` references a tool-call id that
            no preceding ``AssistantMessage`` emitted.
    """
    seen: set[str] = set()
    for position, msg in enumerate(messages):
        if isinstance(msg, AssistantMessage):
            seen.update(tc.id for tc in msg.tool_calls)
        elif isinstance(msg, ToolMessage) and msg.tool_call_id not in seen:
            raise ValueError(
                f"Tool message at position {position} references unknown "
                f"tool call id '{msg.tool_call_id}'"
            )

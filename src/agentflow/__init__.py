from agentflow.cancellation import CancellationToken
from agentflow.errors import (
    AgentConnectionError,
    AgentError,
    InvalidSourceError,
    MaxTurnsExceededError,
    MissingCredentialsError,
    ToolDecodeError,
    ToolExecutionError,
    UpstreamError,
)
from agentflow.events import ErrorEvent, MessageEvent, StreamEvent, TextDeltaEvent
from agentflow.instrumentation import instrument, uninstrument
from agentflow.message import (
    AssistantMessage,
    AudioAttachment,
    ImageAttachment,
    Message,
    MessageRole,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from agentflow.models import CustomModel, OpenAIModel, OpenRouterModel, ReasoningConfig
from agentflow.runner import Runner, RunResult
from agentflow.source import OpenAISource, OpenRouterSource, Source
from agentflow.tools import Tool, ToolKind, tool

__all__ = [
    "AgentConnectionError",
    "AgentError",
    "AssistantMessage",
    "AudioAttachment",
    "CancellationToken",
    "CustomModel",
    "ErrorEvent",
    "ImageAttachment",
    "InvalidSourceError",
    "MaxTurnsExceededError",
    "Message",
    "MessageEvent",
    "MessageRole",
    "MissingCredentialsError",
    "OpenAIModel",
    "OpenAISource",
    "OpenRouterModel",
    "OpenRouterSource",
    "ReasoningConfig",
    "RunResult",
    "Runner",
    "Source",
    "StreamEvent",
    "SystemMessage",
    "TextDeltaEvent",
    "Tool",
    "ToolCall",
    "ToolDecodeError",
    "ToolExecutionError",
    "ToolKind",
    "ToolMessage",
    "UpstreamError",
    "UserMessage",
    "instrument",
    "tool",
    "uninstrument",
]

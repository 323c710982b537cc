"""Events emitted by :meth:`agentflow.runner.Runner.process`."""

from __future__ import annotations

from dataclasses import dataclass

from agentflow.message import AssistantMessage, ToolMessage


@dataclass
class StreamEvent:
    """Base for all streaming events."""


@dataclass
class TextDeltaEvent(StreamEvent):
    """A fragment of assistant text, emitted as soon as it arrives."""

    content: str = ""


@dataclass
class MessageEvent(StreamEvent):
    """A finalized assistant or tool message, already in the history."""

    message: AssistantMessage | ToolMessage


@dataclass
class ErrorEvent(StreamEvent):
    """A non-fatal terminal notice; the stream ends right after it.

    Fatal errors are raised from the iterator instead.
    """

    error: Exception

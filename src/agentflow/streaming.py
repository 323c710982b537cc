"""Streaming primitives for chat-completion responses.

The :class:`ChunkDecoder` turns raw event-stream lines into
:class:`StreamDelta` objects.  The :class:`ToolCallAccumulator`
reassembles tool calls whose pieces arrive in fragments, keyed by
their index within the turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from agentflow.errors import MalformedLineError
from agentflow.message import FunctionCall, ToolCall

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments_delta: str | None = None
    thought_signature: str | None = None


@dataclass
class StreamDelta:
    """One incremental unit of a streamed response."""

    content: str | None = None
    reasoning: str | None = None
    reasoning_details: list[dict[str, Any]] | None = None
    tool_call_fragments: list[ToolCallFragment] = field(default_factory=list)
    finish_reason: str | None = None


# ---------------------------------------------------------------------------
# Wire envelope
# ---------------------------------------------------------------------------

class _WireFunction(BaseModel):
    name: str | None = None
    arguments: str | None = None
    thought_signature: str | None = None


class _WireToolCall(BaseModel):
    index: int | None = None
    id: str | None = None
    type: str | None = None
    function: _WireFunction | None = None


class _WireDelta(BaseModel):
    content: str | None = None
    reasoning: str | None = None
    reasoning_details: list[dict[str, Any]] | None = None
    tool_calls: list[_WireToolCall] | None = None


class _WireChoice(BaseModel):
    index: int
    delta: _WireDelta
    finish_reason: str | None = None


class StreamChunk(BaseModel):
    """A single ``data:`` event of a chat-completions stream."""

    id: str
    created: int
    model: str
    choices: list[_WireChoice]


def _to_delta(choice: _WireChoice) -> StreamDelta:
    wire = choice.delta
    fragments = []
    for tc in wire.tool_calls or []:
        fn = tc.function or _WireFunction()
        fragments.append(ToolCallFragment(
            index=tc.index if tc.index is not None else 0,
            call_id=tc.id,
            type=tc.type,
            name=fn.name,
            arguments_delta=fn.arguments,
            thought_signature=fn.thought_signature,
        ))
    return StreamDelta(
        content=wire.content,
        reasoning=wire.reasoning,
        reasoning_details=wire.reasoning_details,
        tool_call_fragments=fragments,
        finish_reason=choice.finish_reason,
    )


class ChunkDecoder:
    """Parses event-stream lines into deltas.

    Lines without the data prefix are ignored.  Lines that carry the
    prefix but fail to parse (keep-alives, ``[DONE]``, partial JSON)
    are skipped and counted in :attr:`skipped`; they are never fatal.

    Args:
        prefix: The fixed marker that opens a data event.
    """

    def __init__(self, prefix: str = DATA_PREFIX) -> None:
        self.prefix = prefix
        self.skipped = 0

    def parse(self, line: str) -> StreamDelta | None:
        """Strictly parse one line.

        Returns ``None`` for lines that are not data events or whose
        envelope has no choices.

        Raises:
            MalformedLineError: If the payload is not a valid envelope.
        """
        if not line.startswith(self.prefix):
            return None
        payload = line[len(self.prefix):]
        try:
            chunk = StreamChunk.model_validate_json(payload)
        except ValidationError as e:
            raise MalformedLineError(f"Unparseable stream line: {payload!r}") from e
        if not chunk.choices:
            return None
        return _to_delta(chunk.choices[0])

    def decode(self, line: str) -> StreamDelta | None:
        try:
            return self.parse(line)
        except MalformedLineError as e:
            self.skipped += 1
            logger.debug(f"Skipping stream line: {e}")
            return None


# ---------------------------------------------------------------------------
# Tool-call reassembly
# ---------------------------------------------------------------------------

@dataclass
class _PendingCall:
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str = ""
    thought_signature: str | None = None


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    Create one per turn; state never carries across turns.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PendingCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def merge(self, fragment: ToolCallFragment) -> None:
        if fragment.index not in self._pending:
            self._pending[fragment.index] = _PendingCall()
        pending = self._pending[fragment.index]
        if fragment.call_id is not None:
            pending.id = fragment.call_id
        if fragment.type is not None:
            pending.type = fragment.type
        if fragment.name is not None:
            pending.name = fragment.name
        if fragment.arguments_delta is not None:
            pending.arguments += fragment.arguments_delta
        if fragment.thought_signature is not None:
            pending.thought_signature = fragment.thought_signature

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order.

        Records that never received an id, a type and a name are
        dropped silently; some backends emit such partial noise.
        """
        calls = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            if pending.id is None or pending.type is None or pending.name is None:
                logger.debug(f"Dropping incomplete tool call at index {index}")
                continue
            calls.append(ToolCall(
                index=index,
                id=pending.id,
                type=pending.type,
                function=FunctionCall(
                    name=pending.name,
                    arguments=pending.arguments,
                    thought_signature=pending.thought_signature,
                ),
            ))
        return calls

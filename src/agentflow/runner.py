import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing, suppress
from dataclasses import dataclass, field
from typing import Any

from agentflow.cancellation import CancellationToken
from agentflow.errors import AgentError, MaxTurnsExceededError
from agentflow.events import ErrorEvent, MessageEvent, StreamEvent, TextDeltaEvent
from agentflow.executor import ToolExecutor
from agentflow.instrumentation import process_span, record_error, record_turn, turn_span
from agentflow.message import AssistantMessage, Message, ToolMessage, check_history
from agentflow.models import Model
from agentflow.source import Source
from agentflow.streaming import ChunkDecoder, ToolCallAccumulator
from agentflow.tools import Tool, build_catalog
from agentflow.validation import check_source

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """The result of a single Runner.run() invocation.

    Args:
        messages: The full history after the run, input included.
        new_messages: Messages produced by this run, in emission order.
        paused: The model called a UI tool; the caller must append its
            result and call again to resume.
        cancelled: The run was stopped through its cancellation token.
        error: Non-fatal terminal notice, e.g. the turn limit.
    """

    messages: list[Message]
    new_messages: list[AssistantMessage | ToolMessage] = field(default_factory=list)
    paused: bool = False
    cancelled: bool = False
    error: Exception | None = None

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None


async def _next_line(
    lines: AsyncIterator[str],
    cancellation: CancellationToken | None,
) -> str | None:
    """Return the next stream line, or ``None`` at end of stream.

    Also returns ``None`` as soon as *cancellation* fires, even while a
    read is pending; the pending read is cancelled, which closes *lines*.
    """
    if cancellation is None:
        try:
            return await lines.__anext__()
        except StopAsyncIteration:
            return None
    if cancellation.cancelled:
        return None

    read = asyncio.ensure_future(lines.__anext__())
    watcher = asyncio.ensure_future(cancellation.wait())
    try:
        await asyncio.wait({read, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not read.done():
            read.cancel()
            with suppress(asyncio.CancelledError, StopAsyncIteration):
                await read
    if read.cancelled():
        return None
    try:
        return read.result()
    except StopAsyncIteration:
        return None


def _with_turn_info(messages: list[dict[str, Any]], turn: int, max_turns: int) -> list[dict[str, Any]]:
    info = (
        f"You are on turn {turn} of {max_turns}. "
        f"You have {max_turns - turn} turns remaining."
    )
    updated = list(messages)
    for i, msg in enumerate(updated):
        if msg.get("role") == "system":
            updated[i] = {**msg, "content": f"{msg['content']}\n\n{info}"}
            return updated
    updated.insert(0, {"role": "system", "content": info})
    return updated


class Runner:
    """Drives the tool-calling loop for one conversation.

    Each turn sends the full history to the model, streams text back
    as it arrives, then either stops (no tool calls), executes the
    requested tools concurrently and loops, or pauses when a UI tool
    was requested.

    ``run()`` drains ``process()``.  ``process()`` is the streaming
    entry point.

    Args:
        max_turns: Maximum number of model round-trips per call.
        max_concurrency: Bound on tool handlers running at once.
        announce_turns: Tell the model which turn it is on through the
            system prompt of each request.
        executor: Tool executor; built from *max_concurrency* if omitted.
    """

    def __init__(
        self,
        max_turns: int = 50,
        max_concurrency: int | None = None,
        announce_turns: bool = False,
        executor: ToolExecutor | None = None,
    ):
        self.max_turns = max_turns
        self.announce_turns = announce_turns
        self.executor = executor or ToolExecutor(max_concurrency=max_concurrency)

    async def run(
        self,
        messages: list[Message],
        model: Model,
        source: Source,
        tools: list[Tool] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> RunResult:
        """Run the loop to completion and collect what it produced."""
        result = RunResult(messages=list(messages))
        async for _event in self._process(result, model, source, tools, cancellation):
            pass
        return result

    def process(
        self,
        messages: list[Message],
        model: Model,
        source: Source,
        tools: list[Tool] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one conversation step.

        Yields :class:`TextDeltaEvent` for every text fragment and
        :class:`MessageEvent` for every finalized assistant and tool
        message.  The caller's *messages* list is never modified.

        Raises:
            ValueError: Duplicate tool names, or a tool message that
                answers an unknown tool call.
            InvalidSourceError: *model* cannot be served by *source*.
            AgentConnectionError: The endpoint could not be reached.
            UpstreamError: The endpoint answered with a non-2xx status.
        """
        result = RunResult(messages=list(messages))
        return self._process(result, model, source, tools, cancellation)

    async def _process(
        self,
        result: RunResult,
        model: Model,
        source: Source,
        tools: list[Tool] | None,
        cancellation: CancellationToken | None,
    ) -> AsyncIterator[StreamEvent]:
        catalog = build_catalog(tools or [])
        check_history(result.messages)
        tool_schemas = [t.schema() for t in catalog.values()]

        def append(msg: AssistantMessage | ToolMessage) -> MessageEvent:
            result.messages.append(msg)
            result.new_messages.append(msg)
            return MessageEvent(message=msg)

        async with process_span(model.id, source.family.value):
            turn = 0
            while True:
                if cancellation is not None and cancellation.cancelled:
                    logger.info("Cancelled before turn")
                    result.cancelled = True
                    return

                turn += 1
                if turn > self.max_turns:
                    error = MaxTurnsExceededError(self.max_turns)
                    logger.warning(str(error))
                    result.error = error
                    yield ErrorEvent(error=error)
                    return

                check_source(model, source)
                transport = source.transport()
                payload = self._payload(result.messages, model, tool_schemas, turn)

                decoder = ChunkDecoder()
                acc = ToolCallAccumulator()
                content = ""
                reasoning: str | None = None
                reasoning_details: list[dict[str, Any]] = []
                finish_reason: str | None = None

                async with turn_span(model.id, source.family.value, turn) as span:
                    try:
                        async with aclosing(transport.stream_lines(payload)) as lines:
                            while True:
                                line = await _next_line(lines, cancellation)
                                if line is None:
                                    break
                                delta = decoder.decode(line)
                                if delta is None:
                                    continue
                                if delta.finish_reason:
                                    finish_reason = delta.finish_reason
                                if delta.content:
                                    content += delta.content
                                    yield TextDeltaEvent(content=delta.content)
                                if delta.reasoning:
                                    reasoning = (reasoning or "") + delta.reasoning
                                if delta.reasoning_details:
                                    reasoning_details.extend(delta.reasoning_details)
                                for fragment in delta.tool_call_fragments:
                                    acc.merge(fragment)
                    except AgentError as e:
                        logger.error(f"Turn {turn} failed: {e}")
                        record_error(span, e)
                        raise

                    if cancellation is not None and cancellation.cancelled:
                        logger.info(f"Cancelled during turn {turn}")
                        result.cancelled = True
                        return

                    calls = acc.finalize()
                    record_turn(span, finish_reason, len(calls))

                if decoder.skipped:
                    logger.debug(f"Turn {turn}: skipped {decoder.skipped} stream lines")

                yield append(AssistantMessage(
                    content=content,
                    tool_calls=calls,
                    reasoning=reasoning,
                    reasoning_details=reasoning_details,
                ))

                if not calls:
                    logger.info(f"Turn {turn} finished ({finish_reason or 'no finish reason'})")
                    return

                ui_calls, to_execute = [], []
                for call in calls:
                    target = catalog.get(call.name)
                    (ui_calls if target is not None and target.is_ui else to_execute).append(call)
                logger.info(
                    f"Turn {turn}: executing {len(to_execute)} tool call(s), "
                    f"{len(ui_calls)} awaiting UI"
                )

                outputs = await self.executor.execute_all(to_execute, catalog, cancellation)
                if outputs is None:
                    result.cancelled = True
                    return
                for msg in outputs:
                    yield append(msg)

                if ui_calls:
                    logger.info(f"Pausing for UI tool(s): {[c.name for c in ui_calls]}")
                    result.paused = True
                    return

    def _payload(
        self,
        history: list[Message],
        model: Model,
        tool_schemas: list[dict],
        turn: int,
    ) -> dict[str, Any]:
        messages = [m.to_wire() for m in history]
        if self.announce_turns:
            messages = _with_turn_info(messages, turn, self.max_turns)
        payload: dict[str, Any] = {
            "model": model.id,
            "messages": messages,
            "stream": True,
            "tools": tool_schemas,
        }
        if model.reasoning is not None:
            payload["reasoning"] = model.reasoning.model_dump()
        return payload

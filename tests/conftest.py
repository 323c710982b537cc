import json
from collections.abc import Callable

import pytest

from agentflow.models import OpenAIModel
from agentflow.source import OpenAISource
from agentflow.tools import ToolKind, tool
from agentflow.transport import Transport


# ---------------------------------------------------------------------------
# Stream line builders (mirror the chat-completions event-stream shape)
# ---------------------------------------------------------------------------

def chunk_line(
    delta: dict,
    finish_reason: str | None = None,
    chunk_id: str = "chatcmpl-1",
) -> str:
    """One ``data:`` line carrying a single-choice delta."""
    return "data: " + json.dumps({
        "id": chunk_id,
        "created": 1700000000,
        "model": "mock-model",
        "choices": [{
            "index": 0,
            "delta": delta,
            "finish_reason": finish_reason,
        }],
    })


def tool_call_delta(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
    type: str | None = "function",
) -> dict:
    tc: dict = {"index": index}
    if call_id is not None:
        tc["id"] = call_id
    if type is not None:
        tc["type"] = type
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        tc["function"] = function
    return {"tool_calls": [tc]}


def make_text_lines(*fragments: str) -> list[str]:
    """Stream lines for a plain text reply split into *fragments*."""
    lines = [chunk_line({"role": "assistant", "content": ""})]
    lines += [chunk_line({"content": f}) for f in fragments]
    lines.append(chunk_line({}, finish_reason="stop"))
    lines.append("data: [DONE]")
    return lines


def make_tool_call_lines(
    name: str,
    args: dict | list[str],
    call_id: str = "call_1",
    index: int = 0,
) -> list[str]:
    """Stream lines for a single tool call.

    *args* is either a dict (sent as one JSON fragment) or a list of
    raw argument fragments sent one per line.
    """
    fragments = [json.dumps(args)] if isinstance(args, dict) else args
    lines = [chunk_line(tool_call_delta(index, call_id=call_id, name=name, arguments=""))]
    lines += [
        chunk_line(tool_call_delta(index, arguments=f, type=None))
        for f in fragments
    ]
    lines.append(chunk_line({}, finish_reason="tool_calls"))
    lines.append("data: [DONE]")
    return lines


def make_multi_tool_call_lines(calls: list[tuple[str, dict, str]]) -> list[str]:
    """Stream lines for several tool calls, fragments interleaved by index.

    Each item in *calls* is ``(name, args_dict, call_id)``.
    """
    lines = [
        chunk_line(tool_call_delta(i, call_id=call_id, name=name))
        for i, (name, _, call_id) in enumerate(calls)
    ]
    lines += [
        chunk_line(tool_call_delta(i, arguments=json.dumps(args), type=None))
        for i, (_, args, _) in reversed(list(enumerate(calls)))
    ]
    lines.append(chunk_line({}, finish_reason="tool_calls"))
    return lines


# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------

class MockTransport(Transport):
    """Transport that replays pre-queued line lists. No network calls.

    Each queued response is either a list of lines or an exception to
    raise when the request is opened.
    """

    base_url = "http://mock.invalid/v1"

    def __init__(self):
        self.responses: list[list[str] | Exception] = []
        self.call_log: list[dict] = []
        self.opened = 0
        self.closed = 0
        self.on_open: Callable[[], None] | None = None

    async def stream_lines(self, payload):
        self.call_log.append(payload)
        self.opened += 1
        try:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            if self.on_open is not None:
                self.on_open()
            for line in response:
                yield line
        finally:
            self.closed += 1


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@tool
def get_weather(location: str):
    """Get the current weather.

    Args:
        location: City name.
    """
    return f"Sunny in {location}"


@tool
def echo(text: str):
    """Echo text back."""
    return text


@tool
def explode():
    """Always fails."""
    raise RuntimeError("boom")


@tool(kind=ToolKind.UI)
def confirm(question: str):
    """Ask the user to confirm."""
    raise AssertionError("UI tools are never executed by the runner")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_transport():
    return MockTransport()


@pytest.fixture
def source(mock_transport):
    src = OpenAISource(api_key="test-key")
    src._transport = mock_transport
    return src


@pytest.fixture
def model():
    return OpenAIModel(id="mock-model")

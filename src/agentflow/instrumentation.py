"""Optional OpenTelemetry tracing for agentflow.

Call ``agentflow.instrument()`` once at startup, after configuring a
TracerProvider.  Requires ``opentelemetry-api``
(``pip install agentflow[otel]``); without it, and until
``instrument()`` is called, every helper here is a no-op.

Spans follow the GenAI semantic conventions:

- ``invoke_agent {model}`` around a whole ``Runner.process`` call
- ``chat {model}`` around each streamed turn
- ``execute_tool {name}`` around each tool invocation
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "agentflow") -> None:
    """Enable OpenTelemetry tracing.

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install agentflow[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be discarded"
        )
    else:
        logger.info("agentflow instrumentation enabled")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def _span(name: str, attributes: dict, client: bool = False):
    if _tracer is None:
        yield None
        return
    kwargs = {"attributes": attributes}
    if client:
        from opentelemetry.trace import SpanKind
        kwargs["kind"] = SpanKind.CLIENT
    with _tracer.start_as_current_span(name, **kwargs) as span:
        yield span


def process_span(model: str, source: str):
    """Span for one ``Runner.process`` invocation."""
    return _span(f"invoke_agent {model}", {
        "gen_ai.operation.name": "invoke_agent",
        "gen_ai.provider.name": source,
        "gen_ai.request.model": model,
    })


def turn_span(model: str, source: str, turn: int):
    """Span for one streamed request/response turn."""
    return _span(f"chat {model}", {
        "gen_ai.operation.name": "chat",
        "gen_ai.provider.name": source,
        "gen_ai.request.model": model,
        "agentflow.turn": turn,
    }, client=True)


def tool_span(tool_name: str, call_id: str):
    return _span(f"execute_tool {tool_name}", {
        "gen_ai.operation.name": "execute_tool",
        "gen_ai.tool.name": tool_name,
        "gen_ai.tool.call.id": call_id,
    })


def record_turn(span, finish_reason: str | None, tool_calls: int) -> None:
    """Annotate a turn span with how the model ended the turn."""
    if span is None:
        return
    if finish_reason:
        span.set_attribute("gen_ai.response.finish_reasons", [finish_reason])
    span.set_attribute("agentflow.tool_calls", tool_calls)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)

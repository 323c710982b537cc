import asyncio
import logging

from agentflow.cancellation import CancellationToken
from agentflow.errors import ToolDecodeError, ToolError
from agentflow.instrumentation import record_error, tool_span
from agentflow.message import ToolCall, ToolMessage
from agentflow.tools import Tool

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs a turn's tool calls concurrently and isolates their failures.

    Every failure local to one call becomes the content of that call's
    tool message; sibling calls always run to completion.

    Args:
        max_concurrency: Upper bound on handlers running at once.
            ``None`` runs every call of a turn at the same time.
    """

    def __init__(self, max_concurrency: int | None = None):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency

    async def execute(self, call: ToolCall, catalog: dict[str, Tool]) -> ToolMessage:
        tool_obj = catalog.get(call.name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {call.name}")
            return ToolMessage(
                tool_call_id=call.id, name=call.name,
                content=f"Tool {call.name} not found.",
            )

        async with tool_span(call.name, call.id) as span:
            logger.info(f"Calling {call.name} with {call.arguments}")
            try:
                content = await tool_obj.invoke(call.arguments)
            except ToolDecodeError as e:
                logger.warning(f"Invalid arguments for {call.name}: {e}")
                record_error(span, e)
                content = f"Error: {e}. Please fix the arguments and try again."
            except ToolError as e:
                logger.error(f"Tool {call.name} raised: {e}")
                record_error(span, e)
                content = f"Error: {e}"
        return ToolMessage(tool_call_id=call.id, name=call.name, content=content)

    async def execute_all(
        self,
        calls: list[ToolCall],
        catalog: dict[str, Tool],
        cancellation: CancellationToken | None = None,
    ) -> list[ToolMessage] | None:
        """Execute *calls* concurrently.

        Returns:
            One tool message per call, in the order of *calls*
            regardless of completion order, or ``None`` if
            *cancellation* fired first (running handlers are cancelled).
        """
        if not calls:
            return []
        semaphore = (
            asyncio.Semaphore(self.max_concurrency)
            if self.max_concurrency is not None else None
        )

        async def run(call: ToolCall) -> ToolMessage:
            if semaphore is None:
                return await self.execute(call, catalog)
            async with semaphore:
                return await self.execute(call, catalog)

        tasks = [asyncio.ensure_future(run(call)) for call in calls]
        watcher = (
            asyncio.ensure_future(cancellation.wait())
            if cancellation is not None else None
        )
        pending = set(tasks)
        try:
            while pending:
                waiting = pending if watcher is None else pending | {watcher}
                done, _ = await asyncio.wait(
                    waiting, return_when=asyncio.FIRST_COMPLETED,
                )
                pending -= done
                if watcher is not None and watcher.done():
                    break
        finally:
            if watcher is not None:
                watcher.cancel()
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        if pending:
            logger.info("Tool execution cancelled")
            return None
        return [task.result() for task in tasks]

import asyncio


class CancellationToken:
    """Cooperative cancellation signal for one ``process`` call.

    The runner checks :attr:`cancelled` at the start of every turn and
    again when a turn's stream ends. It races each pending stream read
    and the running tool handlers against :meth:`wait`.  Cancelling
    ends the event stream cleanly; history already emitted is kept.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

"""Incremental consumption of a workflow run."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from eventloom.workflow.events import Event, EventFactory

if TYPE_CHECKING:
    from eventloom.workflow.context import RunContext

_CLOSED = object()


class WorkflowStream:
    """Async iterator over every event dispatched by one run.

    The run starts when the stream is first consumed, so :meth:`until` can be
    chained right after ``Workflow.run_stream``::

        stream = workflow.run_stream(start_event(21)).until("custom.complete")
        async for event in stream:
            ...

    At most ``buffer`` undelivered events are held; past that the dispatcher
    waits for the consumer, until the run is cancelled or times out.
    """

    def __init__(self, driver: Callable[[WorkflowStream], Awaitable[None]], *, buffer: int = 100) -> None:
        self._driver = driver
        self._events: asyncio.Queue[Any] = asyncio.Queue()
        self._slots = asyncio.Semaphore(buffer)
        self._done = asyncio.Event()
        self._error: BaseException | None = None
        self._stop_on: tuple[str, ...] = ()
        self._task: asyncio.Task[None] | None = None
        self._ctx: RunContext | None = None
        self._exhausted = False

    def until(self, *kinds: str) -> WorkflowStream:
        """Close the stream right after the first event of one of ``kinds``."""

        self._stop_on = tuple(kinds)
        return self

    def until_factory(self, *factories: EventFactory[Any]) -> WorkflowStream:
        return self.until(*(f.kind for f in factories))

    def should_stop(self, event: Event) -> bool:
        return bool(self._stop_on) and event.kind in self._stop_on

    @property
    def done(self) -> asyncio.Event:
        """Set once the run has finished and the stream is closed."""

        return self._done

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def context(self) -> RunContext | None:
        return self._ctx

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._driver(self))

    def __aiter__(self) -> WorkflowStream:
        self.start()
        return self

    async def __anext__(self) -> Event:
        self.start()
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._events.get()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        self._slots.release()
        return item

    async def to_list(self) -> list[Event]:
        """Drain the stream. Check :attr:`error` afterwards."""

        return [event async for event in self]

    async def aclose(self) -> None:
        """Stop the run and release the dispatcher."""

        if self._ctx is not None:
            self._ctx.cancel("stream closed by consumer")
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

    async def __aenter__(self) -> WorkflowStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- driver side ------------------------------------------------------------

    def _attach(self, ctx: RunContext) -> None:
        self._ctx = ctx

    async def _emit(self, event: Event, ctx: RunContext) -> None:
        # a stalled consumer must not outlive the run's deadline or cancellation
        await ctx.guard(self._slots.acquire())
        self._events.put_nowait(event)

    def _close(self, error: BaseException | None) -> None:
        if self._done.is_set():
            return
        self._error = error
        self._events.put_nowait(_CLOSED)
        self._done.set()

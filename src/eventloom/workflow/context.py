"""Run context: cancellation, deadline, shared state and the outbound event queue."""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from logging import Logger
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Mapping, TypeVar

from eventloom.logging import get_logger
from eventloom.workflow.errors import WorkflowCancelledError, WorkflowTimeoutError
from eventloom.workflow.events import Event
from eventloom.workflow.state import StateStore

if TYPE_CHECKING:
    from eventloom.workflow.steps import Step

logger = get_logger(__name__)

R = TypeVar("R")

DEFAULT_QUEUE_CAPACITY = 1000


def _resolve(fut: asyncio.Future[None]) -> None:
    if not fut.done():
        fut.set_result(None)


class CancelSignal:
    """Cancellation signal that can be fired from any thread and awaited from any loop.

    Signals form a tree: a signal created with :meth:`child` fires when its
    parent fires, never the other way round.

    Examples:
        >>> signal = CancelSignal()
        >>> run_signal = signal.child()
        >>> signal.cancel("user pressed stop")
        True
        >>> run_signal.cancelled
        True
    """

    def __init__(self, parent: CancelSignal | None = None) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._reason: str | None = None
        self._waiters: list[asyncio.Future[None]] = []
        self._children: list[CancelSignal] = []
        self._parent = parent
        if parent is not None:
            parent._adopt(self)

    def child(self) -> CancelSignal:
        return CancelSignal(parent=self)

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason

    def cancel(self, reason: str = "operation cancelled") -> bool:
        """Fire the signal. Returns False if it had already fired."""

        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._reason = reason
            waiters, self._waiters = self._waiters, []
            children, self._children = self._children, []

        for fut in waiters:
            loop = fut.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, fut)
        for child in children:
            child.cancel(reason)
        return True

    async def wait(self) -> None:
        """Block until the signal fires."""

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        with self._lock:
            if self._cancelled:
                return
            self._waiters.append(fut)
        try:
            await fut
        finally:
            with self._lock:
                if fut in self._waiters:
                    self._waiters.remove(fut)

    def detach(self) -> None:
        """Stop following the parent signal."""

        if self._parent is not None:
            self._parent._forget(self)
            self._parent = None

    def _adopt(self, child: CancelSignal) -> None:
        with self._lock:
            if not self._cancelled:
                self._children.append(child)
                return
            reason = self._reason
        child.cancel(reason or "operation cancelled")

    def _forget(self, child: CancelSignal) -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)


class RunContext:
    """Everything a handler may touch during one workflow run.

    The context never points back at its workflow: it carries a frozen
    snapshot of the step index taken when the run started.

    ``send_event`` never blocks. When the context is done or the queue is full
    the event is dropped; handler-emitted events are hints to the dispatcher,
    not guaranteed deliveries. Callers needing guaranteed delivery should size
    ``queue_capacity`` for their fan-out.
    """

    def __init__(
        self,
        *,
        workflow_name: str = "workflow",
        index: Mapping[str, tuple[Step, ...]] | None = None,
        timeout: float = 0.0,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        parent: CancelSignal | None = None,
        logger: Logger | None = None,
        run_id: str | None = None,
    ) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.workflow_name = workflow_name
        self.logger = logger or get_logger(__name__)
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._parent = parent
        self._signal = parent.child() if parent is not None else CancelSignal()
        self._state = StateStore()
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_capacity)
        self._index: Mapping[str, tuple[Step, ...]] = MappingProxyType(dict(index or {}))
        self._timeout = timeout
        self._started = time.monotonic()
        self._done = False
        self._done_lock = threading.Lock()
        self.dropped_events = 0

    # -- events -----------------------------------------------------------------

    def send_event(self, event: Event) -> None:
        """Enqueue ``event`` for dispatch; safe to call from worker threads."""

        if threading.get_ident() == self._loop_thread:
            self._enqueue(event)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: Event) -> None:
        if self.is_done():
            self.logger.debug("Event dropped, run is done", extra={"kind": event.kind})
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_events += 1
            self.logger.warning(
                "Event queue full, dropping event",
                extra={"kind": event.kind, "dropped": self.dropped_events},
            )

    @property
    def queue(self) -> asyncio.Queue[Event]:
        return self._queue

    # -- state ------------------------------------------------------------------

    @property
    def state(self) -> StateStore:
        return self._state

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def set(self, key: str, value: Any) -> None:  # noqa: A003
        self._state.set(key, value)

    def delete(self, key: str) -> None:
        self._state.delete(key)

    def get_str(self, key: str) -> tuple[str, bool]:
        return self._state.get_str(key)

    def get_int(self, key: str) -> tuple[int, bool]:
        return self._state.get_int(key)

    def get_bool(self, key: str) -> tuple[bool, bool]:
        return self._state.get_bool(key)

    # -- lifecycle --------------------------------------------------------------

    @property
    def signal(self) -> CancelSignal:
        return self._signal

    @property
    def parent_signal(self) -> CancelSignal | None:
        return self._parent

    def cancel(self, reason: str = "workflow cancelled") -> None:
        """Mark the run done and fire its cancellation signal. Idempotent."""

        self.mark_done()
        self._signal.cancel(reason)

    def mark_done(self) -> None:
        with self._done_lock:
            self._done = True

    def is_done(self) -> bool:
        with self._done_lock:
            if self._done:
                return True
        return self._signal.cancelled

    @property
    def timeout(self) -> float:
        return self._timeout

    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def is_timed_out(self) -> bool:
        if self._timeout <= 0:
            return False
        return self.elapsed() > self._timeout

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a timeout."""

        if self._timeout <= 0:
            return None
        return max(0.0, self._timeout - self.elapsed())

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns False if cancelled first."""

        if self._signal.cancelled:
            return False
        try:
            await asyncio.wait_for(self._signal.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def guard(self, awaitable: Awaitable[R]) -> R:
        """Await ``awaitable`` unless the run is cancelled or its deadline passes first."""

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._signal.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()
        task.cancel()
        if waiter in done:
            raise WorkflowCancelledError(self._signal.reason)
        raise WorkflowTimeoutError(self._timeout)

    def release(self) -> None:
        """Detach from the parent signal once the run has returned."""

        self.mark_done()
        self._signal.detach()

    # -- introspection ----------------------------------------------------------

    def step_names(self) -> list[str]:
        seen: dict[str, None] = {}
        for steps in self._index.values():
            for step in steps:
                seen.setdefault(step.name, None)
        return list(seen)

    def handlers_for(self, kind: str) -> tuple[Step, ...]:
        return self._index.get(kind, ())

    def __repr__(self) -> str:
        return f"RunContext(workflow={self.workflow_name!r}, run_id={self.run_id!r}, done={self.is_done()})"

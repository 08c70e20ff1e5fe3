"""Workflow registry, dispatcher and runner."""

from __future__ import annotations

import asyncio
import inspect
import threading
import time
from dataclasses import dataclass
from logging import Logger
from typing import Any, Callable, Iterable, Protocol, Sequence

from eventloom.config import default_settings
from eventloom.logging import get_logger, run_context, step_context
from eventloom.workflow.context import CancelSignal, RunContext
from eventloom.workflow.errors import (
    StepFailedError,
    WorkflowCancelledError,
    WorkflowConfigError,
    WorkflowError,
    WorkflowTimeoutError,
)
from eventloom.workflow.events import (
    ErrorEvent,
    Event,
    EventFactory,
    StartEvent,
    StartEventData,
    StopEvent,
)
from eventloom.workflow.state import StateStore
from eventloom.workflow.steps import (
    Handler,
    Step,
    StepConfig,
    TypedHandler,
    as_kinds,
    call_handler,
    wrap_typed_handler,
)
from eventloom.workflow.stream import WorkflowStream

logger = get_logger(__name__)


class EventHook(Protocol):
    """Observer called for every event the dispatcher takes off the queue."""

    def on_event(self, ctx: RunContext, event: Event) -> Any: ...


@dataclass
class WorkflowResult:
    """Outcome of a collected run.

    ``final_event`` is the stop or error event that ended the run, or None when
    the run timed out, was cancelled or went idle.
    """

    final_event: Event | None
    state: StateStore
    error: BaseException | None
    duration: float

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def result(self) -> Any:
        """The stop event's result, or None if the run did not stop normally."""

        data, ok = StopEvent.extract(self.final_event)
        return data.result if ok and data is not None else None

    def raise_for_error(self) -> WorkflowResult:
        if self.error is not None:
            raise self.error
        return self


class Workflow:
    """An event-driven workflow: steps registered against event kinds.

    Example:
        >>> wf = Workflow("doubler")
        >>> @wf.on(StartEvent)
        ... def double(ctx, event):
        ...     return [stop_event(event.payload.input * 2)]
        >>> asyncio.run(wf.run(start_event(21))).result
        42
    """

    def __init__(
        self,
        name: str = "workflow",
        *,
        timeout: float | None = None,
        logger: Logger | None = None,
        hooks: Iterable[EventHook] = (),
        queue_capacity: int | None = None,
        tick_interval: float | None = None,
        idle_grace: float | None = None,
        stream_buffer: int | None = None,
    ) -> None:
        settings = default_settings()
        self.name = name
        self.timeout = settings.workflow_timeout_s if timeout is None else timeout
        self.queue_capacity = queue_capacity or settings.queue_capacity
        self.tick_interval = tick_interval or settings.tick_interval_s
        self.idle_grace = settings.idle_grace_s if idle_grace is None else idle_grace
        self.stream_buffer = stream_buffer or settings.stream_buffer
        self.logger = logger or get_logger(f"{__name__}.{name}")
        self.hooks: list[EventHook] = list(hooks)
        self._steps: list[Step] = []
        self._index: dict[str, list[Step]] = {}
        self._lock = threading.Lock()
        self._active_runs = 0

    # -- registration -------------------------------------------------------------

    def handle(
        self,
        kinds: str | EventFactory[Any] | Iterable[str | EventFactory[Any]],
        handler: Handler,
        config: StepConfig | None = None,
    ) -> Step:
        """Register ``handler`` for one or more event kinds."""

        step = Step(accepted_kinds=as_kinds(kinds), handler=handler, config=config or StepConfig())
        with self._lock:
            if self._active_runs:
                raise WorkflowConfigError(f"cannot register step {step.name!r} while {self.name!r} is running")
            self._steps.append(step)
            for kind in step.accepted_kinds:
                self._index.setdefault(kind, []).append(step)
        return step

    def handle_typed(self, factory: EventFactory[Any], handler: TypedHandler[Any], config: StepConfig | None = None) -> Step:
        """Register a handler that receives the payload extracted by ``factory``."""

        return self.handle(factory, wrap_typed_handler(factory, handler), config)

    def on(
        self,
        kinds: str | EventFactory[Any] | Iterable[str | EventFactory[Any]],
        config: StepConfig | None = None,
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`handle`."""

        def register(handler: Handler) -> Handler:
            self.handle(kinds, handler, config)
            return handler

        return register

    def add_hook(self, hook: EventHook) -> None:
        self.hooks.append(hook)

    def steps(self) -> list[Step]:
        with self._lock:
            return list(self._steps)

    def handlers_for(self, kind: str) -> list[Step]:
        with self._lock:
            return list(self._index.get(kind, ()))

    def _snapshot(self) -> dict[str, tuple[Step, ...]]:
        return {kind: tuple(steps) for kind, steps in self._index.items()}

    # -- running ------------------------------------------------------------------

    def _open_context(self, cancel_signal: CancelSignal | None) -> RunContext:
        with self._lock:
            self._active_runs += 1
            index = self._snapshot()
        return RunContext(
            workflow_name=self.name,
            index=index,
            timeout=self.timeout,
            queue_capacity=self.queue_capacity,
            parent=cancel_signal,
            logger=self.logger,
        )

    def _close_context(self, ctx: RunContext) -> None:
        ctx.release()
        with self._lock:
            self._active_runs -= 1

    async def run(self, start: Event, *, cancel_signal: CancelSignal | None = None) -> WorkflowResult:
        """Run to completion and collect the outcome.

        Handler failures, timeouts and cancellation are reported on the
        returned result rather than raised; call
        :meth:`WorkflowResult.raise_for_error` to raise them.
        """

        started = time.monotonic()
        ctx = self._open_context(cancel_signal)
        dispatcher = _Dispatcher(self, ctx)
        try:
            with run_context(run_id=ctx.run_id, workflow=self.name):
                self.logger.info("Workflow run started", extra={"workflow": self.name, "start": start.kind})
                ctx.send_event(start)
                await dispatcher.run()
        finally:
            self._close_context(ctx)

        duration = time.monotonic() - started
        self.logger.info(
            "Workflow run finished",
            extra={"workflow": self.name, "duration_s": round(duration, 4), "ok": dispatcher.error is None},
        )
        return WorkflowResult(
            final_event=dispatcher.final_event,
            state=ctx.state,
            error=dispatcher.error,
            duration=duration,
        )

    def run_stream(self, start: Event, *, cancel_signal: CancelSignal | None = None) -> WorkflowStream:
        """Run while yielding every dispatched event. Starts on first consumption."""

        async def drive(stream: WorkflowStream) -> None:
            ctx = self._open_context(cancel_signal)
            stream._attach(ctx)
            dispatcher = _Dispatcher(self, ctx, stream=stream)
            error: BaseException | None = WorkflowCancelledError("stream closed by consumer")
            try:
                with run_context(run_id=ctx.run_id, workflow=self.name):
                    ctx.send_event(start)
                    await dispatcher.run()
                error = dispatcher.error
            finally:
                self._close_context(ctx)
                stream._close(error)

        return WorkflowStream(drive, buffer=self.stream_buffer)

    async def _notify_hooks(self, ctx: RunContext, event: Event) -> None:
        for hook in self.hooks:
            try:
                result = hook.on_event(ctx, event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "Event hook failed",
                    extra={"hook": type(hook).__name__, "kind": event.kind, "error": str(exc)},
                )

    def __repr__(self) -> str:
        return f"Workflow(name={self.name!r}, steps={len(self._steps)})"


def _embedded_error(event: Event) -> BaseException:
    data, ok = ErrorEvent.extract(event)
    if ok and data is not None:
        return data.error
    if isinstance(event.payload, BaseException):
        return event.payload
    return WorkflowError(f"error event: {event.payload!r}")


class _Dispatcher:
    """Drives one run: pulls events off the context queue and invokes steps."""

    def __init__(self, workflow: Workflow, ctx: RunContext, stream: WorkflowStream | None = None) -> None:
        self.workflow = workflow
        self.ctx = ctx
        self.stream = stream
        self.log = workflow.logger
        self.final_event: Event | None = None
        self.error: BaseException | None = None
        self._finished = False
        self._in_flight: set[asyncio.Task[None]] = set()
        self._semaphores: dict[int, asyncio.Semaphore] = {}

    async def run(self) -> None:
        ctx = self.ctx
        getter: asyncio.Future[Event] | None = None
        cancelled = asyncio.ensure_future(ctx.signal.wait())
        try:
            while not self._finished:
                if ctx.is_timed_out():
                    self._fail(WorkflowTimeoutError(ctx.timeout))
                    break
                if getter is None:
                    getter = asyncio.ensure_future(ctx.queue.get())

                done, _ = await asyncio.wait(
                    {getter, cancelled},
                    timeout=self.workflow.tick_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if getter in done:
                    event = getter.result()
                    getter = None
                    try:
                        await self._on_event(event)
                    except (WorkflowTimeoutError, WorkflowCancelledError) as exc:
                        self._fail(exc)
                        break
                    continue
                if cancelled in done:
                    self._fail(WorkflowCancelledError(ctx.signal.reason))
                    break

                if ctx.queue.empty() and not self._in_flight:
                    late, _ = await asyncio.wait({getter}, timeout=self.workflow.idle_grace)
                    if not late:
                        self.log.debug("Workflow idle, finishing run", extra={"workflow": self.workflow.name})
                        self._finish()
        finally:
            if getter is not None:
                getter.cancel()
            cancelled.cancel()
            ctx.cancel("run finished")
            if self._in_flight:
                await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _on_event(self, event: Event) -> None:
        await self.workflow._notify_hooks(self.ctx, event)

        if self.stream is not None:
            await self.stream._emit(event, self.ctx)
            if self.stream.should_stop(event):
                self._finish(event)
                return

        if StopEvent.includes(event):
            self._finish(event)
            return
        if ErrorEvent.includes(event):
            self._fail(_embedded_error(event), final_event=event)
            return

        steps = self.ctx.handlers_for(event.kind)
        if not steps:
            self.log.debug("No handler for event", extra={"kind": event.kind})
            return

        if all(step.config.num_workers == 1 for step in steps):
            try:
                await self._dispatch(event, steps)
            except Exception as exc:  # noqa: BLE001
                self._fail(exc)
            return

        task = asyncio.ensure_future(self._dispatch_in_background(event, steps))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _dispatch(self, event: Event, steps: Sequence[Step]) -> None:
        emitted: list[Event] = []
        for step in steps:
            emitted.extend(await self._execute(step, event))
        # one synchronous burst: nothing else is enqueued in between
        for out in emitted:
            self.ctx.send_event(out)

    async def _dispatch_in_background(self, event: Event, steps: Sequence[Step]) -> None:
        try:
            await self._dispatch(event, steps)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc)

    def _semaphore(self, step: Step) -> asyncio.Semaphore:
        sem = self._semaphores.get(id(step))
        if sem is None:
            sem = self._semaphores[id(step)] = asyncio.Semaphore(step.config.num_workers)
        return sem

    async def _execute(self, step: Step, event: Event) -> list[Event]:
        """Invoke one step for one event, applying its retry policy."""

        async with self._semaphore(step):
            with step_context(step.name):
                return await self._attempt(step, event)

    async def _attempt(self, step: Step, event: Event) -> list[Event]:
        ctx = self.ctx
        policy = step.config.retry_policy
        attempt = 0
        while True:
            if ctx.is_timed_out():
                raise WorkflowTimeoutError(ctx.timeout)
            if ctx.signal.cancelled:
                raise WorkflowCancelledError(ctx.signal.reason)
            try:
                return await ctx.guard(call_handler(step.handler, ctx, event))
            except (WorkflowTimeoutError, WorkflowCancelledError):
                raise
            except Exception as exc:  # noqa: BLE001
                if policy is None:
                    self.log.error(
                        "Step failed",
                        extra={"step": step.name, "kind": event.kind, "error": str(exc)},
                    )
                    raise
                if not policy.should_retry(exc):
                    self.log.error(
                        "Step failed with non-retryable error",
                        extra={"step": step.name, "kind": event.kind, "error": str(exc)},
                    )
                    raise
                if attempt >= policy.max_retries:
                    self.log.error(
                        "Step failed after retries",
                        extra={"step": step.name, "retries": attempt, "error": str(exc)},
                    )
                    raise StepFailedError(step.name, attempt, exc) from exc

                attempt += 1
                delay = policy.delay_for(attempt)
                self.log.warning(
                    "Step failed, retrying",
                    extra={"step": step.name, "attempt": attempt, "delay_s": delay, "error": str(exc)},
                )
                if not await ctx.sleep(delay):
                    raise WorkflowCancelledError(ctx.signal.reason) from exc

    def _finish(self, final_event: Event | None = None) -> None:
        if self._finished:
            return
        self._finished = True
        self.final_event = final_event
        self.ctx.cancel("run finished")

    def _fail(self, error: BaseException, final_event: Event | None = None) -> None:
        if self._finished:
            self.log.debug("Ignoring error after run finished", extra={"error": str(error)})
            return
        self.error = error
        self.log.error(
            "Workflow run failed",
            extra={"workflow": self.workflow.name, "error_type": type(error).__name__, "error": str(error)},
        )
        self._finish(final_event)


class WorkflowBuilder:
    """Fluent construction of a :class:`Workflow`."""

    def __init__(self, name: str = "workflow", **options: Any) -> None:
        self._workflow = Workflow(name, **options)

    def on(
        self,
        kinds: str | EventFactory[Any] | Iterable[str | EventFactory[Any]],
        handler: Handler,
        config: StepConfig | None = None,
    ) -> WorkflowBuilder:
        self._workflow.handle(kinds, handler, config)
        return self

    def on_event(self, kind: str, handler: Handler, config: StepConfig | None = None) -> WorkflowBuilder:
        return self.on(kind, handler, config)

    def on_start(self, handler: TypedHandler[StartEventData], config: StepConfig | None = None) -> WorkflowBuilder:
        self._workflow.handle_typed(StartEvent, handler, config)
        return self

    def on_typed(self, factory: EventFactory[Any], handler: TypedHandler[Any], config: StepConfig | None = None) -> WorkflowBuilder:
        self._workflow.handle_typed(factory, handler, config)
        return self

    def with_hook(self, hook: EventHook) -> WorkflowBuilder:
        self._workflow.add_hook(hook)
        return self

    def build(self) -> Workflow:
        return self._workflow

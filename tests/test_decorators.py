"""Tests for handler combinators and middleware."""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from eventloom.workflow import (
    PanicError,
    RunContext,
    StartEvent,
    Workflow,
    WorkflowTimeoutError,
    apply_middleware,
    chain_handlers,
    conditional_handler,
    fallback_handler,
    filter_events,
    logging_middleware,
    map_events,
    new_event,
    pipeline_handlers,
    recovery_middleware,
    start_event,
    timing_handler,
)
from eventloom.workflow.events import Event
from eventloom.workflow.steps import Handler, call_handler


def invoke(handler: Handler, event: Event | None = None) -> list[Event]:
    async def main() -> list[Event]:
        return await call_handler(handler, RunContext(), event or new_event("custom.in", 1))

    return asyncio.run(main())


def emit(kind: str) -> Handler:
    return lambda ctx, event: [new_event(kind, event.payload)]


def boom(ctx: RunContext, event: Event) -> None:
    raise KeyError("missing")


def test_chain_concatenates_in_order() -> None:
    """It should run each handler on the same event and join their outputs."""

    events = invoke(chain_handlers(emit("custom.a"), emit("custom.b")))
    assert [e.kind for e in events] == ["custom.a", "custom.b"]


def test_chain_aborts_on_failure() -> None:
    """It should propagate the first failure and discard earlier output."""

    with pytest.raises(KeyError):
        invoke(chain_handlers(emit("custom.a"), boom))


def test_conditional_skips_when_false() -> None:
    """It should emit nothing when the condition is false."""

    handler = emit("custom.a")
    assert invoke(conditional_handler(lambda ctx, e: False, handler)) == []
    assert len(invoke(conditional_handler(lambda ctx, e: True, handler))) == 1


def test_pipeline_feeds_each_stage() -> None:
    """It should pass every stage the events of the previous one."""

    def double(ctx: RunContext, event: Event) -> list[Event]:
        return [new_event("custom.n", event.payload * 2)] * 2

    events = invoke(pipeline_handlers(double, double))
    assert [e.payload for e in events] == [4, 4, 4, 4]


def test_fallback_on_failure() -> None:
    """It should use the fallback's events when the primary handler fails."""

    events = invoke(fallback_handler(boom, emit("custom.fallback")))
    assert [e.kind for e in events] == ["custom.fallback"]


def test_filter_and_map() -> None:
    """It should drop filtered events and transform the rest."""

    both = chain_handlers(emit("custom.keep"), emit("custom.drop"))
    handler = map_events(
        filter_events(both, lambda e: e.kind == "custom.keep"),
        lambda e: new_event("custom.mapped", e.payload + 1),
    )

    events = invoke(handler)
    assert [(e.kind, e.payload) for e in events] == [("custom.mapped", 2)]


def test_middleware_order() -> None:
    """It should make the first middleware listed the outermost wrapper."""

    trace: list[str] = []

    def tracing(label: str) -> Callable[[Handler], Handler]:
        def middleware(next_handler: Handler) -> Handler:
            async def wrapped(ctx: RunContext, event: Event) -> list[Event]:
                trace.append(f"enter {label}")
                events = await call_handler(next_handler, ctx, event)
                trace.append(f"exit {label}")
                return events

            return wrapped

        return middleware

    handler = apply_middleware(emit("custom.a"), tracing("outer"), tracing("inner"), logging_middleware("traced"))
    invoke(handler)

    assert trace == ["enter outer", "enter inner", "exit inner", "exit outer"]


def test_timing_handler_records_duration() -> None:
    """It should store the elapsed seconds under _timing_<name>."""

    async def main() -> object:
        ctx = RunContext()
        await call_handler(timing_handler("slow", emit("custom.a")), ctx, new_event("custom.in", 1))
        return ctx.get("_timing_slow")

    elapsed = asyncio.run(main())
    assert isinstance(elapsed, float)
    assert elapsed >= 0


def test_recovery_wraps_crash_in_panic() -> None:
    """It should convert unexpected exceptions into PanicError."""

    handler = recovery_middleware()(boom)

    with pytest.raises(PanicError, match="panic recovered") as info:
        invoke(handler)
    assert isinstance(info.value.value, KeyError)


def test_recovery_passes_runtime_errors_through() -> None:
    """It should leave workflow runtime errors untouched."""

    def timed_out(ctx: RunContext, event: Event) -> None:
        raise WorkflowTimeoutError(1.0)

    with pytest.raises(WorkflowTimeoutError):
        invoke(recovery_middleware()(timed_out))


def test_recovery_inside_workflow() -> None:
    """It should surface a recovered crash as the run error."""

    wf = Workflow("recovering", tick_interval=0.02, idle_grace=0.02)
    wf.handle(StartEvent, apply_middleware(boom, recovery_middleware()))

    result = asyncio.run(wf.run(start_event()))

    assert isinstance(result.error, PanicError)

"""Tests for streamed workflow runs."""

from __future__ import annotations

import asyncio
from typing import Any

from eventloom.workflow import (
    CancelSignal,
    RunContext,
    StartEvent,
    Workflow,
    WorkflowCancelledError,
    WorkflowTimeoutError,
    custom_event_factory,
    start_event,
    stop_event,
)
from eventloom.workflow.events import Event
from eventloom.workflow.stream import WorkflowStream

FAST = {"tick_interval": 0.02, "idle_grace": 0.02}
Complete = custom_event_factory("complete", dict)


def test_stream_until_kind() -> None:
    """It should yield the start event and the matching event, then close cleanly."""

    wf = Workflow("streamed", **FAST)
    wf.handle(StartEvent, lambda ctx, e: [Complete({"result": 42})])

    async def main():
        stream = wf.run_stream(start_event()).until_factory(Complete)
        events = await stream.to_list()
        return events, stream

    events, stream = asyncio.run(main())

    assert [e.kind for e in events] == ["workflow.start", "custom.complete"]
    assert events[-1].payload == {"result": 42}
    assert stream.error is None
    assert stream.done.is_set()


def test_stream_ends_on_stop_event() -> None:
    """It should include the stop event as the last streamed event."""

    wf = Workflow("stopping", **FAST)
    wf.handle(StartEvent, lambda ctx, e: [Complete({}), stop_event("ok")])

    async def main() -> list[Event]:
        return await wf.run_stream(start_event()).to_list()

    kinds = [e.kind for e in asyncio.run(main())]
    assert kinds == ["workflow.start", "custom.complete", "workflow.stop"]


def test_stream_reports_handler_failure() -> None:
    """It should close the stream and expose the failure on error."""

    async def broken(ctx: RunContext, event: Event) -> None:
        raise RuntimeError("broken step")

    wf = Workflow("broken", **FAST)
    wf.handle(StartEvent, broken)

    async def main():
        stream = wf.run_stream(start_event())
        return await stream.to_list(), stream.error

    events, error = asyncio.run(main())

    assert [e.kind for e in events] == ["workflow.start"]
    assert isinstance(error, RuntimeError)


def test_stream_aclose_stops_endless_run() -> None:
    """It should stop an endless run when the consumer closes the stream early."""

    Ping = custom_event_factory("ping", int)
    wf = Workflow("endless", timeout=10, **FAST)
    wf.handle(StartEvent, lambda ctx, e: [Ping(0)])
    wf.handle(Ping, lambda ctx, e: [Ping(e.payload + 1)])

    async def main():
        stream = wf.run_stream(start_event())
        taken: list[Event] = []
        async for event in stream:
            taken.append(event)
            if len(taken) == 3:
                break
        await stream.aclose()
        return taken, stream

    taken, stream = asyncio.run(main())

    assert [e.kind for e in taken] == ["workflow.start", "custom.ping", "custom.ping"]
    assert stream.done.is_set()
    assert isinstance(stream.error, WorkflowCancelledError)


def ticking_workflow(**options: Any) -> Workflow:
    Tick = custom_event_factory("tick", int)
    wf = Workflow("ticking", stream_buffer=1, **FAST, **options)
    wf.handle(StartEvent, lambda ctx, e: [Tick(0)])
    wf.handle(Tick, lambda ctx, e: [Tick(e.payload + 1)])
    return wf


async def read_one_then_stall(stream: WorkflowStream) -> Event:
    first = await stream.__aiter__().__anext__()
    await asyncio.wait_for(stream.done.wait(), timeout=2)
    return first


def test_stalled_consumer_still_times_out() -> None:
    """It should end the run at its deadline while the consumer stops reading."""

    wf = ticking_workflow(timeout=0.3)

    async def main():
        stream = wf.run_stream(start_event())
        return await read_one_then_stall(stream), stream

    first, stream = asyncio.run(main())

    assert first.kind == "workflow.start"
    assert stream.done.is_set()
    assert isinstance(stream.error, WorkflowTimeoutError)


def test_stalled_consumer_honours_parent_cancel() -> None:
    """It should end the run when the parent signal fires while the consumer stops reading."""

    wf = ticking_workflow(timeout=10)

    async def main():
        signal = CancelSignal()
        asyncio.get_running_loop().call_later(0.1, signal.cancel, "user stop")
        stream = wf.run_stream(start_event(), cancel_signal=signal)
        return await read_one_then_stall(stream), stream

    first, stream = asyncio.run(main())

    assert first.kind == "workflow.start"
    assert isinstance(stream.error, WorkflowCancelledError)
    assert stream.error.reason == "user stop"

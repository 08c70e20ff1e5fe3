"""Example workflows and tools used by the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from eventloom.tools.registry import FunctionTool
from eventloom.workflow.context import RunContext
from eventloom.workflow.engine import Workflow
from eventloom.workflow.events import Event, StartEvent, StartEventData, custom_event_factory, stop_event


@dataclass(frozen=True)
class Process:
    value: int


ProcessEvent = custom_event_factory("process", Process)


def build_counter_workflow(limit: int = 5, **options: object) -> Workflow:
    """Counter that adds 1, 2, 3... into ``counter`` until it reaches ``limit``."""

    wf = Workflow("counter", **options)  # type: ignore[arg-type]

    def start(ctx: RunContext, data: StartEventData) -> Event:
        ctx.set("counter", 0)
        return ProcessEvent(Process(value=1))

    def process(ctx: RunContext, data: Process) -> Event:
        counter, _ = ctx.get_int("counter")
        counter += data.value
        ctx.set("counter", counter)
        if counter >= limit:
            return stop_event(counter, reason="limit reached")
        return ProcessEvent(Process(value=data.value + 1))

    wf.handle_typed(StartEvent, start)
    wf.handle_typed(ProcessEvent, process)
    return wf


def add(a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


def multiply(a: float, b: float) -> float:
    """Multiply two numbers."""
    return a * b


def calculator_tools() -> list[FunctionTool]:
    return [FunctionTool(add), FunctionTool(multiply)]

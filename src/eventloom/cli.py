"""CLI entrypoints for eventloom."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from eventloom.agent.react import get_agent_for_llm
from eventloom.config import load_settings
from eventloom.demo import build_counter_workflow, calculator_tools
from eventloom.llm.client import LLMError, OpenAILLM
from eventloom.logging import configure_logging, get_logger, log_exception
from eventloom.workflow.events import start_event
from eventloom.workflow.recording import JsonlEventRecorder, iter_records

app = typer.Typer(add_completion=False, help="eventloom event-driven workflow and agent CLI")
logger = get_logger(__name__)
console = Console()


@app.command()
def demo(
    limit: int = typer.Option(5, "--limit", min=1, help="Stop once the counter reaches this value"),
    record: Path | None = typer.Option(None, "--record", help="Append dispatched events to this JSONL file"),
) -> None:
    """Run the counter workflow and print every dispatched event."""

    settings = load_settings()
    configure_logging(settings.log_level)

    hooks = [JsonlEventRecorder(record)] if record is not None else []
    wf = build_counter_workflow(limit, hooks=hooks, timeout=settings.workflow_timeout_s)

    async def _run() -> None:
        stream = wf.run_stream(start_event(None))
        table = Table(title=f"workflow {wf.name}")
        table.add_column("#", justify="right")
        table.add_column("kind")
        table.add_column("payload")
        n = 0
        async for event in stream:
            n += 1
            table.add_row(str(n), event.kind, repr(event.payload))
        console.print(table)
        if stream.error is not None:
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send to the agent"),
    system_prompt: str = typer.Option("", "--system", help="Extra instructions for the agent"),
    text_protocol: bool = typer.Option(
        False, "--text-protocol", help="Use the Thought/Action text protocol even if the model supports tool calls"
    ),
) -> None:
    """Ask a ReAct agent with calculator tools, using the configured OpenAI-compatible model."""

    settings = load_settings()
    configure_logging(settings.log_level)

    llm = OpenAILLM(settings, tool_calling=not text_protocol)
    agent = get_agent_for_llm(
        llm,
        calculator_tools(),
        system_prompt=system_prompt,
        max_iterations=settings.agent_max_iterations,
    )
    logger.info("CLI chat requested", extra={"agent": type(agent).__name__})

    try:
        response = asyncio.run(agent.chat(message))
    except LLMError:
        log_exception(logger, "Chat failed", model=llm.model)
        raise typer.Exit(code=1) from None
    for call in response.tool_calls:
        console.print(f"[dim]{call.tool_name}({call.tool_kwargs}) -> {call.tool_output.content}[/dim]")
    console.print(response.response)


@app.command()
def replay(path: Path = typer.Argument(..., help="JSONL file written by `demo --record`")) -> None:
    """Print recorded events."""

    records = iter_records(path)
    if not records:
        raise typer.BadParameter(f"no records in {path}")
    for rec in records:
        console.print(f"{rec.run_id} #{rec.seq:<3} {rec.kind:<28} {rec.payload!r}")


if __name__ == "__main__":
    app()

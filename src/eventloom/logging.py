"""Logging utilities.

Records carry the workflow, run and step bound in the current context, and any
``extra={...}`` fields are appended to the message as ``key=value`` pairs::

    12:00:01 INFO run=3f2a9c workflow=counter step=process eventloom.workflow.engine: Step failed, retrying attempt=1 delay_s=0.1
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any, Iterator

from rich.logging import RichHandler

_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("eventloom_run_id", default="-")
_workflow_var: contextvars.ContextVar[str] = contextvars.ContextVar("eventloom_workflow", default="-")
_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("eventloom_step", default="-")

# attributes every LogRecord has; anything else came in through ``extra``
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "run_id",
    "workflow",
    "step",
}


class _ContextFilter(logging.Filter):
    """Stamp run context onto log records; explicit ``extra`` values win."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        for attr, var in (("run_id", _run_id_var), ("workflow", _workflow_var), ("step", _step_var)):
            if not hasattr(record, attr):
                setattr(record, attr, var.get())
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that renders ``extra`` fields after the message."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        base = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return base
        return base + " " + " ".join(f"{k}={v}" for k, v in fields.items())


@contextlib.contextmanager
def run_context(*, run_id: str, workflow: str | None = None, step: str | None = None) -> Iterator[None]:
    """Bind a workflow run to every log record emitted inside the block.

    Context variables are copied into tasks and ``asyncio.to_thread`` calls, so
    handlers running on worker threads log with the run id of their run.
    """

    tokens = (
        _run_id_var.set(run_id),
        _workflow_var.set(workflow or _workflow_var.get()),
        _step_var.set(step or "-"),
    )
    try:
        yield
    finally:
        _step_var.reset(tokens[2])
        _workflow_var.reset(tokens[1])
        _run_id_var.reset(tokens[0])


@contextlib.contextmanager
def step_context(step: str) -> Iterator[None]:
    """Name the step being executed for the duration of the block."""

    token = _step_var.set(step)
    try:
        yield
    finally:
        _step_var.reset(token)


def current_run_id() -> str:
    return _run_id_var.get()


def configure_logging(level: str = "INFO") -> None:
    """Install a rich handler with run context on the root logger.

    Safe to call repeatedly; an existing rich handler is reconfigured
    instead of duplicated.

    Args:
        level: Logging level name.
    """

    formatter = StructuredFormatter(
        fmt="run=%(run_id)s workflow=%(workflow)s step=%(step)s %(name)s: %(message)s",
    )

    root = logging.getLogger()
    root.setLevel(level)
    handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
    if not handlers:
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
        root.addHandler(handler)
        handlers = [handler]
    for handler in handlers:
        if not any(isinstance(f, _ContextFilter) for f in handler.filters):
            handler.addFilter(_ContextFilter())
        handler.setFormatter(formatter)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log the active exception with structured context."""

    logger.exception(msg, extra=context)

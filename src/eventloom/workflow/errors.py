"""Workflow runtime errors."""

from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for errors raised by the workflow runtime."""


class WorkflowConfigError(WorkflowError, ValueError):
    """Invalid workflow or step configuration."""


class WorkflowTimeoutError(WorkflowError, TimeoutError):
    """The run exceeded its configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"workflow timed out after {timeout:g}s")
        self.timeout = timeout


class WorkflowCancelledError(WorkflowError):
    """The run was cancelled through its parent cancellation signal."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "workflow cancelled")
        self.reason = reason


class StepFailedError(WorkflowError):
    """A step kept failing after its retry policy was exhausted."""

    def __init__(self, step: str, retries: int, last_error: BaseException) -> None:
        super().__init__(f"step {step or '<unnamed>'} failed after {retries} retries: {last_error}")
        self.step = step
        self.retries = retries
        self.last_error = last_error


class PanicError(WorkflowError):
    """An unexpected exception recovered by the recovery middleware."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"panic recovered: {value}")
        self.value = value

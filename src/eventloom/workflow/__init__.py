"""Event-driven workflow runtime."""

from __future__ import annotations

from eventloom.workflow.context import CancelSignal, RunContext
from eventloom.workflow.decorators import (
    Middleware,
    apply_middleware,
    chain_handlers,
    conditional_handler,
    fallback_handler,
    filter_events,
    logging_handler,
    logging_middleware,
    map_events,
    pipeline_handlers,
    recovery_middleware,
    timing_handler,
    timing_middleware,
)
from eventloom.workflow.engine import EventHook, Workflow, WorkflowBuilder, WorkflowResult
from eventloom.workflow.errors import (
    PanicError,
    StepFailedError,
    WorkflowCancelledError,
    WorkflowConfigError,
    WorkflowError,
    WorkflowTimeoutError,
)
from eventloom.workflow.events import (
    ErrorEvent,
    ErrorEventData,
    Event,
    EventFactory,
    HumanResponseEvent,
    HumanResponseEventData,
    InputRequiredEvent,
    InputRequiredEventData,
    StartEvent,
    StartEventData,
    StopEvent,
    StopEventData,
    custom_event_factory,
    error_event,
    human_response_event,
    input_required_event,
    new_event,
    start_event,
    stop_event,
)
from eventloom.workflow.recording import EventRecord, JsonlEventRecorder, iter_records
from eventloom.workflow.state import StateStore
from eventloom.workflow.steps import (
    RetryPolicy,
    Step,
    StepConfig,
    build_step_config,
    with_exponential_backoff,
    with_num_workers,
    with_retries,
    with_retry_policy,
    with_step_name,
)
from eventloom.workflow.stream import WorkflowStream

__all__ = [
    "CancelSignal",
    "RunContext",
    "Middleware",
    "apply_middleware",
    "chain_handlers",
    "conditional_handler",
    "fallback_handler",
    "filter_events",
    "logging_handler",
    "logging_middleware",
    "map_events",
    "pipeline_handlers",
    "recovery_middleware",
    "timing_handler",
    "timing_middleware",
    "EventHook",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowResult",
    "PanicError",
    "StepFailedError",
    "WorkflowCancelledError",
    "WorkflowConfigError",
    "WorkflowError",
    "WorkflowTimeoutError",
    "ErrorEvent",
    "ErrorEventData",
    "Event",
    "EventFactory",
    "HumanResponseEvent",
    "HumanResponseEventData",
    "InputRequiredEvent",
    "InputRequiredEventData",
    "StartEvent",
    "StartEventData",
    "StopEvent",
    "StopEventData",
    "custom_event_factory",
    "error_event",
    "human_response_event",
    "input_required_event",
    "new_event",
    "start_event",
    "stop_event",
    "EventRecord",
    "JsonlEventRecorder",
    "iter_records",
    "StateStore",
    "RetryPolicy",
    "Step",
    "StepConfig",
    "build_step_config",
    "with_exponential_backoff",
    "with_num_workers",
    "with_retries",
    "with_retry_policy",
    "with_step_name",
    "WorkflowStream",
]

"""Event model for workflows.

An event is an immutable ``(kind, payload)`` pair. The runtime only ever looks
at ``kind``; payloads are dereferenced through an :class:`EventFactory`, which
closes over the payload type and restores type safety at the API surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")

START = "workflow.start"
STOP = "workflow.stop"
ERROR = "workflow.error"
INPUT_REQUIRED = "workflow.input_required"
HUMAN_RESPONSE = "workflow.human_response"


@dataclass(frozen=True)
class Event:
    """A single event flowing through a workflow run."""

    kind: str
    payload: Any = None

    def __repr__(self) -> str:
        return f"Event(kind={self.kind!r}, payload={self.payload!r})"


def new_event(kind: str, payload: Any = None) -> Event:
    """Create an untyped event."""

    return Event(kind=kind, payload=payload)


class EventFactory(Generic[T]):
    """Creates, recognizes and unpacks events of one kind.

    Args:
        kind: Event kind produced and accepted by this factory.
        payload_type: Optional payload class. When given, :meth:`extract` also
            checks the payload with ``isinstance`` so two factories sharing a
            kind but not a payload type never confuse each other's events.
        label: Human readable label used in logs.
    """

    def __init__(self, kind: str, payload_type: type[T] | None = None, label: str | None = None) -> None:
        self._kind = kind
        self._payload_type = payload_type
        self._label = label or kind

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def label(self) -> str:
        return self._label

    def create(self, payload: T) -> Event:
        """Wrap ``payload`` in an event of this factory's kind."""

        return Event(kind=self._kind, payload=payload)

    __call__ = create

    def includes(self, event: Event | None) -> bool:
        """Return True if ``event`` has this factory's kind."""

        return event is not None and event.kind == self._kind

    def extract(self, event: Event | None) -> tuple[T | None, bool]:
        """Return ``(payload, True)`` for matching events, ``(None, False)`` otherwise."""

        if not self.includes(event):
            return None, False
        payload = event.payload  # type: ignore[union-attr]
        if self._payload_type is not None and not isinstance(payload, self._payload_type):
            return None, False
        return payload, True

    def __repr__(self) -> str:
        return f"EventFactory({self._label!r})"


@dataclass(frozen=True)
class StartEventData:
    """Payload of the start event."""

    input: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StopEventData:
    """Payload of the stop event."""

    result: Any = None
    reason: str = ""


@dataclass(frozen=True)
class ErrorEventData:
    """Payload of the error event."""

    error: BaseException
    step: str = ""
    event: Event | None = None


@dataclass(frozen=True)
class InputRequiredEventData:
    """Payload asking a human for input."""

    prompt: str
    prefix: str = ""


@dataclass(frozen=True)
class HumanResponseEventData:
    """Payload carrying a human's answer."""

    response: str


StartEvent: EventFactory[StartEventData] = EventFactory(START, StartEventData, "start")
StopEvent: EventFactory[StopEventData] = EventFactory(STOP, StopEventData, "stop")
ErrorEvent: EventFactory[ErrorEventData] = EventFactory(ERROR, ErrorEventData, "error")
InputRequiredEvent: EventFactory[InputRequiredEventData] = EventFactory(
    INPUT_REQUIRED, InputRequiredEventData, "input_required"
)
HumanResponseEvent: EventFactory[HumanResponseEventData] = EventFactory(
    HUMAN_RESPONSE, HumanResponseEventData, "human_response"
)


def start_event(input: Any = None, metadata: dict[str, Any] | None = None) -> Event:  # noqa: A002
    return StartEvent.create(StartEventData(input=input, metadata=dict(metadata or {})))


def stop_event(result: Any = None, reason: str = "") -> Event:
    return StopEvent.create(StopEventData(result=result, reason=reason))


def error_event(error: BaseException, step: str = "", event: Event | None = None) -> Event:
    return ErrorEvent.create(ErrorEventData(error=error, step=step, event=event))


def input_required_event(prompt: str, prefix: str = "") -> Event:
    return InputRequiredEvent.create(InputRequiredEventData(prompt=prompt, prefix=prefix))


def human_response_event(response: str) -> Event:
    return HumanResponseEvent.create(HumanResponseEventData(response=response))


def custom_event_factory(name: str, payload_type: type[T] | None = None) -> EventFactory[T]:
    """Create a factory for a caller-defined kind, namespaced as ``custom.<name>``."""

    return EventFactory(f"custom.{name}", payload_type, name)

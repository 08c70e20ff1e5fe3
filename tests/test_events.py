"""Tests for events and event factories."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from eventloom.workflow.events import (
    ErrorEvent,
    Event,
    StartEvent,
    StopEvent,
    custom_event_factory,
    error_event,
    new_event,
    start_event,
    stop_event,
)


@dataclass(frozen=True)
class Ping:
    n: int


def test_factory_round_trips_typed_payload() -> None:
    """It should extract exactly the payload it created."""

    PingEvent = custom_event_factory("ping", Ping)
    event = PingEvent(Ping(3))

    data, ok = PingEvent.extract(event)
    assert ok
    assert data == Ping(3)
    assert event.kind == "custom.ping"


def test_factory_rejects_other_kinds() -> None:
    """It should not recognise events of another kind."""

    PingEvent = custom_event_factory("ping", Ping)
    other = new_event("custom.pong", Ping(1))

    assert not PingEvent.includes(other)
    assert PingEvent.extract(other) == (None, False)
    assert PingEvent.extract(None) == (None, False)


def test_factory_rejects_wrong_payload_type() -> None:
    """It should refuse a matching kind whose payload has the wrong type."""

    PingEvent = custom_event_factory("ping", Ping)
    impostor = Event(kind="custom.ping", payload={"n": 1})

    assert PingEvent.includes(impostor)
    assert PingEvent.extract(impostor) == (None, False)


def test_builtin_constructors() -> None:
    """It should build start, stop and error events with typed payloads."""

    start, _ = StartEvent.extract(start_event(21, {"user": "u1"}))
    stop, _ = StopEvent.extract(stop_event(42, reason="done"))
    boom = ValueError("boom")
    err, _ = ErrorEvent.extract(error_event(boom, step="s"))

    assert start is not None and start.input == 21 and start.metadata == {"user": "u1"}
    assert stop is not None and stop.result == 42 and stop.reason == "done"
    assert err is not None and err.error is boom and err.step == "s"


def test_events_are_immutable() -> None:
    """It should not allow mutating an event after creation."""

    event = new_event("custom.x", 1)
    with pytest.raises(AttributeError):
        event.kind = "custom.y"  # type: ignore[misc]

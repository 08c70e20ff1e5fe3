"""File-based event recorder.

Records every dispatched event to a JSONL file so a run can be inspected or
replayed later. Install it as a workflow hook::

    wf = Workflow("counter", hooks=[JsonlEventRecorder(Path("artifacts/events.jsonl"))])
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic_core import to_jsonable_python

from eventloom.workflow.events import ErrorEvent, Event, StopEvent

if TYPE_CHECKING:
    from eventloom.workflow.context import RunContext


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventRecord(BaseModel):
    """A single recorded event."""

    run_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=_utcnow)

    workflow: str
    kind: str
    payload: Any = None

    def to_event(self) -> Event:
        """Rebuild an untyped event; payload dataclasses come back as dicts."""

        return Event(kind=self.kind, payload=self.payload)


def _jsonable(payload: Any) -> Any:
    # exceptions and other opaque objects are recorded by their repr
    return to_jsonable_python(payload, fallback=repr)


@dataclass
class JsonlEventRecorder:
    """Append-only JSONL recorder usable as a workflow event hook."""

    path: Path
    _seq: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def on_event(self, ctx: RunContext, event: Event) -> None:
        with self._lock:
            seq = self._seq.get(ctx.run_id, 0) + 1
            if StopEvent.includes(event) or ErrorEvent.includes(event):
                # terminal event; the run will not record again
                self._seq.pop(ctx.run_id, None)
            else:
                self._seq[ctx.run_id] = seq
        self.append(
            EventRecord(
                run_id=ctx.run_id,
                seq=seq,
                workflow=ctx.workflow_name,
                kind=event.kind,
                payload=_jsonable(event.payload),
            )
        )

    def append(self, record: EventRecord) -> None:
        """Append a record."""

        line = record.model_dump_json()
        with self._lock, self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


def iter_records(path: Path) -> list[EventRecord]:
    """Load all records from a JSONL file."""

    records: list[EventRecord] = []
    path = Path(path)
    if not path.exists():
        return records
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        records.append(EventRecord.model_validate_json(line))
    return records

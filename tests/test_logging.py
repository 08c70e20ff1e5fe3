"""Tests for structured logging helpers."""

from __future__ import annotations

import logging

from eventloom.logging import StructuredFormatter, _ContextFilter, current_run_id, run_context, step_context


def make_record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("eventloom.test", logging.INFO, __file__, 1, "Step failed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_extra_fields() -> None:
    """It should render extra fields as key=value pairs after the message."""

    record = make_record(attempt=2, error="boom")
    _ContextFilter().filter(record)

    line = StructuredFormatter("%(name)s: %(message)s").format(record)
    assert line == "eventloom.test: Step failed attempt=2 error=boom"


def test_run_context_binds_and_restores() -> None:
    """It should stamp the bound run onto records and restore the previous values after."""

    with run_context(run_id="r1", workflow="counter"):
        with step_context("process"):
            record = make_record()
            _ContextFilter().filter(record)
        after = make_record()
        _ContextFilter().filter(after)
        assert current_run_id() == "r1"

    assert (record.run_id, record.workflow, record.step) == ("r1", "counter", "process")
    assert after.step == "-"
    assert current_run_id() == "-"


def test_explicit_extra_wins_over_context() -> None:
    """It should keep a step passed through extra instead of the context's step."""

    with run_context(run_id="r2", step="outer"):
        record = make_record(step="inner")
        _ContextFilter().filter(record)

    assert record.step == "inner"

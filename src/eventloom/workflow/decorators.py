"""Handler combinators and middleware.

Every helper here takes and returns ordinary handlers, so the result can be
registered with :meth:`Workflow.handle` or wrapped again. Wrapped handlers
may be sync or async; the returned handler is always async.
"""

from __future__ import annotations

import time
from logging import Logger
from typing import TYPE_CHECKING, Callable

from eventloom.logging import get_logger
from eventloom.workflow.errors import PanicError, WorkflowError
from eventloom.workflow.events import Event
from eventloom.workflow.steps import Handler, call_handler

if TYPE_CHECKING:
    from eventloom.workflow.context import RunContext

logger = get_logger(__name__)

Middleware = Callable[[Handler], Handler]


def _named(fn: Handler, name: str) -> Handler:
    fn.__name__ = name  # type: ignore[attr-defined]
    return fn


def _name_of(handler: Handler) -> str:
    return getattr(handler, "__name__", type(handler).__name__)


def conditional_handler(condition: Callable[[RunContext, Event], bool], handler: Handler) -> Handler:
    """Run ``handler`` only when ``condition(ctx, event)`` holds; otherwise emit nothing."""

    async def conditional(ctx: RunContext, event: Event) -> list[Event]:
        if not condition(ctx, event):
            return []
        return await call_handler(handler, ctx, event)

    return _named(conditional, _name_of(handler))


def chain_handlers(*handlers: Handler) -> Handler:
    """Run every handler on the same event and concatenate their events.

    The first failure aborts the chain and nothing from earlier handlers is
    emitted.
    """

    async def chain(ctx: RunContext, event: Event) -> list[Event]:
        emitted: list[Event] = []
        for handler in handlers:
            emitted.extend(await call_handler(handler, ctx, event))
        return emitted

    return _named(chain, "chain(" + ",".join(_name_of(h) for h in handlers) + ")")


def pipeline_handlers(*handlers: Handler) -> Handler:
    """Feed each stage the events produced by the previous stage."""

    async def pipeline(ctx: RunContext, event: Event) -> list[Event]:
        current = [event]
        for handler in handlers:
            following: list[Event] = []
            for ev in current:
                following.extend(await call_handler(handler, ctx, ev))
            current = following
        return current

    return _named(pipeline, "pipeline(" + ",".join(_name_of(h) for h in handlers) + ")")


def fallback_handler(handler: Handler, fallback: Handler) -> Handler:
    """On failure of ``handler``, return whatever ``fallback`` produces for the same event."""

    async def with_fallback(ctx: RunContext, event: Event) -> list[Event]:
        try:
            return await call_handler(handler, ctx, event)
        except Exception as exc:  # noqa: BLE001
            logger.info(
                "Handler failed, using fallback",
                extra={"handler": _name_of(handler), "fallback": _name_of(fallback), "error": str(exc)},
            )
            return await call_handler(fallback, ctx, event)

    return _named(with_fallback, _name_of(handler))


def filter_events(handler: Handler, predicate: Callable[[Event], bool]) -> Handler:
    """Drop emitted events for which ``predicate`` is false."""

    async def filtered(ctx: RunContext, event: Event) -> list[Event]:
        return [ev for ev in await call_handler(handler, ctx, event) if predicate(ev)]

    return _named(filtered, _name_of(handler))


def map_events(handler: Handler, mapper: Callable[[Event], Event]) -> Handler:
    """Transform every emitted event with ``mapper``."""

    async def mapped(ctx: RunContext, event: Event) -> list[Event]:
        return [mapper(ev) for ev in await call_handler(handler, ctx, event)]

    return _named(mapped, _name_of(handler))


def logging_handler(name: str, handler: Handler, log: Logger | None = None) -> Handler:
    """Log start, completion and failure of ``handler``."""

    log = log or logger

    async def logged(ctx: RunContext, event: Event) -> list[Event]:
        log.info("Step started", extra={"step": name, "kind": event.kind})
        try:
            events = await call_handler(handler, ctx, event)
        except Exception as exc:
            log.error("Step failed", extra={"step": name, "error": str(exc)})
            raise
        log.info("Step completed", extra={"step": name, "events_emitted": len(events)})
        return events

    return _named(logged, name)


def timing_handler(name: str, handler: Handler) -> Handler:
    """Record the handler's wall time, in seconds, as ``_timing_<name>`` in run state."""

    async def timed(ctx: RunContext, event: Event) -> list[Event]:
        started = time.perf_counter()
        try:
            return await call_handler(handler, ctx, event)
        finally:
            elapsed = time.perf_counter() - started
            logger.debug("Step timing", extra={"step": name, "duration_s": round(elapsed, 6)})
            ctx.set(f"_timing_{name}", elapsed)

    return _named(timed, name)


def apply_middleware(handler: Handler, *middlewares: Middleware) -> Handler:
    """Wrap ``handler`` so the first middleware listed is the outermost."""

    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def logging_middleware(name: str, log: Logger | None = None) -> Middleware:
    return lambda next_handler: logging_handler(name, next_handler, log)


def timing_middleware(name: str) -> Middleware:
    return lambda next_handler: timing_handler(name, next_handler)


def recovery_middleware() -> Middleware:
    """Turn unexpected exceptions into :class:`PanicError`.

    Runtime errors (``WorkflowError`` subclasses) pass through unchanged so
    timeouts, cancellation and retry exhaustion keep their meaning.
    """

    def middleware(next_handler: Handler) -> Handler:
        async def recovered(ctx: RunContext, event: Event) -> list[Event]:
            try:
                return await call_handler(next_handler, ctx, event)
            except WorkflowError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Recovered from handler crash",
                    extra={"handler": _name_of(next_handler), "error_type": type(exc).__name__},
                )
                raise PanicError(exc) from exc

        return _named(recovered, _name_of(next_handler))

    return middleware

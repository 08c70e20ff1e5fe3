"""Step registration types, retry policy and handler invocation."""

from __future__ import annotations

import asyncio
import functools
import inspect
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Sequence, TypeVar, Union

from eventloom.workflow.errors import WorkflowConfigError
from eventloom.workflow.events import Event, EventFactory

if TYPE_CHECKING:
    from eventloom.workflow.context import RunContext

T = TypeVar("T")

HandlerResult = Union[Sequence[Event], None]
Handler = Callable[["RunContext", Event], Union[HandlerResult, Awaitable[HandlerResult]]]
TypedHandler = Callable[["RunContext", T], Union[HandlerResult, Awaitable[HandlerResult]]]


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for a step.

    The delay before retry ``n`` (1-based) is
    ``min(max_delay, initial_delay * multiplier ** (n - 1))``.
    """

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0
    retry_on: Callable[[BaseException], bool] = _always

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise WorkflowConfigError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise WorkflowConfigError("retry delays must be >= 0")
        if self.multiplier <= 0:
            raise WorkflowConfigError("multiplier must be > 0")

    def delay_for(self, retry: int) -> float:
        return min(self.max_delay, self.initial_delay * self.multiplier ** (retry - 1))

    def should_retry(self, error: BaseException) -> bool:
        return bool(self.retry_on(error))


@dataclass(frozen=True)
class StepConfig:
    """Configuration of one registered step."""

    name: str = ""
    num_workers: int = 1
    retry_policy: RetryPolicy | None = None

    def __post_init__(self) -> None:
        if self.num_workers < 1:
            raise WorkflowConfigError("num_workers must be >= 1")


@dataclass(frozen=True)
class Step:
    """A handler bound to the event kinds it accepts."""

    accepted_kinds: tuple[str, ...]
    handler: Handler
    config: StepConfig = field(default_factory=StepConfig)

    @property
    def name(self) -> str:
        return self.config.name or _handler_name(self.handler)


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__name__", None) or type(handler).__name__


StepOption = Callable[[StepConfig], StepConfig]


def with_step_name(name: str) -> StepOption:
    return lambda cfg: replace(cfg, name=name)


def with_num_workers(n: int) -> StepOption:
    return lambda cfg: replace(cfg, num_workers=n)


def with_retry_policy(policy: RetryPolicy | None) -> StepOption:
    return lambda cfg: replace(cfg, retry_policy=policy)


def with_retries(max_retries: int) -> StepOption:
    """Retry up to ``max_retries`` times with the default backoff."""

    return with_retry_policy(RetryPolicy(max_retries=max_retries))


def with_exponential_backoff(max_retries: int, initial_delay: float, max_delay: float) -> StepOption:
    return with_retry_policy(
        RetryPolicy(max_retries=max_retries, initial_delay=initial_delay, max_delay=max_delay)
    )


def build_step_config(*options: StepOption) -> StepConfig:
    cfg = StepConfig()
    for option in options:
        cfg = option(cfg)
    return cfg


def _is_async_callable(obj: Any) -> bool:
    while isinstance(obj, functools.partial):
        obj = obj.func
    return inspect.iscoroutinefunction(obj) or inspect.iscoroutinefunction(getattr(obj, "__call__", None))


async def call_handler(handler: Handler, ctx: RunContext, event: Event) -> list[Event]:
    """Invoke ``handler`` and normalise its result to a list of events.

    Coroutine functions run on the event loop; plain callables run on a worker
    thread so a blocking handler never stalls the dispatcher.
    """

    if _is_async_callable(handler):
        result = await handler(ctx, event)  # type: ignore[misc]
    else:
        result = await asyncio.to_thread(handler, ctx, event)
        if inspect.isawaitable(result):
            result = await result
    return _normalise(result)


def _normalise(result: Any) -> list[Event]:
    if result is None:
        return []
    if isinstance(result, Event):
        return [result]
    events = list(result)
    for ev in events:
        if not isinstance(ev, Event):
            raise TypeError(f"handler returned {type(ev).__name__}, expected Event")
    return events


def wrap_typed_handler(factory: EventFactory[T], handler: TypedHandler[T]) -> Handler:
    """Adapt a handler that takes the extracted payload instead of the raw event."""

    async def typed(ctx: RunContext, event: Event) -> list[Event]:
        data, ok = factory.extract(event)
        if not ok:
            return []
        if _is_async_callable(handler):
            result = await handler(ctx, data)  # type: ignore[misc,arg-type]
        else:
            result = await asyncio.to_thread(handler, ctx, data)  # type: ignore[arg-type]
            if inspect.isawaitable(result):
                result = await result
        return _normalise(result)

    typed.__name__ = _handler_name(handler)
    return typed


def as_kinds(kinds: str | EventFactory[Any] | Iterable[str | EventFactory[Any]]) -> tuple[str, ...]:
    """Accept a kind, a factory, or an iterable of either."""

    if isinstance(kinds, (str, EventFactory)):
        kinds = [kinds]
    out = tuple(k.kind if isinstance(k, EventFactory) else k for k in kinds)
    if not out:
        raise WorkflowConfigError("a step must accept at least one event kind")
    return out

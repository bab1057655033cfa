"""Debounce and throttle around resolver execution, plus async helpers."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from recache.duration import parse_duration, to_seconds
from recache.types import Duration

T = TypeVar("T")

# Keys into a manager's scratch data; objects so they never clash with user keys.
EXECUTION_SLOT = object()
INVALIDATION_SLOT = object()


class ConcurrencyOptions(Protocol):
    @property
    def debounce(self) -> Duration | None: ...

    @property
    def throttle(self) -> Duration | None: ...


@dataclass(slots=True)
class _SlotState:
    handle: asyncio.TimerHandle | None = None
    pending: asyncio.Future[Any] | None = None
    last_execution: float | None = None
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)


def _settle(future: asyncio.Future[Any], task: asyncio.Future[Any]) -> None:
    if future.done():
        return
    if task.cancelled():
        future.cancel()
    elif task.exception() is not None:
        future.set_exception(task.exception())  # type: ignore[arg-type]
    else:
        future.set_result(task.result())


def run_with_concurrency(
    storage: dict[Any, Any],
    options: ConcurrencyOptions,
    fn: Callable[[], Awaitable[T]],
    *,
    slot: object = EXECUTION_SLOT,
) -> Awaitable[T]:
    """Run ``fn`` under the debounce or throttle of ``options``.

    Debounced calls share one future that settles when the last scheduled
    call has run. A throttled call inside the window gets a future that
    never settles; callers that must not hang need their own timeout.
    """
    state: _SlotState = storage.setdefault(slot, _SlotState())

    if options.debounce is not None:
        loop = asyncio.get_running_loop()
        if state.handle is not None:
            state.handle.cancel()
        if state.pending is None or state.pending.done():
            state.pending = loop.create_future()
        pending = state.pending

        def fire() -> None:
            state.handle = None
            state.pending = None
            task = asyncio.ensure_future(fn())
            state.tasks.add(task)
            task.add_done_callback(state.tasks.discard)
            task.add_done_callback(lambda done: _settle(pending, done))

        state.handle = loop.call_later(to_seconds(options.debounce), fire)
        return pending

    if options.throttle is not None:
        now = time.monotonic() * 1000
        window = parse_duration(options.throttle)
        if state.last_execution is not None and now < state.last_execution + window:
            return forever()
        state.last_execution = now

    return fn()


def forever() -> asyncio.Future[Any]:
    """A future that is never resolved."""
    return asyncio.get_running_loop().create_future()


async def maybe_await(value: Awaitable[T] | T) -> T:
    if inspect.isawaitable(value):
        return await value  # type: ignore[no-any-return]
    return value  # type: ignore[return-value]


async def delay(duration: Duration, value: T | None = None) -> T | None:
    """Sleep for a duration, then return ``value``."""
    await asyncio.sleep(to_seconds(duration))
    return value


async def race(*awaitables: Awaitable[Any]) -> Any:
    """Result of the first awaitable to finish; the rest are cancelled."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        return next(iter(done)).result()
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()


__all__ = [
    "EXECUTION_SLOT",
    "INVALIDATION_SLOT",
    "delay",
    "forever",
    "maybe_await",
    "race",
    "run_with_concurrency",
]

"""Placeholder-now, value-later results.

A resolver may return ``lazy(placeholder, loader)``. The placeholder is the
result of the call; once the call has completed, the loader runs in the
background and its value is written to the same place in the cache, once
or on every ``interval`` while the session stays active.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from graphql import DocumentNode

from recache.concurrency import maybe_await
from recache.duration import to_seconds
from recache.types import Duration, LazyOptions

if TYPE_CHECKING:
    from recache.adapters.base import DocumentCache
    from recache.registry import Client
    from recache.session import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Lazy(Generic[T]):
    placeholder: T | None
    loader: Callable[[], Any]
    options: LazyOptions = field(default_factory=LazyOptions)


def lazy(
    placeholder: Any,
    loader: Callable[[], Any] | None = None,
    *,
    interval: Duration | None = None,
) -> Lazy[Any]:
    """Create a lazy result.

    ``lazy(loader)`` has no placeholder: the first result is None.
    """
    if loader is None:
        if not callable(placeholder):
            raise TypeError("lazy() needs a loader")
        placeholder, loader = None, placeholder
    if interval is not None:
        to_seconds(interval)  # validate eagerly
    return Lazy(placeholder, loader, LazyOptions(interval=interval))


class LazyTarget(Protocol):
    def write(self, cache: DocumentCache, value: Any) -> None: ...


@dataclass(frozen=True, slots=True)
class QueryTarget:
    """The root field of a query document."""

    document: DocumentNode
    alias: str
    variables: dict[str, Any] | None

    def write(self, cache: DocumentCache, value: Any) -> None:
        cache.write(
            self.document,
            {self.alias: value},
            self.variables,
            overwrite=True,
            broadcast=True,
        )


@dataclass(frozen=True, slots=True)
class FieldTarget:
    """One field of a normalized record."""

    entity_id: str
    field: str

    def write(self, cache: DocumentCache, value: Any) -> None:
        cache.modify(self.entity_id, {self.field: lambda _: value}, broadcast=True)


def handle_lazy_result(
    client: Client,
    session: Session,
    target: LazyTarget | None,
    result: Any,
) -> Any:
    """Return what the caller should see now and schedule the loader."""
    if not isinstance(result, Lazy):
        return result
    if target is None:
        logger.debug("Lazy result has no cache location; loader skipped")
        return result.placeholder

    interval = result.options.interval

    async def load() -> None:
        try:
            value = await maybe_await(result.loader())
        except Exception:
            logger.warning("Lazy loader failed", exc_info=True)
            return
        if session.is_active:
            target.write(client.cache, value)

    async def poll(seconds: float) -> None:
        while session.is_active:
            await asyncio.sleep(seconds)
            if not session.is_active:
                break
            await load()

    def start() -> None:
        if not session.is_active:
            return
        client.spawn(load())
        if interval is not None:
            task = client.spawn(poll(to_seconds(interval)))
            session.manager.on_dispose(task.cancel)

    session.manager.on_load(start)
    return result.placeholder


__all__ = ["FieldTarget", "Lazy", "QueryTarget", "handle_lazy_result", "lazy"]

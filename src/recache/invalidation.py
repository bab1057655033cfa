"""Dependency edges between computations and what happens when they fire."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from recache.adapters.memory import ROOT_QUERY
from recache.concurrency import INVALIDATION_SLOT, run_with_concurrency
from recache.documents import unwrap_variables
from recache.selection import resolve_arguments, root_fields
from recache.types import QueryOptions

if TYPE_CHECKING:
    from recache.entities import Query
    from recache.registry import Client
    from recache.session import Session, SessionManager

logger = logging.getLogger(__name__)


class Source(Protocol):
    """Anything a computation can depend on."""

    def on_change(self, callback: Callable[[Any], Any]) -> Callable[[], None]: ...


def track_dependency(session: Session, source: Source) -> None:
    """Record that the computation running in ``session`` read ``source``.

    The subscription is made once the computation has finished loading and
    torn down when its session ends. Reads from contexts that do not
    recompute (root calls, mutations, proactive queries) are not tracked.
    """
    manager = session.manager
    if manager.invalidate is None or not session.is_active:
        return
    if not session.track(source):
        return

    def on_change(_: Any) -> None:
        if session.is_active and manager.invalidate is not None:
            manager.invalidate()

    def subscribe() -> None:
        if session.is_active:
            manager.on_dispose(source.on_change(on_change))

    manager.on_load(subscribe)


def create_query_invalidator(
    client: Client, query: Query, manager: SessionManager, session: Session
) -> Callable[[], None]:
    """The reaction of ``query`` to a change of something it read."""

    def invalidate() -> None:
        if not session.is_active:
            return
        if query.options.hard_refetch:
            logger.debug("Hard refetch of %s %r", query.alias, manager.key)

            async def evict() -> None:
                evict_query(client, query, manager.key)

            options = QueryOptions(debounce=query.options.debounce)
            client.spawn(
                run_with_concurrency(manager.data, options, evict, slot=INVALIDATION_SLOT)
            )
        else:
            logger.debug("Soft refetch of %s %r", query.alias, manager.key)
            client.spawn(_refetch_quietly(manager))

    return invalidate


async def _refetch_quietly(manager: SessionManager) -> None:
    try:
        result = await manager.live.refetch()
    except Exception:
        logger.warning("Background refetch failed", exc_info=True)
        return
    if result.error is not None:
        logger.warning("Background refetch failed", exc_info=result.error)


def evict_query(client: Client, query: Query, variables: Any = None) -> bool:
    """Evict the root fields a query's data is stored under, then collect."""
    wrapped = query.wrap_variables(variables)
    cache = client.cache
    if cache.read(query.document, wrapped) is None:
        return False
    for field in root_fields(query.document):
        cache.evict(ROOT_QUERY, field.name.value, resolve_arguments(field, wrapped))
    cache.garbage_collect()
    return True


def _live_queries_of(client: Client, query: Query) -> list[Any]:
    return [
        live for live in client.cache.live_queries() if live.document is query.document
    ]


def evict_all_queries(client: Client, query: Query) -> None:
    """Evict every variable set of ``query`` that is being watched."""
    for live in _live_queries_of(client, query):
        evict_query(client, query, unwrap_variables(live.variables))


async def refetch_all_queries(client: Client, query: Query) -> None:
    """Refetch every variable set of ``query`` that has been loaded."""
    lives = [
        live for live in _live_queries_of(client, query) if live.last_result is not None
    ]
    await asyncio.gather(*(live.refetch() for live in lives))


__all__ = [
    "Source",
    "create_query_invalidator",
    "evict_all_queries",
    "evict_query",
    "refetch_all_queries",
    "track_dependency",
]

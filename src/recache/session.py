"""Sessions: revocable execution epochs of one entity instance.

A ``SessionManager`` exists once per (group, key) pair and client. Every
execution starts a new ``Session`` on it; starting a session (or disposing
the manager) makes the previous session inactive, which is how deferred
work from a superseded execution knows to stop.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from recache.callbacks import CallbackGroup
from recache.documents import wrap_variables

if TYPE_CHECKING:
    from recache.adapters.base import LiveQuery
    from recache.entities import Query
    from recache.registry import Client
    from recache.types import QueryResult

logger = logging.getLogger(__name__)

_UNSET = object()


class Session:
    """One execution epoch of a manager."""

    __slots__ = ("_token", "_tracked", "manager")

    def __init__(self, manager: SessionManager, token: object) -> None:
        self.manager = manager
        self._token = token
        self._tracked: set[int] = set()

    @property
    def is_active(self) -> bool:
        return self.manager.token is self._token

    def track(self, source: object) -> bool:
        """Remember a dependency; False if it was already recorded."""
        if id(source) in self._tracked:
            return False
        self._tracked.add(id(source))
        return True


class SessionManager:
    """Owns the identity, observers and scratch data of an entity instance."""

    def __init__(self, client: Client, group: object | None, key: Any) -> None:
        self.client = client
        self.group = group
        self.key = key
        self.data: dict[Any, Any] = {}
        self.on_load = CallbackGroup()
        self.on_dispose = CallbackGroup()
        self.changes = CallbackGroup()
        self.query: Query | None = None
        # What to do when a dependency read by the current session changes.
        self.invalidate: Callable[[], None] | None = None
        self._token = object()
        self._disposed = False
        self._live: LiveQuery | None = None
        self._live_unsubscribe: Callable[[], None] | None = None
        self._last_change: Any = _UNSET

    @property
    def token(self) -> object:
        return self._token

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def live(self) -> LiveQuery:
        """The live query for this manager's document, created on first use."""
        if self._live is None:
            if self.query is not None:
                document = self.query.document
                variables = wrap_variables(self.query.dynamic, self.key)
            else:
                document = self.group
                variables = wrap_variables(False, self.key)
            self._live = self.client.cache.watch(document, variables)
        return self._live

    def start(self) -> Session:
        """Supersede the current session and begin a new one."""
        self._token = object()
        self._disposed = False
        self._flush()
        logger.debug("Session started for %r %r", self.group, self.key)
        return Session(self, self._token)

    def dispose(self) -> None:
        """End the current session without starting another."""
        if self._disposed:
            return
        self._disposed = True
        self._token = object()
        self._flush()
        logger.debug("Session manager disposed for %r %r", self.group, self.key)

    def evict(self) -> None:
        """Dispose and drop the live subscription used for change tracking."""
        self.dispose()
        if self._live_unsubscribe is not None:
            self._live_unsubscribe()
            self._live_unsubscribe = None
            self._last_change = _UNSET

    async def refetch(self) -> QueryResult:
        self._flush()
        return await self.live.refetch()

    def on_change(self, callback: Callable[[Any], Any]) -> Callable[[], None]:
        """Listen for data changes of the live query.

        Loading and error results are ignored, as are results whose data
        equals the last one seen.
        """
        if self._live_unsubscribe is None:
            self._last_change = self.live.current_result().data
            self._live_unsubscribe = self.live.subscribe(self._handle_result)
        return self.changes.add(callback)

    def _handle_result(self, result: QueryResult) -> None:
        if result.loading or result.error is not None or result.data is None:
            return
        if result.data == self._last_change:
            return
        self._last_change = result.data
        self.changes.invoke(result.data)

    def _flush(self) -> None:
        self.on_dispose.invoke_and_clear()
        self.on_load.invoke_and_clear()


def _normalize_key(key: Any) -> Any:
    return {} if key is None else key


def get_session_manager(
    client: Client, group: object | None = None, key: Any = None
) -> SessionManager:
    """The manager for ``(group, key)`` on ``client``.

    Without a group a fresh, unshared manager is returned.
    """
    if group is None:
        return SessionManager(client, None, _normalize_key(key))
    key = _normalize_key(key)
    managers = client.registry.group(group)
    return cast(SessionManager, managers.get(key, lambda: SessionManager(client, group, key)))


def get_query_manager(client: Client, query: Query, variables: Any = None) -> SessionManager:
    """The manager of one query and variable set."""
    manager = get_session_manager(client, query.document, variables)
    if manager.query is None:
        manager.query = query
    return manager


__all__ = ["Session", "SessionManager", "get_query_manager", "get_session_manager"]

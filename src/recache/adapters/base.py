"""Protocols for the cache boundary and its storage backends."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from graphql import DocumentNode

from recache.types import ExecutionResult, QueryResult

# resolver(parent, args, context) -> value or awaitable
Resolver = Callable[[Any, dict[str, Any], dict[str, Any]], Any]


@runtime_checkable
class RecordStore(Protocol):
    """Sync storage for normalized cache records."""

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Get a record by id."""
        ...

    def set(self, record_id: str, record: dict[str, Any]) -> None:
        """Store a record, replacing any previous one."""
        ...

    def delete(self, record_id: str) -> bool:
        """Delete a record; True if it existed."""
        ...

    def ids(self) -> Iterable[str]:
        """Ids of every stored record."""
        ...

    def clear(self) -> None:
        """Remove every record."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Sends the non-local part of a document to a server."""

    async def execute(
        self, document: DocumentNode, variables: Mapping[str, Any] | None
    ) -> ExecutionResult:
        """Execute a document remotely."""
        ...


@runtime_checkable
class LiveQuery(Protocol):
    """A watched (document, variables) pair."""

    document: DocumentNode
    variables: dict[str, Any] | None

    @property
    def last_result(self) -> QueryResult | None:
        """The last result seen, if any."""
        ...

    def current_result(self) -> QueryResult:
        """Whatever the cache holds right now."""
        ...

    async def result(self) -> QueryResult:
        """Cached data, fetching on a miss."""
        ...

    async def refetch(self) -> QueryResult:
        """Execute again and write the outcome into the cache."""
        ...

    def subscribe(self, callback: Callable[[QueryResult], Any]) -> Callable[[], None]:
        """Observe results; returns an unsubscribe function."""
        ...


@runtime_checkable
class DocumentCache(Protocol):
    """The normalized document cache the engine orchestrates."""

    def read(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Read a document; None when any selected field is missing."""
        ...

    def write(
        self,
        document: DocumentNode,
        data: Mapping[str, Any],
        variables: Mapping[str, Any] | None = None,
        *,
        overwrite: bool = True,
        broadcast: bool = True,
    ) -> None:
        """Write data shaped like ``document``."""
        ...

    def modify(
        self,
        entity_id: str,
        fields: Mapping[str, Callable[[Any], Any]],
        *,
        broadcast: bool = True,
    ) -> bool:
        """Rewrite fields of one normalized record."""
        ...

    def identify(self, value: Any) -> str | None:
        """The record id of a normalizable object."""
        ...

    def evict(
        self,
        entity_id: str,
        field: str | None = None,
        args: Mapping[str, Any] | None = None,
        *,
        broadcast: bool = True,
    ) -> bool:
        """Remove a record, or one field of it."""
        ...

    def garbage_collect(self) -> list[str]:
        """Drop unreachable records and return their ids."""
        ...

    def watch(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> LiveQuery:
        """Create a live query."""
        ...

    def live_queries(self) -> list[LiveQuery]:
        """Every live query still referenced."""
        ...

    async def execute(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> ExecutionResult:
        """Execute a document, resolving local fields in process."""
        ...

    def add_resolvers(self, resolvers: Mapping[str, Mapping[str, Resolver]]) -> None:
        """Register local resolvers by type name and field name."""
        ...

    async def settle(self) -> bool:
        """Wait for background reloads; True if there were any."""
        ...

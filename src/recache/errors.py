"""Exception types raised by recache."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any


class RecacheError(Exception):
    """Base class for recache errors."""


class UnknownIdentifierError(RecacheError, LookupError):
    """An entity name was looked up that the model never declared."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown identifier: {name!r}")
        self.name = name


class ReadOnlyContextError(RecacheError):
    """A state write was attempted from a read-only context."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Updating state {name!r} in this context is not allowed")
        self.name = name


class MissingResolverError(RecacheError):
    """A locally resolved root field has no resolver and no cached value."""


class TransportError(RecacheError):
    """The transport could not complete a request."""


class GraphQLRequestError(RecacheError):
    """An error entry returned by a GraphQL server."""

    def __init__(self, message: str, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class QueryPending(RecacheError):
    """Raised by ``wait()`` while a query has no data yet.

    UI bindings await ``awaitable`` and then render again.
    """

    def __init__(self, awaitable: Awaitable[Any]) -> None:
        super().__init__("Query result is pending")
        self.awaitable = awaitable


__all__ = [
    "GraphQLRequestError",
    "MissingResolverError",
    "QueryPending",
    "ReadOnlyContextError",
    "RecacheError",
    "TransportError",
    "UnknownIdentifierError",
]

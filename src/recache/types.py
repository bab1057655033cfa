"""Core types for the recache data layer."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from recache.registry import Client

# Duration type alias
Duration = str | int  # "300ms", "30s", "5m" or milliseconds

FetchPolicy = Literal["cache-first", "network-only"]

Variables = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """Options for a query entity."""

    type: str | None = None  # __typename stamped on resolver results
    proactive: bool = False  # True disables recomputation on dependency change
    hard_refetch: bool = False  # evict instead of refetching in the background
    debounce: Duration | None = None
    throttle: Duration | None = None
    stale_time: Duration | None = None  # evict this long after each resolve
    fetch_policy: FetchPolicy = "cache-first"

    def __post_init__(self) -> None:
        if self.fetch_policy not in ("cache-first", "network-only"):
            raise ValueError(f"Invalid fetch policy: {self.fetch_policy!r}")


@dataclass(frozen=True, slots=True)
class MutationOptions:
    """Options for a mutation entity."""

    type: str | None = None
    debounce: Duration | None = None
    throttle: Duration | None = None


@dataclass(frozen=True, slots=True)
class StateOptions:
    """Options for a state entity."""

    key: str | None = None  # cache root field used for persistence
    equal: Callable[[Any, Any], bool] | None = None


@dataclass(frozen=True, slots=True)
class FieldOptions:
    """Options for a type field resolver."""

    type: str | None = None
    parse: Callable[[Any], Any] | None = None


@dataclass(frozen=True, slots=True)
class LazyOptions:
    """Options for a lazy result."""

    interval: Duration | None = None


@dataclass(frozen=True, slots=True)
class ModelOptions:
    """Options shared by every entity of a model."""

    name: str = ""
    context: Mapping[str, Any] | Callable[[Client], Mapping[str, Any]] | None = None


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Where a locally resolved field really lives."""

    field: str
    type: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of executing a document against the cache."""

    data: dict[str, Any] | None
    errors: tuple[Exception, ...] = ()


@dataclass(frozen=True, slots=True)
class QueryResult:
    """A snapshot emitted by a live query."""

    data: dict[str, Any] | None = None
    loading: bool = False
    error: Exception | None = None


__all__ = [
    "Duration",
    "ExecutionResult",
    "FetchPolicy",
    "FieldMapping",
    "FieldOptions",
    "LazyOptions",
    "ModelOptions",
    "MutationOptions",
    "QueryOptions",
    "QueryResult",
    "StateOptions",
    "Variables",
]

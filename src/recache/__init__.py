"""recache - a reactive data layer over a normalized document cache."""

from contextlib import suppress

# Adapters
from recache.adapters import (
    DocumentCache,
    LiveQuery,
    MemoryRecordStore,
    RecordStore,
    Transport,
)

# Cache
from recache.cache import MemoryCache

# Core
from recache.callbacks import CallbackGroup
from recache.concurrency import delay, race
from recache.context import Context
from recache.duration import parse_duration
from recache.errors import (
    GraphQLRequestError,
    MissingResolverError,
    QueryPending,
    ReadOnlyContextError,
    RecacheError,
    TransportError,
    UnknownIdentifierError,
)
from recache.lazy import Lazy, lazy
from recache.model import Model, create_model
from recache.registry import Client
from recache.session import Session, SessionManager, get_session_manager

# Types
from recache.types import (
    Duration,
    ExecutionResult,
    FieldOptions,
    LazyOptions,
    ModelOptions,
    MutationOptions,
    QueryOptions,
    QueryResult,
    StateOptions,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from recache.adapters import RedisRecordStore

with suppress(ImportError):
    from recache.adapters import HttpTransport

__version__ = "0.1.0"

__all__ = [
    "CallbackGroup",
    "Client",
    "Context",
    "DocumentCache",
    "Duration",
    "ExecutionResult",
    "FieldOptions",
    "GraphQLRequestError",
    "HttpTransport",
    "Lazy",
    "LazyOptions",
    "LiveQuery",
    "MemoryCache",
    "MemoryRecordStore",
    "MissingResolverError",
    "Model",
    "ModelOptions",
    "MutationOptions",
    "QueryOptions",
    "QueryPending",
    "QueryResult",
    "ReadOnlyContextError",
    "RecacheError",
    "RecordStore",
    "RedisRecordStore",
    "Session",
    "SessionManager",
    "StateOptions",
    "Transport",
    "TransportError",
    "UnknownIdentifierError",
    "create_model",
    "delay",
    "get_session_manager",
    "lazy",
    "parse_duration",
    "race",
]

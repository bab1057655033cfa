"""Execution contexts handed to resolvers, initializers, effects and actions."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from recache.concurrency import delay, race
from recache.errors import UnknownIdentifierError
from recache.lazy import lazy

if TYPE_CHECKING:
    from recache.adapters.base import DocumentCache
    from recache.model import Model
    from recache.registry import Client
    from recache.session import Session

T = TypeVar("T")


class Context:
    """What a single execution can see.

    ``ctx["name"]`` returns the dispatcher of a declared entity; it is built
    on first access and reused for the rest of this execution. Context
    values configured on the model or client are plain attributes.
    """

    lazy = staticmethod(lazy)
    delay = staticmethod(delay)
    race = staticmethod(race)
    gather = staticmethod(asyncio.gather)

    def __init__(
        self,
        model: Model,
        client: Client,
        session: Session,
        *,
        updatable: bool,
        values: Mapping[str, Any] | None = None,
    ) -> None:
        self._model = model
        self._client = client
        self._session = session
        self._updatable = updatable
        self._values = dict(values) if values is not None else model.context_values(client)
        self._dispatchers: dict[str, Any] = {}

    @property
    def client(self) -> Client:
        return self._client

    @property
    def cache(self) -> DocumentCache:
        return self._client.cache

    @property
    def model(self) -> Model:
        return self._model

    @property
    def session(self) -> Session:
        return self._session

    @property
    def updatable(self) -> bool:
        """Whether state may be written from this context."""
        return self._updatable

    @property
    def shared(self) -> dict[Any, Any]:
        """Scratch data that survives across calls of the same entity instance."""
        return self._session.manager.data

    @property
    def last_data(self) -> Any:
        """Data the executing query produced last time, if any."""
        manager = self._session.manager
        if manager.query is None:
            return None
        last = manager.live.last_result
        return last.data if last is not None else None

    def use(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` with this context followed by ``args``."""
        return fn(self, *args, **kwargs)

    def __getitem__(self, name: str) -> Any:
        dispatcher = self._dispatchers.get(name)
        if dispatcher is None:
            factory = self._model.dispatchers.get(name)
            if factory is None:
                raise UnknownIdentifierError(name)
            dispatcher = self._dispatchers[name] = factory(self)
        return dispatcher

    def __contains__(self, name: object) -> bool:
        return name in self._model.dispatchers

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"Context has no value {name!r}") from None


__all__ = ["Context"]

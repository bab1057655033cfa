"""Live queries of the in-memory cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from graphql import DocumentNode

from recache.callbacks import CallbackGroup
from recache.types import QueryResult

if TYPE_CHECKING:
    from recache.cache import MemoryCache

logger = logging.getLogger(__name__)


class MemoryLiveQuery:
    """A watched (document, variables) pair.

    ``result()`` is cache-first and coalesces concurrent misses into one
    execution; ``refetch()`` always executes. Subscribers hear about data
    changes, errors, and the loading phase of a reload after eviction.
    """

    def __init__(
        self,
        cache: MemoryCache,
        document: DocumentNode,
        variables: dict[str, Any] | None,
    ) -> None:
        self.document = document
        self.variables = variables
        self._cache = cache
        self._subscribers = CallbackGroup()
        self._last: QueryResult | None = None
        self._in_flight: asyncio.Future[QueryResult] | None = None

    @property
    def last_result(self) -> QueryResult | None:
        return self._last

    def current_result(self) -> QueryResult:
        """Whatever the cache holds right now."""
        data = self._cache.read(self.document, self.variables)
        if data is not None:
            return QueryResult(data=data)
        error = self._last.error if self._last is not None else None
        return QueryResult(loading=self._in_flight is not None, error=error)

    async def result(self) -> QueryResult:
        """Cached data, or the outcome of executing the document."""
        data = self._cache.read(self.document, self.variables)
        if data is not None:
            self._last = QueryResult(data=data)
            return self._last
        if self._in_flight is not None:
            return await asyncio.shield(self._in_flight)
        return await self._execute()

    async def refetch(self) -> QueryResult:
        """Execute again and write the outcome into the cache."""
        return await self._execute()

    def subscribe(self, callback: Callable[[QueryResult], Any]) -> Callable[[], None]:
        """Observe results; returns an unsubscribe function."""
        return self._subscribers.add(callback)

    async def _execute(self) -> QueryResult:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[QueryResult] = loop.create_future()
        self._in_flight = future
        try:
            response = await self._cache.execute(self.document, self.variables)
            if response.errors:
                result = QueryResult(error=response.errors[0])
                self._last = result
                self._subscribers.invoke(result)
            else:
                self._cache.write(self.document, response.data or {}, self.variables)
                data = self._cache.read(self.document, self.variables)
                result = QueryResult(data=data if data is not None else response.data)
                self._last = result
            future.set_result(result)
            return result
        except BaseException:
            future.cancel()
            raise
        finally:
            if self._in_flight is future:
                self._in_flight = None

    def notify(self) -> None:
        """Compare with the cache after a broadcast."""
        data = self._cache.read(self.document, self.variables)
        if data is None:
            if (
                len(self._subscribers)
                and self._last is not None
                and self._last.data is not None
                and self._in_flight is None
            ):
                self._last = QueryResult(loading=True)
                self._subscribers.invoke(self._last)
                self._cache.spawn(self._reload())
            return
        if self._last is not None and self._last.data == data:
            return
        self._last = QueryResult(data=data)
        self._subscribers.invoke(self._last)

    async def _reload(self) -> None:
        try:
            await self._execute()
        except Exception:
            logger.warning("Reloading evicted query failed", exc_info=True)


__all__ = ["MemoryLiveQuery"]

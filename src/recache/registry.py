"""Per-cache side tables and the client wrapper that owns them."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from recache.adapters.base import DocumentCache

K = TypeVar("K")
V = TypeVar("V")

_MISSING = object()


class EntitySet(Generic[K, V]):
    """A small map whose keys are compared with ``==`` instead of hashed.

    Variable sets are plain dicts, so lookups go through deep equality.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[tuple[K, V]] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[tuple[K, V]]:
        return iter(list(self._items))

    def get(self, key: K, create: Callable[[], V] | None = None) -> V | None:
        """Return the value stored for ``key``, creating it when asked."""
        for existing, value in self._items:
            if existing == key:
                return value
        if create is None:
            return None
        value = create()
        self._items.append((key, value))
        return value

    def set(self, key: K, value: V) -> None:
        self.delete(key)
        self._items.append((key, value))

    def delete(self, key: K) -> bool:
        for index, (existing, _) in enumerate(self._items):
            if existing == key:
                del self._items[index]
                return True
        return False


class Registry:
    """Side tables scoped to one cache instance.

    Owners are tracked by identity and kept alive by the registry, so an
    ``id()`` is never reused while its entry exists.
    """

    def __init__(self) -> None:
        self._groups: dict[int, tuple[object, EntitySet[Any, Any]]] = {}
        self._slots: dict[tuple[str, int], tuple[object, Any]] = {}

    def group(self, owner: object) -> EntitySet[Any, Any]:
        """The keyed set of values attached to ``owner``."""
        entry = self._groups.get(id(owner))
        if entry is None:
            entry = (owner, EntitySet())
            self._groups[id(owner)] = entry
        return entry[1]

    def slot(self, kind: str, owner: object, factory: Callable[[], V]) -> V:
        """Get or create the single ``kind`` value attached to ``owner``."""
        entry = self._slots.get((kind, id(owner)))
        if entry is None:
            entry = (owner, factory())
            self._slots[(kind, id(owner))] = entry
        return entry[1]

    def mark(self, kind: str, owner: object) -> bool:
        """Record ``owner`` under ``kind``; True only the first time."""
        if (kind, id(owner)) in self._slots:
            return False
        self._slots[(kind, id(owner))] = (owner, True)
        return True


class Client:
    """A cache handle bundled with its registry.

    Every engine operation takes a ``Client``; two clients sharing one cache
    still keep separate sessions, states and events.
    """

    def __init__(
        self,
        cache: DocumentCache,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.cache = cache
        self.context: dict[str, Any] = dict(context or {})
        self.registry = Registry()
        self._background_tasks: set[asyncio.Future[Any]] = set()

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Future[Any]:
        """Run ``awaitable`` in the background, keeping a reference to it."""
        task = asyncio.ensure_future(awaitable)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def settle(self) -> None:
        """Wait until neither the engine nor the cache has background work.

        Never returns while a lazy value is polling on an interval.
        """
        while True:
            if self._background_tasks:
                await asyncio.gather(*self._background_tasks, return_exceptions=True)
                continue
            if await self.cache.settle():
                continue
            break


__all__ = ["Client", "EntitySet", "Registry"]

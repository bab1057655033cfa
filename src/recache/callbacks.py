"""Multi-listener fan-out used by sessions, dependency edges and events."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

Callback = Callable[..., Any]


class CallbackGroup:
    """An ordered set of unique callbacks.

    ``add`` returns a remover that is safe to call more than once. Invoking
    iterates over a snapshot, so callbacks may add or remove listeners while
    the group is being invoked.
    """

    __slots__ = ("_callbacks", "_called")

    def __init__(self, callbacks: Iterable[Callback] = ()) -> None:
        self._callbacks: list[Callback] = []
        self._called = 0
        for callback in callbacks:
            self.add(callback)

    def __call__(self, callback: Callback) -> Callable[[], None]:
        return self.add(callback)

    def __len__(self) -> int:
        return len(self._callbacks)

    def __iter__(self) -> Iterator[Callback]:
        return iter(list(self._callbacks))

    def __contains__(self, callback: object) -> bool:
        return callback in self._callbacks

    @property
    def called(self) -> int:
        """How many times the group has been invoked."""
        return self._called

    def add(self, callback: Callback) -> Callable[[], None]:
        """Register a callback and return a function that removes it."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        removed = False

        def remove() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            self.remove(callback)

        return remove

    def remove(self, callback: Callback) -> None:
        """Unregister a callback if present."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def clear(self) -> None:
        """Drop every callback."""
        self._callbacks.clear()

    def invoke(self, *args: Any) -> None:
        """Call every callback with ``args``."""
        self._called += 1
        for callback in list(self._callbacks):
            callback(*args)

    def invoke_and_clear(self, *args: Any) -> None:
        """Clear the group, then call the callbacks it held."""
        callbacks = list(self._callbacks)
        self._callbacks.clear()
        self._called += 1
        for callback in callbacks:
            callback(*args)

    def clone(self) -> CallbackGroup:
        """Copy the group; the copy shares no state with the original."""
        group = CallbackGroup(self._callbacks)
        group._called = self._called
        return group


__all__ = ["Callback", "CallbackGroup"]

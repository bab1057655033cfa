"""Event channels, one per event entity and client."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from recache.callbacks import CallbackGroup

if TYPE_CHECKING:
    from recache.entities import Event
    from recache.registry import Client

_NOTHING = object()


class EventChannel:
    """A signal that can be fired, listened to and awaited."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners = CallbackGroup()
        self._last: Any = _NOTHING
        self._next: asyncio.Future[Any] | None = None
        self._fired_once = False
        self._paused = False

    def next(self) -> asyncio.Future[Any]:
        """A future resolved with the arguments of the next fire."""
        if self._next is None or self._next.done():
            self._next = asyncio.get_running_loop().create_future()
        return self._next

    def fire(self, args: Any = None) -> None:
        """Fire the event unless it is paused or was fired with ``fire_once``."""
        if self._fired_once or self._paused:
            return
        self._last = args
        pending, self._next = self._next, None
        if pending is not None and not pending.done():
            pending.set_result(args)
        self._listeners.invoke(args)

    def fire_once(self, args: Any = None) -> None:
        """Fire, then ignore every later fire."""
        if self._fired_once or self._paused:
            return
        self.fire(args)
        self._fired_once = True

    def on(self, listener: Callable[[Any], Any]) -> Callable[[], None]:
        """Call ``listener`` on every fire; returns an unsubscribe function."""
        return self._listeners.add(listener)

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def paused(self) -> bool:
        return self._paused

    def fired(self) -> bool:
        return self._last is not _NOTHING

    def last(self) -> Any:
        """Arguments of the last fire, or None."""
        return None if self._last is _NOTHING else self._last

    async def any(self) -> Any:
        """The last arguments if the event ever fired, else wait for a fire."""
        if self._last is not _NOTHING:
            return self._last
        return await self.next()


def get_event_channel(client: Client, event: Event) -> EventChannel:
    return client.registry.slot("event", event, lambda: EventChannel(event.name))


__all__ = ["EventChannel", "get_event_channel"]

"""Reactive state cells, one per state entity and client."""

from __future__ import annotations

import logging
import operator
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from recache.callbacks import CallbackGroup
from recache.context import Context
from recache.documents import create_field_document
from recache.entities import owner
from recache.recipes import apply_recipe
from recache.session import get_session_manager

if TYPE_CHECKING:
    from recache.entities import State
    from recache.registry import Client

logger = logging.getLogger(__name__)

_EMPTY = object()


class StateCell:
    """Holds the value of a state entity for one client.

    A derived state (an initializer function) recomputes whenever any state
    or query it read during its last computation changes.
    """

    def __init__(self, client: Client, state: State) -> None:
        self._client = client
        self._state = state
        self._equal: Callable[[Any, Any], bool] = state.options.equal or operator.eq
        self._value: Any = _EMPTY
        self.changes = CallbackGroup()
        self._manager = get_session_manager(client, state, None)
        self._manager.invalidate = self.recompute
        self._document = (
            create_field_document(state.options.key) if state.options.key else None
        )

        persisted = self._read_persisted()
        if persisted is not _EMPTY and not state.derived:
            self._value = persisted
        else:
            self.recompute()

    @property
    def state(self) -> State:
        return self._state

    def get(self) -> Any:
        return self._value

    def set(self, value: Any) -> None:
        """Assign a value or apply a recipe to the current one."""
        self._assign(apply_recipe(value, self._value))

    def recompute(self) -> None:
        """Evaluate the initial value again in a fresh session."""
        session = self._manager.start()
        initial = self._state.initial
        if callable(initial):
            ctx = Context(owner(self._state), self._client, session, updatable=False)
            value = initial(ctx)
        else:
            value = initial
        self._manager.on_load.invoke_and_clear()
        logger.debug("State %s computed", self._state.name)
        self._assign(value)

    def on_change(self, callback: Callable[[Any], Any]) -> Callable[[], None]:
        return self.changes.add(callback)

    def _assign(self, value: Any) -> None:
        if self._value is not _EMPTY and (
            value is self._value or self._equal(self._value, value)
        ):
            return
        self._value = value
        self._write_persisted(value)
        self.changes.invoke(value)

    def _read_persisted(self) -> Any:
        if self._document is None:
            return _EMPTY
        data = self._client.cache.read(self._document)
        if data is None:
            return _EMPTY
        return data[self._state.options.key]

    def _write_persisted(self, value: Any) -> None:
        if self._document is None:
            return
        self._client.cache.write(
            self._document, {self._state.options.key: value}, broadcast=True
        )


def get_state_cell(client: Client, state: State) -> StateCell:
    return client.registry.slot("state", state, lambda: StateCell(client, state))


__all__ = ["StateCell", "get_state_cell"]

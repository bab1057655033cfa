"""What ``ctx["name"]`` returns for each kind of entity."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from recache.concurrency import maybe_await
from recache.context import Context
from recache.entities import Event, Mutation, Query, State, owner
from recache.errors import QueryPending, ReadOnlyContextError
from recache.events import EventChannel, get_event_channel
from recache.invalidation import (
    evict_all_queries,
    evict_query,
    refetch_all_queries,
    track_dependency,
)
from recache.lazy import Lazy
from recache.recipes import Recipe, apply_recipe, patch_type
from recache.session import SessionManager, get_query_manager, get_session_manager
from recache.state import get_state_cell

if TYPE_CHECKING:
    from recache.adapters.base import LiveQuery
    from recache.types import QueryResult


def _raise_for_result(result: QueryResult) -> Any:
    if result.error is not None:
        raise result.error
    return result.data


def _variables(variables: Any) -> Any:
    return {} if variables is None else variables


async def _call_directly(
    entity: Query | Mutation, variables: Any, context: Context, *, updatable: bool
) -> Any:
    session = get_session_manager(context.client).start()
    ctx = Context(owner(entity), context.client, session, updatable=updatable)
    resolver = cast(Callable[..., Any], entity.resolver)
    result = await maybe_await(resolver(_variables(variables), ctx))
    if isinstance(result, Lazy):
        return await maybe_await(result.loader())
    return result


class QueryDispatcher:
    """Reads a query through the cache and records it as a dependency."""

    def __init__(self, context: Context, query: Query) -> None:
        owner(query).init(context.client)
        self._context = context
        self._query = query

    def _manager(self, variables: Any) -> SessionManager:
        return get_query_manager(self._context.client, self._query, variables)

    async def __call__(self, variables: Any = None) -> Any:
        manager = self._manager(variables)
        if self._query.options.fetch_policy == "network-only":
            result = await manager.live.refetch()
        else:
            result = await manager.live.result()
        data = _raise_for_result(result)
        track_dependency(self._context.session, manager)
        return data

    async def resolve(self, variables: Any = None) -> Any:
        """Run the resolver in process, bypassing the cache."""
        if self._query.resolver is not None:
            return await _call_directly(
                self._query, variables, self._context, updatable=False
            )
        return _raise_for_result(await self._manager(variables).live.refetch())

    async def refetch(self, variables: Any = None) -> Any:
        return _raise_for_result(await self._manager(variables).refetch())

    async def refetch_all(self) -> None:
        """Refetch every loaded variable set."""
        await refetch_all_queries(self._context.client, self._query)

    def evict(self, variables: Any = None) -> bool:
        """Drop cached data and stop reacting to dependencies."""
        self._manager(variables).dispose()
        return evict_query(self._context.client, self._query, variables)

    def evict_all(self) -> None:
        for manager in self._managers():
            manager.dispose()
        evict_all_queries(self._context.client, self._query)

    def _managers(self) -> list[SessionManager]:
        group = self._context.client.registry.group(self._query.document)
        return [manager for _, manager in group]

    def on(
        self, *, change: Callable[[Any], Any], variables: Any = None
    ) -> Callable[[], None]:
        """Call ``change`` with new data whenever it changes."""
        return self._manager(variables).on_change(change)

    def called(self, variables: Any = None) -> bool:
        return self._manager(variables).live.last_result is not None

    def data(self, variables: Any = None) -> Any:
        """Data currently in the cache, or None."""
        return self._manager(variables).live.current_result().data

    def watch(self, variables: Any = None) -> LiveQuery:
        """The live query backing this variable set."""
        return self._manager(variables).live

    def wait(self, variables: Any = None) -> Any:
        """Data if present; raises the last error or ``QueryPending`` otherwise."""
        current = self._manager(variables).live.current_result()
        if current.data is not None:
            return current.data
        if current.error is not None:
            raise current.error
        raise QueryPending(asyncio.ensure_future(self(variables)))

    def set(self, recipe: Recipe[Any] | Any, variables: Any = None) -> None:
        """Write new data for a variable set.

        A callable recipe updates the cached data and does nothing if
        there is none yet.
        """
        query = self._query
        cache = self._context.client.cache
        wrapped = query.wrap_variables(variables)
        if callable(recipe):
            previous = cache.read(query.document, wrapped)
            if previous is None:
                return
            updated = apply_recipe(recipe, previous)
            if updated is previous:
                return
        else:
            updated = {
                key: patch_type(value, query.options.type) for key, value in recipe.items()
            }
        cache.write(query.document, updated, wrapped, overwrite=True, broadcast=True)


class MutationDispatcher:
    """Executes a mutation every time it is called."""

    def __init__(self, context: Context, mutation: Mutation) -> None:
        owner(mutation).init(context.client)
        self._context = context
        self._mutation = mutation

    async def __call__(self, variables: Any = None) -> Any:
        mutation = self._mutation
        cache = self._context.client.cache
        wrapped = mutation.wrap_variables(variables)
        result = await cache.execute(mutation.document, wrapped)
        if result.errors:
            raise result.errors[0]
        cache.write(mutation.document, result.data or {}, wrapped)
        return result.data

    async def resolve(self, variables: Any = None) -> Any:
        """Run the resolver in process, bypassing the cache."""
        if self._mutation.resolver is not None:
            return await _call_directly(
                self._mutation, variables, self._context, updatable=True
            )
        return await self(variables)


class StateDispatcher:
    """``dispatcher()`` reads the state, ``dispatcher(value)`` writes it."""

    def __init__(self, context: Context, state: State) -> None:
        self._context = context
        self._state = state
        self._cell = get_state_cell(context.client, state)

    def __call__(self, *args: Any) -> Any:
        if len(args) > 1:
            raise TypeError("State accepts at most one value")
        if not args:
            return self.get()
        self.set(args[0])
        return None

    def get(self) -> Any:
        value = self._cell.get()
        track_dependency(self._context.session, self._cell)
        return value

    def set(self, value: Any) -> None:
        """Assign a value, or apply a recipe to the current one."""
        if not self._context.updatable:
            raise ReadOnlyContextError(self._state.name)
        self._cell.set(value)

    def on(self, *, change: Callable[[Any], Any]) -> Callable[[], None]:
        return self._cell.on_change(change)


def _event_dispatcher(context: Context, event: Event) -> EventChannel:
    return get_event_channel(context.client, event)


DISPATCHER_FACTORIES: dict[type, Callable[[Context, Any], Any]] = {
    Query: QueryDispatcher,
    Mutation: MutationDispatcher,
    State: StateDispatcher,
    Event: _event_dispatcher,
}

__all__ = [
    "DISPATCHER_FACTORIES",
    "MutationDispatcher",
    "QueryDispatcher",
    "StateDispatcher",
]

"""Local resolvers the cache calls for entity-backed fields."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, cast

from recache.concurrency import maybe_await, run_with_concurrency
from recache.context import Context
from recache.documents import unwrap_variables
from recache.duration import to_seconds
from recache.entities import owner
from recache.invalidation import create_query_invalidator, evict_query
from recache.lazy import FieldTarget, QueryTarget, handle_lazy_result
from recache.recipes import patch_type
from recache.session import SessionManager, get_query_manager, get_session_manager
from recache.types import Duration

if TYPE_CHECKING:
    from recache.entities import FieldResolver, Mutation, Query
    from recache.registry import Client

logger = logging.getLogger(__name__)

_STALE_TIMER = object()

LocalResolver = Callable[[Any, dict[str, Any], Any], Awaitable[Any]]


def _cancel_stale_timer(manager: SessionManager) -> None:
    handle = manager.data.pop(_STALE_TIMER, None)
    if handle is not None:
        handle.cancel()


def _schedule_stale_timer(
    client: Client, query: Query, manager: SessionManager, stale_time: Duration
) -> None:
    loop = asyncio.get_running_loop()
    manager.data[_STALE_TIMER] = loop.call_later(
        to_seconds(stale_time),
        evict_query,
        client,
        query,
        manager.key,
    )


def create_query_resolver(client: Client, query: Query) -> LocalResolver:
    """Resolver for the root field of a resolver-backed query."""
    resolver = cast(Callable[..., Any], query.resolver)
    model, options = owner(query), query.options

    async def resolve(parent: Any, args: dict[str, Any], _: Any) -> Any:
        variables = unwrap_variables(args)
        manager = get_query_manager(client, query, variables)
        _cancel_stale_timer(manager)

        async def execute() -> Any:
            session = manager.start()
            logger.debug("Resolving %s %r", query.alias, variables)
            manager.invalidate = (
                None
                if options.proactive
                else create_query_invalidator(client, query, manager, session)
            )
            ctx = Context(model, client, session, updatable=False)
            result = await maybe_await(resolver(variables, ctx))
            target = QueryTarget(
                query.document, query.alias, query.wrap_variables(variables)
            )
            result = handle_lazy_result(client, session, target, result)
            if options.stale_time is not None:
                _schedule_stale_timer(client, query, manager, options.stale_time)
            return patch_type(result, options.type)

        result = await run_with_concurrency(manager.data, options, execute)
        # Loaders start once the result is on its way into the cache.
        manager.on_load.invoke_and_clear()
        return result

    return resolve


def create_mutation_resolver(client: Client, mutation: Mutation) -> LocalResolver:
    """Resolver for the root field of a resolver-backed mutation."""
    resolver = cast(Callable[..., Any], mutation.resolver)
    model, options = owner(mutation), mutation.options

    async def resolve(parent: Any, args: dict[str, Any], _: Any) -> Any:
        variables = unwrap_variables(args)
        manager = get_session_manager(client, mutation, None)

        async def execute() -> Any:
            session = manager.start()
            ctx = Context(model, client, session, updatable=True)
            result = await maybe_await(resolver(variables, ctx))
            return patch_type(result, options.type)

        result = await run_with_concurrency(manager.data, options, execute)
        manager.on_load.invoke_and_clear()
        return result

    return resolve


def create_field_resolver(client: Client, field_resolver: FieldResolver) -> LocalResolver:
    """Resolver for one field of a type."""
    fn, model, options = field_resolver.fn, owner(field_resolver), field_resolver.options

    async def resolve(parent: Any, args: dict[str, Any], _: Any) -> Any:
        variables = unwrap_variables(args)
        if options.parse is not None:
            variables = options.parse(variables)
        entity_id = client.cache.identify(parent)
        manager = get_session_manager(
            client, field_resolver, {"parent": entity_id, "args": variables}
        )
        session = manager.start()
        ctx = Context(model, client, session, updatable=False)
        result = await maybe_await(fn(parent, variables, ctx))
        target = FieldTarget(entity_id, field_resolver.field) if entity_id else None
        result = handle_lazy_result(client, session, target, result)
        manager.on_load.invoke_and_clear()
        return patch_type(result, options.type)

    return resolve


__all__ = [
    "LocalResolver",
    "create_field_resolver",
    "create_mutation_resolver",
    "create_query_resolver",
]

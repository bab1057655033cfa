"""Models: immutable registries of named entities.

Every builder method returns a new model; the entity it adds is stamped
with that model, which is the one whose ``init`` registers the entity's
resolvers on a client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import cached_property, partial
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from graphql import DocumentNode

from recache.concurrency import maybe_await
from recache.context import Context
from recache.dispatchers import DISPATCHER_FACTORIES
from recache.documents import (
    ROOT_TYPE,
    create_dynamic_document,
    parse_document,
    patch_local_fields,
    select_operation,
)
from recache.entities import (
    Entity,
    Event,
    FieldResolver,
    Mutation,
    Query,
    State,
    TypeFieldResolverSet,
    generate_name,
    owner,
)
from recache.resolvers import (
    create_field_resolver,
    create_mutation_resolver,
    create_query_resolver,
)
from recache.session import get_session_manager
from recache.types import (
    FieldMapping,
    FieldOptions,
    ModelOptions,
    MutationOptions,
    QueryOptions,
    StateOptions,
)

if TYPE_CHECKING:
    from recache.registry import Client

logger = logging.getLogger(__name__)

T = TypeVar("T")

Effect = Callable[[Context], Any]
Continuous = bool | Literal["always"]

FieldResolverSpec = (
    Callable[..., Any]
    | tuple[str | FieldOptions | Mapping[str, Any] | None, Callable[..., Any]]
)


def _field_options(entry: str | FieldOptions | Mapping[str, Any] | None) -> FieldOptions:
    if entry is None:
        return FieldOptions()
    if isinstance(entry, FieldOptions):
        return entry
    if isinstance(entry, str):
        return FieldOptions(type=entry)
    return FieldOptions(**entry)


def _continuous_effect(fn: Effect, mode: Continuous) -> Effect:
    """Run ``fn`` again each time the awaitable it returns finishes."""

    async def run(ctx: Context) -> None:
        while True:
            outcome = fn(ctx)
            if not hasattr(outcome, "__await__"):
                logger.warning("Continuous effect %r did not return an awaitable", fn)
                return
            try:
                await outcome
            except Exception:
                if mode != "always":
                    raise
                logger.warning("Continuous effect failed; running again", exc_info=True)

    return run


class Model:
    """An immutable set of queries, mutations, states, events and types."""

    def __init__(
        self,
        options: ModelOptions | None = None,
        meta: Mapping[str, Entity] | None = None,
        effects: tuple[Effect, ...] = (),
    ) -> None:
        self._options = options or ModelOptions()
        self._meta: Mapping[str, Entity] = MappingProxyType(dict(meta or {}))
        self._effects = effects

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, entities={list(self._meta)!r})"

    @property
    def name(self) -> str:
        return self._options.name

    @property
    def options(self) -> ModelOptions:
        return self._options

    @property
    def meta(self) -> Mapping[str, Entity]:
        return self._meta

    @property
    def effects(self) -> tuple[Effect, ...]:
        return self._effects

    @cached_property
    def dispatchers(self) -> Mapping[str, Callable[[Context], Any]]:
        """Dispatcher factory for every addressable entity name."""
        factories: dict[str, Callable[[Context], Any]] = {}
        for name, entity in self._meta.items():
            factory = DISPATCHER_FACTORIES.get(type(entity))
            if factory is not None:
                factories[name] = partial(_dispatch, factory, entity)
        return MappingProxyType(factories)

    @cached_property
    def field_mappings(self) -> Mapping[str, Mapping[str, FieldMapping]]:
        """Which selections are backed by local resolvers, per type."""
        mappings: dict[str, dict[str, FieldMapping]] = {}
        for entity in self._meta.values():
            if isinstance(entity, (Query, Mutation)) and entity.dynamic:
                mappings.setdefault(ROOT_TYPE, {})[entity.alias] = FieldMapping(
                    entity.name, entity.options.type
                )
            elif isinstance(entity, TypeFieldResolverSet):
                table = mappings.setdefault(entity.type_name, {})
                for field, resolver in entity.fields.items():
                    table[field] = FieldMapping(field, resolver.options.type)
        return MappingProxyType(mappings)

    def context_values(self, client: Client) -> dict[str, Any]:
        """Values exposed as attributes on this model's contexts."""
        values = dict(client.context)
        context = self._options.context
        if callable(context):
            values.update(context(client))
        elif context is not None:
            values.update(context)
        return values

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def _extend(
        self,
        meta: Mapping[str, Entity],
        stamped: tuple[Any, ...] = (),
        effects: tuple[Effect, ...] | None = None,
    ) -> Model:
        model = Model(
            self._options,
            {**self._meta, **meta},
            self._effects if effects is None else effects,
        )
        for entity in stamped:
            entity.model = model
        return model

    def use(self, *others: Model | Mapping[str, Entity]) -> Model:
        """Merge other models' entities in; later names win."""
        meta: dict[str, Entity] = {}
        effects = list(self._effects)
        for other in others:
            if isinstance(other, Model):
                meta.update(other.meta)
                effects.extend(e for e in other.effects if e not in effects)
            else:
                meta.update(other)
        return self._extend(meta, effects=tuple(effects))

    def query(
        self,
        selection: str,
        source: Callable[..., Any] | str | DocumentNode,
        /,
        *,
        operation: str | None = None,
        **options: Any,
    ) -> Model:
        """Add a query backed by a resolver ``fn(args, ctx)`` or a document.

        ``selection`` is ``"alias"`` or ``"alias:field"``.
        """
        alias, name = self._names(selection, "query")
        query_options = QueryOptions(**options)
        if callable(source):
            document = create_dynamic_document("query", name, alias)
            entity = Query(name, alias, document, source, query_options)
        else:
            document = self._prepare(source, operation)
            entity = Query(name, alias, document, None, query_options)
        return self._extend({alias: entity}, (entity,))

    def mutation(
        self,
        selection: str,
        source: Callable[..., Any] | str | DocumentNode,
        /,
        *,
        operation: str | None = None,
        **options: Any,
    ) -> Model:
        """Add a mutation backed by a resolver ``fn(args, ctx)`` or a document."""
        alias, name = self._names(selection, "mutation")
        mutation_options = MutationOptions(**options)
        if callable(source):
            document = create_dynamic_document("mutation", name, alias)
            entity = Mutation(name, alias, document, source, mutation_options)
        else:
            document = self._prepare(source, operation)
            entity = Mutation(name, alias, document, None, mutation_options)
        return self._extend({alias: entity}, (entity,))

    def state(self, name: str, initial: Any, /, **options: Any) -> Model:
        """Add a state holding a value or derived by ``initial(ctx)``."""
        entity = State(name, initial, StateOptions(**options))
        return self._extend({name: entity}, (entity,))

    def event(self, name: str) -> Model:
        entity = Event(name)
        return self._extend({name: entity}, (entity,))

    def type(self, name: str, resolvers: Mapping[str, FieldResolverSpec]) -> Model:
        """Add field resolvers ``fn(parent, args, ctx)`` for a type.

        A value may also be ``(options, fn)`` where options is a type name,
        a ``FieldOptions`` or a mapping of its fields.
        """
        existing = self._meta.get(name)
        fields: dict[str, FieldResolver] = (
            dict(existing.fields) if isinstance(existing, TypeFieldResolverSet) else {}
        )
        added = []
        for field, entry in resolvers.items():
            if isinstance(entry, tuple):
                options, fn = entry
                resolver = FieldResolver(field, fn, _field_options(options))
            else:
                resolver = FieldResolver(field, entry)
            fields[field] = resolver
            added.append(resolver)
        entity = TypeFieldResolverSet(name, fields)
        return self._extend({name: entity}, (entity, *added))

    def effect(self, fn: Effect, continuous: Continuous = False) -> Model:
        """Add a function run once per client after resolver registration."""
        if continuous:
            fn = _continuous_effect(fn, continuous)
        return self._extend({}, effects=(*self._effects, fn))

    def _names(self, selection: str, kind: str) -> tuple[str, str]:
        alias, _, name = selection.partition(":")
        alias, name = alias.strip(), name.strip()
        if not alias:
            raise ValueError(f"Invalid selection: {selection!r}")
        return alias, name or f"{self.name}_{alias}{generate_name(kind)}"

    def _prepare(self, source: str | DocumentNode, operation: str | None) -> DocumentNode:
        document = parse_document(source)
        if operation is not None:
            document = select_operation(document, operation)
        return patch_local_fields(document, self.field_mappings)

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def init(self, client: Client) -> None:
        """Register this model's resolvers on ``client`` and run its effects.

        Entities that belong to other models initialize those models.
        Repeated calls for the same client do nothing.
        """
        if not client.registry.mark("model", self):
            return

        resolvers: dict[str, dict[str, Any]] = {}
        for entity in self._meta.values():
            if isinstance(entity, (Query, Mutation)):
                origin = owner(entity)
                if origin is not self:
                    origin.init(client)
                elif isinstance(entity, Query) and entity.dynamic:
                    resolvers.setdefault("Query", {})[entity.name] = create_query_resolver(
                        client, entity
                    )
                elif isinstance(entity, Mutation) and entity.dynamic:
                    resolvers.setdefault("Mutation", {})[
                        entity.name
                    ] = create_mutation_resolver(client, entity)
            elif isinstance(entity, TypeFieldResolverSet):
                for field, resolver in entity.fields.items():
                    origin = owner(resolver)
                    if origin is not self:
                        origin.init(client)
                    else:
                        resolvers.setdefault(entity.type_name, {})[
                            field
                        ] = create_field_resolver(client, resolver)
        if resolvers:
            logger.debug(
                "Registering resolvers of %r: %s",
                self,
                {typename: sorted(fields) for typename, fields in resolvers.items()},
            )
            client.cache.add_resolvers(resolvers)

        for effect in self._effects:
            if client.registry.mark("effect", effect):
                outcome = self.call(client, effect)
                if hasattr(outcome, "__await__"):
                    client.spawn(maybe_await(outcome))

    def call(self, client: Client, action: Callable[..., T], *args: Any) -> T:
        """Run ``action(ctx, *args)`` in a fresh, updatable root context."""
        self.init(client)
        session = get_session_manager(client).start()
        return action(Context(self, client, session, updatable=True), *args)


def _dispatch(factory: Callable[[Context, Any], Any], entity: Entity, ctx: Context) -> Any:
    return factory(ctx, entity)


def create_model(
    *,
    name: str = "",
    context: Mapping[str, Any] | Callable[[Client], Mapping[str, Any]] | None = None,
) -> Model:
    """An empty model."""
    return Model(ModelOptions(name=name, context=context))


__all__ = ["Effect", "Model", "create_model"]

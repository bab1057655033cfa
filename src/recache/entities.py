"""Entity definitions held by a model."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from graphql import DocumentNode

from recache.documents import wrap_variables
from recache.types import FieldOptions, MutationOptions, QueryOptions, StateOptions

if TYPE_CHECKING:
    from recache.model import Model

_ids = itertools.count(1)


def generate_name(kind: str) -> str:
    """A process-unique suffix for registered field names."""
    return f"__{kind}_{next(_ids)}"


@dataclass(eq=False)
class Query:
    name: str  # registered field name
    alias: str  # name the caller selects
    document: DocumentNode
    resolver: Callable[..., Any] | None = None
    options: QueryOptions = field(default_factory=QueryOptions)
    model: Model | None = field(default=None, repr=False)

    @property
    def dynamic(self) -> bool:
        return self.resolver is not None

    def wrap_variables(self, variables: Any) -> dict[str, Any] | None:
        return wrap_variables(self.dynamic, variables)


@dataclass(eq=False)
class Mutation:
    name: str
    alias: str
    document: DocumentNode
    resolver: Callable[..., Any] | None = None
    options: MutationOptions = field(default_factory=MutationOptions)
    model: Model | None = field(default=None, repr=False)

    @property
    def dynamic(self) -> bool:
        return self.resolver is not None

    def wrap_variables(self, variables: Any) -> dict[str, Any] | None:
        return wrap_variables(self.dynamic, variables)


@dataclass(eq=False)
class State:
    """A reactive cell; ``initial`` is a value or an initializer ``fn(ctx)``."""

    name: str
    initial: Any
    options: StateOptions = field(default_factory=StateOptions)
    model: Model | None = field(default=None, repr=False)

    @property
    def derived(self) -> bool:
        return callable(self.initial)


@dataclass(eq=False)
class Event:
    name: str
    model: Model | None = field(default=None, repr=False)


@dataclass(eq=False)
class FieldResolver:
    field: str
    fn: Callable[..., Any]
    options: FieldOptions = field(default_factory=FieldOptions)
    model: Model | None = field(default=None, repr=False)


@dataclass(eq=False)
class TypeFieldResolverSet:
    type_name: str
    fields: Mapping[str, FieldResolver]
    model: Model | None = field(default=None, repr=False)


Entity = Query | Mutation | State | Event | TypeFieldResolverSet


def owner(entity: Any) -> Model:
    """The model ``entity`` was added to."""
    if entity.model is None:
        raise RuntimeError(f"{entity!r} does not belong to a model")
    return entity.model


__all__ = [
    "Entity",
    "Event",
    "FieldResolver",
    "Mutation",
    "Query",
    "State",
    "TypeFieldResolverSet",
    "generate_name",
    "owner",
]

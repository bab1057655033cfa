"""Copy-on-write updates and result typing."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

Recipe = Callable[[T], T | None]


def apply_recipe(recipe: Recipe[T] | T, previous: T) -> T:
    """Compute the next value from a recipe or a plain value.

    A callable recipe receives a deep copy of ``previous`` to mutate; its
    return value wins when it is not None. When nothing changed the
    original object is returned, so callers can compare by identity.
    """
    if not callable(recipe):
        return recipe
    draft = copy.deepcopy(previous)
    returned = recipe(draft)
    updated = draft if returned is None else returned
    if updated == previous:
        return previous
    return updated


def patch_type(value: Any, typename: str | None) -> Any:
    """Stamp ``__typename`` onto dict results (and lists of them)."""
    if not typename:
        return value
    if isinstance(value, list):
        return [patch_type(item, typename) for item in value]
    if isinstance(value, dict):
        return {**value, "__typename": typename}
    return value


__all__ = ["Recipe", "apply_recipe", "patch_type"]

"""Helpers for walking selection sets of parsed documents."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    OperationDefinitionNode,
    SelectionSetNode,
    Undefined,
    value_from_ast_untyped,
)

CLIENT_DIRECTIVE = "client"

Fragments = Mapping[str, FragmentDefinitionNode]


def get_operation(document: DocumentNode) -> OperationDefinitionNode:
    """The first operation of a document."""
    for definition in document.definitions:
        if isinstance(definition, OperationDefinitionNode):
            return definition
    raise ValueError("Document has no operation")


def get_fragments(document: DocumentNode) -> dict[str, FragmentDefinitionNode]:
    return {
        definition.name.value: definition
        for definition in document.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }


def is_local_field(field: FieldNode) -> bool:
    """True when the field carries the ``@client`` marker."""
    return any(
        directive.name.value == CLIENT_DIRECTIVE for directive in field.directives or ()
    )


def response_key(field: FieldNode) -> str:
    """The key a field's value appears under in results."""
    return field.alias.value if field.alias else field.name.value


def resolve_arguments(
    field: FieldNode, variables: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Evaluate a field's argument literals against ``variables``.

    Arguments bound to variables that were not provided are left out.
    """
    args: dict[str, Any] = {}
    for argument in field.arguments or ():
        value = value_from_ast_untyped(argument.value, dict(variables or {}))
        if value is not Undefined:
            args[argument.name.value] = value
    return args


def field_key(name: str, args: Mapping[str, Any] | None = None) -> str:
    """Storage key of a field inside a record."""
    if not args:
        return name
    return f"{name}({json.dumps(args, sort_keys=True, default=str)})"


def field_name_of(key: str) -> str:
    """Inverse of ``field_key`` for the field name part."""
    return key.split("(", 1)[0]


def storage_key(field: FieldNode, variables: Mapping[str, Any] | None) -> str:
    return field_key(field.name.value, resolve_arguments(field, variables))


def collect_fields(
    selection_set: SelectionSetNode | None,
    fragments: Fragments,
    typename: str | None = None,
) -> Iterator[FieldNode]:
    """Yield the fields of a selection set, expanding fragments.

    Fragments with a type condition are only expanded when ``typename`` is
    unknown or matches.
    """
    if selection_set is None:
        return
    for selection in selection_set.selections:
        if isinstance(selection, FieldNode):
            yield selection
        elif isinstance(selection, InlineFragmentNode):
            condition = selection.type_condition
            if condition is None or typename is None or condition.name.value == typename:
                yield from collect_fields(selection.selection_set, fragments, typename)
        elif isinstance(selection, FragmentSpreadNode):
            fragment = fragments.get(selection.name.value)
            if fragment is None:
                raise ValueError(f"Unknown fragment: {selection.name.value}")
            if typename is None or fragment.type_condition.name.value == typename:
                yield from collect_fields(fragment.selection_set, fragments, typename)


def root_fields(document: DocumentNode) -> list[FieldNode]:
    """Top level fields of the document's operation."""
    return list(
        collect_fields(get_operation(document).selection_set, get_fragments(document))
    )


__all__ = [
    "CLIENT_DIRECTIVE",
    "collect_fields",
    "field_key",
    "field_name_of",
    "get_fragments",
    "get_operation",
    "is_local_field",
    "resolve_arguments",
    "response_key",
    "root_fields",
    "storage_key",
]

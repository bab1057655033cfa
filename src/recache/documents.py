"""Document synthesis and rewriting.

Resolver backed entities get a generated one-field document whose input is
a single wrapped variable. Hand written documents that mention those
entities are rewritten so the fields resolve locally:

    query { todo(id: 1) { title } }

becomes, for a ``todo`` entity registered as ``_todo__query_1``,

    query { todo: _todo__query_1(__VARS__: {id: 1}) @client { title } }
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from graphql import (
    REMOVE,
    ArgumentNode,
    DirectiveNode,
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    NameNode,
    ObjectFieldNode,
    ObjectValueNode,
    OperationDefinitionNode,
    Visitor,
    parse,
    visit,
)

from recache.selection import CLIENT_DIRECTIVE, is_local_field
from recache.types import FieldMapping

WRAPPED_VARIABLE = "__VARS__"
ROOT_TYPE = "ROOT"
_ROOT_TYPE_NAMES = frozenset({"Query", "Mutation"})

FieldMappings = Mapping[str, Mapping[str, FieldMapping]]


def parse_document(source: str | DocumentNode) -> DocumentNode:
    if isinstance(source, DocumentNode):
        return source
    return parse(source, no_location=True)


def create_dynamic_document(
    operation: Literal["query", "mutation"], field: str, alias: str
) -> DocumentNode:
    """Build the one-field document for a resolver backed entity."""
    return parse(
        f"{operation} {alias}(${WRAPPED_VARIABLE}: {WRAPPED_VARIABLE}) "
        f"{{ {alias}: {field}({WRAPPED_VARIABLE}: ${WRAPPED_VARIABLE}) @{CLIENT_DIRECTIVE} }}",
        no_location=True,
    )


def create_field_document(field: str) -> DocumentNode:
    """A query selecting one root field, used to persist state."""
    return parse(f"query {{ {field} }}", no_location=True)


def wrap_variables(dynamic: bool, variables: Any) -> dict[str, Any] | None:
    """Fold a dynamic entity's variables into the wrapped variable."""
    if variables is None or (isinstance(variables, Mapping) and not variables):
        return None
    if not dynamic:
        return dict(variables)
    if isinstance(variables, Mapping) and set(variables) == {WRAPPED_VARIABLE}:
        return dict(variables)
    return {WRAPPED_VARIABLE: variables}


def unwrap_variables(args: Mapping[str, Any] | None) -> Any:
    """Inverse of ``wrap_variables`` for resolver arguments."""
    if not args:
        return {}
    if WRAPPED_VARIABLE in args:
        value = args[WRAPPED_VARIABLE]
        return {} if value is None else value
    return dict(args)


def _is_wrapped(field: FieldNode) -> bool:
    arguments = field.arguments or ()
    return len(arguments) == 1 and arguments[0].name.value == WRAPPED_VARIABLE


def _wrap_arguments(field: FieldNode) -> tuple[ArgumentNode, ...]:
    if not field.arguments or _is_wrapped(field):
        return tuple(field.arguments or ())
    value = ObjectValueNode(
        fields=tuple(
            ObjectFieldNode(name=argument.name, value=argument.value)
            for argument in field.arguments
        )
    )
    return (ArgumentNode(name=NameNode(value=WRAPPED_VARIABLE), value=value),)


class _LocalFieldPatcher(Visitor):
    """Marks and renames fields backed by local resolvers.

    ``scopes`` holds the type of every enclosing field (None when unknown);
    the innermost one decides which mapping table a field is looked up in.
    """

    def __init__(self, mappings: FieldMappings) -> None:
        super().__init__()
        self.mappings = mappings
        self.scopes: list[str | None] = []

    def enter_field(self, node: FieldNode, key, parent, path, ancestors) -> Any:
        owner = ancestors[-2] if len(ancestors) >= 2 else None
        if isinstance(owner, OperationDefinitionNode):
            scope: str | None = ROOT_TYPE
        elif isinstance(owner, FragmentDefinitionNode):
            scope = owner.type_condition.name.value
            if scope in _ROOT_TYPE_NAMES:
                scope = ROOT_TYPE
        else:
            scope = self.scopes[-1] if self.scopes else None
        table = self.mappings.get(scope, {}) if scope else {}

        mapping = table.get(node.name.value)
        self.scopes.append(mapping.type if mapping else None)
        if mapping is None:
            return None

        arguments = _wrap_arguments(node)
        renamed = node.name.value != mapping.field
        marked = is_local_field(node)
        if not renamed and marked and tuple(node.arguments or ()) == arguments:
            return None

        directives = tuple(node.directives or ())
        if not marked:
            directives = (
                *directives,
                DirectiveNode(name=NameNode(value=CLIENT_DIRECTIVE), arguments=()),
            )
        # AST nodes are frozen on newer graphql-core; build a new one.
        return FieldNode(
            alias=(node.alias or NameNode(value=node.name.value)) if renamed else node.alias,
            name=NameNode(value=mapping.field) if renamed else node.name,
            arguments=arguments,
            directives=directives,
            selection_set=node.selection_set,
        )

    def leave_field(self, node: FieldNode, *args: Any) -> None:
        self.scopes.pop()


def patch_local_fields(document: DocumentNode, mappings: FieldMappings) -> DocumentNode:
    """Rewrite fields that have local resolvers; idempotent."""
    if not mappings:
        return document
    return visit(document, _LocalFieldPatcher(mappings))


class _LocalFieldStripper(Visitor):
    def enter_field(self, node: FieldNode, *args: Any) -> Any:
        return REMOVE if is_local_field(node) else None


def strip_local_fields(document: DocumentNode) -> DocumentNode:
    """The part of a document that must go over the wire."""
    return visit(document, _LocalFieldStripper())


class _FragmentCollector(Visitor):
    def __init__(self) -> None:
        super().__init__()
        self.names: set[str] = set()

    def enter_fragment_spread(self, node: FragmentSpreadNode, *args: Any) -> None:
        self.names.add(node.name.value)


def select_operation(document: DocumentNode, name: str) -> DocumentNode:
    """Keep one named operation and the fragments it spreads."""
    fragments = {
        definition.name.value: definition
        for definition in document.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }
    operation = next(
        (
            definition
            for definition in document.definitions
            if isinstance(definition, OperationDefinitionNode)
            and definition.name is not None
            and definition.name.value == name
        ),
        None,
    )
    if operation is None:
        raise ValueError(f"No operation named {name!r}")

    used: dict[str, FragmentDefinitionNode] = {}
    pending = [operation]
    while pending:
        collector = _FragmentCollector()
        visit(pending.pop(), collector)
        for fragment_name in collector.names - set(used):
            fragment = fragments.get(fragment_name)
            if fragment is None:
                raise ValueError(f"Unknown fragment: {fragment_name}")
            used[fragment_name] = fragment
            pending.append(fragment)
    return DocumentNode(definitions=(operation, *used.values()))


__all__ = [
    "ROOT_TYPE",
    "WRAPPED_VARIABLE",
    "FieldMappings",
    "create_dynamic_document",
    "create_field_document",
    "parse_document",
    "patch_local_fields",
    "select_operation",
    "strip_local_fields",
    "unwrap_variables",
    "wrap_variables",
]

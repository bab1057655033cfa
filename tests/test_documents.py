"""Tests for document synthesis and rewriting."""

import pytest
from graphql import FieldNode, OperationDefinitionNode, print_ast

from recache.documents import (
    ROOT_TYPE,
    WRAPPED_VARIABLE,
    create_dynamic_document,
    parse_document,
    patch_local_fields,
    select_operation,
    strip_local_fields,
    unwrap_variables,
    wrap_variables,
)
from recache.selection import is_local_field, resolve_arguments, root_fields
from recache.types import FieldMapping

MAPPINGS = {
    ROOT_TYPE: {"todo": FieldMapping("_todo_1", "Todo")},
    "Todo": {"summary": FieldMapping("summary")},
}


def _root_field(document) -> FieldNode:
    return root_fields(document)[0]


def _child(field: FieldNode, name: str) -> FieldNode:
    assert field.selection_set is not None
    for selection in field.selection_set.selections:
        if isinstance(selection, FieldNode) and selection.name.value == name:
            return selection
    raise AssertionError(f"no field {name}")


class TestCreateDynamicDocument:
    """Tests for generated one-field documents."""

    def test_query_document_shape(self) -> None:
        """Test the shape of a generated query document."""
        document = create_dynamic_document("query", "_todo_1", "todo")
        operation = document.definitions[0]
        assert isinstance(operation, OperationDefinitionNode)

        field = _root_field(document)

        assert operation.name is not None and operation.name.value == "todo"
        assert operation.variable_definitions[0].variable.name.value == WRAPPED_VARIABLE
        assert field.alias is not None and field.alias.value == "todo"
        assert field.name.value == "_todo_1"
        assert is_local_field(field)

    def test_wrapped_argument_receives_variables(self) -> None:
        """Variables arrive through the wrapped argument."""
        document = create_dynamic_document("mutation", "_save_1", "save")

        args = resolve_arguments(_root_field(document), {WRAPPED_VARIABLE: {"id": 1}})

        assert args == {WRAPPED_VARIABLE: {"id": 1}}

    def test_missing_variables_leave_no_arguments(self) -> None:
        """Test resolving arguments without variables."""
        document = create_dynamic_document("query", "_todo_1", "todo")
        assert resolve_arguments(_root_field(document), None) == {}


class TestWrapVariables:
    def test_empty_variables_are_none(self) -> None:
        """Test that empty variables wrap to None."""
        assert wrap_variables(True, None) is None
        assert wrap_variables(True, {}) is None
        assert wrap_variables(False, {}) is None

    def test_dynamic_variables_are_wrapped(self) -> None:
        """Test wrapping variables of a dynamic entity."""
        assert wrap_variables(True, {"id": 1}) == {WRAPPED_VARIABLE: {"id": 1}}

    def test_already_wrapped_pass_through(self) -> None:
        """Wrapped variables are not wrapped again."""
        wrapped = {WRAPPED_VARIABLE: {"id": 1}}
        assert wrap_variables(True, wrapped) == wrapped

    def test_static_variables_are_copied(self) -> None:
        """Test that static variables are copied as is."""
        assert wrap_variables(False, {"id": 1}) == {"id": 1}

    def test_unwrap(self) -> None:
        """Test unwrapping resolver arguments."""
        assert unwrap_variables(None) == {}
        assert unwrap_variables({WRAPPED_VARIABLE: {"id": 1}}) == {"id": 1}
        assert unwrap_variables({WRAPPED_VARIABLE: None}) == {}
        assert unwrap_variables({"id": 1}) == {"id": 1}


class TestPatchLocalFields:
    """Tests for rewriting hand written documents."""

    def test_root_entity_is_renamed_wrapped_and_marked(self) -> None:
        """Test patching a root field backed by a resolver."""
        document = parse_document("query { todo(id: 1) { title summary } other }")

        patched = patch_local_fields(document, MAPPINGS)
        todo, other = root_fields(patched)

        assert todo.alias is not None and todo.alias.value == "todo"
        assert todo.name.value == "_todo_1"
        assert is_local_field(todo)
        assert resolve_arguments(todo, None) == {WRAPPED_VARIABLE: {"id": 1}}
        assert other.name.value == "other"
        assert not is_local_field(other)

    def test_type_fields_use_enclosing_type(self) -> None:
        """Test that type fields are looked up by the enclosing type."""
        document = parse_document("query { todo { title summary } summary }")

        todo, root_summary = root_fields(patch_local_fields(document, MAPPINGS))

        assert is_local_field(_child(todo, "summary"))
        assert not is_local_field(_child(todo, "title"))
        # Only Todo has a summary resolver, not the root.
        assert not is_local_field(root_summary)

    def test_explicit_alias_is_kept(self) -> None:
        """An existing alias survives the rename."""
        document = parse_document("query { first: todo(id: 1) { title } }")

        todo = _root_field(patch_local_fields(document, MAPPINGS))

        assert todo.alias is not None and todo.alias.value == "first"
        assert todo.name.value == "_todo_1"

    def test_fragments_on_query_are_patched(self) -> None:
        """Test patching fields inside root fragments."""
        document = parse_document(
            "query { ...Root } fragment Root on Query { todo { title } }"
        )

        printed = print_ast(patch_local_fields(document, MAPPINGS))

        assert "todo: _todo_1 @client" in printed

    def test_variables_stay_variables(self) -> None:
        """Test that variable references are kept inside the wrapper."""
        document = parse_document("query ($id: ID) { todo(id: $id) { title } }")

        todo = _root_field(patch_local_fields(document, MAPPINGS))

        assert resolve_arguments(todo, {"id": 7}) == {WRAPPED_VARIABLE: {"id": 7}}

    def test_patch_is_idempotent(self) -> None:
        """Test that patching twice changes nothing."""
        document = parse_document(
            "query { todo(id: 1) { title summary } first: todo(id: 2) { id } }"
        )

        once = patch_local_fields(document, MAPPINGS)
        twice = patch_local_fields(once, MAPPINGS)

        assert print_ast(twice) == print_ast(once)

    def test_source_document_is_left_intact(self) -> None:
        """Test that patching builds new nodes instead of editing the parsed ones."""
        document = parse_document("query { todo(id: 1) { title summary } }")
        before = print_ast(document)

        patched = patch_local_fields(document, MAPPINGS)

        assert print_ast(document) == before
        assert print_ast(patched) != before
        source = _root_field(document)
        assert source.name.value == "todo"
        assert source.alias is None
        assert not is_local_field(source)
        assert not is_local_field(_child(source, "summary"))
        assert is_local_field(_child(_root_field(patched), "summary"))

    def test_unrelated_document_is_unchanged(self) -> None:
        """Documents without local entities are left alone."""
        document = parse_document("query { user(id: 1) { name } }")

        assert print_ast(patch_local_fields(document, MAPPINGS)) == print_ast(document)


class TestStripLocalFields:
    def test_local_fields_are_removed(self) -> None:
        """Test that local fields are stripped before sending."""
        document = parse_document(
            "query { user { id nickname @client } settings @client }"
        )

        printed = print_ast(strip_local_fields(document))

        assert "nickname" not in printed
        assert "settings" not in printed
        assert "id" in printed


class TestSelectOperation:
    """Tests for picking one operation out of a multi-operation document."""

    SOURCE = """
        query First { ...A }
        query Second { ...B }
        fragment A on Query { a }
        fragment B on Query { b ...C }
        fragment C on Query { c }
    """

    def test_keeps_operation_and_used_fragments(self) -> None:
        """Test selecting one operation with its fragments."""
        document = select_operation(parse_document(self.SOURCE), "Second")

        names = [definition.name.value for definition in document.definitions]

        assert names[0] == "Second"
        assert sorted(names[1:]) == ["B", "C"]

    def test_unknown_operation(self) -> None:
        """Test that an unknown operation name raises ValueError."""
        with pytest.raises(ValueError, match="No operation named"):
            select_operation(parse_document(self.SOURCE), "Third")

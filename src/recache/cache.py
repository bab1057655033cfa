"""A small normalized document cache.

Objects that carry ``__typename`` and ``id`` are stored once as
``Typename:id`` records and referenced elsewhere as ``{"__ref": id}``.
Fields are stored under ``name(json-args)`` keys. Fields marked ``@client``
are resolved by registered local resolvers; the rest of a document is sent
to the configured transport.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import weakref
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from graphql import DocumentNode, FieldNode, OperationType, SelectionSetNode

from recache.adapters.base import RecordStore, Resolver, Transport
from recache.adapters.memory import ROOT_QUERY, MemoryRecordStore
from recache.concurrency import maybe_await
from recache.documents import strip_local_fields
from recache.errors import MissingResolverError
from recache.live_query import MemoryLiveQuery
from recache.selection import (
    Fragments,
    collect_fields,
    field_key,
    field_name_of,
    get_fragments,
    get_operation,
    is_local_field,
    resolve_arguments,
    response_key,
    storage_key,
)
from recache.types import ExecutionResult

logger = logging.getLogger(__name__)

REF = "__ref"


class _Missing(Exception):
    """A selected field is not in the cache."""


def _is_ref(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and REF in value


class MemoryCache:
    """Normalized cache with local resolvers and live queries."""

    def __init__(
        self,
        *,
        store: RecordStore | None = None,
        transport: Transport | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self._store = store if store is not None else MemoryRecordStore()
        self._transport = transport
        self._context = dict(context or {})
        self._resolvers: dict[str, dict[str, Resolver]] = {}
        self._watches: weakref.WeakSet[MemoryLiveQuery] = weakref.WeakSet()
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def identify(self, value: Any) -> str | None:
        """Record id of an object, or None if it cannot be normalized."""
        if not isinstance(value, Mapping):
            return None
        typename = value.get("__typename")
        ident = value.get("id", value.get("_id"))
        if typename is None or ident is None:
            return None
        return f"{typename}:{ident}"

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def read(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Read a document; None when any selected field is missing."""
        operation = get_operation(document)
        root = self._store.get(ROOT_QUERY) or {}
        try:
            return self._read_selection(
                operation.selection_set, root, variables, get_fragments(document)
            )
        except _Missing:
            return None

    def _read_selection(
        self,
        selection_set: SelectionSetNode,
        record: Mapping[str, Any],
        variables: Mapping[str, Any] | None,
        fragments: Fragments,
    ) -> dict[str, Any]:
        typename = record.get("__typename")
        result: dict[str, Any] = {}
        if typename is not None:
            result["__typename"] = typename
        for field in collect_fields(selection_set, fragments, typename):
            key = storage_key(field, variables)
            if key not in record:
                raise _Missing(key)
            result[response_key(field)] = self._read_value(
                field, record[key], variables, fragments
            )
        return result

    def _read_value(
        self,
        field: FieldNode,
        value: Any,
        variables: Mapping[str, Any] | None,
        fragments: Fragments,
    ) -> Any:
        if _is_ref(value):
            record = self._store.get(value[REF])
            if record is None:
                raise _Missing(value[REF])
            value = record
        if isinstance(value, list):
            return [self._read_value(field, item, variables, fragments) for item in value]
        if field.selection_set is not None and isinstance(value, Mapping):
            return self._read_selection(field.selection_set, value, variables, fragments)
        return copy.deepcopy(value)

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write(
        self,
        document: DocumentNode,
        data: Mapping[str, Any],
        variables: Mapping[str, Any] | None = None,
        *,
        overwrite: bool = True,
        broadcast: bool = True,
    ) -> None:
        """Write data shaped like ``document``.

        Query roots land in the root record; for other operations only the
        normalizable objects they contain are stored.
        """
        operation = get_operation(document)
        fields = self._write_selection(
            operation.selection_set,
            data,
            variables,
            get_fragments(document),
            overwrite,
        )
        if operation.operation is OperationType.QUERY:
            self._merge_record(ROOT_QUERY, fields, overwrite)
        if broadcast:
            self.broadcast()

    def _write_selection(
        self,
        selection_set: SelectionSetNode,
        data: Mapping[str, Any],
        variables: Mapping[str, Any] | None,
        fragments: Fragments,
        overwrite: bool,
    ) -> dict[str, Any]:
        typename = data.get("__typename")
        record: dict[str, Any] = {}
        if typename is not None:
            record["__typename"] = typename
        for field in collect_fields(selection_set, fragments, typename):
            key = response_key(field)
            if key not in data:
                continue
            record[storage_key(field, variables)] = self._write_value(
                field, data[key], variables, fragments, overwrite
            )
        return record

    def _write_value(
        self,
        field: FieldNode,
        value: Any,
        variables: Mapping[str, Any] | None,
        fragments: Fragments,
        overwrite: bool,
    ) -> Any:
        if isinstance(value, list):
            return [
                self._write_value(field, item, variables, fragments, overwrite)
                for item in value
            ]
        if field.selection_set is not None and isinstance(value, Mapping):
            fields = self._write_selection(
                field.selection_set, value, variables, fragments, overwrite
            )
            record_id = self.identify(value)
            if record_id is None:
                return fields
            self._merge_record(record_id, fields, overwrite)
            return {REF: record_id}
        return copy.deepcopy(value)

    def _merge_record(
        self, record_id: str, fields: Mapping[str, Any], overwrite: bool
    ) -> None:
        record = dict(self._store.get(record_id) or {})
        for key, value in fields.items():
            existing = record.get(key)
            if (
                not overwrite
                and isinstance(existing, dict)
                and isinstance(value, dict)
                and not _is_ref(existing)
                and not _is_ref(value)
            ):
                record[key] = {**existing, **value}
            else:
                record[key] = value
        self._store.set(record_id, record)

    def modify(
        self,
        entity_id: str,
        fields: Mapping[str, Callable[[Any], Any]],
        *,
        broadcast: bool = True,
    ) -> bool:
        """Rewrite stored fields of one record through modifier functions.

        Every stored variant of a field (one per argument set) goes through
        its modifier; fields that were never stored are left alone.
        """
        record = self._store.get(entity_id)
        if record is None:
            return False
        updated = dict(record)
        changed = False
        for key, value in record.items():
            modifier = fields.get(field_name_of(key))
            if modifier is None:
                continue
            new_value = modifier(copy.deepcopy(value))
            if new_value != value:
                updated[key] = new_value
                changed = True
        if changed:
            self._store.set(entity_id, updated)
            if broadcast:
                self.broadcast()
        return changed

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def evict(
        self,
        entity_id: str,
        field: str | None = None,
        args: Mapping[str, Any] | None = None,
        *,
        broadcast: bool = True,
    ) -> bool:
        """Remove a record, or one field of it.

        With ``args`` only that argument set of the field is removed;
        without, every stored variant goes.
        """
        if field is None:
            removed = self._store.delete(entity_id)
        else:
            record = self._store.get(entity_id)
            if record is None:
                return False
            if args is not None:
                doomed = {field_key(field, args)} & set(record)
            else:
                doomed = {key for key in record if field_name_of(key) == field}
            if doomed:
                self._store.set(
                    entity_id,
                    {key: value for key, value in record.items() if key not in doomed},
                )
            removed = bool(doomed)
        if removed:
            logger.debug("Evicted %s %s", entity_id, field or "")
            if broadcast:
                self.broadcast()
        return removed

    def garbage_collect(self) -> list[str]:
        """Remove records that cannot be reached from the root query."""
        reachable: set[str] = set()
        pending = [ROOT_QUERY]
        while pending:
            record_id = pending.pop()
            if record_id in reachable:
                continue
            reachable.add(record_id)
            record = self._store.get(record_id)
            if record is not None:
                pending.extend(_refs_in(record))
        removed = [
            record_id for record_id in self._store.ids() if record_id not in reachable
        ]
        for record_id in removed:
            self._store.delete(record_id)
        if removed:
            logger.debug("Collected %d unreachable records", len(removed))
        return removed

    def extract(self) -> dict[str, dict[str, Any]]:
        """A snapshot of every record."""
        return {
            record_id: copy.deepcopy(self._store.get(record_id) or {})
            for record_id in self._store.ids()
        }

    def reset(self) -> None:
        """Drop every record and tell live queries."""
        self._store.clear()
        self.broadcast()

    # -------------------------------------------------------------------------
    # Live queries
    # -------------------------------------------------------------------------

    def watch(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> MemoryLiveQuery:
        """Create a live query for a document and variables."""
        live = MemoryLiveQuery(self, document, dict(variables) if variables else None)
        self._watches.add(live)
        return live

    def live_queries(self) -> list[MemoryLiveQuery]:
        return list(self._watches)

    def broadcast(self) -> None:
        """Let every live query compare its data with the cache."""
        for live in list(self._watches):
            live.notify()

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(awaitable)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def settle(self) -> bool:
        """Wait for background reloads; True if there were any."""
        if not self._background_tasks:
            return False
        await asyncio.gather(*self._background_tasks, return_exceptions=True)
        return True

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def add_resolvers(self, resolvers: Mapping[str, Mapping[str, Resolver]]) -> None:
        """Register local resolvers by type name and field name."""
        for typename, fields in resolvers.items():
            self._resolvers.setdefault(typename, {}).update(fields)

    async def execute(
        self, document: DocumentNode, variables: Mapping[str, Any] | None = None
    ) -> ExecutionResult:
        """Execute a document.

        Exceptions raised by resolvers or the transport are returned in
        ``errors`` unchanged; the data of a failed field is None.
        """
        operation = get_operation(document)
        fragments = get_fragments(document)
        root_type = "Mutation" if operation.operation is OperationType.MUTATION else "Query"
        fields = list(collect_fields(operation.selection_set, fragments, root_type))
        errors: list[Exception] = []

        remote: dict[str, Any] = {}
        if any(not is_local_field(field) for field in fields):
            try:
                remote, remote_errors = await self._execute_remote(document, variables)
                errors.extend(remote_errors)
            except Exception as error:
                errors.append(error)

        data: dict[str, Any] = {}
        for field in fields:
            key = response_key(field)
            try:
                if is_local_field(field):
                    value = await self._resolve_root(root_type, field, variables)
                else:
                    value = remote.get(key)
                data[key] = await self._complete(field, value, variables, fragments)
            except Exception as error:
                errors.append(error)
                data[key] = None
        return ExecutionResult(data=data, errors=tuple(errors))

    async def _execute_remote(
        self, document: DocumentNode, variables: Mapping[str, Any] | None
    ) -> tuple[dict[str, Any], tuple[Exception, ...]]:
        if self._transport is None:
            raise MissingResolverError("No transport configured for remote fields")
        result = await self._transport.execute(strip_local_fields(document), variables)
        return dict(result.data or {}), result.errors

    async def _resolve_root(
        self, root_type: str, field: FieldNode, variables: Mapping[str, Any] | None
    ) -> Any:
        name = field.name.value
        resolver = self._resolvers.get(root_type, {}).get(name)
        if resolver is not None:
            args = resolve_arguments(field, variables)
            return await maybe_await(resolver(None, args, self._context))
        root = self._store.get(ROOT_QUERY) or {}
        key = storage_key(field, variables)
        if key not in root:
            raise MissingResolverError(f"No resolver for {root_type}.{name}")
        fragments: Fragments = {}
        return self._read_value(field, root[key], variables, fragments)

    async def _complete(
        self,
        field: FieldNode,
        value: Any,
        variables: Mapping[str, Any] | None,
        fragments: Fragments,
    ) -> Any:
        """Shape a field value by its selection, resolving nested local fields."""
        if value is None or field.selection_set is None:
            return value
        if isinstance(value, list):
            return [
                await self._complete(field, item, variables, fragments) for item in value
            ]
        if not isinstance(value, Mapping):
            return value

        typename = value.get("__typename")
        resolvers = self._resolvers.get(typename, {}) if typename else {}
        result: dict[str, Any] = {}
        if typename is not None:
            result["__typename"] = typename
        for child in collect_fields(field.selection_set, fragments, typename):
            key = response_key(child)
            resolver = resolvers.get(child.name.value) if is_local_field(child) else None
            if resolver is not None:
                args = resolve_arguments(child, variables)
                child_value = await maybe_await(resolver(value, args, self._context))
            else:
                child_value = value.get(key, value.get(child.name.value))
            result[key] = await self._complete(child, child_value, variables, fragments)
        return result


def _refs_in(value: Any) -> list[str]:
    if _is_ref(value):
        return [value[REF]]
    if isinstance(value, dict):
        return [ref for item in value.values() for ref in _refs_in(item)]
    if isinstance(value, list):
        return [ref for item in value for ref in _refs_in(item)]
    return []


__all__ = ["ROOT_QUERY", "MemoryCache"]

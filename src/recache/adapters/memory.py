"""In-memory record store."""

from collections import OrderedDict
from collections.abc import Iterable
from typing import Any

ROOT_QUERY = "ROOT_QUERY"


class MemoryRecordStore:
    """In-memory record store with optional LRU eviction.

    The root query record is never chosen for eviction.
    """

    def __init__(self, max_records: int | None = None) -> None:
        if max_records is not None and max_records < 1:
            raise ValueError("max_records must be at least 1")
        self._records: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._max_records = max_records

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Get a record by id."""
        record = self._records.get(record_id)
        if record is not None:
            self._records.move_to_end(record_id)  # LRU touch
        return record

    def set(self, record_id: str, record: dict[str, Any]) -> None:
        """Store a record."""
        self._records[record_id] = record
        self._records.move_to_end(record_id)
        if self._max_records and len(self._records) > self._max_records:
            for candidate in self._records:
                if candidate != ROOT_QUERY and candidate != record_id:
                    del self._records[candidate]
                    break

    def delete(self, record_id: str) -> bool:
        """Delete a record."""
        return self._records.pop(record_id, None) is not None

    def ids(self) -> Iterable[str]:
        """Ids of every stored record."""
        return list(self._records)

    def clear(self) -> None:
        """Clear all records."""
        self._records.clear()

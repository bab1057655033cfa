"""Redis record store."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any


def _serialize_record(record: dict[str, Any]) -> str:
    """Serialize a record to JSON."""
    return json.dumps(record, separators=(",", ":"))


def _deserialize_record(data: bytes | str) -> dict[str, Any]:
    """Deserialize JSON to a record."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    record: dict[str, Any] = json.loads(data)
    return record


class RedisRecordStore:
    """Sync Redis record store.

    Records must be JSON serializable. Pass ``ttl`` (seconds) to let Redis
    expire records that are not rewritten.
    """

    def __init__(
        self,
        client: Any,  # redis.Redis
        *,
        prefix: str = "recache",
        ttl: int | None = None,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._ttl = ttl

    def _record_key(self, record_id: str) -> str:
        """Generate full Redis key for a record."""
        return f"{self._prefix}:record:{record_id}"

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Get a record by id."""
        data = self._client.get(self._record_key(record_id))
        if data is None:
            return None
        return _deserialize_record(data)

    def set(self, record_id: str, record: dict[str, Any]) -> None:
        """Store a record."""
        self._client.set(
            self._record_key(record_id),
            _serialize_record(record),
            ex=self._ttl,
        )

    def delete(self, record_id: str) -> bool:
        """Delete a record."""
        return bool(self._client.delete(self._record_key(record_id)))

    def ids(self) -> Iterable[str]:
        """Ids of every stored record."""
        marker = f"{self._prefix}:record:"
        ids = []
        for key in self._client.scan_iter(match=f"{marker}*", count=100):
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            ids.append(key[len(marker) :])
        return ids

    def clear(self) -> None:
        """Clear all records under this prefix."""
        # Use SCAN to find and delete all record keys
        cursor = 0
        pattern = f"{self._prefix}:record:*"
        while True:
            cursor, keys = self._client.scan(cursor, match=pattern, count=100)
            if keys:
                self._client.delete(*keys)
            if cursor == 0:
                break

    def disconnect(self) -> None:
        """Close the Redis connection."""
        self._client.close()

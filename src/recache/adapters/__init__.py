"""Cache boundary protocols and storage backends."""

from contextlib import suppress

from recache.adapters.base import DocumentCache, LiveQuery, RecordStore, Transport
from recache.adapters.memory import MemoryRecordStore

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from recache.adapters.redis import RedisRecordStore

with suppress(ImportError):
    from recache.adapters.http import HttpTransport

__all__ = [
    "DocumentCache",
    "HttpTransport",
    "LiveQuery",
    "MemoryRecordStore",
    "RecordStore",
    "RedisRecordStore",
    "Transport",
]

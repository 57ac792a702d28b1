"""In-memory record store (async only)."""

import asyncio
from collections import OrderedDict

from relpage.types import Record


class AsyncMemoryAdapter:
    """Async in-memory record store with optional LRU eviction."""

    def __init__(self, max_items: int | None = None) -> None:
        if max_items is not None and max_items <= 0:
            raise ValueError("max_items must be positive")
        self._records: OrderedDict[str, Record] = OrderedDict()
        self._max_items = max_items
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, key: str) -> Record | None:
        """Get a record by storage key."""
        async with self._lock:
            record = self._records.get(key)
            if record is not None:
                self._records.move_to_end(key)  # LRU touch
            return record

    async def set(self, key: str, record: Record) -> None:
        """Store a record, replacing any existing one."""
        async with self._lock:
            self._put(key, record)

    async def set_if_absent(self, key: str, record: Record) -> bool:
        """Store a record only if the key is free."""
        async with self._lock:
            if key in self._records:
                return False
            self._put(key, record)
            return True

    async def delete(self, key: str) -> None:
        """Delete a record."""
        async with self._lock:
            self._records.pop(key, None)

    async def clear(self) -> None:
        """Clear all stored records."""
        async with self._lock:
            self._records.clear()

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass

    def _put(self, key: str, record: Record) -> None:
        self._records[key] = record
        self._records.move_to_end(key)
        if self._max_items and len(self._records) > self._max_items:
            self._records.popitem(last=False)

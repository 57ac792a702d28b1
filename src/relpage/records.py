"""Single-record (getOne) cache shared across controllers."""

from __future__ import annotations

from typing import Any

from relpage.adapters.base import AsyncRecordStore
from relpage.adapters.memory import AsyncMemoryAdapter
from relpage.keys import record_key
from relpage.types import Identifier, Record


class RecordCache:
    """Records addressable by ``(resource, id, meta)``.

    Usage:
        records = RecordCache(AsyncMemoryAdapter())
        await records.set_one("comments", {"id": 1, "body": "hi"})
        comment = await records.get_one("comments", 1)
    """

    def __init__(self, store: AsyncRecordStore | None = None) -> None:
        self._store = store if store is not None else AsyncMemoryAdapter()

    @property
    def store(self) -> AsyncRecordStore:
        return self._store

    async def get_one(
        self, resource: str, record_id: Identifier, meta: Any = None
    ) -> Record | None:
        return await self._store.get(record_key(resource, record_id, meta))

    async def set_one(self, resource: str, record: Record, meta: Any = None) -> None:
        """Write a record unconditionally (e.g. after a successful update)."""
        await self._store.set(record_key(resource, record["id"], meta), record)

    async def promote(self, resource: str, record: Record, meta: Any = None) -> bool:
        """Write a record unless one is already cached. First writer wins."""
        return await self._store.set_if_absent(
            record_key(resource, record["id"], meta), record
        )

    async def invalidate(
        self, resource: str, record_id: Identifier, meta: Any = None
    ) -> None:
        await self._store.delete(record_key(resource, record_id, meta))

    async def clear(self) -> None:
        await self._store.clear()

    async def disconnect(self) -> None:
        await self._store.disconnect()


__all__ = ["RecordCache"]

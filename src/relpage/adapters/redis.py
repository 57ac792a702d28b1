"""Redis record store."""

from __future__ import annotations

import json
from typing import Any

from relpage.types import Record


def _serialize_record(record: Record) -> str:
    return json.dumps(dict(record), default=str)


def _deserialize_record(data: bytes | str) -> Record:
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    obj = json.loads(data)
    if not isinstance(obj, dict):
        raise ValueError(f"Stored record is not an object: {obj!r}")
    return obj


class AsyncRedisAdapter:
    """Async Redis record store.

    Records are stored as JSON under ``{prefix}:record:{key}``. First-writer
    semantics use ``SET NX`` so concurrent processes sharing one Redis agree
    on which record won.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "relpage",
        ttl_ms: int | None = None,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._ttl_ms = ttl_ms

    def _record_key(self, key: str) -> str:
        """Generate full Redis key for a record."""
        return f"{self._prefix}:record:{key}"

    async def get(self, key: str) -> Record | None:
        """Get a record by storage key."""
        data = await self._client.get(self._record_key(key))
        if data is None:
            return None
        return _deserialize_record(data)

    async def set(self, key: str, record: Record) -> None:
        """Store a record, replacing any existing one."""
        await self._client.set(
            self._record_key(key), _serialize_record(record), px=self._ttl_ms
        )

    async def set_if_absent(self, key: str, record: Record) -> bool:
        """Store a record only if the key is free."""
        written = await self._client.set(
            self._record_key(key),
            _serialize_record(record),
            nx=True,
            px=self._ttl_ms,
        )
        return bool(written)

    async def delete(self, key: str) -> None:
        """Delete a record."""
        await self._client.delete(self._record_key(key))

    async def clear(self) -> None:
        """Clear all records under this prefix."""
        # Use SCAN to find and delete all record keys
        cursor: int = 0
        pattern = f"{self._prefix}:record:*"
        while True:
            result = await self._client.scan(cursor, match=pattern, count=100)
            cursor = result[0]
            keys = result[1]
            if keys:
                await self._client.delete(*keys)
            if cursor == 0:
                break

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

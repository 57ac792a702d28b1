"""Record store adapters for relpage (async only)."""

from contextlib import suppress

from relpage.adapters.base import AsyncRecordStore
from relpage.adapters.memory import AsyncMemoryAdapter

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from relpage.adapters.redis import AsyncRedisAdapter

__all__ = [
    "AsyncMemoryAdapter",
    "AsyncRecordStore",
    "AsyncRedisAdapter",
]

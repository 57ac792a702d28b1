"""Base adapter protocol for single-record storage backends."""

from typing import Protocol, runtime_checkable

from relpage.types import Record


@runtime_checkable
class AsyncRecordStore(Protocol):
    """Async record store interface."""

    async def get(self, key: str) -> Record | None:
        """Get a record by storage key."""
        ...

    async def set(self, key: str, record: Record) -> None:
        """Store a record, replacing any existing one."""
        ...

    async def set_if_absent(self, key: str, record: Record) -> bool:
        """Store a record only if the key is free. Returns True if written."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a record."""
        ...

    async def clear(self) -> None:
        """Clear all stored records."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...

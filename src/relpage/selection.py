"""Selected record ids, keyed by a store key."""

from __future__ import annotations

from collections.abc import Iterable

from relpage.types import Identifier


class SelectionStore:
    """Process-wide selection state: ``store_key -> selected ids``.

    Insertion order of ids is preserved.
    """

    def __init__(self) -> None:
        self._selections: dict[str, list[Identifier]] = {}

    def __contains__(self, store_key: object) -> bool:
        return store_key in self._selections

    def get(self, store_key: str) -> list[Identifier]:
        return list(self._selections.get(store_key, []))

    def select(self, store_key: str, ids: Iterable[Identifier]) -> None:
        """Replace the selection with ``ids``."""
        self._selections[store_key] = list(dict.fromkeys(ids))

    def toggle(self, store_key: str, record_id: Identifier) -> None:
        current = self._selections.get(store_key, [])
        if record_id in current:
            self._selections[store_key] = [i for i in current if i != record_id]
        else:
            self._selections[store_key] = [*current, record_id]

    def unselect(self, store_key: str, ids: Iterable[Identifier]) -> None:
        drop = set(ids)
        self._selections[store_key] = [
            i for i in self._selections.get(store_key, []) if i not in drop
        ]

    def clear(self, store_key: str) -> None:
        self._selections.pop(store_key, None)


class Selection:
    """Selection accessors bound to one store key."""

    __slots__ = ("_store", "store_key")

    def __init__(self, store: SelectionStore, store_key: str) -> None:
        self._store = store
        self.store_key = store_key

    @property
    def selected_ids(self) -> list[Identifier]:
        return self._store.get(self.store_key)

    def select(self, ids: Iterable[Identifier]) -> None:
        self._store.select(self.store_key, ids)

    def toggle(self, record_id: Identifier) -> None:
        self._store.toggle(self.store_key, record_id)

    def unselect(self, ids: Iterable[Identifier]) -> None:
        self._store.unselect(self.store_key, ids)

    def clear_selection(self) -> None:
        self._store.clear(self.store_key)


__all__ = ["Selection", "SelectionStore"]

"""ReferenceManyController - list state for the related records of an owner.

Owns pagination, sort, filters and selection for one "records of
``reference`` whose ``target`` equals the owner's id" view, derives the
query key from them on every change, and exposes a uniform result shape.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from relpage.debounce import Debouncer
from relpage.filters import FilterState
from relpage.notify import Notifier, notify_error, null_notifier
from relpage.query_cache import QueryClient
from relpage.records import RecordCache
from relpage.reference import InfiniteGetMany
from relpage.selection import Selection, SelectionStore
from relpage.types import (
    Duration,
    FetchPage,
    Identifier,
    Page,
    PageRequest,
    QueryOptions,
    Record,
    Sort,
)

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def get_path(record: Mapping[str, Any] | None, path: str) -> Any:
    """Read a dotted path (``"author.id"``) from a nested record."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


@dataclass(frozen=True, slots=True)
class PaginationContext:
    """What an infinite pagination widget needs, and nothing more."""

    has_next_page: bool | None
    has_previous_page: bool | None
    fetch_next_page: Callable[[], Awaitable[list[Page]]]
    fetch_previous_page: Callable[[], Awaitable[list[Page]]]
    is_fetching_next_page: bool
    is_fetching_previous_page: bool


@dataclass(frozen=True, slots=True)
class ControllerResult:
    """Snapshot of the controller state, ready for a list view."""

    data: list[Record] | None
    total: int | None
    error: BaseException | None
    is_pending: bool
    is_loading: bool
    is_fetching: bool
    meta: Any
    resource: str
    sort: Sort
    page: int
    per_page: int
    filter_values: dict[str, Any]
    displayed_filters: dict[str, bool]
    selected_ids: list[Identifier]
    has_next_page: bool | None
    has_previous_page: bool | None
    is_fetching_next_page: bool
    is_fetching_previous_page: bool
    set_filters: Callable[..., None]
    show_filter: Callable[..., None]
    hide_filter: Callable[[str], None]
    set_page: Callable[[int], None]
    set_per_page: Callable[[int], None]
    set_sort: Callable[[Sort], None]
    on_select: Callable[[Iterable[Identifier]], None]
    on_toggle_item: Callable[[Identifier], None]
    on_unselect_items: Callable[[], None]
    fetch_next_page: Callable[[], Awaitable[list[Page]]]
    fetch_previous_page: Callable[[], Awaitable[list[Page]]]
    refetch: Callable[[], Awaitable[list[Page]]]


class ReferenceManyController:
    """Controller for an infinite list of records referencing an owner.

    ``update()`` is the render tick: call it whenever the owner record or
    the default filter may have changed. State setters re-derive the query
    immediately; a changed key releases the previous query.

    Usage:
        controller = ReferenceManyController(
            client, fetch,
            resource="posts", reference="comments", target="post_id",
            record={"id": 1},
        )
        result = controller.result()
        await controller.fetch_next_page()
    """

    def __init__(
        self,
        client: QueryClient,
        fetch: FetchPage,
        *,
        reference: str,
        target: str,
        resource: str,
        record: Mapping[str, Any] | None = None,
        source: str = "id",
        filter: Mapping[str, Any] | None = None,
        sort: Sort | None = None,
        page: int = 1,
        per_page: int = 25,
        debounce: Duration = "500ms",
        store_key: str | None = None,
        query_options: QueryOptions | None = None,
        notifier: Notifier | None = None,
        selection: SelectionStore | None = None,
        records: RecordCache | None = None,
    ) -> None:
        if page < 1:
            raise ValueError(f"page must be at least 1, got {page}")
        if per_page <= 0:
            raise ValueError(f"per_page must be positive, got {per_page}")

        self._client = client
        self._fetch = fetch
        self.reference = reference
        self.target = target
        self.resource = resource
        self.source = source
        self._record = record
        self._store_key = store_key
        self._query_options = query_options or QueryOptions()
        self._notifier = notifier or null_notifier
        self._selections = selection if selection is not None else SelectionStore()
        self._records = records

        self._sort = sort or Sort()
        self._page = page
        self._per_page = per_page
        self._filters = FilterState(filter)
        self._debounced_commit = Debouncer(self._commit_filters, debounce)
        self._query: InfiniteGetMany | None = None
        self._closed = False

        self._sync_query()

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def owner_id(self) -> Identifier | None:
        return get_path(self._record, self.source)

    @property
    def store_key(self) -> str:
        if self._store_key is not None:
            return self._store_key
        owner = get_path(self._record, "id")
        return f"{self.resource}.{owner}.{self.reference}"

    @property
    def selection(self) -> Selection:
        return Selection(self._selections, self.store_key)

    @property
    def query(self) -> InfiniteGetMany:
        if self._query is None:
            raise RuntimeError("Controller has no query")
        return self._query

    @property
    def page(self) -> int:
        return self._page

    @property
    def per_page(self) -> int:
        return self._per_page

    @property
    def sort(self) -> Sort:
        return self._sort

    @property
    def filter_values(self) -> dict[str, Any]:
        return dict(self._filters.values)

    @property
    def displayed_filters(self) -> dict[str, bool]:
        return dict(self._filters.displayed)

    def request(self) -> PageRequest:
        """The request for the current state; the owner link is always forced."""
        owner_id = self.owner_id
        return PageRequest(
            owner_id=owner_id if owner_id is not None else "",
            target=self.target,
            page=self._page,
            per_page=self._per_page,
            sort=self._sort,
            filter={**self._filters.values, self.target: owner_id},
            meta=self._query_options.meta,
        )

    # -------------------------------------------------------------------------
    # Render tick
    # -------------------------------------------------------------------------

    def update(
        self,
        *,
        record: Mapping[str, Any] | None = UNSET,
        filter: Mapping[str, Any] | None = UNSET,
    ) -> ControllerResult:
        """Observe new caller inputs and return the resulting state.

        A default filter that differs by content from the last one observed
        overwrites the live filter values, pending debounced edits included.
        """
        if record is not UNSET:
            self._record = record
        if filter is not UNSET and self._filters.sync_default(filter):
            self._debounced_commit.cancel()
        self._sync_query()
        return self.result()

    def result(self) -> ControllerResult:
        query = self.query
        selection = self.selection
        common: dict[str, Any] = {
            "is_fetching": query.is_fetching,
            "meta": query.meta,
            "resource": self.reference,
            "sort": self._sort,
            "page": self._page,
            "per_page": self._per_page,
            "filter_values": self.filter_values,
            "displayed_filters": self.displayed_filters,
            "selected_ids": selection.selected_ids,
            "has_next_page": query.has_next_page,
            "has_previous_page": query.has_previous_page,
            "is_fetching_next_page": query.is_fetching_next_page,
            "is_fetching_previous_page": query.is_fetching_previous_page,
            "set_filters": self.set_filters,
            "show_filter": self.show_filter,
            "hide_filter": self.hide_filter,
            "set_page": self.set_page,
            "set_per_page": self.set_per_page,
            "set_sort": self.set_sort,
            "on_select": self.on_select,
            "on_toggle_item": self.on_toggle_item,
            "on_unselect_items": self.on_unselect_items,
            "fetch_next_page": self.fetch_next_page,
            "fetch_previous_page": self.fetch_previous_page,
            "refetch": self.refetch,
        }

        if query.error is not None:
            return ControllerResult(
                data=None,
                total=None,
                error=query.error,
                is_pending=False,
                is_loading=False,
                **common,
            )

        if query.is_pending:
            return ControllerResult(
                data=None,
                total=None,
                error=None,
                is_pending=True,
                is_loading=True,
                **common,
            )

        total = query.total
        return ControllerResult(
            data=query.records,
            total=total if total is not None else -1,
            error=None,
            is_pending=False,
            is_loading=False,
            **common,
        )

    def pagination_context(self) -> PaginationContext:
        query = self.query
        return PaginationContext(
            has_next_page=query.has_next_page,
            has_previous_page=query.has_previous_page,
            fetch_next_page=self.fetch_next_page,
            fetch_previous_page=self.fetch_previous_page,
            is_fetching_next_page=query.is_fetching_next_page,
            is_fetching_previous_page=query.is_fetching_previous_page,
        )

    # -------------------------------------------------------------------------
    # Pagination and sort
    # -------------------------------------------------------------------------

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be at least 1, got {page}")
        self._page = page
        self._sync_query()

    def set_per_page(self, per_page: int) -> None:
        if per_page <= 0:
            raise ValueError(f"per_page must be positive, got {per_page}")
        self._per_page = per_page
        self._page = 1
        self._sync_query()

    def set_sort(self, sort: Sort) -> None:
        """Change the sort; pagination restarts from the first page."""
        self._sort = sort
        self._page = 1
        self._sync_query()

    async def fetch_next_page(self) -> list[Page]:
        return await self.query.fetch_next_page()

    async def fetch_previous_page(self) -> list[Page]:
        return await self.query.fetch_previous_page()

    async def refetch(self) -> list[Page]:
        return await self.query.refetch()

    async def wait(self) -> list[Page]:
        """Wait for the current query to settle (raises its error, if any)."""
        return await self.query.wait()

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def set_filters(
        self,
        filters: Mapping[str, Any],
        displayed_filters: Mapping[str, bool] | None = None,
        debounce: bool = False,
    ) -> None:
        """Commit new filter values and go back to the first page.

        With ``debounce=True`` the commit is delayed; calls within the
        window collapse into one commit of the last call's arguments.
        """
        if debounce:
            self._debounced_commit(dict(filters), dict(displayed_filters or {}))
        else:
            self._commit_filters(filters, displayed_filters)

    def show_filter(self, name: str, default_value: Any = None) -> None:
        self._filters.show(name, default_value)
        self._sync_query()

    def hide_filter(self, name: str) -> None:
        self._filters.hide(name)
        self._sync_query()

    def _commit_filters(
        self, filters: Mapping[str, Any], displayed: Mapping[str, bool] | None
    ) -> None:
        if self._closed:
            return
        self._filters.commit(filters, displayed)
        self._page = 1
        self._sync_query()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def on_select(self, ids: Iterable[Identifier]) -> None:
        self.selection.select(ids)

    def on_toggle_item(self, record_id: Identifier) -> None:
        self.selection.toggle(record_id)

    def on_unselect_items(self) -> None:
        self.selection.clear_selection()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Cancel pending filter commits and stop observing the query."""
        self._closed = True
        self._debounced_commit.cancel()
        if self._query is not None:
            self._query.release()

    def _sync_query(self) -> None:
        if self._closed:
            return
        request = self.request()
        key = request.query_key(self.reference)
        current = self._query
        if (
            current is not None
            and current.key == key
            and current.request.page == request.page
            and current.handle.query.enabled == self._enabled()
        ):
            return

        options = dataclasses.replace(
            self._query_options,
            enabled=self._enabled(),
            on_error=self._on_error,
        )
        self._query = InfiniteGetMany(
            self._client,
            self._fetch,
            self.reference,
            request,
            options=options,
            records=self._records,
        )
        if current is not None:
            current.release()
        logger.debug(
            "Resolved %s query for owner %r (page %d)",
            self.reference,
            request.owner_id,
            request.page,
        )

    def _enabled(self) -> bool:
        return self.owner_id is not None and self._query_options.enabled

    def _on_error(self, error: BaseException) -> Any:
        notify_error(self._notifier, error)
        if self._query_options.on_error is not None:
            return self._query_options.on_error(error)
        return None


__all__ = [
    "ControllerResult",
    "PaginationContext",
    "ReferenceManyController",
    "get_path",
]

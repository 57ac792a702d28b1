"""Shared pytest fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from relpage import (
    AsyncMemoryAdapter,
    ManyReferenceParams,
    PageInfo,
    PageRequest,
    PageResult,
    QueryClient,
    QueryKey,
    RecordCache,
    Sort,
)


class FakeFetch:
    """A getManyReference transport backed by generated comment records.

    Page ``n`` of owner ``id`` holds ids ``(n - 1) * per_page + 1 ...``.
    ``gate(page)`` blocks the next fetch of that page until the event is set.
    ``error`` is raised by every call; a callable builds a fresh error each time.
    """

    def __init__(
        self,
        *,
        total: int = 95,
        page_info: Callable[[int], PageInfo] | None = None,
        error: BaseException | Callable[[], BaseException] | None = None,
    ) -> None:
        self.total = total
        self.page_info = page_info
        self.error = error
        self.calls: list[tuple[str, ManyReferenceParams]] = []
        self._gates: dict[int, asyncio.Event] = {}

    def gate(self, page: int) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[page] = event
        return event

    def records_for(self, page: int, per_page: int = 25, owner: object = 1) -> list:
        start = (page - 1) * per_page
        count = max(0, min(per_page, self.total - start))
        return [
            {"id": start + i + 1, "post_id": owner, "body": f"comment {start + i + 1}"}
            for i in range(count)
        ]

    def pages_fetched(self) -> list[int]:
        return [params.pagination.page for _, params in self.calls]

    def for_key(self, key: QueryKey) -> Callable:
        """Cursor fetcher for engine-level tests."""
        request = PageRequest(
            owner_id=key.owner_id,
            target=key.target,
            per_page=key.per_page,
            sort=key.sort,
            filter=key.filter,
            meta=key.meta,
        )

        async def fetch(cursor: int) -> PageResult:
            return await self(key.resource, request.params(cursor))

        return fetch

    async def __call__(self, resource: str, params: ManyReferenceParams) -> PageResult:
        self.calls.append((resource, params))
        page = params.pagination.page
        gate = self._gates.pop(page, None)
        if gate is not None:
            await gate.wait()
        if callable(self.error):
            raise self.error()
        if self.error is not None:
            raise self.error
        records = self.records_for(page, params.pagination.per_page, params.id)
        if self.page_info is not None:
            return PageResult(records=records, page_info=self.page_info(page))
        return PageResult(records=records, total=self.total)


@pytest.fixture
def fake_fetch() -> FakeFetch:
    """A fresh fake transport with 95 related records."""
    return FakeFetch()


@pytest.fixture
def make_fetch() -> type[FakeFetch]:
    """The fake transport class, for tests needing custom totals or errors."""
    return FakeFetch


@pytest.fixture
def client() -> QueryClient:
    """A fresh query client for each test."""
    return QueryClient()


@pytest.fixture
def async_adapter() -> AsyncMemoryAdapter:
    """Create a fresh AsyncMemoryAdapter for each test."""
    return AsyncMemoryAdapter()


@pytest.fixture
def records(async_adapter: AsyncMemoryAdapter) -> RecordCache:
    """A record cache over the memory adapter."""
    return RecordCache(async_adapter)


@pytest.fixture
def key() -> QueryKey:
    """Query key for the comments of post 1."""
    return QueryKey(
        resource="comments",
        owner_id=1,
        target="post_id",
        per_page=25,
        sort=Sort("id", "DESC"),
        filter={"post_id": 1},
    )

"""Infinite getManyReference: page through the related records of an owner.

Binds one PageRequest to a QueryClient, turns the caller's fetch primitive
into a cursor fetcher, and dispatches the success / error / settled hooks
each time the query stops fetching. Successful settlements first seed the
single-record cache (see relpage.promotion).
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from relpage.promotion import promote_pages
from relpage.query_cache import InfiniteQuery, QueryClient, QueryHandle
from relpage.records import RecordCache
from relpage.types import (
    FetchPage,
    Page,
    PageRequest,
    PageResult,
    QueryKey,
    QueryOptions,
    QueryStatus,
    Record,
)

logger = logging.getLogger(__name__)


def as_page_result(value: PageResult | Mapping[str, Any]) -> PageResult:
    """Accept either a PageResult or a transport payload mapping."""
    if isinstance(value, PageResult):
        return value
    if isinstance(value, Mapping):
        return PageResult.from_dict(value)
    raise TypeError(f"Expected PageResult or mapping, got {type(value)}")


async def _invoke(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.warning("Callback %r failed", callback, exc_info=True)


class InfiniteGetMany:
    """The related records of one owner, loaded page by page.

    Usage:
        comments = InfiniteGetMany(
            client, fetch, "comments", PageRequest(owner_id=1, target="post_id")
        )
        await comments.wait()
        if comments.has_next_page:
            await comments.fetch_next_page()
        comments.records  # every loaded comment, in page order
    """

    def __init__(
        self,
        client: QueryClient,
        fetch: FetchPage,
        resource: str,
        request: PageRequest,
        *,
        options: QueryOptions | None = None,
        records: RecordCache | None = None,
    ) -> None:
        self.resource = resource
        self.request = request
        self._fetch = fetch
        self._options = options or QueryOptions()
        self._records = records
        self._errored = False
        self._handle: QueryHandle = client.resolve(
            request.query_key(resource),
            self._fetch_cursor,
            initial_cursor=request.page,
            options=self._options,
        )
        self._handle.on_settle(self._on_settle)

    @property
    def key(self) -> QueryKey:
        return self._handle.key

    @property
    def handle(self) -> QueryHandle:
        return self._handle

    @property
    def status(self) -> QueryStatus:
        return self._handle.status

    @property
    def is_pending(self) -> bool:
        return self._handle.is_pending

    @property
    def is_fetching(self) -> bool:
        return self._handle.is_fetching

    @property
    def is_fetching_next_page(self) -> bool:
        return self._handle.is_fetching_next_page

    @property
    def is_fetching_previous_page(self) -> bool:
        return self._handle.is_fetching_previous_page

    @property
    def has_next_page(self) -> bool | None:
        return self._handle.has_next_page

    @property
    def has_previous_page(self) -> bool | None:
        return self._handle.has_previous_page

    @property
    def error(self) -> BaseException | None:
        return self._handle.error

    @property
    def data(self) -> list[Page] | None:
        return self._handle.data

    @property
    def records(self) -> list[Record]:
        """Records of every loaded page, flattened in page order."""
        return [record for page in self._handle.pages for record in page.records]

    @property
    def total(self) -> int | None:
        pages = self._handle.pages
        return pages[0].result.total if pages else None

    @property
    def meta(self) -> Any:
        pages = self._handle.pages
        return pages[0].result.meta if pages else None

    async def fetch_next_page(self) -> list[Page]:
        return await self._handle.fetch_next_page()

    async def fetch_previous_page(self) -> list[Page]:
        return await self._handle.fetch_previous_page()

    async def refetch(self) -> list[Page]:
        return await self._handle.refetch()

    async def wait(self) -> list[Page]:
        return await self._handle.wait()

    def release(self) -> None:
        self._handle.release()

    async def _fetch_cursor(self, cursor: int) -> PageResult:
        result = await self._fetch(self.resource, self.request.params(cursor))
        return as_page_result(result)

    async def _on_settle(self, query: InfiniteQuery) -> None:
        if query.status == "pending":
            return
        pages = query.data
        error = query.error

        if error is None and pages is not None:
            if self._records is not None:
                try:
                    await promote_pages(
                        self._records, self.resource, pages, meta=self.request.meta
                    )
                except Exception:
                    logger.warning(
                        "Record promotion failed for %r", self.resource, exc_info=True
                    )
            await _invoke(self._options.on_success, pages)

        if error is not None and not self._errored:
            await _invoke(self._options.on_error, error)
        self._errored = error is not None

        await _invoke(self._options.on_settled, pages, error)


__all__ = ["InfiniteGetMany", "as_page_result"]

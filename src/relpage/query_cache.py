"""Infinite query cache - growable, cursor-addressed page sequences.

This module provides:
- next_cursor() / previous_cursor(): cursor advancement from a page result
- InfiniteQuery: the page sequence and fetch state of one QueryKey
- QueryHandle: an observer's view of a query, released on key change
- QueryClient: process-wide store of queries with fetch coalescing
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from relpage.duration import parse_duration
from relpage.types import (
    Duration,
    Page,
    PageResult,
    QueryKey,
    QueryOptions,
    QueryStatus,
)

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[PageResult]]
SettleHook = Callable[["InfiniteQuery"], Awaitable[None]]
Listener = Callable[["InfiniteQuery"], None]
Operation = Literal["initial", "next", "previous", "refetch"]
InFlight = dict[tuple[QueryKey, int], asyncio.Future[PageResult]]


def next_cursor(page: Page, per_page: int) -> int | None:
    """Cursor following ``page``, or None when it is the last one."""
    result = page.result
    if result.page_info is not None:
        return page.cursor + 1 if result.page_info.has_next_page else None

    total_pages = math.ceil((result.total or 0) / per_page)
    return page.cursor + 1 if page.cursor < total_pages else None


def previous_cursor(page: Page) -> int | None:
    """Cursor preceding ``page``, or None when it is the first one."""
    result = page.result
    if result.page_info is not None:
        return page.cursor - 1 if result.page_info.has_previous_page else None

    return None if page.cursor == 1 else page.cursor - 1


class InfiniteQuery:
    """Page sequence and fetch state for one QueryKey.

    Pages are kept in fetch order: forward fetches append, backward fetches
    prepend. Every reset bumps ``generation``; a fetch started under an
    older generation never touches the state when it completes.
    """

    def __init__(
        self,
        key: QueryKey,
        fetch: PageFetcher,
        *,
        initial_cursor: int = 1,
        options: QueryOptions | None = None,
        in_flight: InFlight | None = None,
    ) -> None:
        self.key = key
        self.fetch = fetch
        self.initial_cursor = initial_cursor
        self.options = options or QueryOptions()

        self.pages: list[Page] = []
        self.status: QueryStatus = "pending"
        self.error: BaseException | None = None
        self.updated_at: int | None = None  # Unix timestamp ms
        self.generation = 0
        self.observers = 0

        self._active: set[Operation] = set()
        self._tasks: dict[Operation, asyncio.Task[None]] = {}
        self._in_flight: InFlight = in_flight if in_flight is not None else {}
        self._owned: dict[int, asyncio.Future[PageResult]] = {}
        self._hooks: list[SettleHook] = []
        self._listeners: list[Listener] = []
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def __repr__(self) -> str:
        return (
            f"InfiniteQuery({self.key.resource}, owner={self.key.owner_id!r}, "
            f"status={self.status}, pages={[p.cursor for p in self.pages]})"
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def per_page(self) -> int:
        return self.key.per_page

    @property
    def enabled(self) -> bool:
        return self.options.enabled

    @property
    def data(self) -> list[Page] | None:
        return list(self.pages) if self.pages else None

    @property
    def is_fetching(self) -> bool:
        return bool(self._active)

    @property
    def is_fetching_next_page(self) -> bool:
        return "next" in self._active

    @property
    def is_fetching_previous_page(self) -> bool:
        return "previous" in self._active

    @property
    def has_next_page(self) -> bool | None:
        if not self.pages:
            return None if self.status == "pending" else False
        return next_cursor(self.pages[-1], self.per_page) is not None

    @property
    def has_previous_page(self) -> bool | None:
        if not self.pages:
            return None if self.status == "pending" else False
        return previous_cursor(self.pages[0]) is not None

    def is_stale(self, stale_time: Duration | None = None) -> bool:
        """Whether the loaded pages are older than ``stale_time``."""
        if self.updated_at is None:
            return True
        limit = parse_duration(
            stale_time if stale_time is not None else self.options.stale_time
        )
        return time.time() * 1000 - self.updated_at >= limit

    def reset(self) -> None:
        """Drop every page and abandon in-flight fetches."""
        self.generation += 1
        self.pages = []
        self.status = "pending"
        self.error = None
        self.updated_at = None
        self._active = set()
        self._tasks = {}
        for cursor, future in self._owned.items():
            if self._in_flight.get((self.key, cursor)) is future:
                del self._in_flight[(self.key, cursor)]
        self._owned = {}
        self._notify()

    def add_hook(self, hook: SettleHook) -> None:
        self._hooks.append(hook)

    def remove_hook(self, hook: SettleHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` on every state change; returns an unsubscriber."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.warning("Listener failed for %r", self, exc_info=True)

    # -------------------------------------------------------------------------
    # Fetch operations
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Issue the initial fetch unless one is loaded, running or disabled."""
        if not self.enabled or self.pages or "initial" in self._tasks:
            return
        self._spawn(
            "initial",
            self._run_page(self.initial_cursor, "initial", self.generation),
        )

    async def wait(self) -> list[Page]:
        """Wait for running operations and their settle hooks.

        Raises the query error if the query failed. Must not be awaited from
        inside a settle hook.
        """
        while self._background_tasks:
            await asyncio.gather(
                *(asyncio.shield(t) for t in list(self._background_tasks)),
                return_exceptions=True,
            )
        if self.status == "error" and self.error is not None:
            raise self.error
        return list(self.pages)

    async def fetch_next_page(self) -> list[Page]:
        return await self._fetch_direction("next")

    async def fetch_previous_page(self) -> list[Page]:
        return await self._fetch_direction("previous")

    async def refetch(self) -> list[Page]:
        """Re-fetch every loaded page, starting from the first cursor."""
        if not self.enabled:
            return list(self.pages)
        running = self._tasks.get("refetch")
        if running is not None:
            await asyncio.shield(running)
            return list(self.pages)
        if not self.pages:
            self.start()
            return await self._await_operation("initial")
        await self._run_operation("refetch", self._run_refetch(self.generation))
        return list(self.pages)

    async def fetch_page(self, cursor: int) -> PageResult:
        """Fetch a single cursor without touching the page sequence."""
        return await self._coalesce(cursor)

    async def _fetch_direction(
        self, direction: Literal["next", "previous"]
    ) -> list[Page]:
        if not self.enabled:
            return list(self.pages)
        running = self._tasks.get(direction)
        if running is not None:
            await asyncio.shield(running)
            return list(self.pages)
        refetching = self._tasks.get("refetch")
        if refetching is not None:
            # Page from the refreshed sequence, not the one being replaced
            await asyncio.shield(refetching)
        if not self.pages:
            # Nothing loaded yet: the initial fetch stands in for either direction
            return await self._await_operation("initial")

        if direction == "next":
            cursor = next_cursor(self.pages[-1], self.per_page)
        else:
            cursor = previous_cursor(self.pages[0])
        if cursor is None:
            return list(self.pages)

        await self._run_operation(
            direction, self._run_page(cursor, direction, self.generation)
        )
        return list(self.pages)

    async def _await_operation(self, operation: Operation) -> list[Page]:
        task = self._tasks.get(operation)
        if task is not None:
            await asyncio.shield(task)
        return list(self.pages)

    async def _run_operation(
        self, operation: Operation, coro: Awaitable[None]
    ) -> None:
        task = self._spawn(operation, coro)
        await asyncio.shield(task)

    def _spawn(
        self, operation: Operation, coro: Awaitable[None]
    ) -> asyncio.Task[None]:
        generation = self.generation
        self._active.add(operation)
        self._notify()

        async def runner() -> None:
            try:
                await coro
            finally:
                if generation == self.generation:
                    self._active.discard(operation)
                    if self._tasks.get(operation) is task:
                        del self._tasks[operation]
                    self._notify()
            if generation == self.generation and not self._active:
                await self._settle()

        task = asyncio.create_task(runner())
        self._tasks[operation] = task
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _run_page(
        self, cursor: int, operation: Operation, generation: int
    ) -> None:
        if generation != self.generation:
            return
        logger.debug(
            "Fetching %s page %d of %r", operation, cursor, self.key.resource
        )
        try:
            result = await self._coalesce(cursor)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self.generation:
                logger.debug("Discarding stale error for %r", self)
                return
            self._set_error(e)
            return

        if generation != self.generation:
            logger.debug("Discarding stale page %d for %r", cursor, self)
            return

        page = Page(cursor=cursor, result=result)
        pages = [p for p in self.pages if p.cursor != cursor]
        if operation == "previous":
            pages.insert(0, page)
        else:
            pages.append(page)
        self.pages = pages
        self._set_success()

    async def _run_refetch(self, generation: int) -> None:
        paging = [
            task
            for operation, task in self._tasks.items()
            if operation in ("next", "previous")
        ]
        if paging:
            await asyncio.gather(
                *(asyncio.shield(t) for t in paging), return_exceptions=True
            )
        if generation != self.generation or not self.pages:
            return
        cursor: int | None = self.pages[0].cursor
        count = len(self.pages)
        refreshed: list[Page] = []
        try:
            while cursor is not None and len(refreshed) < count:
                result = await self._coalesce(cursor)
                if generation != self.generation:
                    break
                refreshed.append(Page(cursor=cursor, result=result))
                cursor = next_cursor(refreshed[-1], self.per_page)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self.generation:
                self._set_error(e)
            return

        if generation != self.generation:
            logger.debug("Discarding stale refetch for %r", self)
            return
        self.pages = refreshed
        self._set_success()

    async def _coalesce(self, cursor: int) -> PageResult:
        """Share one fetch between concurrent requests for the same cursor."""
        entry = (self.key, cursor)
        existing = self._in_flight.get(entry)
        if existing is not None:
            logger.debug("Joining in-flight fetch of page %d for %r", cursor, self)
            return await asyncio.shield(existing)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[PageResult] = loop.create_future()
        self._in_flight[entry] = future
        self._owned[cursor] = future

        try:
            result = await self.fetch(cursor)
            future.set_result(result)
            return result
        except asyncio.CancelledError:
            future.cancel()
            raise
        except BaseException as e:
            future.set_exception(e)
            future.exception()  # Mark retrieved; joiners still see it raised
            raise
        finally:
            if self._in_flight.get(entry) is future:
                del self._in_flight[entry]
            if self._owned.get(cursor) is future:
                del self._owned[cursor]

    def _set_success(self) -> None:
        self.status = "success"
        self.error = None
        self.updated_at = int(time.time() * 1000)

    def _set_error(self, error: BaseException) -> None:
        logger.debug("Fetch failed for %r: %r", self, error)
        self.status = "error"
        self.error = error
        self.updated_at = int(time.time() * 1000)

    async def _settle(self) -> None:
        for hook in list(self._hooks):
            try:
                await hook(self)
            except Exception:
                logger.warning("Settle hook failed for %r", self, exc_info=True)

    def cancel(self) -> None:
        """Cancel every background task (used when the client is cleared)."""
        for task in list(self._background_tasks):
            task.cancel()
        self.reset()


class QueryHandle:
    """One observer's view of an InfiniteQuery.

    Obtained from QueryClient.resolve(); call release() when the observer
    moves to another key so the superseded sequence can be dropped.
    """

    __slots__ = ("_client", "_hooks", "_query", "_released", "_unsubscribers")

    def __init__(self, client: QueryClient, query: InfiniteQuery) -> None:
        self._client = client
        self._query = query
        self._hooks: list[SettleHook] = []
        self._released = False
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def key(self) -> QueryKey:
        return self._query.key

    @property
    def query(self) -> InfiniteQuery:
        return self._query

    @property
    def released(self) -> bool:
        return self._released

    @property
    def status(self) -> QueryStatus:
        return self._query.status

    @property
    def is_pending(self) -> bool:
        return self._query.status == "pending"

    @property
    def is_success(self) -> bool:
        return self._query.status == "success"

    @property
    def is_error(self) -> bool:
        return self._query.status == "error"

    @property
    def pages(self) -> list[Page]:
        return list(self._query.pages)

    @property
    def data(self) -> list[Page] | None:
        return self._query.data

    @property
    def error(self) -> BaseException | None:
        return self._query.error

    @property
    def is_fetching(self) -> bool:
        return self._query.is_fetching

    @property
    def is_fetching_next_page(self) -> bool:
        return self._query.is_fetching_next_page

    @property
    def is_fetching_previous_page(self) -> bool:
        return self._query.is_fetching_previous_page

    @property
    def has_next_page(self) -> bool | None:
        return self._query.has_next_page

    @property
    def has_previous_page(self) -> bool | None:
        return self._query.has_previous_page

    def on_settle(self, hook: SettleHook) -> None:
        """Register a coroutine run each time the query stops fetching."""
        self._hooks.append(hook)
        self._query.add_hook(hook)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state-change listener, dropped again on release()."""
        unsubscribe = self._query.subscribe(listener)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    async def fetch_next_page(self) -> list[Page]:
        self._check_active()
        return await self._query.fetch_next_page()

    async def fetch_previous_page(self) -> list[Page]:
        self._check_active()
        return await self._query.fetch_previous_page()

    async def refetch(self) -> list[Page]:
        self._check_active()
        return await self._query.refetch()

    async def wait(self) -> list[Page]:
        return await self._query.wait()

    def release(self) -> None:
        """Stop observing. The last release removes the query from the client."""
        if self._released:
            return
        self._released = True
        for hook in self._hooks:
            self._query.remove_hook(hook)
        self._hooks = []
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._client._release(self._query)

    def _check_active(self) -> None:
        if self._released:
            raise RuntimeError(f"Query handle for {self.key.resource!r} was released")


class QueryClient:
    """Process-wide store of infinite queries.

    There is one query per ``(QueryKey, initial_cursor)``; observers starting
    the same key at different cursors never share a page sequence. In-flight
    fetches are shared across all of them per ``(QueryKey, cursor)``.

    Usage:
        client = QueryClient()
        handle = client.resolve(key, fetch, initial_cursor=1)
        pages = await handle.wait()
        await handle.fetch_next_page()
        handle.release()
    """

    def __init__(self, *, stale_time: Duration = 0) -> None:
        self._stale_time = parse_duration(stale_time)
        self._queries: dict[tuple[QueryKey, int], InfiniteQuery] = {}
        self._in_flight: InFlight = {}

    def __len__(self) -> int:
        return len(self._queries)

    def __contains__(self, key: object) -> bool:
        return any(stored == key for stored, _ in self._queries)

    def resolve(
        self,
        key: QueryKey,
        fetch: PageFetcher,
        *,
        initial_cursor: int = 1,
        options: QueryOptions | None = None,
    ) -> QueryHandle:
        """Observe the query for ``key``, creating and starting it if needed."""
        options = options or QueryOptions(stale_time=self._stale_time)
        query = self._queries.get((key, initial_cursor))

        if query is None:
            query = InfiniteQuery(
                key,
                fetch,
                initial_cursor=initial_cursor,
                options=options,
                in_flight=self._in_flight,
            )
            self._queries[(key, initial_cursor)] = query
            logger.debug("Created %r", query)
        else:
            query.fetch = fetch
            query.options = options
            if (
                query.enabled
                and query.status == "success"
                and not query.is_fetching
                and query.is_stale()
            ):
                query._spawn("refetch", query._run_refetch(query.generation))

        query.observers += 1
        query.start()
        return QueryHandle(self, query)

    def get_query(
        self, key: QueryKey, initial_cursor: int = 1
    ) -> InfiniteQuery | None:
        return self._queries.get((key, initial_cursor))

    def get_query_data(
        self, key: QueryKey, initial_cursor: int = 1
    ) -> list[Page] | None:
        query = self._queries.get((key, initial_cursor))
        return query.data if query is not None else None

    async def fetch_page(
        self, key: QueryKey, cursor: int, *, initial_cursor: int = 1
    ) -> PageResult:
        """Fetch one cursor of a known query, joining any in-flight fetch."""
        query = self._queries.get((key, initial_cursor))
        if query is None:
            raise KeyError(key)
        return await query.fetch_page(cursor)

    def remove(self, key: QueryKey, initial_cursor: int | None = None) -> None:
        """Forget a key's queries (all cursors unless ``initial_cursor``).

        Their in-flight fetches complete into the void.
        """
        slots = [
            slot
            for slot in self._queries
            if slot[0] == key and initial_cursor in (None, slot[1])
        ]
        for slot in slots:
            self._queries.pop(slot).reset()
            logger.debug("Removed query for %r at cursor %d", key.resource, slot[1])

    async def invalidate(self, resource: str | None = None) -> None:
        """Refetch every observed query, optionally only one resource's."""
        queries = [
            q
            for q in self._queries.values()
            if q.observers > 0 and (resource is None or q.key.resource == resource)
        ]
        await asyncio.gather(*(q.refetch() for q in queries))

    async def clear(self) -> None:
        """Cancel everything in flight and drop all queries."""
        queries = list(self._queries.values())
        self._queries.clear()
        for query in queries:
            query.cancel()

    def _release(self, query: InfiniteQuery) -> None:
        query.observers = max(0, query.observers - 1)
        slot = (query.key, query.initial_cursor)
        if query.observers == 0 and self._queries.get(slot) is query:
            self.remove(query.key, query.initial_cursor)


__all__ = [
    "InfiniteQuery",
    "Listener",
    "PageFetcher",
    "QueryClient",
    "QueryHandle",
    "SettleHook",
    "next_cursor",
    "previous_cursor",
]

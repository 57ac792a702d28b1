"""relpage - infinite, cursor-based loading of related records."""

from contextlib import suppress

# Adapters (async only)
from relpage.adapters import AsyncMemoryAdapter, AsyncRecordStore

# List controller
from relpage.controller import (
    ControllerResult,
    PaginationContext,
    ReferenceManyController,
)
from relpage.debounce import Debouncer
from relpage.duration import parse_duration
from relpage.filters import FilterState, remove_empty
from relpage.notify import HTTP_ERROR_MESSAGE, Notifier, error_message
from relpage.promotion import MAX_RECORDS_TO_PROMOTE, promote_pages

# Query engine
from relpage.query_cache import (
    InfiniteQuery,
    QueryClient,
    QueryHandle,
    next_cursor,
    previous_cursor,
)
from relpage.records import RecordCache
from relpage.reference import InfiniteGetMany
from relpage.selection import Selection, SelectionStore

# Core types
from relpage.types import (
    Duration,
    FetchPage,
    ManyReferenceParams,
    Page,
    PageInfo,
    PageRequest,
    PageResult,
    Pagination,
    QueryKey,
    QueryOptions,
    Sort,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from relpage.adapters import AsyncRedisAdapter

__version__ = "0.1.0"

__all__ = [
    "HTTP_ERROR_MESSAGE",
    "MAX_RECORDS_TO_PROMOTE",
    "AsyncMemoryAdapter",
    "AsyncRecordStore",
    "AsyncRedisAdapter",
    "ControllerResult",
    "Debouncer",
    "Duration",
    "FetchPage",
    "FilterState",
    "InfiniteGetMany",
    "InfiniteQuery",
    "ManyReferenceParams",
    "Notifier",
    "Page",
    "PageInfo",
    "PageRequest",
    "PageResult",
    "Pagination",
    "PaginationContext",
    "QueryClient",
    "QueryHandle",
    "QueryKey",
    "QueryOptions",
    "RecordCache",
    "ReferenceManyController",
    "Selection",
    "SelectionStore",
    "Sort",
    "error_message",
    "next_cursor",
    "parse_duration",
    "previous_cursor",
    "promote_pages",
    "remove_empty",
]

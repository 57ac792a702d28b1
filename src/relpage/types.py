"""Core types for relpage."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeAlias

from relpage.keys import canonical, same_value

Identifier: TypeAlias = str | int
Record: TypeAlias = Mapping[str, Any]
SortOrder = Literal["ASC", "DESC"]
QueryStatus = Literal["pending", "error", "success"]

Duration: TypeAlias = str | int  # "500ms", "30s", "5m" or milliseconds


@dataclass(frozen=True, slots=True)
class Sort:
    """Sort field and direction."""

    field: str = "id"
    order: SortOrder = "DESC"

    def __post_init__(self) -> None:
        if self.order not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort order: {self.order!r}")


@dataclass(frozen=True, slots=True)
class PageInfo:
    """Explicit paging hints returned by the transport."""

    has_next_page: bool = False
    has_previous_page: bool = False


@dataclass(frozen=True, slots=True)
class PageResult:
    """One page of related records as returned by a fetch."""

    records: list[Record]
    total: int | None = None
    page_info: PageInfo | None = None
    meta: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PageResult:
        """Build a result from a transport payload.

        Accepts ``{"data": [...], "total": n, "pageInfo": {...}, "meta": ...}``.
        """
        raw_info = data.get("pageInfo", data.get("page_info"))
        page_info = None
        if isinstance(raw_info, PageInfo):
            page_info = raw_info
        elif raw_info is not None:
            page_info = PageInfo(
                has_next_page=bool(
                    raw_info.get("hasNextPage", raw_info.get("has_next_page"))
                ),
                has_previous_page=bool(
                    raw_info.get(
                        "hasPreviousPage", raw_info.get("has_previous_page")
                    )
                ),
            )
        return cls(
            records=list(data.get("data", data.get("records", []))),
            total=data.get("total"),
            page_info=page_info,
            meta=data.get("meta"),
        )


@dataclass(frozen=True, slots=True)
class Page:
    """A fetched page together with the cursor it was fetched at."""

    cursor: int
    result: PageResult

    @property
    def records(self) -> list[Record]:
        return self.result.records


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int = 1
    per_page: int = 25


@dataclass(frozen=True, slots=True)
class ManyReferenceParams:
    """Arguments handed to the fetch primitive for one page."""

    target: str
    id: Identifier
    pagination: Pagination
    sort: Sort
    filter: Mapping[str, Any]
    meta: Any = None


@dataclass(frozen=True, slots=True)
class QueryKey:
    """Identifies one resumable page sequence (everything but the cursor).

    Equality and hashing are structural, so two keys built from filter
    mappings with the same content but different key order are equal.
    """

    resource: str
    owner_id: Identifier
    target: str
    per_page: int
    sort: Sort
    filter: Mapping[str, Any] = field(default_factory=dict)
    meta: Any = None

    @property
    def hash(self) -> str:
        return canonical(
            [
                self.resource,
                "getInfiniteMany",
                {
                    "id": self.owner_id,
                    "target": self.target,
                    "perPage": self.per_page,
                    "sort": [self.sort.field, self.sort.order],
                    "filter": self.filter,
                    "meta": self.meta,
                },
            ]
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryKey):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)


@dataclass(frozen=True, slots=True)
class PageRequest:
    """One page of one logical query."""

    owner_id: Identifier
    target: str
    page: int = 1
    per_page: int = 25
    sort: Sort = field(default_factory=Sort)
    filter: Mapping[str, Any] = field(default_factory=dict)
    meta: Any = None

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError(f"page must not be negative, got {self.page}")
        if self.per_page <= 0:
            raise ValueError(f"per_page must be positive, got {self.per_page}")

    def query_key(self, resource: str) -> QueryKey:
        return QueryKey(
            resource=resource,
            owner_id=self.owner_id,
            target=self.target,
            per_page=self.per_page,
            sort=self.sort,
            filter=self.filter,
            meta=self.meta,
        )

    def same_query(self, other: PageRequest) -> bool:
        """True when both requests address the same cursor sequence."""
        return (
            self.owner_id == other.owner_id
            and self.target == other.target
            and self.per_page == other.per_page
            and self.sort == other.sort
            and same_value(self.filter, other.filter)
            and same_value(self.meta, other.meta)
        )

    def params(self, cursor: int | None = None) -> ManyReferenceParams:
        return ManyReferenceParams(
            target=self.target,
            id=self.owner_id,
            pagination=Pagination(
                page=self.page if cursor is None else cursor,
                per_page=self.per_page,
            ),
            sort=self.sort,
            filter=self.filter,
            meta=self.meta,
        )


class FetchPage(Protocol):
    """The transport primitive: fetch one page of related records."""

    def __call__(
        self, resource: str, params: ManyReferenceParams
    ) -> Awaitable[PageResult | Mapping[str, Any]]: ...


OnSuccess = Callable[[list[Page]], Any]
OnError = Callable[[BaseException], Any]
OnSettled = Callable[[list[Page] | None, BaseException | None], Any]


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """Caller configuration forwarded to the query engine.

    ``extra`` is carried untouched for callers; the engine only reads
    ``enabled`` and ``stale_time``. The three hooks are intercepted by
    the reference layer.
    """

    enabled: bool = True
    stale_time: Duration = 0
    meta: Any = None
    on_success: OnSuccess | None = None
    on_error: OnError | None = None
    on_settled: OnSettled | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


__all__ = [
    "Duration",
    "FetchPage",
    "Identifier",
    "ManyReferenceParams",
    "Page",
    "PageInfo",
    "PageRequest",
    "PageResult",
    "Pagination",
    "QueryKey",
    "QueryOptions",
    "QueryStatus",
    "Record",
    "Sort",
    "SortOrder",
]

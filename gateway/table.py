"""
Filtering, sorting and pagination over arbitrary record collections.

``view`` is a pure function used for every table in the console (ingest
requests, dispatch logs and each configuration kind). ``TableManager`` keeps
the filter/sort/page state a console screen carries between calls and resets
the page whenever the filter or sort changes.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Mapping, Optional, Sequence

from .models import TablePage

SortDirection = Literal["ascending", "descending"]


@dataclass(frozen=True)
class SortConfig:
    key: str
    direction: SortDirection = "ascending"


@dataclass(frozen=True)
class TableSpec:
    """Per-collection table settings: which fields are searchable and the default order."""

    searchable_keys: Sequence[str]
    default_sort: Optional[SortConfig] = None


@dataclass(frozen=True)
class TableQuery:
    filter: str = ""
    sort: Optional[SortConfig] = None
    page: int = 1
    page_size: int = 10


def _field(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def filter_records(records: Iterable[Any], needle: str, searchable_keys: Sequence[str]) -> List[Any]:
    if not needle:
        return list(records)
    needle = needle.lower()
    matched = []
    for record in records:
        for key in searchable_keys:
            value = _field(record, key)
            if value is not None and needle in _display(value).lower():
                matched.append(record)
                break
    return matched


def _sort_value(value: Any):
    # numbers, then strings, then anything else by display string, then missing
    if value is None:
        return (3, "")
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, _display(value))


def sort_records(records: Iterable[Any], sort: Optional[SortConfig]) -> List[Any]:
    """Stable sort on one key. Missing values go after present ones when ascending."""
    if sort is None:
        return list(records)

    def sort_key(record: Any):
        return _sort_value(_field(record, sort.key))

    # sorted() keeps equal keys in input order even with reverse=True
    return sorted(records, key=sort_key, reverse=sort.direction == "descending")


def total_pages_for(count: int, page_size: int) -> int:
    return math.ceil(count / page_size)


def clamp_page(page: int, total_pages: int) -> int:
    return max(1, min(page, max(total_pages, 1)))


def view(
    records: Iterable[Any],
    query: TableQuery,
    spec: TableSpec,
) -> TablePage:
    """Filter, then sort, then paginate ``records``.

    A page past the end is clamped to the last page so the returned items
    always agree with the reported totals.
    """
    if query.page_size < 1:
        raise ValueError("page_size must be at least 1")

    filtered = filter_records(records, query.filter, spec.searchable_keys)
    ordered = sort_records(filtered, query.sort or spec.default_sort)

    total_pages = total_pages_for(len(ordered), query.page_size)
    page = clamp_page(query.page, total_pages)
    start = (page - 1) * query.page_size
    return TablePage(
        items=ordered[start : start + query.page_size],
        totalItems=len(ordered),
        totalPages=total_pages,
        page=page,
        pageSize=query.page_size,
    )


def next_sort(current: Optional[SortConfig], key: str) -> SortConfig:
    """Sort after the user selects ``key``: a new key starts ascending, the same key toggles."""
    if current is not None and current.key == key:
        direction: SortDirection = (
            "descending" if current.direction == "ascending" else "ascending"
        )
        return SortConfig(key, direction)
    return SortConfig(key, "ascending")


class TableManager:
    """Holds one table's filter, sort and page between renders."""

    def __init__(self, spec: TableSpec, page_size: int = 10, items: Optional[Iterable[Any]] = None):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.spec = spec
        self.page_size = page_size
        self.items: List[Any] = list(items or [])
        self.filter = ""
        self.sort: Optional[SortConfig] = spec.default_sort
        self.page = 1

    def set_items(self, items: Iterable[Any]) -> None:
        self.items = list(items)

    def set_filter(self, value: str) -> None:
        self.filter = value
        self.page = 1

    def request_sort(self, key: str) -> SortConfig:
        self.sort = next_sort(self.sort, key)
        self.page = 1
        return self.sort

    def set_page(self, page: int) -> None:
        self.page = page

    def view(self) -> TablePage:
        result = view(
            self.items,
            TableQuery(
                filter=self.filter,
                sort=self.sort,
                page=self.page,
                page_size=self.page_size,
            ),
            self.spec,
        )
        self.page = result.page
        return result


CONFIG_TABLE = TableSpec(
    searchable_keys=(
        "name",
        "source_pattern",
        "source_dto",
        "target_format",
        "pattern",
        "target_url",
        "method",
        "provider",
    ),
    default_sort=SortConfig("updated_at", "descending"),
)

INGEST_TABLE = TableSpec(
    searchable_keys=("method", "url", "ip", "user_agent"),
    default_sort=SortConfig("timestamp", "descending"),
)

DISPATCH_LOG_TABLE = TableSpec(
    searchable_keys=("rule_name", "target_url", "status", "ingest_request_id"),
    default_sort=SortConfig("timestamp", "descending"),
)

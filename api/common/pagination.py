"""
Pagination helpers.

Query input is untyped (straight from the URL), so parsing is forgiving:
bad values fall back to defaults instead of raising.
"""

from __future__ import annotations

import math
import re
from typing import Any, Generic, Mapping, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# Postgres OFFSET is a bigint.
MAX_OFFSET = 2**63 - 1

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


class PaginationOptions(BaseModel):
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    # Insertion order is the sort priority.
    sort: dict[str, int] | None = None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int = Field(ge=0)


class PaginatedResult(BaseModel, Generic[T]):
    data: list[T]
    meta: PaginationMeta


def _parse_int(value: Any) -> int | None:
    """
    Lenient integer parsing: "12" -> 12, "3abc" -> 3, 7.9 -> 7, "abc" -> None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        return int(match.group(1)) if match else None
    return None


def parse_sort(raw: str) -> dict[str, int]:
    """
    "-createdAt,name" -> {"createdAt": -1, "name": 1}

    Order is preserved; when a field repeats, its first occurrence wins.
    """
    sort: dict[str, int] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            field, direction = part[1:].strip(), -1
        else:
            field, direction = part, 1
        if field and field not in sort:
            sort[field] = direction
    return sort


def create_pagination_options(query: Mapping[str, Any]) -> PaginationOptions:
    page = _parse_int(query.get("page"))
    limit = _parse_int(query.get("limit"))

    raw_sort = query.get("sort")
    sort = parse_sort(raw_sort) if isinstance(raw_sort, str) and raw_sort else None

    limit = limit if limit is not None and 0 < limit <= MAX_LIMIT else DEFAULT_LIMIT
    page = page if page is not None and page > 0 else DEFAULT_PAGE
    # Far past the last page is still just an empty page.
    page = min(page, MAX_OFFSET // limit + 1)

    return PaginationOptions(
        page=page,
        limit=limit,
        sort=sort or None,
    )


def create_paginated_result(
    data: Sequence[T],
    total: int,
    options: PaginationOptions,
) -> PaginatedResult[T]:
    return PaginatedResult(
        data=list(data),
        meta=PaginationMeta(
            total=total,
            page=options.page,
            limit=options.limit,
            pages=max(math.ceil(total / options.limit), 0),
        ),
    )


async def pagination_query(
    page: str | None = Query(default=None, description="Page number (1-based)", examples=[1]),
    limit: str | None = Query(
        default=None,
        description=f"Number of items per page (max {MAX_LIMIT})",
        examples=[DEFAULT_LIMIT],
    ),
    sort: str | None = Query(
        default=None,
        description="Sort fields, comma separated; prefix with - for descending",
        examples=["-createdAt,name"],
    ),
) -> PaginationOptions:
    """
    FastAPI dependency: documents the pagination query params and parses them.
    """
    return create_pagination_options({"page": page, "limit": limit, "sort": sort})

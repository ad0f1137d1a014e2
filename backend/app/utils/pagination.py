"""Offset pagination over fully materialised result lists."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def to_dict(self) -> dict[str, object]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def normalize_page_args(
    page: int | None, limit: int | None, *, default_limit: int, max_limit: int
) -> tuple[int, int]:
    """Clamp raw query values to a valid page number and page size."""

    page = max(1, page or 1)
    limit = limit or default_limit
    limit = max(1, min(limit, max_limit))
    return page, limit


def paginate(items: Sequence[T], page: int, limit: int) -> tuple[list[T], Pagination]:
    """Return the slice for ``page`` and the pagination metadata for ``items``."""

    pagination = Pagination(page=page, limit=limit, total=len(items))
    start = pagination.offset
    return list(items[start : start + limit]), pagination

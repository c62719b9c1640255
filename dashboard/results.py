from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

from dashboard.errors import InvalidPayload
from dashboard.schemas import CustomerPageResponse


Row = Mapping[str, Any]


@dataclass(frozen=True)
class PageResult:
    """One page of customers exactly as the server computed it."""

    rows: Tuple[Row, ...]
    current_page: int
    total_pages: int
    total_items: int
    limit: int

    @classmethod
    def empty(cls, limit: int) -> "PageResult":
        return cls(rows=(), current_page=1, total_pages=1, total_items=0, limit=max(1, int(limit)))

    @classmethod
    def from_response(cls, response: CustomerPageResponse) -> "PageResult":
        p = response.pagination
        rows = freeze_rows(response.data)
        if len(rows) > p.limit:
            raise InvalidPayload(f"page holds {len(rows)} rows but limit is {p.limit}")
        if p.current_page > max(p.total_pages, 1):
            raise InvalidPayload(f"currentPage {p.current_page} beyond totalPages {p.total_pages}")
        return cls(
            rows=rows,
            current_page=p.current_page,
            total_pages=p.total_pages,
            total_items=p.total_items,
            limit=p.limit,
        )

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.limit

    @property
    def start_item(self) -> int:
        if self.total_items == 0:
            return 0
        return self.offset + 1

    @property
    def end_item(self) -> int:
        if self.total_items == 0:
            return 0
        return min(self.current_page * self.limit, self.total_items)

    def row_number(self, index: int) -> int:
        """1-based position of the `index`-th row of this page in the whole result."""
        return self.offset + index + 1


def freeze_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[Row, ...]:
    return tuple(MappingProxyType(dict(r)) for r in rows)

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple


DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class SortSpec:
    field: str
    descending: bool = False

    @property
    def order(self) -> str:
        return "desc" if self.descending else "asc"


@dataclass(frozen=True)
class QueryState:
    """Immutable snapshot of what the table asks the server for.

    Every transition returns a new snapshot. Any change to search, filters,
    sort or page size sends the table back to the first page; only
    `set_page_index` keeps the rest of the state.
    """

    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    sort: Optional[SortSpec] = None
    search: str = ""
    filter_items: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {self.page_index}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        keys = [k for k, _ in self.filter_items]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate filter keys: {keys}")

    @property
    def filters(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self.filter_items))

    def filter_value(self, field: str) -> Optional[str]:
        return self.filters.get(field)

    # ---------- transitions ----------

    def set_search(self, text: str) -> "QueryState":
        return replace(self, search=text or "", page_index=0)

    def set_filter(self, field: str, value: Optional[str]) -> "QueryState":
        """Replace the filter on `field`; an empty or missing value removes it."""
        items = tuple((k, v) for k, v in self.filter_items if k != field)
        if value:
            items = items + ((field, str(value)),)
        return replace(self, filter_items=items, page_index=0)

    def set_sort(self, field: str) -> "QueryState":
        if self.sort is not None and self.sort.field == field:
            sort = SortSpec(field=field, descending=not self.sort.descending)
        else:
            sort = SortSpec(field=field, descending=False)
        return replace(self, sort=sort, page_index=0)

    def set_page_index(self, index: int) -> "QueryState":
        return replace(self, page_index=max(0, int(index)))

    def set_page_size(self, size: int) -> "QueryState":
        return replace(self, page_size=int(size), page_index=0)

    # ---------- wire ----------

    def to_params(self) -> List[Tuple[str, str]]:
        """Query parameters for GET /customers. Empty values are never sent."""
        params: List[Tuple[str, str]] = [
            ("page", str(self.page_index + 1)),
            ("limit", str(self.page_size)),
        ]
        if self.sort is not None:
            params.append(("sortBy", self.sort.field))
            params.append(("sortOrder", self.sort.order))
        if self.search:
            params.append(("search", self.search))
        for key, value in self.filter_items:
            if value:
                params.append((key, value))
        return params

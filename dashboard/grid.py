"""Grid controller for the customer table.

Single owner of the table's view state: the current `QueryState`, the last
accepted `PageResult`, and the loading / error flags. UI events go through
the interaction methods, which derive the next `QueryState` and hand it to
`on_query_state_change`; fetch outcomes come back through `on_fetch_result`
only when the `FetchSequencer` has judged them current.

States: IDLE -> LOADING -> READY | ERRORED. Any query change re-enters
LOADING, from any state. The previous page stays on display while loading
and after a failed fetch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from dashboard.client import CustomerApi
from dashboard.filters import DEFAULT_FILTER_FIELDS, FilterField, FilterOptionSet, load_filter_options
from dashboard.query_state import DEFAULT_PAGE_SIZE, QueryState
from dashboard.results import PageResult, Row
from dashboard.sequencer import FetchOutcome, FetchSequencer


logger = logging.getLogger(__name__)


class GridStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class GridView:
    """What the table renders at one instant."""

    state: QueryState
    page: PageResult
    status: GridStatus
    error: Optional[str]
    filter_options: Mapping[str, FilterOptionSet]
    # Query the shown page was fetched for; None until a page is accepted.
    page_state: Optional[QueryState] = None

    @property
    def loading(self) -> bool:
        return self.status is GridStatus.LOADING

    @property
    def rows(self) -> Tuple[Row, ...]:
        return self.page.rows

    @property
    def start_item(self) -> int:
        return self.page.start_item

    @property
    def end_item(self) -> int:
        return self.page.end_item

    @property
    def can_previous(self) -> bool:
        return self.state.page_index > 0

    @property
    def page_matches_query(self) -> bool:
        """True when the shown page answers the current query, page index aside."""
        if self.page_state is None:
            return False
        return replace(self.page_state, page_index=self.state.page_index) == self.state

    @property
    def can_next(self) -> bool:
        # total_pages only counts for the query the page was fetched under.
        return self.page_matches_query and self.state.page_index + 1 < self.page.total_pages

    @property
    def is_empty(self) -> bool:
        return self.status in (GridStatus.READY, GridStatus.ERRORED) and not self.page.rows

    def numbered_rows(self) -> List[Tuple[int, Row]]:
        return [(self.page.row_number(i), row) for i, row in enumerate(self.page.rows)]


class GridController:
    def __init__(
        self,
        api: CustomerApi,
        *,
        filter_fields: Sequence[FilterField] = DEFAULT_FILTER_FIELDS,
        initial_state: Optional[QueryState] = None,
        initial_page: Optional[PageResult] = None,
        initial_page_state: Optional[QueryState] = None,
        filter_options: Optional[Mapping[str, FilterOptionSet]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        on_change: Optional[Callable[[GridView], None]] = None,
        cancel_superseded: bool = False,
    ):
        self._api = api
        self._filter_fields = tuple(filter_fields)
        self._state = initial_state or QueryState(page_size=page_size)
        self._page = initial_page or PageResult.empty(self._state.page_size)
        self._page_state: Optional[QueryState] = None
        if initial_page is not None:
            self._page_state = initial_page_state or self._state
        self._status = GridStatus.IDLE
        self._error: Optional[str] = None
        self._filter_options: Dict[str, FilterOptionSet] = {f.key: () for f in self._filter_fields}
        self._options_loaded = filter_options is not None
        if filter_options is not None:
            self._filter_options.update(filter_options)
        self._on_change = on_change
        self._options_task: Optional[asyncio.Task] = None
        self._sequencer: FetchSequencer[PageResult] = FetchSequencer(
            api.fetch_page, self.on_fetch_result, cancel_superseded=cancel_superseded
        )

    # ---------- read side ----------

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def page(self) -> PageResult:
        return self._page

    @property
    def status(self) -> GridStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def loading(self) -> bool:
        return self._status is GridStatus.LOADING

    @property
    def filter_fields(self) -> Tuple[FilterField, ...]:
        return self._filter_fields

    @property
    def filter_options(self) -> Mapping[str, FilterOptionSet]:
        return MappingProxyType(self._filter_options)

    @property
    def sequencer(self) -> FetchSequencer[PageResult]:
        return self._sequencer

    def view(self) -> GridView:
        return GridView(
            state=self._state,
            page=self._page,
            status=self._status,
            error=self._error,
            filter_options=self.filter_options,
            page_state=self._page_state,
        )

    # ---------- lifecycle ----------

    def start(self) -> None:
        """Mount: fire the first fetch and, unless options were supplied, the one-off option load."""
        if self._status is not GridStatus.IDLE:
            return
        if not self._options_loaded:
            self._options_loaded = True
            self._options_task = asyncio.get_running_loop().create_task(
                self._load_filter_options(), name="customer-filter-options"
            )
        self.on_query_state_change(self._state)

    async def settle(self) -> None:
        """Wait for every in-flight fetch (and the option load) to finish."""
        await self._sequencer.drain()
        if self._options_task is not None:
            await self._options_task

    async def aclose(self) -> None:
        if self._options_task is not None and not self._options_task.done():
            self._options_task.cancel()
            await asyncio.gather(self._options_task, return_exceptions=True)
        await self._sequencer.aclose()

    async def _load_filter_options(self) -> None:
        options = await load_filter_options(self._api.fetch_filter_options, self._filter_fields)
        self._filter_options.update(options)
        self._notify()

    # ---------- transitions ----------

    def on_query_state_change(self, next_state: QueryState) -> None:
        self._state = next_state
        self._status = GridStatus.LOADING
        self._sequencer.issue(next_state)
        self._notify()

    def on_fetch_result(self, outcome: FetchOutcome[PageResult]) -> None:
        if outcome.ok:
            self._page = outcome.result
            self._page_state = outcome.ticket.query_state
            self._error = None
            self._status = GridStatus.READY
        else:
            logger.warning("customer fetch #%d failed: %s", outcome.ticket.sequence, outcome.error)
            self._error = f"Failed to fetch data: {outcome.error}"
            self._status = GridStatus.ERRORED
        self._notify()

    def _apply(self, next_state: QueryState) -> None:
        if self._status is GridStatus.IDLE:
            # Not mounted yet: start() fetches whatever state is current then.
            self._state = next_state
            return
        if next_state == self._state:
            return
        self.on_query_state_change(next_state)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.view())

    # ---------- interactions ----------

    def search(self, text: str) -> None:
        self._apply(self._state.set_search(text))

    def filter(self, field: str, value: Optional[str]) -> None:
        self._apply(self._state.set_filter(field, value))

    def sort(self, field: str) -> None:
        self._apply(self._state.set_sort(field))

    def go_to_page(self, index: int) -> None:
        self._apply(self._state.set_page_index(index))

    def next_page(self) -> None:
        if self.view().can_next:
            self.go_to_page(self._state.page_index + 1)

    def previous_page(self) -> None:
        if self.view().can_previous:
            self.go_to_page(self._state.page_index - 1)

    def set_page_size(self, size: int) -> None:
        self._apply(self._state.set_page_size(size))

    def reload(self) -> None:
        """Re-issue the current query, e.g. to retry after an error."""
        if self._status is GridStatus.IDLE:
            self.start()
            return
        self.on_query_state_change(self._state)

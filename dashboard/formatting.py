from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional

import pandas as pd

from dashboard.grid import GridView
from dashboard.query_state import QueryState


NUMBER_COLUMN = "No."
EMPTY_MESSAGE = "No data available with current filters."
NO_ITEMS_MESSAGE = "No items to display."


@dataclass(frozen=True)
class Column:
    key: str
    header: str
    sortable: bool = True


COLUMNS = (
    Column("Name", "Customer Name"),
    Column("Email", "Email"),
    Column("gender", "Gender"),
    Column("Age", "Age"),
    Column("Name of Location", "Location"),
    Column("Location Type", "Location Type"),
    Column("Brand Device", "Brand Device"),
    Column("Digital Interest", "Digital Interest"),
    Column("Date", "Login Date"),
    Column("Login Hour", "Login Hour"),
)


def birth_year(age: Any, today: Optional[date] = None) -> Optional[int]:
    """The Age column is shown as the year derived from it (current year - age)."""
    if age is None or pd.isna(age):
        return None
    try:
        years = int(float(age))
    except (TypeError, ValueError):
        return None
    return (today or date.today()).year - years


def format_login_date(value: Any) -> Optional[str]:
    """'12/29/2023' -> 'December 29, 2023'; anything unparseable is returned as-is."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    try:
        parsed = datetime.strptime(s, "%m/%d/%Y")
    except ValueError:
        return s
    return f"{parsed:%B} {parsed.day:02d}, {parsed.year}"


def header_label(column: Column, state: QueryState) -> str:
    if state.sort is None or state.sort.field != column.key:
        return column.header
    return f"{column.header} {'▼' if state.sort.descending else '▲'}"


def display_frame(view: GridView, today: Optional[date] = None) -> pd.DataFrame:
    """Render-ready copy of the current page; the stored rows are left untouched."""
    records: List[dict] = []
    for number, row in view.numbered_rows():
        rec = {NUMBER_COLUMN: number}
        for col in COLUMNS:
            value = row.get(col.key)
            if col.key == "Age":
                value = birth_year(value, today)
            elif col.key == "Date":
                value = format_login_date(value)
            rec[col.header] = value
        records.append(rec)
    return pd.DataFrame(records, columns=[NUMBER_COLUMN] + [c.header for c in COLUMNS])


def item_range_caption(view: GridView) -> str:
    page = view.page
    if page.total_items > 0:
        return f"Showing {view.start_item} - {view.end_item} of {page.total_items:,} items"
    if not view.loading:
        return NO_ITEMS_MESSAGE
    return ""

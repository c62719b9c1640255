import asyncio
import logging
from contextlib import contextmanager
from datetime import date
from typing import Dict, List, Optional, Tuple

import streamlit as st

from dashboard.client import CustomerApi, build_async_client
from dashboard.config import configure_logging, get_settings
from dashboard.formatting import COLUMNS, EMPTY_MESSAGE, display_frame, header_label, item_range_caption
from dashboard.grid import GridController, GridView
from dashboard.query_state import QueryState
from dashboard.summaries import LOGIN_TRENDS_KEY, PANEL_KEYS, ChartPanel, PanelStatus, load_chart_panels

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Interactions queued by widget callbacks, replayed on the controller next run.
Event = Tuple[str, tuple]


# ---------- UI / layout helpers ----------
@contextmanager
def card(title: str):
    container = st.container(border=True)
    container.markdown(f"**{title}**")
    with container:
        yield container


def _queue(name: str, *args) -> None:
    st.session_state.setdefault("grid_events", []).append((name, args))


def _init_session() -> None:
    ss = st.session_state
    ss.setdefault("query_state", QueryState(page_size=settings.default_page_size))
    ss.setdefault("page", None)
    ss.setdefault("page_state", None)
    ss.setdefault("filter_options", None)
    ss.setdefault("grid_events", [])
    ss.setdefault("login_date", settings.default_login_date)
    ss.setdefault("panels", {})


# ---------- data ----------
async def refresh(
    state: QueryState,
    events: List[Event],
    *,
    page=None,
    page_state=None,
    filter_options=None,
    panel_keys: List[str],
    login_date: Optional[date],
) -> Tuple[GridView, Dict[str, ChartPanel]]:
    async with build_async_client(settings) as http:
        api = CustomerApi(http)
        controller = GridController(
            api,
            filter_fields=settings.filter_fields,
            initial_state=state,
            initial_page=page,
            initial_page_state=page_state,
            filter_options=filter_options,
            cancel_superseded=settings.cancel_superseded_fetches,
        )
        for name, args in events:
            getattr(controller, name)(*args)
        controller.start()
        panels = await load_chart_panels(api, login_date, panel_keys) if panel_keys else {}
        try:
            await controller.settle()
        finally:
            await controller.aclose()
        return controller.view(), panels


# ---------- page renderers ----------
def render_panel(panel: ChartPanel) -> None:
    with card(panel.title):
        if panel.status is PanelStatus.ERROR:
            st.error(panel.message)
        elif panel.status is PanelStatus.EMPTY:
            st.info(panel.message)
        else:
            st.altair_chart(panel.chart, use_container_width=True)


def render_login_trends(panel: ChartPanel) -> None:
    with card(panel.title):
        c1, c2 = st.columns([3, 1])
        picked = c1.date_input("Date:", value=panel.as_of or date.today(), key="login_date_input")

        def _apply_date():
            st.session_state["login_date"] = st.session_state["login_date_input"]
            st.session_state["panels"].pop(LOGIN_TRENDS_KEY, None)

        c2.button("Apply Filter", on_click=_apply_date, disabled=picked is None)
        if panel.status is PanelStatus.ERROR:
            st.error(panel.message)
        else:
            st.altair_chart(panel.chart, use_container_width=True)


def render_table(view: GridView) -> None:
    with card("Customer Data"):
        st.text_input(
            "Search",
            value=view.state.search,
            key="search_input",
            placeholder="Search all columns...",
            on_change=lambda: _queue("search", st.session_state["search_input"]),
        )

        filter_cols = st.columns(len(settings.filter_fields))
        for col, f in zip(filter_cols, settings.filter_fields):
            options = [""] + list(view.filter_options.get(f.key, ()))
            current = view.state.filter_value(f.key) or ""
            if current not in options:
                options.append(current)
            widget_key = f"filter_{f.key}"
            col.selectbox(
                f.label,
                options,
                index=options.index(current),
                key=widget_key,
                format_func=lambda v, label=f.label: v or f"Filter by {label}",
                on_change=lambda k=f.key, w=widget_key: _queue("filter", k, st.session_state[w]),
            )

        sort_cols = st.columns(len(COLUMNS))
        for col, c in zip(sort_cols, COLUMNS):
            col.button(
                header_label(c, view.state),
                key=f"sort_{c.key}",
                disabled=not c.sortable,
                on_click=_queue,
                args=("sort", c.key),
            )

        if view.error:
            st.error(view.error)
        if view.is_empty:
            st.info(EMPTY_MESSAGE)
        else:
            st.dataframe(display_frame(view), use_container_width=True, hide_index=True)

        c1, c2, c3, c4 = st.columns([1, 1, 4, 2])
        c1.button("<", disabled=not view.can_previous, on_click=_queue, args=("previous_page",))
        c2.button(">", disabled=not view.can_next, on_click=_queue, args=("next_page",))
        c3.caption(item_range_caption(view))
        sizes = list(settings.page_size_options)
        if view.state.page_size not in sizes:
            sizes = sorted(sizes + [view.state.page_size])
        c4.selectbox(
            "Rows per page",
            sizes,
            index=sizes.index(view.state.page_size),
            key="page_size_input",
            format_func=lambda n: f"Show {n}",
            on_change=lambda: _queue("set_page_size", st.session_state["page_size_input"]),
        )


# ---------- UI setup ----------
st.set_page_config(page_title="Customer Dashboard", layout="wide")
st.title("Customer Dashboard")
_init_session()

ss = st.session_state
events, ss["grid_events"] = ss["grid_events"], []
try:
    view, panels = asyncio.run(
        refresh(
            ss["query_state"],
            events,
            page=ss["page"],
            page_state=ss["page_state"],
            filter_options=ss["filter_options"],
            panel_keys=[k for k in PANEL_KEYS if k not in ss["panels"]],
            login_date=ss["login_date"],
        )
    )
except Exception as exc:
    logger.exception("dashboard refresh failed")
    st.error(f"Dashboard unavailable: {exc}")
    st.stop()

ss["query_state"] = view.state
ss["page"] = view.page
ss["page_state"] = view.page_state
ss["filter_options"] = dict(view.filter_options)
ss["panels"].update(panels)

chart_cols = st.columns(3)
for col, key in zip(chart_cols, ["gender", "gender_age", "brand_device"]):
    with col:
        render_panel(ss["panels"][key])
render_login_trends(ss["panels"][LOGIN_TRENDS_KEY])
render_table(view)

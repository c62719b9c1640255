"""Chart summary adapters.

Each adapter fetches one aggregate endpoint once, reshapes it with pandas and
builds an Altair chart. Failures stay inside the panel that hit them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

import altair as alt
import pandas as pd
from pydantic import BaseModel, ValidationError

from dashboard.charts import GENDER_COLORS, OTHER_GENDER_COLOR, TREND_COLOR, palette_for, to_vega_spec
from dashboard.client import CustomerApi
from dashboard.errors import DashboardError, InvalidPayload
from dashboard.schemas import BrandCount, GenderAgeCount, GenderCount, LoginTrendPoint


logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
AGE_GROUP_ORDER = ["0-19", "20-29", "30-39", "40-49", "50-59", "60+"]
HOURS = list(range(24))
LOGIN_TRENDS_KEY = "login_trends"

M = TypeVar("M", bound=BaseModel)


class PanelStatus(str, Enum):
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True, eq=False)
class ChartPanel:
    key: str
    title: str
    status: PanelStatus
    data: pd.DataFrame = field(default_factory=pd.DataFrame)
    chart: Optional[alt.TopLevelMixin] = None
    message: Optional[str] = None
    as_of: Optional[date] = None

    @property
    def spec(self) -> Optional[Dict[str, Any]]:
        return to_vega_spec(self.chart) if self.chart is not None else None


def _validate(rows: Iterable[Dict[str, Any]], model: Type[M]) -> List[M]:
    try:
        return [model.model_validate(r) for r in rows]
    except ValidationError as exc:
        raise InvalidPayload(f"{model.__name__}: unexpected payload ({exc.error_count()} errors)") from exc


def _label(value: Optional[str]) -> str:
    return value if value else UNKNOWN


# ---------- frames ----------

def gender_frame(items: Sequence[GenderCount]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"gender": _label(i.gender), "count": int(i.count)} for i in items],
        columns=["gender", "count"],
    )


def age_group_rank(group: str) -> int:
    try:
        return AGE_GROUP_ORDER.index(group)
    except ValueError:
        return 999


def gender_age_frame(items: Sequence[GenderAgeCount]) -> pd.DataFrame:
    """Long frame with one row per (age_group, gender); missing pairs count 0."""
    cols = ["age_group", "gender", "count"]
    if not items:
        return pd.DataFrame(columns=cols)
    df = pd.DataFrame(
        [{"age_group": _label(i.age_group), "gender": _label(i.gender), "count": int(i.count)} for i in items],
        columns=cols,
    )
    groups = sorted(dict.fromkeys(df["age_group"]), key=age_group_rank)
    genders = list(dict.fromkeys(df["gender"]))
    counts = df.drop_duplicates(subset=["age_group", "gender"], keep="last").set_index(["age_group", "gender"])["count"]
    full = pd.MultiIndex.from_product([groups, genders], names=["age_group", "gender"])
    return counts.reindex(full, fill_value=0).reset_index()


def brand_frame(items: Sequence[BrandCount]) -> pd.DataFrame:
    df = pd.DataFrame(
        [{"brand": _label(i.brand), "count": int(i.count)} for i in items],
        columns=["brand", "count"],
    )
    total = df["count"].sum()
    df["share"] = df["count"] / total if total else 0.0
    return df


def login_trend_frame(points: Sequence[LoginTrendPoint]) -> pd.DataFrame:
    """24 hourly buckets; hours outside 0-23 are dropped, missing hours are 0."""
    counts = {h: 0 for h in HOURS}
    for p in points:
        if 0 <= p.hour < 24:
            counts[p.hour] = int(p.login_count)
    return pd.DataFrame(
        [{"hour": h, "label": f"{h}:00", "logins": counts[h]} for h in HOURS],
        columns=["hour", "label", "logins"],
    )


# ---------- charts ----------

def gender_chart(df: pd.DataFrame) -> alt.Chart:
    labels = df["gender"].tolist()
    return (
        alt.Chart(df)
        .mark_arc()
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("gender:N", title="Gender", scale=alt.Scale(domain=labels, range=palette_for(len(labels)))),
            tooltip=["gender", alt.Tooltip("count:Q", format=",")],
        )
    )


def gender_age_chart(df: pd.DataFrame) -> alt.Chart:
    groups = list(dict.fromkeys(df["age_group"]))
    genders = list(dict.fromkeys(df["gender"]))
    colors = [GENDER_COLORS.get(g, OTHER_GENDER_COLOR) for g in genders]
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("age_group:N", title="Age Group", sort=groups),
            xOffset=alt.XOffset("gender:N", sort=genders),
            y=alt.Y("count:Q", title="Number of Customers"),
            color=alt.Color("gender:N", title="Gender", scale=alt.Scale(domain=genders, range=colors)),
            tooltip=["age_group", "gender", alt.Tooltip("count:Q", format=",")],
        )
    )


def brand_chart(df: pd.DataFrame) -> alt.Chart:
    labels = df["brand"].tolist()
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("brand:N", title="Brand", scale=alt.Scale(domain=labels, range=palette_for(len(labels)))),
            tooltip=["brand", alt.Tooltip("count:Q", format=","), alt.Tooltip("share:Q", format=".2%")],
        )
    )


def login_trend_title(df: pd.DataFrame, day: Optional[date]) -> str:
    if df.empty or not (df["logins"] != 0).any():
        return "No data"
    return f"Customer Login Trends for {day.isoformat() if day else 'Selected Date'}"


def login_trend_chart(df: pd.DataFrame, day: Optional[date]) -> alt.Chart:
    return (
        alt.Chart(df, title=login_trend_title(df, day))
        .mark_line(point=True, color=TREND_COLOR)
        .encode(
            x=alt.X("label:O", title="Hour of Day", sort=[f"{h}:00" for h in HOURS]),
            y=alt.Y("logins:Q", title="Number of Logins", scale=alt.Scale(zero=True)),
            tooltip=["label", alt.Tooltip("logins:Q", format=",")],
        )
    )


# ---------- adapters ----------

@dataclass(frozen=True)
class SummaryAdapter:
    key: str
    dimension: str
    title: str
    failure_prefix: str
    empty_message: str
    model: Type[BaseModel]
    frame: Callable[[Sequence[Any]], pd.DataFrame]
    chart: Callable[[pd.DataFrame], alt.Chart]

    async def load(self, api: CustomerApi) -> ChartPanel:
        try:
            rows = await api.fetch_summary(self.dimension)
            df = self.frame(_validate(rows, self.model))
        except DashboardError as exc:
            logger.warning("%s summary failed: %s", self.dimension, exc)
            return ChartPanel(self.key, self.title, PanelStatus.ERROR, message=f"{self.failure_prefix}: {exc}")
        if df.empty:
            return ChartPanel(self.key, self.title, PanelStatus.EMPTY, data=df, message=self.empty_message)
        return ChartPanel(self.key, self.title, PanelStatus.READY, data=df, chart=self.chart(df))


GENDER = SummaryAdapter(
    key="gender",
    dimension="gender",
    title="Customers Gender Distribution",
    failure_prefix="Failed to load gender data",
    empty_message="No gender summary data available.",
    model=GenderCount,
    frame=gender_frame,
    chart=gender_chart,
)
GENDER_AGE = SummaryAdapter(
    key="gender_age",
    dimension="gender-age",
    title="Customers Gender Distribution by Age Group",
    failure_prefix="Failed to fetch gender-age summary",
    empty_message="No gender summary data available.",
    model=GenderAgeCount,
    frame=gender_age_frame,
    chart=gender_age_chart,
)
BRAND_DEVICE = SummaryAdapter(
    key="brand_device",
    dimension="brand-device",
    title="Customers Brand Device Distribution",
    failure_prefix="Failed to load brand device data",
    empty_message="No brand device summary data available.",
    model=BrandCount,
    frame=brand_frame,
    chart=brand_chart,
)
SUMMARY_ADAPTERS = (GENDER, GENDER_AGE, BRAND_DEVICE)


async def load_login_trends_panel(api: CustomerApi, day: Optional[date] = None) -> ChartPanel:
    """Hourly logins for `day`; without a day the server's suggested date is adopted."""
    title = "Login Trends"
    try:
        trends = await api.fetch_login_trends(day)
    except DashboardError as exc:
        logger.warning("login trends failed: %s", exc)
        return ChartPanel(LOGIN_TRENDS_KEY, title, PanelStatus.ERROR, message=f"Failed to fetch login trends: {exc}", as_of=day)
    shown = day if day is not None else trends.default_date
    df = login_trend_frame(trends.points)
    return ChartPanel(
        LOGIN_TRENDS_KEY,
        title,
        PanelStatus.READY,
        data=df,
        chart=login_trend_chart(df, shown),
        as_of=shown,
    )


PANEL_KEYS = tuple(a.key for a in SUMMARY_ADAPTERS) + (LOGIN_TRENDS_KEY,)


async def load_chart_panels(
    api: CustomerApi,
    login_date: Optional[date] = None,
    keys: Optional[Iterable[str]] = None,
) -> Dict[str, ChartPanel]:
    """Load the panels named in `keys` (all of them by default) concurrently."""
    wanted = set(PANEL_KEYS if keys is None else keys)
    loads = [a.load(api) for a in SUMMARY_ADAPTERS if a.key in wanted]
    if LOGIN_TRENDS_KEY in wanted:
        loads.append(load_login_trends_panel(api, login_date))
    panels = await asyncio.gather(*loads)
    return {p.key: p for p in panels}

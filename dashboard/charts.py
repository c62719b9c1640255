from __future__ import annotations

from typing import Any, Dict, List

import altair as alt

# Summary frames are small aggregates; inline them without the row cap.
alt.data_transformers.enable("default", max_rows=None)

PALETTE: List[str] = [
    "#FF6384",
    "#36A2EB",
    "#FFCE56",
    "#4BC0C0",
    "#9966FF",
    "#FF9F40",
    "#83FF83",
    "#C9CBCE",
    "#A3A2EB",
    "#FFD1DC",
]

GENDER_COLORS: Dict[str, str] = {"Male": "#36A2EB", "Female": "#FF6384"}
OTHER_GENDER_COLOR = "#FFCE56"
TREND_COLOR = "#008000"


def palette_for(n: int) -> List[str]:
    """First `n` palette colours, cycling when there are more categories than colours."""
    return [PALETTE[i % len(PALETTE)] for i in range(n)]


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Plain Vega-Lite dict for a chart, data inlined."""
    return chart.to_dict()

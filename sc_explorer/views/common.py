"""
Helpers shared by the plot and table panels.

Every point of a transmitting plot carries its identity in `customdata[0]`,
which is what the UI reads back from Plotly's `selectedData`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import pandas as pd
import plotly.graph_objects as go

if TYPE_CHECKING:
    from sc_explorer.core.engine import PanelScope

IDENTITY = "identity"
HIGHLIGHT = "highlighted"

PLOT_MARGIN = dict(l=40, r=40, t=40, b=40)


def attach_highlight(df: pd.DataFrame, scope: PanelScope) -> pd.DataFrame:
    """Add a boolean `highlighted` column when the scope carries a highlight."""
    if scope.highlight is None:
        return df
    df = df.copy()
    df[HIGHLIGHT] = df[IDENTITY].isin(scope.highlight)
    return df


def add_highlight_trace(fig: go.Figure, data: pd.DataFrame, x: str, y: str) -> go.Figure:
    """
    Overlay the highlighted points as open markers. Their customdata is the
    identity too, so a lasso over them selects the same items.
    """
    if HIGHLIGHT not in data.columns:
        return fig
    hl = data[data[HIGHLIGHT]]
    if hl.empty:
        return fig
    fig.add_trace(
        go.Scattergl(
            x=hl[x],
            y=hl[y],
            mode="markers",
            name="Received selection",
            marker=dict(symbol="circle-open", color="black", size=8),
            customdata=hl[[IDENTITY]].to_numpy(),
            hoverinfo="skip",
        )
    )
    return fig


def first_valid(candidates: Sequence[Any], valid) -> Optional[Any]:
    for candidate in candidates:
        if candidate in valid:
            return candidate
    return None


def is_categorical(series: pd.Series) -> bool:
    return not pd.api.types.is_numeric_dtype(series)


def limit(identities: Sequence[str], max_items: int) -> List[str]:
    return list(identities)[:max(int(max_items), 0)]


def table_columns(requested: Sequence[str], available: Sequence[str]) -> List[str]:
    """Requested columns that exist (all of them if none requested)."""
    if not requested:
        return list(available)
    present = set(available)
    return [c for c in requested if c in present]


def string_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-friendly records for Dash DataTable (identity first)."""
    out = df.copy()
    for col in out.columns:
        if is_categorical(out[col]):
            out[col] = out[col].astype(str)
    return out.to_dict("records")

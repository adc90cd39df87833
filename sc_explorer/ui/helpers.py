"""
Pure helpers between Dash component values and the ExplorerContext.
Kept free of Dash callbacks so they can be tested directly.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from sc_explorer.core.capabilities import (
    MultiSelectionConsumer,
    MultiSelectionTransmitter,
    SingleSelectionConsumer,
    SingleSelectionTransmitter,
)
from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.graph import would_create_cycle
from sc_explorer.core.selection import SelectionType
from sc_explorer.views.common import HIGHLIGHT, IDENTITY, string_records

SelectionEvent = Tuple[List[str], SelectionType, Optional[Dict[str, Any]]]


def selection_from_event(selected_data: Optional[Dict[str, Any]]) -> Optional[SelectionEvent]:
    """
    Translate Plotly `selectedData` into (identities, type, payload).

    Returns None when there is no event at all (initial fire, relayout),
    and an empty identity list when the user selected nothing.
    """
    if selected_data is None:
        return None

    identities: List[str] = []
    for point in selected_data.get("points") or []:
        custom = point.get("customdata")
        if isinstance(custom, (list, tuple)) and custom:
            identities.append(str(custom[0]))
        elif custom is not None:
            identities.append(str(custom))

    if "range" in selected_data:
        return identities, SelectionType.BRUSH, {"range": selected_data["range"]}
    if "lassoPoints" in selected_data:
        return identities, SelectionType.LASSO, {"lassoPoints": selected_data["lassoPoints"]}
    return identities, SelectionType.LASSO, None


def source_options(ctx: ExplorerContext, panel_id: str) -> List[Dict[str, Any]]:
    """Transmitters `panel_id` could receive multiple selections from."""
    panel = ctx.panel(panel_id)
    if not isinstance(panel, MultiSelectionConsumer):
        return []
    options = []
    for other_id in ctx.panel_ids():
        other = ctx.panel(other_id)
        if other_id == panel_id or not isinstance(other, MultiSelectionTransmitter):
            continue
        if other.transmit_dimension is not panel.consume_dimension:
            continue
        options.append(
            {
                "label": other.label_for(ctx.config(other_id)),
                "value": other_id,
                "disabled": would_create_cycle(ctx.store, panel_id, other_id),
            }
        )
    return options


def single_source_options(ctx: ExplorerContext, panel_id: str) -> List[Dict[str, Any]]:
    panel = ctx.panel(panel_id)
    if not isinstance(panel, SingleSelectionConsumer):
        return []
    return [
        {"label": ctx.panel(other_id).label_for(ctx.config(other_id)), "value": other_id}
        for other_id in ctx.panel_ids()
        if other_id != panel_id
        and isinstance(ctx.panel(other_id), SingleSelectionTransmitter)
        and ctx.panel(other_id).single_transmit_dimension is panel.single_consume_dimension
    ]


def panel_summary(ctx: ExplorerContext, panel_id: str) -> str:
    """One-line status shown under each panel."""
    cfg = ctx.config(panel_id)
    panel = ctx.panel(panel_id)
    output = ctx.output(panel_id)
    parts: List[str] = []

    if output.error:
        return f"Render failed: {output.error}"

    if output.scope is not None:
        total = len(panel.universe())
        shown = len(output.scope.universe)
        parts.append(f"{shown} of {total} shown" if output.scope.restricted else f"{total} items")
        if output.scope.highlight is not None:
            parts.append(f"{len(output.scope.highlight)} highlighted")

    if isinstance(panel, MultiSelectionTransmitter):
        parts.append(f"{len(output.selected)} selected")
        if cfg.saved_selections:
            parts.append(f"{len(cfg.saved_selections)} saved")

    if cfg.selection_source is not None:
        parts.append(f"receiving from {cfg.selection_source}")
    return "; ".join(parts)


def table_records(data: Any) -> List[Dict[str, Any]]:
    """DataTable records with `id` = identity, so selected_row_ids are identities."""
    if not isinstance(data, pd.DataFrame) or data.empty:
        return []
    df = data.drop(columns=[HIGHLIGHT], errors="ignore").copy()
    df["id"] = df[IDENTITY]
    return string_records(df)


def table_columns(data: Any) -> List[Dict[str, str]]:
    if not isinstance(data, pd.DataFrame):
        return []
    return [{"name": str(c), "id": str(c)} for c in data.columns if c != HIGHLIGHT]


def parse_parameter_value(text: Optional[str]) -> Any:
    """JSON when it parses (numbers, booleans, lists, null), else the raw string."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text


def editable_parameters(ctx: ExplorerContext, panel_id: str) -> List[str]:
    return sorted(ctx.config(panel_id).parameters)


def table_selection(ctx: ExplorerContext, panel_id: str) -> Tuple[List[int], List[str]]:
    """
    DataTable `selected_rows` and `selected_row_ids` matching the store.

    Checkboxes follow `selected_rows` (positions in the current records),
    so both are rebuilt whenever the table's selection or rows change.
    """
    active = ctx.config(panel_id).active_selection
    if active is None:
        return [], []
    chosen = set(active.identities)
    ids = [record["id"] for record in table_records(ctx.output(panel_id).data)]
    return [i for i, identity in enumerate(ids) if identity in chosen], list(active.identities)

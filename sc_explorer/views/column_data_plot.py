from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from sc_explorer.core.base_panel import BasePanel
from sc_explorer.core.capabilities import ColumnConsumer, ColumnTransmitter, FigureExport
from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.validation.errors import ValidationIssue
from sc_explorer.views.common import (
    IDENTITY,
    PLOT_MARGIN,
    add_highlight_trace,
    attach_highlight,
    first_valid,
    is_categorical,
)

JITTER_WIDTH = 0.35


def jitter(codes: np.ndarray, seed: int = 0) -> np.ndarray:
    """Deterministic horizontal jitter around integer category positions."""
    rng = np.random.default_rng(seed)
    return codes + rng.uniform(-JITTER_WIDTH, JITTER_WIDTH, size=len(codes))


class ColumnDataPlot(ColumnTransmitter, ColumnConsumer, FigureExport, BasePanel):
    """
    Cell metadata plot.

    - y: a numeric column-data field (required)
    - x: optional column-data field; categorical x gives one jittered strip per level
    - colour: optional column-data field
    """

    kind = "ColumnDataPlot"
    label = "Column data plot"
    dimension = SelectionDimension.COLUMN

    defaults = {
        "y_field": None,
        "x_field": None,
        "colour_by_field": None,
        "point_size": 5,
    }
    protected = frozenset({"x_field", "y_field"})

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        for name in ("y_field", "x_field", "colour_by_field"):
            value = config.parameters.get(name)
            if value is not None and not isinstance(value, str):
                issues.append(ValidationIssue("PANEL_FIELD_TYPE", f"{name} must be a field name or null."))
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        params = config.parameters
        numeric = self.dataset.numeric_column_fields()
        valid_fields = self.dataset.valid_sets().column_fields

        if params.get("y_field") not in numeric:
            fixes["y_field"] = first_valid(numeric, numeric)
        for name in ("x_field", "colour_by_field"):
            if params.get(name) is not None and params[name] not in valid_fields:
                fixes[name] = None
        return fixes

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        params = config.parameters
        y_field = params.get("y_field")
        if y_field is None or not scope.universe:
            return pd.DataFrame(columns=[IDENTITY, "x", "y"])

        cells = list(scope.universe)
        obs = self.dataset.column_data.loc[cells]
        df = pd.DataFrame({IDENTITY: cells, "y": obs[y_field].to_numpy()})

        x_field = params.get("x_field")
        if x_field is None:
            df["group"] = "all"
            df["x"] = jitter(np.zeros(len(df)))
        elif is_categorical(obs[x_field]):
            groups = pd.Categorical(obs[x_field].astype(str))
            df["group"] = np.asarray(groups)
            df["x"] = jitter(groups.codes.astype(float))
        else:
            df["x"] = obs[x_field].to_numpy()

        if params.get("colour_by_field"):
            df["colour"] = obs[params["colour_by_field"]].to_numpy()

        return attach_highlight(df, scope)

    def render_figure(self, data: pd.DataFrame, config: PanelConfig) -> go.Figure:
        if data is None or data.empty:
            return self.empty_figure(f"{self.label_for(config)}: no cells to show")

        params = config.parameters
        colour = "colour" if "colour" in data.columns else None
        hover = {"group": True} if "group" in data.columns else None

        fig = px.scatter(
            data,
            x="x",
            y="y",
            color=colour,
            custom_data=[IDENTITY],
            hover_data=hover,
            labels={
                "x": params.get("x_field") or "",
                "y": params["y_field"],
                "colour": params.get("colour_by_field") or "",
            },
            title=self.label_for(config),
        )
        fig.update_traces(marker=dict(size=params.get("point_size", 5)))

        if "group" in data.columns:
            # Strip plot: label the integer positions with their category
            levels = (
                data.drop_duplicates("group")
                .assign(pos=lambda d: d["x"].round())
                .sort_values("pos")
            )
            fig.update_xaxes(tickmode="array", tickvals=levels["pos"].tolist(), ticktext=levels["group"].tolist())

        add_highlight_trace(fig, data, "x", "y")
        fig.update_layout(dragmode="lasso", margin=PLOT_MARGIN, uirevision=config.id)
        return fig

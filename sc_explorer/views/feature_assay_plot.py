from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from sc_explorer.core.base_panel import BasePanel
from sc_explorer.core.capabilities import ColumnConsumer, ColumnTransmitter, FigureExport, SingleSelectionConsumer
from sc_explorer.core.dataset import DEFAULT_ASSAY
from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.validation.errors import ValidationIssue
from sc_explorer.views.column_data_plot import jitter
from sc_explorer.views.common import IDENTITY, PLOT_MARGIN, add_highlight_trace, attach_highlight, is_categorical


class FeatureAssayPlot(ColumnTransmitter, ColumnConsumer, SingleSelectionConsumer, FigureExport, BasePanel):
    """
    Expression of one feature across cells.

    - y: assay values of `feature`
    - x: optional column-data field (categorical -> jittered strips)
    - the feature follows the single selection of a row table when wired
    """

    kind = "FeatureAssayPlot"
    label = "Feature assay plot"
    dimension = SelectionDimension.COLUMN

    defaults = {
        "feature": None,
        "assay": DEFAULT_ASSAY,
        "x_field": None,
        "colour_by_field": None,
        "point_size": 5,
    }
    protected = frozenset({"feature", "assay", "x_field"})

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        if not isinstance(config.parameters.get("assay"), str):
            issues.append(ValidationIssue("PANEL_ASSAY", "assay must be a string."))
        feature = config.parameters.get("feature")
        if feature is not None and not isinstance(feature, str):
            issues.append(ValidationIssue("PANEL_FEATURE", "feature must be a feature name or null."))
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        params = config.parameters
        valid = self.dataset.valid_sets()

        if params.get("feature") not in valid.rows:
            names = self.dataset.row_names()
            fixes["feature"] = names[0] if names else None
        if params.get("assay") not in valid.assays:
            fixes["assay"] = DEFAULT_ASSAY
        for name in ("x_field", "colour_by_field"):
            if params.get(name) is not None and params[name] not in valid.column_fields:
                fixes[name] = None
        return fixes

    def on_single_selection(self, config: PanelConfig, identity: str) -> Dict[str, Any]:
        return {"feature": identity}

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        params = config.parameters
        feature = params.get("feature")
        if feature is None or not scope.universe:
            return pd.DataFrame(columns=[IDENTITY, "x", "y"])

        cells = list(scope.universe)
        expr = self.dataset.expression_matrix([feature], params.get("assay", DEFAULT_ASSAY), columns=cells)
        df = pd.DataFrame({IDENTITY: cells, "y": expr[feature].to_numpy()})

        obs = self.dataset.column_data.loc[cells]
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
        fig = px.scatter(
            data,
            x="x",
            y="y",
            color="colour" if "colour" in data.columns else None,
            custom_data=[IDENTITY],
            hover_data={"group": True} if "group" in data.columns else None,
            labels={
                "x": params.get("x_field") or "",
                "y": f"{params['feature']} ({params.get('assay', DEFAULT_ASSAY)})",
                "colour": params.get("colour_by_field") or "",
            },
            title=f"{self.label_for(config)}: {params['feature']}",
        )
        fig.update_traces(marker=dict(size=params.get("point_size", 5)))
        if "group" in data.columns:
            levels = data.drop_duplicates("group").assign(pos=lambda d: d["x"].round()).sort_values("pos")
            fig.update_xaxes(tickmode="array", tickvals=levels["pos"].tolist(), ticktext=levels["group"].tolist())

        add_highlight_trace(fig, data, "x", "y")
        fig.update_layout(dragmode="lasso", margin=PLOT_MARGIN, uirevision=config.id)
        return fig

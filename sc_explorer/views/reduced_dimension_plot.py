from __future__ import annotations

from typing import Any, Dict, List

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
from sc_explorer.views.common import IDENTITY, PLOT_MARGIN, add_highlight_trace, attach_highlight

COLOUR_MODES = ("none", "column_data", "feature")


class ReducedDimensionPlot(ColumnTransmitter, ColumnConsumer, SingleSelectionConsumer, FigureExport, BasePanel):
    """
    UMAP/TSNE/PCA /.... scatter of cells

    - X/Y from two dimensions of an `obsm` embedding
    - Colour by a column-data field or by the expression of one feature
    - Receives the feature to colour by from a row table's single selection
    """

    kind = "ReducedDimensionPlot"
    label = "Reduced dimension plot"
    dimension = SelectionDimension.COLUMN

    defaults = {
        "embedding": None,
        "dim_x": 1,
        "dim_y": 2,
        "colour_by": "none",
        "colour_by_field": None,
        "colour_by_feature": None,
        "assay": DEFAULT_ASSAY,
        "point_size": 4,
    }
    protected = frozenset({"embedding", "dim_x", "dim_y"})

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        params = config.parameters
        for name in ("dim_x", "dim_y"):
            value = params.get(name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                issues.append(ValidationIssue("PANEL_DIMENSION_INDEX", f"{name} must be an int >= 1."))
        if params.get("colour_by") not in COLOUR_MODES:
            issues.append(ValidationIssue("PANEL_COLOUR_BY", f"colour_by must be one of {list(COLOUR_MODES)}."))
        size = params.get("point_size")
        if isinstance(size, bool) or not isinstance(size, (int, float)) or size <= 0:
            issues.append(ValidationIssue("PANEL_POINT_SIZE", "point_size must be a positive number."))
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        params = config.parameters
        valid = self.dataset.valid_sets()

        embedding = params.get("embedding")
        if embedding not in valid.embeddings:
            embedding = self.dataset.embedding_key if self.dataset.embedding_key in valid.embeddings else None
            if embedding is None and valid.embeddings:
                embedding = self.dataset.embedding_names()[0]
            fixes["embedding"] = embedding

        if embedding is not None:
            width = self.dataset.embedding_width(embedding)
            if params.get("dim_x", 1) > width:
                fixes["dim_x"] = 1
            if params.get("dim_y", 2) > width:
                fixes["dim_y"] = min(2, width)

        if params.get("colour_by_field") is not None and params["colour_by_field"] not in valid.column_fields:
            fixes["colour_by_field"] = None
        if params.get("colour_by_feature") is not None and params["colour_by_feature"] not in valid.rows:
            fixes["colour_by_feature"] = None
        if params.get("assay") not in valid.assays:
            fixes["assay"] = DEFAULT_ASSAY
        return fixes

    def on_single_selection(self, config: PanelConfig, identity: str) -> Dict[str, Any]:
        return {"colour_by": "feature", "colour_by_feature": identity}

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        params = config.parameters
        embedding = params.get("embedding")
        if embedding is None or not scope.universe:
            return pd.DataFrame(columns=[IDENTITY, "x", "y"])

        emb = self.dataset.get_embedding(embedding)
        cells = list(scope.universe)
        df = pd.DataFrame(
            {
                IDENTITY: cells,
                "x": emb.loc[cells, f"dim{params['dim_x']}"].to_numpy(),
                "y": emb.loc[cells, f"dim{params['dim_y']}"].to_numpy(),
            }
        )

        colour_by = params.get("colour_by")
        if colour_by == "column_data" and params.get("colour_by_field"):
            field = params["colour_by_field"]
            df["colour"] = self.dataset.column_data.loc[cells, field].to_numpy()
        elif colour_by == "feature" and params.get("colour_by_feature"):
            expr = self.dataset.expression_matrix(
                [params["colour_by_feature"]], params.get("assay", DEFAULT_ASSAY), columns=cells
            )
            if not expr.empty and expr.shape[1]:
                df["colour"] = expr.iloc[:, 0].to_numpy()

        return attach_highlight(df, scope)

    def colour_label(self, config: PanelConfig) -> str:
        params = config.parameters
        if params.get("colour_by") == "feature":
            return str(params.get("colour_by_feature"))
        return str(params.get("colour_by_field"))

    def render_figure(self, data: pd.DataFrame, config: PanelConfig) -> go.Figure:
        if data is None or data.empty:
            return self.empty_figure(f"{self.label_for(config)}: no cells to show")

        params = config.parameters
        colour = "colour" if "colour" in data.columns else None
        fig = px.scatter(
            data,
            x="x",
            y="y",
            color=colour,
            custom_data=[IDENTITY],
            labels={
                "x": f"{params['embedding']} {params['dim_x']}",
                "y": f"{params['embedding']} {params['dim_y']}",
                "colour": self.colour_label(config),
            },
            title=self.label_for(config),
        )
        fig.update_traces(marker=dict(size=params.get("point_size", 4)))
        add_highlight_trace(fig, data, "x", "y")
        fig.update_layout(dragmode="lasso", margin=PLOT_MARGIN, uirevision=config.id)
        return fig

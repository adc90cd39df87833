from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import scipy.sparse as sp

from sc_explorer.core.base_panel import BasePanel
from sc_explorer.core.capabilities import FigureExport, RowConsumer
from sc_explorer.core.dataset import DEFAULT_ASSAY
from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.validation.errors import ValidationIssue
from sc_explorer.views.common import PLOT_MARGIN, first_valid, limit


class FeatureGroupPanel(RowConsumer, FigureExport, BasePanel):
    """
    Shared behaviour of panels summarising a set of features per cell group.

    Features come from the `features` parameter, or from the received row
    selection when the panel is restricted by its source (capped at
    `max_features`). Cells are grouped by a categorical column-data field.
    """

    dimension = SelectionDimension.ROW

    defaults = {
        "features": [],
        "assay": DEFAULT_ASSAY,
        "group_by": None,
        "max_features": 50,
    }
    protected = frozenset({"features", "assay"})

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        params = config.parameters
        features = params.get("features")
        if not isinstance(features, list) or not all(isinstance(f, str) for f in features):
            issues.append(ValidationIssue("PANEL_FEATURES", "features must be a list of feature names."))
        max_features = params.get("max_features")
        if isinstance(max_features, bool) or not isinstance(max_features, int) or max_features < 1:
            issues.append(ValidationIssue("PANEL_MAX_FEATURES", "max_features must be an int >= 1."))
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        params = config.parameters
        valid = self.dataset.valid_sets()

        features = params.get("features") or []
        kept = [f for f in features if f in valid.rows]
        if not kept:
            kept = limit(self.dataset.row_names(), min(5, params.get("max_features", 50)))
        if kept != features:
            fixes["features"] = kept

        if params.get("assay") not in valid.assays:
            fixes["assay"] = DEFAULT_ASSAY

        categorical = self.dataset.categorical_column_fields()
        if params.get("group_by") not in categorical:
            fixes["group_by"] = first_valid(categorical, categorical)
        return fixes

    def features_for(self, config: PanelConfig, scope: PanelScope) -> List[str]:
        max_features = config.parameters.get("max_features", 50)
        if scope.restricted:
            return limit(scope.universe, max_features)
        universe = set(scope.universe)
        return limit([f for f in config.parameters.get("features") or [] if f in universe], max_features)

    def cell_groups(self, config: PanelConfig) -> pd.Series:
        obs = self.dataset.column_data
        group_by = config.parameters.get("group_by")
        if group_by and group_by in obs.columns:
            return obs[group_by].astype(str)
        return pd.Series("all", index=obs.index)


class HeatmapPlot(FeatureGroupPanel):
    """
    Heatmap of average expression per cell group for a set of features.
    """

    kind = "HeatmapPlot"
    label = "Heatmap"

    defaults = {
        "scale": "none",
        "colour_scale": "viridis",
    }

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        if config.parameters.get("scale") not in ("none", "row"):
            issues.append(ValidationIssue("PANEL_SCALE", "scale must be 'none' or 'row'."))
        return issues

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        features = self.features_for(config, scope)
        if not features:
            return pd.DataFrame()

        # cells × features expression matrix (dense, cached)
        expr_df = self.dataset.expression_matrix(features, config.parameters.get("assay", DEFAULT_ASSAY))
        if expr_df.empty or expr_df.shape[1] == 0:
            return pd.DataFrame()

        expr_df = expr_df.copy()
        expr_df["group"] = self.cell_groups(config).loc[expr_df.index].to_numpy()

        # Long-form: group, feature, expression
        long_df = (
            expr_df
            .melt(id_vars="group", var_name="feature", value_name="expression")
            .groupby(["group", "feature"], as_index=False)
            .agg(mean_expression=("expression", "mean"))
        )
        long_df["value"] = np.log1p(long_df["mean_expression"])

        if config.parameters.get("scale") == "row":
            by_feature = long_df.groupby("feature")["value"]
            long_df["value"] = long_df["value"] - by_feature.transform("mean")

        # Keep feature order as received, only those that survived
        present = set(long_df["feature"])
        long_df["feature"] = pd.Categorical(
            long_df["feature"],
            categories=[f for f in features if f in present],
            ordered=True,
        )
        long_df["group"] = pd.Categorical(
            long_df["group"],
            categories=sorted(long_df["group"].unique()),
            ordered=True,
        )
        return long_df.sort_values(["feature", "group"]).reset_index(drop=True)

    def render_figure(self, data: pd.DataFrame, config: PanelConfig) -> go.Figure:
        if data is None or data.empty:
            return self.empty_figure(f"{self.label_for(config)}: no features to show")

        # Pivot to matrix: features × groups
        pivot = data.pivot(index="feature", columns="group", values="value")
        colour_label = "log1p(mean) - row mean" if config.parameters.get("scale") == "row" else "log1p(mean)"

        fig = px.imshow(
            pivot,
            color_continuous_scale=config.parameters.get("colour_scale", "viridis"),
            aspect="auto",
            labels=dict(x="Group", y="Feature", color=colour_label),
            title=self.label_for(config),
        )
        fig.update_xaxes(side="top")
        fig.update_layout(margin=PLOT_MARGIN)
        return fig


class DotPlot(FeatureGroupPanel):
    """
    Dot plot:
    - x-axis: features
    - y-axis: cell group
    - dot-size: % of cells expressing the feature in that group
    - dot-color: relative mean expression in that group
    """

    kind = "DotPlot"
    label = "Dot plot"

    defaults = {"max_features": 30}

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        features = self.features_for(config, scope)
        adata = self.dataset.adata
        if adata.n_obs == 0 or not features:
            return pd.DataFrame()

        # --- expression matrix (cells x features) ---
        var_idx = adata.var_names.get_indexer(features)
        assay = config.parameters.get("assay", DEFAULT_ASSAY)
        matrix = adata.X if assay == DEFAULT_ASSAY else adata.layers[assay]
        X = matrix[:, var_idx]
        if sp.issparse(X):
            X = X.tocsr()
        else:
            X = np.asarray(X)

        # Categorical groups so we can index them efficiently
        groups = pd.Categorical(self.cell_groups(config).to_numpy())
        group_codes = groups.codes
        group_names = [str(g) for g in groups.categories]
        n_groups = len(group_names)
        n_features = len(features)

        # Pre-allocate matrices: group x feature
        mean_expr = np.zeros((n_groups, n_features), dtype=float)
        pct_expr = np.zeros((n_groups, n_features), dtype=float)

        for g_idx in range(n_groups):
            mask = (group_codes == g_idx)
            if not np.any(mask):
                continue

            Xg = X[mask]
            if sp.issparse(Xg):
                # sums and non-zero counts per feature
                sums = np.asarray(Xg.sum(axis=0)).ravel()
                nonzero = np.asarray((Xg > 0).sum(axis=0)).ravel()
            else:
                sums = Xg.sum(axis=0)
                nonzero = (Xg > 0).sum(axis=0)

            n_cells = mask.sum()
            mean_expr[g_idx, :] = sums / n_cells
            pct_expr[g_idx, :] = (nonzero / n_cells) * 100.0

        # Tidy DataFrame: one row per (group, feature)
        df = pd.DataFrame(
            {
                "group": np.repeat(group_names, n_features),
                "feature": np.tile(features, n_groups),
                "mean_expression": mean_expr.ravel(),
                "pct_expressed": pct_expr.ravel(),
            }
        )

        # Normalise expression for colouring
        df["max_mean_expression"] = df.groupby("feature")["mean_expression"].transform("max")
        df["rel_mean_expression"] = np.where(
            df["max_mean_expression"] > 0,
            df["mean_expression"] / df["max_mean_expression"],
            0.0,
        )

        df["feature"] = pd.Categorical(df["feature"], categories=features, ordered=True)
        df["group"] = pd.Categorical(df["group"], categories=group_names, ordered=True)
        return df.sort_values(["feature", "group"]).reset_index(drop=True)

    def render_figure(self, data: pd.DataFrame, config: PanelConfig) -> go.Figure:
        if data is None or data.empty:
            return self.empty_figure(f"{self.label_for(config)}: select at least one feature to plot")

        fig = px.scatter(
            data,
            x="feature",
            y="group",
            size="pct_expressed",
            color="rel_mean_expression",
            size_max=20,
            color_continuous_scale="viridis",
            hover_data={"pct_expressed": True, "mean_expression": True},
            title=self.label_for(config),
        )
        fig.update_layout(
            margin=PLOT_MARGIN,
            xaxis_title="Feature",
            yaxis_title=config.parameters.get("group_by") or "Group",
            coloraxis_colorbar=dict(title="Relative mean expression"),
        )
        fig.update_xaxes(tickangle=-45)
        return fig

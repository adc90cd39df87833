from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
import plotly.graph_objects as go

from sc_explorer.core.base_panel import BasePanel
from sc_explorer.core.capabilities import (
    ColumnConsumer,
    ColumnTransmitter,
    RowConsumer,
    RowTransmitter,
    SingleColumnTransmitter,
    SingleRowTransmitter,
    TableExport,
)
from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.services.annotation import safe_annotate
from sc_explorer.validation.errors import ValidationIssue
from sc_explorer.views.common import HIGHLIGHT, IDENTITY, PLOT_MARGIN, attach_highlight, table_columns


class MetadataTable(BasePanel):
    """
    Shared behaviour of the row and column metadata tables.

    - `columns`: metadata fields to show (empty = all)
    - `search`: case-insensitive substring filter over identity and string fields
    - `page_size`: rows per page in the UI
    """

    defaults = {
        "columns": [],
        "search": "",
        "page_size": 10,
    }

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        params = config.parameters
        columns = params.get("columns")
        if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
            issues.append(ValidationIssue("PANEL_COLUMNS", "columns must be a list of field names."))
        if not isinstance(params.get("search"), str):
            issues.append(ValidationIssue("PANEL_SEARCH", "search must be a string."))
        page_size = params.get("page_size")
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            issues.append(ValidationIssue("PANEL_PAGE_SIZE", "page_size must be an int >= 1."))
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        requested = config.parameters.get("columns") or []
        kept = [c for c in requested if c in set(self.dataset.fields(self.dimension))]
        if kept != requested:
            fixes["columns"] = kept
        return fixes

    def compute_data(self, config: PanelConfig, scope: PanelScope) -> pd.DataFrame:
        params = config.parameters
        meta = self.dataset.metadata(self.dimension)
        columns = table_columns(params.get("columns") or [], [str(c) for c in meta.columns])

        identities = list(scope.universe)
        df = meta.loc[identities, columns].copy() if identities else meta.iloc[0:0][columns].copy()
        df.insert(0, IDENTITY, identities)
        df = df.reset_index(drop=True)

        search = (params.get("search") or "").strip().lower()
        if search:
            hay = df.select_dtypes(exclude="number").astype(str)
            mask = hay.apply(lambda col: col.str.lower().str.contains(search, regex=False)).any(axis=1)
            df = df[mask].reset_index(drop=True)

        return attach_highlight(df, scope)

    def render_figure(self, data: pd.DataFrame, config: PanelConfig) -> go.Figure:
        """Static table figure, used for exports; the UI renders a DataTable."""
        if data is None or data.empty:
            return self.empty_figure(f"{self.label_for(config)}: no entries")

        shown = data.drop(columns=[HIGHLIGHT], errors="ignore")
        fig = go.Figure(
            data=[
                go.Table(
                    header=dict(values=list(shown.columns)),
                    cells=dict(values=[shown[c].astype(str).tolist() for c in shown.columns]),
                )
            ]
        )
        fig.update_layout(title=self.label_for(config), margin=PLOT_MARGIN)
        return fig


class RowDataTable(RowTransmitter, RowConsumer, SingleRowTransmitter, TableExport, MetadataTable):
    """
    Table of features (`var`).

    Multi-row selection transmits a row selection; the clicked row is the
    single selection other panels (colour-by-feature, feature assay) follow.
    The selected feature's annotation is shown as supplementary output.
    """

    kind = "RowDataTable"
    label = "Row data table"
    dimension = SelectionDimension.ROW

    def supplementary(self, config: PanelConfig) -> Optional[str]:
        return safe_annotate(self.annotator, self.single_selection(config))


class ColumnDataTable(ColumnTransmitter, ColumnConsumer, SingleColumnTransmitter, TableExport, MetadataTable):
    """Table of cells (`obs`)."""

    kind = "ColumnDataTable"
    label = "Column data table"
    dimension = SelectionDimension.COLUMN

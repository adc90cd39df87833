from sc_explorer.core.panel_registry import PanelRegistry

from .column_data_plot import ColumnDataPlot
from .feature_assay_plot import FeatureAssayPlot
from .feature_panels import DotPlot, HeatmapPlot
from .reduced_dimension_plot import ReducedDimensionPlot
from .tables import ColumnDataTable, RowDataTable

PANEL_CLASSES = [
    ReducedDimensionPlot,
    ColumnDataPlot,
    FeatureAssayPlot,
    RowDataTable,
    ColumnDataTable,
    HeatmapPlot,
    DotPlot,
]


def build_panel_registry() -> PanelRegistry:
    """Registry with every built-in panel kind, in "add panel" menu order."""
    registry = PanelRegistry()
    for panel_cls in PANEL_CLASSES:
        registry.register(panel_cls)
    return registry


__all__ = [
    "ReducedDimensionPlot",
    "ColumnDataPlot",
    "FeatureAssayPlot",
    "RowDataTable",
    "ColumnDataTable",
    "HeatmapPlot",
    "DotPlot",
    "PANEL_CLASSES",
    "build_panel_registry",
]

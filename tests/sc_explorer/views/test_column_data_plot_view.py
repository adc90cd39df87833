import numpy as np

from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.views.column_data_plot import ColumnDataPlot, jitter

ALL_CELLS = ("c1", "c2", "c3", "c4", "c5", "c6")


def _config(panel, **params) -> PanelConfig:
    values = panel.default_parameters()
    values.update(params)
    cfg = PanelConfig(id="ColumnDataPlot1", kind=panel.kind, parameters=values)
    cfg.parameters.update(panel.refine(cfg))
    return cfg


def test_refine_picks_numeric_y(dataset):
    panel = ColumnDataPlot(dataset)
    cfg = _config(panel, y_field="cluster", x_field="missing")
    assert cfg.parameters["y_field"] == "n_counts"
    assert cfg.parameters["x_field"] is None


def test_jitter_is_deterministic():
    codes = np.array([0.0, 1.0, 2.0])
    assert np.allclose(jitter(codes), jitter(codes))
    assert np.all(np.abs(jitter(codes) - codes) <= 0.35)


def test_categorical_x_gives_strips(dataset):
    panel = ColumnDataPlot(dataset)
    cfg = _config(panel, x_field="cluster")

    df = panel.compute_data(cfg, PanelScope(universe=ALL_CELLS, highlight=frozenset({"c5", "c6"})))

    assert list(df["group"]) == ["A", "A", "B", "B", "C", "C"]
    assert list(df["y"]) == [10.0, 20.0, 30.0, 40.0, 50.0, 60.0]
    assert list(df["highlighted"]) == [False, False, False, False, True, True]
    assert df["x"].round().tolist() == [0.0, 0.0, 1.0, 1.0, 2.0, 2.0]

    fig = panel.render_figure(df, cfg)
    assert list(fig.layout.xaxis.ticktext) == ["A", "B", "C"]


def test_numeric_x(dataset):
    panel = ColumnDataPlot(dataset)
    cfg = _config(panel, x_field="n_counts")
    df = panel.compute_data(cfg, PanelScope(universe=("c1", "c2")))
    assert list(df["x"]) == [10.0, 20.0]
    assert "group" not in df.columns

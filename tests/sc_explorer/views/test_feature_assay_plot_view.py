from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.views.feature_assay_plot import FeatureAssayPlot


def _config(panel, **params) -> PanelConfig:
    values = panel.default_parameters()
    values.update(params)
    cfg = PanelConfig(id="FeatureAssayPlot1", kind=panel.kind, parameters=values)
    cfg.parameters.update(panel.refine(cfg))
    return cfg


def test_refine_defaults_to_first_feature(dataset):
    panel = FeatureAssayPlot(dataset)
    cfg = _config(panel, feature="missing", x_field="nope")
    assert cfg.parameters["feature"] == "g1"
    assert cfg.parameters["x_field"] is None


def test_compute_expression_per_cell(dataset):
    panel = FeatureAssayPlot(dataset)
    cfg = _config(panel, feature="g3", assay="counts", x_field="cluster")

    df = panel.compute_data(cfg, PanelScope(universe=("c1", "c2", "c5"), restricted=True))

    assert list(df["identity"]) == ["c1", "c2", "c5"]
    assert list(df["y"]) == [2.0, 4.0, 6.0]
    assert list(df["group"]) == ["A", "A", "C"]


def test_single_selection_sets_feature(dataset):
    panel = FeatureAssayPlot(dataset)
    cfg = _config(panel)
    assert panel.on_single_selection(cfg, "g2") == {"feature": "g2"}


def test_render_titles_feature(dataset):
    panel = FeatureAssayPlot(dataset)
    cfg = _config(panel, feature="g4")
    df = panel.compute_data(cfg, PanelScope(universe=("c1", "c2", "c3", "c4", "c5", "c6")))
    fig = panel.render_figure(df, cfg)
    assert "g4" in fig.layout.title.text
    assert len(fig.data[0].customdata) == 6

from sc_explorer.core.engine import PanelScope
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.services.annotation import build_annotator
from sc_explorer.views.tables import ColumnDataTable, RowDataTable

ALL_CELLS = ("c1", "c2", "c3", "c4", "c5", "c6")


def _config(panel, **params) -> PanelConfig:
    values = panel.default_parameters()
    values.update(params)
    cfg = PanelConfig(id=f"{panel.kind}1", kind=panel.kind, parameters=values)
    cfg.parameters.update(panel.refine(cfg))
    return cfg


def test_refine_drops_unknown_columns(dataset):
    panel = ColumnDataTable(dataset)
    cfg = _config(panel, columns=["cluster", "bogus"])
    assert cfg.parameters["columns"] == ["cluster"]


def test_compute_puts_identity_first(dataset):
    panel = ColumnDataTable(dataset)
    cfg = _config(panel)
    df = panel.compute_data(cfg, PanelScope(universe=ALL_CELLS))
    assert list(df.columns) == ["identity", "cluster", "n_counts"]
    assert len(df) == 6


def test_search_filters_text_fields(dataset):
    panel = ColumnDataTable(dataset)
    cfg = _config(panel, search="b")
    df = panel.compute_data(cfg, PanelScope(universe=ALL_CELLS))
    assert list(df["identity"]) == ["c3", "c4"]


def test_highlight_marks_received_rows(dataset):
    panel = RowDataTable(dataset)
    cfg = _config(panel)
    df = panel.compute_data(cfg, PanelScope(universe=("g1", "g2", "g3", "g4"), highlight=frozenset({"g2"})))
    assert list(df["highlighted"]) == [False, True, False, False]

    fig = panel.render_figure(df, cfg)
    assert list(fig.data[0].header.values) == ["identity", "description"]


def test_refine_clears_unknown_single_selection(dataset):
    panel = RowDataTable(dataset)
    cfg = _config(panel, selected="c1")
    assert cfg.parameters["selected"] is None


def test_row_table_annotates_selected_feature(dataset):
    panel = RowDataTable(dataset, annotator=build_annotator(dataset))
    cfg = _config(panel, selected="g1")
    assert panel.supplementary(cfg) == "first gene"

    cfg.parameters["selected"] = None
    assert panel.supplementary(cfg) is None


def test_table_export_is_csv(dataset):
    panel = ColumnDataTable(dataset)
    cfg = _config(panel, columns=["n_counts"])
    df = panel.compute_data(cfg, PanelScope(universe=("c1",)))
    content = panel.export(df, panel.render_figure(df, cfg)).decode("utf-8")
    assert content.splitlines() == [",identity,n_counts", "0,c1,10.0"]

import pytest

from sc_explorer.core.exceptions import PanelNotFoundError, SelectionError
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import Selection, SelectionDimension, SelectionType
from sc_explorer.core.store import SINGLE_SOURCE_PARAM, InstanceStore


def _store(*configs: PanelConfig) -> InstanceStore:
    store = InstanceStore()
    for cfg in configs:
        store.add(cfg)
    return store


def test_next_id_counts_up_from_highest_suffix():
    store = _store(
        PanelConfig(id="ColumnDataPlot1", kind="ColumnDataPlot"),
        PanelConfig(id="ColumnDataPlot4", kind="ColumnDataPlot"),
    )
    assert store.next_id("ColumnDataPlot") == "ColumnDataPlot5"
    assert store.next_id("HeatmapPlot") == "HeatmapPlot1"


def test_add_rejects_duplicate_id_and_get_unknown_raises():
    store = _store(PanelConfig(id="A", kind="K"))
    with pytest.raises(ValueError):
        store.add(PanelConfig(id="A", kind="K"))
    with pytest.raises(PanelNotFoundError):
        store.get("missing")


def test_get_returns_live_config():
    store = _store(PanelConfig(id="A", kind="K", parameters={"x": 1}))
    held = store.get("A")
    store.set("A", "x", 2)
    assert held.parameters["x"] == 2


def test_set_source_keeps_only_one_dimension():
    store = _store(PanelConfig(id="A", kind="K"), PanelConfig(id="B", kind="K"))
    store.set_source("B", SelectionDimension.ROW, "A")
    store.set_source("B", SelectionDimension.COLUMN, "A")

    cfg = store.get("B")
    assert cfg.row_selection_source is None
    assert cfg.column_selection_source == "A"
    assert cfg.source_dimension is SelectionDimension.COLUMN


def test_dependents_filters_by_dimension_and_keeps_store_order():
    store = _store(
        PanelConfig(id="A", kind="K"),
        PanelConfig(id="C", kind="K", column_selection_source="A"),
        PanelConfig(id="B", kind="K", row_selection_source="A"),
        PanelConfig(id="D", kind="K", parameters={SINGLE_SOURCE_PARAM: "A"}),
    )
    assert store.dependents("A") == ["C", "B"]
    assert store.dependents("A", SelectionDimension.ROW) == ["B"]
    assert store.single_selection_dependents("A") == ["D"]


def test_empty_active_selection_is_stored_as_none():
    store = _store(PanelConfig(id="A", kind="K"))
    store.set_active_selection("A", Selection.of([]))
    assert store.get("A").active_selection is None
    assert store.get("A").selection_type is SelectionType.NONE


def test_save_and_delete_saved_selections():
    store = _store(PanelConfig(id="A", kind="K"))
    with pytest.raises(SelectionError):
        store.save_active_selection("A")

    store.set_active_selection("A", Selection.of(["c1", "c2"]))
    saved = store.save_active_selection("A")
    cfg = store.get("A")
    assert cfg.saved_selections == [saved]
    assert cfg.selection_history == [saved]

    with pytest.raises(SelectionError):
        store.delete_saved_selection("A", 5)

    assert store.delete_saved_selection("A") == saved
    # History is append-only
    assert cfg.saved_selections == []
    assert cfg.selection_history == [saved]


def test_clear_selections_reports_whether_anything_was_cleared():
    store = _store(PanelConfig(id="A", kind="K"))
    assert store.clear_selections("A") is False
    store.set_active_selection("A", Selection.of(["c1"]))
    store.save_active_selection("A")
    assert store.clear_selections("A") is True
    assert store.get("A").has_selections() is False


def test_remove_clears_every_reference():
    store = _store(
        PanelConfig(id="A", kind="K"),
        PanelConfig(id="B", kind="K", column_selection_source="A"),
        PanelConfig(id="C", kind="K", parameters={SINGLE_SOURCE_PARAM: "A"}),
        PanelConfig(id="D", kind="K"),
    )
    affected = store.remove("A")

    assert affected == ["B", "C"]
    assert "A" not in store
    assert store.get("B").column_selection_source is None
    assert store.get("C").parameters[SINGLE_SOURCE_PARAM] is None


def test_snapshot_restore_round_trip():
    store = _store(
        PanelConfig(id="A", kind="K", parameters={"x": [1, 2]}),
        PanelConfig(id="B", kind="K", column_selection_source="A"),
    )
    store.set_active_selection("A", Selection.of(["c1"], type=SelectionType.BRUSH, payload={"range": {"x": [0, 1]}}))
    store.save_active_selection("A")
    snapshot = store.snapshot()

    other = InstanceStore()
    other.restore(snapshot)

    assert other.ids() == ["A", "B"]
    assert other.snapshot() == snapshot
    # The snapshot is a copy
    snapshot[0]["parameters"]["x"].append(3)
    assert other.get("A").parameters["x"] == [1, 2]


def test_restore_rejects_duplicate_ids():
    with pytest.raises(ValueError):
        InstanceStore().restore([{"id": "A", "kind": "K"}, {"id": "A", "kind": "K"}])

from collections import Counter

import pytest

from sc_explorer.config.model import DEFAULT_PANELS
from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.exceptions import (
    PanelNotFoundError,
    SelectionCycleError,
    SelectionDimensionError,
    SelectionError,
    UnknownPanelKindError,
)
from sc_explorer.core.flags import FlagKind
from sc_explorer.core.graph import find_cycles
from sc_explorer.core.lifecycle import PanelState
from sc_explorer.core.selection import SelectionType
from sc_explorer.validation.errors import PanelConfigError
from sc_explorer.views import build_panel_registry


def _render_signals(delivered):
    return Counter(pid for pid, kind in delivered if kind.is_render)


# ---------------------------------------------------------------------------
# Adding panels
# ---------------------------------------------------------------------------
def test_add_panel_assigns_ids_refines_and_renders(ctx):
    first = ctx.add_panel("ReducedDimensionPlot")
    second = ctx.add_panel("ReducedDimensionPlot", {"embedding": "nope"})

    assert (first, second) == ("ReducedDimensionPlot1", "ReducedDimensionPlot2")
    # Invalid embedding is corrected against the dataset
    assert ctx.config(second).parameters["embedding"] == "X_umap"
    assert ctx.lifecycle.state(first) is PanelState.RENDERING
    assert ctx.render_counts[first] == 1
    assert ctx.output(first).figure is not None
    assert len(ctx.output(first).data) == 6


def test_add_panel_rejects_unknown_kind_and_invalid_parameters(ctx):
    with pytest.raises(UnknownPanelKindError):
        ctx.add_panel("Nope")
    with pytest.raises(PanelConfigError) as exc:
        ctx.add_panel("ReducedDimensionPlot", {"point_size": -1})
    assert "PANEL_POINT_SIZE" in exc.value.codes
    assert ctx.panel_ids() == []


def test_add_panel_with_bad_source_leaves_nothing_behind(ctx):
    with pytest.raises(PanelNotFoundError):
        ctx.add_panel("ColumnDataPlot", column_selection_source="missing")

    rows = ctx.add_panel("RowDataTable")
    with pytest.raises(SelectionDimensionError):
        ctx.add_panel("ColumnDataPlot", column_selection_source=rows)

    assert ctx.panel_ids() == [rows]
    assert ctx.add_panel("ColumnDataPlot") == "ColumnDataPlot1"


# ---------------------------------------------------------------------------
# Multiple selections
# ---------------------------------------------------------------------------
def test_unrestricted_receiver_highlights_the_selection(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)

    delivered = ctx.set_active_selection(rd, ["c1", "c2"])

    assert delivered == [(rd, FlagKind.ACTIVE_SELECTION_CHANGED), (cdp, FlagKind.NEEDS_UPDATE)]
    scope = ctx.scope(cdp)
    assert scope.restricted is False
    assert scope.highlight == frozenset({"c1", "c2"})
    assert len(scope.universe) == 6
    assert ctx.output(cdp).data["highlighted"].sum() == 2
    # The transmitter itself is not re-rendered
    assert ctx.render_counts[rd] == 1
    assert ctx.selection_counts[rd] == 1
    assert ctx.output(rd).selected == ("c1", "c2")


def test_restricted_receiver_loses_its_own_selections(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable", {"restrict": True}, column_selection_source=rd)
    downstream = ctx.add_panel("ColumnDataPlot", column_selection_source=table)

    ctx.set_active_selection(table, ["c1"], SelectionType.ROWS)
    assert ctx.scope(downstream).highlight == frozenset({"c1"})

    delivered = ctx.set_active_selection(rd, ["c1", "c2", "c3"])

    assert delivered == [
        (rd, FlagKind.ACTIVE_SELECTION_CHANGED),
        (table, FlagKind.NEEDS_CLEAN_UPDATE),
        (downstream, FlagKind.NEEDS_UPDATE),
    ]
    assert ctx.config(table).active_selection is None
    assert ctx.scope(table).universe == ("c1", "c2", "c3")
    assert ctx.scope(table).restricted is True
    assert list(ctx.output(table).data["identity"]) == ["c1", "c2", "c3"]
    assert ctx.scope(downstream).highlight is None


def test_each_dependent_gets_exactly_one_signal(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    consumers = [
        ctx.add_panel("ColumnDataPlot", column_selection_source=rd),
        ctx.add_panel("ColumnDataTable", {"restrict": True}, column_selection_source=rd),
        ctx.add_panel("FeatureAssayPlot", column_selection_source=rd),
    ]
    before = Counter(ctx.render_counts)

    delivered = ctx.set_active_selection(rd, ["c2", "c4"])

    assert _render_signals(delivered) == Counter({pid: 1 for pid in consumers})
    for pid in consumers:
        assert ctx.render_counts[pid] == before[pid] + 1


def test_restricted_universe_is_subset_of_source_view(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    middle = ctx.add_panel("ColumnDataTable", {"restrict": True}, column_selection_source=rd)
    leaf = ctx.add_panel("ColumnDataPlot", {"restrict": True}, column_selection_source=middle)

    ctx.set_active_selection(rd, ["c1", "c2", "c3"])
    # c5 is not visible on the restricted middle table, so it can't be passed on
    ctx.set_active_selection(middle, ["c2", "c5"])

    assert set(ctx.scope(leaf).universe) <= set(ctx.scope(middle).universe)
    assert ctx.scope(leaf).universe == ("c2",)


def test_setting_the_same_selection_twice_is_a_no_op(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)
    ctx.set_active_selection(rd, ["c1", "c2"])
    counts = Counter(ctx.render_counts)

    assert ctx.set_active_selection(rd, ["c1", "c2"]) == []
    assert ctx.render_counts == counts


def test_clearing_the_selection_removes_the_highlight(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)
    ctx.set_active_selection(rd, ["c1"])

    delivered = ctx.clear_active_selection(rd)

    assert (cdp, FlagKind.NEEDS_UPDATE) in delivered
    assert ctx.scope(cdp).highlight is None
    assert ctx.clear_active_selection(rd) == []


def test_selection_on_non_transmitter_raises(ctx):
    heat = ctx.add_panel("HeatmapPlot")
    with pytest.raises(SelectionError):
        ctx.set_active_selection(heat, ["g1"])


def test_union_and_saved_modes(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    active = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)
    union = ctx.add_panel("ColumnDataPlot", {"selection_mode": "union"}, column_selection_source=rd)
    saved = ctx.add_panel("ColumnDataPlot", {"selection_mode": "saved", "saved_index": 0}, column_selection_source=rd)

    ctx.set_active_selection(rd, ["c1"])
    renders = Counter(ctx.render_counts)
    ctx.save_active_selection(rd)

    # Saving doesn't change what an active-mode consumer receives
    assert ctx.render_counts[active] == renders[active]
    assert ctx.render_counts[union] == renders[union] + 1
    assert ctx.render_counts[saved] == renders[saved] + 1

    ctx.set_active_selection(rd, ["c4"])
    assert ctx.scope(active).highlight == frozenset({"c4"})
    assert ctx.scope(union).highlight == frozenset({"c1", "c4"})
    assert ctx.scope(saved).highlight == frozenset({"c1"})

    ctx.delete_saved_selection(rd, 0)
    assert ctx.scope(saved).highlight is None
    assert ctx.config(rd).selection_history[0].identities == ("c1",)


def test_saved_mode_consumer_keeps_its_selection_when_active_changes(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    ctx.set_active_selection(rd, ["c1", "c2", "c3"])
    ctx.save_active_selection(rd)
    saved = ctx.add_panel(
        "ColumnDataPlot",
        {"restrict": True, "selection_mode": "saved", "saved_index": 0},
        column_selection_source=rd,
    )
    ctx.set_active_selection(saved, ["c1"])
    renders = ctx.render_counts[saved]

    delivered = ctx.set_active_selection(rd, ["c5"])

    assert saved not in {pid for pid, _ in delivered}
    assert ctx.config(saved).active_selection.identities == ("c1",)
    assert set(ctx.scope(saved).universe) == {"c1", "c2", "c3"}
    assert ctx.render_counts[saved] == renders


def test_dynamic_source_follows_the_latest_transmitter(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable")
    follower = ctx.add_panel("ColumnDataPlot", {"dynamic_source": True})

    ctx.set_active_selection(rd, ["c1"])
    assert ctx.config(follower).column_selection_source == rd
    assert ctx.scope(follower).highlight == frozenset({"c1"})

    delivered = ctx.set_active_selection(table, ["c6"], SelectionType.ROWS)
    assert ctx.config(follower).column_selection_source == table
    assert (follower, FlagKind.NEEDS_UPDATE) in delivered


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------
def test_cycles_are_rejected(ctx):
    a = ctx.add_panel("ColumnDataPlot")
    b = ctx.add_panel("ColumnDataPlot", column_selection_source=a)

    with pytest.raises(SelectionCycleError):
        ctx.set_selection_source(a, b)
    with pytest.raises(SelectionCycleError):
        ctx.set_selection_source(a, a)
    assert ctx.config(a).selection_source is None
    assert find_cycles(ctx.store) == []


def test_dimension_mismatch_is_rejected(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    heat = ctx.add_panel("HeatmapPlot")
    with pytest.raises(SelectionDimensionError):
        ctx.set_selection_source(heat, rd)


def test_rewiring_a_restricted_panel_clears_its_selections(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable", {"restrict": True})
    ctx.set_active_selection(table, ["c1"], SelectionType.ROWS)

    assert ctx.set_selection_source(table, rd) is True
    assert ctx.config(table).active_selection is None
    assert (table, FlagKind.NEEDS_CLEAN_UPDATE) in ctx.last_delivered
    assert ctx.set_selection_source(table, rd) is False


# ---------------------------------------------------------------------------
# Single selections
# ---------------------------------------------------------------------------
def test_single_selection_drives_feature_and_colour(ctx):
    rows = ctx.add_panel("RowDataTable")
    fap = ctx.add_panel("FeatureAssayPlot", {"single_selection_source": rows})
    rd = ctx.add_panel("ReducedDimensionPlot")
    ctx.set_single_selection_source(rd, rows)

    consumers = ctx.set_single_selection(rows, "g2")

    assert consumers == [fap, rd]
    assert ctx.config(fap).parameters["feature"] == "g2"
    assert ctx.config(rd).parameters["colour_by"] == "feature"
    assert ctx.config(rd).parameters["colour_by_feature"] == "g2"
    assert "colour" in ctx.output(rd).data.columns
    assert ctx.config(rows).parameters["selected"] == "g2"
    assert ctx.output(rows).supplementary == "second gene"

    assert ctx.set_single_selection(rows, "g2") == []


def test_single_selection_source_applies_current_identity(ctx):
    rows = ctx.add_panel("RowDataTable")
    ctx.set_single_selection(rows, "g4")
    fap = ctx.add_panel("FeatureAssayPlot", {"single_selection_source": rows})

    assert ctx.config(fap).parameters["feature"] == "g4"


def test_invalid_single_selection_is_rejected(ctx):
    rows = ctx.add_panel("RowDataTable")
    with pytest.raises(SelectionDimensionError):
        ctx.set_single_selection(rows, "c1")
    rd = ctx.add_panel("ReducedDimensionPlot")
    with pytest.raises(SelectionDimensionError):
        ctx.set_single_selection_source(rows, rd)


def test_missing_annotation_gives_no_supplementary_output(ctx):
    rows = ctx.add_panel("RowDataTable")
    ctx.set_single_selection(rows, "g3")
    assert ctx.output(rows).supplementary is None


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------
def test_protected_parameter_clears_own_selections(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)
    ctx.set_active_selection(rd, ["c1"])

    assert ctx.update_parameter(rd, "embedding", "X_pca") is True

    assert ctx.config(rd).active_selection is None
    assert ctx.last_delivered == [(rd, FlagKind.NEEDS_CLEAN_UPDATE), (cdp, FlagKind.NEEDS_UPDATE)]
    assert ctx.scope(cdp).highlight is None


def test_plain_parameter_keeps_selections(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    ctx.set_active_selection(rd, ["c1"])

    assert ctx.update_parameter(rd, "point_size", 8) is True
    assert ctx.config(rd).active_selection is not None
    assert ctx.last_delivered == [(rd, FlagKind.NEEDS_UPDATE)]
    assert ctx.update_parameter(rd, "point_size", 8) is False


def test_invalid_parameter_changes_nothing(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    with pytest.raises(PanelConfigError):
        ctx.update_parameter(rd, "dim_x", 0)
    assert ctx.config(rd).parameters["dim_x"] == 1
    assert ctx.render_counts[rd] == 1


def test_render_failure_is_contained(ctx, monkeypatch):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)

    def boom(config, scope):
        raise RuntimeError("kaput")

    monkeypatch.setattr(ctx.panel(cdp), "compute_data", boom)
    ctx.set_active_selection(rd, ["c1"])

    assert ctx.output(cdp).error == "kaput"
    assert ctx.output(cdp).figure is not None
    assert ctx.lifecycle.state(cdp) is PanelState.RENDERING
    assert ctx.output(rd).error is None


# ---------------------------------------------------------------------------
# Removal and persistence
# ---------------------------------------------------------------------------
def test_remove_panel_cascades(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    cdp = ctx.add_panel("ColumnDataPlot", column_selection_source=rd)
    ctx.set_active_selection(rd, ["c1"])
    renders = ctx.render_counts[cdp]

    affected = ctx.remove_panel(rd)

    assert affected == [cdp]
    assert rd not in ctx.store
    assert ctx.config(cdp).column_selection_source is None
    assert ctx.scope(cdp).highlight is None
    assert ctx.render_counts[cdp] == renders + 1
    assert ctx.lifecycle.state(rd) is PanelState.UNINITIALIZED
    with pytest.raises(PanelNotFoundError):
        ctx.remove_panel(rd)


def test_removing_a_restricting_source_resets_the_consumer(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable", {"restrict": True}, column_selection_source=rd)
    ctx.set_active_selection(rd, ["c1", "c2"])
    ctx.set_active_selection(table, ["c1"], SelectionType.ROWS)
    ctx.save_active_selection(table)
    assert set(ctx.scope(table).universe) == {"c1", "c2"}

    ctx.remove_panel(rd)

    scope = ctx.scope(table)
    assert scope.restricted is False
    assert set(scope.universe) == {"c1", "c2", "c3", "c4", "c5", "c6"}
    assert ctx.config(table).active_selection is None
    assert ctx.config(table).saved_selections == []
    assert (table, FlagKind.NEEDS_CLEAN_UPDATE) in ctx.last_delivered
    assert len(ctx.output(table).data) == 6


def test_snapshot_restore_round_trip(ctx, dataset):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable", {"restrict": True}, column_selection_source=rd)
    rows = ctx.add_panel("RowDataTable")
    fap = ctx.add_panel("FeatureAssayPlot", {"single_selection_source": rows})
    ctx.set_active_selection(rd, ["c1", "c2", "c3"])
    ctx.save_active_selection(rd)
    ctx.set_single_selection(rows, "g4")
    snapshot = ctx.snapshot()

    other = ExplorerContext(dataset, build_panel_registry())
    assert other.restore(snapshot) == [rd, table, rows, fap]

    assert other.snapshot() == snapshot
    assert other.scope(table) == ctx.scope(table)
    assert all(other.lifecycle.state(pid) is PanelState.RENDERING for pid in other.panel_ids())


def test_restore_replaces_the_session(ctx):
    ctx.add_panel("HeatmapPlot")
    ids = ctx.restore([{"id": "ColumnDataPlot7", "kind": "ColumnDataPlot"}])

    assert ids == ["ColumnDataPlot7"]
    assert ctx.lifecycle.state("HeatmapPlot1") is PanelState.UNINITIALIZED


def test_restore_drops_cyclic_and_dangling_sources(ctx):
    ids = ctx.restore(
        [
            {"id": "A", "kind": "ColumnDataPlot", "column_selection_source": "B"},
            {"id": "B", "kind": "ColumnDataPlot", "column_selection_source": "A"},
            {"id": "C", "kind": "ColumnDataPlot", "column_selection_source": "gone"},
        ]
    )

    assert ids == ["A", "B", "C"]
    assert ctx.config("A").column_selection_source == "B"
    assert ctx.config("B").column_selection_source is None
    assert ctx.config("C").column_selection_source is None
    assert find_cycles(ctx.store) == []


def test_invalid_restore_keeps_the_current_session(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    with pytest.raises(PanelConfigError):
        ctx.restore([{"id": "X1", "kind": "ReducedDimensionPlot", "parameters": {"dim_x": -3}}])
    assert ctx.panel_ids() == [rd]


def test_restore_entry_without_kind_is_a_config_error(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    with pytest.raises(PanelConfigError) as exc:
        ctx.restore([{"id": "X1", "parameters": {}}])
    assert exc.value.codes == ["PANEL_KIND_MISSING"]
    assert ctx.panel_ids() == [rd]


def test_bootstrap_default_panels(ctx):
    ids = ctx.bootstrap(DEFAULT_PANELS)

    assert ids == [f"{p['kind']}1" for p in DEFAULT_PANELS]
    assert all(ctx.output(pid).error is None for pid in ids)
    with pytest.raises(ValueError):
        ctx.bootstrap(DEFAULT_PANELS)


def test_export_panel(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable")

    name, content = ctx.export_panel(rd)
    assert name == f"{rd}.html"
    assert b"<html" in content

    name, content = ctx.export_panel(table)
    assert name == f"{table}.csv"
    assert content.decode("utf-8").splitlines()[0].startswith(",identity")

from sc_explorer.core.graph import (
    build_dependency_graph,
    downstream_of,
    find_cycles,
    render_order,
    would_create_cycle,
)
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.core.store import SINGLE_SOURCE_PARAM, InstanceStore


def _chain_store() -> InstanceStore:
    """C <- B <- A along columns, plus D following A's single selection."""
    store = InstanceStore()
    store.add(PanelConfig(id="C", kind="K", column_selection_source="B"))
    store.add(PanelConfig(id="B", kind="K", column_selection_source="A"))
    store.add(PanelConfig(id="A", kind="K"))
    store.add(PanelConfig(id="D", kind="K", parameters={SINGLE_SOURCE_PARAM: "A"}))
    return store


def test_graph_edges_point_from_source_to_consumer():
    graph = build_dependency_graph(_chain_store())

    assert set(graph.edges()) == {("A", "B"), ("B", "C"), ("A", "D")}
    assert graph.edges["A", "B"]["link"] == "multi"
    assert graph.edges["A", "B"]["dimension"] is SelectionDimension.COLUMN
    assert graph.edges["A", "D"]["link"] == "single"


def test_would_create_cycle():
    store = _chain_store()
    assert would_create_cycle(store, "A", "C") is True
    assert would_create_cycle(store, "A", "A") is True
    assert would_create_cycle(store, "D", "C") is False
    assert would_create_cycle(store, "A", None) is False


def test_replacing_an_edge_is_not_a_cycle():
    store = _chain_store()
    # B currently receives from A; re-pointing B at A again is fine
    assert would_create_cycle(store, "B", "A") is False


def test_downstream_of_follows_multi_links_only():
    store = _chain_store()
    assert downstream_of(store, "A") == ["C", "B"]
    assert downstream_of(store, "C") == []
    assert downstream_of(store, "missing") == []


def test_render_order_puts_transmitters_first():
    order = render_order(_chain_store())
    assert order.index("A") < order.index("B") < order.index("C")
    assert order.index("A") < order.index("D")


def test_find_cycles_and_render_order_fallback():
    store = InstanceStore()
    store.add(PanelConfig(id="A", kind="K", column_selection_source="B"))
    store.add(PanelConfig(id="B", kind="K", column_selection_source="A"))

    cycles = find_cycles(store)
    assert len(cycles) == 1
    assert set(cycles[0]) == {"A", "B"}
    assert render_order(store) == ["A", "B"]

"""
Selection dependency graph.

The graph is never stored: it is derived on demand from the
row/column selection sources (and single-selection sources) held by the
InstanceStore. Edges point from the transmitting panel to the consumer.
"""

from __future__ import annotations

from typing import List, Optional

import networkx as nx

from .store import SINGLE_SOURCE_PARAM, InstanceStore

MULTI = "multi"
SINGLE = "single"


def build_dependency_graph(store: InstanceStore, *, include_single: bool = True) -> nx.DiGraph:
    """
    Build a DiGraph with one node per panel and one edge per source reference.

    Edge attributes:
    - link: "multi" for row/column selections, "single" for single selections
    - dimension: SelectionDimension of a multi link
    """
    graph = nx.DiGraph()
    for order, cfg in enumerate(store):
        graph.add_node(cfg.id, kind=cfg.kind, order=order)

    for cfg in store:
        source = cfg.selection_source
        if source is not None and source in graph:
            graph.add_edge(source, cfg.id, link=MULTI, dimension=cfg.source_dimension)

        single = cfg.parameters.get(SINGLE_SOURCE_PARAM)
        if include_single and single is not None and single in graph:
            if not graph.has_edge(single, cfg.id):
                graph.add_edge(single, cfg.id, link=SINGLE, dimension=None)

    return graph


def would_create_cycle(store: InstanceStore, consumer_id: str, source_id: Optional[str]) -> bool:
    """
    True if making `source_id` the multiple-selection source of `consumer_id`
    closes a loop, i.e. the source already (transitively) receives from the consumer.
    """
    if source_id is None:
        return False
    if source_id == consumer_id:
        return True

    graph = build_dependency_graph(store, include_single=False)
    # The consumer's current edge is replaced, so it can't take part in the loop
    for src, dst in list(graph.in_edges(consumer_id)):
        graph.remove_edge(src, dst)
    if consumer_id not in graph or source_id not in graph:
        return False
    return nx.has_path(graph, consumer_id, source_id)


def find_cycles(store: InstanceStore) -> List[List[str]]:
    graph = build_dependency_graph(store, include_single=False)
    return [list(c) for c in nx.simple_cycles(graph)]


def downstream_of(store: InstanceStore, panel_id: str) -> List[str]:
    """Every panel reachable from `panel_id` over multi links, in store order."""
    graph = build_dependency_graph(store, include_single=False)
    if panel_id not in graph:
        return []
    reachable = nx.descendants(graph, panel_id)
    return [pid for pid in store.ids() if pid in reachable]


def render_order(store: InstanceStore) -> List[str]:
    """
    Panels ordered so every transmitter comes before its consumers.

    Ties are broken by store insertion order. Falls back to plain store
    order if the wiring is cyclic.
    """
    graph = build_dependency_graph(store)
    order = {pid: i for i, pid in enumerate(store.ids())}
    try:
        return list(nx.lexicographical_topological_sort(graph, key=lambda n: order[n]))
    except nx.NetworkXUnfeasible:
        return store.ids()

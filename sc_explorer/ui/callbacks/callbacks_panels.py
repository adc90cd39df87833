from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set

import dash
from dash import ALL, Input, Output, State, exceptions

from sc_explorer.core.capabilities import (
    PARAM_RESTRICT,
    PARAM_SELECTION_MODE,
    SingleSelectionTransmitter,
)
from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.exceptions import ScExplorerError
from sc_explorer.core.selection import SelectionType
from sc_explorer.ui.helpers import (
    panel_summary,
    parse_parameter_value,
    selection_from_event,
    table_columns,
    table_records,
    table_selection,
)
from sc_explorer.ui.ids import IDs
from sc_explorer.ui.layout.build_panel_card import build_panel_grid

if TYPE_CHECKING:
    from sc_explorer.ui.config import AppConfig

logger = logging.getLogger(__name__)

P = IDs.Pattern


def _pattern(kind: str) -> dict:
    return {"type": kind, "index": ALL}


def _value_for(items: List[Dict[str, Any]], panel_id: str) -> Any:
    """Value of the ALL-pattern State entry belonging to `panel_id`."""
    for item in items:
        if item["id"]["index"] == panel_id:
            return item.get("value")
    return None


def dispatch_panel_event(
        ctx: ExplorerContext,
        kind: str,
        prop: str,
        panel_id: str,
        value: Any,
        *,
        param_name: Optional[str] = None,
        param_value: Optional[str] = None,
) -> bool:
    """
    Route one UI event to the ExplorerContext.

    Events that carry no change (initial fires, unchanged values, None
    payloads) are ignored so re-fired callbacks never cause extra renders.

    :return: False if the event was ignored
    """
    if kind == P.PANEL_GRAPH:
        event = selection_from_event(value)
        if event is None:
            return False
        identities, selection_type, payload = event
        if not identities:
            ctx.clear_active_selection(panel_id)
        else:
            ctx.set_active_selection(panel_id, identities, selection_type, payload)
        return True

    if kind == P.PANEL_TABLE and prop == "selected_row_ids":
        if value is None:
            return False
        if not value:
            ctx.clear_active_selection(panel_id)
        else:
            ctx.set_active_selection(panel_id, [str(v) for v in value], SelectionType.ROWS)
        return True

    if kind == P.PANEL_TABLE and prop == "active_cell":
        if not value or value.get("row_id") is None:
            return False
        if not isinstance(ctx.panel(panel_id), SingleSelectionTransmitter):
            return False
        ctx.set_single_selection(panel_id, str(value["row_id"]))
        return True

    if kind == P.PANEL_SOURCE:
        return ctx.set_selection_source(panel_id, value or None)

    if kind == P.PANEL_SINGLE_SOURCE:
        return ctx.set_single_selection_source(panel_id, value or None)

    if kind == P.PANEL_RESTRICT:
        if value is None:
            return False
        return ctx.update_parameter(panel_id, PARAM_RESTRICT, PARAM_RESTRICT in value)

    if kind == P.PANEL_SELECTION_MODE:
        if not value:
            return False
        return ctx.update_parameter(panel_id, PARAM_SELECTION_MODE, value)

    if kind == P.PANEL_SAVE_SELECTION:
        if not value:
            return False
        ctx.save_active_selection(panel_id)
        return True

    if kind == P.PANEL_CLEAR_SELECTION:
        if not value:
            return False
        ctx.clear_active_selection(panel_id)
        return True

    if kind == P.PANEL_PARAM_APPLY:
        if not value or not param_name:
            return False
        return ctx.update_parameter(panel_id, param_name, parse_parameter_value(param_value))

    return False


def register_panel_callbacks(app: dash.Dash, cfg: AppConfig) -> None:
    ctx = cfg.context

    # ---------------------------------------------------------
    # 1. Panel events -> context -> re-rendered outputs
    # ---------------------------------------------------------
    @app.callback(
        Output(_pattern(P.PANEL_GRAPH), "figure"),
        Output(_pattern(P.PANEL_TABLE), "data"),
        Output(_pattern(P.PANEL_TABLE), "columns"),
        Output(_pattern(P.PANEL_TABLE), "selected_rows"),
        Output(_pattern(P.PANEL_TABLE), "selected_row_ids"),
        Output(_pattern(P.PANEL_SOURCE), "value"),
        Output(_pattern(P.PANEL_SUMMARY), "children"),
        Output(_pattern(P.PANEL_SUPPLEMENTARY), "children"),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(_pattern(P.PANEL_GRAPH), "selectedData"),
        Input(_pattern(P.PANEL_TABLE), "selected_row_ids"),
        Input(_pattern(P.PANEL_TABLE), "active_cell"),
        Input(_pattern(P.PANEL_SOURCE), "value"),
        Input(_pattern(P.PANEL_SINGLE_SOURCE), "value"),
        Input(_pattern(P.PANEL_RESTRICT), "value"),
        Input(_pattern(P.PANEL_SELECTION_MODE), "value"),
        Input(_pattern(P.PANEL_SAVE_SELECTION), "n_clicks"),
        Input(_pattern(P.PANEL_CLEAR_SELECTION), "n_clicks"),
        Input(_pattern(P.PANEL_PARAM_APPLY), "n_clicks"),
        State(_pattern(P.PANEL_PARAM_NAME), "value"),
        State(_pattern(P.PANEL_PARAM_VALUE), "value"),
        prevent_initial_call=True,
    )
    def on_panel_event(*_args):
        trig = dash.ctx.triggered_id
        if not isinstance(trig, dict):
            raise exceptions.PreventUpdate

        panel_id = trig["index"]
        kind = trig["type"]
        triggered = dash.ctx.triggered[0]
        prop = triggered["prop_id"].rsplit(".", 1)[-1]
        value = triggered["value"]
        status: Any = dash.no_update

        with cfg.lock:
            # Stale component of a panel removed in the meantime
            if panel_id not in ctx.store:
                raise exceptions.PreventUpdate

            ctx.last_delivered = []
            try:
                changed = dispatch_panel_event(
                    ctx,
                    kind,
                    prop,
                    panel_id,
                    value,
                    param_name=_value_for(dash.ctx.states_list[0], panel_id),
                    param_value=_value_for(dash.ctx.states_list[1], panel_id),
                )
            except ScExplorerError as exc:
                logger.warning(
                    "panel_event_rejected",
                    extra={"panel_id": panel_id, "event": kind, "error": str(exc)},
                )
                changed = False
                status = str(exc)

            if not changed and status is dash.no_update:
                raise exceptions.PreventUpdate

            touched: Set[str] = {pid for pid, _ in ctx.last_delivered} | {panel_id}
            outputs = dash.ctx.outputs_list

            def per_panel(items: List[Dict[str, Any]], fn: Callable[[str], Any]) -> List[Any]:
                return [
                    fn(item["id"]["index"])
                    if item["id"]["index"] in touched and item["id"]["index"] in ctx.store
                    else dash.no_update
                    for item in items
                ]

            figures = per_panel(outputs[0], lambda pid: ctx.output(pid).figure)
            table_data = per_panel(outputs[1], lambda pid: table_records(ctx.output(pid).data))
            table_cols = per_panel(outputs[2], lambda pid: table_columns(ctx.output(pid).data))
            table_rows = per_panel(outputs[3], lambda pid: table_selection(ctx, pid)[0])
            table_row_ids = per_panel(outputs[4], lambda pid: table_selection(ctx, pid)[1])
            sources = per_panel(outputs[5], lambda pid: ctx.config(pid).selection_source)
            summaries = per_panel(outputs[6], lambda pid: panel_summary(ctx, pid))
            extras = per_panel(outputs[7], lambda pid: ctx.output(pid).supplementary or "")

        if status is dash.no_update and ctx.last_delivered:
            status = f"Updated {len(touched)} panel(s)"
        return figures, table_data, table_cols, table_rows, table_row_ids, sources, summaries, extras, status

    # ---------------------------------------------------------
    # 2. Add / remove panels -> layout version
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Store.LAYOUT_VERSION, "data", allow_duplicate=True),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(IDs.Control.ADD_PANEL_BTN, "n_clicks"),
        State(IDs.Control.ADD_PANEL_KIND, "value"),
        State(IDs.Store.LAYOUT_VERSION, "data"),
        prevent_initial_call=True,
    )
    def on_add_panel(n_clicks, kind, version):
        if not n_clicks or not kind:
            raise exceptions.PreventUpdate
        with cfg.lock:
            try:
                panel_id = ctx.add_panel(kind)
            except ScExplorerError as exc:
                return dash.no_update, f"Could not add {kind}: {exc}"
        return (version or 0) + 1, f"Added {panel_id}"

    @app.callback(
        Output(IDs.Store.LAYOUT_VERSION, "data", allow_duplicate=True),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(_pattern(P.PANEL_REMOVE), "n_clicks"),
        State(IDs.Store.LAYOUT_VERSION, "data"),
        prevent_initial_call=True,
    )
    def on_remove_panel(_clicks, version):
        trig = dash.ctx.triggered_id
        if not isinstance(trig, dict) or not dash.ctx.triggered[0]["value"]:
            raise exceptions.PreventUpdate
        panel_id = trig["index"]
        with cfg.lock:
            if panel_id not in ctx.store:
                raise exceptions.PreventUpdate
            affected = ctx.remove_panel(panel_id)
        msg = f"Removed {panel_id}"
        if affected:
            msg += f"; {', '.join(affected)} lost their source"
        return (version or 0) + 1, msg

    # ---------------------------------------------------------
    # 3. Layout version -> panel grid
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Control.PANEL_GRID, "children"),
        Input(IDs.Store.LAYOUT_VERSION, "data"),
        prevent_initial_call=True,
    )
    def rebuild_panel_grid(_version):
        with cfg.lock:
            return build_panel_grid(ctx)

from __future__ import annotations

import dash_bootstrap_components as dbc
from dash import dash_table, dcc, html

from sc_explorer.core.capabilities import (
    PARAM_RESTRICT,
    PARAM_SELECTION_MODE,
    PARAM_SINGLE_SOURCE,
    MultiSelectionConsumer,
    MultiSelectionTransmitter,
    SingleSelectionConsumer,
)
from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.selection import SelectionMode
from sc_explorer.ui.helpers import (
    editable_parameters,
    panel_summary,
    single_source_options,
    source_options,
    table_columns,
    table_records,
    table_selection,
)
from sc_explorer.ui.ids import IDs, panel_component_id
from sc_explorer.views.tables import MetadataTable


def _selection_controls(ctx: ExplorerContext, panel_id: str) -> list:
    panel = ctx.panel(panel_id)
    cfg = ctx.config(panel_id)
    controls = []

    if isinstance(panel, MultiSelectionConsumer):
        controls.append(
            dbc.Row(
                [
                    dbc.Col(
                        dcc.Dropdown(
                            id=panel_component_id(IDs.Pattern.PANEL_SOURCE, panel_id),
                            options=source_options(ctx, panel_id),
                            value=cfg.selection_source,
                            placeholder=f"Receive {panel.consume_dimension.value} selection from...",
                        ),
                        md=6,
                    ),
                    dbc.Col(
                        dcc.Dropdown(
                            id=panel_component_id(IDs.Pattern.PANEL_SELECTION_MODE, panel_id),
                            options=[{"label": m.value, "value": m.value} for m in SelectionMode],
                            value=cfg.parameters.get(PARAM_SELECTION_MODE),
                            clearable=False,
                        ),
                        md=3,
                    ),
                    dbc.Col(
                        dcc.Checklist(
                            id=panel_component_id(IDs.Pattern.PANEL_RESTRICT, panel_id),
                            options=[{"label": " Restrict", "value": PARAM_RESTRICT}],
                            value=[PARAM_RESTRICT] if cfg.parameters.get(PARAM_RESTRICT) else [],
                        ),
                        md=3,
                    ),
                ],
                className="g-2 mb-2",
            )
        )

    if isinstance(panel, SingleSelectionConsumer):
        controls.append(
            dcc.Dropdown(
                id=panel_component_id(IDs.Pattern.PANEL_SINGLE_SOURCE, panel_id),
                options=single_source_options(ctx, panel_id),
                value=cfg.parameters.get(PARAM_SINGLE_SOURCE),
                placeholder="Follow the single selection of...",
                className="mb-2",
            )
        )

    if isinstance(panel, MultiSelectionTransmitter):
        controls.append(
            html.Div(
                [
                    dbc.Button(
                        "Save selection",
                        id=panel_component_id(IDs.Pattern.PANEL_SAVE_SELECTION, panel_id),
                        size="sm",
                        color="secondary",
                        className="me-2",
                    ),
                    dbc.Button(
                        "Clear selection",
                        id=panel_component_id(IDs.Pattern.PANEL_CLEAR_SELECTION, panel_id),
                        size="sm",
                        color="light",
                    ),
                ],
                className="mb-2",
            )
        )
    return controls


def _parameter_editor(ctx: ExplorerContext, panel_id: str) -> html.Div:
    names = editable_parameters(ctx, panel_id)
    return html.Div(
        [
            dcc.Dropdown(
                id=panel_component_id(IDs.Pattern.PANEL_PARAM_NAME, panel_id),
                options=[{"label": n, "value": n} for n in names],
                placeholder="Parameter",
                style={"minWidth": "180px"},
            ),
            dcc.Input(
                id=panel_component_id(IDs.Pattern.PANEL_PARAM_VALUE, panel_id),
                type="text",
                placeholder="Value (JSON or text)",
                debounce=True,
                className="ms-2",
            ),
            dbc.Button(
                "Apply",
                id=panel_component_id(IDs.Pattern.PANEL_PARAM_APPLY, panel_id),
                size="sm",
                className="ms-2",
            ),
        ],
        className="d-flex align-items-center mb-2",
    )


def _output_component(ctx: ExplorerContext, panel_id: str):
    panel = ctx.panel(panel_id)
    output = ctx.output(panel_id)

    if isinstance(panel, MetadataTable):
        cfg = ctx.config(panel_id)
        selected_rows, selected_row_ids = table_selection(ctx, panel_id)
        return dash_table.DataTable(
            id=panel_component_id(IDs.Pattern.PANEL_TABLE, panel_id),
            data=table_records(output.data),
            columns=table_columns(output.data),
            row_selectable="multi",
            selected_rows=selected_rows,
            selected_row_ids=selected_row_ids,
            page_size=cfg.parameters.get("page_size", 10),
            sort_action="native",
            style_table={"overflowX": "auto"},
        )

    return dcc.Graph(
        id=panel_component_id(IDs.Pattern.PANEL_GRAPH, panel_id),
        figure=output.figure,
        style={"height": "450px"},
        config={"responsive": True},
    )


def build_panel_card(ctx: ExplorerContext, panel_id: str) -> dbc.Card:
    panel = ctx.panel(panel_id)
    cfg = ctx.config(panel_id)

    return dbc.Card(
        [
            dbc.CardHeader(
                html.Div(
                    [
                        html.Strong(panel.label_for(cfg)),
                        dbc.Button(
                            "Remove",
                            id=panel_component_id(IDs.Pattern.PANEL_REMOVE, panel_id),
                            size="sm",
                            color="danger",
                            outline=True,
                            className="ms-auto",
                        ),
                    ],
                    className="d-flex align-items-center",
                ),
                className="p-2",
            ),
            dbc.CardBody(
                [
                    *_selection_controls(ctx, panel_id),
                    _parameter_editor(ctx, panel_id),
                    dcc.Loading(type="default", children=_output_component(ctx, panel_id)),
                    html.Small(
                        panel_summary(ctx, panel_id),
                        id=panel_component_id(IDs.Pattern.PANEL_SUMMARY, panel_id),
                        className="text-muted d-block mt-1",
                    ),
                    html.Div(
                        ctx.output(panel_id).supplementary or "",
                        id=panel_component_id(IDs.Pattern.PANEL_SUPPLEMENTARY, panel_id),
                        className="small mt-1",
                    ),
                ]
            ),
        ],
        className="sce-panel-card h-100",
    )


def build_panel_grid(ctx: ExplorerContext) -> list:
    """Panels in store order, two per row on wide screens."""
    return [
        dbc.Col(build_panel_card(ctx, pid), md=6, className="mb-3")
        for pid in ctx.panel_ids()
    ]

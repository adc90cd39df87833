from __future__ import annotations

from typing import TYPE_CHECKING

import dash_bootstrap_components as dbc
from dash import dcc, html

from sc_explorer.ui.ids import IDs
from sc_explorer.ui.layout.build_navbar import build_navbar
from sc_explorer.ui.layout.build_panel_card import build_panel_grid

if TYPE_CHECKING:
    from sc_explorer.ui.config import AppConfig


def build_session_bar(cfg: AppConfig) -> dbc.Card:
    sessions = cfg.session_service.list_sessions() if cfg.session_service is not None else []
    return dbc.Card(
        dbc.CardBody(
            html.Div(
                [
                    dcc.Input(
                        id=IDs.Control.SESSION_LABEL_INPUT,
                        type="text",
                        placeholder="Session label",
                        className="me-2",
                    ),
                    dbc.Button("Save session", id=IDs.Control.SESSION_SAVE_BTN, size="sm", className="me-3"),
                    dcc.Dropdown(
                        id=IDs.Control.SESSION_SELECT,
                        options=[{"label": s, "value": s} for s in sessions],
                        placeholder="Saved sessions",
                        style={"minWidth": "220px"},
                    ),
                    dbc.Button("Load", id=IDs.Control.SESSION_LOAD_BTN, size="sm", className="ms-2 me-3"),
                    dcc.Upload(
                        id=IDs.Control.SESSION_UPLOAD,
                        children=dbc.Button("Import session.json", size="sm", color="secondary"),
                        multiple=False,
                        className="me-3",
                    ),
                    dbc.Button(
                        "Download session",
                        id=IDs.Control.SESSION_DOWNLOAD_BTN,
                        size="sm",
                        color="secondary",
                        className="me-2",
                    ),
                    dcc.Download(id=IDs.Control.SESSION_DOWNLOAD),
                    dbc.Button("Export ZIP", id=IDs.Control.EXPORT_BTN, size="sm", color="secondary"),
                    dcc.Download(id=IDs.Control.EXPORT_DOWNLOAD),
                ],
                className="d-flex align-items-center flex-wrap",
            ),
            className="p-2",
        ),
        className="mt-3",
    )


def build_layout(cfg: AppConfig):
    ctx = cfg.context
    navbar = build_navbar(cfg.explorer_config.ui_title, ctx.dataset.name, ctx.registry)

    return dbc.Container(
        fluid=True,
        className="sce-root",
        children=[
            navbar,

            # App-level stores
            dcc.Store(id=IDs.Store.LAYOUT_VERSION, data=0),
            dcc.Store(id=IDs.Store.SESSION_ID, storage_type="session"),

            build_session_bar(cfg),
            html.Div(id=IDs.Control.STATUS_BAR, className="text-muted small mt-2"),
            dbc.Row(build_panel_grid(ctx), id=IDs.Control.PANEL_GRID, className="gx-3 mt-2"),
        ],
    )

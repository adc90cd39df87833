from __future__ import annotations

import dash_bootstrap_components as dbc
from dash import dcc, html

from sc_explorer.core.panel_registry import PanelRegistry
from sc_explorer.ui.ids import IDs


def build_navbar(title: str, dataset_name: str, registry: PanelRegistry) -> dbc.Navbar:
    kind_options = [{"label": cls.label, "value": cls.kind} for cls in registry.all_classes()]

    return dbc.Navbar(
        dbc.Container(
            fluid=True,
            children=[
                # Left: title + dataset
                html.Div(
                    [
                        html.H2(title, className="mb-0"),
                        html.Small(f"Dataset: {dataset_name}", className="text-muted"),
                    ],
                    className="d-flex flex-column justify-content-center",
                ),

                # Right: add panel
                html.Div(
                    [
                        dcc.Dropdown(
                            id=IDs.Control.ADD_PANEL_KIND,
                            options=kind_options,
                            value=kind_options[0]["value"] if kind_options else None,
                            clearable=False,
                            style={"minWidth": "240px"},
                        ),
                        dbc.Button("Add panel", id=IDs.Control.ADD_PANEL_BTN, color="primary", className="ms-2"),
                    ],
                    className="ms-auto d-flex align-items-center",
                ),
            ],
        ),
        dark=False,
        className="shadow-sm sce-navbar",
    )

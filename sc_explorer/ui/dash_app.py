from __future__ import annotations

import logging
from pathlib import Path

import dash_bootstrap_components as dbc
from dash import Dash

from .config import AppConfig
from sc_explorer.config import load_explorer_config
from sc_explorer.core.context import ExplorerContext
from sc_explorer.core.dataset_loader import from_config
from sc_explorer.services.annotation import build_annotator
from sc_explorer.services.export_service import ExportService
from sc_explorer.services.session_service import SessionService
from sc_explorer.services.storage import LocalFileSystemStorage
from sc_explorer.ui.callbacks.callbacks_panels import register_panel_callbacks
from sc_explorer.ui.callbacks.callbacks_session import register_session_callbacks
from sc_explorer.ui.layout.build_layout import build_layout
from sc_explorer.views import build_panel_registry

logger = logging.getLogger(__name__)


def build_context(explorer_config) -> ExplorerContext:
    """Load the dataset and open a context holding the initial panels."""
    dataset = from_config(explorer_config.dataset, data_root=explorer_config.data_root)
    context = ExplorerContext(
        dataset,
        build_panel_registry(),
        annotator=build_annotator(dataset),
    )
    context.bootstrap(explorer_config.initial_panels)
    return context


def create_dash_app(config_root: Path | str = Path("config")) -> Dash:
    config_root = Path(config_root)

    # 1) Load Config
    explorer_config = load_explorer_config(config_root)

    # 2) Dataset, registry and panels
    context = build_context(explorer_config)

    # 3) Session & Export Services
    # LocalFileSystemStorage creates the directory if needed
    storage_backend = LocalFileSystemStorage(explorer_config.sessions_dir)

    cfg = AppConfig(
        config_root=config_root,
        explorer_config=explorer_config,
        context=context,
        session_service=SessionService(storage_backend),
        export_service=ExportService(context),
    )
    cfg.validate()

    app = Dash(__name__, external_stylesheets=[dbc.themes.FLATLY])
    app.title = explorer_config.ui_title
    app.layout = build_layout(cfg)

    # Register callbacks
    register_panel_callbacks(app, cfg)
    register_session_callbacks(app, cfg)

    logger.info(
        "app_created",
        extra={"dataset": context.dataset.name, "n_panels": len(context.panel_ids())},
    )
    return app

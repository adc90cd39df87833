from __future__ import annotations

import base64
import json
import logging
from typing import TYPE_CHECKING

import dash
from dash import Input, Output, State, dcc, exceptions, no_update

from sc_explorer import __version__
from sc_explorer.core.exceptions import ScExplorerError
from sc_explorer.metadata_io.io import normalise_session_dict
from sc_explorer.metadata_io.model import generate_session_id, new_session_metadata
from sc_explorer.validation.errors import ValidationError
from sc_explorer.validation.session_validation import validate_session_import_dict
from sc_explorer.ui.ids import IDs

if TYPE_CHECKING:
    from sc_explorer.ui.config import AppConfig

logger = logging.getLogger(__name__)


def _session_options(cfg: AppConfig) -> list:
    return [{"label": s, "value": s} for s in cfg.session_service.list_sessions()]


def decode_upload(contents: str):
    """Decode a dcc.Upload data URL into the JSON object it carries."""
    _header, b64data = contents.split(",", 1)
    return json.loads(base64.b64decode(b64data).decode("utf-8"))


def register_session_callbacks(app: dash.Dash, cfg: AppConfig) -> None:
    ctx = cfg.context

    # ---------------------------------------------------------
    # 1. Save session
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Store.SESSION_ID, "data"),
        Output(IDs.Control.SESSION_SELECT, "options"),
        Output(IDs.Control.SESSION_SELECT, "value"),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(IDs.Control.SESSION_SAVE_BTN, "n_clicks"),
        State(IDs.Control.SESSION_LABEL_INPUT, "value"),
        State(IDs.Store.SESSION_ID, "data"),
        prevent_initial_call=True,
    )
    def save_session(n_clicks, label, active_session_id):
        if not n_clicks:
            raise exceptions.PreventUpdate

        session_id = active_session_id or generate_session_id()
        with cfg.lock:
            snapshot = ctx.snapshot()
        try:
            session = cfg.session_service.save_snapshot(
                session_id,
                snapshot,
                dataset_name=ctx.dataset.name,
                label=label,
            )
        except (OSError, ScExplorerError) as exc:
            logger.exception("session_save_failed", extra={"session_id": session_id})
            return no_update, no_update, no_update, f"Save failed: {exc}"

        status = f"Saved session '{session.label or session.session_id}' ({len(session.panels)} panel(s))"
        return session_id, _session_options(cfg), session_id, status

    # ---------------------------------------------------------
    # 2. Load a stored session
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Store.LAYOUT_VERSION, "data", allow_duplicate=True),
        Output(IDs.Store.SESSION_ID, "data", allow_duplicate=True),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(IDs.Control.SESSION_LOAD_BTN, "n_clicks"),
        State(IDs.Control.SESSION_SELECT, "value"),
        State(IDs.Store.LAYOUT_VERSION, "data"),
        prevent_initial_call=True,
    )
    def load_session(n_clicks, session_id, version):
        if not n_clicks or not session_id:
            raise exceptions.PreventUpdate

        try:
            session = cfg.session_service.load_session(session_id)
        except (ValueError, ValidationError) as exc:
            return no_update, no_update, f"Load failed: {exc}"
        if session is None:
            return no_update, no_update, f"Session '{session_id}' not found"

        with cfg.lock:
            try:
                ids = ctx.restore(session.panels)
            except ScExplorerError as exc:
                return no_update, no_update, f"Load failed: {exc}"

        return (version or 0) + 1, session_id, f"Loaded session '{session_id}' ({len(ids)} panel(s))"

    # ---------------------------------------------------------
    # 3. Import an uploaded session.json
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Store.LAYOUT_VERSION, "data", allow_duplicate=True),
        Output(IDs.Control.STATUS_BAR, "children", allow_duplicate=True),
        Input(IDs.Control.SESSION_UPLOAD, "contents"),
        State(IDs.Control.SESSION_UPLOAD, "filename"),
        State(IDs.Store.LAYOUT_VERSION, "data"),
        prevent_initial_call=True,
    )
    def import_session(contents, filename, version):
        if contents is None:
            raise exceptions.PreventUpdate

        try:
            raw = decode_upload(contents)
        except (ValueError, UnicodeDecodeError) as exc:
            return no_update, f"Import failed: could not read {filename or 'upload'} ({exc})."

        try:
            validate_session_import_dict(raw)
            session = normalise_session_dict(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("session_import_rejected", extra={"filename": filename, "error": str(exc)})
            return no_update, f"Import failed: {exc}"

        if session.dataset_name and session.dataset_name != ctx.dataset.name:
            logger.warning(
                "session_dataset_mismatch",
                extra={"session_dataset": session.dataset_name, "dataset": ctx.dataset.name},
            )

        with cfg.lock:
            try:
                ids = ctx.restore(session.panels)
            except ScExplorerError as exc:
                return no_update, f"Import failed: {exc}"

        return (version or 0) + 1, f"Imported {len(ids)} panel(s) from {filename or 'upload'}"

    # ---------------------------------------------------------
    # 4. Download the current session.json
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Control.SESSION_DOWNLOAD, "data"),
        Input(IDs.Control.SESSION_DOWNLOAD_BTN, "n_clicks"),
        State(IDs.Store.SESSION_ID, "data"),
        prevent_initial_call=True,
    )
    def download_session(n_clicks, active_session_id):
        if not n_clicks:
            raise exceptions.PreventUpdate
        with cfg.lock:
            session = new_session_metadata(
                session_id=active_session_id or generate_session_id(),
                app_version=__version__,
                dataset_name=ctx.dataset.name,
                panels=ctx.snapshot(),
            )
        return dict(
            content=json.dumps(session.to_dict(), indent=2),
            filename="session.json",
            type="application/json",
        )

    # ---------------------------------------------------------
    # 5. Export every panel as a ZIP
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Control.EXPORT_DOWNLOAD, "data"),
        Input(IDs.Control.EXPORT_BTN, "n_clicks"),
        State(IDs.Store.SESSION_ID, "data"),
        prevent_initial_call=True,
    )
    def export_session(n_clicks, active_session_id):
        if not n_clicks:
            raise exceptions.PreventUpdate

        session_id = active_session_id or "export"
        with cfg.lock:
            try:
                zip_bytes = cfg.export_service.create_session_zip(session_id)
            except (OSError, ScExplorerError):
                logger.exception("session_zip_failed", extra={"session_id": session_id})
                raise exceptions.PreventUpdate

        return dcc.send_bytes(zip_bytes, f"{session_id}_export.zip")

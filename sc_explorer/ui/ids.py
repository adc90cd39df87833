from __future__ import annotations

__all__ = ["IDs", "panel_component_id"]


class IDs:
    class Store:
        LAYOUT_VERSION = "layout-version"
        SESSION_ID = "active-session-id"

    class Control:
        # Panel management
        ADD_PANEL_KIND = "add-panel-kind"
        ADD_PANEL_BTN = "add-panel-btn"
        PANEL_GRID = "panel-grid"

        # Sessions
        SESSION_LABEL_INPUT = "session-label-input"
        SESSION_SAVE_BTN = "session-save-btn"
        SESSION_SELECT = "session-select"
        SESSION_LOAD_BTN = "session-load-btn"
        SESSION_UPLOAD = "session-upload"
        SESSION_DOWNLOAD_BTN = "session-download-btn"
        SESSION_DOWNLOAD = "session-download"

        # Export
        EXPORT_BTN = "export-btn"
        EXPORT_DOWNLOAD = "export-download"

        # Status bar
        STATUS_BAR = "status-bar"

    class Pattern:
        # pattern-matching "type" strings, "index" is the panel id
        PANEL_GRAPH = "panel-graph"
        PANEL_TABLE = "panel-table"
        PANEL_SOURCE = "panel-source"
        PANEL_SINGLE_SOURCE = "panel-single-source"
        PANEL_RESTRICT = "panel-restrict"
        PANEL_SELECTION_MODE = "panel-selection-mode"
        PANEL_REMOVE = "panel-remove"
        PANEL_SAVE_SELECTION = "panel-save-selection"
        PANEL_CLEAR_SELECTION = "panel-clear-selection"
        PANEL_PARAM_NAME = "panel-param-name"
        PANEL_PARAM_VALUE = "panel-param-value"
        PANEL_PARAM_APPLY = "panel-param-apply"
        PANEL_SUMMARY = "panel-summary"
        PANEL_SUPPLEMENTARY = "panel-supplementary"


def panel_component_id(kind: str, panel_id: str) -> dict:
    return {"type": kind, "index": panel_id}

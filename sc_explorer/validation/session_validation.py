from __future__ import annotations

from typing import Any, List

from sc_explorer.validation.errors import ValidationError, ValidationIssue

_SELECTION_TYPES = {"brush", "lasso", "rows"}


def _check_selection(issues: List[ValidationIssue], where: str, sel: Any) -> None:
    if not isinstance(sel, dict):
        issues.append(ValidationIssue("PANEL_SELECTION_TYPE", f"{where} must be an object."))
        return
    if not isinstance(sel.get("identities"), list):
        issues.append(ValidationIssue("PANEL_SELECTION_IDENTITIES", f"{where}.identities must be a list."))
    if sel.get("type", "lasso") not in _SELECTION_TYPES:
        issues.append(ValidationIssue("PANEL_SELECTION_KIND", f"{where}.type must be one of {sorted(_SELECTION_TYPES)}."))


def validate_session_import_dict(obj: Any) -> None:
    """
    Validate the raw JSON BEFORE you build a SessionMetadata or touch the store.
    This prevents half-valid imports from poisoning app state.
    """
    issues: list[ValidationIssue] = []

    if isinstance(obj, list):
        panels = obj
    elif isinstance(obj, dict):
        panels = obj.get("panels")
        if panels is None:
            raise ValidationError([ValidationIssue("SESSION_PANELS_MISSING", "Session has no 'panels' list.")])
    else:
        raise ValidationError([ValidationIssue("SESSION_TYPE", "Uploaded session must be a JSON object or list.")])

    if not isinstance(panels, list):
        raise ValidationError([ValidationIssue("SESSION_PANELS_TYPE", "panels must be a list.")])

    seen: set[str] = set()
    for i, p in enumerate(panels):
        where = f"panels[{i}]"
        if not isinstance(p, dict):
            issues.append(ValidationIssue("PANEL_TYPE", f"{where} must be an object."))
            continue

        pid = p.get("id")
        if not isinstance(pid, str) or not pid:
            issues.append(ValidationIssue("PANEL_ID", f"{where}.id missing."))
        elif pid in seen:
            issues.append(ValidationIssue("PANEL_ID_DUPLICATE", f"{where}.id '{pid}' is used twice."))
        else:
            seen.add(pid)

        if not isinstance(p.get("kind"), str) or not p.get("kind"):
            issues.append(ValidationIssue("PANEL_KIND", f"{where}.kind missing."))
        if p.get("parameters") is not None and not isinstance(p.get("parameters"), dict):
            issues.append(ValidationIssue("PANEL_PARAMETERS", f"{where}.parameters must be an object."))

        row_src = p.get("row_selection_source")
        col_src = p.get("column_selection_source")
        for name, src in (("row_selection_source", row_src), ("column_selection_source", col_src)):
            if src is not None and not isinstance(src, str):
                issues.append(ValidationIssue("PANEL_SOURCE_TYPE", f"{where}.{name} must be a panel id or null."))
        if row_src is not None and col_src is not None:
            issues.append(ValidationIssue("PANEL_SOURCE_BOTH", f"{where} has both a row and a column source."))

        if p.get("active_selection") is not None:
            _check_selection(issues, f"{where}.active_selection", p["active_selection"])
        for key in ("saved_selections", "selection_history"):
            entries = p.get(key) or []
            if not isinstance(entries, list):
                issues.append(ValidationIssue("PANEL_SELECTION_LIST", f"{where}.{key} must be a list."))
                continue
            for j, sel in enumerate(entries):
                _check_selection(issues, f"{where}.{key}[{j}]", sel)

    if issues:
        raise ValidationError(issues)

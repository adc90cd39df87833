import pytest

from sc_explorer.validation import ValidationError, validate_session_import_dict


def _codes(obj):
    with pytest.raises(ValidationError) as exc:
        validate_session_import_dict(obj)
    return set(exc.value.codes)


def test_valid_session_passes():
    validate_session_import_dict(
        {
            "panels": [
                {
                    "id": "ReducedDimensionPlot1",
                    "kind": "ReducedDimensionPlot",
                    "parameters": {},
                    "active_selection": {"type": "lasso", "identities": ["c1"]},
                    "saved_selections": [{"type": "brush", "identities": []}],
                },
                {"id": "ColumnDataPlot1", "kind": "ColumnDataPlot", "column_selection_source": "ReducedDimensionPlot1"},
            ]
        }
    )
    validate_session_import_dict([])


def test_top_level_shape():
    assert _codes("nope") == {"SESSION_TYPE"}
    assert _codes({"label": "x"}) == {"SESSION_PANELS_MISSING"}
    assert _codes({"panels": {}}) == {"SESSION_PANELS_TYPE"}


def test_panel_issues_are_collected():
    codes = _codes(
        [
            "not a panel",
            {"id": "A", "kind": "K", "parameters": []},
            {"id": "A", "kind": "", "row_selection_source": "B", "column_selection_source": "C"},
            {"kind": "K", "row_selection_source": 3},
            {
                "id": "D",
                "kind": "K",
                "active_selection": {"type": "circle", "identities": "c1"},
                "saved_selections": "oops",
            },
        ]
    )
    assert codes == {
        "PANEL_TYPE",
        "PANEL_PARAMETERS",
        "PANEL_ID_DUPLICATE",
        "PANEL_KIND",
        "PANEL_SOURCE_BOTH",
        "PANEL_ID",
        "PANEL_SOURCE_TYPE",
        "PANEL_SELECTION_KIND",
        "PANEL_SELECTION_IDENTITIES",
        "PANEL_SELECTION_LIST",
    }

import json

import pytest

from sc_explorer.metadata_io import (
    SessionMetadata,
    load_session_metadata_from_file,
    new_session_metadata,
    normalise_session_dict,
    touch_session,
)

PANELS = [{"id": "RowDataTable1", "kind": "RowDataTable"}]


def test_to_dict_from_dict():
    session = new_session_metadata(session_id="s1", app_version="0.1.0", dataset_name="Tiny", panels=PANELS)
    session.label = "mine"
    again = SessionMetadata.from_dict(session.to_dict())
    assert again == session


def test_touch_updates_timestamp():
    session = new_session_metadata(session_id="s1", app_version="0.1.0")
    session.updated_at = "2000-01-01T00:00:00+00:00"
    touch_session(session)
    assert session.updated_at > "2000-01-01T00:00:00+00:00"


def test_normalise_accepts_three_formats():
    full = new_session_metadata(session_id="s1", app_version="0.1.0", panels=PANELS).to_dict()
    assert normalise_session_dict(full).session_id == "s1"

    bundle = normalise_session_dict({"panels": PANELS})
    assert bundle.session_id.startswith("import-")
    assert bundle.panels == PANELS

    assert normalise_session_dict(PANELS).panels == PANELS

    with pytest.raises(ValueError):
        normalise_session_dict({"figures": []})


def test_load_from_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"panels": PANELS}), encoding="utf-8")
    assert load_session_metadata_from_file(path).panels == PANELS

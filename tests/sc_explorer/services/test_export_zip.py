import io
import json
import zipfile

from sc_explorer.services.export_service import ExportService


def _names(zip_bytes: bytes):
    with zipfile.ZipFile(io.BytesIO(zip_bytes)) as zf:
        return sorted(zf.namelist()), json.loads(zf.read("session.json"))


def test_zip_contains_session_and_panel_exports(ctx):
    rd = ctx.add_panel("ReducedDimensionPlot")
    table = ctx.add_panel("ColumnDataTable", column_selection_source=rd)

    names, session = _names(ExportService(ctx).create_session_zip("s1"))

    assert names == ["panels/ColumnDataTable1.csv", "panels/ReducedDimensionPlot1.html", "session.json"]
    assert session["session_id"] == "s1"
    assert session["dataset_name"] == "Tiny"
    assert [p["id"] for p in session["panels"]] == [rd, table]


def test_failed_export_is_skipped_with_warning(ctx, monkeypatch):
    rd = ctx.add_panel("ReducedDimensionPlot")

    def boom(data, figure):
        raise RuntimeError("no kaleido")

    monkeypatch.setattr(ctx.panel(rd), "export", boom)
    names, _ = _names(ExportService(ctx).create_session_zip())

    assert names == ["WARNING.txt", "session.json"]

from __future__ import annotations

import io
import json
import logging
import zipfile
from typing import Dict, Optional

from sc_explorer import __version__
from sc_explorer.core.context import ExplorerContext
from sc_explorer.metadata_io.model import new_session_metadata

logger = logging.getLogger(__name__)


class ExportService:
    """
    Packages the current output of every panel into a ZIP bundle.

    Stateless: reads the outputs the ExplorerContext already rendered, so
    the export shows exactly what the user sees.
    """

    def __init__(self, context: ExplorerContext) -> None:
        self._context = context

    def export_panel(self, panel_id: str) -> tuple[str, bytes]:
        return self._context.export_panel(panel_id)

    def export_all(self) -> Dict[str, bytes]:
        """
        :return: file name -> content for every exportable panel. Panels whose
                 export fails are logged and skipped.
        """
        files: Dict[str, bytes] = {}
        for panel_id in self._context.panel_ids():
            panel = self._context.panel(panel_id)
            if panel.export_suffix is None:
                continue
            try:
                name, content = self._context.export_panel(panel_id)
            except Exception:
                logger.exception("panel_export_failed", extra={"panel_id": panel_id})
                continue
            files[name] = content
        return files

    def create_session_zip(self, session_id: Optional[str] = None) -> bytes:
        """
        Generates a ZIP bundle containing session.json and one file per panel
        (HTML for plots, CSV for tables).
        """
        session = new_session_metadata(
            session_id=session_id or "export",
            app_version=__version__,
            dataset_name=self._context.dataset.name,
            panels=self._context.snapshot(),
        )
        files = self.export_all()

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("session.json", json.dumps(session.to_dict(), indent=2).encode("utf-8"))
            for name, content in files.items():
                zf.writestr(f"panels/{name}", content)
            if not files and session.panels:
                zf.writestr("WARNING.txt", b"No panel outputs could be exported for this session.")

        logger.info(
            "session_exported",
            extra={"session_id": session.session_id, "n_files": len(files)},
        )
        return buf.getvalue()

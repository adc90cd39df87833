from __future__ import annotations

import json
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Sequence

from sc_explorer import __version__
from sc_explorer.metadata_io.io import normalise_session_dict
from sc_explorer.metadata_io.model import SessionMetadata, new_session_metadata, touch_session
from sc_explorer.services.storage import StorageBackend
from sc_explorer.validation.session_validation import validate_session_import_dict

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


class SessionService:
    """
    Manages saved explorer sessions.

    A session is stored as `<session_id>/session.json` holding the
    instance-store snapshot, so restoring it on the same dataset reproduces
    the same panels.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    @staticmethod
    def _path(session_id: str) -> str:
        return f"{session_id}/{SESSION_FILE}"

    def persist_session(self, session: SessionMetadata) -> None:
        data = json.dumps(session.to_dict(), indent=2).encode("utf-8")
        self.storage.write_bytes(self._path(session.session_id), data)
        logger.info(
            "session_saved",
            extra={"session_id": session.session_id, "n_panels": len(session.panels)},
        )

    def save_snapshot(
            self,
            session_id: str,
            snapshot: Sequence[Dict[str, Any]],
            *,
            dataset_name: Optional[str] = None,
            label: Optional[str] = None,
    ) -> SessionMetadata:
        """
        Save (or overwrite) a session from an InstanceStore snapshot.
        The creation time of an existing session is kept.
        """
        session = self.load_session(session_id)
        if session is None:
            session = new_session_metadata(
                session_id=session_id,
                app_version=__version__,
                dataset_name=dataset_name,
            )
        session.panels = [dict(p) for p in snapshot]
        session.dataset_name = dataset_name or session.dataset_name
        session.app_version = __version__
        if label is not None:
            session.label = str(label).strip() or None
        touch_session(session)
        self.persist_session(session)
        return session

    def load_session(self, session_id: str) -> Optional[SessionMetadata]:
        """
        Load session from storage if it exists.

        Raises:
            ValidationError: if the stored file is not a valid session
        """
        path = self._path(session_id)
        if not self.storage.exists(path):
            return None
        raw = json.loads(self.storage.read_bytes(path))
        validate_session_import_dict(raw)
        return normalise_session_dict(raw)

    def list_sessions(self) -> List[str]:
        """Ids of every stored session, sorted."""
        ids = set()
        for path in self.storage.list_files("", suffix=SESSION_FILE, recursive=True):
            parent = PurePosixPath(path).parent.as_posix()
            if parent not in ("", "."):
                ids.add(parent)
        return sorted(ids)

    def delete_session(self, session_id: str) -> bool:
        deleted = self.storage.delete(self._path(session_id))
        if deleted:
            logger.info("session_deleted", extra={"session_id": session_id})
        return deleted

    def ensure_session(
            self,
            session: Optional[SessionMetadata],
            *,
            session_id: str,
            dataset_name: Optional[str] = None,
    ) -> SessionMetadata:
        """
        Ensure a SessionMetadata exists. If creating new, persists it immediately.
        """
        if session is not None:
            return session

        # Try loading from storage first (recovery)
        loaded = self.load_session(session_id)
        if loaded is not None:
            return loaded

        new_sess = new_session_metadata(
            session_id=session_id,
            app_version=__version__,
            dataset_name=dataset_name,
        )
        self.persist_session(new_sess)
        return new_sess

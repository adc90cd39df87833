from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from sc_explorer import __version__
from .model import SessionMetadata, new_session_metadata, now_iso

logger = logging.getLogger(__name__)


def load_session_metadata_from_file(path: Path) -> SessionMetadata:
    """
    Loads the session metadata from a file path.
    """
    logger.info("Loading session metadata from %s", path)
    try:
        with path.open() as f:
            raw = json.load(f)
        return normalise_session_dict(raw)
    except Exception:
        logger.exception("Failed to load session metadata from %s", path)
        raise


def normalise_session_dict(raw: Union[Dict[str, Any], List[Dict[str, Any]]]) -> SessionMetadata:
    """
    Normalises the session metadata from a raw file.
    Supports:
      1) full session JSON: {"session_id": ..., "panels": [...]}
      2) bare bundle: {"panels": [...]}
      3) bare snapshot: [{"id": ..., "kind": ...}, ...]
    """
    # Case 1 - Already a full session
    if isinstance(raw, dict) and "session_id" in raw and "panels" in raw:
        logger.debug("Detected full session metadata format")
        return SessionMetadata.from_dict(raw)

    if isinstance(raw, dict) and isinstance(raw.get("panels"), list):
        # Case 2 - bare bundle
        logger.info("Detected bare panel bundle (n=%d)", len(raw["panels"]))
        panels = raw["panels"]
    elif isinstance(raw, list):
        # Case 3 - bare snapshot
        logger.info("Detected bare store snapshot (n=%d)", len(raw))
        panels = raw
    else:
        raise ValueError("Unknown session format (expected session_id/panels or a list of panels)")

    # Create a synthetic wrapper session
    return new_session_metadata(
        session_id=f"import-{now_iso()}",
        app_version=__version__,
        panels=[dict(p) for p in panels],
    )

from .io import load_session_metadata_from_file, normalise_session_dict
from .model import SessionMetadata, generate_session_id, new_session_metadata, now_iso, touch_session

__all__ = [
    "load_session_metadata_from_file",
    "normalise_session_dict",
    "SessionMetadata",
    "generate_session_id",
    "new_session_metadata",
    "now_iso",
    "touch_session",
]

from .annotation import RowDataAnnotator, build_annotator, safe_annotate
from .export_service import ExportService
from .session_service import SessionService
from .storage import LocalFileSystemStorage, StorageBackend

__all__ = [
    "RowDataAnnotator",
    "build_annotator",
    "safe_annotate",
    "ExportService",
    "SessionService",
    "LocalFileSystemStorage",
    "StorageBackend",
]

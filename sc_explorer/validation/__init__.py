"""
Validation helpers: structured issues for panel configuration and
session import checks.
"""

from .errors import ValidationIssue, ValidationError, PanelConfigError
from .session_validation import validate_session_import_dict

__all__ = ["ValidationIssue", "ValidationError", "PanelConfigError", "validate_session_import_dict"]

from .callbacks_panels import register_panel_callbacks
from .callbacks_session import register_session_callbacks

__all__ = ["register_panel_callbacks", "register_session_callbacks"]

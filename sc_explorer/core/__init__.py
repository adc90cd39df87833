"""
Core domain layer: instance store, mutation flags, notification bus,
dependency graph and selection primitives.

Panel base classes, the selection engine and the explorer context live in
their own modules (`base_panel`, `engine`, `context`) and are imported from
there directly.
"""

from .bus import NotificationBus
from .flags import FlagKind, MutationFlags
from .panel_config import PanelConfig
from .selection import Selection, SelectionDimension, SelectionMode, SelectionType
from .store import InstanceStore

__all__ = [
    "NotificationBus",
    "FlagKind",
    "MutationFlags",
    "PanelConfig",
    "Selection",
    "SelectionDimension",
    "SelectionMode",
    "SelectionType",
    "InstanceStore",
]

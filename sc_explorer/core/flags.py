from __future__ import annotations

from enum import Enum
from typing import Dict, List, Tuple


class FlagKind(str, Enum):
    """
    What changed on a panel.

    - NEEDS_UPDATE: output must be recomputed
    - NEEDS_CLEAN_UPDATE: output must be recomputed and the panel's selections
      were voided
    - ACTIVE_SELECTION_CHANGED: only the panel's own selections changed
    """
    NEEDS_UPDATE = "needs_update"
    NEEDS_CLEAN_UPDATE = "needs_clean_update"
    ACTIVE_SELECTION_CHANGED = "active_selection_changed"

    @property
    def is_render(self) -> bool:
        return self is not FlagKind.ACTIVE_SELECTION_CHANGED


Flag = Tuple[str, FlagKind]


class MutationFlags:
    """
    Ordered set of pending (panel_id, FlagKind) pairs.

    Raising the same flag twice before it is consumed keeps one entry, which is
    what makes repeated update requests collapse into a single recomputation.
    """

    def __init__(self) -> None:
        self._pending: Dict[Flag, None] = {}

    def add(self, panel_id: str, kind: FlagKind) -> bool:
        """Raise a flag. Returns False if it was already pending."""
        flag = (panel_id, kind)
        if flag in self._pending:
            return False
        self._pending[flag] = None
        return True

    def discard(self, flag: Flag) -> None:
        self._pending.pop(flag, None)

    def discard_panel(self, panel_id: str) -> None:
        for flag in [f for f in self._pending if f[0] == panel_id]:
            del self._pending[flag]

    def pending(self) -> List[Flag]:
        return list(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, flag: object) -> bool:
        return flag in self._pending

    def __len__(self) -> int:
        return len(self._pending)

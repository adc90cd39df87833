from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List

from .exceptions import LifecycleError

logger = logging.getLogger(__name__)


class PanelState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    INTERFACE_BUILT = "interface_built"
    OBSERVERS_BOUND = "observers_bound"
    RENDERING = "rendering"
    UPDATING = "updating"
    REMOVED = "removed"


# Allowed moves; REMOVED is reachable from every live state
TRANSITIONS: Dict[PanelState, FrozenSet[PanelState]] = {
    PanelState.UNINITIALIZED: frozenset({PanelState.CONFIGURED, PanelState.REMOVED}),
    PanelState.CONFIGURED: frozenset({PanelState.INTERFACE_BUILT, PanelState.REMOVED}),
    PanelState.INTERFACE_BUILT: frozenset({PanelState.OBSERVERS_BOUND, PanelState.REMOVED}),
    PanelState.OBSERVERS_BOUND: frozenset({PanelState.RENDERING, PanelState.REMOVED}),
    PanelState.RENDERING: frozenset({PanelState.UPDATING, PanelState.REMOVED}),
    PanelState.UPDATING: frozenset({PanelState.RENDERING, PanelState.REMOVED}),
    PanelState.REMOVED: frozenset(),
}


class PanelLifecycle:
    """
    Tracks the lifecycle state of every panel of one explorer session.

    States:
    UNINITIALIZED -> CONFIGURED -> INTERFACE_BUILT -> OBSERVERS_BOUND
    -> RENDERING <-> UPDATING -> REMOVED
    """

    def __init__(self) -> None:
        self._states: Dict[str, PanelState] = {}

    def state(self, panel_id: str) -> PanelState:
        return self._states.get(panel_id, PanelState.UNINITIALIZED)

    def advance(self, panel_id: str, target: PanelState) -> None:
        """
        Move `panel_id` to `target`.

        Raises:
            LifecycleError: if the move is not in TRANSITIONS
        """
        current = self.state(panel_id)
        if target not in TRANSITIONS[current]:
            raise LifecycleError(
                f"Panel '{panel_id}' can't move from {current.value} to {target.value}"
            )
        self._states[panel_id] = target
        logger.debug(
            "panel_state_changed",
            extra={"panel_id": panel_id, "from": current.value, "to": target.value},
        )

    def is_live(self, panel_id: str) -> bool:
        return self.state(panel_id) in (PanelState.RENDERING, PanelState.UPDATING)

    def forget(self, panel_id: str) -> None:
        """Drop a removed panel's entry so its id can be reused."""
        if self.state(panel_id) is not PanelState.REMOVED:
            raise LifecycleError(f"Panel '{panel_id}' must be removed before it is forgotten")
        del self._states[panel_id]

    def panels_in(self, state: PanelState) -> List[str]:
        return [pid for pid, st in self._states.items() if st is state]

    def reset(self) -> None:
        self._states.clear()

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Set

from .exceptions import TrackingError
from .flags import Flag, FlagKind, MutationFlags
from .store import InstanceStore

logger = logging.getLogger(__name__)

Tracker = Callable[[str], None]


class NotificationBus:
    """
    Single-threaded cooperative notification layer.

    Handlers mutate the InstanceStore, raise flags here, and the event loop calls
    `flush()` once per external event. A flush delivers every pending flag to
    the trackers registered for that panel before returning.

    Design Notes:
    - Trackers receive only the panel id and must read the store: flags fire
      after the mutation, so captured parameter values would be stale
    - NEEDS_UPDATE and NEEDS_CLEAN_UPDATE share the render trackers; a panel
      flagged with both in one round is rendered once
    - A flag re-raised for a pair already delivered in the current round stays
      pending for the next round rather than looping
    - (De)registering trackers is refused while a round is in progress
    """

    def __init__(self, store: InstanceStore) -> None:
        self._store = store
        self._flags = MutationFlags()
        self._trackers: Dict[str, List[Tracker]] = defaultdict(list)
        self._selection_trackers: Dict[str, List[Tracker]] = defaultdict(list)
        self._propagating = False

    @property
    def propagating(self) -> bool:
        return self._propagating

    def pending(self) -> List[Flag]:
        return self._flags.pending()

    # ------------------------------------------------------------------
    # Tracker registration
    # ------------------------------------------------------------------
    def track(self, panel_id: str, callback: Tracker) -> None:
        """Re-run `callback(panel_id)` whenever the panel needs a (clean) update."""
        self._ensure_idle("track")
        self._trackers[panel_id].append(callback)

    def track_selection(self, panel_id: str, callback: Tracker) -> None:
        """Re-run `callback(panel_id)` whenever the panel's own selections change."""
        self._ensure_idle("track_selection")
        self._selection_trackers[panel_id].append(callback)

    def untrack(self, panel_id: str) -> None:
        """Drop every tracker of a panel together with its pending flags."""
        self._ensure_idle("untrack")
        self._trackers.pop(panel_id, None)
        self._selection_trackers.pop(panel_id, None)
        self._flags.discard_panel(panel_id)

    def tracker_count(self, panel_id: str) -> int:
        return len(self._trackers.get(panel_id, ())) + len(self._selection_trackers.get(panel_id, ()))

    def _ensure_idle(self, operation: str) -> None:
        if self._propagating:
            raise TrackingError(f"{operation}() called while propagation is in progress")

    # ------------------------------------------------------------------
    # Flagging API
    # ------------------------------------------------------------------
    def request_update(self, panel_id: str) -> None:
        self._raise(panel_id, FlagKind.NEEDS_UPDATE)

    def request_clean_update(self, panel_id: str) -> None:
        """
        Void the panel's active and saved selections and flag it for rendering.

        Every panel receiving selections from `panel_id` is flagged for an
        update as well, since what it receives no longer exists.
        """
        cleared = self._store.clear_selections(panel_id)
        self._raise(panel_id, FlagKind.NEEDS_CLEAN_UPDATE)

        dependents = [d for d in self._store.dependents(panel_id) if d != panel_id]
        for dependent in dependents:
            self.request_update(dependent)

        logger.debug(
            "clean_update_requested",
            extra={
                "panel_id": panel_id,
                "selections_cleared": cleared,
                "dependents": dependents,
            },
        )

    def request_active_selection_update(self, panel_id: str) -> None:
        self._raise(panel_id, FlagKind.ACTIVE_SELECTION_CHANGED)

    def _raise(self, panel_id: str, kind: FlagKind) -> None:
        # Fail fast on unknown ids, same as the store read path
        self._store.get(panel_id)
        self._flags.add(panel_id, kind)

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------
    def flush(self) -> List[Flag]:
        """
        Run one propagation round to completion.

        :return: the (panel_id, FlagKind) pairs delivered, in delivery order
        """
        if self._propagating:
            raise TrackingError("flush() re-entered during propagation")

        delivered: List[Flag] = []
        seen: Set[Flag] = set()
        rendered: Set[str] = set()

        self._propagating = True
        try:
            while True:
                batch = [flag for flag in self._flags.pending() if flag not in seen]
                if not batch:
                    break

                for flag in batch:
                    if flag not in self._flags:
                        continue
                    panel_id, kind = flag
                    seen.add(flag)

                    if kind.is_render and panel_id in rendered:
                        # Raised again after this round's render: next round
                        continue
                    self._flags.discard(flag)

                    if kind.is_render:
                        rendered.add(panel_id)
                        # The sibling render flag is covered by this delivery
                        for other in (FlagKind.NEEDS_UPDATE, FlagKind.NEEDS_CLEAN_UPDATE):
                            sibling = (panel_id, other)
                            if sibling != flag and sibling in self._flags:
                                self._flags.discard(sibling)
                                seen.add(sibling)
                        trackers = self._trackers.get(panel_id, ())
                    else:
                        trackers = self._selection_trackers.get(panel_id, ())

                    self._deliver(flag, list(trackers))
                    delivered.append(flag)
        finally:
            self._propagating = False

        if delivered:
            logger.debug(
                "propagation_round_complete",
                extra={
                    "n_delivered": len(delivered),
                    "n_deferred": len(self._flags),
                },
            )
        return delivered

    def _deliver(self, flag: Flag, trackers: List[Tracker]) -> None:
        panel_id, kind = flag
        for callback in trackers:
            try:
                callback(panel_id)
            except Exception:
                # One failing panel must not stop the rest of the round
                logger.exception(
                    "tracker_failed",
                    extra={"panel_id": panel_id, "flag": kind.value},
                )

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Set, Tuple

from .base_panel import BasePanel
from .bus import NotificationBus
from .capabilities import (
    PARAM_DYNAMIC_SOURCE,
    PARAM_SAVED_INDEX,
    PARAM_SELECTED,
    PARAM_SINGLE_SOURCE,
    MultiSelectionConsumer,
    MultiSelectionTransmitter,
    SingleSelectionConsumer,
    SingleSelectionTransmitter,
)
from .exceptions import SelectionCycleError, SelectionDimensionError, SelectionError
from .graph import would_create_cycle
from .selection import Selection, SelectionDimension, SelectionMode, SelectionType
from .store import InstanceStore

logger = logging.getLogger(__name__)

PanelLookup = Callable[[str], BasePanel]


@dataclass(frozen=True)
class PanelScope:
    """
    What a panel may show right now.

    - universe: identities along the panel's dimension, in dataset order; already
      narrowed to the incoming selection when the panel is restricted
    - restricted: True if the universe was narrowed by an upstream selection
    - highlight: incoming identities for an unrestricted panel, else None
    """
    universe: Tuple[str, ...]
    restricted: bool = False
    highlight: Optional[FrozenSet[str]] = None


class SelectionEngine:
    """
    Computes and transmits selections between panels.

    Every mutation goes through the InstanceStore and every notification
    through the NotificationBus; the engine decides who must be told what.

    Propagation of a changed multiple selection on panel P:
    1. P is flagged ACTIVE_SELECTION_CHANGED
    2. consumers with `dynamic_source` are rewired to P when that is safe
    3. each panel Q receiving from P (store order) gets exactly one signal:
       a clean update if Q is invalidated by P and holds selections of its own,
       else a plain update

    This is a one-level fan-out; further levels are reached only through the
    clean-update cascade, so a wiring cycle can't make it loop.
    """

    def __init__(self, store: InstanceStore, bus: NotificationBus, panels: PanelLookup) -> None:
        self._store = store
        self._bus = bus
        self._panels = panels

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def scope(self, panel_id: str) -> PanelScope:
        return self._scope(panel_id, frozenset())

    def _scope(self, panel_id: str, visiting: FrozenSet[str]) -> PanelScope:
        cfg = self._store.get(panel_id)
        panel = self._panels(panel_id)
        universe = tuple(panel.universe())

        source_id = cfg.selection_source
        if (
            source_id is None
            or source_id not in self._store
            or source_id in visiting
            or not isinstance(panel, MultiSelectionConsumer)
        ):
            return PanelScope(universe=universe)

        incoming = self._received_identities(panel_id, source_id, visiting | {panel_id})
        if incoming is None:
            return PanelScope(universe=universe)

        members = set(incoming)
        if panel.is_restricted_by(cfg, source_id):
            return PanelScope(
                universe=tuple(ident for ident in universe if ident in members),
                restricted=True,
            )
        return PanelScope(universe=universe, highlight=frozenset(members))

    def _received_identities(
            self,
            consumer_id: str,
            source_id: str,
            visiting: FrozenSet[str],
    ) -> Optional[List[str]]:
        """
        Identities `consumer_id` receives from `source_id` according to its
        selection mode. None means the source has nothing to transmit.
        """
        consumer_cfg = self._store.get(consumer_id)
        consumer = self._panels(consumer_id)
        source_cfg = self._store.get(source_id)
        source = self._panels(source_id)
        if not isinstance(source, MultiSelectionTransmitter):
            return None

        mode = consumer.selection_mode(consumer_cfg)
        if mode is SelectionMode.ACTIVE:
            chosen = [source_cfg.active_selection]
        elif mode is SelectionMode.UNION:
            chosen = [source_cfg.active_selection, *source_cfg.saved_selections]
        else:
            index = consumer_cfg.parameters.get(PARAM_SAVED_INDEX, 0)
            saved = source_cfg.saved_selections
            chosen = [saved[index]] if 0 <= index < len(saved) else []

        chosen = [sel for sel in chosen if sel is not None]
        if not chosen:
            return None

        source_scope = self._scope(source_id, visiting)
        members: Set[str] = set()
        for sel in chosen:
            members.update(source.selection_identities(sel, source_scope))
        return [ident for ident in source_scope.universe if ident in members]

    def active_selection_identities(self, panel_id: str) -> List[str]:
        panel = self._require_transmitter(panel_id)
        return panel.active_selection_identities(self._store.get(panel_id), self.scope(panel_id))

    def available_count(self, panel_id: str) -> int:
        panel = self._require_transmitter(panel_id)
        return panel.available_count(self._store.get(panel_id), self.scope(panel_id))

    def is_restricted_by(self, consumer_id: str, source_id: str) -> bool:
        panel = self._panels(consumer_id)
        if not isinstance(panel, MultiSelectionConsumer):
            return False
        return panel.is_restricted_by(self._store.get(consumer_id), source_id)

    def single_selection(self, panel_id: str) -> Optional[str]:
        panel = self._panels(panel_id)
        if not isinstance(panel, SingleSelectionTransmitter):
            return None
        return panel.single_selection(self._store.get(panel_id))

    def _require_transmitter(self, panel_id: str) -> MultiSelectionTransmitter:
        panel = self._panels(panel_id)
        if not isinstance(panel, MultiSelectionTransmitter):
            raise SelectionError(f"Panel '{panel_id}' does not transmit multiple selections")
        return panel

    # ------------------------------------------------------------------
    # Multiple selections
    # ------------------------------------------------------------------
    def set_active_selection(
            self,
            panel_id: str,
            identities: Iterable[str],
            selection_type: SelectionType = SelectionType.LASSO,
            payload: Optional[dict] = None,
    ) -> None:
        self._require_transmitter(panel_id)
        selection = Selection.of(identities, type=selection_type, payload=payload)
        current = self._store.get(panel_id).active_selection
        new = selection if len(selection) else None
        if current == new:
            return
        self._store.set_active_selection(panel_id, new)
        self.propagate(panel_id)

    def clear_active_selection(self, panel_id: str) -> None:
        self._require_transmitter(panel_id)
        if self._store.get(panel_id).active_selection is None:
            return
        self._store.set_active_selection(panel_id, None)
        self.propagate(panel_id)

    def save_active_selection(self, panel_id: str) -> Selection:
        self._require_transmitter(panel_id)
        saved = self._store.save_active_selection(panel_id)
        self._propagate_saved_change(panel_id)
        return saved

    def delete_saved_selection(self, panel_id: str, index: int = -1) -> Selection:
        self._require_transmitter(panel_id)
        deleted = self._store.delete_saved_selection(panel_id, index)
        self._propagate_saved_change(panel_id)
        return deleted

    def _propagate_saved_change(self, panel_id: str) -> None:
        # Consumers reading only the active selection see no change
        self._bus.request_active_selection_update(panel_id)
        for dependent in self._store.dependents(panel_id):
            consumer = self._panels(dependent)
            if not isinstance(consumer, MultiSelectionConsumer):
                continue
            if consumer.selection_mode(self._store.get(dependent)) is SelectionMode.ACTIVE:
                continue
            self._notify_dependent(dependent, panel_id)

    def propagate(self, panel_id: str) -> List[str]:
        """
        Tell everyone downstream of `panel_id` that its active selection changed.

        :return: the ids of the notified dependents, in notification order
        """
        self._bus.request_active_selection_update(panel_id)
        rewired = self._rewire_dynamic_consumers(panel_id)

        visited: Set[str] = {panel_id}
        notified: List[str] = []
        for dependent in self._store.dependents(panel_id):
            if dependent in visited:
                continue
            visited.add(dependent)
            # Saved-mode consumers never read the active selection
            if dependent not in rewired and self._reads_saved_only(dependent):
                continue
            self._notify_dependent(dependent, panel_id)
            notified.append(dependent)

        logger.debug(
            "selection_propagated",
            extra={"panel_id": panel_id, "dependents": notified},
        )
        return notified

    def _notify_dependent(self, dependent_id: str, source_id: str) -> None:
        cfg = self._store.get(dependent_id)
        panel = self._panels(dependent_id)
        invalidated = isinstance(panel, MultiSelectionConsumer) and panel.is_invalidated_by(cfg, source_id)
        if invalidated and cfg.has_selections():
            self._bus.request_clean_update(dependent_id)
        else:
            self._bus.request_update(dependent_id)

    def _reads_saved_only(self, panel_id: str) -> bool:
        consumer = self._panels(panel_id)
        return (
            isinstance(consumer, MultiSelectionConsumer)
            and consumer.selection_mode(self._store.get(panel_id)) is SelectionMode.SAVED
        )

    def _rewire_dynamic_consumers(self, panel_id: str) -> Set[str]:
        """Point dynamic consumers at `panel_id`; returns the ids that moved."""
        rewired: Set[str] = set()
        source = self._panels(panel_id)
        if not isinstance(source, MultiSelectionTransmitter):
            return rewired
        if self._store.get(panel_id).active_selection is None:
            return rewired

        dimension = source.transmit_dimension
        for cfg in self._store:
            if cfg.id == panel_id or not cfg.parameters.get(PARAM_DYNAMIC_SOURCE, False):
                continue
            consumer = self._panels(cfg.id)
            if not isinstance(consumer, MultiSelectionConsumer) or consumer.consume_dimension is not dimension:
                continue
            if cfg.source_for(dimension) == panel_id:
                continue
            if would_create_cycle(self._store, cfg.id, panel_id):
                logger.info(
                    "dynamic_source_skipped",
                    extra={"panel_id": cfg.id, "source": panel_id, "reason": "cycle"},
                )
                continue
            self._store.set_source(cfg.id, dimension, panel_id)
            rewired.add(cfg.id)
            logger.info("dynamic_source_rewired", extra={"panel_id": cfg.id, "source": panel_id})
        return rewired

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def check_source(self, consumer_id: str, dimension: SelectionDimension, source_id: Optional[str]) -> None:
        """
        Raise if `source_id` can't feed `consumer_id` along `dimension`.

        Raises:
            SelectionDimensionError: consumer or source don't handle `dimension`
            SelectionCycleError: the new edge would close a loop
        """
        consumer = self._panels(consumer_id)
        if not isinstance(consumer, MultiSelectionConsumer) or consumer.consume_dimension is not dimension:
            raise SelectionDimensionError(
                f"Panel '{consumer_id}' does not receive {dimension.value} selections"
            )
        if source_id is None:
            return

        self._store.get(source_id)
        source = self._panels(source_id)
        if not isinstance(source, MultiSelectionTransmitter) or source.transmit_dimension is not dimension:
            raise SelectionDimensionError(
                f"Panel '{source_id}' does not transmit {dimension.value} selections"
            )
        if would_create_cycle(self._store, consumer_id, source_id):
            raise SelectionCycleError(consumer_id, source_id)

    def connect(self, consumer_id: str, dimension: SelectionDimension, source_id: Optional[str]) -> bool:
        """
        Make `source_id` (or nothing, for None) the consumer's selection source.

        :return: False if the wiring was already in place
        """
        self.check_source(consumer_id, dimension, source_id)
        cfg = self._store.get(consumer_id)
        if cfg.source_for(dimension) == source_id:
            return False

        previous = cfg.selection_source
        self._store.set_source(consumer_id, dimension, source_id)

        # The universe may have changed under the consumer's own selections
        consumer = self._panels(consumer_id)
        if consumer.is_restricted_by(cfg, source_id or previous or "") and cfg.has_selections():
            self._bus.request_clean_update(consumer_id)
        else:
            self._bus.request_update(consumer_id)

        logger.info(
            "selection_source_changed",
            extra={
                "panel_id": consumer_id,
                "dimension": dimension.value,
                "source": source_id,
                "previous": previous,
            },
        )
        return True

    # ------------------------------------------------------------------
    # Single selections
    # ------------------------------------------------------------------
    def check_single_source(self, consumer_id: str, source_id: Optional[str]) -> None:
        consumer = self._panels(consumer_id)
        if not isinstance(consumer, SingleSelectionConsumer):
            raise SelectionDimensionError(f"Panel '{consumer_id}' does not receive single selections")
        if source_id is None:
            return
        self._store.get(source_id)
        source = self._panels(source_id)
        if (
            not isinstance(source, SingleSelectionTransmitter)
            or source.single_transmit_dimension is not consumer.single_consume_dimension
        ):
            raise SelectionDimensionError(
                f"Panel '{source_id}' does not transmit single "
                f"{consumer.single_consume_dimension.value} selections"
            )
        if source_id == consumer_id:
            raise SelectionCycleError(consumer_id, source_id)

    def connect_single(self, consumer_id: str, source_id: Optional[str]) -> bool:
        self.check_single_source(consumer_id, source_id)
        cfg = self._store.get(consumer_id)
        if cfg.parameters.get(PARAM_SINGLE_SOURCE) == source_id:
            return False
        self._store.set(consumer_id, PARAM_SINGLE_SOURCE, source_id)

        identity = self.single_selection(source_id) if source_id is not None else None
        if identity is not None:
            self._apply_single_selection(consumer_id, identity)
        else:
            self._bus.request_update(consumer_id)
        return True

    def set_single_selection(self, panel_id: str, identity: Optional[str]) -> List[str]:
        """
        Change the identity selected on a single-selection transmitter and hand it
        to every panel listening to it.

        :return: ids of the consumers that were updated
        """
        panel = self._panels(panel_id)
        if not isinstance(panel, SingleSelectionTransmitter):
            raise SelectionError(f"Panel '{panel_id}' does not transmit single selections")

        if identity is not None:
            identity = str(identity)
            valid = panel.dataset.valid_sets()
            names = valid.rows if panel.single_transmit_dimension is SelectionDimension.ROW else valid.columns
            if identity not in names:
                raise SelectionDimensionError(
                    f"'{identity}' is not a {panel.single_transmit_dimension.value} of the dataset"
                )

        if self._store.get(panel_id).parameters.get(PARAM_SELECTED) == identity:
            return []

        self._store.set(panel_id, PARAM_SELECTED, identity)
        self._bus.request_active_selection_update(panel_id)

        if identity is None:
            return []

        consumers = self._store.single_selection_dependents(panel_id)
        for consumer_id in consumers:
            self._apply_single_selection(consumer_id, identity)
        return consumers

    def _apply_single_selection(self, consumer_id: str, identity: str) -> None:
        consumer = self._panels(consumer_id)
        if not isinstance(consumer, SingleSelectionConsumer):
            return
        cfg = self._store.get(consumer_id)
        updates = {
            name: value
            for name, value in consumer.on_single_selection(cfg, identity).items()
            if cfg.parameters.get(name) != value
        }
        if not updates:
            return

        self._store.update(consumer_id, updates)
        if set(updates) & consumer.protected_parameters():
            self._bus.request_clean_update(consumer_id)
        else:
            self._bus.request_update(consumer_id)

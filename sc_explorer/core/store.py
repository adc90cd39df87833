from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from .exceptions import PanelNotFoundError, SelectionError
from .panel_config import PanelConfig
from .selection import Selection, SelectionDimension

logger = logging.getLogger(__name__)

SINGLE_SOURCE_PARAM = "single_selection_source"


class InstanceStore:
    """
    Ordered mapping of panel id -> PanelConfig; the single source of truth.

    Purpose:
    - Every panel reads its configuration from here and every write goes through
      the methods below, so any holder of a reference observes later mutations
    - Writes never trigger side effects; callers flag the change on the
      NotificationBus themselves

    Design Notes:
    - Insertion order is preserved and used as the tie-break for propagation
    - `snapshot()`/`restore()` work on plain dicts so sessions can be stored as JSON
    """

    def __init__(self) -> None:
        self._configs: Dict[str, PanelConfig] = {}

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def __contains__(self, panel_id: object) -> bool:
        return panel_id in self._configs

    def __iter__(self) -> Iterator[PanelConfig]:
        return iter(list(self._configs.values()))

    def __len__(self) -> int:
        return len(self._configs)

    def ids(self) -> List[str]:
        return list(self._configs)

    def get(self, panel_id: str) -> PanelConfig:
        """
        :param panel_id: the id of the panel
        :return: the live PanelConfig (not a copy)

        Raises:
            PanelNotFoundError: if no panel with this id exists
        """
        try:
            return self._configs[panel_id]
        except KeyError:
            raise PanelNotFoundError(panel_id) from None

    def dependents(
            self,
            panel_id: str,
            dimension: Optional[SelectionDimension] = None,
    ) -> List[str]:
        """
        Ids of panels whose row/column selection source is `panel_id`, in store order.
        Restrict to one dimension with `dimension`.
        """
        out: List[str] = []
        for cfg in self._configs.values():
            if dimension is None:
                if cfg.selection_source == panel_id:
                    out.append(cfg.id)
            elif cfg.source_for(dimension) == panel_id:
                out.append(cfg.id)
        return out

    def single_selection_dependents(self, panel_id: str) -> List[str]:
        return [
            cfg.id
            for cfg in self._configs.values()
            if cfg.parameters.get(SINGLE_SOURCE_PARAM) == panel_id
        ]

    def next_id(self, kind: str) -> str:
        """Next free '<kind><n>' id, counting up from the highest existing suffix."""
        pattern = re.compile(rf"^{re.escape(kind)}(\d+)$")
        highest = 0
        for panel_id in self._configs:
            match = pattern.match(panel_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{kind}{highest + 1}"

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def add(self, config: PanelConfig) -> None:
        if config.id in self._configs:
            raise ValueError(f"Panel '{config.id}' already exists")
        self._configs[config.id] = config

    def set(self, panel_id: str, name: str, value: Any) -> None:
        """Replace a single parameter. Callers must signal the update separately."""
        self.get(panel_id).parameters[name] = value

    def update(self, panel_id: str, values: Mapping[str, Any]) -> None:
        self.get(panel_id).parameters.update(values)

    def set_source(
            self,
            panel_id: str,
            dimension: SelectionDimension,
            source_id: Optional[str],
    ) -> None:
        """
        Point the panel's selection source along `dimension` at `source_id`.
        The other dimension is cleared: a panel never has both sources.
        """
        cfg = self.get(panel_id)
        if dimension is SelectionDimension.ROW:
            cfg.row_selection_source = source_id
            cfg.column_selection_source = None
        elif dimension is SelectionDimension.COLUMN:
            cfg.column_selection_source = source_id
            cfg.row_selection_source = None
        else:
            cfg.row_selection_source = None
            cfg.column_selection_source = None

    def set_active_selection(self, panel_id: str, selection: Optional[Selection]) -> None:
        # An empty selection is no selection
        if selection is not None and len(selection) == 0:
            selection = None
        self.get(panel_id).active_selection = selection

    def save_active_selection(self, panel_id: str) -> Selection:
        cfg = self.get(panel_id)
        if cfg.active_selection is None:
            raise SelectionError(f"Panel '{panel_id}' has no active selection to save")
        saved = cfg.active_selection
        cfg.saved_selections.append(saved)
        cfg.selection_history.append(saved)
        return saved

    def delete_saved_selection(self, panel_id: str, index: int = -1) -> Selection:
        cfg = self.get(panel_id)
        if not cfg.saved_selections:
            raise SelectionError(f"Panel '{panel_id}' has no saved selections")
        try:
            return cfg.saved_selections.pop(index)
        except IndexError:
            raise SelectionError(
                f"Panel '{panel_id}' has no saved selection at index {index}"
            ) from None

    def clear_selections(self, panel_id: str) -> bool:
        """Drop active and saved selections. Returns True if anything was cleared."""
        cfg = self.get(panel_id)
        had_any = cfg.has_selections()
        cfg.active_selection = None
        cfg.saved_selections = []
        return had_any

    def remove(self, panel_id: str) -> List[str]:
        """
        Remove a panel and clear every reference to it.

        :return: ids of panels that referenced the removed panel (row/column or
                 single-selection source), in store order
        """
        self.get(panel_id)
        del self._configs[panel_id]

        affected: List[str] = []
        for cfg in self._configs.values():
            touched = False
            if cfg.row_selection_source == panel_id:
                cfg.row_selection_source = None
                touched = True
            if cfg.column_selection_source == panel_id:
                cfg.column_selection_source = None
                touched = True
            if cfg.parameters.get(SINGLE_SOURCE_PARAM) == panel_id:
                cfg.parameters[SINGLE_SOURCE_PARAM] = None
                touched = True
            if touched:
                affected.append(cfg.id)

        logger.debug(
            "panel_removed_from_store",
            extra={"panel_id": panel_id, "dangling_refs_cleared": affected},
        )
        return affected

    def clear(self) -> None:
        self._configs.clear()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> List[Dict[str, Any]]:
        """Full ordered sequence of configs as JSON-serialisable dicts."""
        return [cfg.to_dict() for cfg in self._configs.values()]

    def restore(self, snapshot: Sequence[Mapping[str, Any]]) -> None:
        """Rebuild the store from `snapshot()` output, replacing current contents."""
        configs = [PanelConfig.from_dict(dict(raw)) for raw in snapshot]
        ids = [c.id for c in configs]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate panel ids in snapshot: {ids}")
        self._configs = {c.id: c for c in configs}

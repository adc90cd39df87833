from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .selection import Selection, SelectionDimension, SelectionType


@dataclass
class PanelConfig:
    """
    Configuration record ("memory") of one panel instance.

    Fields:

    - id: stable identifier, e.g. "ReducedDimensionPlot1"; never changes
    - kind: tag resolved through the PanelRegistry to the panel's behaviour
    - parameters: full configuration surface of the panel; only written
      through InstanceStore so every holder sees the same values
    - row_selection_source / column_selection_source: id of the upstream
      transmitter along rows/columns; at most one of the two is set
    - active_selection: the live, user-editable multiple selection
    - saved_selections: frozen past selections, deleted one whole entry at a time
    - selection_history: append-only record of every saved selection
    """

    id: str
    kind: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    row_selection_source: Optional[str] = None
    column_selection_source: Optional[str] = None

    active_selection: Optional[Selection] = None
    saved_selections: List[Selection] = field(default_factory=list)
    selection_history: List[Selection] = field(default_factory=list)

    @property
    def selection_type(self) -> SelectionType:
        if self.active_selection is None:
            return SelectionType.NONE
        return self.active_selection.type

    @property
    def selection_source(self) -> Optional[str]:
        return self.row_selection_source or self.column_selection_source

    @property
    def source_dimension(self) -> SelectionDimension:
        if self.row_selection_source is not None:
            return SelectionDimension.ROW
        if self.column_selection_source is not None:
            return SelectionDimension.COLUMN
        return SelectionDimension.NONE

    def source_for(self, dimension: SelectionDimension) -> Optional[str]:
        if dimension is SelectionDimension.ROW:
            return self.row_selection_source
        if dimension is SelectionDimension.COLUMN:
            return self.column_selection_source
        return None

    def has_selections(self) -> bool:
        return self.active_selection is not None or bool(self.saved_selections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "parameters": copy.deepcopy(self.parameters),
            "row_selection_source": self.row_selection_source,
            "column_selection_source": self.column_selection_source,
            "active_selection": (
                self.active_selection.to_dict() if self.active_selection is not None else None
            ),
            "saved_selections": [s.to_dict() for s in self.saved_selections],
            "selection_history": [s.to_dict() for s in self.selection_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PanelConfig:
        active = data.get("active_selection")
        return cls(
            id=data["id"],
            kind=data["kind"],
            parameters=copy.deepcopy(dict(data.get("parameters") or {})),
            row_selection_source=data.get("row_selection_source"),
            column_selection_source=data.get("column_selection_source"),
            active_selection=Selection.from_dict(active) if active else None,
            saved_selections=[Selection.from_dict(s) for s in data.get("saved_selections") or []],
            selection_history=[Selection.from_dict(s) for s in data.get("selection_history") or []],
        )

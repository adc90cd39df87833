from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class SelectionDimension(str, Enum):
    """
    Axis a selection refers to.

    Rows are features (AnnData `var`), columns are cells (AnnData `obs`).
    """
    NONE = "none"
    ROW = "row"
    COLUMN = "column"


class SelectionType(str, Enum):
    """How the live selection on a transmitting panel was drawn."""
    NONE = "none"
    BRUSH = "brush"
    LASSO = "lasso"
    ROWS = "rows"


class SelectionMode(str, Enum):
    """
    Which of the source's selections a consumer receives.

    - ACTIVE: the live selection only
    - UNION: live selection plus every saved selection
    - SAVED: one saved selection, picked by the consumer's `saved_index`
    """
    ACTIVE = "active"
    UNION = "union"
    SAVED = "saved"


@dataclass(frozen=True)
class Selection:
    """
    A multiple selection made on a transmitting panel.

    - type: how it was made (brush/lasso on plots, ROWS on tables)
    - identities: the row or column names it covers, in selection order
    - payload: kind-specific extras (e.g. brush coordinates); opaque to the core
    """
    type: SelectionType
    identities: Tuple[str, ...]
    payload: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def of(
            cls,
            identities: Iterable[Any],
            type: SelectionType = SelectionType.LASSO,
            payload: Optional[Dict[str, Any]] = None,
    ) -> Selection:
        # De-duplicate while keeping the order the user picked
        seen: Dict[str, None] = {}
        for ident in identities:
            seen.setdefault(str(ident), None)
        return cls(type=SelectionType(type), identities=tuple(seen), payload=payload)

    def __len__(self) -> int:
        return len(self.identities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "identities": list(self.identities),
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Selection:
        return cls.of(
            data.get("identities", []),
            type=SelectionType(data.get("type", SelectionType.LASSO.value)),
            payload=data.get("payload"),
        )

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_UI_TITLE = "Single-Cell Explorer"

# Used when global.json lists no `initial_panels`
DEFAULT_PANELS: List[Dict[str, Any]] = [
    {"kind": "ReducedDimensionPlot"},
    {"kind": "ColumnDataPlot"},
    {"kind": "FeatureAssayPlot"},
    {"kind": "RowDataTable"},
    {"kind": "ColumnDataTable"},
    {"kind": "HeatmapPlot"},
]


@dataclass
class DatasetConfig:
    """
    Parsed `dataset` block of global.json.
    """
    raw: Dict[str, Any]
    source_path: Path

    @property
    def name(self) -> str:
        return self.raw.get("name", self.path.stem)

    @property
    def path(self) -> Path:
        for key in ("path", "file", "file_path"):
            if self.raw.get(key):
                return Path(self.raw[key])
        raise KeyError("Dataset config needs a 'path'")

    @property
    def embedding_key(self) -> Optional[str]:
        return self.raw.get("embedding_key")

    @property
    def annotation_column(self) -> Optional[str]:
        return self.raw.get("annotation_column")

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], source_path: Path) -> DatasetConfig:
        return cls(raw=raw, source_path=source_path)


@dataclass
class ExplorerConfig:
    ui_title: str
    dataset: DatasetConfig
    initial_panels: List[Dict[str, Any]] = field(default_factory=lambda: [dict(p) for p in DEFAULT_PANELS])
    data_root: Optional[Path] = None
    sessions_dir: Optional[Path] = None

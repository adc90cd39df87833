from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from sc_explorer.config.model import DEFAULT_PANELS, DEFAULT_UI_TITLE, DatasetConfig, ExplorerConfig
from sc_explorer.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def _resolve(root: Path, raw: Optional[str]) -> Optional[Path]:
    # Absolute paths are used as-is, relative ones resolve against the config root
    if raw is None:
        return None
    path = Path(raw)
    if path.is_absolute():
        return path
    return (root / path).resolve()


def load_explorer_config(root: Path) -> ExplorerConfig:
    """
    Load configuration from a directory.

    Expected structure:

        root/
            global.json

    global.json keys:

    - ui_title: title for UI, defaults to 'Single-Cell Explorer'
    - dataset: {"path": ..., "name": ..., "embedding_key": ..., "annotation_column": ...}
    - initial_panels: list of panel entries ({"kind": ..., "parameters": {...}, ...});
                      defaults to DEFAULT_PANELS
    - data_root: root directory for relative dataset paths
    - sessions_dir: where saved sessions live, defaults to '<root>/sessions'

    :param root: Directory containing 'global.json'.
    :return: An ExplorerConfig instance.
    :raises FileNotFoundError: if global.json does not exist.
    :raises ConfigError: if the file is not valid JSON or lacks a dataset block.
    """
    root = Path(root)
    logger.info("Loading explorer config", extra={"config_root": str(root)})

    global_path = root / "global.json"
    if not global_path.is_file():
        raise FileNotFoundError(f"File not found at {global_path}")

    try:
        with global_path.open() as f:
            raw_global = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{global_path} is not valid JSON: {e}") from e

    raw_dataset = raw_global.get("dataset")
    if not isinstance(raw_dataset, dict):
        raise ConfigError(f"{global_path} has no 'dataset' block")
    dataset = DatasetConfig.from_raw(raw_dataset, source_path=global_path)
    try:
        dataset.path
    except KeyError as e:
        raise ConfigError(f"{global_path}: {e.args[0]}") from None

    initial_panels = raw_global.get("initial_panels")
    if initial_panels is None:
        initial_panels = [dict(p) for p in DEFAULT_PANELS]
    elif not isinstance(initial_panels, list) or not all(
            isinstance(p, dict) and "kind" in p for p in initial_panels
    ):
        raise ConfigError("'initial_panels' must be a list of objects with a 'kind'")

    return ExplorerConfig(
        ui_title=raw_global.get("ui_title", DEFAULT_UI_TITLE),
        dataset=dataset,
        initial_panels=initial_panels,
        data_root=_resolve(root, raw_global.get("data_root")),
        sessions_dir=_resolve(root, raw_global.get("sessions_dir", "sessions")),
    )

from .loader import load_explorer_config
from .model import DEFAULT_PANELS, DatasetConfig, ExplorerConfig

__all__ = ["load_explorer_config", "DEFAULT_PANELS", "DatasetConfig", "ExplorerConfig"]

from .build_layout import build_layout
from .build_panel_card import build_panel_card, build_panel_grid

__all__ = ["build_layout", "build_panel_card", "build_panel_grid"]

"""
Top-level package for the linked-panel single-cell explorer.

This package exposes the core architecture (store, notification bus,
selection engine), the panel kinds and the Dash UI adapters.
Most code should import from submodules such as:
    sc_explorer.core
    sc_explorer.views
    sc_explorer.ui
"""

__version__ = "0.1.0"

__all__: list[str] = ["__version__"]

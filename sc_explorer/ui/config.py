from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sc_explorer.config.model import ExplorerConfig
from sc_explorer.core.context import ExplorerContext
from sc_explorer.services.export_service import ExportService
from sc_explorer.services.session_service import SessionService


@dataclass
class AppConfig:
    """
    Everything the layout and callbacks need, passed in explicitly.

    `lock` serialises callbacks: the ExplorerContext is single-threaded, and a
    threaded server may run two callbacks at once.
    """
    config_root: Path
    explorer_config: ExplorerConfig
    context: ExplorerContext
    session_service: Optional[SessionService] = None
    export_service: Optional[ExportService] = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def validate(self) -> None:
        """Ensure all required services are attached before the app starts."""
        if self.session_service is None:
            raise RuntimeError("AppConfig.session_service must be initialized.")
        if self.export_service is None:
            raise RuntimeError("AppConfig.export_service must be initialized.")

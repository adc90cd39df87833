from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT_ENV = "SC_EXPLORER_LOG_FORMAT"
LOG_LEVEL_ENV = "SC_EXPLORER_LOG_LEVEL"

# Per-request and file-format chatter that drowns the panel events
NOISY_LOGGERS = ("werkzeug", "anndata", "h5py", "matplotlib")

JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"
PLAIN_FIELDS = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv(LOG_LEVEL_ENV, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
        level: Optional[int] = None,
        force_format: Optional[str] = None,
        quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Install one stream handler on the root logger.

    Panel, selection and session events are logged with `extra={...}`;
    the JSON formatter keeps those fields, the plain one is for local runs.

    :param level: root level, else SC_EXPLORER_LOG_LEVEL, else INFO
    :param force_format: "json" or "plain", else SC_EXPLORER_LOG_FORMAT, else "json"
    :param quiet: loggers capped at WARNING
    """
    format_mode = (force_format or os.getenv(LOG_FORMAT_ENV, "json")).lower()

    root = logging.getLogger()
    root.setLevel(level if level is not None else _level_from_env())

    handler = logging.StreamHandler()
    if format_mode == "plain":
        handler.setFormatter(logging.Formatter(PLAIN_FIELDS))
    else:
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FIELDS))

    # Replace any existing handlers to avoid duplicate logs
    root.handlers.clear()
    root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

"""Logging configuration and helpers.

Configures the standard library ``logging`` package once per process with a
single stream handler. Modules ask for their logger through :func:`get_logger`
so the configuration is applied before the first record is emitted.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """Configure root logging.

    ``level`` falls back to the ``LOG_LEVEL`` environment variable, then INFO.
    """

    global _configured
    if _configured and not force:
        return

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers = [handler]
    logging.captureWarnings(True)

    # mysql-connector is chatty at DEBUG; keep it at WARNING.
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger instance using the configured handler."""

    configure_logging()
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]

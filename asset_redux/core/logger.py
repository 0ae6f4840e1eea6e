from __future__ import annotations

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER = "asset_redux"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``asset_redux`` hierarchy."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: Optional[str] = None, stream=None) -> logging.Logger:
    """Install a single stream handler on the package logger.

    The level defaults to INFO, or DEBUG when ASSET_REDUX_DEBUG=1.
    Repeated calls only adjust the level.
    """
    if level is None:
        level = "DEBUG" if os.environ.get("ASSET_REDUX_DEBUG", "0") == "1" else "INFO"

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.upper())
    if not any(getattr(h, "_asset_redux", False) for h in root.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
        handler._asset_redux = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    if root.level == logging.DEBUG:
        root.debug("DEBUG logging enabled")
    return root

"""Logging helpers for the portfolio backend."""

from __future__ import annotations

import logging
import os
from typing import Optional

_LOGGER: Optional[logging.Logger] = None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the ``portfolio`` logger, or one of its children when *name* is given."""

    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger("portfolio")
        if not _LOGGER.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            handler.setFormatter(formatter)
            _LOGGER.addHandler(handler)
        _LOGGER.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    if name:
        return _LOGGER.getChild(name)
    return _LOGGER

"""
Logging setup shared by the application.
"""

import logging
import sys

from app.core.config import get_settings

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """Return a named logger writing to stdout at the configured level."""
    settings = get_settings()
    named = logging.getLogger(name)
    if not named.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        named.addHandler(handler)
    named.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return named


logger = setup_logger("chat")

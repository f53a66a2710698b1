"""API routers."""

from app.api import chat, models

__all__ = [
    "chat",
    "models",
]

# src/countkeeper/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import scores_router, system_router

__all__ = [
    "scores_router",
    "system_router",
]

# src/forum_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import auth_router, reactions_router, system_router

__all__ = [
    "auth_router",
    "reactions_router",
    "system_router",
]

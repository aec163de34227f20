# src/discourse_near/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    callback_router,
    linkage_router,
    posts_router,
    system_router,
)

__all__ = [
    "auth_router",
    "callback_router",
    "linkage_router",
    "posts_router",
    "system_router",
]

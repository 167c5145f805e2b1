"""API routes module."""

from pointmarket.api.routes.admin import router as admin_router
from pointmarket.api.routes.auth import router as auth_router
from pointmarket.api.routes.events import router as events_router

__all__ = [
    "admin_router",
    "auth_router",
    "events_router",
]

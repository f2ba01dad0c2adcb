"""API routes."""

from .admin import router as admin_router
from .auth_routes import router as auth_router
from .configs import router as configs_router
from .navigation import router as navigation_router

__all__ = [
    "admin_router",
    "auth_router",
    "configs_router",
    "navigation_router",
]

"""
Authentication module for DomainHub.

Validates Supabase Auth access tokens and resolves per-user feature
permissions for the dashboard.
"""

from .dependencies import get_current_user, require_permission, has_permission
from .service import PERMISSION_FLAGS, resolve_permissions
from .routes import router as auth_router, users_router

__all__ = [
    "get_current_user",
    "require_permission",
    "has_permission",
    "PERMISSION_FLAGS",
    "resolve_permissions",
    "auth_router",
    "users_router",
]

"""
FastAPI dependencies for authentication and authorization.

The dashboard signs users in with Supabase Auth and forwards the access
token as a Bearer value. We validate it with `supabase.auth.get_user` and
attach the profile and effective permissions to the request.
"""

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable

from ..db import supabase
from ..logger import log_info, log_warning, log_error
from .service import PERMISSION_FLAGS, get_profile, get_permission_row, resolve_permissions


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    Validate the Supabase access token and return the current user.

    Returns:
        {"id", "email", "full_name", "is_admin", "permissions", "metadata"}

    Raises:
        HTTPException 401: If the token is missing or invalid
    """
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    try:
        response = supabase.auth.get_user(credentials.credentials)
        auth_user = response.user if response else None

        if not auth_user:
            log_warning("Access token rejected", action="auth_invalid_token")
            raise HTTPException(status_code=401, detail="Invalid access token")

        user_id = str(auth_user.id)
        profile = get_profile(user_id) or {}

        user = {
            "id": user_id,
            "email": getattr(auth_user, "email", None),
            "full_name": profile.get("full_name"),
            "is_admin": bool(profile.get("is_admin")),
            "permissions": resolve_permissions(profile, get_permission_row(user_id)),
            "metadata": getattr(auth_user, "user_metadata", None) or {},
        }

        log_info("User authenticated", user_id=user_id, action="auth_success")
        return user

    except HTTPException:
        raise
    except Exception as e:
        log_error("Authentication failed", error=str(e), action="auth_error")
        raise HTTPException(
            status_code=401,
            detail=f"Authentication failed: {str(e)}"
        )


def require_permission(flag: str) -> Callable:
    """
    Factory that creates a dependency requiring one permission flag.

    Usage:
        user: dict = Depends(require_permission("can_manual_purchase"))
    """
    if flag not in PERMISSION_FLAGS:
        raise ValueError(f"Unknown permission flag: {flag}")

    async def check_permission(user: dict = Depends(get_current_user)) -> dict:
        if not user["permissions"].get(flag):
            log_warning(
                "Permission denied",
                user_id=user["id"],
                permission=flag,
                action="auth_permission_denied",
            )
            raise HTTPException(
                status_code=403,
                detail=f"Missing permission: {flag}"
            )
        return user

    return check_permission


def has_permission(user: dict, flag: str) -> bool:
    return bool(user.get("permissions", {}).get(flag))

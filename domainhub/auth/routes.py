"""
Authentication and user management API routes.
"""

from fastapi import APIRouter, HTTPException, Depends

from . import service
from .service import PermissionUpdateError, UserManagementError
from .models import AcceptInvite, PermissionsUpdate, UserInvite, UserProfile
from .dependencies import get_current_user, require_permission
from ..logger import log_info, log_error


router = APIRouter(prefix="/api/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(user: dict = Depends(get_current_user)):
    """
    Get the current user's profile and effective permissions.

    **Authorization**: Bearer token required
    """
    return user


@router.post("/accept-invite")
def accept_invite(data: AcceptInvite, user: dict = Depends(get_current_user)):
    """
    Complete an invited user's account after they followed the e-mail link.

    The password is set by the dashboard through Supabase Auth; this creates the
    profile and applies the permissions chosen when the invitation was sent.
    """
    if not data.full_name.strip():
        raise HTTPException(status_code=400, detail="Full name is required")

    permissions = service.accept_invitation(user["id"], user["email"], data.full_name, user["metadata"])
    return {"user_id": user["id"], "permissions": permissions}


@users_router.get("")
def list_users(user: dict = Depends(require_permission("can_manage_users"))):
    """List every profile with its effective permissions."""
    try:
        users = service.list_users()
        log_info("Listed users", user_id=user["id"], action="list_users", user_count=len(users))
        return {"users": users}
    except Exception as e:
        log_error(
            "Failed to list users",
            user_id=user["id"],
            action="list_users_failed",
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Failed to list users: {str(e)}")


@users_router.post("/invite")
def invite_user(data: UserInvite, user: dict = Depends(require_permission("can_manage_users"))):
    """Send an invitation e-mail. Admin invitees get every permission once they accept."""
    try:
        return service.invite_user(
            data.email,
            invited_by=user["id"],
            is_admin=data.is_admin,
            permissions=data.permissions.model_dump(exclude_none=True),
        )
    except PermissionUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserManagementError as e:
        raise HTTPException(status_code=502, detail=str(e))


@users_router.delete("/{user_id}")
def delete_user(user_id: str, user: dict = Depends(require_permission("can_manage_users"))):
    """Delete a user's auth account, permissions and profile."""
    if user_id != user["id"] and not service.get_profile(user_id):
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    try:
        service.delete_user(user_id, deleted_by=user["id"])
    except UserManagementError as e:
        status = 400 if user_id == user["id"] else 502
        raise HTTPException(status_code=status, detail=str(e))

    return {"success": True, "user_id": user_id}


@users_router.get("/{user_id}/permissions")
def get_user_permissions(
    user_id: str,
    user: dict = Depends(require_permission("can_manage_users")),
):
    if not service.get_profile(user_id):
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return {"user_id": user_id, "permissions": service.get_permissions(user_id)}


@users_router.put("/{user_id}/permissions")
def update_user_permissions(
    user_id: str,
    data: PermissionsUpdate,
    user: dict = Depends(require_permission("can_manage_users")),
):
    """
    Update a user's permission flags. Only the flags present in the body change.

    Flags accept booleans or the "none" / "read" / "write" levels; "read" only
    grants the view and access flags. Admin users keep every permission
    regardless of the stored flags.
    """
    if not service.get_profile(user_id):
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    updates = data.model_dump(exclude_none=True)
    try:
        permissions = service.save_permissions(user_id, updates, updated_by=user["id"])
    except PermissionUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"user_id": user_id, "permissions": permissions}

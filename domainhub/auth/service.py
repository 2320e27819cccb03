"""
Profiles and per-user permissions.

Supabase Auth owns identities; the dashboard keeps a `profiles` row per user
(with the `is_admin` flag) and an optional `user_permissions` row holding
feature flags. Admins always get every flag.
"""

import json
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from ..db import supabase, first_row
from ..logger import log_info, log_error


PERMISSION_FLAGS = (
    "can_access_dashboard",
    "can_access_domain_search",
    "can_access_management",
    "can_access_settings",
    "can_view_critical_domains",
    "can_view_integrations",
    "can_view_balance",
    "can_manual_purchase",
    "can_ai_purchase",
    "can_view_domain_details",
    "can_change_domain_status",
    "can_select_platform",
    "can_select_traffic_source",
    "can_insert_funnel_id",
    "can_view_logs",
    "can_change_nameservers",
    "can_create_filters",
    "can_manage_users",
)

# Users without a stored row can browse, buy and view logs but cannot edit
# domain metadata, nameservers, filters, settings or other users.
DENIED_BY_DEFAULT = (
    "can_access_settings",
    "can_change_domain_status",
    "can_select_platform",
    "can_select_traffic_source",
    "can_insert_funnel_id",
    "can_change_nameservers",
    "can_create_filters",
    "can_manage_users",
)

DEFAULT_PERMISSIONS = {flag: flag not in DENIED_BY_DEFAULT for flag in PERMISSION_FLAGS}

# Flags a "read" level grants
READ_ONLY_PREFIXES = ("can_view_", "can_access_")


class PermissionUpdateError(Exception):
    """Raised for invalid permission updates."""
    pass


class UserManagementError(Exception):
    """Raised when an invitation or account removal cannot be carried out."""
    pass


def is_granted(flag: str, value: Any) -> bool:
    """
    Interpret a stored permission value.

    Booleans are taken as-is. "write" grants every flag, "read" grants only
    the view/access flags, and "none", None or any other string denies.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        level = value.strip().lower()
        if level == "write":
            return True
        if level == "read":
            return flag.startswith(READ_ONLY_PREFIXES)
        return False
    return False


def resolve_permissions(profile: Optional[Dict[str, Any]], row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Compute the effective permission set for a user.

    Args:
        profile: `profiles` row (may be None)
        row: `user_permissions` row (may be None)

    Returns:
        Every flag in PERMISSION_FLAGS plus `permission_type`
        ("total" for admins, "custom" for a stored row, "default" otherwise)
    """
    if profile and profile.get("is_admin"):
        permissions = {flag: True for flag in PERMISSION_FLAGS}
        permissions["permission_type"] = "total"
        return permissions

    if not row:
        permissions = dict(DEFAULT_PERMISSIONS)
        permissions["permission_type"] = "default"
        return permissions

    permissions = {
        flag: is_granted(flag, row[flag]) if flag in row else DEFAULT_PERMISSIONS[flag]
        for flag in PERMISSION_FLAGS
    }
    permissions["permission_type"] = row.get("permission_type") or "custom"
    return permissions


def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("profiles").select("*").eq("id", user_id).limit(1).execute()
    return first_row(result)


def get_permission_row(user_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("user_permissions").select("*").eq("user_id", user_id).limit(1).execute()
    return first_row(result)


def get_permissions(user_id: str) -> Dict[str, Any]:
    return resolve_permissions(get_profile(user_id), get_permission_row(user_id))


def list_users() -> List[Dict[str, Any]]:
    """Every profile with its effective permissions attached."""
    profiles = supabase.table("profiles").select("*").order("full_name").execute().data or []
    rows = supabase.table("user_permissions").select("*").execute().data or []
    by_user = {r["user_id"]: r for r in rows}

    return [
        {**profile, "permissions": resolve_permissions(profile, by_user.get(profile["id"]))}
        for profile in profiles
    ]


def save_permissions(user_id: str, updates: Dict[str, Any], updated_by: str) -> Dict[str, Any]:
    """
    Upsert a user's permission flags.

    Raises:
        PermissionUpdateError: If an unknown flag is supplied
    """
    unknown = [k for k in updates if k not in PERMISSION_FLAGS]
    if unknown:
        raise PermissionUpdateError(f"Unknown permission flags: {', '.join(sorted(unknown))}")

    current = resolve_permissions(None, get_permission_row(user_id))
    row = {flag: current[flag] for flag in PERMISSION_FLAGS}
    row.update({k: is_granted(k, v) for k, v in updates.items()})
    row["user_id"] = user_id
    row["permission_type"] = "custom"
    row["updated_by"] = updated_by

    supabase.table("user_permissions").upsert(row, on_conflict="user_id").execute()

    log_info(
        "Permissions updated",
        user_id=user_id,
        action="permissions_updated",
        updated_by=updated_by,
        flags=sorted(updates),
    )
    return get_permissions(user_id)


def _normalize_levels(permissions: Dict[str, Any]) -> Dict[str, bool]:
    unknown = [k for k in permissions if k not in PERMISSION_FLAGS]
    if unknown:
        raise PermissionUpdateError(f"Unknown permission flags: {', '.join(sorted(unknown))}")
    return {flag: is_granted(flag, value) for flag, value in permissions.items()}


def invite_user(
    email: str,
    invited_by: str,
    is_admin: bool = False,
    permissions: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Send a Supabase Auth invitation e-mail and record it in `invitations`.

    The admin flag and the permission flags travel in the invitee's user
    metadata and are applied by `accept_invitation`.

    Raises:
        PermissionUpdateError: If an unknown flag is supplied
        UserManagementError: If Supabase refuses the invitation
    """
    from ..config import INVITE_REDIRECT_URL

    email = email.strip().lower()
    flags = _normalize_levels(permissions or {})

    try:
        response = supabase.auth.admin.invite_user_by_email(email, {
            "redirect_to": INVITE_REDIRECT_URL,
            "data": {"is_admin": is_admin, "permissions": flags},
        })
    except Exception as e:
        log_error(
            "Invitation failed",
            user_id=invited_by,
            action="invite_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        raise UserManagementError(f"Failed to invite {email}: {str(e)}") from e

    invited = getattr(response, "user", None)
    invitation = first_row(supabase.table("invitations").insert({
        "email": email,
        "invited_by": invited_by,
        "is_admin": is_admin,
        "permissions": flags,
        "status": "pending",
    }).execute())

    log_info("User invited", user_id=invited_by, action="user_invited", email=email, is_admin=is_admin)
    return {
        "email": email,
        "user_id": str(invited.id) if invited else None,
        "invitation": invitation,
    }


def accept_invitation(user_id: str, email: str, full_name: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    Finish an invited user's setup: profile, permission row and invitation status.

    `metadata` is the invitee's Supabase user metadata written by `invite_user`.
    """
    is_admin = bool(metadata.get("is_admin"))
    supabase.table("profiles").upsert({
        "id": user_id,
        "email": email,
        "full_name": full_name.strip(),
        "is_admin": is_admin,
    }, on_conflict="id").execute()

    invited_flags = metadata.get("permissions") or {}
    if isinstance(invited_flags, str):
        # Older invitations stored the flags as a JSON string
        try:
            invited_flags = json.loads(invited_flags)
        except ValueError:
            invited_flags = {}
    flags = {k: v for k, v in invited_flags.items() if k in PERMISSION_FLAGS} if isinstance(invited_flags, dict) else {}
    if not is_admin and flags:
        save_permissions(user_id, flags, updated_by=user_id)

    accepted = (
        supabase.table("invitations")
        .update({"status": "accepted", "accepted_at": datetime.now(timezone.utc).isoformat()})
        .eq("email", email)
        .eq("status", "pending")
        .execute()
    )
    log_info(
        "Invitation accepted",
        user_id=user_id,
        action="invite_accepted",
        invitations=len(accepted.data or []),
    )
    return get_permissions(user_id)


def delete_user(user_id: str, deleted_by: str) -> None:
    """
    Remove a user from Supabase Auth, then drop their permissions and profile.

    Raises:
        UserManagementError: When deleting one's own account or when Supabase fails
    """
    if user_id == deleted_by:
        raise UserManagementError("You cannot delete your own account")

    try:
        supabase.auth.admin.delete_user(user_id)
    except Exception as e:
        log_error(
            "User deletion failed",
            user_id=deleted_by,
            action="user_delete_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        raise UserManagementError(f"Failed to delete user {user_id}: {str(e)}") from e

    supabase.table("user_permissions").delete().eq("user_id", user_id).execute()
    supabase.table("profiles").delete().eq("id", user_id).execute()
    log_info("User deleted", user_id=deleted_by, action="user_deleted", deleted_user=user_id)

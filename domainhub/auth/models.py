"""
Pydantic models for users and permissions.
"""

from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Literal, Optional, Union

# The users screen sends "none" / "read" / "write"; API clients may send booleans
PermissionValue = Union[bool, Literal["none", "read", "write"]]


class PermissionsUpdate(BaseModel):
    """Partial update of a user's permission flags. Omitted flags keep their value."""
    model_config = ConfigDict(extra="forbid")

    can_access_dashboard: Optional[PermissionValue] = None
    can_access_domain_search: Optional[PermissionValue] = None
    can_access_management: Optional[PermissionValue] = None
    can_access_settings: Optional[PermissionValue] = None
    can_view_critical_domains: Optional[PermissionValue] = None
    can_view_integrations: Optional[PermissionValue] = None
    can_view_balance: Optional[PermissionValue] = None
    can_manual_purchase: Optional[PermissionValue] = None
    can_ai_purchase: Optional[PermissionValue] = None
    can_view_domain_details: Optional[PermissionValue] = None
    can_change_domain_status: Optional[PermissionValue] = None
    can_select_platform: Optional[PermissionValue] = None
    can_select_traffic_source: Optional[PermissionValue] = None
    can_insert_funnel_id: Optional[PermissionValue] = None
    can_view_logs: Optional[PermissionValue] = None
    can_change_nameservers: Optional[PermissionValue] = None
    can_create_filters: Optional[PermissionValue] = None
    can_manage_users: Optional[PermissionValue] = None


class UserInvite(BaseModel):
    """Invitation sent through Supabase Auth."""
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    is_admin: bool = False
    full_name: Optional[str] = None
    permissions: PermissionsUpdate = PermissionsUpdate()


class UserProfile(BaseModel):
    """Authenticated user as returned by /api/auth/me."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_admin: bool = False
    permissions: dict = {}


class AcceptInvite(BaseModel):
    full_name: str

#!/usr/bin/env python3
"""
Bootstrap Admin Script

Creates (or finds) the Supabase Auth user for the first dashboard operator,
flags the profile as admin and stores a full `user_permissions` row so the
permissions screen shows every switch enabled.

Usage:
    python scripts/bootstrap_admin.py <email> <password> [full_name]
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from domainhub.db import supabase, first_row
from domainhub.auth.service import PERMISSION_FLAGS


def find_or_create_auth_user(email: str, password: str):
    """Return (user_id, created)."""
    profile = first_row(supabase.table("profiles").select("id").eq("email", email).limit(1).execute())
    if profile:
        return profile["id"], False

    response = supabase.auth.admin.create_user({
        "email": email,
        "password": password,
        "email_confirm": True,
    })
    if not response.user:
        raise ValueError("Failed to create user in Supabase Auth")
    return str(response.user.id), True


def bootstrap_admin(email: str, password: str, full_name: str = "Admin") -> dict:
    user_id, created = find_or_create_auth_user(email, password)
    print(f"{'Created' if created else 'Found'} auth user {email}: {user_id}")

    supabase.table("profiles").upsert({
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "is_admin": True,
    }, on_conflict="id").execute()

    permissions = {flag: True for flag in PERMISSION_FLAGS}
    supabase.table("user_permissions").upsert({
        "user_id": user_id,
        "permission_type": "total",
        "updated_by": user_id,
        **permissions,
    }, on_conflict="user_id").execute()

    print(f"Granted {len(permissions)} permissions to {email}")
    return {"user_id": user_id, "email": email, "created": created}


def main():
    if len(sys.argv) < 3:
        print("Usage: python scripts/bootstrap_admin.py <email> <password> [full_name]")
        sys.exit(1)

    email, password = sys.argv[1], sys.argv[2]
    full_name = sys.argv[3] if len(sys.argv) > 3 else "Admin"

    if len(password) < 8:
        print("Error: Password must be at least 8 characters")
        sys.exit(1)

    try:
        bootstrap_admin(email, password, full_name)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

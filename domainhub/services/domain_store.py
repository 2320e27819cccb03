"""
Supabase persistence for domains, activity logs, balances and notification settings.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from ..db import supabase, first_row
from ..logger import log_warning

DOMAIN_STATUSES = ("active", "expired", "pending", "suspended", "deactivated")
INTEGRATION_SOURCES = ("namecheap", "cloudflare", "cpanel", "godaddy")

DEFAULT_NOTIFICATION_SETTINGS = {
    "whatsapp_enabled": True,
    "whatsapp_number": None,
    "notify_purchases": True,
    "notify_expiring": True,
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(ts: str) -> datetime:
    """Parse ISO-8601 timestamp or date to an aware datetime (handles Z and +00:00)."""
    parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# DOMAINS
# ============================================================================

def insert_domain(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    result = supabase.table("domains").insert(row).execute()
    return first_row(result)


def upsert_domains(rows: List[Dict[str, Any]]) -> int:
    """Upsert domains keyed on (domain_name, user_id). Returns the number of rows written."""
    if not rows:
        return 0
    result = supabase.table("domains").upsert(rows, on_conflict="domain_name,user_id").execute()
    return len(result.data) if result.data else 0


def list_domains(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    integration_source: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """List domains, optionally scoped to one user. A None user_id lists every domain."""
    query = supabase.table("domains").select("*")
    if user_id is not None:
        query = query.eq("user_id", user_id)
    if status:
        query = query.eq("status", status)
    if integration_source:
        query = query.eq("integration_source", integration_source)
    if search:
        query = query.ilike("domain_name", f"%{search}%")
    result = query.order("domain_name").execute()
    return result.data or []


def get_domain(domain_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("domains").select("*").eq("id", domain_id).limit(1).execute()
    return first_row(result)


def update_domain(domain_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    updates = dict(updates)
    updates["updated_at"] = now_utc().isoformat()
    result = supabase.table("domains").update(updates).eq("id", domain_id).execute()
    return first_row(result)


def find_critical_domains(
    domains: List[Dict[str, Any]],
    expiry_days: int,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Pick the domains that need attention.

    A domain is critical when it is expired or suspended, or when auto-renew
    is off and it expires within `expiry_days`. Deactivated domains never are.
    """
    now = now or now_utc()
    cutoff = now + timedelta(days=expiry_days)
    critical = []

    for domain in domains:
        if domain.get("status") == "deactivated" or domain.get("manually_deactivated"):
            continue
        if domain.get("status") in ("expired", "suspended"):
            critical.append({**domain, "reason": domain["status"]})
            continue

        expiration = domain.get("expiration_date")
        if domain.get("auto_renew") or not expiration:
            continue
        try:
            expires_at = _parse_iso(expiration)
        except ValueError:
            continue
        if now < expires_at <= cutoff:
            days_left = (expires_at - now).days
            critical.append({**domain, "reason": "expiring", "days_until_expiry": days_left})

    return critical


# ============================================================================
# ACTIVITY LOG
# ============================================================================

def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def log_activity(
    domain_id: Optional[str],
    user_id: str,
    action_type: str,
    old_value: Any = None,
    new_value: Any = None,
) -> None:
    """
    Record a domain activity in `domain_activity_logs`.

    Values are stored as text; lists are comma-joined. Failures are logged,
    never raised.
    """
    try:
        supabase.table("domain_activity_logs").insert({
            "domain_id": domain_id,
            "user_id": user_id,
            "action_type": action_type,
            "old_value": _as_text(old_value),
            "new_value": _as_text(new_value),
        }).execute()
    except Exception as e:
        log_warning(
            "Failed to record domain activity",
            user_id=user_id,
            action="activity_log_failed",
            activity=action_type,
            error=str(e),
        )


def list_activity(domain_id: str) -> List[Dict[str, Any]]:
    result = (
        supabase.table("domain_activity_logs")
        .select("*")
        .eq("domain_id", domain_id)
        .order("created_at", desc=True)
        .execute()
    )
    return result.data or []


# ============================================================================
# BALANCE
# ============================================================================

def save_balance(user_id: str, balance_usd: float, balance_brl: float) -> None:
    supabase.table("namecheap_balance").upsert(
        {
            "user_id": user_id,
            "balance_usd": balance_usd,
            "balance_brl": balance_brl,
            "last_synced_at": now_utc().isoformat(),
        },
        on_conflict="user_id",
    ).execute()


# ============================================================================
# NOTIFICATION SETTINGS
# ============================================================================

def get_notification_settings(user_id: str) -> Dict[str, Any]:
    """Return the user's notification settings, falling back to defaults."""
    result = (
        supabase.table("notification_settings")
        .select("*")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    settings = dict(DEFAULT_NOTIFICATION_SETTINGS)
    row = first_row(result)
    if row:
        settings.update({k: v for k, v in row.items() if k in DEFAULT_NOTIFICATION_SETTINGS})
    settings["user_id"] = user_id
    return settings


def save_notification_settings(user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    row = {k: v for k, v in updates.items() if k in DEFAULT_NOTIFICATION_SETTINGS}
    row["user_id"] = user_id
    row["updated_at"] = now_utc().isoformat()
    supabase.table("notification_settings").upsert(row, on_conflict="user_id").execute()
    return get_notification_settings(user_id)


def list_notification_settings() -> List[Dict[str, Any]]:
    result = supabase.table("notification_settings").select("*").execute()
    return result.data or []


# ============================================================================
# CUSTOM FILTERS
# ============================================================================

FILTER_TYPES = ("platform", "traffic_source")
DEFAULT_FILTER_OPTIONS = {
    "platform": ("wordpress", "atomicat"),
    "traffic_source": ("facebook", "google", "native", "outbrain", "taboola", "revcontent"),
}


class DuplicateFilterError(Exception):
    """Raised when a filter value already exists for the user"""
    pass


def list_custom_filters(user_id: str) -> List[Dict[str, Any]]:
    result = (
        supabase.table("custom_filters")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return result.data or []


def filter_options(user_id: str) -> Dict[str, Any]:
    """Default platform and traffic-source values followed by the user's own."""
    custom = list_custom_filters(user_id)
    options: Dict[str, Any] = {}
    for filter_type in FILTER_TYPES:
        values = list(DEFAULT_FILTER_OPTIONS[filter_type])
        for row in custom:
            if row.get("filter_type") == filter_type and row.get("filter_value") not in values:
                values.append(row["filter_value"])
        options[filter_type] = values
    options["custom"] = custom
    return options


def create_custom_filter(user_id: str, filter_type: str, filter_value: str) -> Optional[Dict[str, Any]]:
    """
    Store a custom platform or traffic-source value.

    Raises:
        ValueError: Unknown filter type or empty value
        DuplicateFilterError: The value is a default or already saved
    """
    if filter_type not in FILTER_TYPES:
        raise ValueError(f"Invalid filter type: {filter_type}")
    value = filter_value.strip().lower()
    if not value:
        raise ValueError("Filter value is required")
    if value in filter_options(user_id)[filter_type]:
        raise DuplicateFilterError(f"Filter {filter_type}={value} already exists")

    result = supabase.table("custom_filters").insert({
        "user_id": user_id,
        "filter_type": filter_type,
        "filter_value": value,
    }).execute()
    return first_row(result)


def delete_custom_filter(filter_id: str, user_id: str) -> bool:
    """Delete one of the user's filters. Returns False when nothing matched."""
    result = (
        supabase.table("custom_filters")
        .delete()
        .eq("id", filter_id)
        .eq("user_id", user_id)
        .execute()
    )
    return bool(result.data)

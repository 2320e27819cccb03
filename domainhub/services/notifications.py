"""
WhatsApp notifications for purchases and critical domains, filtered by the
user's notification preferences.
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .whatsapp_client import WhatsAppClient, WhatsAppAPIError
from . import domain_store
from ..logger import log_info, log_warning


def _local_time(now: datetime, tz_name: str) -> str:
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError:
        tz = timezone.utc
    return now.astimezone(tz).strftime("%d/%m/%Y %H:%M:%S")


def format_purchase_message(domains: List[str], now: datetime, tz_name: str) -> str:
    lines = [
        "🎉 *Domain purchase completed!*",
        "",
        f"📅 Date/time: {_local_time(now, tz_name)}",
        f"📦 Total domains: {len(domains)}",
        "",
        "*Purchased domains:*",
    ]
    lines.extend(f"✅ {domain}" for domain in domains)
    return "\n".join(lines)


def format_critical_message(critical: List[Dict[str, Any]]) -> str:
    lines = [
        "⚠️ *Critical domains need attention*",
        "",
        f"Total: {len(critical)}",
        "",
    ]
    for domain in critical:
        reason = domain.get("reason")
        if reason == "expiring":
            detail = f"expires in {domain.get('days_until_expiry', 0)} days without auto-renew"
        else:
            detail = reason
        lines.append(f"🔴 {domain['domain_name']}: {detail}")
    return "\n".join(lines)


class NotificationService:
    """Sends WhatsApp notifications honoring per-user preferences"""

    def __init__(
        self,
        client: Optional[WhatsAppClient] = None,
        settings_loader: Optional[Callable[[str], Dict[str, Any]]] = None,
        default_number: Optional[str] = None,
        tz_name: Optional[str] = None,
    ):
        from .. import config

        self.client = client or WhatsAppClient()
        self.settings_loader = settings_loader or domain_store.get_notification_settings
        self.default_number = default_number if default_number is not None else config.WHATSAPP_DEFAULT_NUMBER
        self.tz_name = tz_name or config.NOTIFICATION_TIMEZONE

    def _recipient(self, user_id: str, preference: str) -> Optional[str]:
        """Return the number to notify, or None when the user opted out."""
        settings = self.settings_loader(user_id)
        if not settings.get("whatsapp_enabled", True) or not settings.get(preference, True):
            return None
        return settings.get("whatsapp_number") or self.default_number or None

    async def notify_purchase(self, user_id: str, domains: List[str]) -> Dict[str, Any]:
        """
        Send the purchase summary.

        Returns:
            {"sent": bool, "reason"?: str}

        Raises:
            WhatsAppAPIError: If the send itself fails
        """
        if not domains:
            return {"sent": False, "reason": "no_domains"}

        phone = self._recipient(user_id, "notify_purchases")
        if not phone:
            log_info("Purchase notification skipped", user_id=user_id, action="notify_purchase_skipped")
            return {"sent": False, "reason": "disabled"}

        message = format_purchase_message(domains, datetime.now(timezone.utc), self.tz_name)
        await self.client.send_text(phone, message)

        log_info(
            "Purchase notification sent",
            user_id=user_id,
            action="notify_purchase_sent",
            domain_count=len(domains),
        )
        return {"sent": True}

    async def notify_critical(self, user_id: str, critical: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Send the critical-domain alert. Raises WhatsAppAPIError on send failure."""
        if not critical:
            return {"sent": False, "reason": "no_domains"}

        phone = self._recipient(user_id, "notify_expiring")
        if not phone:
            log_warning(
                "Critical domain alert skipped (notifications disabled)",
                user_id=user_id,
                action="notify_critical_skipped",
            )
            return {"sent": False, "reason": "disabled"}

        await self.client.send_text(phone, format_critical_message(critical))
        log_info(
            "Critical domain alert sent",
            user_id=user_id,
            action="notify_critical_sent",
            domain_count=len(critical),
        )
        return {"sent": True}


async def notify_critical_domains(service: NotificationService, expiry_days: int) -> Dict[str, Any]:
    """
    Group critical domains by owner and alert each owner once.

    A failed send is counted and the remaining owners are still notified.
    """
    critical = domain_store.find_critical_domains(domain_store.list_domains(), expiry_days)

    by_user: Dict[str, List[Dict[str, Any]]] = {}
    for domain in critical:
        if domain.get("user_id"):
            by_user.setdefault(domain["user_id"], []).append(domain)

    notified = skipped = failed = 0
    for user_id, domains in by_user.items():
        try:
            outcome = await service.notify_critical(user_id, domains)
        except WhatsAppAPIError as e:
            failed += 1
            log_warning("Critical alert failed", user_id=user_id, action="notify_critical_failed", error=str(e))
            continue
        if outcome.get("sent"):
            notified += 1
        else:
            skipped += 1

    log_info(
        "Critical domain check finished",
        action="critical_check_complete",
        critical_count=len(critical),
        notified=notified,
        failed=failed,
    )
    return {
        "ok": True,
        "users_checked": len(by_user),
        "critical_domains": len(critical),
        "notified": notified,
        "skipped": skipped,
        "failed": failed,
    }

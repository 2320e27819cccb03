"""
Tests for WhatsApp notifications, notification settings and critical-domain alerts.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from domainhub.services import domain_store
from domainhub.services.notifications import (
    NotificationService, format_critical_message, format_purchase_message, notify_critical_domains,
)
from domainhub.services.whatsapp_client import WhatsAppAPIError


class RecordingClient:
    configured = True

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_text(self, phone, message):
        if self.fail:
            raise WhatsAppAPIError("Z-API HTTP 500: boom")
        self.sent.append((phone, message))
        return {"messageId": "1"}


def settings_for(**values):
    base = {
        "whatsapp_enabled": True,
        "whatsapp_number": None,
        "notify_purchases": True,
        "notify_expiring": True,
    }
    base.update(values)
    return lambda user_id: base


class TestMessages:

    def test_purchase_message_uses_local_time(self) -> None:
        now = datetime(2026, 3, 1, 15, 30, tzinfo=timezone.utc)
        message = format_purchase_message(["a.online", "b.online"], now, "America/Sao_Paulo")

        assert "01/03/2026 12:30:00" in message
        assert "Total domains: 2" in message
        assert "✅ a.online" in message
        assert "✅ b.online" in message

    def test_unknown_timezone_falls_back_to_utc(self) -> None:
        now = datetime(2026, 3, 1, 15, 30, tzinfo=timezone.utc)
        assert "01/03/2026 15:30:00" in format_purchase_message(["a.online"], now, "Mars/Olympus")

    def test_critical_message_explains_reason(self) -> None:
        message = format_critical_message([
            {"domain_name": "old.com", "reason": "expired"},
            {"domain_name": "soon.com", "reason": "expiring", "days_until_expiry": 5},
        ])
        assert "old.com: expired" in message
        assert "soon.com: expires in 5 days" in message


class TestNotificationService:

    def test_user_number_preferred_over_default(self) -> None:
        client = RecordingClient()
        service = NotificationService(
            client=client,
            settings_loader=settings_for(whatsapp_number="5521977776666"),
            default_number="5511999999999",
            tz_name="UTC",
        )

        assert asyncio.run(service.notify_purchase("u1", ["a.online"])) == {"sent": True}
        assert client.sent[0][0] == "5521977776666"

    def test_default_number_used_when_user_has_none(self) -> None:
        client = RecordingClient()
        service = NotificationService(client=client, settings_loader=settings_for(), default_number="5511999999999")

        asyncio.run(service.notify_purchase("u1", ["a.online"]))
        assert client.sent[0][0] == "5511999999999"

    def test_disabled_preference_skips_send(self) -> None:
        client = RecordingClient()
        service = NotificationService(
            client=client,
            settings_loader=settings_for(notify_purchases=False),
            default_number="5511999999999",
        )

        assert asyncio.run(service.notify_purchase("u1", ["a.online"])) == {"sent": False, "reason": "disabled"}
        assert client.sent == []

    def test_whatsapp_master_switch(self) -> None:
        client = RecordingClient()
        service = NotificationService(
            client=client,
            settings_loader=settings_for(whatsapp_enabled=False),
            default_number="5511999999999",
        )

        assert asyncio.run(service.notify_critical("u1", [{"domain_name": "x.com", "reason": "expired"}]))["sent"] is False

    def test_nothing_to_send(self) -> None:
        service = NotificationService(client=RecordingClient(), settings_loader=settings_for(), default_number="1")
        assert asyncio.run(service.notify_purchase("u1", [])) == {"sent": False, "reason": "no_domains"}


class TestNotificationSettingsStore:

    def test_defaults_when_no_row(self, fake_db) -> None:
        settings = domain_store.get_notification_settings("u1")
        assert settings == {
            "whatsapp_enabled": True,
            "whatsapp_number": None,
            "notify_purchases": True,
            "notify_expiring": True,
            "user_id": "u1",
        }

    def test_save_ignores_unknown_fields(self, fake_db) -> None:
        saved = domain_store.save_notification_settings("u1", {"notify_expiring": False, "is_admin": True})

        assert saved["notify_expiring"] is False
        row = fake_db.tables["notification_settings"][0]
        assert "is_admin" not in row

    def test_save_twice_updates_same_row(self, fake_db) -> None:
        domain_store.save_notification_settings("u1", {"whatsapp_number": "5511"})
        domain_store.save_notification_settings("u1", {"whatsapp_number": "5522"})

        assert len(fake_db.tables["notification_settings"]) == 1
        assert domain_store.get_notification_settings("u1")["whatsapp_number"] == "5522"


class TestCriticalDomainAlerts:

    def test_alerts_each_owner_once(self, fake_db) -> None:
        now = datetime.now(timezone.utc)
        fake_db.tables["domains"] = [
            {"id": "1", "user_id": "u1", "domain_name": "a.com", "status": "expired"},
            {"id": "2", "user_id": "u1", "domain_name": "b.com", "status": "active", "auto_renew": False,
             "expiration_date": (now + timedelta(days=3)).isoformat()},
            {"id": "3", "user_id": "u2", "domain_name": "c.com", "status": "suspended"},
            {"id": "4", "user_id": "u2", "domain_name": "d.com", "status": "active", "auto_renew": True,
             "expiration_date": (now + timedelta(days=3)).isoformat()},
        ]
        client = RecordingClient()
        service = NotificationService(client=client, default_number="5511999999999")

        summary = asyncio.run(notify_critical_domains(service, 30))

        assert summary == {
            "ok": True,
            "users_checked": 2,
            "critical_domains": 3,
            "notified": 2,
            "skipped": 0,
            "failed": 0,
        }
        assert len(client.sent) == 2

    def test_send_failures_are_counted(self, fake_db) -> None:
        fake_db.tables["domains"] = [
            {"id": "1", "user_id": "u1", "domain_name": "a.com", "status": "expired"},
        ]
        service = NotificationService(client=RecordingClient(fail=True), default_number="5511999999999")

        summary = asyncio.run(notify_critical_domains(service, 30))
        assert summary["failed"] == 1
        assert summary["notified"] == 0

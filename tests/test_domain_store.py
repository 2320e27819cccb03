"""
Tests for domain persistence, critical-domain detection and provider sync.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domainhub.services import domain_store
from domainhub.services.sync import IntegrationSync, cloudflare_row, namecheap_row


NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def domain(name, **fields):
    return {"domain_name": name, "status": "active", "auto_renew": False, **fields}


class TestFindCriticalDomains:

    def test_expired_and_suspended_are_always_critical(self) -> None:
        critical = domain_store.find_critical_domains(
            [domain("a.com", status="expired", auto_renew=True), domain("b.com", status="suspended")],
            30,
            NOW,
        )
        assert [(d["domain_name"], d["reason"]) for d in critical] == [("a.com", "expired"), ("b.com", "suspended")]

    def test_expiring_without_auto_renew(self) -> None:
        critical = domain_store.find_critical_domains(
            [domain("soon.com", expiration_date=(NOW + timedelta(days=10, hours=1)).isoformat())],
            30,
            NOW,
        )
        assert critical[0]["reason"] == "expiring"
        assert critical[0]["days_until_expiry"] == 10

    def test_date_only_expiration_is_understood(self) -> None:
        critical = domain_store.find_critical_domains([domain("d.com", expiration_date="2026-06-20")], 30, NOW)
        assert [d["domain_name"] for d in critical] == ["d.com"]

    def test_unparseable_dates_are_ignored(self) -> None:
        assert domain_store.find_critical_domains([domain("x.com", expiration_date="soon")], 30, NOW) == []

    def test_deactivated_domains_are_never_critical(self) -> None:
        critical = domain_store.find_critical_domains(
            [
                domain("off.com", status="deactivated"),
                domain("flag.com", status="expired", manually_deactivated=True),
                domain("soon.com", manually_deactivated=True, expiration_date=(NOW + timedelta(days=3)).isoformat()),
            ],
            30,
            NOW,
        )
        assert critical == []

    @given(days=st.integers(min_value=-400, max_value=400), auto_renew=st.booleans())
    @settings(max_examples=100)
    def test_window_boundaries(self, days: int, auto_renew: bool) -> None:
        expires = NOW + timedelta(days=days)
        critical = domain_store.find_critical_domains(
            [domain("p.com", auto_renew=auto_renew, expiration_date=expires.isoformat())], 30, NOW,
        )
        expected = (not auto_renew) and 0 < days <= 30
        assert bool(critical) == expected


class TestDomainQueries:

    def test_list_filters_by_user_status_and_search(self, fake_db) -> None:
        fake_db.tables["domains"] = [
            {"id": "1", "user_id": "u1", "domain_name": "petlove.online", "status": "active", "integration_source": "namecheap"},
            {"id": "2", "user_id": "u1", "domain_name": "fitness.com", "status": "expired", "integration_source": "cpanel"},
            {"id": "3", "user_id": "u2", "domain_name": "petshop.online", "status": "active", "integration_source": "namecheap"},
        ]

        assert [d["id"] for d in domain_store.list_domains("u1")] == ["2", "1"]
        assert [d["id"] for d in domain_store.list_domains("u1", status="active")] == ["1"]
        assert [d["id"] for d in domain_store.list_domains(None, search="PET")] == ["1", "3"]
        assert [d["id"] for d in domain_store.list_domains(None, integration_source="cpanel")] == ["2"]

    def test_update_sets_updated_at(self, fake_db) -> None:
        fake_db.tables["domains"] = [{"id": "1", "user_id": "u1", "domain_name": "a.com", "status": "active"}]

        updated = domain_store.update_domain("1", {"status": "suspended"})

        assert updated["status"] == "suspended"
        assert "updated_at" in updated

    def test_activity_log_writes_old_and_new_values(self, fake_db) -> None:
        domain_store.log_activity("1", "u1", "status_change", "active", "suspended")

        row = fake_db.tables["domain_activity_logs"][0]
        assert set(row) - {"id", "created_at"} == {"domain_id", "user_id", "action_type", "old_value", "new_value"}
        assert (row["action_type"], row["old_value"], row["new_value"]) == ("status_change", "active", "suspended")

    def test_activity_log_joins_lists(self, fake_db) -> None:
        domain_store.log_activity("1", "u1", "nameservers_change", None, ["ns1.host.com", "ns2.host.com"])

        row = fake_db.tables["domain_activity_logs"][0]
        assert row["old_value"] is None
        assert row["new_value"] == "ns1.host.com, ns2.host.com"

    def test_activity_log_failures_are_swallowed(self, fake_db) -> None:
        fake_db.failing_tables.add("domain_activity_logs")
        domain_store.log_activity("1", "u1", "update")


class FakeListingNamecheap:

    async def list_domains(self, list_type=None):
        return [
            {"name": "live.com", "expires": "2027-01-01", "is_expired": False, "auto_renew": True},
            {"name": "dead.com", "expires": "2025-01-01", "is_expired": True, "auto_renew": False},
        ]

    async def get_balance(self):
        return 10.0


class FakeListingCloudflare:

    async def list_zones(self):
        return [
            {"id": "z1", "name": "Live.com", "status": "active", "name_servers": ["a.ns", "b.ns"]},
            {"id": "z2", "name": "paused.com", "status": "pending"},
        ]


class FakeListingCpanel:

    async def list_domains(self):
        return ["main.com", "blog.main.com"]


def make_sync() -> IntegrationSync:
    return IntegrationSync(
        namecheap=FakeListingNamecheap(),
        cloudflare=FakeListingCloudflare(),
        cpanel=FakeListingCpanel(),
    )


class TestIntegrationSync:

    def test_namecheap_row_marks_expired(self) -> None:
        row = namecheap_row({"name": "dead.com", "is_expired": True, "expires": "2025-01-01"}, "u1")
        assert row["status"] == "expired"
        assert row["registrar"] == "namecheap"

    def test_cloudflare_row_maps_inactive_zone_to_suspended(self) -> None:
        assert cloudflare_row({"id": "z", "name": "x.com", "status": "moved"}, "u1")["status"] == "suspended"

    def test_namecheap_sync_upserts(self, fake_db) -> None:
        result = asyncio.run(make_sync().sync_namecheap("u1"))

        assert result == {"provider": "namecheap", "total": 2, "synced": 2, "skipped": 0}
        rows = {r["domain_name"]: r for r in fake_db.tables["domains"]}
        assert rows["dead.com"]["status"] == "expired"
        assert rows["live.com"]["auto_renew"] is True

    def test_repeated_sync_does_not_duplicate(self, fake_db) -> None:
        sync = make_sync()
        asyncio.run(sync.sync_cloudflare("u1"))
        asyncio.run(sync.sync_cloudflare("u1"))

        assert len(fake_db.tables["domains"]) == 2
        live = next(r for r in fake_db.tables["domains"] if r["domain_name"] == "live.com")
        assert live["zone_id"] == "z1"
        assert live["nameservers"] == ["a.ns", "b.ns"]

    def test_cpanel_sync(self, fake_db) -> None:
        result = asyncio.run(make_sync().sync_cpanel("u1"))
        assert result["synced"] == 2
        assert {r["integration_source"] for r in fake_db.tables["domains"]} == {"cpanel"}

    def test_balance_is_converted_and_stored(self, fake_db, monkeypatch) -> None:
        from domainhub import config
        monkeypatch.setattr(config, "USD_TO_BRL_RATE", 5.5)

        result = asyncio.run(make_sync().namecheap_balance("u1"))

        assert result == {"balance_usd": 10.0, "balance_brl": 55.0}
        assert fake_db.tables["namecheap_balance"][0]["balance_brl"] == 55.0

    def test_status_change_is_logged(self, fake_db) -> None:
        fake_db.tables["domains"] = [
            {"id": "d1", "user_id": "u1", "domain_name": "dead.com", "status": "active", "integration_source": "namecheap"},
        ]

        asyncio.run(make_sync().sync_namecheap("u1"))

        log = fake_db.tables["domain_activity_logs"][0]
        assert (log["domain_id"], log["action_type"]) == ("d1", "status_change")
        assert (log["old_value"], log["new_value"]) == ("active", "expired")

    def test_manually_deactivated_domains_are_left_alone(self, fake_db) -> None:
        fake_db.tables["domains"] = [
            {"id": "d1", "user_id": "u1", "domain_name": "live.com", "status": "deactivated",
             "manually_deactivated": True, "integration_source": "namecheap"},
        ]

        result = asyncio.run(make_sync().sync_namecheap("u1"))

        assert result["skipped"] == 1
        live = next(r for r in fake_db.tables["domains"] if r["domain_name"] == "live.com")
        assert live["status"] == "deactivated"
        assert "domain_activity_logs" not in fake_db.tables


class TestCustomFilters:

    def test_options_append_custom_values(self, fake_db) -> None:
        domain_store.create_custom_filter("u1", "platform", " Shopify ")
        domain_store.create_custom_filter("u2", "traffic_source", "bing")

        options = domain_store.filter_options("u1")

        assert options["platform"] == ["wordpress", "atomicat", "shopify"]
        assert "bing" not in options["traffic_source"]
        assert [f["filter_value"] for f in options["custom"]] == ["shopify"]

    def test_duplicates_and_defaults_are_rejected(self, fake_db) -> None:
        domain_store.create_custom_filter("u1", "traffic_source", "bing")

        with pytest.raises(domain_store.DuplicateFilterError):
            domain_store.create_custom_filter("u1", "traffic_source", "BING")
        with pytest.raises(domain_store.DuplicateFilterError):
            domain_store.create_custom_filter("u1", "traffic_source", "google")

    def test_invalid_type_or_blank_value(self, fake_db) -> None:
        with pytest.raises(ValueError):
            domain_store.create_custom_filter("u1", "country", "br")
        with pytest.raises(ValueError):
            domain_store.create_custom_filter("u1", "platform", "  ")

    def test_delete_only_own_filter(self, fake_db) -> None:
        created = domain_store.create_custom_filter("u1", "platform", "shopify")

        assert domain_store.delete_custom_filter(created["id"], "u2") is False
        assert domain_store.delete_custom_filter(created["id"], "u1") is True
        assert fake_db.tables["custom_filters"] == []

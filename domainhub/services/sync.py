"""
Import domains from Namecheap, Cloudflare and cPanel into the `domains` table.

Rows are upserted on (domain_name, user_id) so repeated syncs refresh the
existing entries instead of duplicating them.
"""
from typing import Optional, Dict, Any, List

from .cloudflare_client import CloudflareClient
from .cpanel_client import CpanelClient
from .namecheap_client import NamecheapClient
from . import domain_store
from ..logger import timed


def namecheap_row(domain: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "domain_name": domain["name"],
        "registrar": "namecheap",
        "integration_source": "namecheap",
        "status": "expired" if domain.get("is_expired") else "active",
        "expiration_date": domain.get("expires"),
        "auto_renew": bool(domain.get("auto_renew")),
    }


def cloudflare_row(zone: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "domain_name": zone["name"].lower(),
        "integration_source": "cloudflare",
        "zone_id": zone.get("id"),
        "status": "active" if zone.get("status") == "active" else "suspended",
        "nameservers": list(zone.get("name_servers") or []),
    }


def cpanel_row(domain: str, user_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "domain_name": domain.lower(),
        "integration_source": "cpanel",
        "status": "active",
    }


class IntegrationSync:
    """Pulls domain inventories from each provider and stores them"""

    def __init__(
        self,
        namecheap: Optional[NamecheapClient] = None,
        cloudflare: Optional[CloudflareClient] = None,
        cpanel: Optional[CpanelClient] = None,
        store=None,
    ):
        self.namecheap = namecheap or NamecheapClient()
        self.cloudflare = cloudflare or CloudflareClient()
        self.cpanel = cpanel or CpanelClient()
        self.store = store or domain_store

    def _save(self, provider: str, user_id: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Upsert provider rows and log status changes on rows that already existed.

        Domains deactivated by hand are left untouched so a sync cannot revive them.
        """
        existing = {d["domain_name"]: d for d in self.store.list_domains(user_id)}
        total = len(rows)
        rows = [r for r in rows if not existing.get(r["domain_name"], {}).get("manually_deactivated")]
        written = self.store.upsert_domains(rows)

        for row in rows:
            previous = existing.get(row["domain_name"])
            if previous and previous.get("status") != row["status"]:
                self.store.log_activity(
                    previous.get("id"), user_id, "status_change", previous.get("status"), row["status"],
                )
        return {"provider": provider, "total": total, "synced": written, "skipped": total - len(rows)}

    async def sync_namecheap(self, user_id: str) -> Dict[str, Any]:
        """Raises NamecheapAPIError when the listing fails."""
        with timed("Integration sync finished", user_id=user_id, provider="namecheap", action="integration_sync") as log:
            domains = await self.namecheap.list_domains()
            rows = [namecheap_row(d, user_id) for d in domains if d.get("name")]
            result = self._save("namecheap", user_id, rows)
            log["synced"] = result["synced"]
        return result

    async def sync_cloudflare(self, user_id: str) -> Dict[str, Any]:
        """Raises CloudflareAPIError when the listing fails."""
        with timed("Integration sync finished", user_id=user_id, provider="cloudflare", action="integration_sync") as log:
            zones = await self.cloudflare.list_zones()
            rows = [cloudflare_row(z, user_id) for z in zones if z.get("name")]
            result = self._save("cloudflare", user_id, rows)
            log["synced"] = result["synced"]
        return result

    async def sync_cpanel(self, user_id: str) -> Dict[str, Any]:
        """Raises CpanelAPIError when the listing fails."""
        with timed("Integration sync finished", user_id=user_id, provider="cpanel", action="integration_sync") as log:
            rows = [cpanel_row(d, user_id) for d in await self.cpanel.list_domains()]
            result = self._save("cpanel", user_id, rows)
            log["synced"] = result["synced"]
        return result

    async def namecheap_balance(self, user_id: str) -> Dict[str, Any]:
        """Fetch the USD balance, convert it to BRL and store both."""
        from .. import config

        balance_usd = await self.namecheap.get_balance()
        balance_brl = round(balance_usd * config.USD_TO_BRL_RATE, 2)
        self.store.save_balance(user_id, balance_usd, balance_brl)
        return {"balance_usd": balance_usd, "balance_brl": balance_brl}

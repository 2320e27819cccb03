"""
Domain deactivation: remove a domain from hosting and DNS, then retire it.

The steps run in a fixed order (WordPress, cPanel, Cloudflare, database).
Only integrations that were detected are touched, and a failing step never
stops the ones after it. The domain stays registered at Namecheap.
"""
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List

from .cloudflare_client import CloudflareClient, CloudflareAPIError
from .cpanel_client import CpanelClient, CpanelAPIError
from . import domain_store
from ..logger import log_warning, log_error, timed

STEP_LABELS = {
    "wordpress": "WordPress",
    "cpanel": "cPanel",
    "cloudflare": "Cloudflare",
    "database": "Database",
}


@dataclass
class DeactivationStep:
    id: str
    status: str  # success, skipped or error
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DomainDeactivation:
    """Detects and removes a domain's third-party integrations"""

    def __init__(
        self,
        cloudflare: Optional[CloudflareClient] = None,
        cpanel: Optional[CpanelClient] = None,
        store=None,
    ):
        self.cloudflare = cloudflare or CloudflareClient()
        self.cpanel = cpanel or CpanelClient()
        self.store = store or domain_store

    async def detect(self, domain_name: str) -> Dict[str, Dict[str, Any]]:
        """
        Look the domain up on every provider.

        A provider that is unconfigured or fails to answer is reported as not
        present, with the reason under "error".
        """
        detected = {
            "wordpress": {"exists": False, "insid": None},
            "cpanel": {"exists": False, "subdomain": None},
            "cloudflare": {"exists": False, "zone_id": None},
        }

        if self.cpanel.configured:
            try:
                install = await self.cpanel.find_wordpress(domain_name)
                if install:
                    detected["wordpress"].update(exists=True, insid=install["insid"])
            except CpanelAPIError as e:
                detected["wordpress"]["error"] = str(e)
            try:
                subdomain = await self.cpanel.find_addon_domain(domain_name)
                if subdomain:
                    detected["cpanel"].update(exists=True, subdomain=subdomain)
            except CpanelAPIError as e:
                detected["cpanel"]["error"] = str(e)

        if self.cloudflare.configured:
            try:
                zone = await self.cloudflare.find_zone(domain_name)
                if zone:
                    detected["cloudflare"].update(exists=True, zone_id=zone.get("id"))
            except CloudflareAPIError as e:
                detected["cloudflare"]["error"] = str(e)

        for name, info in detected.items():
            if "error" in info:
                log_warning("Integration lookup failed", domain=domain_name, provider=name, action="deactivation_detect_failed", error=info["error"])
        return detected

    async def _remove(self, step_id: str, detected: Dict[str, Any], domain_name: str) -> DeactivationStep:
        info = detected[step_id]
        if not info["exists"]:
            return DeactivationStep(step_id, "skipped", f"No {STEP_LABELS[step_id]} integration found")

        try:
            if step_id == "wordpress":
                await self.cpanel.remove_wordpress(info["insid"])
            elif step_id == "cpanel":
                await self.cpanel.remove_addon_domain(domain_name, info["subdomain"])
            else:
                await self.cloudflare.delete_zone(info["zone_id"])
        except (CpanelAPIError, CloudflareAPIError) as e:
            log_warning("Integration removal failed", domain=domain_name, step=step_id, action="deactivation_step_failed", error=str(e))
            return DeactivationStep(step_id, "error", str(e))

        return DeactivationStep(step_id, "success", f"Removed from {STEP_LABELS[step_id]}")

    def _retire(self, domain: Dict[str, Any]) -> DeactivationStep:
        try:
            self.store.update_domain(domain["id"], {"status": "deactivated", "manually_deactivated": True})
        except Exception as e:
            log_error(
                "Failed to mark domain deactivated",
                domain=domain["domain_name"],
                step="database",
                action="deactivation_step_failed",
                error_type=type(e).__name__,
                exc_info=True,
            )
            return DeactivationStep("database", "error", str(e))
        return DeactivationStep("database", "success", "Domain marked as deactivated")

    async def deactivate(self, domain: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        """
        Run every deactivation step for a stored domain row.

        Returns:
            {"domain", "success", "steps", "integrations"}; success is False
            when any step ended in error
        """
        domain_name = domain["domain_name"]

        with timed("Domain deactivation finished", user_id=user_id, domain=domain_name, action="domain_deactivated") as log:
            detected = await self.detect(domain_name)
            steps: List[DeactivationStep] = []
            for step_id in ("wordpress", "cpanel", "cloudflare"):
                steps.append(await self._remove(step_id, detected, domain_name))
            steps.append(self._retire(domain))

            active = [STEP_LABELS[k] for k, info in detected.items() if info["exists"]]
            removed = [STEP_LABELS[s.id] for s in steps if s.status == "success" and s.id != "database"]
            retired = steps[-1].status == "success"
            if removed or retired:
                summary = f"Integrations removed: {', '.join(removed) or 'none'}."
                if retired:
                    summary += " Domain deactivated."
                self.store.log_activity(
                    domain["id"],
                    user_id,
                    "integrations_removed",
                    f"Active integrations: {', '.join(active) or 'none'}",
                    summary,
                )

            failed = [s.id for s in steps if s.status == "error"]
            log["failed_steps"] = failed

        return {
            "domain": domain_name,
            "success": not failed,
            "steps": [s.to_dict() for s in steps],
            "integrations": detected,
        }

"""
Cloudflare API client for zones, DNS records, SSL and firewall rules.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

import httpx

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"


class CloudflareAPIError(Exception):
    """Raised when Cloudflare returns an error"""
    pass


class CloudflareClient:
    """Client for interacting with the Cloudflare v4 API"""

    def __init__(
        self,
        email: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from .. import config

        self.email = email or config.CLOUDFLARE_EMAIL
        self.api_key = api_key or config.CLOUDFLARE_API_KEY
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.email and self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Auth-Email": self.email,
            "X-Auth-Key": self.api_key,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and return the `result` member of the Cloudflare envelope.

        Raises:
            CloudflareAPIError: On HTTP failure or `success: false`
        """
        if not self.configured:
            raise CloudflareAPIError("Cloudflare API credentials not configured")

        async with httpx.AsyncClient(
            base_url=CLOUDFLARE_API_URL,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            try:
                response = await client.request(
                    method, path, json=json, params=params, headers=self._headers()
                )
                body = response.json()
            except httpx.RequestError as e:
                raise CloudflareAPIError(f"Cloudflare request failed: {str(e)}") from e
            except ValueError as e:
                raise CloudflareAPIError(
                    f"Cloudflare HTTP {response.status_code}: invalid JSON body"
                ) from e

        if not body.get("success") or response.is_error:
            errors = body.get("errors") or []
            detail = "; ".join(
                f"{err.get('code', '?')}:{err.get('message', '')}" for err in errors
            ) or "Unknown error"
            raise CloudflareAPIError(f"Cloudflare HTTP {response.status_code}: {detail}")

        return body.get("result")

    async def create_zone(self, domain: str, jump_start: bool = True) -> Dict[str, Any]:
        """Create a zone for a domain and return the zone object (id, name_servers, ...)."""
        return await self._request("POST", "/zones", json={"name": domain, "jump_start": jump_start})

    async def create_dns_record(
        self,
        zone_id: str,
        record_type: str,
        name: str,
        content: str,
        proxied: bool = False,
        ttl: int = 1,
    ) -> Dict[str, Any]:
        """Create a DNS record in a zone. A ttl of 1 means automatic."""
        return await self._request(
            "POST",
            f"/zones/{zone_id}/dns_records",
            json={
                "type": record_type,
                "name": name,
                "content": content,
                "proxied": proxied,
                "ttl": ttl,
            },
        )

    async def set_ssl_mode(self, zone_id: str, mode: str = "full") -> Dict[str, Any]:
        """Set the zone SSL mode (off, flexible, full, strict)."""
        return await self._request("PATCH", f"/zones/{zone_id}/settings/ssl", json={"value": mode})

    async def create_filters(self, zone_id: str, filters: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        """Create filter expressions; each item has `expression` and `description`."""
        return await self._request("POST", f"/zones/{zone_id}/filters", json=filters) or []

    async def create_firewall_rules(
        self,
        zone_id: str,
        filter_ids: List[str],
        action: str = "block",
    ) -> List[Dict[str, Any]]:
        """Create one firewall rule per filter id with the same action."""
        rules = [{"filter": {"id": filter_id}, "action": action} for filter_id in filter_ids]
        return await self._request("POST", f"/zones/{zone_id}/firewall/rules", json=rules) or []

    async def list_zones(self) -> List[Dict[str, Any]]:
        """List every zone on the account, following pagination."""
        zones: List[Dict[str, Any]] = []
        page = 1
        while True:
            result = await self._request("GET", "/zones", params={"page": page, "per_page": 50})
            if not result:
                break
            zones.extend(result)
            if len(result) < 50:
                break
            page += 1
        return zones

    async def get_analytics(self, zone_id: str, since_days: int = 30) -> Dict[str, Any]:
        """Fetch the analytics dashboard for a zone over the last `since_days` days."""
        since = (datetime.now(timezone.utc) - timedelta(days=since_days)).isoformat()
        return await self._request(
            "GET", f"/zones/{zone_id}/analytics/dashboard", params={"since": since}
        )

    async def find_zone(self, domain: str) -> Optional[Dict[str, Any]]:
        """Return the zone named `domain`, or None when the account has none."""
        result = await self._request("GET", "/zones", params={"name": domain})
        return result[0] if result else None

    async def delete_zone(self, zone_id: str) -> Dict[str, Any]:
        """Delete a zone and every record in it."""
        return await self._request("DELETE", f"/zones/{zone_id}")

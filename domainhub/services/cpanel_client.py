"""
cPanel client: UAPI for hosted domains and bandwidth, API 2 for addon domain
removal and the Softaculous JSON API for WordPress installations.
"""
from typing import Optional, Dict, Any, List

import httpx

SOFTACULOUS_PATH = "/frontend/jupiter/softaculous/index.live.php"


class CpanelAPIError(Exception):
    """Raised when cPanel returns an error"""
    pass


class CpanelClient:
    """Client for the cPanel APIs (token auth)"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from .. import config

        self.base_url = (base_url or config.CPANEL_URL).rstrip("/")
        self.username = username or config.CPANEL_USERNAME
        self.api_token = api_token or config.CPANEL_API_TOKEN
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.username and self.api_token)

    async def _send(self, url: str, params: Optional[Dict[str, Any]], label: str, data: Optional[Dict[str, Any]] = None) -> Any:
        if not self.configured:
            raise CpanelAPIError("cPanel API credentials not configured")

        headers = {"Authorization": f"cpanel {self.username}:{self.api_token}"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                if data is None:
                    response = await client.get(url, params=params, headers=headers)
                else:
                    response = await client.post(url, params=params, data=data, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                raise CpanelAPIError(f"cPanel HTTP {e.response.status_code} for {label}") from e
            except httpx.RequestError as e:
                raise CpanelAPIError(f"cPanel request failed: {str(e)}") from e
            except ValueError as e:
                raise CpanelAPIError(f"cPanel {label} returned invalid JSON") from e

    async def _execute(self, module: str, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a UAPI function and return its `data` member."""
        label = f"{module}/{function}"
        body = await self._send(f"{self.base_url}/execute/{module}/{function}", params, label)

        if not body.get("status"):
            errors = body.get("errors") or ["Unknown error"]
            raise CpanelAPIError(f"cPanel {label} failed: {'; '.join(errors)}")

        return body.get("data") or {}

    async def _execute_api2(self, module: str, function: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Call a cPanel API 2 function (used where UAPI has no equivalent)."""
        label = f"{module}::{function}"
        query = {
            "cpanel_jsonapi_user": self.username,
            "cpanel_jsonapi_apiversion": 2,
            "cpanel_jsonapi_module": module,
            "cpanel_jsonapi_func": function,
            **params,
        }
        body = await self._send(f"{self.base_url}/json-api/cpanel", query, label)

        result = body.get("cpanelresult") or {}
        data = result.get("data") or []
        failed = [row for row in data if not row.get("result")]
        if result.get("error") or failed:
            reason = result.get("error") or "; ".join(str(row.get("reason", "Unknown error")) for row in failed)
            raise CpanelAPIError(f"cPanel {label} failed: {reason}")
        return data

    async def _domain_info(self) -> Dict[str, Any]:
        return await self._execute("DomainInfo", "list_domains")

    async def list_domains(self) -> List[str]:
        """Return main, addon and sub domains hosted on the account."""
        data = await self._domain_info()
        main_domain = data.get("main_domain")
        if not main_domain:
            return []
        return [main_domain] + list(data.get("addon_domains") or []) + list(data.get("sub_domains") or [])

    async def get_bandwidth(self) -> Dict[str, Any]:
        """Return bandwidth retention data for the account."""
        return await self._execute("Bandwidth", "get_retention_periods")

    async def find_addon_domain(self, domain: str) -> Optional[str]:
        """
        Return the subdomain cPanel created for an addon domain, or None.

        cPanel names it after the first label of the addon domain under the
        account's main domain (brand.com on main.com -> brand.main.com).
        """
        data = await self._domain_info()
        main_domain = data.get("main_domain")
        if not main_domain or domain not in (data.get("addon_domains") or []):
            return None
        return f"{domain.split('.', 1)[0]}.{main_domain}"

    async def remove_addon_domain(self, domain: str, subdomain: str) -> None:
        """Remove an addon domain together with its subdomain."""
        label, main_domain = subdomain.split(".", 1)
        await self._execute_api2(
            "AddonDomain", "deladdondomain", {"domain": domain, "subdomain": f"{label}_{main_domain}"},
        )

    async def _softaculous(self, params: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = await self._send(
            f"{self.base_url}{SOFTACULOUS_PATH}", {**params, "api": "json"}, f"softaculous {params.get('act')}", data,
        )
        if body.get("error"):
            errors = body["error"]
            detail = "; ".join(errors.values()) if isinstance(errors, dict) else str(errors)
            raise CpanelAPIError(f"Softaculous {params.get('act')} failed: {detail}")
        return body

    async def list_wordpress_installs(self) -> List[Dict[str, Any]]:
        """Flatten Softaculous installations into {insid, domain, url, path} dicts."""
        body = await self._softaculous({"act": "installations"})
        installs = []
        for per_script in (body.get("installations") or {}).values():
            for insid, info in (per_script or {}).items():
                installs.append({
                    "insid": insid,
                    "domain": (info.get("softdomain") or "").lower(),
                    "url": info.get("softurl"),
                    "path": info.get("softpath"),
                })
        return installs

    async def find_wordpress(self, domain: str) -> Optional[Dict[str, Any]]:
        return next((i for i in await self.list_wordpress_installs() if i["domain"] == domain), None)

    async def remove_wordpress(self, insid: str) -> None:
        """Uninstall a Softaculous installation, including its files and database."""
        await self._softaculous(
            {"act": "remove", "insid": insid},
            data={"removeins": 1, "remove_dir": 1, "remove_db": 1, "remove_dbuser": 1},
        )

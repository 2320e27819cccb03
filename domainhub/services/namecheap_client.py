"""
Namecheap API client for availability checks, registrations and nameserver updates.
Namecheap answers every command with an XML envelope; errors come back with
Status="ERROR" and an <Errors> list even when the HTTP status is 200.
"""
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Optional, Dict, Any, List

import httpx

NC_XML_NS = "{http://api.namecheap.com/xml.response}"
PAGE_SIZE = 100


class NamecheapAPIError(Exception):
    """Raised when Namecheap returns an error"""
    pass


def split_domain(domain: str) -> tuple:
    """Split a domain into (SLD, TLD) at the first dot: "site.com.br" -> ("site", "com.br")."""
    if "." not in domain:
        raise ValueError(f"Invalid domain name: {domain}")
    sld, tld = domain.split(".", 1)
    return sld, tld


def _to_float(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _is_true(value: Optional[str]) -> bool:
    return (value or "").lower() == "true"


class NamecheapClient:
    """Client for the Namecheap XML API"""

    def __init__(
        self,
        api_user: Optional[str] = None,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        client_ip: Optional[str] = None,
        sandbox: Optional[bool] = None,
        contact: Optional[Dict[str, str]] = None,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from .. import config

        self.api_user = api_user or config.NAMECHEAP_API_USER
        self.api_key = api_key or config.NAMECHEAP_API_KEY
        self.username = username or config.NAMECHEAP_USERNAME
        self.client_ip = client_ip or config.NAMECHEAP_CLIENT_IP
        self.sandbox = config.NAMECHEAP_SANDBOX if sandbox is None else sandbox
        self.contact = contact if contact is not None else config.NAMECHEAP_CONTACT
        self.timeout = timeout
        self.transport = transport
        self.base_url = (
            "https://api.sandbox.namecheap.com/xml.response"
            if self.sandbox
            else "https://api.namecheap.com/xml.response"
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_user and self.api_key)

    async def _call(self, command: str, **params) -> ET.Element:
        """
        Run a Namecheap command and return the parsed <CommandResponse> element.

        Raises:
            NamecheapAPIError: On HTTP failure or an ERROR status envelope
        """
        if not self.configured:
            raise NamecheapAPIError("Namecheap API credentials not configured")

        query = {
            "ApiUser": self.api_user,
            "ApiKey": self.api_key,
            "UserName": self.username,
            "ClientIp": self.client_ip,
            "Command": command,
        }
        query.update(params)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(self.base_url, params=query)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise NamecheapAPIError(
                    f"Namecheap HTTP {e.response.status_code} for {command}"
                ) from e
            except httpx.RequestError as e:
                raise NamecheapAPIError(
                    f"Namecheap request failed for {command}: {str(e)}"
                ) from e

        try:
            root = ET.fromstring(response.text)
        except ET.ParseError as e:
            raise NamecheapAPIError(f"Invalid XML from Namecheap for {command}") from e

        errors = root.findall(f".//{NC_XML_NS}Errors/{NC_XML_NS}Error")
        if root.attrib.get("Status", "").upper() == "ERROR" or errors:
            messages = [
                f"{e.attrib.get('Number', '?')}:{(e.text or '').strip()}" for e in errors
            ]
            raise NamecheapAPIError("; ".join(messages) or f"{command} failed")

        command_response = root.find(f"{NC_XML_NS}CommandResponse")
        if command_response is None:
            raise NamecheapAPIError(f"Missing CommandResponse for {command}")
        return command_response

    async def check_availability(self, domains: List[str]) -> Dict[str, Dict[str, Any]]:
        """
        Check availability for up to 50 domains.

        Returns:
            {domain: {"available": bool, "premium": bool, "price": float | None}}
        """
        result = await self._call("namecheap.domains.check", DomainList=",".join(domains))

        availability = {}
        for elem in result.findall(f"{NC_XML_NS}DomainCheckResult"):
            name = elem.attrib.get("Domain", "").lower()
            premium = _is_true(elem.attrib.get("IsPremiumName"))
            availability[name] = {
                "available": _is_true(elem.attrib.get("Available")),
                "premium": premium,
                "price": _to_float(elem.attrib.get("PremiumRegistrationPrice")) if premium else None,
            }
        return availability

    async def create_domain(self, domain: str, years: int = 1) -> Dict[str, Any]:
        """
        Register a domain using the configured contact for every contact role.

        Raises:
            NamecheapAPIError: If Namecheap does not confirm the registration
        """
        params = {"DomainName": domain, "Years": str(years)}
        for role in ("Registrant", "Tech", "Admin", "AuxBilling"):
            for field, value in self.contact.items():
                params[f"{role}{field}"] = value

        result = await self._call("namecheap.domains.create", **params)
        created = result.find(f"{NC_XML_NS}DomainCreateResult")
        if created is None or not _is_true(created.attrib.get("Registered")):
            raise NamecheapAPIError(f"Namecheap did not register {domain}")

        return {
            "domain": created.attrib.get("Domain", domain),
            "registered": True,
            "charged_amount": _to_float(created.attrib.get("ChargedAmount")),
            "domain_id": created.attrib.get("DomainID"),
            "order_id": created.attrib.get("OrderID"),
        }

    async def set_custom_nameservers(self, domain: str, nameservers: List[str]) -> bool:
        """Point a domain at custom nameservers (Cloudflare in the purchase flow)."""
        sld, tld = split_domain(domain)
        result = await self._call(
            "namecheap.domains.dns.setCustom",
            SLD=sld,
            TLD=tld,
            Nameservers=",".join(nameservers),
        )
        updated = result.find(f"{NC_XML_NS}DomainDNSSetCustomResult")
        if updated is None or not _is_true(updated.attrib.get("Updated")):
            raise NamecheapAPIError(f"Nameservers not updated for {domain}")
        return True

    async def get_balance(self) -> float:
        """Return the available account balance in USD."""
        result = await self._call("namecheap.users.getBalances")
        balances = result.find(f"{NC_XML_NS}UserGetBalancesResult")
        if balances is None:
            raise NamecheapAPIError("Missing UserGetBalancesResult")
        for attr in ("AvailableBalance", "AccountBalance"):
            value = _to_float(balances.attrib.get(attr))
            if value is not None:
                return value
        return 0.0

    async def list_domains(self, list_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List every domain in the account, following pagination.

        Args:
            list_type: Namecheap ListType filter (ALL, EXPIRING, EXPIRED)
        """
        domains: List[Dict[str, Any]] = []
        page = 1

        while True:
            params = {"PageSize": str(PAGE_SIZE), "Page": str(page)}
            if list_type:
                params["ListType"] = list_type
            result = await self._call("namecheap.domains.getList", **params)

            for elem in result.findall(f"{NC_XML_NS}DomainGetListResult/{NC_XML_NS}Domain"):
                domains.append({
                    "id": elem.attrib.get("ID"),
                    "name": elem.attrib.get("Name", "").lower(),
                    "expires": _parse_expires(elem.attrib.get("Expires")),
                    "is_expired": _is_true(elem.attrib.get("IsExpired")),
                    "is_locked": _is_true(elem.attrib.get("IsLocked")),
                    "auto_renew": _is_true(elem.attrib.get("AutoRenew")),
                    "is_premium": _is_true(elem.attrib.get("IsPremium")),
                })

            total_elem = result.find(f"{NC_XML_NS}Paging/{NC_XML_NS}TotalItems")
            total = int(total_elem.text) if total_elem is not None and total_elem.text else 0
            if page * PAGE_SIZE >= total:
                break
            page += 1

        return domains


def _parse_expires(value: Optional[str]) -> Optional[str]:
    """Namecheap reports expiry as MM/DD/YYYY; convert to ISO date."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%m/%d/%Y").date().isoformat()
    except ValueError:
        return None

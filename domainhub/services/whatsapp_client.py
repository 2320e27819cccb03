"""
Z-API client for sending WhatsApp notifications.
"""
import re
from typing import Optional, Dict, Any

import httpx


class WhatsAppAPIError(Exception):
    """Raised when Z-API returns an error"""
    pass


def normalize_phone(phone: str) -> str:
    """
    Reduce a phone number or WhatsApp JID to digits.

    - JID format: "5519999999999@s.whatsapp.net" -> "5519999999999"
    - Formatted: "+55 (19) 99999-9999" -> "5519999999999"
    """
    if "@" in phone:
        phone = phone.split("@")[0]
    return re.sub(r"\D", "", phone)


class WhatsAppClient:
    """Client for the Z-API send-text endpoint"""

    def __init__(
        self,
        instance: Optional[str] = None,
        token: Optional[str] = None,
        client_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from .. import config

        self.instance = instance or config.ZAPI_INSTANCE
        self.token = token or config.ZAPI_TOKEN
        self.client_token = client_token or config.ZAPI_CLIENT_TOKEN
        self.base_url = (base_url or config.ZAPI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.instance and self.token)

    async def send_text(self, phone: str, message: str) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            phone: Destination number (any format, normalized to digits)
            message: Message text, WhatsApp markdown allowed

        Returns:
            Z-API response dict

        Raises:
            WhatsAppAPIError: If Z-API is not configured or the request fails
        """
        if not self.configured:
            raise WhatsAppAPIError("Z-API instance/token not configured")

        number = normalize_phone(phone)
        if not number:
            raise WhatsAppAPIError(f"Invalid phone number: {phone!r}")

        endpoint = f"{self.base_url}/instances/{self.instance}/token/{self.token}/send-text"
        headers = {"Content-Type": "application/json"}
        if self.client_token:
            headers["Client-Token"] = self.client_token

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    endpoint,
                    json={"phone": number, "message": message},
                    headers=headers,
                )
                response.raise_for_status()
                result = response.json()

                if isinstance(result, dict) and result.get("error"):
                    raise WhatsAppAPIError(f"Z-API error: {result.get('message') or result.get('error')}")

                return result

            except httpx.HTTPStatusError as e:
                try:
                    error_body = e.response.json()
                    error_detail = error_body.get("message") or error_body.get("error") or str(error_body)
                except ValueError:
                    error_detail = e.response.text

                raise WhatsAppAPIError(
                    f"Z-API HTTP {e.response.status_code}: {error_detail}"
                ) from e

            except httpx.RequestError as e:
                raise WhatsAppAPIError(f"Z-API request failed: {str(e)}") from e

"""
Availability checks through the n8n webhook workflow.

The workflow receives a comma-separated domain list and answers with the
available/unavailable split. Depending on how the workflow is wired the lists
can be wrapped in `data` and/or `dados_originais`.
"""
from dataclasses import dataclass, field
from typing import Optional, List

import httpx


class AvailabilityCheckError(Exception):
    """Raised when the availability webhook cannot be reached or fails"""
    pass


@dataclass
class AvailabilityResult:
    available: List[str] = field(default_factory=list)
    unavailable: List[str] = field(default_factory=list)
    # False when the webhook answered without any availability lists
    reported: bool = True


def parse_availability_payload(payload) -> AvailabilityResult:
    """Normalize the different webhook response shapes into an AvailabilityResult."""
    if not isinstance(payload, dict):
        return AvailabilityResult(reported=False)

    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    original = data.get("dados_originais") if isinstance(data.get("dados_originais"), dict) else data

    available = original.get("dominios_disponiveis")
    if available is None:
        available = original.get("available")
    unavailable = original.get("dominios_indisponiveis")
    if unavailable is None:
        unavailable = original.get("unavailable")

    if available is None and unavailable is None:
        return AvailabilityResult(reported=False)

    return AvailabilityResult(
        available=[d.strip().lower() for d in (available or []) if d],
        unavailable=[d.strip().lower() for d in (unavailable or []) if d],
    )


class AvailabilityChecker:
    """Client for the n8n availability webhook"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        from .. import config

        self.webhook_url = webhook_url or config.N8N_WEBHOOK_URL
        self.api_key = api_key or config.N8N_API_KEY
        self.timeout = timeout or config.AVAILABILITY_TIMEOUT
        self.transport = transport

    async def check(self, domains: List[str]) -> AvailabilityResult:
        """
        Ask the webhook which of `domains` are available.

        Raises:
            AvailabilityCheckError: If the webhook is not configured, times out or errors
        """
        if not self.webhook_url:
            raise AvailabilityCheckError("N8N_WEBHOOK_URL not configured")

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=float(self.timeout), transport=self.transport) as client:
            try:
                response = await client.post(
                    self.webhook_url,
                    json={"domains": ",".join(domains)},
                    headers=headers,
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.TimeoutException as e:
                raise AvailabilityCheckError(
                    f"Availability webhook timeout ({self.timeout}s)"
                ) from e
            except httpx.HTTPStatusError as e:
                raise AvailabilityCheckError(
                    f"Availability webhook returned HTTP {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise AvailabilityCheckError(
                    f"Failed to reach availability webhook: {str(e)}"
                ) from e
            except ValueError as e:
                raise AvailabilityCheckError("Availability webhook returned invalid JSON") from e

        return parse_availability_payload(payload)

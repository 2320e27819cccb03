"""
Domain purchase orchestration.

Every purchase follows the same chain of provider calls:

    availability -> Namecheap registration -> Cloudflare nameservers -> zone
    -> DNS records -> SSL -> firewall -> database -> WhatsApp notification

A failure on one domain is recorded in the progress log and the run moves on
to the next domain. Only a failed availability check (nothing to buy) ends a
bulk run early.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from .availability import AvailabilityChecker, AvailabilityCheckError
from .cloudflare_client import CloudflareClient, CloudflareAPIError
from .namecheap_client import NamecheapClient, NamecheapAPIError
from .notifications import NotificationService
from .purchase_sessions import ProgressLog, PurchaseSessionStore
from .suggestions import DomainSuggestionService
from . import domain_store
from ..logger import log_info, log_warning, log_error

STRUCTURES = ("wordpress", "atomicat")
DEFAULT_TLD_PRICES = {"com": 12.0}

FIREWALL_FILTERS = [
    {
        "expression": '(http.request.uri.path contains "sitemap")',
        "description": "Block sitemap access",
    },
    {
        "expression": '(http.request.uri.query contains "?s=")',
        "description": "Block malicious search",
    },
]


class PurchaseValidationError(ValueError):
    """Raised when a purchase request is malformed"""
    pass


class PurchaseError(Exception):
    """Raised when a purchase run cannot continue"""

    def __init__(self, message: str, progress: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.progress = progress or []


@dataclass
class PurchasedDomain:
    domain: str
    price: float
    available: bool = True
    registrar: str = "namecheap"
    zone_id: Optional[str] = None
    nameservers_set: bool = False
    dns_configured: bool = False
    ssl_configured: bool = False
    firewall_configured: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def tld_of(domain: str) -> str:
    return domain.rsplit(".", 1)[-1].lower()


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar day `years` later. Feb 29 falls back to Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def normalize_domains(domains) -> List[str]:
    """Strip, lowercase and de-duplicate while keeping the requested order."""
    seen = []
    for domain in domains or []:
        if not isinstance(domain, str):
            continue
        domain = domain.strip().lower()
        if domain and domain not in seen:
            seen.append(domain)
    return seen


def resolve_price(domain: str, reported_price: Optional[float] = None) -> float:
    """Registrar-reported price when known, else the default for the TLD."""
    from .. import config

    if reported_price is not None:
        return reported_price
    return DEFAULT_TLD_PRICES.get(tld_of(domain), config.DEFAULT_DOMAIN_PRICE)


def exceeds_price_limit(domain: str, price: float, limits: Optional[Dict[str, float]] = None) -> bool:
    """True when the TLD has a configured ceiling and the price is above it."""
    from .. import config

    limits = config.PRICE_LIMITS if limits is None else limits
    limit = limits.get(tld_of(domain))
    return limit is not None and price > limit


def build_domain_row(
    item: PurchasedDomain,
    user_id: str,
    structure: str,
    now: datetime,
    nameservers: List[str],
    propagation_hours: int,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the `domains` row for a freshly registered domain."""
    row = {
        "user_id": user_id,
        "purchased_by": user_id,
        "domain_name": item.domain,
        "status": "active",
        "registrar": "namecheap",
        "integration_source": "namecheap",
        "auto_renew": False,
        "purchase_date": now.isoformat(),
        # Registrations are always ordered for one year
        "expiration_date": add_years(now, 1).isoformat(),
        "purchase_price": item.price,
        "nameservers": list(nameservers) if item.nameservers_set else [],
        "zone_id": item.zone_id,
        "dns_configured": item.dns_configured,
        "ssl_status": "full" if item.ssl_configured else "pending",
        "structure_type": structure,
        "platform": structure,
        "propagation_ends_at": (
            (now + timedelta(hours=propagation_hours)).isoformat()
            if structure == "wordpress" else None
        ),
        "monthly_visits": 0,
    }
    if extra:
        row.update({k: v for k, v in extra.items() if v is not None})
    return row


class PurchaseOrchestrator:
    """Runs bulk, manual and AI-assisted purchases"""

    def __init__(
        self,
        namecheap: Optional[NamecheapClient] = None,
        cloudflare: Optional[CloudflareClient] = None,
        checker: Optional[AvailabilityChecker] = None,
        notifier: Optional[NotificationService] = None,
        suggestions: Optional[DomainSuggestionService] = None,
        sessions: Optional[PurchaseSessionStore] = None,
        store=None,
    ):
        from .. import config

        self.namecheap = namecheap or NamecheapClient()
        self.cloudflare = cloudflare or CloudflareClient()
        self.checker = checker or AvailabilityChecker()
        self.notifier = notifier or NotificationService()
        self.suggestions = suggestions or DomainSuggestionService(checker=self.checker)
        self.sessions = sessions or PurchaseSessionStore()
        self.store = store or domain_store

        self.nameservers = list(config.CLOUDFLARE_NAMESERVERS)
        self.origin_ip = config.SITE_ORIGIN_IP
        self.tracking_target = config.TRACKING_CNAME_TARGET
        self.propagation_hours = config.PROPAGATION_HOURS

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _verify(self, domains: List[str], progress: ProgressLog) -> List[str]:
        progress.add("verification", "in_progress", "Checking domain availability...")
        try:
            result = await self.checker.check(domains)
        except AvailabilityCheckError as e:
            raise PurchaseError(f"Availability check failed: {e}") from e

        if result.reported:
            available = [d for d in domains if d in result.available]
        else:
            log_warning(
                "Availability webhook returned no lists, keeping every requested domain",
                action="verification_unreported",
                domain_count=len(domains),
            )
            available = list(domains)

        progress.add("verification", "completed", f"{len(available)} available domains found")

        if not available:
            raise PurchaseError("No domains available for purchase")
        return available

    async def _configure(self, item: PurchasedDomain, progress: ProgressLog) -> None:
        """
        Point the domain at Cloudflare and set up zone, DNS, SSL and firewall.

        Raises:
            NamecheapAPIError, CloudflareAPIError: On the first failing call
        """
        domain = item.domain

        progress.add("nameservers", "in_progress", f"Setting nameservers for {domain}...")
        await self.namecheap.set_custom_nameservers(domain, self.nameservers)
        item.nameservers_set = True
        progress.add("nameservers", "completed", f"Nameservers set for {domain}")

        progress.add("cloudflare_zone", "in_progress", f"Creating Cloudflare zone for {domain}...")
        zone = await self.cloudflare.create_zone(domain)
        item.zone_id = zone["id"]
        progress.add("cloudflare_zone", "completed", f"Cloudflare zone created for {domain}")

        progress.add("dns_records", "in_progress", f"Creating DNS records for {domain}...")
        await self.cloudflare.create_dns_record(item.zone_id, "CNAME", "www", domain, proxied=True)
        await self.cloudflare.create_dns_record(item.zone_id, "CNAME", "track", self.tracking_target, proxied=False)
        await self.cloudflare.create_dns_record(item.zone_id, "A", "@", self.origin_ip, proxied=True)
        item.dns_configured = True
        progress.add("dns_records", "completed", f"DNS records created for {domain}")

        progress.add("ssl", "in_progress", f"Configuring SSL for {domain}...")
        await self.cloudflare.set_ssl_mode(item.zone_id, "full")
        item.ssl_configured = True
        progress.add("ssl", "completed", f"SSL configured for {domain}")

        progress.add("firewall", "in_progress", f"Configuring firewall for {domain}...")
        filters = await self.cloudflare.create_filters(item.zone_id, FIREWALL_FILTERS)
        filter_ids = [f["id"] for f in filters if f.get("id")]
        if filter_ids:
            await self.cloudflare.create_firewall_rules(item.zone_id, filter_ids, action="block")
        item.firewall_configured = True
        progress.add("firewall", "completed", f"Firewall configured for {domain}")

    async def _configure_safely(self, item: PurchasedDomain, progress: ProgressLog, **context) -> Optional[str]:
        """
        Run `_configure` for a domain that is already registered.

        The registration cannot be undone, so no failure here may stop the domain
        from being saved. Returns the error message, or None when everything was set up.
        """
        try:
            await self._configure(item, progress)
            return None
        except (NamecheapAPIError, CloudflareAPIError) as e:
            error = str(e)
            log_warning("Domain configuration incomplete", domain=item.domain, action="configure_failed", error=error, **context)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            log_error(
                "Domain configuration crashed",
                domain=item.domain,
                action="configure_error",
                error_type=type(e).__name__,
                exc_info=True,
                **context,
            )

        progress.add("purchase", "error", f"Error processing {item.domain}: {error}")
        return error

    async def _purchase_one(
        self,
        domain: str,
        structure: str,
        progress: ProgressLog,
    ) -> Optional[PurchasedDomain]:
        price = resolve_price(domain)
        if exceeds_price_limit(domain, price):
            progress.add("purchase", "error", f"Domain {domain} exceeds the price limit")
            return None

        try:
            order = await self.namecheap.create_domain(domain)
        except NamecheapAPIError as e:
            log_warning("Registration failed", domain=domain, step="purchase", action="purchase_failed", error=str(e))
            progress.add("purchase", "error", f"Error processing {domain}: {e}")
            return None

        item = PurchasedDomain(domain=domain, price=order.get("charged_amount") or price)
        progress.add("purchase", "in_progress", f"Domain {domain} purchased successfully")
        log_info("Domain registered", domain=domain, step="purchase", action="purchase_success")

        if structure == "atomicat":
            return item

        await self._configure_safely(item, progress)
        return item

    def _persist(
        self,
        items: List[PurchasedDomain],
        user_id: str,
        structure: str,
        progress: ProgressLog,
        extra: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        progress.add("database", "in_progress", "Saving domains to the database...")
        now = datetime.now(timezone.utc)
        saved = []
        failed = 0

        for item in items:
            row = build_domain_row(
                item, user_id, structure, now, self.nameservers, self.propagation_hours, extra
            )
            try:
                inserted = self.store.insert_domain(row)
            except Exception as e:
                failed += 1
                log_error(
                    "Failed to save purchased domain",
                    domain=item.domain,
                    action="persist_failed",
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                progress.add("database", "error", f"Failed to save {item.domain}: {e}")
                continue

            saved.append(inserted or row)
            self.store.log_activity(
                (inserted or {}).get("id"),
                user_id,
                "purchase",
                None,
                f"{item.domain} purchased for {item.price:.2f} USD ({structure})",
            )

        if failed:
            progress.add("database", "error", f"{failed} domains could not be saved")
        else:
            progress.add("database", "completed", "Domains saved to the database")
        return saved

    async def _notify(self, user_id: str, domains: List[str], progress: ProgressLog) -> None:
        progress.add("notification", "in_progress", "Sending notification...")
        try:
            outcome = await self.notifier.notify_purchase(user_id, domains)
        except Exception as e:
            log_warning("Purchase notification failed", user_id=user_id, action="notify_failed", error=str(e))
            progress.add("notification", "error", f"Error sending notification: {e}")
            return

        if outcome.get("sent"):
            progress.add("notification", "completed", "Notification sent successfully")
        else:
            progress.add("notification", "completed", f"Notification skipped ({outcome.get('reason')})")

    # ------------------------------------------------------------------
    # Bulk purchase
    # ------------------------------------------------------------------

    async def purchase_bulk(
        self,
        domains: List[str],
        user_id: str,
        structure: str = "wordpress",
        progress: Optional[ProgressLog] = None,
    ) -> Dict[str, Any]:
        """
        Purchase and configure a list of domains.

        Returns:
            {"success", "purchased_domains", "progress", "message"}

        Raises:
            PurchaseValidationError: For an empty list, missing user or unknown structure
            PurchaseError: When availability cannot be verified or nothing is available;
                           `progress` carries the log up to the failure
        """
        domains = normalize_domains(domains)
        if not domains:
            raise PurchaseValidationError("No domains provided")
        if not user_id:
            raise PurchaseValidationError("User ID is required")
        if structure not in STRUCTURES:
            raise PurchaseValidationError(f"Invalid structure: {structure}")

        progress = progress or ProgressLog()
        log_info(
            "Bulk purchase started",
            user_id=user_id,
            action="bulk_purchase_start",
            domain_count=len(domains),
            structure=structure,
        )

        try:
            available = await self._verify(domains, progress)
        except PurchaseError as e:
            progress.add("error", "error", f"Purchase process failed: {e}")
            log_error("Bulk purchase aborted", user_id=user_id, action="bulk_purchase_failed", error=str(e))
            e.progress = progress.to_list()
            raise

        progress.add("purchase", "in_progress", f"Purchasing {len(available)} domains on Namecheap...")
        purchased: List[PurchasedDomain] = []
        for domain in available:
            item = await self._purchase_one(domain, structure, progress)
            if item:
                purchased.append(item)
        progress.add("purchase", "completed", f"{len(purchased)} domains purchased and configured")

        if purchased:
            self._persist(purchased, user_id, structure, progress)
            await self._notify(user_id, [p.domain for p in purchased], progress)

        log_info(
            "Bulk purchase finished",
            user_id=user_id,
            action="bulk_purchase_complete",
            purchased=len(purchased),
            requested=len(domains),
        )

        return {
            "success": True,
            "purchased_domains": [p.to_dict() for p in purchased],
            "progress": progress.to_list(),
            "message": f"{len(purchased)} domains purchased and configured successfully",
        }

    # ------------------------------------------------------------------
    # Background sessions
    # ------------------------------------------------------------------

    def _mirror(self, session_id: str):
        """Progress callback copying entries onto a session. Sub-steps never finish the session."""
        def on_entry(entry: Dict[str, str]) -> None:
            self.sessions.update(session_id, entry["step"], "in_progress", entry["message"])
        return on_entry

    def get_session(self, session_id: str) -> Dict[str, Any]:
        """Raises SessionNotFoundError for unknown or expired ids."""
        return self.sessions.get(session_id).to_dict()

    def start_manual_purchase(
        self,
        domain: str,
        user_id: str,
        platform: str,
        traffic_source: str,
    ):
        """Validate a manual purchase and open its session. The caller schedules `run_manual_purchase`."""
        domain = (domain or "").strip().lower()
        if not domain or "." not in domain:
            raise PurchaseValidationError("A valid domain is required")
        if not user_id:
            raise PurchaseValidationError("User ID is required")
        if platform not in STRUCTURES:
            raise PurchaseValidationError(f"Invalid platform: {platform}")
        if not (traffic_source or "").strip():
            raise PurchaseValidationError("Traffic source is required")

        session = self.sessions.create("manual", user_id)
        self.sessions.update(session.session_id, "pending", "in_progress", f"Purchase of {domain} queued")
        return session

    async def run_manual_purchase(
        self,
        session_id: str,
        domain: str,
        user_id: str,
        platform: str,
        traffic_source: str,
        price: Optional[float] = None,
        funnel_id: Optional[str] = None,
    ) -> None:
        """Background body of the manual purchase flow; all outcomes land on the session."""
        domain = domain.strip().lower()
        update = self.sessions.update

        try:
            update(session_id, "checking", "in_progress", f"Checking availability of {domain}...")
            availability = await self.namecheap.check_availability([domain])
            info = availability.get(domain)
            if not info or not info.get("available"):
                raise PurchaseError(f"Domain {domain} is not available")

            update(session_id, "purchasing", "in_progress", f"Purchasing {domain} on Namecheap...")
            order = await self.namecheap.create_domain(domain)
            item = PurchasedDomain(
                domain=domain,
                price=order.get("charged_amount") or resolve_price(domain, info.get("price") or price),
            )

            config_error = None
            if platform == "wordpress":
                update(session_id, "configuring", "in_progress", f"Configuring Cloudflare for {domain}...")
                progress = ProgressLog(on_entry=self._mirror(session_id))
                config_error = await self._configure_safely(item, progress, session_id=session_id)

                update(
                    session_id,
                    "creating_wordpress",
                    "in_progress",
                    f"Preparing WordPress site, DNS propagation takes about {self.propagation_hours}h",
                )

            update(session_id, "saving", "in_progress", "Saving domain to the database...")
            progress = ProgressLog()
            self._persist(
                [item],
                user_id,
                platform,
                progress,
                extra={"traffic_source": traffic_source.strip(), "funnel_id": funnel_id},
            )
            if progress.errors():
                raise PurchaseError(progress.errors()[-1]["message"])

            update(session_id, "notifying", "in_progress", "Sending notification...")
            await self._notify(user_id, [domain], ProgressLog())

            message = f"Domain {domain} purchased successfully"
            if config_error:
                message += f" (configuration incomplete: {config_error})"
            update(session_id, "completed", "completed", message, result={"purchased_domain": item.to_dict()})
            log_info("Manual purchase completed", domain=domain, session_id=session_id, action="manual_purchase_complete")

        except (PurchaseError, NamecheapAPIError) as e:
            update(session_id, "error", "error", str(e))
            log_warning("Manual purchase failed", domain=domain, session_id=session_id, action="manual_purchase_failed", error=str(e))
        except Exception as e:
            update(session_id, "error", "error", f"Unexpected error: {e}")
            log_error(
                "Manual purchase crashed",
                domain=domain,
                session_id=session_id,
                action="manual_purchase_error",
                error_type=type(e).__name__,
                exc_info=True,
            )

    def start_ai_purchase(
        self,
        niche: str,
        quantity: int,
        user_id: str,
        structure: str = "wordpress",
    ):
        """Validate an AI purchase and open its session. The caller schedules `run_ai_purchase`."""
        if not (niche or "").strip():
            raise PurchaseValidationError("Niche is required")
        if quantity < 1:
            raise PurchaseValidationError("Quantity must be at least 1")
        if not user_id:
            raise PurchaseValidationError("User ID is required")
        if structure not in STRUCTURES:
            raise PurchaseValidationError(f"Invalid structure: {structure}")

        session = self.sessions.create("ai", user_id)
        self.sessions.update(session.session_id, "pending", "in_progress", f"Looking for {quantity} domains")
        return session

    async def run_ai_purchase(
        self,
        session_id: str,
        niche: str,
        quantity: int,
        language: str,
        structure: str,
        user_id: str,
    ) -> None:
        """Background body of the AI flow: suggestions, then a bulk purchase."""
        update = self.sessions.update

        try:
            update(session_id, "generating", "in_progress", "Generating domain suggestions...")
            found = await self.suggestions.find_available(niche.strip(), quantity, language)
            if not found["domains"]:
                raise PurchaseError("No domains were generated by the AI")

            update(
                session_id,
                "purchasing",
                "in_progress",
                f"{len(found['domains'])} domains found. Starting purchase...",
            )
            progress = ProgressLog(on_entry=self._mirror(session_id))
            result = await self.purchase_bulk(found["domains"], user_id, structure, progress=progress)
            result["suggestions"] = found

            update(session_id, "completed", "completed", result["message"], result=result)

        except PurchaseError as e:
            update(session_id, "error", "error", str(e), result={"progress": e.progress} if e.progress else None)
            log_warning("AI purchase failed", session_id=session_id, action="ai_purchase_failed", error=str(e))
        except Exception as e:
            update(session_id, "error", "error", f"Unexpected error: {e}")
            log_error(
                "AI purchase crashed",
                session_id=session_id,
                action="ai_purchase_error",
                error_type=type(e).__name__,
                exc_info=True,
            )

from fastapi import FastAPI, HTTPException, Request, Depends, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
from .db import supabase
from .auth import auth_router, users_router, get_current_user, require_permission, has_permission
from .models import (
    BulkPurchaseRequest, ManualPurchaseRequest, AIPurchaseRequest,
    DomainCheckRequest, SuggestionRequest, DomainUpdate, ClassifyRequest,
    NameserversUpdate, NotificationSettingsUpdate, CustomFilterCreate, DeactivationRequest,
)
from .services import domain_store
from .services.purchase_orchestrator import (
    PurchaseOrchestrator, PurchaseError, PurchaseValidationError, normalize_domains,
)
from .services.purchase_sessions import SessionNotFoundError
from .services.sync import IntegrationSync
from .services.deactivation import DomainDeactivation
from .services.notifications import notify_critical_domains
from .services.namecheap_client import NamecheapAPIError
from .services.cloudflare_client import CloudflareAPIError
from .services.cpanel_client import CpanelAPIError
from .services.llm_client import UnsupportedProviderError
from .config import (
    APP_VERSION, CRON_SECRET, CORS_ORIGINS, CRITICAL_EXPIRY_DAYS,
)
from .logger import logger, log_info, log_warning, log_error, configure_logger_from_config

# Configure logger with settings from config
configure_logger_from_config()

app = FastAPI(title="DomainHub Control Plane", version=APP_VERSION)

# Configure CORS for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)

logger.info("DomainHub Control Plane starting up")
logger.info(f"CORS enabled for origins: {', '.join(CORS_ORIGINS)}")

# Shared services; background purchase sessions live inside the orchestrator
orchestrator = PurchaseOrchestrator()
integration_sync = IntegrationSync(
    namecheap=orchestrator.namecheap,
    cloudflare=orchestrator.cloudflare,
)
deactivation = DomainDeactivation(
    cloudflare=orchestrator.cloudflare,
    cpanel=integration_sync.cpanel,
)
notifier = orchestrator.notifier

PROVIDER_ERRORS = (NamecheapAPIError, CloudflareAPIError, CpanelAPIError)


@app.on_event("startup")
async def startup_event():
    log_info(
        "Purchase providers loaded",
        action="startup",
        namecheap=orchestrator.namecheap.configured,
        cloudflare=orchestrator.cloudflare.configured,
        whatsapp=notifier.client.configured,
    )


def _load_owned_domain(domain_id: str, user: dict) -> dict:
    """Fetch a domain the user may see. Admins see every domain."""
    domain = domain_store.get_domain(domain_id)
    if not domain or (not user["is_admin"] and domain.get("user_id") != user["id"]):
        raise HTTPException(status_code=404, detail=f"Domain {domain_id} not found")
    return domain


def _scope(user: dict) -> Optional[str]:
    return None if user["is_admin"] else user["id"]


@app.get("/health")
async def health():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        - ok: Overall health status (true/false)
        - checks: Individual component health statuses
        - version: API version
        - timestamp: Current server time
    """
    from datetime import datetime, timezone
    from .config import ANTHROPIC_API_KEY, OPENAI_API_KEY

    health_status = {
        "ok": True,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {}
    }

    try:
        supabase.table("profiles").select("id").limit(1).execute()
        health_status["checks"]["database"] = {
            "status": "ok",
            "message": "Connected to Supabase"
        }
    except Exception as e:
        health_status["ok"] = False
        health_status["checks"]["database"] = {
            "status": "error",
            "message": f"Database connection failed: {str(e)}"
        }

    providers = {
        "namecheap": orchestrator.namecheap.configured,
        "cloudflare": orchestrator.cloudflare.configured,
        "whatsapp": notifier.client.configured,
        "llm": bool(ANTHROPIC_API_KEY or OPENAI_API_KEY),
    }
    for name, configured in providers.items():
        health_status["checks"][name] = {
            "status": "ok" if configured else "warning",
            "message": f"{name} configured" if configured else f"{name} credentials not configured"
        }

    return health_status


# ============================================================================
# PURCHASES
# ============================================================================

@app.post("/api/purchase-domains")
async def purchase_domains(
    data: BulkPurchaseRequest,
    user: dict = Depends(require_permission("can_ai_purchase")),
):
    """
    Purchase and configure a list of domains synchronously.

    Returns:
        {
            "success": true,
            "purchased_domains": [{"domain": "example.online", "price": 1.0, ...}],
            "progress": [{"step": "verification", "status": "completed", ...}],
            "message": "2 domains purchased and configured successfully"
        }
    """
    try:
        return await orchestrator.purchase_bulk(data.domains, user["id"], data.structure)

    except PurchaseValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PurchaseError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e), "progress": e.progress},
        )
    except Exception as e:
        log_error(
            "Bulk purchase failed",
            action="bulk_purchase_error",
            user_id=user["id"],
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Purchase failed: {str(e)}")


@app.post("/api/purchase-domains/manual")
async def purchase_domain_manual(
    data: ManualPurchaseRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_permission("can_manual_purchase")),
):
    """
    Start a single-domain purchase in the background.

    Poll `/api/purchase-domains/status/{session_id}` for progress.
    """
    try:
        session = orchestrator.start_manual_purchase(
            data.domain, user["id"], data.platform, data.traffic_source
        )
    except PurchaseValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(
        orchestrator.run_manual_purchase,
        session.session_id,
        data.domain,
        user["id"],
        data.platform,
        data.traffic_source,
        data.price,
        data.funnel_id,
    )
    log_info(
        "Manual purchase queued",
        action="manual_purchase_queued",
        user_id=user["id"],
        domain=data.domain,
        session_id=session.session_id,
    )
    return {"success": True, "session_id": session.session_id}


@app.post("/api/purchase-domains/ai")
async def purchase_domains_ai(
    data: AIPurchaseRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_permission("can_ai_purchase")),
):
    """Generate domains with the LLM and buy the available ones in the background."""
    try:
        session = orchestrator.start_ai_purchase(data.niche, data.quantity, user["id"], data.structure)
    except PurchaseValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(
        orchestrator.run_ai_purchase,
        session.session_id,
        data.niche,
        data.quantity,
        data.language,
        data.structure,
        user["id"],
    )
    log_info(
        "AI purchase queued",
        action="ai_purchase_queued",
        user_id=user["id"],
        session_id=session.session_id,
        quantity=data.quantity,
    )
    return {"success": True, "session_id": session.session_id}


@app.get("/api/purchase-domains/status/{session_id}")
async def get_purchase_status(session_id: str, user: dict = Depends(get_current_user)):
    try:
        session = orchestrator.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    # Sessions are private to the user who started them
    if session["user_id"] != user["id"] and not user["is_admin"]:
        raise HTTPException(status_code=404, detail=f"Purchase session {session_id} not found")
    return session


@app.post("/api/domains/check")
async def check_domains(
    data: DomainCheckRequest,
    user: dict = Depends(require_permission("can_access_domain_search")),
):
    """Look up availability and premium pricing on Namecheap."""
    domains = normalize_domains(data.domains)
    if not domains:
        raise HTTPException(status_code=400, detail="No domains provided")

    try:
        results = await orchestrator.namecheap.check_availability(domains)
    except NamecheapAPIError as e:
        log_warning("Availability lookup failed", action="domain_check_failed", user_id=user["id"], error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return {"results": results}


@app.post("/api/domains/suggestions")
async def suggest_domains(
    data: SuggestionRequest,
    user: dict = Depends(require_permission("can_access_domain_search")),
):
    """Generate available `.online` domain names for a niche."""
    if not data.niche.strip():
        raise HTTPException(status_code=400, detail="Niche is required")

    try:
        return await orchestrator.suggestions.find_available(data.niche.strip(), data.quantity, data.language)
    except (UnsupportedProviderError, ValueError) as e:
        raise HTTPException(status_code=503, detail=f"LLM provider unavailable: {str(e)}")


# ============================================================================
# DOMAIN MANAGEMENT
# ============================================================================

@app.get("/api/domains")
def list_domains(
    status: Optional[str] = None,
    integration_source: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(require_permission("can_access_management")),
):
    if status and status not in domain_store.DOMAIN_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    if integration_source and integration_source not in domain_store.INTEGRATION_SOURCES:
        raise HTTPException(status_code=400, detail=f"Invalid integration source: {integration_source}")

    try:
        domains = domain_store.list_domains(_scope(user), status, integration_source, search)
    except Exception as e:
        log_error(
            "Failed to list domains",
            action="list_domains_failed",
            user_id=user["id"],
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Failed to list domains: {str(e)}")

    return {"domains": domains, "total": len(domains)}


@app.get("/api/domains/critical")
def list_critical_domains(user: dict = Depends(require_permission("can_view_critical_domains"))):
    """Expired or suspended domains plus auto-renew-off domains expiring soon."""
    critical = domain_store.find_critical_domains(
        domain_store.list_domains(_scope(user)), CRITICAL_EXPIRY_DAYS
    )
    return {"domains": critical, "total": len(critical)}


@app.get("/api/domains/{domain_id}")
def get_domain(domain_id: str, user: dict = Depends(require_permission("can_view_domain_details"))):
    return _load_owned_domain(domain_id, user)


@app.patch("/api/domains/{domain_id}")
def update_domain(
    domain_id: str,
    data: DomainUpdate,
    user: dict = Depends(require_permission("can_access_management")),
):
    """
    Update status, platform, traffic source or funnel id.

    Each field needs its own permission; a request touching a field the user
    may not change is rejected as a whole.
    """
    field_permissions = {
        "status": "can_change_domain_status",
        "platform": "can_select_platform",
        "traffic_source": "can_select_traffic_source",
        "funnel_id": "can_insert_funnel_id",
    }
    updates = data.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    for field in updates:
        if not has_permission(user, field_permissions[field]):
            raise HTTPException(status_code=403, detail=f"Missing permission: {field_permissions[field]}")

    if "platform" in updates:
        updates["platform"] = updates["platform"].strip().lower()
        if updates["platform"] not in domain_store.filter_options(user["id"])["platform"]:
            raise HTTPException(status_code=400, detail=f"Invalid platform: {updates['platform']}")

    domain = _load_owned_domain(domain_id, user)
    updated = domain_store.update_domain(domain_id, updates)

    # One activity row per field that actually changed
    for field, value in updates.items():
        if domain.get(field) == value:
            continue
        action = "status_change" if field == "status" else f"{field}_change"
        domain_store.log_activity(domain_id, user["id"], action, domain.get(field), value)
    log_info("Domain updated", action="domain_updated", user_id=user["id"], domain=domain["domain_name"])

    return updated or {**domain, **updates}


@app.post("/api/domains/classify")
def classify_domains(
    data: ClassifyRequest,
    user: dict = Depends(require_permission("can_select_traffic_source")),
):
    """Set the traffic source on several domains at once."""
    traffic_source = data.traffic_source.strip()
    if not traffic_source:
        raise HTTPException(status_code=400, detail="Traffic source is required")

    updated = []
    for domain_id in data.domain_ids:
        domain = domain_store.get_domain(domain_id)
        if not domain or (not user["is_admin"] and domain.get("user_id") != user["id"]):
            continue
        domain_store.update_domain(domain_id, {"traffic_source": traffic_source})
        domain_store.log_activity(
            domain_id, user["id"], "traffic_source_change", domain.get("traffic_source"), traffic_source
        )
        updated.append(domain_id)

    return {"updated": updated, "count": len(updated)}


@app.post("/api/domains/{domain_id}/nameservers")
async def update_nameservers(
    domain_id: str,
    data: NameserversUpdate,
    user: dict = Depends(require_permission("can_change_nameservers")),
):
    domain = _load_owned_domain(domain_id, user)
    nameservers = [ns.strip().lower() for ns in data.nameservers if ns.strip()]

    try:
        await orchestrator.namecheap.set_custom_nameservers(domain["domain_name"], nameservers)
    except NamecheapAPIError as e:
        log_warning(
            "Nameserver update failed",
            action="nameservers_failed",
            user_id=user["id"],
            domain=domain["domain_name"],
            error=str(e),
        )
        raise HTTPException(status_code=502, detail=str(e))

    updated = domain_store.update_domain(domain_id, {"nameservers": nameservers})
    domain_store.log_activity(
        domain_id, user["id"], "nameservers_change", domain.get("nameservers"), nameservers
    )
    return updated or {**domain, "nameservers": nameservers}


@app.get("/api/domains/{domain_id}/activity")
def get_domain_activity(domain_id: str, user: dict = Depends(require_permission("can_view_logs"))):
    _load_owned_domain(domain_id, user)
    return {"activity": domain_store.list_activity(domain_id)}


@app.get("/api/domains/{domain_id}/deactivation")
async def get_deactivation_preview(
    domain_id: str,
    user: dict = Depends(require_permission("can_change_domain_status")),
):
    """Show which integrations a deactivation would remove."""
    domain = _load_owned_domain(domain_id, user)
    integrations = await deactivation.detect(domain["domain_name"])
    return {"domain": domain["domain_name"], "integrations": integrations}


@app.post("/api/domains/{domain_id}/deactivate")
async def deactivate_domain(
    domain_id: str,
    data: DeactivationRequest,
    user: dict = Depends(require_permission("can_change_domain_status")),
):
    """
    Remove the domain from WordPress, cPanel and Cloudflare and mark it deactivated.

    The body must repeat the domain name as confirmation. The registration
    at Namecheap is left untouched.
    """
    domain = _load_owned_domain(domain_id, user)
    if data.confirmation.strip().lower() != domain["domain_name"].lower():
        raise HTTPException(status_code=400, detail="Confirmation does not match the domain name")
    if domain.get("status") == "deactivated":
        raise HTTPException(status_code=409, detail=f"Domain {domain['domain_name']} is already deactivated")

    return await deactivation.deactivate(domain, user["id"])


# ============================================================================
# CUSTOM FILTERS
# ============================================================================

@app.get("/api/filters")
def list_filters(user: dict = Depends(require_permission("can_access_management"))):
    """Platform and traffic-source values, defaults first."""
    return domain_store.filter_options(user["id"])


@app.post("/api/filters")
def create_filter(
    data: CustomFilterCreate,
    user: dict = Depends(require_permission("can_create_filters")),
):
    try:
        created = domain_store.create_custom_filter(user["id"], data.filter_type, data.filter_value)
    except domain_store.DuplicateFilterError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_info(
        "Custom filter created",
        action="filter_created",
        user_id=user["id"],
        filter_type=data.filter_type,
    )
    return created


@app.delete("/api/filters/{filter_id}")
def delete_filter(filter_id: str, user: dict = Depends(require_permission("can_create_filters"))):
    if not domain_store.delete_custom_filter(filter_id, user["id"]):
        raise HTTPException(status_code=404, detail=f"Filter {filter_id} not found")
    return {"success": True, "filter_id": filter_id}


# ============================================================================
# INTEGRATIONS
# ============================================================================

async def _run_sync(provider: str, coro, user: dict) -> dict:
    try:
        return await coro
    except PROVIDER_ERRORS as e:
        log_warning(
            "Integration sync failed",
            action="integration_sync_failed",
            provider=provider,
            user_id=user["id"],
            error=str(e),
        )
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/api/integrations/namecheap/sync")
async def sync_namecheap(user: dict = Depends(require_permission("can_view_integrations"))):
    return await _run_sync("namecheap", integration_sync.sync_namecheap(user["id"]), user)


@app.post("/api/integrations/cloudflare/sync")
async def sync_cloudflare(user: dict = Depends(require_permission("can_view_integrations"))):
    return await _run_sync("cloudflare", integration_sync.sync_cloudflare(user["id"]), user)


@app.post("/api/integrations/cpanel/sync")
async def sync_cpanel(user: dict = Depends(require_permission("can_view_integrations"))):
    return await _run_sync("cpanel", integration_sync.sync_cpanel(user["id"]), user)


@app.get("/api/integrations/namecheap/balance")
async def namecheap_balance(user: dict = Depends(require_permission("can_view_balance"))):
    return await _run_sync("namecheap", integration_sync.namecheap_balance(user["id"]), user)


@app.get("/api/integrations/cloudflare/analytics/{zone_id}")
async def cloudflare_analytics(
    zone_id: str,
    since_days: int = 30,
    user: dict = Depends(require_permission("can_view_integrations")),
):
    return await _run_sync(
        "cloudflare", integration_sync.cloudflare.get_analytics(zone_id, since_days), user
    )


@app.get("/api/integrations/cpanel/bandwidth")
async def cpanel_bandwidth(user: dict = Depends(require_permission("can_view_integrations"))):
    return await _run_sync("cpanel", integration_sync.cpanel.get_bandwidth(), user)


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@app.get("/api/settings/notifications")
def get_notification_settings(user: dict = Depends(require_permission("can_access_settings"))):
    return domain_store.get_notification_settings(user["id"])


@app.put("/api/settings/notifications")
def update_notification_settings(
    data: NotificationSettingsUpdate,
    user: dict = Depends(require_permission("can_access_settings")),
):
    updates = data.model_dump(exclude_none=True)
    settings = domain_store.save_notification_settings(user["id"], updates)
    log_info(
        "Notification settings updated",
        action="notification_settings_updated",
        user_id=user["id"],
        fields=sorted(updates),
    )
    return settings


@app.post("/cron/critical-domains")
async def cron_critical_domains(request: Request):
    """
    Alert every user about their critical domains over WhatsApp.
    Designed to be called by a cron scheduler.

    Security: Requires X-Cron-Secret header matching CRON_SECRET.

    Returns:
        {
            "ok": true,
            "users_checked": <number>,
            "critical_domains": <number>,
            "notified": <number>,
            "skipped": <number>,
            "failed": <number>
        }
    """
    cron_secret = request.headers.get("X-Cron-Secret") or request.headers.get("X-Cloudscheduler-Token")

    if not cron_secret or cron_secret != CRON_SECRET:
        log_warning("Unauthorized cron request", action="cron_unauthorized")
        raise HTTPException(status_code=403, detail="Unauthorized: Invalid or missing cron secret")

    log_info("Critical domains cron job started", action="cron_critical_start")

    try:
        return await notify_critical_domains(notifier, CRITICAL_EXPIRY_DAYS)
    except Exception as e:
        log_error(
            "Critical domains cron job failed",
            action="cron_critical_failed",
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Critical domain check failed: {str(e)}")

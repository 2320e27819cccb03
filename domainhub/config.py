import os
from dotenv import load_dotenv

load_dotenv()

# Database
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Server
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
APP_VERSION = "0.1.0"

# Security
CRON_SECRET = os.getenv("CRON_SECRET", "change-me-cron-secret")

# CORS - supports multiple origins comma-separated
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

# Where Supabase sends invited users after they click the e-mail link
INVITE_REDIRECT_URL = os.getenv("INVITE_REDIRECT_URL", "http://localhost:5173/auth/callback")

# Namecheap (registrar)
NAMECHEAP_API_USER = os.getenv("NAMECHEAP_API_USER", "")
NAMECHEAP_API_KEY = os.getenv("NAMECHEAP_API_KEY", "")
NAMECHEAP_USERNAME = os.getenv("NAMECHEAP_USERNAME", "") or NAMECHEAP_API_USER
NAMECHEAP_CLIENT_IP = os.getenv("NAMECHEAP_CLIENT_IP", "0.0.0.0")
NAMECHEAP_SANDBOX = os.getenv("NAMECHEAP_SANDBOX", "false").lower() == "true"

# Contact used for registrant, tech, admin and aux billing on new registrations
NAMECHEAP_CONTACT = {
    "FirstName": os.getenv("NAMECHEAP_CONTACT_FIRST_NAME", ""),
    "LastName": os.getenv("NAMECHEAP_CONTACT_LAST_NAME", ""),
    "Address1": os.getenv("NAMECHEAP_CONTACT_ADDRESS", ""),
    "City": os.getenv("NAMECHEAP_CONTACT_CITY", ""),
    "StateProvince": os.getenv("NAMECHEAP_CONTACT_STATE", ""),
    "PostalCode": os.getenv("NAMECHEAP_CONTACT_POSTAL_CODE", ""),
    "Country": os.getenv("NAMECHEAP_CONTACT_COUNTRY", "BR"),
    "Phone": os.getenv("NAMECHEAP_CONTACT_PHONE", ""),
    "EmailAddress": os.getenv("NAMECHEAP_CONTACT_EMAIL", ""),
}

# Cloudflare (DNS, SSL, firewall)
CLOUDFLARE_EMAIL = os.getenv("CLOUDFLARE_EMAIL", "")
CLOUDFLARE_API_KEY = os.getenv("CLOUDFLARE_API_KEY", "")
CLOUDFLARE_NAMESERVERS = os.getenv(
    "CLOUDFLARE_NAMESERVERS", "ns1.cloudflare.com,ns2.cloudflare.com"
).split(",")

# cPanel (hosting)
CPANEL_URL = os.getenv("CPANEL_URL", "")
CPANEL_USERNAME = os.getenv("CPANEL_USERNAME", "")
CPANEL_API_TOKEN = os.getenv("CPANEL_API_TOKEN", "")

# WhatsApp notifications (Z-API)
ZAPI_BASE_URL = os.getenv("ZAPI_BASE_URL", "https://api.z-api.io")
ZAPI_INSTANCE = os.getenv("ZAPI_INSTANCE", "")
ZAPI_TOKEN = os.getenv("ZAPI_TOKEN", "")
ZAPI_CLIENT_TOKEN = os.getenv("ZAPI_CLIENT_TOKEN", "")
WHATSAPP_DEFAULT_NUMBER = os.getenv("WHATSAPP_DEFAULT_NUMBER", "")
NOTIFICATION_TIMEZONE = os.getenv("NOTIFICATION_TIMEZONE", "America/Sao_Paulo")

# n8n availability-check webhook
N8N_WEBHOOK_URL = os.getenv("N8N_WEBHOOK_URL", "")
N8N_API_KEY = os.getenv("N8N_API_KEY", "")
AVAILABILITY_TIMEOUT = int(os.getenv("AVAILABILITY_TIMEOUT", "30"))

# LLM Provider Configuration (domain name suggestions)
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic")  # anthropic or openai
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "30"))


def _parse_price_limits(raw: str) -> dict:
    limits = {}
    for pair in raw.split(","):
        if ":" not in pair:
            continue
        tld, value = pair.split(":", 1)
        limits[tld.strip().lstrip(".").lower()] = float(value)
    return limits


# Purchase pipeline
PRICE_LIMITS = _parse_price_limits(os.getenv("PRICE_LIMITS", "online:1.0,site:1.0,com:12.0"))
DEFAULT_DOMAIN_PRICE = float(os.getenv("DEFAULT_DOMAIN_PRICE", "1.0"))
SITE_ORIGIN_IP = os.getenv("SITE_ORIGIN_IP", "69.46.11.10")
TRACKING_CNAME_TARGET = os.getenv("TRACKING_CNAME_TARGET", "khrv4.ttrk.io")
PROPAGATION_HOURS = int(os.getenv("PROPAGATION_HOURS", "3"))
PURCHASE_SESSION_TTL_MINUTES = int(os.getenv("PURCHASE_SESSION_TTL_MINUTES", "120"))

# Monitoring
CRITICAL_EXPIRY_DAYS = int(os.getenv("CRITICAL_EXPIRY_DAYS", "30"))
USD_TO_BRL_RATE = float(os.getenv("USD_TO_BRL_RATE", "5.7"))

#!/usr/bin/env python3
"""
Alert domain owners about critical domains.

A domain is critical when it is expired or suspended, or when auto-renew is
off and it expires within CRITICAL_EXPIRY_DAYS. Each owner gets one WhatsApp
message listing their critical domains, if their notification settings allow.

Usage:
    python scripts/check_critical_domains.py [--dry-run]

Environment Variables:
    SUPABASE_URL: Supabase project URL
    SUPABASE_SERVICE_ROLE_KEY: Supabase service role key
    ZAPI_INSTANCE / ZAPI_TOKEN / ZAPI_CLIENT_TOKEN: Z-API credentials
    CRITICAL_EXPIRY_DAYS: Days before expiry that count as critical (default: 30)

Run this script daily via cron, or call POST /cron/critical-domains instead.
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path to import domainhub modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def list_critical():
    from domainhub.config import CRITICAL_EXPIRY_DAYS
    from domainhub.services import domain_store

    critical = domain_store.find_critical_domains(domain_store.list_domains(), CRITICAL_EXPIRY_DAYS)
    if not critical:
        print("No critical domains")
        return critical

    print(f"Found {len(critical)} critical domains:")
    for domain in critical:
        detail = domain["reason"]
        if detail == "expiring":
            detail = f"expires in {domain['days_until_expiry']} days"
        print(f"  - {domain['domain_name']} (user {domain.get('user_id')}): {detail}")
    return critical


async def send_alerts():
    from domainhub.config import CRITICAL_EXPIRY_DAYS
    from domainhub.services.notifications import NotificationService, notify_critical_domains

    return await notify_critical_domains(NotificationService(), CRITICAL_EXPIRY_DAYS)


if __name__ == "__main__":
    print("=" * 60)
    print("DomainHub Critical Domains Check")
    print(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    print("=" * 60)

    try:
        if "--dry-run" in sys.argv:
            list_critical()
        else:
            summary = asyncio.run(send_alerts())
            print(
                f"Done. {summary['critical_domains']} critical domains, "
                f"{summary['notified']} owners notified, {summary['failed']} failed."
            )
    except Exception as e:
        print(f"ERROR: Critical domain check failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)

    print("=" * 60)

from typing import Any, Dict, Optional

from supabase import create_client
from .config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY

if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
    raise RuntimeError("DomainHub requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")

supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)


def first_row(result) -> Optional[Dict[str, Any]]:
    """Return the first row of a PostgREST response, or None."""
    data = getattr(result, "data", None)
    if not data:
        return None
    return data[0]

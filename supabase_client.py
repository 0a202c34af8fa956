import os
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Iterable, Optional

from dotenv import load_dotenv
from supabase import create_client, Client

load_dotenv()

# ---- Service-role for data, anon (or service-role) for sign-in ----
_SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
_SR_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "").strip()


def _require_config():
    if not _SUPABASE_URL or not _SR_KEY:
        raise RuntimeError(
            "Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in .env. "
            "The marketplace console reads and writes with the service-role key."
        )


@lru_cache(maxsize=1)
def sb() -> Client:
    """Singleton Supabase client using the service-role key (bypasses RLS)."""
    _require_config()
    return create_client(_SUPABASE_URL, _SR_KEY)


def auth_client() -> Client:
    """Fresh client for password sign-in so the shared data client keeps its key."""
    _require_config()
    return create_client(_SUPABASE_URL, _ANON_KEY or _SR_KEY)


def givi_enabled() -> bool:
    # GIVI stays off unless explicitly enabled
    return os.getenv("GIVI_ENABLED", "").strip().lower() == "true"

# ----------------- helpers -----------------

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_array(v):
    """Comma-separated text from a form field -> list; lists and None pass through."""
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    return v


def clean_payload(fields: Dict[str, Any], array_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Normalize a form payload before it is written.
    - Coerces commas->arrays for the given array fields
    - Converts empty strings to NULL
    """
    payload = dict(fields)

    for k in array_fields:
        if k in payload:
            payload[k] = to_array(payload[k])

    for k, v in list(payload.items()):
        if isinstance(v, str) and v.strip() == "":
            payload[k] = None

    return payload


def first_row(query) -> Optional[Dict[str, Any]]:
    """Execute a select builder and return its first row (or None)."""
    res = query.limit(1).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None


def update_row(client: Client, table: str, row_id: str, fields: Dict[str, Any], touch: bool = True) -> Dict[str, Any]:
    """Update one row by id and return it; raises when nothing came back (bad id or RLS)."""
    payload = dict(fields)
    if touch:
        payload["updated_at"] = now_iso()

    res = client.table(table).update(payload).eq("id", row_id).execute()

    if not getattr(res, "data", None):
        raise RuntimeError(f"Update of {table} returned no data. Check payload types or table RLS.")

    return res.data[0]

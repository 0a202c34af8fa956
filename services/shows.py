# services/shows.py
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client

from supabase_client import clean_payload, now_iso, update_row

logger = logging.getLogger(__name__)

SHOW_STATUSES = ["scheduled", "live", "ended", "cancelled"]

VALID_SHOW_TRANSITIONS = {
    "scheduled": ["live", "cancelled"],
    "live": ["ended"],
    "ended": [],
    "cancelled": [],
}


class ShowError(Exception):
    pass


_FRACTION = re.compile(r"\.(\d{1,6})(?=[+-]|$)")


def _iso(value) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def create_show(
    client: Client,
    seller_id: str,
    title: str,
    description: Optional[str] = None,
    pickup_instructions: Optional[str] = None,
    scheduled_start=None,
    community_id: Optional[str] = None,
    thumbnail_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert a scheduled show for a seller (sellers.id, not users.id)."""
    if not seller_id:
        raise ShowError("seller_id is required")
    if not (title or "").strip():
        raise ShowError("Show title is required")

    payload = clean_payload({
        "seller_id": seller_id,
        "title": title.strip(),
        "description": description,
        "pickup_instructions": pickup_instructions,
        "scheduled_start_time": _iso(scheduled_start),
        "status": "scheduled",
        "stream_status": "starting",
        "community_id": community_id,
        "thumbnail_url": thumbnail_url,
    })
    res = client.table("shows").insert(payload).execute()
    if not res.data:
        raise ShowError("Show insert returned no row")
    logger.info("show created seller=%s show=%s", seller_id, res.data[0].get("id"))
    return res.data[0]


def shows_for_seller(client: Client, seller_id: str) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return (
        client.table("shows").select("*").eq("seller_id", seller_id)
        .order("scheduled_start_time", desc=True).execute().data
        or []
    )


def shows_by_status(client: Client, status: str) -> List[Dict[str, Any]]:
    if status not in SHOW_STATUSES:
        raise ShowError(f"Unknown show status: {status}")
    return (
        client.table("shows").select("*").eq("status", status)
        .order("scheduled_start_time", desc=False).execute().data
        or []
    )


def can_transition(current: str, new: str) -> bool:
    return new in VALID_SHOW_TRANSITIONS.get(current, [])


def set_show_status(client: Client, show: Dict[str, Any], new_status: str) -> Dict[str, Any]:
    current = show.get("status") or "scheduled"
    if not can_transition(current, new_status):
        raise ShowError(f"Cannot move show from {current} to {new_status}")

    fields: Dict[str, Any] = {"status": new_status}
    if new_status == "live":
        fields["went_live_at"] = now_iso()
        fields["stream_status"] = "live"
    elif new_status in ("ended", "cancelled"):
        fields["ended_at"] = now_iso()
        fields["stream_status"] = "offline"
    return update_row(client, "shows", show["id"], fields)


def update_show(client: Client, show_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    allowed = {"title", "description", "pickup_instructions", "scheduled_start_time", "thumbnail_url", "community_id"}
    payload = clean_payload({k: v for k, v in fields.items() if k in allowed})
    if "scheduled_start_time" in payload:
        payload["scheduled_start_time"] = _iso(payload["scheduled_start_time"])
    if "title" in payload and not payload["title"]:
        raise ShowError("Show title is required")
    return update_row(client, "shows", show_id, payload)


def hide_show_from_orders(client: Client, show_id: str) -> Dict[str, Any]:
    # hides from Manage Orders only; analytics and order history are untouched
    return update_row(client, "shows", show_id, {"hidden_from_orders": True})


def _parse(ts: Optional[str]) -> Optional[datetime]:
    if not ts:
        return None
    # PostgREST trims trailing zeros from fractional seconds; older fromisoformat wants 3 or 6 digits
    ts = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0"), ts.replace("Z", "+00:00"))
    dt = datetime.fromisoformat(ts)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def split_upcoming_past(shows: List[Dict[str, Any]], now: Optional[datetime] = None) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Upcoming = live, or scheduled with a start at/after now (or no start yet)."""
    now = now or datetime.now(timezone.utc)
    upcoming, past = [], []
    for s in shows:
        status = s.get("status")
        start = _parse(s.get("scheduled_start_time"))
        if status == "live" or (status == "scheduled" and (start is None or start >= now)):
            upcoming.append(s)
        else:
            past.append(s)
    upcoming.sort(key=lambda s: s.get("scheduled_start_time") or "9999")
    return upcoming, past

# services/sellers.py
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from supabase import Client

from supabase_client import now_iso

logger = logging.getLogger(__name__)

SELLER_STATUSES = ["pending", "approved", "declined", "suspended"]
REASON_REQUIRED = ("declined", "suspended")


class SellerStatusError(Exception):
    pass


def list_sellers(client: Client) -> List[Dict[str, Any]]:
    return client.table("sellers").select("*").order("created_at", desc=True).execute().data or []


def status_counts(sellers: List[Dict[str, Any]]) -> Counter:
    counts = Counter({s: 0 for s in SELLER_STATUSES})
    counts.update(s.get("status") or "pending" for s in sellers)
    return counts


def pending_sellers(sellers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    pending = [s for s in sellers if (s.get("status") or "pending") == "pending"]
    return sorted(pending, key=lambda s: s.get("created_at") or "")


def search_sellers(sellers: List[Dict[str, Any]], term: str) -> List[Dict[str, Any]]:
    term = (term or "").strip().lower()
    if not term:
        return list(sellers)
    fields = ("business_name", "contact_email", "pickup_city")
    return [s for s in sellers if any(term in (s.get(f) or "").lower() for f in fields)]


def update_seller_status(client: Client, seller: Dict[str, Any], new_status: str, reason: Optional[str] = None) -> Dict[str, Any]:
    """
    Change a seller's application status.
    The sellers row update is authoritative; metadata sync and notification are best-effort.
    """
    if new_status not in SELLER_STATUSES:
        raise SellerStatusError(f"new_status must be one of: {', '.join(SELLER_STATUSES)}")
    reason = (reason or "").strip() or None
    if new_status in REASON_REQUIRED and not reason:
        raise SellerStatusError(f"A reason is required to mark a seller {new_status}")

    payload = {"status": new_status, "status_updated_at": now_iso(), "status_reason": reason}
    res = client.table("sellers").update(payload).eq("id", seller["id"]).execute()
    if not res.data:
        raise SellerStatusError("Seller not found")
    updated = res.data[0]
    logger.info("seller %s status %s -> %s", seller["id"], seller.get("status"), new_status)

    user_id = updated.get("user_id") or seller.get("user_id")
    if not user_id:
        logger.warning("seller %s has no user_id; skipping metadata sync", seller["id"])
        return updated

    try:
        client.auth.admin.update_user_by_id(user_id, {"user_metadata": {
            "seller_application_status": new_status,
            "seller_status": new_status,
            "seller_status_reason": reason,
            "seller_status_updated_at": payload["status_updated_at"],
        }})
    except Exception as e:
        logger.warning("metadata sync failed for seller %s (non-blocking): %s", seller["id"], e)

    try:
        client.table("notifications").insert({
            "user_id": user_id,
            "type": "seller_status_update",
            "title": "Seller status updated",
            "body": f"Your seller status is now: {new_status}",
            "metadata": {"seller_id": seller["id"], "new_status": new_status, "status_reason": reason},
            "read": False,
            "read_at": None,
        }).execute()
    except Exception as e:
        logger.warning("notification insert failed for seller %s (non-blocking): %s", seller["id"], e)

    return updated

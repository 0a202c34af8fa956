# services/fulfillment.py
"""
Seller-side fulfillment: batches, pickup verification and order healing.

A batch groups one buyer's orders from one seller + show. Its 9-digit
``completion_code`` is what the buyer shows at pickup.

Batch status flow::

    pending -> ready -> picked_up
       \\         \\
        cancelled  cancelled

``completed`` is written by the pickup flow and, like ``picked_up`` and
``cancelled``, is terminal.
"""
import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from supabase import Client

from services.orders import orders_for_batch
from supabase_client import first_row, now_iso

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    "pending": ["ready", "cancelled"],
    "ready": ["picked_up", "cancelled"],
    "picked_up": [],
    "completed": [],
    "cancelled": [],
}
DONE_STATUSES = ("picked_up", "completed")


class FulfillmentError(Exception):
    """``kind`` is one of INVALID_CODE, BATCH_NOT_FOUND, UNAUTHORIZED,
    INVALID_TRANSITION, ALREADY_COMPLETED."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass
class PickupResult:
    batch: Dict[str, Any]
    orders_updated: int
    notification_sent: bool


def generate_completion_code(rng=random) -> str:
    return str(rng.randint(100000000, 999999999))


def generate_batch_number(show_id: str, buyer_id: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"BATCH-{show_id[:8]}-{buyer_id[:8]}-{today.strftime('%Y%m%d')}"


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, [])


# ---------------- lookups ----------------

def find_active_batch(client: Client, buyer_id: str, seller_id: str, show_id: str) -> Optional[Dict[str, Any]]:
    if not (buyer_id and seller_id and show_id):
        return None
    return first_row(
        client.table("batches").select("*")
        .eq("buyer_id", buyer_id).eq("seller_id", seller_id).eq("show_id", show_id)
        .neq("status", "completed").neq("status", "picked_up").neq("status", "cancelled")
        .order("created_date", desc=True)
    )


def create_batch(client: Client, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = {
        "buyer_id": data["buyer_id"],
        "buyer_user_id": data.get("buyer_user_id") or data["buyer_id"],
        "buyer_name": data.get("buyer_name") or "",
        "buyer_email": data.get("buyer_email") or "",
        "buyer_phone": data.get("buyer_phone") or "",
        "seller_id": data["seller_id"],
        "show_id": data["show_id"],
        "batch_number": data.get("batch_number") or generate_batch_number(data["show_id"], data["buyer_id"]),
        "completion_code": data.get("completion_code") or generate_completion_code(),
        "pickup_location": data.get("pickup_location") or "",
        "pickup_notes": data.get("pickup_notes") or "",
        "total_items": 0,
        "total_amount": 0,
        "status": "pending",
    }
    res = client.table("batches").insert(payload).execute()
    if not res.data:
        raise FulfillmentError("BATCH_NOT_FOUND", "Failed to create batch")
    return res.data[0]


def find_or_create_batch(client: Client, data: Dict[str, Any]):
    """Return (batch, is_new)."""
    existing = find_active_batch(client, data["buyer_id"], data["seller_id"], data["show_id"])
    if existing:
        return existing, False
    return create_batch(client, data), True


def add_to_batch_totals(client: Client, batch: Dict[str, Any], amount: float, items: int = 1) -> Dict[str, Any]:
    fields = {
        "total_items": (batch.get("total_items") or 0) + items,
        "total_amount": round(float(batch.get("total_amount") or 0) + float(amount or 0), 2),
    }
    res = client.table("batches").update(fields).eq("id", batch["id"]).execute()
    return res.data[0] if res.data else {**batch, **fields}


def batches_for_seller(client: Client, seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return client.table("batches").select("*").eq("seller_id", seller_id).order("created_date", desc=True).execute().data or []


def batches_for_show(client: Client, show_id: Optional[str], seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not (show_id and seller_id):
        return []
    return (
        client.table("batches").select("*").eq("show_id", show_id).eq("seller_id", seller_id)
        .order("created_date", desc=True).execute().data
        or []
    )


def batches_for_buyer(client: Client, buyer_id: Optional[str]) -> List[Dict[str, Any]]:
    if not buyer_id:
        return []
    # legacy rows only carry buyer_id
    return (
        client.table("batches").select("*")
        .or_(f"buyer_id.eq.{buyer_id},buyer_user_id.eq.{buyer_id}")
        .order("created_date", desc=True).execute().data
        or []
    )


def batch_order_counts(orders: List[Dict[str, Any]]) -> Dict[str, int]:
    return {
        "pending": sum(1 for o in orders if o.get("status") == "paid"),
        "completed": sum(1 for o in orders if o.get("status") == "picked_up"),
    }


# ---------------- transitions ----------------

def _load_batch(client: Client, batch_id: str) -> Dict[str, Any]:
    if not batch_id:
        raise FulfillmentError("BATCH_NOT_FOUND", "Batch ID is required")
    batch = first_row(client.table("batches").select("*").eq("id", batch_id))
    if not batch:
        raise FulfillmentError("BATCH_NOT_FOUND", "Batch not found")
    return batch


def update_batch_status(client: Client, batch_id: str, seller_id: Optional[str], new_status: str, is_admin: bool = False) -> Dict[str, Any]:
    batch = _load_batch(client, batch_id)
    if not is_admin and batch.get("seller_id") != seller_id:
        raise FulfillmentError("UNAUTHORIZED", "You are not authorized to update this batch")
    current = batch.get("status") or "pending"
    if not can_transition(current, new_status):
        raise FulfillmentError("INVALID_TRANSITION", f"Cannot change batch from {current} to {new_status}")

    fields: Dict[str, Any] = {"status": new_status}
    if new_status == "ready":
        fields["ready_at"] = now_iso()
    elif new_status == "picked_up":
        fields["picked_up_at"] = now_iso()
    res = client.table("batches").update(fields).eq("id", batch_id).execute()

    # the batch's open orders follow it to ready / picked_up
    if new_status in ("ready", "picked_up"):
        moved = (
            client.table("orders").update(fields)
            .eq("batch_id", batch_id).in_("status", ["paid", "ready"])
            .execute().data
            or []
        )
        logger.info("batch %s -> %s moved %s orders", batch_id, new_status, len(moved))
    return res.data[0] if res.data else {**batch, **fields}


def mark_batch_ready(client: Client, batch_id: str, seller_id: str) -> Dict[str, Any]:
    return update_batch_status(client, batch_id, seller_id, "ready")


def verify_pickup_code(client: Client, completion_code: str, seller_id: Optional[str], is_admin: bool = False) -> Dict[str, Any]:
    """Look up the batch a buyer's code belongs to; returns the batch with an ``orders`` list."""
    code = (completion_code or "").strip()
    if len(code) < 6:
        raise FulfillmentError("INVALID_CODE", "Please enter a valid completion code")
    if not seller_id and not is_admin:
        raise FulfillmentError("UNAUTHORIZED", "Seller authorization required")

    query = client.table("batches").select("*").eq("completion_code", code)
    if not is_admin and seller_id:
        query = query.eq("seller_id", seller_id)
    batches = query.execute().data or []

    if not batches:
        raise FulfillmentError("INVALID_CODE", "Invalid completion code. Please check and try again.")

    batch = batches[0]
    if batch.get("status") in DONE_STATUSES:
        raise FulfillmentError("ALREADY_COMPLETED", "This batch has already been picked up")

    return {**batch, "orders": orders_for_batch(client, batch["id"])}


def _notify_once(client: Client, user_id: str, kind: str, match: Dict[str, Any], row: Dict[str, Any]) -> bool:
    existing = first_row(
        client.table("notifications").select("id")
        .eq("user_id", user_id).eq("type", kind).contains("metadata", match)
    )
    if existing:
        return False
    client.table("notifications").insert({**row, "user_id": user_id, "type": kind, "read": False, "read_at": None}).execute()
    return True


def complete_batch_pickup(
    client: Client,
    batch_id: str,
    seller_id: Optional[str],
    seller_email: str,
    seller_name: str,
    is_admin: bool = False,
) -> PickupResult:
    """
    Order of writes:
    1. every paid/ready order in the batch -> picked_up (picked_up_at, picked_up_by)
    2. batch -> completed
    3. order_completed + review_request notifications for the buyer (once each)
    """
    batch = _load_batch(client, batch_id)
    if not is_admin and batch.get("seller_id") != seller_id:
        raise FulfillmentError("UNAUTHORIZED", "You are not authorized to complete this batch")
    if batch.get("status") in DONE_STATUSES:
        raise FulfillmentError("ALREADY_COMPLETED", "This batch has already been completed")

    ts = now_iso()
    updated_orders = (
        client.table("orders")
        .update({"status": "picked_up", "picked_up_at": ts, "picked_up_by": seller_email})
        .eq("batch_id", batch_id).in_("status", ["paid", "ready"])
        .execute().data
        or []
    )

    res = client.table("batches").update({"status": "completed", "picked_up_at": ts}).eq("id", batch_id).execute()
    if not res.data:
        raise FulfillmentError("BATCH_NOT_FOUND", "Failed to complete batch pickup")
    completed = res.data[0]

    notification_sent = False
    buyer_user_id = batch.get("buyer_user_id") or batch.get("buyer_id")
    if buyer_user_id and updated_orders:
        meta = {
            "seller_id": batch.get("seller_id"),
            "seller_name": seller_name,
            "order_id": updated_orders[0]["id"],
            "batch_id": batch_id,
        }
        try:
            _notify_once(
                client, buyer_user_id, "order_update",
                {"batch_id": batch_id, "event": "order_completed"},
                {
                    "title": "Order Completed",
                    "body": f"Your order from {seller_name} has been marked picked up.",
                    "metadata": {**meta, "event": "order_completed"},
                },
            )
            notification_sent = _notify_once(
                client, buyer_user_id, "review_request",
                {"batch_id": batch_id},
                {
                    "title": "Leave a Review",
                    "body": f"Your order from {seller_name} is complete. Tap to leave a review.",
                    "metadata": meta,
                },
            )
        except Exception as e:
            logger.warning("pickup notifications failed for batch %s: %s", batch_id, e)

    if is_admin and seller_id != batch.get("seller_id"):
        logger.info("AUDIT admin %s completed batch %s for seller %s", seller_email, batch_id, batch.get("seller_id"))

    return PickupResult(completed, len(updated_orders), notification_sent)


def heal_completed_batch_orders(client: Client, seller_id: Optional[str] = None, buyer_id: Optional[str] = None) -> int:
    """Orders still ``paid`` inside a completed batch are moved to picked_up by ``auto-sync``."""
    if not seller_id and not buyer_id:
        return 0

    query = client.table("batches").select("id, picked_up_at").eq("status", "completed")
    if seller_id:
        query = query.eq("seller_id", seller_id)
    else:
        query = query.or_(f"buyer_id.eq.{buyer_id},buyer_user_id.eq.{buyer_id}")
    batches = query.execute().data or []

    healed = 0
    for b in batches:
        rows = (
            client.table("orders")
            .update({"status": "picked_up", "picked_up_at": b.get("picked_up_at") or now_iso(), "picked_up_by": "auto-sync"})
            .eq("batch_id", b["id"]).eq("status", "paid")
            .execute().data
            or []
        )
        healed += len(rows)

    if healed:
        logger.info("auto-sync healed %s orders (seller=%s buyer=%s)", healed, seller_id, buyer_id)
    return healed

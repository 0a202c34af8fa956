# services/orders.py
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client

from supabase_client import first_row, now_iso

logger = logging.getLogger(__name__)

ORDER_STATUSES = ["pending", "paid", "ready", "picked_up", "cancelled", "refunded"]
REVENUE_STATUSES = ("paid", "ready", "picked_up")


@dataclass
class OrderError:
    type: str
    message: str
    is_sold_out: bool = False


def parse_order_error(message: Optional[str], code: Optional[str] = None) -> OrderError:
    """Map a database error (inventory trigger, RLS, constraints) to something a buyer can read."""
    message = message or "Unknown error"

    if "INVENTORY_ERROR" in message:
        sold_out = any(s in message for s in ("Insufficient stock", "not available", "sold_out"))
        return OrderError(
            "INVENTORY_ERROR",
            "This item is no longer available" if sold_out else message.replace("INVENTORY_ERROR:", "").strip(),
            sold_out,
        )
    if "row-level security" in message or code == "42501":
        return OrderError("RLS_ERROR", "You don't have permission to create this order")
    if "violates" in message or "constraint" in message:
        return OrderError("VALIDATION_ERROR", "Order validation failed")
    return OrderError("UNKNOWN_ERROR", "Failed to create order. Please try again.")


def create_order(client: Client, data: Dict[str, Any], live_payment: bool = False) -> Tuple[Optional[Dict[str, Any]], Optional[OrderError]]:
    """
    Insert an order for a batch. A pending order for the same buyer + product + batch
    is returned instead of inserting a second one (double-submit / payment retry).
    """
    existing = first_row(
        client.table("orders").select("*")
        .eq("buyer_id", data["buyer_id"])
        .eq("product_id", data["product_id"])
        .eq("batch_id", data["batch_id"])
        .eq("status", "pending")
    )
    if existing:
        logger.info("returning existing pending order %s", existing["id"])
        return existing, None

    payload = {
        "batch_id": data["batch_id"],
        "buyer_id": data["buyer_id"],
        "buyer_name": data.get("buyer_name"),
        "buyer_email": data.get("buyer_email"),
        "buyer_phone": data.get("buyer_phone"),
        "seller_id": data["seller_id"],
        "show_id": data.get("show_id"),
        "product_id": data["product_id"],
        "product_title": data.get("product_title"),
        "product_image_url": data.get("product_image_url") or None,
        "price": data.get("price", 0),
        "delivery_fee": data.get("delivery_fee") or 0,
        "pickup_code": data.get("pickup_code"),
        "pickup_location": data.get("pickup_location") or "",
        "pickup_notes": data.get("pickup_notes") or "",
        "group_code": data.get("group_code"),
        "completion_code": data.get("completion_code"),
        "quantity": 1,
        "status": "pending" if live_payment else "paid",
        "paid_at": None if live_payment else now_iso(),
    }
    if data.get("givi_event_id"):
        payload["givi_event_id"] = data["givi_event_id"]

    try:
        res = client.table("orders").insert(payload).execute()
    except APIError as e:
        err = parse_order_error(e.message, e.code)
        logger.warning("order insert failed: %s (%s)", err.message, e.message)
        return None, err

    if not res.data:
        return None, OrderError("UNKNOWN_ERROR", "Failed to create order. Please try again.")
    return res.data[0], None


def orders_for_buyer(client: Client, buyer_id: Optional[str]) -> List[Dict[str, Any]]:
    if not buyer_id:
        return []
    return client.table("orders").select("*").eq("buyer_id", buyer_id).order("created_date", desc=True).execute().data or []


def orders_for_batch(client: Client, batch_id: Optional[str]) -> List[Dict[str, Any]]:
    if not batch_id:
        return []
    return client.table("orders").select("*").eq("batch_id", batch_id).order("created_date", desc=False).execute().data or []


def orders_for_seller(client: Client, seller_id: Optional[str]) -> List[Dict[str, Any]]:
    if not seller_id:
        return []
    return client.table("orders").select("*").eq("seller_id", seller_id).order("created_date", desc=True).execute().data or []


def all_orders(client: Client) -> List[Dict[str, Any]]:
    return client.table("orders").select("*").order("created_date", desc=True).execute().data or []


def orders_by_batch(orders: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped = defaultdict(list)
    for o in orders:
        grouped[o.get("batch_id")].append(o)
    return dict(grouped)


def buyer_order_summary(orders: List[Dict[str, Any]]) -> Dict[str, Any]:
    valid = [o for o in orders if o.get("status") != "cancelled"]
    return {
        "order_count": len(valid),
        "total_spent": round(sum(float(o.get("price") or 0) for o in valid), 2),
        "givi_wins": sum(1 for o in valid if float(o.get("price") or 0) == 0),
    }

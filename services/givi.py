# services/givi.py
"""
GIVI (giveaway) events: start, enter, award, and the admin health report.

Awarding creates one free ($0) order per winner inside that winner's active
batch for the show. The duplicate report further down only *reads* orders: it
groups an event's $0 orders by buyer and flags buyers with more than one, for an
admin to clean up by hand.
"""
import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from supabase import Client

from services.fulfillment import add_to_batch_totals, generate_batch_number, generate_completion_code
from services.orders import create_order
from supabase_client import first_row, now_iso

logger = logging.getLogger(__name__)

GIVI_STATUSES = ["active", "result", "cancelled"]


class GiviError(Exception):
    pass


@dataclass
class AwardResult:
    winners: List[Dict[str, Any]]
    orders_created: int = 0
    duplicates_prevented: int = 0
    failures: List[str] = field(default_factory=list)


def log_debug(client: Client, event_id: str, action: str, status: str, **fields):
    row = {"givi_event_id": event_id, "action": action, "status": status}
    row.update(fields)
    row.setdefault("metadata", {})
    row["metadata"] = {**row["metadata"], "timestamp": now_iso()}
    try:
        client.table("givi_debug_logs").insert(row).execute()
    except Exception as e:
        logger.warning("givi debug log insert failed (%s/%s): %s", action, status, e)


# ---------------- host / viewer ----------------

def active_givi_for_show(client: Client, show_id: str) -> Optional[Dict[str, Any]]:
    return first_row(
        client.table("givi_events").select("*").eq("show_id", show_id).eq("status", "active")
        .order("created_date", desc=True)
    )


def start_givi(client: Client, seller: Dict[str, Any], show: Dict[str, Any], product: Dict[str, Any], number_of_winners: int = 1) -> Dict[str, Any]:
    if not seller or not show:
        raise GiviError("Missing seller or show information")
    if int(number_of_winners) < 1:
        raise GiviError("At least one winner is required")
    if active_givi_for_show(client, show["id"]):
        raise GiviError("A GIVI is already running for this show")

    res = client.table("givi_events").insert({
        "show_id": show["id"],
        "host_id": seller["id"],
        "product_id": product["id"],
        "product_title": product.get("title"),
        "product_image_url": (product.get("image_urls") or [None])[0],
        "number_of_winners": int(number_of_winners),
        "status": "active",
        "winner_ids": [],
        "winner_names": [],
    }).execute()
    if not res.data:
        raise GiviError("Failed to start GIVI")
    event = res.data[0]
    log_debug(client, event["id"], "givi_started", "success", seller_id=seller["id"], show_id=show["id"])
    return event


def _entry_name(user: Dict[str, Any]) -> str:
    # an empty name would make the entry ineligible to win
    email = user.get("email") or ""
    return user.get("full_name") or user.get("user_name") or email.split("@")[0] or "Anonymous"


def enter_givi(client: Client, event: Dict[str, Any], user: Dict[str, Any], was_following: bool = False) -> Dict[str, Any]:
    if event.get("status") != "active":
        raise GiviError("This GIVI is no longer accepting entries")
    if not user or not user.get("id"):
        raise GiviError("Sign in to enter")

    existing = first_row(
        client.table("givi_entries").select("*").eq("givi_event_id", event["id"]).eq("user_id", user["id"])
    )
    if existing:
        return existing

    entries = client.table("givi_entries").select("entry_number").eq("givi_event_id", event["id"]).execute().data or []
    next_number = max((e.get("entry_number") or 0 for e in entries), default=0) + 1
    res = client.table("givi_entries").insert({
        "givi_event_id": event["id"],
        "show_id": event.get("show_id"),
        "user_id": user["id"],
        "user_name": _entry_name(user),
        "user_email": user.get("email") or "",
        "entry_number": next_number,
        "was_already_following": bool(was_following),
        "is_winner": False,
    }).execute()
    if not res.data:
        raise GiviError("Failed to enter GIVI")
    return res.data[0]


def valid_entries(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [e for e in entries if e.get("user_id") and e.get("user_name") and e.get("user_email")]


def select_winners(entries: List[Dict[str, Any]], count: int, rng=None) -> List[Dict[str, Any]]:
    rng = rng or random
    pool = valid_entries(entries)
    return rng.sample(pool, min(int(count), len(pool)))


def _pickup_location(seller: Dict[str, Any]) -> str:
    parts = [seller.get("pickup_address") or "Pickup location", seller.get("pickup_city"), seller.get("pickup_state")]
    return ", ".join(p for p in parts if p)


def _winner_batch(client: Client, winner: Dict[str, Any], seller: Dict[str, Any], show: Dict[str, Any]) -> Dict[str, Any]:
    batches = (
        client.table("batches").select("*")
        .eq("buyer_id", winner["user_id"]).eq("seller_id", seller["id"]).eq("show_id", show["id"])
        .execute().data
        or []
    )
    # completed batches cannot take new orders
    active = [b for b in batches if b.get("status") not in ("completed", "picked_up", "cancelled")]
    if active:
        return active[0]

    res = client.table("batches").insert({
        "batch_number": generate_batch_number(show["id"], winner["user_id"]),
        "buyer_id": winner["user_id"],
        "buyer_user_id": winner["user_id"],
        "buyer_name": winner.get("user_name") or "Winner",
        "buyer_email": winner.get("user_email") or "",
        "buyer_phone": "",
        "seller_id": seller["id"],
        "show_id": show["id"],
        "completion_code": generate_completion_code(),
        "total_items": 0,
        "total_amount": 0,
        "status": "pending",
        "pickup_location": _pickup_location(seller),
        "pickup_notes": seller.get("pickup_notes") or "",
    }).execute()
    if not res.data:
        raise GiviError("Failed to create batch")
    return res.data[0]


def award_givi(client: Client, event: Dict[str, Any], seller: Dict[str, Any], show: Dict[str, Any], rng=None) -> AwardResult:
    """Pick winners, announce them, and create their free orders."""
    current = first_row(client.table("givi_events").select("*").eq("id", event["id"])) or event
    if current.get("status") == "result" or current.get("winner_ids"):
        raise GiviError("Winners were already selected for this GIVI")

    entries = client.table("givi_entries").select("*").eq("givi_event_id", event["id"]).execute().data or []
    if not entries:
        log_debug(client, event["id"], "winner_selected", "error",
                  seller_id=seller["id"], show_id=show["id"], error_message="No entries to select from")
        raise GiviError("No entries to select from")

    invalid = len(entries) - len(valid_entries(entries))
    if invalid:
        logger.warning("givi %s has %s invalid entries (missing user id/name/email)", event["id"], invalid)

    winners = select_winners(entries, current.get("number_of_winners") or 1, rng)
    if not winners:
        log_debug(client, event["id"], "winner_selected", "error",
                  seller_id=seller["id"], show_id=show["id"], error_message="No valid entries to select from")
        raise GiviError("No valid entries to select from")
    for w in winners:
        client.table("givi_entries").update({"is_winner": True}).eq("id", w["id"]).execute()

    client.table("givi_events").update({
        "status": "result",
        "winner_ids": [w["user_id"] for w in winners],
        "winner_names": [w["user_name"] for w in winners],
        "announced_at": now_iso(),
    }).eq("id", event["id"]).execute()

    result = AwardResult(winners=winners)
    product_title = current.get("product_title") or "Prize"

    for w in winners:
        try:
            existing = first_row(
                client.table("orders").select("id")
                .eq("buyer_id", w["user_id"]).eq("givi_event_id", event["id"])
            )
            if existing:
                result.duplicates_prevented += 1
                log_debug(client, event["id"], "duplicate_order_prevented", "success",
                          buyer_id=w["user_id"], buyer_name=w.get("user_name"), buyer_email=w.get("user_email"),
                          seller_id=seller["id"], show_id=show["id"],
                          metadata={"existing_order_id": existing["id"]})
                continue

            batch = _winner_batch(client, w, seller, show)
            order, err = create_order(client, {
                "batch_id": batch["id"],
                "buyer_id": w["user_id"],
                "buyer_name": w.get("user_name") or "Winner",
                "buyer_email": w.get("user_email") or "",
                "buyer_phone": "",
                "seller_id": seller["id"],
                "show_id": show["id"],
                "product_id": current.get("product_id"),
                "product_title": f"[FREE GIVI] {product_title}",
                "product_image_url": current.get("product_image_url"),
                "price": 0,
                "pickup_code": f"GIVI{random.randint(0, 99999999):08d}",
                "pickup_location": batch.get("pickup_location") or _pickup_location(seller),
                "pickup_notes": "FREE GIVEAWAY ITEM - No payment required. Winner selected from GIVI event.",
                "group_code": batch.get("batch_number"),
                "completion_code": batch.get("completion_code"),
                "givi_event_id": event["id"],
            })
            if err:
                raise GiviError(err.message)

            add_to_batch_totals(client, batch, 0)
            result.orders_created += 1
            log_debug(client, event["id"], "order_created", "success",
                      buyer_id=w["user_id"], buyer_name=w.get("user_name"), buyer_email=w.get("user_email"),
                      seller_id=seller["id"], show_id=show["id"],
                      metadata={"order_id": order["id"], "batch_id": batch["id"], "batch_number": batch.get("batch_number")})
        except Exception as e:
            logger.error("givi %s: order for winner %s failed: %s", event["id"], w.get("user_id"), e)
            result.failures.append(f"{w.get('user_name') or w.get('user_id')}: {e}")
            log_debug(client, event["id"], "order_created", "error",
                      buyer_id=w.get("user_id"), buyer_name=w.get("user_name"), buyer_email=w.get("user_email"),
                      seller_id=seller["id"], show_id=show["id"], error_message=str(e))

    # inventory moves only by orders actually created
    if result.orders_created and current.get("product_id"):
        product = first_row(client.table("products").select("*").eq("id", current["product_id"]))
        if product:
            qty = max(0, (product.get("quantity") or 0) - result.orders_created)
            client.table("products").update({
                "quantity": qty,
                "status": "sold_out" if qty == 0 else product.get("status"),
            }).eq("id", product["id"]).execute()

    logger.info(
        "givi %s awarded: winners=%s created=%s duplicates=%s failures=%s",
        event["id"], len(winners), result.orders_created, result.duplicates_prevented, len(result.failures),
    )
    return result


# ---------------- admin tracker (read-only report) ----------------

def _price(order) -> float:
    try:
        # null price is not a free order
        return float(order["price"]) if order.get("price") is not None else -1.0
    except (TypeError, ValueError):
        return -1.0


def givi_orders_for_event(orders: List[Dict[str, Any]], event: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        o for o in orders
        if o.get("product_id") == event.get("product_id")
        and _price(o) == 0
        and o.get("show_id") == event.get("show_id")
    ]


def duplicate_order_groups(orders: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    by_buyer = defaultdict(list)
    for o in orders:
        by_buyer[o.get("buyer_id")].append(o)
    return [group for group in by_buyer.values() if len(group) > 1]


def duplicate_count(groups: List[List[Dict[str, Any]]]) -> int:
    return sum(len(g) - 1 for g in groups)


def event_stats(event, entries, logs, orders, shows_map=None, sellers_map=None) -> Dict[str, Any]:
    ev_entries = [e for e in entries if e.get("givi_event_id") == event.get("id")]
    valid = valid_entries(ev_entries)
    winners = [e for e in ev_entries if e.get("is_winner")]
    errors = [l for l in logs if l.get("givi_event_id") == event.get("id") and l.get("status") == "error"]
    givi_orders = givi_orders_for_event(orders, event)
    groups = duplicate_order_groups(givi_orders)

    return {
        **event,
        "total_entries": len(ev_entries),
        "valid_entries": len(valid),
        "invalid_entries": len(ev_entries) - len(valid),
        "winners": len(winners),
        "error_count": len(errors),
        "orders_created": len(givi_orders),
        "expected_orders": len(winners),
        "has_duplicates": bool(groups),
        "duplicate_count": duplicate_count(groups),
        "duplicate_groups": groups,
        "has_errors": bool(errors) or bool(groups),
        "show": (shows_map or {}).get(event.get("show_id")),
        "seller": (sellers_map or {}).get(event.get("host_id")),
    }


def tracker_rows(events, entries, logs, orders, shows, sellers) -> List[Dict[str, Any]]:
    shows_map = {s["id"]: s for s in shows}
    sellers_map = {s["id"]: s for s in sellers}
    return [event_stats(ev, entries, logs, orders, shows_map, sellers_map) for ev in events]


def filter_tracker_rows(rows: List[Dict[str, Any]], term: str) -> List[Dict[str, Any]]:
    term = (term or "").lower()
    if not term:
        return list(rows)

    def haystack(r):
        return [
            r.get("product_title") or "",
            (r.get("show") or {}).get("title") or "",
            (r.get("seller") or {}).get("business_name") or "",
        ]

    return [r for r in rows if any(term in h.lower() for h in haystack(r))]


def tracker_summary(events, entries, logs) -> Dict[str, int]:
    return {
        "total_givis": len(events),
        "total_entries": len(entries),
        "total_winners": sum(1 for e in entries if e.get("is_winner")),
        "total_errors": sum(1 for l in logs if l.get("status") == "error"),
    }

# services/reports.py
from collections import Counter, defaultdict
from typing import Any, Dict, List

from services.orders import REVENUE_STATUSES


def _amount(v) -> float:
    try:
        return float(v or 0)
    except (TypeError, ValueError):
        return 0.0


def revenue_total(orders: List[Dict[str, Any]]) -> float:
    return round(sum(_amount(o.get("price")) for o in orders if o.get("status") in REVENUE_STATUSES), 2)


def order_status_counts(orders: List[Dict[str, Any]]) -> Counter:
    return Counter(o.get("status") or "unknown" for o in orders)


def show_summaries(shows, batches, orders) -> List[Dict[str, Any]]:
    """Per-show rollup for the orders page, hidden shows excluded, newest first."""
    batches_by_show = defaultdict(list)
    for b in batches:
        batches_by_show[b.get("show_id")].append(b)
    pending_by_batch = Counter(o.get("batch_id") for o in orders if o.get("status") == "paid")

    rows = []
    for s in shows:
        if s.get("hidden_from_orders"):
            continue
        sb = batches_by_show.get(s["id"], [])
        if not sb:
            continue
        rows.append({
            "show_id": s["id"],
            "title": s.get("title"),
            "status": s.get("status"),
            "scheduled_start_time": s.get("scheduled_start_time"),
            "batches": len(sb),
            "items": sum(int(b.get("total_items") or 0) for b in sb),
            "revenue": round(sum(_amount(b.get("total_amount")) for b in sb), 2),
            "pending_pickups": sum(pending_by_batch.get(b["id"], 0) for b in sb),
        })
    rows.sort(key=lambda r: r.get("scheduled_start_time") or "", reverse=True)
    return rows


def seller_leaderboard(orders, sellers, limit: int = 10) -> List[Dict[str, Any]]:
    names = {s["id"]: s.get("business_name") or s["id"] for s in sellers}
    revenue = defaultdict(float)
    counts = Counter()
    for o in orders:
        if o.get("status") not in REVENUE_STATUSES:
            continue
        revenue[o.get("seller_id")] += _amount(o.get("price"))
        counts[o.get("seller_id")] += 1
    ranked = sorted(revenue.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [
        {"seller": names.get(sid, sid or "—"), "orders": counts[sid], "revenue": round(total, 2)}
        for sid, total in ranked
    ]


def admin_overview(users, sellers, shows, orders) -> Dict[str, Any]:
    return {
        "users": len(users),
        "sellers": len(sellers),
        "pending_sellers": sum(1 for s in sellers if (s.get("status") or "pending") == "pending"),
        "live_shows": sum(1 for s in shows if s.get("status") == "live"),
        "scheduled_shows": sum(1 for s in shows if s.get("status") == "scheduled"),
        "orders": len(orders),
        "gmv": revenue_total(orders),
        "givi_orders": sum(1 for o in orders if o.get("givi_event_id")),
    }

# pages/Seller_Orders.py
import pandas as pd
import streamlit as st

from services.fulfillment import (
    FulfillmentError, batch_order_counts, batches_for_seller, batches_for_show, complete_batch_pickup,
    heal_completed_batch_orders, mark_batch_ready, verify_pickup_code,
)
from services.orders import orders_by_batch, orders_for_seller
from services.reports import show_summaries
from services.shows import hide_show_from_orders, shows_for_seller
from supabase_client import sb
from utils.log import get_logger
from utils.session import require_seller

logger = get_logger(__name__)

st.set_page_config(page_title="Orders", layout="wide")
st.title("🧾 Orders & Pickups")

client = sb()
user, seller = require_seller()

healed = heal_completed_batch_orders(client, seller_id=seller["id"])
if healed:
    st.caption(f"Synced {healed} order(s) from completed pickups.")

# ── Pickup verification ──────────────────────────────────────────────────────
st.subheader("Verify pickup")
with st.form("verify"):
    code = st.text_input("Buyer completion code", max_chars=9)
    checked = st.form_submit_button("Verify", type="primary")

if checked:
    try:
        st.session_state["verified_batch"] = verify_pickup_code(client, code, seller["id"])
    except FulfillmentError as e:
        st.session_state.pop("verified_batch", None)
        st.error(e.message)

verified = st.session_state.get("verified_batch")
if verified:
    st.success(f"Batch {verified.get('batch_number')} for {verified.get('buyer_name') or 'buyer'}")
    if verified["orders"]:
        st.dataframe(
            pd.DataFrame(verified["orders"])[["product_title", "price", "status"]],
            use_container_width=True, hide_index=True,
        )
    if st.button("✅ Complete pickup"):
        try:
            result = complete_batch_pickup(
                client, verified["id"], seller["id"], user.get("email") or "", seller.get("business_name") or "",
            )
            st.session_state.pop("verified_batch", None)
            st.success(f"Pickup complete: {result.orders_updated} order(s) marked picked up.")
        except FulfillmentError as e:
            st.error(e.message)

st.divider()

# ── Per-show batches ─────────────────────────────────────────────────────────
shows = shows_for_seller(client, seller["id"])
orders = orders_for_seller(client, seller["id"])
summaries = show_summaries(shows, batches_for_seller(client, seller["id"]), orders)

if not summaries:
    st.info("No orders yet.")
    st.stop()

st.dataframe(
    pd.DataFrame(summaries).drop(columns=["show_id"]).rename(columns={
        "title": "Show", "status": "Status", "scheduled_start_time": "Starts", "batches": "Batches",
        "items": "Items", "revenue": "Revenue", "pending_pickups": "Pending pickups",
    }),
    use_container_width=True, hide_index=True,
)

show_id = st.selectbox(
    "Show", options=[r["show_id"] for r in summaries],
    format_func=lambda v: next((r["title"] for r in summaries if r["show_id"] == v), v),
)
if st.button("Hide this show from the orders list"):
    hide_show_from_orders(client, show_id)
    st.rerun()

grouped = orders_by_batch(orders)
for b in batches_for_show(client, show_id, seller["id"]):
    b_orders = grouped.get(b["id"], [])
    counts = batch_order_counts(b_orders)
    with st.expander(
        f"{b.get('buyer_name') or 'Buyer'}  •  {b.get('status')}  •  {b.get('total_items') or 0} item(s)  •  "
        f"${float(b.get('total_amount') or 0):,.2f}"
    ):
        st.caption(f"{b.get('batch_number')}  •  {counts['pending']} awaiting pickup, {counts['completed']} picked up")
        if b_orders:
            st.table({
                "Item": [o.get("product_title") for o in b_orders],
                "Price": [o.get("price") for o in b_orders],
                "Status": [o.get("status") for o in b_orders],
            })
        if b.get("status") == "pending" and st.button("Mark ready for pickup", key=f"ready_{b['id']}"):
            try:
                mark_batch_ready(client, b["id"], seller["id"])
                st.rerun()
            except FulfillmentError as e:
                st.error(e.message)

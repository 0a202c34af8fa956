# pages/Buyer_Orders.py
import streamlit as st

from services.fulfillment import DONE_STATUSES, batches_for_buyer, heal_completed_batch_orders
from services.givi import GiviError, active_givi_for_show, enter_givi
from services.orders import buyer_order_summary, orders_by_batch, orders_for_buyer
from services.shows import shows_by_status
from supabase_client import first_row, givi_enabled, sb
from utils.session import require_user

st.set_page_config(page_title="My Orders", page_icon="🛒", layout="wide")
st.title("🛒 My Orders")

client = sb()
user = require_user()

heal_completed_batch_orders(client, buyer_id=user["id"])

orders = orders_for_buyer(client, user["id"])
summary = buyer_order_summary(orders)
c1, c2, c3 = st.columns(3)
c1.metric("Orders", summary["order_count"])
c2.metric("Spent", f"${summary['total_spent']:,.2f}")
c3.metric("GIVI wins", summary["givi_wins"])

if givi_enabled():
    for show in shows_by_status(client, "live"):
        event = active_givi_for_show(client, show["id"])
        if not event:
            continue
        st.info(f"🎁 {show.get('title')} is giving away **{event.get('product_title') or 'a prize'}**")
        if st.button("Enter GIVI", key=f"enter_{event['id']}"):
            meta = user.get("user_metadata") or {}
            full_name = meta.get("full_name")
            if not full_name:
                profile = first_row(client.table("buyer_profiles").select("full_name").eq("user_id", user["id"]))
                canonical = first_row(client.table("users").select("full_name").eq("id", user["id"]))
                full_name = (profile or {}).get("full_name") or (canonical or {}).get("full_name")
            try:
                entry = enter_givi(client, event, {"id": user["id"], "email": user.get("email"), "full_name": full_name})
                st.success(f"You're in! Entry #{entry.get('entry_number')}")
            except GiviError as e:
                st.error(str(e))

grouped = orders_by_batch(orders)
batches = batches_for_buyer(client, user["id"])
if not batches:
    st.info("No orders yet.")
    st.stop()

open_batches = [b for b in batches if b.get("status") not in DONE_STATUSES + ("cancelled",)]
st.subheader("Ready for pickup" if open_batches else "Past pickups")
for b in open_batches + [b for b in batches if b not in open_batches]:
    done = b.get("status") in DONE_STATUSES
    with st.expander(f"{b.get('batch_number')}  •  {b.get('status')}", expanded=not done):
        if not done and b.get("status") != "cancelled":
            st.metric("Show this code at pickup", b.get("completion_code") or "—")
        st.caption(b.get("pickup_location") or "")
        items = grouped.get(b["id"], [])
        if items:
            st.table({
                "Item": [o.get("product_title") for o in items],
                "Price": [o.get("price") for o in items],
                "Status": [o.get("status") for o in items],
            })

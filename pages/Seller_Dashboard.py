# pages/Seller_Dashboard.py
import streamlit as st

from services.fulfillment import batches_for_seller
from services.orders import orders_for_seller
from services.reports import order_status_counts, revenue_total
from services.shows import shows_for_seller, split_upcoming_past
from supabase_client import sb
from utils.session import require_seller

st.set_page_config(page_title="Seller Dashboard", page_icon="📊", layout="wide")
st.title("📊 Seller Dashboard")

client = sb()
user, seller = require_seller()
st.caption(seller.get("business_name") or "")

orders = orders_for_seller(client, seller["id"])
batches = batches_for_seller(client, seller["id"])
shows = shows_for_seller(client, seller["id"])
upcoming, past = split_upcoming_past(shows)

counts = order_status_counts(orders)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Revenue", f"${revenue_total(orders):,.2f}")
col2.metric("Orders", len(orders))
col3.metric("Awaiting Pickup", counts.get("paid", 0) + counts.get("ready", 0))
col4.metric("Open Batches", sum(1 for b in batches if b.get("status") in ("pending", "ready")))

if not (seller.get("stripe_account_id") or seller.get("stripe_connected")):
    st.info("Payouts are not connected yet. You can still schedule shows and manage products.")

st.subheader("Upcoming shows")
if upcoming:
    st.table({
        "Show": [s.get("title") for s in upcoming],
        "Status": [s.get("status") for s in upcoming],
        "Starts": [s.get("scheduled_start_time") or "—" for s in upcoming],
    })
else:
    st.caption("Nothing scheduled.")

c1, c2, c3 = st.columns(3)
if c1.button("Manage Shows", type="primary"):
    st.switch_page("pages/Seller_Shows.py")
if c2.button("Manage Products"):
    st.switch_page("pages/Seller_Products.py")
if c3.button("Manage Orders"):
    st.switch_page("pages/Seller_Orders.py")

st.subheader("Past shows")
st.caption(f"{len(past)} ended or cancelled")

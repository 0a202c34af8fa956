# pages/Admin_Dashboard.py
import pandas as pd
import streamlit as st

from services.reports import admin_overview, order_status_counts, seller_leaderboard
from services.sellers import pending_sellers
from supabase_client import sb
from utils.session import require_admin

st.set_page_config(page_title="Admin Dashboard", page_icon="📊", layout="wide")
st.title("📊 Admin Dashboard")

require_admin()
client = sb()

users = client.table("users").select("id,role,created_at").execute().data or []
sellers = client.table("sellers").select("id,business_name,status,contact_email,pickup_city,created_at").execute().data or []
shows = client.table("shows").select("id,status").execute().data or []
orders = client.table("orders").select("id,seller_id,price,status,givi_event_id").execute().data or []

kpi = admin_overview(users, sellers, shows, orders)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Users", kpi["users"])
col2.metric("Sellers", kpi["sellers"])
col3.metric("Pending Sellers", kpi["pending_sellers"])
col4.metric("GMV", f"${kpi['gmv']:,.2f}")

c1, c2, c3, c4 = st.columns(4)
c1.metric("Live Shows", kpi["live_shows"])
c2.metric("Scheduled Shows", kpi["scheduled_shows"])
c3.metric("Orders", kpi["orders"])
c4.metric("GIVI Orders", kpi["givi_orders"])

st.subheader("Sellers awaiting review")
pending = pending_sellers(sellers)
if pending:
    st.dataframe(
        pd.DataFrame(pending)[["business_name", "contact_email", "pickup_city", "created_at"]].rename(columns={
            "business_name": "Business", "contact_email": "Email", "pickup_city": "City", "created_at": "Applied",
        }),
        use_container_width=True, hide_index=True,
    )
    if st.button("Review on Admin Sellers", type="primary"):
        st.switch_page("pages/Admin_Sellers.py")
else:
    st.caption("No pending applications.")

st.subheader("Orders by status")
counts = order_status_counts(orders)
st.table({"Status": list(counts.keys()), "Count": list(counts.values())})

st.subheader("Top sellers")
board = seller_leaderboard(orders, sellers)
if board:
    st.dataframe(pd.DataFrame(board).rename(columns={"seller": "Seller", "orders": "Orders", "revenue": "Revenue"}),
                 use_container_width=True, hide_index=True)
else:
    st.caption("No paid orders yet.")

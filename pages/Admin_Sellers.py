# pages/Admin_Sellers.py
import streamlit as st

from services.sellers import SELLER_STATUSES, REASON_REQUIRED, list_sellers, search_sellers, status_counts, update_seller_status
from supabase_client import sb
from utils.log import get_logger
from utils.session import require_admin

logger = get_logger(__name__)

st.set_page_config(page_title="Sellers", layout="wide")
st.title("🏪 Seller Applications")

require_admin()
client = sb()

sellers = list_sellers(client)
counts = status_counts(sellers)
cols = st.columns(len(SELLER_STATUSES))
for col, s in zip(cols, SELLER_STATUSES):
    col.metric(s.title(), counts[s])

# ── Filters ──────────────────────────────────────────────────────────────────
status = st.selectbox("Status", options=["(All)"] + SELLER_STATUSES, index=0)
q = st.text_input("Search (business / email / city)")

rows = search_sellers(sellers, q)
if status != "(All)":
    rows = [s for s in rows if s.get("status") == status]

if not rows:
    st.info("No sellers match the current filters.")
    st.stop()

for s in rows:
    label = f"{s.get('business_name') or 'unnamed'}  •  {s.get('status', '?')}"
    with st.expander(label, expanded=False):
        c1, c2 = st.columns([3, 2])
        with c1:
            st.write(s.get("contact_email") or "")
            st.write(s.get("contact_phone") or "")
            st.write(", ".join(p for p in (s.get("pickup_address"), s.get("pickup_city"), s.get("pickup_state")) if p))
            st.caption(
                f"Category: {s.get('main_category') or '—'} / {s.get('subcategory') or '—'}  •  "
                f"Type: {s.get('seller_type') or '—'}  •  Revenue: {s.get('estimated_monthly_revenue') or '—'}"
            )
            if s.get("status_reason"):
                st.caption(f"Reason: {s['status_reason']}")
        with c2:
            options = [x for x in SELLER_STATUSES if x != s.get("status")]
            new_status = st.selectbox("Change status to", options=options, key=f"status_{s['id']}")
            reason = st.text_input(
                "Reason" + (" (required)" if new_status in REASON_REQUIRED else ""),
                key=f"reason_{s['id']}",
            )
            if st.button("Apply", key=f"apply_{s['id']}", type="primary"):
                try:
                    update_seller_status(client, s, new_status, reason)
                    st.success(f"Seller marked {new_status}.")
                    st.rerun()
                except Exception as e:
                    logger.exception("seller status update failed for %s", s["id"])
                    st.error("Status update failed.")
                    st.exception(e)

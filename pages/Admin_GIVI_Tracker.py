# pages/Admin_GIVI_Tracker.py
import pandas as pd
import streamlit as st

from services.givi import filter_tracker_rows, tracker_rows, tracker_summary
from supabase_client import sb
from utils.session import require_admin

st.set_page_config(page_title="GIVI Tracker", page_icon="🎁", layout="wide")
st.title("🎁 GIVI Debug Tracker")
st.caption("Monitor GIVI health, entries, winners, errors and duplicate free orders.")

require_admin()
client = sb()

if st.button("Refresh"):
    st.rerun()

events = client.table("givi_events").select("*").order("created_date", desc=True).execute().data or []
entries = client.table("givi_entries").select("*").execute().data or []
logs = client.table("givi_debug_logs").select("*").order("created_date", desc=True).execute().data or []
shows = client.table("shows").select("id,title").execute().data or []
sellers = client.table("sellers").select("id,business_name").execute().data or []
orders = (
    client.table("orders")
    .select("id,buyer_id,buyer_name,buyer_email,product_id,show_id,price,status,givi_event_id,created_date")
    .eq("price", 0)
    .execute()
    .data
    or []
)

summary = tracker_summary(events, entries, logs)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Total GIVIs", summary["total_givis"])
col2.metric("Total Entries", summary["total_entries"])
col3.metric("Total Winners", summary["total_winners"])
col4.metric("Errors", summary["total_errors"])

q = st.text_input("Search (product / show / seller)")
rows = filter_tracker_rows(tracker_rows(events, entries, logs, orders, shows, sellers), q)

if not rows:
    st.info("No GIVI events found.")
    st.stop()

for r in rows:
    badge = "🚨 DUPLICATES" if r["has_duplicates"] else ("⚠️ errors" if r["has_errors"] else "✅ healthy")
    show_title = (r.get("show") or {}).get("title") or "unknown show"
    with st.expander(f"{r.get('product_title') or 'Prize'}  •  {show_title}  •  {r.get('status')}  •  {badge}"):
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Entries", r["total_entries"], help=f"{r['invalid_entries']} invalid")
        c2.metric("Winners", r["winners"])
        c3.metric("Orders", f"{r['orders_created']} / {r['expected_orders']}")
        c4.metric("Error logs", r["error_count"])
        st.caption(f"Seller: {(r.get('seller') or {}).get('business_name') or '—'}")

        if r["has_duplicates"]:
            st.error(f"{r['duplicate_count']} duplicate free order(s). Cancel the extras manually.")
            dupes = [o for group in r["duplicate_groups"] for o in group]
            st.dataframe(
                pd.DataFrame(dupes)[["id", "buyer_name", "buyer_email", "status", "created_date"]],
                use_container_width=True, hide_index=True,
            )

        ev_logs = [l for l in logs if l.get("givi_event_id") == r["id"]]
        if ev_logs:
            st.write("**Debug log**")
            df = pd.DataFrame(ev_logs)
            cols = [c for c in ("created_date", "action", "status", "buyer_name", "error_message") if c in df.columns]
            st.dataframe(df[cols], use_container_width=True, hide_index=True)

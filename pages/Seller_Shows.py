# pages/Seller_Shows.py
from datetime import datetime, time, timedelta, timezone

import pandas as pd
import streamlit as st

from services.shows import VALID_SHOW_TRANSITIONS, create_show, set_show_status, shows_for_seller, update_show
from supabase_client import sb
from utils.log import get_logger
from utils.session import require_seller

logger = get_logger(__name__)

st.set_page_config(page_title="Shows", layout="wide")
st.title("🎥 My Shows")

client = sb()
user, seller = require_seller()

# --- Schedule form ---
with st.expander("➕ Schedule a show", expanded=False):
    with st.form("new_show", clear_on_submit=True):
        title = st.text_input("Title")
        desc = st.text_area("Description", height=100)
        c1, c2 = st.columns(2)
        day = c1.date_input("Date", value=datetime.now().date() + timedelta(days=1))
        at = c2.time_input("Start time (UTC)", value=time(19, 0))
        pickup = st.text_area("Pickup instructions", seller.get("pickup_notes") or "", height=80)
        thumb = st.text_input("Thumbnail URL")
        submitted = st.form_submit_button("Schedule", type="primary")

    if submitted:
        try:
            start = datetime.combine(day, at, tzinfo=timezone.utc)
            show = create_show(client, seller["id"], title, desc, pickup, start, thumbnail_url=thumb)
            st.success(f"Scheduled “{show['title']}”.")
            st.rerun()
        except Exception as e:
            logger.exception("create show failed")
            st.error("Could not schedule the show.")
            st.exception(e)

shows = shows_for_seller(client, seller["id"])
if not shows:
    st.info("No shows yet.")
    st.stop()

df = pd.DataFrame(shows)
cols = [c for c in ("title", "status", "scheduled_start_time", "sales_count", "id") if c in df.columns]
st.dataframe(df[cols].rename(columns={
    "title": "Show", "status": "Status", "scheduled_start_time": "Starts", "sales_count": "Sales",
}), use_container_width=True, hide_index=True)

# --- Edit one show ---
chosen_id = st.selectbox(
    "Select a show",
    options=["(None)"] + [s["id"] for s in shows],
    format_func=lambda v: "(None)" if v == "(None)" else next((s["title"] for s in shows if s["id"] == v), v),
)
if chosen_id == "(None)":
    st.stop()

show = next(s for s in shows if s["id"] == chosen_id)
st.session_state["selected_show_id"] = chosen_id

with st.form("edit_show"):
    new_title = st.text_input("Title", show.get("title") or "")
    new_desc = st.text_area("Description", show.get("description") or "", height=100)
    new_pickup = st.text_area("Pickup instructions", show.get("pickup_instructions") or "", height=80)
    save = st.form_submit_button("Save changes", type="primary", disabled=show.get("status") in ("ended", "cancelled"))

if save:
    try:
        update_show(client, chosen_id, {"title": new_title, "description": new_desc, "pickup_instructions": new_pickup})
        st.success("Saved ✔")
        st.rerun()
    except Exception as e:
        logger.exception("update show failed for %s", chosen_id)
        st.error("Save failed.")
        st.exception(e)

actions = VALID_SHOW_TRANSITIONS.get(show.get("status") or "scheduled", [])
labels = {"live": "🔴 Go Live", "ended": "⏹ End Show", "cancelled": "⛔ Cancel Show"}
if actions:
    st.divider()
    for col, new_status in zip(st.columns(len(actions)), actions):
        if col.button(labels[new_status], key=f"to_{new_status}"):
            try:
                set_show_status(client, show, new_status)
                st.rerun()
            except Exception as e:
                logger.exception("show status change failed for %s", chosen_id)
                st.error("Status change failed.")
                st.exception(e)

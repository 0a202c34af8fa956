# pages/GIVI_Host.py
import streamlit as st

from services.givi import GiviError, active_givi_for_show, award_givi, start_givi, valid_entries
from services.inventory import givi_products
from services.shows import shows_for_seller
from supabase_client import givi_enabled, sb
from utils.log import get_logger
from utils.session import require_seller

logger = get_logger(__name__)

st.set_page_config(page_title="GIVI Host", page_icon="🎁", layout="wide")
st.title("🎁 Host a GIVI")

if not givi_enabled():
    st.info("GIVI giveaways are turned off.")
    st.stop()

client = sb()
user, seller = require_seller()

live = [s for s in shows_for_seller(client, seller["id"]) if s.get("status") == "live"]
if not live:
    st.info("Go live on a show to run a GIVI.")
    st.stop()

show_id = st.selectbox(
    "Live show", [s["id"] for s in live], format_func=lambda v: next(s["title"] for s in live if s["id"] == v),
)
show = next(s for s in live if s["id"] == show_id)

event = active_givi_for_show(client, show["id"])

if not event:
    prizes = givi_products(client, seller["id"])
    if not prizes:
        st.info("Add a GIVEY product with quantity on the Products page first.")
        st.stop()
    with st.form("start_givi"):
        product_id = st.selectbox(
            "Prize", [p["id"] for p in prizes], format_func=lambda v: next(p["title"] for p in prizes if p["id"] == v),
        )
        winners = st.number_input("Number of winners", min_value=1, max_value=10, value=1)
        go = st.form_submit_button("Start GIVI", type="primary")
    if go:
        try:
            start_givi(client, seller, show, next(p for p in prizes if p["id"] == product_id), winners)
            st.rerun()
        except GiviError as e:
            st.error(str(e))
    st.stop()

entries = client.table("givi_entries").select("*").eq("givi_event_id", event["id"]).order("entry_number").execute().data or []
ok = valid_entries(entries)

st.subheader(event.get("product_title") or "Prize")
c1, c2, c3 = st.columns(3)
c1.metric("Entries", len(entries))
c2.metric("Valid entries", len(ok))
c3.metric("Winners to pick", event.get("number_of_winners") or 1)
if len(ok) < len(entries):
    st.warning(f"{len(entries) - len(ok)} entr(ies) are missing a name or email and cannot win.")

if st.button("Refresh entries"):
    st.rerun()

if st.button("🎉 Pick winners", type="primary", disabled=not ok):
    try:
        result = award_givi(client, event, seller, show)
        st.success("Winners: " + ", ".join(w.get("user_name") or w["user_id"] for w in result.winners))
        st.caption(f"{result.orders_created} free order(s) created, {result.duplicates_prevented} duplicate(s) prevented.")
        for f in result.failures:
            st.error(f)
    except GiviError as e:
        st.error(str(e))
    except Exception as e:
        logger.exception("awarding givi %s failed", event["id"])
        st.error("Could not award this GIVI.")
        st.exception(e)

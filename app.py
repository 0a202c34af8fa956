# app.py
import streamlit as st

from services.onboarding import fetch_canonical_user, is_admin, merge_user, onboarding_readiness
from supabase_client import first_row, sb
from utils.log import get_logger
from utils.session import current_user, sign_in, sign_out

logger = get_logger(__name__)

st.set_page_config(page_title="Live Market Console", page_icon="🛍️", layout="wide")
st.title("🛍️ Live Market Console")

user = current_user()

if not user:
    st.write("Sign in to manage shows, inventory, orders and giveaways.")
    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")
    if submitted:
        try:
            sign_in(email.strip(), password)
            st.rerun()
        except Exception as e:
            logger.warning("sign in failed for %s: %s", email, e)
            st.error("Sign in failed. Check your email and password.")
    st.stop()

client = sb()
canonical, err = fetch_canonical_user(client, user["id"])
if err:
    st.error(f"Could not load your account record: {err}")
merged = merge_user(user, canonical)

st.sidebar.header("Navigation")
st.sidebar.caption(f"Signed in as {user.get('email')}")
if st.sidebar.button("Sign out"):
    sign_out()
    st.rerun()

buyer_profile = first_row(client.table("buyer_profiles").select("*").eq("user_id", user["id"]))
seller = first_row(client.table("sellers").select("*").eq("user_id", user["id"]))
ready = onboarding_readiness(merged, buyer_profile, seller)

if is_admin(merged):
    st.sidebar.success("Admin pages:\n\n- Admin Dashboard\n- Admin Sellers\n- Admin GIVI Tracker")
if ready["seller_access_ready"]:
    st.sidebar.success("Seller pages:\n\n- Seller Dashboard\n- Seller Shows\n- Seller Products\n- Seller Orders\n- GIVI Host")
elif seller or (merged.get("user_metadata") or {}).get("seller_onboarding_steps_completed"):
    st.sidebar.info("Continue on the Seller Onboarding page.")
st.sidebar.info("Buyer pages:\n\n- Buyer Orders")

st.subheader("Account readiness")
c1, c2, c3 = st.columns(3)
c1.metric("Buyer access", "Ready" if ready["buyer_access_ready"] else "Incomplete")
c2.metric("Seller status", ready["seller_status"] or "—")
c3.metric("Seller access", "Ready" if ready["seller_access_ready"] else "Locked")

with st.expander("Details"):
    st.table({"Check": list(ready.keys()), "Value": [str(v) for v in ready.values()]})

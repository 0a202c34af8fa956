# pages/Seller_Onboarding.py
import streamlit as st

from services.onboarding import (
    ADDRESS_FIELDS, CATEGORY_OPTIONS, GUIDELINES, REVENUE_RANGES, SALES_CHANNELS, SELLER_TYPES, STEPS,
    OnboardingError, all_steps_complete, fetch_canonical_user, resolve_onboarding_gate, save_step,
    step_progress, steps_completed, submit_seller_application,
)
from supabase_client import sb
from utils.log import get_logger
from utils.session import require_user, update_metadata

logger = get_logger(__name__)

st.set_page_config(page_title="Seller Onboarding", layout="wide")
st.title("🧾 Become a Seller")

client = sb()
user = require_user()
meta = dict(user.get("user_metadata") or {})

canonical, load_error = fetch_canonical_user(client, user["id"])
gate = resolve_onboarding_gate(user, canonical, load_error)

if gate == "admin":
    st.info("Admins skip seller onboarding.")
    st.stop()
if gate == "completed":
    st.success("Your seller application is submitted. An admin will review it shortly.")
    st.stop()
if gate == "needs_safety":
    st.warning("Please accept the seller safety agreement before onboarding.")
    if st.button("I agree to the seller safety terms", type="primary"):
        try:
            client.table("users").update({"seller_safety_agreed": True}).eq("id", user["id"]).execute()
            client.auth.admin.update_user_by_id(user["id"], {"user_metadata": {"seller_safety_agreed": True}})
            meta["seller_safety_agreed"] = True
            update_metadata(meta)
            st.rerun()
        except Exception as e:
            logger.exception("seller safety agreement failed for %s", user["id"])
            st.error("Could not save your agreement.")
            st.exception(e)
    st.stop()
if gate == "degraded":
    # keep the form usable; no redirect so a schema problem cannot loop
    st.error(f"Could not load your account record ({load_error}). Progress is saved to your session only.")

done, total = step_progress(meta)
st.progress(done / total, text=f"{done}/{total} steps complete")
completed = set(steps_completed(meta))


def _save(step_id, form):
    try:
        update_metadata(save_step(client, user["id"], meta, step_id, form))
        st.success("Saved.")
        st.rerun()
    except OnboardingError as e:
        st.error(str(e))
    except Exception as e:
        logger.exception("saving onboarding step %s failed", step_id)
        st.error(f"Error saving {step_id}.")
        st.exception(e)


for step_id, label in STEPS:
    icon = "✅" if step_id in completed else "⬜"
    with st.expander(f"{icon} {label}", expanded=False):
        with st.form(f"step_{step_id}"):
            if step_id == "phone":
                form = {"number": st.text_input("Mobile number", meta.get("phone_number") or "")}
            elif step_id == "guidelines":
                form = {
                    k: st.checkbox(text, value=bool(meta.get(meta_key)), key=f"g_{k}")
                    for k, (meta_key, text) in GUIDELINES.items()
                }
            elif step_id == "category":
                current = meta.get("seller_main_category")
                form = {"category": st.selectbox(
                    "Main category", CATEGORY_OPTIONS,
                    index=CATEGORY_OPTIONS.index(current) if current in CATEGORY_OPTIONS else 0,
                )}
            elif step_id == "subcategory":
                form = {"subcategory": st.text_input(
                    "What exactly do you sell?", meta.get("seller_subcategory") or "",
                    placeholder="e.g., Vintage NBA Cards, Hand-poured Candles",
                )}
            elif step_id == "type":
                types = list(SELLER_TYPES)
                current = meta.get("seller_type") or "individual"
                form = {"seller_type": st.radio(
                    "Seller type", types, index=types.index(current) if current in types else 0,
                    format_func=SELLER_TYPES.get, horizontal=True,
                )}
            elif step_id == "revenue":
                ranges = list(REVENUE_RANGES)
                current = meta.get("seller_revenue_range")
                form = {"revenue_range": st.selectbox(
                    "Monthly revenue", ranges, index=ranges.index(current) if current in ranges else 0,
                    format_func=REVENUE_RANGES.get,
                )}
            elif step_id == "channels":
                form = {"channels": st.multiselect(
                    "Where do you sell today?", list(SALES_CHANNELS),
                    default=[c for c in (meta.get("seller_sales_channels") or []) if c in SALES_CHANNELS],
                    format_func=SALES_CHANNELS.get,
                )}
            elif step_id == "address":
                prefill_name = (canonical or {}).get("full_name") or meta.get("seller_return_full_name") or ""
                form = {}
                for k, meta_key in ADDRESS_FIELDS.items():
                    default = prefill_name if k == "full_name" else (meta.get(meta_key) or ("US" if k == "country" else ""))
                    form[k] = st.text_input(k.replace("_", " ").title(), default, disabled=(k == "country"))
            else:
                st.caption("Payouts are connected later; confirm your billing location for now.")
                form = {
                    "zip": st.text_input("Billing ZIP code", meta.get("payment_billing_zip") or ""),
                    "country": st.text_input("Billing country", meta.get("payment_billing_country") or "US", disabled=True),
                }

            if st.form_submit_button(f"Save {label}", type="primary"):
                _save(step_id, form)

st.divider()
if all_steps_complete(meta):
    if st.button("Submit seller application", type="primary"):
        try:
            submit_seller_application(client, user, meta)
            meta["seller_onboarding_completed"] = True
            update_metadata(meta)
            st.success("Application submitted. Your status is pending review.")
            st.rerun()
        except OnboardingError as e:
            st.error(f"Submission failed. Please try again.\n\n{e}")
else:
    st.button("🔒 Complete all steps to submit", disabled=True)

# pages/Seller_Products.py
import pandas as pd
import streamlit as st

from services.inventory import (
    archive_inventory_product, copy_inventory_to_show, create_inventory_product, create_product,
    delete_product, inventory_for_seller, products_for_show, update_inventory_product,
)
from services.shows import shows_for_seller
from supabase_client import sb
from utils.log import get_logger
from utils.session import require_seller

logger = get_logger(__name__)

st.set_page_config(page_title="Products", layout="wide")
st.title("📦 Products & Inventory")

client = sb()
user, seller = require_seller()

tab_lib, tab_show = st.tabs(["Inventory library", "Show products"])

# ── Inventory library ────────────────────────────────────────────────────────
with tab_lib:
    with st.expander("➕ Add inventory item"):
        with st.form("new_inventory", clear_on_submit=True):
            title = st.text_input("Title")
            price = st.number_input("Price ($)", min_value=0.0, step=1.0)
            category = st.text_input("Category")
            desc = st.text_area("Description", height=80)
            images = st.text_area("Image URLs (comma-separated)")
            if st.form_submit_button("Add", type="primary"):
                try:
                    create_inventory_product(client, seller["id"], title, price, desc, images, category)
                    st.success("Added.")
                    st.rerun()
                except Exception as e:
                    logger.exception("create inventory failed")
                    st.error("Could not add the item.")
                    st.exception(e)

    items = inventory_for_seller(client, seller["id"])
    shows = [s for s in shows_for_seller(client, seller["id"]) if s.get("status") in ("scheduled", "live")]

    if not items:
        st.caption("Your library is empty.")
    for it in items:
        with st.expander(f"{it['title']}  •  ${float(it.get('price') or 0):,.2f}"):
            c1, c2 = st.columns([3, 2])
            with c1:
                new_price = st.number_input("Price ($)", min_value=0.0, value=float(it.get("price") or 0), key=f"price_{it['id']}")
                new_desc = st.text_area("Description", it.get("description") or "", key=f"desc_{it['id']}")
                if st.button("Save", key=f"save_{it['id']}"):
                    try:
                        update_inventory_product(client, it["id"], {"price": new_price, "description": new_desc})
                        st.success("Saved.")
                    except Exception as e:
                        logger.exception("update inventory failed for %s", it["id"])
                        st.error("Save failed.")
                        st.exception(e)
            with c2:
                target = st.selectbox(
                    "Add to show", options=["(None)"] + [s["id"] for s in shows], key=f"show_{it['id']}",
                    format_func=lambda v: "(None)" if v == "(None)" else next((s["title"] for s in shows if s["id"] == v), v),
                )
                if st.button("Copy to show", key=f"copy_{it['id']}", disabled=(target == "(None)")):
                    try:
                        copy_inventory_to_show(client, it["id"], target, seller["id"])
                        st.success("Added to show.")
                    except Exception as e:
                        logger.exception("copy inventory %s failed", it["id"])
                        st.error("Copy failed.")
                        st.exception(e)
                if st.button("Archive", key=f"archive_{it['id']}"):
                    archive_inventory_product(client, it["id"])
                    st.rerun()

# ── Per-show products ────────────────────────────────────────────────────────
with tab_show:
    all_shows = shows_for_seller(client, seller["id"])
    if not all_shows:
        st.info("Schedule a show first.")
    else:
        default = st.session_state.get("selected_show_id")
        ids = [s["id"] for s in all_shows]
        show_id = st.selectbox(
            "Show", options=ids, index=ids.index(default) if default in ids else 0,
            format_func=lambda v: next((s["title"] for s in all_shows if s["id"] == v), v),
        )
        st.session_state["selected_show_id"] = show_id

        with st.form("new_product", clear_on_submit=True):
            c1, c2, c3 = st.columns([3, 1, 1])
            p_title = c1.text_input("Title")
            p_price = c2.number_input("Price ($)", min_value=0.0, step=1.0)
            p_givey = c3.checkbox("GIVEY item")
            if st.form_submit_button("Add product", type="primary"):
                try:
                    create_product(client, seller["id"], p_title, 0 if p_givey else p_price, show_id=show_id, is_givey=p_givey)
                    st.rerun()
                except Exception as e:
                    logger.exception("create product failed")
                    st.error("Could not add the product.")
                    st.exception(e)

        products = products_for_show(client, show_id)
        if products:
            df = pd.DataFrame(products)
            cols = [c for c in ("title", "price", "quantity", "status", "is_givey", "id") if c in df.columns]
            st.dataframe(df[cols], use_container_width=True, hide_index=True)
            to_delete = st.selectbox(
                "Remove a product", options=["(None)"] + [p["id"] for p in products],
                format_func=lambda v: "(None)" if v == "(None)" else next((p["title"] for p in products if p["id"] == v), v),
            )
            if st.button("Remove", disabled=(to_delete == "(None)")):
                delete_product(client, to_delete)
                st.rerun()
        else:
            st.caption("No products on this show yet.")

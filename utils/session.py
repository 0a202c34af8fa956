# utils/session.py
"""Who is signed in, and the page gates built on top of it."""
from typing import Any, Dict, Optional

import streamlit as st

from services.onboarding import approved_seller_by_user_id, fetch_canonical_user, is_admin, merge_user
from supabase_client import auth_client, sb
from utils.log import get_logger

logger = get_logger(__name__)

_KEY = "auth_user"


def _to_dict(user) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": dict(user.user_metadata or {}),
        "app_metadata": dict(user.app_metadata or {}),
    }


def sign_in(email: str, password: str) -> Dict[str, Any]:
    res = auth_client().auth.sign_in_with_password({"email": email, "password": password})
    user = _to_dict(res.user)
    st.session_state[_KEY] = user
    logger.info("signed in %s", user["id"])
    return user


def sign_out():
    st.session_state.pop(_KEY, None)
    st.session_state.pop("selected_show_id", None)


def current_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get(_KEY)


def update_metadata(meta: Dict[str, Any]):
    user = current_user()
    if user:
        user["user_metadata"] = dict(meta)


def require_user() -> Dict[str, Any]:
    user = current_user()
    if not user:
        st.warning("Please sign in on the Home page first.")
        st.stop()
    return user


def require_admin():
    """Returns (auth user, canonical users row); stops the page for non-admins."""
    user = require_user()
    canonical, err = fetch_canonical_user(sb(), user["id"])
    if err:
        st.error(f"Could not load your account: {err}")
        st.stop()
    if not is_admin(merge_user(user, canonical)):
        st.error("Admins only.")
        st.stop()
    return user, canonical


def require_seller():
    """Returns (auth user, sellers row) for approved sellers, checked against the database."""
    user = require_user()
    check = approved_seller_by_user_id(sb(), user["id"])
    if not check.ok:
        if check.reason in ("no sellers row", "seller_onboarding_incomplete"):
            st.info("Finish seller onboarding to unlock this page.")
        elif check.reason == "status_not_approved":
            st.info(f"Your seller application is **{check.seller_status}**.")
        else:
            st.warning(f"Seller access unavailable ({check.reason}).")
        st.stop()
    return user, check.seller_row

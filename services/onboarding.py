# services/onboarding.py
"""
Buyer / seller readiness gates and the seller onboarding wizard.

Two sources carry the onboarding flags:
- the canonical ``users`` row (source of truth for role and status)
- the auth session ``user_metadata`` (written first by the wizard, may lag or lead)

The gate helpers accept either source so a fresh metadata write does not bounce
the user back into the wizard before the canonical row catches up.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client

from services.validators import is_valid_phone, missing_fields
from supabase_client import first_row, now_iso

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "super_admin")

STEPS = [
    ("phone", "Phone Verification"),
    ("guidelines", "Guidelines & Agreements"),
    ("category", "Main Selling Category"),
    ("subcategory", "Subcategory"),
    ("type", "Seller Type"),
    ("revenue", "Revenue Range"),
    ("channels", "Sales Channels"),
    ("address", "Return Address"),
    ("payment", "Payment Method Setup"),
]
STEP_IDS = [s for s, _ in STEPS]

CATEGORY_OPTIONS = [
    "Sports Cards", "Trading Cards", "Coins", "Comics", "Sneakers", "Vintage Clothing",
    "Electronics", "Collectibles", "Art", "Jewelry", "Antiques", "Books", "Music",
    "Movies", "Video Games", "Toys", "Home & Garden", "Tools", "Auto Parts", "Other",
]

REVENUE_RANGES = {
    "0-500": "$0 - $500",
    "500-2000": "$500 - $2,000",
    "2000-10000": "$2,000 - $10,000",
    "10000-50000": "$10,000 - $50,000",
    "50000+": "$50,000+",
}

SALES_CHANNELS = {
    "website": "Website",
    "social_media": "Social Media",
    "store_warehouse": "Store/Warehouse",
    "other_platforms": "Other Platforms (Amazon/eBay/Etsy)",
    "just_starting": "Just Getting Started",
}

SELLER_TYPES = {"individual": "Individual", "registered_business": "Registered business"}

# form key -> metadata key
GUIDELINES = {
    "honor": ("seller_guideline_honor_purchases", "I will honor all purchases"),
    "counterfeit": ("seller_guideline_no_counterfeit", "I will not sell counterfeit items"),
    "accurate": ("seller_guideline_accurate_descriptions", "My descriptions will be accurate"),
    "ship": ("seller_guideline_ship_safely", "I will package and hand over items safely"),
    "minor": ("seller_guideline_minor_preapproval", "Minors need pre-approval to sell"),
}

ADDRESS_FIELDS = {
    "full_name": "seller_return_full_name",
    "line1": "seller_return_address_1",
    "line2": "seller_return_address_2",
    "city": "seller_return_city",
    "state": "seller_return_state",
    "zip": "seller_return_zip",
    "country": "seller_return_country",
}


class OnboardingError(Exception):
    pass


# ─────────────────────────── dual-source flags ───────────────────────────

def _meta(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not user:
        return {}
    return user.get("user_metadata") or {}


def _flag(user: Optional[Dict[str, Any]], key: str) -> bool:
    if not user:
        return False
    return user.get(key) is True or _meta(user).get(key) is True


def buyer_safety_agreed(user) -> bool:
    return _flag(user, "buyer_safety_agreed")


def seller_onboarding_completed(user) -> bool:
    return _flag(user, "seller_onboarding_completed")


def seller_safety_agreed(user) -> bool:
    return _flag(user, "seller_safety_agreed")


def merge_user(auth_user: Optional[Dict[str, Any]], canonical: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Auth user with canonical columns layered on top; metadata stays under ``user_metadata``."""
    merged = dict(auth_user or {})
    for k, v in (canonical or {}).items():
        if v is not None:
            merged[k] = v
    return merged


# ─────────────────────────── access tiers ───────────────────────────

def is_buyer_profile_complete(buyer_profile: Optional[Dict[str, Any]]) -> bool:
    if not buyer_profile:
        logger.warning("gate fail is_buyer_profile_complete: no buyer profile")
        return False
    missing = missing_fields(buyer_profile, ("full_name", "phone", "email"))
    if missing:
        logger.warning("gate fail is_buyer_profile_complete: missing %s", ", ".join(missing))
        return False
    return True


def is_buyer_access_ready(user, buyer_profile) -> bool:
    return bool(buyer_profile) and buyer_safety_agreed(user)


def seller_access_failure(user, seller, buyer_profile=None) -> Optional[str]:
    """Reason seller access is blocked, or None when it is ready."""
    if not is_buyer_profile_complete(buyer_profile):
        return "buyer_profile_incomplete"
    if not seller:
        return "seller_missing"
    if seller.get("status") != "approved":
        return "seller_not_approved"
    if not seller_onboarding_completed(user):
        return "seller_onboarding_not_completed"
    if not seller_safety_agreed(user):
        return "seller_safety_not_agreed"
    return None


def is_seller_access_ready(user, seller, buyer_profile=None) -> bool:
    # identity verification and payment connection are not part of seller access
    reason = seller_access_failure(user, seller, buyer_profile)
    if reason:
        logger.warning(
            "gate fail is_seller_access_ready: %s (user=%s seller_status=%s)",
            reason, (user or {}).get("id"), (seller or {}).get("status"),
        )
        return False
    return True


def is_seller_payment_ready(user, seller, buyer_profile=None) -> bool:
    return is_seller_access_ready(user, seller, buyer_profile) and bool(
        (seller or {}).get("stripe_account_id") or (seller or {}).get("stripe_connected")
    )


def onboarding_readiness(user, buyer_profile, seller) -> Dict[str, Any]:
    user = user or {}
    seller_row = seller or {}
    return {
        "has_buyer_profile": bool(buyer_profile),
        "buyer_safety_agreed": buyer_safety_agreed(user),
        "buyer_access_ready": is_buyer_access_ready(user, buyer_profile),
        "has_seller_profile": bool(seller),
        "seller_status": seller_row.get("status"),
        "seller_approved": seller_row.get("status") == "approved",
        "seller_onboarding_completed": user.get("seller_onboarding_completed") is True,
        "seller_safety_agreed": user.get("seller_safety_agreed") is True,
        "identity_verified": user.get("identity_verified") is True,
        "seller_access_ready": is_seller_access_ready(user, seller, buyer_profile),
        "stripe_connected": bool(seller_row.get("stripe_account_id") or seller_row.get("stripe_connected")),
        "seller_payment_ready": is_seller_payment_ready(user, seller, buyer_profile),
    }


# ─────────────────────────── canonical DB truth ───────────────────────────

@dataclass
class ApprovedSellerResult:
    ok: bool
    reason: str
    role: Optional[str] = None
    seller_status: Optional[str] = None
    seller_id: Optional[str] = None
    seller_row: Optional[Dict[str, Any]] = None


def fetch_canonical_user(client: Client, user_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return (users row, error message). A failed query is reported, not raised."""
    try:
        row = first_row(
            client.table("users")
            .select("id, email, full_name, role, buyer_safety_agreed, seller_safety_agreed, "
                    "seller_onboarding_completed, identity_verified")
            .eq("id", user_id)
        )
        return row, None
    except Exception as e:
        logger.error("canonical users query failed for %s: %s", user_id, e)
        return None, str(e)


def approved_seller_by_user_id(client: Client, user_id: Optional[str]) -> ApprovedSellerResult:
    if not user_id:
        return ApprovedSellerResult(False, "no userId provided")

    try:
        user_row = first_row(
            client.table("users")
            .select("id, role, email, seller_onboarding_completed, seller_safety_agreed")
            .eq("id", user_id)
        )
    except Exception as e:
        logger.warning("approved seller check: users query error: %s", e)
        return ApprovedSellerResult(False, f"users query error: {e}")

    if not user_row:
        return ApprovedSellerResult(False, "no public.users row")

    role = user_row.get("role")

    try:
        seller_row = first_row(client.table("sellers").select("*").eq("user_id", user_id))
    except Exception as e:
        logger.warning("approved seller check: sellers query error: %s", e)
        return ApprovedSellerResult(False, f"sellers query error: {e}", role=role)

    if not seller_row:
        return ApprovedSellerResult(False, "no sellers row", role=role)

    result = ApprovedSellerResult(
        ok=False,
        reason="",
        role=role,
        seller_status=seller_row.get("status"),
        seller_id=seller_row.get("id"),
        seller_row=seller_row,
    )
    if role != "seller":
        result.reason = "role_not_seller"
    elif result.seller_status != "approved":
        result.reason = "status_not_approved"
    elif user_row.get("seller_onboarding_completed") is not True:
        result.reason = "seller_onboarding_incomplete"
    elif user_row.get("seller_safety_agreed") is not True:
        result.reason = "seller_safety_not_agreed"
    else:
        result.ok = True
        result.reason = "seller_access_ready"

    logger.info(
        "approved seller check user=%s role=%s status=%s => ok=%s reason=%s",
        user_id, role, result.seller_status, result.ok, result.reason,
    )
    return result


def _role(user) -> Optional[str]:
    if not user:
        return None
    return (
        user.get("role")
        or _meta(user).get("role")
        or (user.get("app_metadata") or {}).get("role")
    )


def is_admin(user) -> bool:
    return _role(user) in ADMIN_ROLES


def is_super_admin(user) -> bool:
    return _role(user) == "super_admin"


def resolve_onboarding_gate(auth_user, canonical, canonical_error: Optional[str] = None) -> str:
    """
    Decide what the onboarding page does for this user:
    ``admin`` (skip), ``degraded`` (render with an error, never redirect),
    ``completed`` (leave the wizard), ``needs_safety`` (agreement first), ``wizard``.
    """
    if is_super_admin(auth_user):
        return "admin"
    if canonical_error:
        return "degraded"
    user = merge_user(auth_user, canonical)
    if seller_onboarding_completed(user):
        return "completed"
    if not seller_safety_agreed(user):
        return "needs_safety"
    return "wizard"


# ─────────────────────────── wizard progress ───────────────────────────

def steps_completed(meta: Optional[Dict[str, Any]]) -> List[str]:
    done = set((meta or {}).get("seller_onboarding_steps_completed") or [])
    return [s for s in STEP_IDS if s in done]


def mark_step_complete(meta: Optional[Dict[str, Any]], step_id: str) -> Dict[str, List[str]]:
    if step_id not in STEP_IDS:
        raise OnboardingError(f"Unknown onboarding step: {step_id}")
    done = set(steps_completed(meta)) | {step_id}
    return {
        "seller_onboarding_steps_completed": [s for s in STEP_IDS if s in done],
        "seller_onboarding_steps_remaining": [s for s in STEP_IDS if s not in done],
    }


def step_progress(meta) -> Tuple[int, int]:
    return len(steps_completed(meta)), len(STEP_IDS)


def all_steps_complete(meta) -> bool:
    return len(steps_completed(meta)) == len(STEP_IDS)


def step_fields(step_id: str, form: Dict[str, Any]) -> Dict[str, Any]:
    """Validate one wizard step and build the metadata it stores."""
    ts = now_iso()

    if step_id == "phone":
        number = (form.get("number") or "").strip()
        if not is_valid_phone(number):
            raise OnboardingError("Please enter a valid phone number")
        return {"phone_number": number, "phone_verified": True, "phone_verified_at": ts}

    if step_id == "guidelines":
        if not all(form.get(k) for k in GUIDELINES):
            raise OnboardingError("Please accept all guidelines")
        fields = {meta_key: True for meta_key, _ in GUIDELINES.values()}
        fields["seller_guidelines_accepted_at"] = ts
        return fields

    if step_id == "category":
        if form.get("category") not in CATEGORY_OPTIONS:
            raise OnboardingError("Please choose a category")
        return {"seller_main_category": form["category"]}

    if step_id == "subcategory":
        sub = (form.get("subcategory") or "").strip()
        if not sub:
            raise OnboardingError("Please describe your subcategory")
        return {"seller_subcategory": sub}

    if step_id == "type":
        if form.get("seller_type") not in SELLER_TYPES:
            raise OnboardingError("Please choose a seller type")
        return {"seller_type": form["seller_type"]}

    if step_id == "revenue":
        if form.get("revenue_range") not in REVENUE_RANGES:
            raise OnboardingError("Please select a revenue range")
        return {"seller_revenue_range": form["revenue_range"]}

    if step_id == "channels":
        channels = [c for c in (form.get("channels") or []) if c in SALES_CHANNELS]
        if not channels:
            raise OnboardingError("Please select at least one sales channel")
        return {"seller_sales_channels": channels}

    if step_id == "address":
        missing = missing_fields(form, ("full_name", "line1", "city", "state", "zip"))
        if missing:
            raise OnboardingError(f"Missing address fields: {', '.join(missing)}")
        fields = {meta_key: (form.get(k) or "").strip() for k, meta_key in ADDRESS_FIELDS.items()}
        fields["seller_return_country"] = fields["seller_return_country"] or "US"
        return fields

    if step_id == "payment":
        zip_code = (form.get("zip") or "").strip()
        if not zip_code:
            raise OnboardingError("Please enter your billing ZIP code")
        return {
            "payment_billing_zip": zip_code,
            "payment_billing_country": form.get("country") or "US",
            "payment_setup_status": "completed",
            "payment_setup_completed_at": ts,
        }

    raise OnboardingError(f"Unknown onboarding step: {step_id}")


def _update_metadata(client: Client, user_id: str, fields: Dict[str, Any]):
    return client.auth.admin.update_user_by_id(user_id, {"user_metadata": fields})


def save_step(client: Client, user_id: str, meta: Dict[str, Any], step_id: str, form: Dict[str, Any]) -> Dict[str, Any]:
    """Persist one step into auth metadata and return the merged metadata."""
    fields = step_fields(step_id, form)
    fields.update(mark_step_complete(meta, step_id))
    _update_metadata(client, user_id, fields)
    merged = dict(meta or {})
    merged.update(fields)
    return merged


# ─────────────────────────── final submission ───────────────────────────

def build_seller_payload(auth_user: Dict[str, Any], meta: Dict[str, Any], canonical: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    canonical = canonical or {}
    email = canonical.get("email") or auth_user.get("email") or ""
    channels = meta.get("seller_sales_channels") or []
    return {
        "user_id": auth_user["id"],
        "created_by": auth_user.get("email"),
        "status": "pending",
        "business_name": (
            meta.get("seller_return_full_name")
            or canonical.get("full_name")
            or (email.split("@")[0] if email else "")
            or "New Seller"
        ),
        "contact_email": email or None,
        "contact_phone": meta.get("phone_number") or canonical.get("phone") or None,
        "pickup_address": meta.get("seller_return_address_1") or None,
        "pickup_city": meta.get("seller_return_city") or None,
        "pickup_state": meta.get("seller_return_state") or None,
        "pickup_zip": meta.get("seller_return_zip") or None,
        "main_category": meta.get("seller_main_category") or None,
        "subcategory": meta.get("seller_subcategory") or None,
        "seller_type": meta.get("seller_type") or "individual",
        "estimated_monthly_revenue": meta.get("seller_revenue_range") or None,
        "sales_channels": channels if channels else None,
    }


def submit_seller_application(client: Client, auth_user: Dict[str, Any], meta: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upsert the sellers row (pending), then promote the canonical users row, then metadata.
    Only the sellers upsert is blocking; it is keyed on user_id so retries are safe.
    """
    if not all_steps_complete(meta):
        raise OnboardingError("Complete all onboarding steps before submitting")

    user_id = auth_user["id"]
    canonical = first_row(client.table("users").select("full_name, phone, email").eq("id", user_id))
    payload = build_seller_payload(auth_user, meta, canonical)

    try:
        res = client.table("sellers").upsert(payload, on_conflict="user_id").execute()
    except Exception as e:
        logger.error("sellers upsert failed for %s: %s", user_id, e)
        raise OnboardingError(f"Submission failed: {e}") from e
    if not res.data:
        raise OnboardingError("Submission failed: sellers upsert returned no row")
    seller = res.data[0]

    try:
        client.table("users").update(
            {"seller_onboarding_completed": True, "role": "seller"}
        ).eq("id", user_id).execute()
    except Exception as e:
        logger.error("users promotion failed for %s (non-blocking): %s", user_id, e)

    try:
        _update_metadata(client, user_id, {
            "seller_onboarding_completed": True,
            "seller_onboarding_completed_at": now_iso(),
            "seller_application_status": "pending",
            "seller_onboarding_steps_remaining": [],
        })
    except Exception as e:
        logger.error("metadata update failed for %s (non-blocking): %s", user_id, e)

    logger.info("seller application submitted user=%s seller=%s", user_id, seller.get("id"))
    return seller

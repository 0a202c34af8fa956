"""
Tests for services/onboarding.py - readiness gates, approved-seller check and the wizard.
"""

import pytest

from services.onboarding import (
    STEP_IDS,
    OnboardingError,
    all_steps_complete,
    approved_seller_by_user_id,
    build_seller_payload,
    is_admin,
    is_buyer_profile_complete,
    is_seller_access_ready,
    is_seller_payment_ready,
    mark_step_complete,
    merge_user,
    onboarding_readiness,
    resolve_onboarding_gate,
    save_step,
    seller_access_failure,
    seller_onboarding_completed,
    step_fields,
    step_progress,
    submit_seller_application,
)

BUYER_PROFILE = {"full_name": "Ann Buyer", "phone": "5125550100", "email": "ann@example.com"}


def _ready_user(**overrides):
    user = {"id": "u1", "seller_onboarding_completed": True, "seller_safety_agreed": True, "buyer_safety_agreed": True}
    user.update(overrides)
    return user


# =============================================================================
# Dual-source flags
# =============================================================================

class TestFlags:
    """Flags can come from the users row or from auth metadata."""

    def test_flag_from_metadata_only(self):
        user = {"id": "u1", "user_metadata": {"seller_onboarding_completed": True}}
        assert seller_onboarding_completed(user)

    def test_flag_from_canonical_column(self):
        assert seller_onboarding_completed({"id": "u1", "seller_onboarding_completed": True})

    def test_truthy_non_bool_is_not_true(self):
        assert not seller_onboarding_completed({"id": "u1", "seller_onboarding_completed": "yes"})

    def test_none_user(self):
        assert not seller_onboarding_completed(None)

    def test_merge_user_keeps_auth_values_when_canonical_is_none(self):
        merged = merge_user({"id": "u1", "email": "a@b.c"}, {"email": None, "role": "seller"})
        assert merged["email"] == "a@b.c"
        assert merged["role"] == "seller"


# =============================================================================
# Access tiers
# =============================================================================

class TestAccessTiers:

    def test_buyer_profile_requires_name_phone_email(self):
        assert is_buyer_profile_complete(BUYER_PROFILE)
        assert not is_buyer_profile_complete({**BUYER_PROFILE, "phone": " "})
        assert not is_buyer_profile_complete(None)

    def test_seller_access_ready(self):
        assert is_seller_access_ready(_ready_user(), {"status": "approved"}, BUYER_PROFILE)

    def test_failure_reasons_in_order(self):
        assert seller_access_failure(_ready_user(), {"status": "approved"}, None) == "buyer_profile_incomplete"
        assert seller_access_failure(_ready_user(), None, BUYER_PROFILE) == "seller_missing"
        assert seller_access_failure(_ready_user(), {"status": "pending"}, BUYER_PROFILE) == "seller_not_approved"
        assert seller_access_failure(
            _ready_user(seller_onboarding_completed=False), {"status": "approved"}, BUYER_PROFILE
        ) == "seller_onboarding_not_completed"
        assert seller_access_failure(
            _ready_user(seller_safety_agreed=False), {"status": "approved"}, BUYER_PROFILE
        ) == "seller_safety_not_agreed"

    def test_identity_verification_not_required(self):
        user = _ready_user(identity_verified=False)
        assert is_seller_access_ready(user, {"status": "approved"}, BUYER_PROFILE)

    def test_payment_ready_needs_stripe(self):
        user = _ready_user()
        assert not is_seller_payment_ready(user, {"status": "approved"}, BUYER_PROFILE)
        assert is_seller_payment_ready(user, {"status": "approved", "stripe_account_id": "acct_1"}, BUYER_PROFILE)

    def test_readiness_snapshot(self):
        ready = onboarding_readiness(_ready_user(), BUYER_PROFILE, {"status": "approved"})
        assert ready["buyer_access_ready"] is True
        assert ready["seller_access_ready"] is True
        assert ready["seller_payment_ready"] is False
        assert ready["seller_status"] == "approved"

    def test_readiness_without_rows(self):
        ready = onboarding_readiness({}, None, None)
        assert ready["has_buyer_profile"] is False
        assert ready["has_seller_profile"] is False
        assert ready["seller_status"] is None


# =============================================================================
# approved_seller_by_user_id
# =============================================================================

class TestApprovedSeller:

    def _seed(self, client, role="seller", status="approved", completed=True, safety=True):
        client.seed("users", {"id": "u1", "role": role, "seller_onboarding_completed": completed, "seller_safety_agreed": safety})
        client.seed("sellers", {"user_id": "u1", "status": status})

    def test_missing_user_id(self, client):
        assert approved_seller_by_user_id(client, None).reason == "no userId provided"

    def test_no_users_row(self, client):
        assert approved_seller_by_user_id(client, "u1").reason == "no public.users row"

    def test_no_sellers_row(self, client):
        client.seed("users", {"id": "u1", "role": "buyer"})
        result = approved_seller_by_user_id(client, "u1")
        assert result.reason == "no sellers row"
        assert result.role == "buyer"

    @pytest.mark.parametrize("kwargs,reason", [
        ({"role": "buyer"}, "role_not_seller"),
        ({"status": "pending"}, "status_not_approved"),
        ({"completed": None}, "seller_onboarding_incomplete"),
        ({"safety": False}, "seller_safety_not_agreed"),
    ])
    def test_failure_reasons(self, client, kwargs, reason):
        self._seed(client, **kwargs)
        result = approved_seller_by_user_id(client, "u1")
        assert not result.ok
        assert result.reason == reason

    def test_ready(self, client):
        self._seed(client)
        result = approved_seller_by_user_id(client, "u1")
        assert result.ok
        assert result.reason == "seller_access_ready"
        assert result.seller_row["user_id"] == "u1"

    def test_users_query_error_is_reported(self, client):
        client.failures["users.select"] = RuntimeError("boom")
        result = approved_seller_by_user_id(client, "u1")
        assert not result.ok
        assert result.reason == "users query error: boom"

    def test_sellers_query_error_is_reported(self, client):
        client.seed("users", {"id": "u1", "role": "seller"})
        client.failures["sellers.select"] = RuntimeError("down")
        assert approved_seller_by_user_id(client, "u1").reason == "sellers query error: down"


# =============================================================================
# Gate + wizard
# =============================================================================

class TestOnboardingGate:

    def test_super_admin_skips(self):
        assert resolve_onboarding_gate({"id": "u1", "app_metadata": {"role": "super_admin"}}, None) == "admin"

    def test_load_error_is_degraded(self):
        assert resolve_onboarding_gate({"id": "u1"}, None, "relation does not exist") == "degraded"

    def test_completed_from_metadata(self):
        user = {"id": "u1", "user_metadata": {"seller_onboarding_completed": True}}
        assert resolve_onboarding_gate(user, {"id": "u1"}) == "completed"

    def test_needs_safety_then_wizard(self):
        assert resolve_onboarding_gate({"id": "u1"}, {"id": "u1"}) == "needs_safety"
        assert resolve_onboarding_gate({"id": "u1"}, {"id": "u1", "seller_safety_agreed": True}) == "wizard"

    def test_is_admin_roles(self):
        assert is_admin({"role": "admin"})
        assert not is_admin({"role": "seller"})


class TestWizardSteps:

    def test_mark_step_keeps_canonical_order(self):
        meta = {"seller_onboarding_steps_completed": ["category"]}
        out = mark_step_complete(meta, "phone")
        assert out["seller_onboarding_steps_completed"] == ["phone", "category"]
        assert "phone" not in out["seller_onboarding_steps_remaining"]
        assert len(out["seller_onboarding_steps_remaining"]) == 7

    def test_unknown_step(self):
        with pytest.raises(OnboardingError):
            mark_step_complete({}, "selfie")

    def test_progress(self):
        assert step_progress({}) == (0, 9)
        assert all_steps_complete({"seller_onboarding_steps_completed": list(STEP_IDS)})

    def test_phone_validation(self):
        with pytest.raises(OnboardingError):
            step_fields("phone", {"number": "555-01"})
        fields = step_fields("phone", {"number": "(512) 555-0100"})
        assert fields["phone_verified"] is True

    def test_guidelines_need_every_box(self):
        with pytest.raises(OnboardingError):
            step_fields("guidelines", {"honor": True})
        fields = step_fields("guidelines", {k: True for k in ("honor", "counterfeit", "accurate", "ship", "minor")})
        assert fields["seller_guideline_no_counterfeit"] is True

    def test_channels_drop_unknown_values(self):
        assert step_fields("channels", {"channels": ["website", "tiktok"]}) == {"seller_sales_channels": ["website"]}

    def test_address_defaults_country(self):
        fields = step_fields("address", {"full_name": "Ann", "line1": "1 Main", "city": "Austin", "state": "TX", "zip": "78701"})
        assert fields["seller_return_country"] == "US"

    def test_address_reports_missing(self):
        with pytest.raises(OnboardingError, match="city"):
            step_fields("address", {"full_name": "Ann", "line1": "1 Main", "state": "TX", "zip": "78701"})

    def test_save_step_writes_metadata(self, client):
        meta = save_step(client, "u1", {}, "subcategory", {"subcategory": "Vintage NBA Cards"})
        assert meta["seller_subcategory"] == "Vintage NBA Cards"
        uid, attrs = client.auth.admin.updates[-1]
        assert uid == "u1"
        assert attrs["user_metadata"]["seller_onboarding_steps_completed"] == ["subcategory"]


class TestSubmitApplication:

    META = {
        "seller_onboarding_steps_completed": list(STEP_IDS),
        "seller_return_full_name": "Ann's Cards",
        "seller_return_city": "Austin",
        "seller_sales_channels": [],
        "phone_number": "5125550100",
    }

    def test_requires_every_step(self, client):
        with pytest.raises(OnboardingError):
            submit_seller_application(client, {"id": "u1"}, {})

    def test_payload_business_name_fallbacks(self):
        payload = build_seller_payload({"id": "u1", "email": "ann@example.com"}, {}, None)
        assert payload["business_name"] == "ann"
        assert payload["status"] == "pending"
        assert payload["sales_channels"] is None

    def test_submit_upserts_and_promotes(self, client):
        client.seed("users", {"id": "u1", "email": "ann@example.com"})
        seller = submit_seller_application(client, {"id": "u1", "email": "ann@example.com"}, self.META)
        assert seller["business_name"] == "Ann's Cards"
        assert client.rows("users")[0]["role"] == "seller"
        assert client.rows("users")[0]["seller_onboarding_completed"] is True
        assert client.auth.admin.updates[-1][1]["user_metadata"]["seller_application_status"] == "pending"

    def test_resubmit_updates_same_row(self, client):
        client.seed("users", {"id": "u1"})
        submit_seller_application(client, {"id": "u1"}, self.META)
        submit_seller_application(client, {"id": "u1"}, self.META)
        assert len(client.rows("sellers")) == 1

    def test_metadata_failure_is_not_blocking(self, client):
        client.seed("users", {"id": "u1"})
        client.auth.admin.error = RuntimeError("auth down")
        seller = submit_seller_application(client, {"id": "u1"}, self.META)
        assert seller["user_id"] == "u1"

    def test_upsert_failure_raises(self, client):
        client.failures["sellers.upsert"] = RuntimeError("constraint")
        with pytest.raises(OnboardingError, match="constraint"):
            submit_seller_application(client, {"id": "u1"}, self.META)

"""
Tests for services/fulfillment.py - batches, pickup verification and order healing.
"""

import random
from datetime import date

import pytest

from services.fulfillment import (
    FulfillmentError,
    batch_order_counts,
    batches_for_buyer,
    can_transition,
    complete_batch_pickup,
    find_or_create_batch,
    generate_batch_number,
    generate_completion_code,
    heal_completed_batch_orders,
    mark_batch_ready,
    update_batch_status,
    verify_pickup_code,
)

BATCH = {"buyer_id": "buyer-123456789", "seller_id": "seller-1", "show_id": "show-abcdefghij", "buyer_name": "Ann"}


def _batch_with_orders(client, status="pending", order_statuses=("paid", "paid")):
    batch, _ = find_or_create_batch(client, {**BATCH, "completion_code": "123456789"})
    if status != "pending":
        client.table("batches").update({"status": status}).eq("id", batch["id"]).execute()
    for i, s in enumerate(order_statuses):
        client.seed("orders", {"batch_id": batch["id"], "buyer_id": BATCH["buyer_id"], "status": s, "product_title": f"Item {i}"})
    return batch


class TestCodes:

    def test_completion_code_is_nine_digits(self):
        code = generate_completion_code(random.Random(7))
        assert len(code) == 9
        assert code.isdigit()

    def test_batch_number_format(self):
        assert generate_batch_number("show-abcdefghij", "buyer-123456789", date(2026, 5, 1)) == "BATCH-show-abc-buyer-12-20260501"

    def test_transitions(self):
        assert can_transition("pending", "ready")
        assert can_transition("ready", "picked_up")
        assert not can_transition("pending", "picked_up")
        assert not can_transition("completed", "cancelled")


class TestBatches:

    def test_find_or_create_reuses_open_batch(self, client):
        first, new1 = find_or_create_batch(client, BATCH)
        second, new2 = find_or_create_batch(client, BATCH)
        assert (new1, new2) == (True, False)
        assert first["id"] == second["id"]
        assert first["status"] == "pending"
        assert first["batch_number"].startswith("BATCH-show-abc-buyer-12-")

    def test_completed_batch_is_not_reused(self, client):
        first, _ = find_or_create_batch(client, BATCH)
        client.table("batches").update({"status": "completed"}).eq("id", first["id"]).execute()
        second, is_new = find_or_create_batch(client, BATCH)
        assert is_new
        assert second["id"] != first["id"]

    def test_buyer_batches_include_legacy_rows(self, client):
        client.seed("batches", {"buyer_id": "b1"}, {"buyer_user_id": "b1", "buyer_id": "legacy"}, {"buyer_id": "b2"})
        assert len(batches_for_buyer(client, "b1")) == 2

    def test_order_counts(self):
        counts = batch_order_counts([{"status": "paid"}, {"status": "picked_up"}, {"status": "paid"}])
        assert counts == {"pending": 2, "completed": 1}


class TestBatchStatus:

    def test_mark_ready(self, client):
        batch = _batch_with_orders(client)
        ready = mark_batch_ready(client, batch["id"], "seller-1")
        assert ready["status"] == "ready"
        assert ready["ready_at"]

    def test_ready_moves_open_orders(self, client):
        batch = _batch_with_orders(client, order_statuses=("paid", "cancelled"))
        mark_batch_ready(client, batch["id"], "seller-1")
        statuses = sorted(o["status"] for o in client.rows("orders"))
        assert statuses == ["cancelled", "ready"]
        assert next(o for o in client.rows("orders") if o["status"] == "ready")["ready_at"]

    def test_picked_up_moves_open_orders(self, client):
        batch = _batch_with_orders(client, order_statuses=("paid", "ready"))
        mark_batch_ready(client, batch["id"], "seller-1")
        client.table("orders").update({"status": "paid"}).eq("product_title", "Item 0").execute()

        update_batch_status(client, batch["id"], "seller-1", "picked_up")

        assert all(o["status"] == "picked_up" for o in client.rows("orders"))
        assert all(o["picked_up_at"] for o in client.rows("orders"))

    def test_cancel_leaves_orders_alone(self, client):
        batch = _batch_with_orders(client)
        update_batch_status(client, batch["id"], "seller-1", "cancelled")
        assert [o["status"] for o in client.rows("orders")] == ["paid", "paid"]

    def test_other_seller_is_unauthorized(self, client):
        batch = _batch_with_orders(client)
        with pytest.raises(FulfillmentError) as exc:
            mark_batch_ready(client, batch["id"], "seller-2")
        assert exc.value.kind == "UNAUTHORIZED"

    def test_admin_can_update_any_batch(self, client):
        batch = _batch_with_orders(client)
        assert update_batch_status(client, batch["id"], None, "cancelled", is_admin=True)["status"] == "cancelled"

    def test_invalid_transition(self, client):
        batch = _batch_with_orders(client)
        with pytest.raises(FulfillmentError) as exc:
            update_batch_status(client, batch["id"], "seller-1", "picked_up")
        assert exc.value.kind == "INVALID_TRANSITION"

    def test_missing_batch(self, client):
        with pytest.raises(FulfillmentError) as exc:
            mark_batch_ready(client, "nope", "seller-1")
        assert exc.value.kind == "BATCH_NOT_FOUND"


class TestPickup:

    def test_verify_returns_orders(self, client):
        _batch_with_orders(client)
        found = verify_pickup_code(client, " 123456789 ", "seller-1")
        assert len(found["orders"]) == 2

    @pytest.mark.parametrize("code,seller,kind", [
        ("123", "seller-1", "INVALID_CODE"),
        ("123456789", None, "UNAUTHORIZED"),
        ("999999999", "seller-1", "INVALID_CODE"),
        ("123456789", "seller-2", "INVALID_CODE"),
    ])
    def test_verify_failures(self, client, code, seller, kind):
        _batch_with_orders(client)
        with pytest.raises(FulfillmentError) as exc:
            verify_pickup_code(client, code, seller)
        assert exc.value.kind == kind

    def test_verify_completed_batch(self, client):
        _batch_with_orders(client, status="completed")
        with pytest.raises(FulfillmentError) as exc:
            verify_pickup_code(client, "123456789", "seller-1")
        assert exc.value.kind == "ALREADY_COMPLETED"

    def test_complete_pickup(self, client):
        batch = _batch_with_orders(client, order_statuses=("paid", "ready", "cancelled"))
        result = complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")

        assert result.batch["status"] == "completed"
        assert result.orders_updated == 2
        assert result.notification_sent
        statuses = sorted(o["status"] for o in client.rows("orders"))
        assert statuses == ["cancelled", "picked_up", "picked_up"]
        assert {n["type"] for n in client.rows("notifications")} == {"order_update", "review_request"}

    def test_notifications_are_not_duplicated(self, client):
        batch = _batch_with_orders(client)
        complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")
        client.table("batches").update({"status": "ready"}).eq("id", batch["id"]).execute()
        client.table("orders").update({"status": "paid"}).eq("batch_id", batch["id"]).execute()

        result = complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")
        assert not result.notification_sent
        assert len(client.rows("notifications")) == 2

    def test_notification_failure_does_not_block(self, client):
        batch = _batch_with_orders(client)
        client.failures["notifications.select"] = RuntimeError("rls")
        result = complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")
        assert result.batch["status"] == "completed"
        assert not result.notification_sent

    def test_complete_twice(self, client):
        batch = _batch_with_orders(client)
        complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")
        with pytest.raises(FulfillmentError) as exc:
            complete_batch_pickup(client, batch["id"], "seller-1", "s@example.com", "Card Shack")
        assert exc.value.kind == "ALREADY_COMPLETED"


class TestHealing:

    def test_heals_paid_orders_in_completed_batches(self, client):
        done = _batch_with_orders(client, status="completed", order_statuses=("paid", "picked_up"))
        client.seed("orders", {"batch_id": "open-batch", "status": "paid"})

        assert heal_completed_batch_orders(client, seller_id="seller-1") == 1
        healed = [o for o in client.rows("orders") if o["batch_id"] == done["id"]]
        assert all(o["status"] == "picked_up" for o in healed)
        assert any(o.get("picked_up_by") == "auto-sync" for o in healed)
        assert [o["status"] for o in client.rows("orders") if o["batch_id"] == "open-batch"] == ["paid"]

    def test_heal_by_buyer(self, client):
        _batch_with_orders(client, status="completed", order_statuses=("paid",))
        assert heal_completed_batch_orders(client, buyer_id=BATCH["buyer_id"]) == 1

    def test_needs_a_scope(self, client):
        assert heal_completed_batch_orders(client) == 0

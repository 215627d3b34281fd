"""
Tests for billing records, delivery proof and billing status updates.
"""

import pytest

from services.billing_service import (
    ensure_billing_record_sync,
    record_delivery_proof_sync,
    update_billing_status_sync,
)


@pytest.fixture
def placed_order(seed_client):
    seed_client.seed(
        "orders",
        {
            "id": "o1",
            "client_id": "c1",
            "order_number": 100010,
            "status": "pending",
            "total_value": 30,
            "scheduled_delivery_date": "2025-01-13",
        },
    )
    return seed_client


def order_row(fake_db, order_id="o1"):
    return next(row for row in fake_db.rows("orders") if row["id"] == order_id)


class TestEnsureBillingRecord:
    def test_created_once_and_charged_once(self, placed_order):
        order = order_row(placed_order)
        record, created = ensure_billing_record_sync(order)
        again, created_again = ensure_billing_record_sync(order)

        assert created and not created_again
        assert again["id"] == record["id"]
        assert record["delivery_date"] == "2025-01-13"
        assert len(placed_order.rows("billing_records")) == 1
        assert placed_order.rows("clients")[0]["authorized_amount"] == 70

    def test_balance_floors_at_zero(self, placed_order):
        placed_order.rows("clients")[0]["authorized_amount"] = 10
        ensure_billing_record_sync(order_row(placed_order))
        assert placed_order.rows("clients")[0]["authorized_amount"] == 0

    def test_null_balance_is_left_alone(self, placed_order):
        placed_order.rows("clients")[0]["authorized_amount"] = None
        ensure_billing_record_sync(order_row(placed_order))
        assert placed_order.rows("clients")[0]["authorized_amount"] is None


class TestDeliveryProof:
    def test_moves_order_to_billing_pending(self, placed_order, wednesday_morning):
        updated = record_delivery_proof_sync("o1", "https://cdn.example/proof.jpg", now=wednesday_morning)

        assert updated["status"] == "billing_pending"
        assert updated["actual_delivery_date"] == "2025-01-08"
        assert updated["delivery_proof_url"] == "https://cdn.example/proof.jpg"
        assert placed_order.rows("billing_records")[0]["order_id"] == "o1"

    def test_unknown_order(self, placed_order):
        with pytest.raises(ValueError):
            record_delivery_proof_sync("missing", "https://cdn.example/proof.jpg")


class TestBillingStatus:
    def test_successful_completes_order(self, placed_order):
        ensure_billing_record_sync(order_row(placed_order))
        rows = update_billing_status_sync(["o1"], "billing_successful")

        assert [row["id"] for row in rows] == ["o1"]
        assert order_row(placed_order)["status"] == "completed"
        assert placed_order.rows("billing_records")[0]["status"] == "success"

    def test_failed_keeps_order_status(self, placed_order):
        ensure_billing_record_sync(order_row(placed_order))
        update_billing_status_sync(["o1"], "billing_failed")

        assert order_row(placed_order)["status"] == "pending"
        assert placed_order.rows("billing_records")[0]["status"] == "failed"

    def test_pending_resets(self, placed_order):
        ensure_billing_record_sync(order_row(placed_order))
        update_billing_status_sync(["o1"], "billing_successful")
        update_billing_status_sync(["o1"], "billing_pending")

        assert order_row(placed_order)["status"] == "billing_pending"
        assert placed_order.rows("billing_records")[0]["status"] == "pending"

    def test_unsupported_status(self, placed_order):
        with pytest.raises(ValueError):
            update_billing_status_sync(["o1"], "paid")

    def test_no_orders(self, placed_order):
        assert update_billing_status_sync([], "billing_successful") == []

"""
Tests for projecting drafts onto upcoming orders.
"""

import asyncio
from datetime import datetime

import pytest

from services.date_policy import app_timezone
from services.order_sync_service import (
    OrderValidationError,
    resync_all_clients_sync,
    sync_client_order,
    sync_current_order_to_upcoming,
)
from services.reference_service import load_reference_data_sync

TWO_DAY_ORDER = {
    "serviceType": "Food",
    "deliveryDayOrders": {
        "Monday": {"vendorSelections": [{"vendorId": "v-mon", "items": {"m1": 2}}]},
        "Wednesday": {"vendorSelections": [{"vendorId": "v-wed", "items": {"m3": 1}}]},
    },
}


def monday_only(items):
    return {
        "serviceType": "Food",
        "deliveryDayOrders": {
            "Monday": {"vendorSelections": [{"vendorId": "v-mon", "items": items}]},
        },
    }


def upcoming_by_day(fake_db):
    return {row["delivery_day"]: row for row in fake_db.rows("upcoming_orders")}


class TestSyncCreatesUpcomingOrders:
    def test_one_upcoming_order_per_day(self, seed_client, reference, wednesday_morning):
        result = sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)

        rows = upcoming_by_day(seed_client)
        assert sorted(rows) == ["Monday", "Wednesday"]
        assert sorted(result.synced_days) == ["Monday", "Wednesday"]
        assert rows["Monday"]["take_effect_date"] == "2025-01-12"
        assert rows["Monday"]["status"] == "scheduled"
        assert rows["Monday"]["total_value"] == 20
        assert rows["Wednesday"]["total_value"] == 7
        assert sorted(row["order_number"] for row in rows.values()) == [100000, 100001]
        assert len(seed_client.rows("upcoming_order_vendor_selections")) == 2
        assert len(seed_client.rows("upcoming_order_items")) == 2

    def test_draft_is_saved_on_client(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)
        client = seed_client.rows("clients")[0]
        assert client["active_order"]["serviceType"] == "Food"
        assert set(client["active_order"]["deliveryDayOrders"]) == {"Monday", "Wednesday"}

    def test_skip_client_update(self, seed_client, reference, wednesday_morning):
        sync_client_order(
            "c1", TWO_DAY_ORDER, reference, skip_client_update=True, now=wednesday_morning
        )
        assert seed_client.rows("clients")[0]["active_order"] is None
        assert len(seed_client.rows("upcoming_orders")) == 2

    def test_order_number_continues_after_placed_orders(self, seed_client, reference, wednesday_morning):
        seed_client.seed("orders", {"id": "o-old", "client_id": "c1", "order_number": 100050})
        sync_client_order("c1", monday_only({"m1": 1}), reference, now=wednesday_morning)
        assert seed_client.rows("upcoming_orders")[0]["order_number"] == 100051

    def test_undeliverable_day_is_skipped(self, seed_client, reference, wednesday_morning):
        config = {
            "serviceType": "Food",
            "deliveryDayOrders": {
                "Wednesday": {"vendorSelections": [{"vendorId": "v-mon", "items": {"m1": 1}}]},
            },
        }
        result = sync_client_order("c1", config, reference, now=wednesday_morning)
        assert result.skipped_days == ["Wednesday"]
        assert seed_client.rows("upcoming_orders") == []


class TestResync:
    def test_resync_is_idempotent(self, seed_client, reference, wednesday_morning):
        """A second sync of the same draft rewrites nothing."""
        sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)
        first_parents = {row["id"]: row["order_number"] for row in seed_client.rows("upcoming_orders")}
        first_items = sorted(row["id"] for row in seed_client.rows("upcoming_order_items"))

        sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)

        assert {
            row["id"]: row["order_number"] for row in seed_client.rows("upcoming_orders")
        } == first_parents
        assert sorted(row["id"] for row in seed_client.rows("upcoming_order_items")) == first_items
        assert len(seed_client.rows("upcoming_order_vendor_selections")) == 2

    def test_quantity_change_updates_in_place(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)
        original = seed_client.rows("upcoming_order_items")[0]

        sync_client_order("c1", monday_only({"m1": 3, "m2": 1}), reference, now=wednesday_morning)

        items = {row["menu_item_id"]: row for row in seed_client.rows("upcoming_order_items")}
        assert items["m1"]["id"] == original["id"]
        assert items["m1"]["quantity"] == 3
        assert items["m2"]["quantity"] == 1
        assert seed_client.rows("upcoming_orders")[0]["total_value"] == 34.5

    def test_removed_item_is_deleted(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2, "m2": 1}), reference, now=wednesday_morning)
        sync_client_order("c1", monday_only({"m1": 2, "m2": 0}), reference, now=wednesday_morning)
        assert [row["menu_item_id"] for row in seed_client.rows("upcoming_order_items")] == ["m1"]

    def test_dropped_day_is_deleted_with_children(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)
        wednesday_id = upcoming_by_day(seed_client)["Wednesday"]["id"]

        result = sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)

        assert result.removed_days == ["Wednesday"]
        assert list(upcoming_by_day(seed_client)) == ["Monday"]
        assert not [
            row
            for row in seed_client.rows("upcoming_order_items")
            if row["upcoming_order_id"] == wednesday_id
        ]

    def test_service_type_change_replaces_order(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)
        old_id = seed_client.rows("upcoming_orders")[0]["id"]
        custom = {
            "serviceType": "Custom",
            "vendorId": "v-mon",
            "deliveryDay": "Monday",
            "customItems": [{"name": "Cake", "price": 15, "quantity": 2}],
        }
        sync_client_order("c1", custom, reference, now=wednesday_morning)

        rows = seed_client.rows("upcoming_orders")
        assert len(rows) == 1
        assert rows[0]["id"] != old_id
        assert rows[0]["service_type"] == "Custom"
        assert rows[0]["total_value"] == 30

    def test_boxes_diffed_by_box_number(self, seed_client, reference, wednesday_morning):
        two_boxes = {
            "serviceType": "Boxes",
            "boxes": [
                {"boxNumber": 1, "boxTypeId": "bt1"},
                {"boxNumber": 2, "boxTypeId": "bt1"},
            ],
        }
        sync_client_order("c1", two_boxes, reference, now=wednesday_morning)
        first_box = seed_client.rows("upcoming_order_box_selections")[0]["id"]

        two_boxes["boxes"] = two_boxes["boxes"][:1]
        sync_client_order("c1", two_boxes, reference, now=wednesday_morning)

        boxes = seed_client.rows("upcoming_order_box_selections")
        assert [row["id"] for row in boxes] == [first_box]
        assert seed_client.rows("upcoming_orders")[0]["total_value"] == 40

    def test_box_without_vendor_is_parked(self, seed_client, reference, wednesday_morning):
        config = {"serviceType": "Boxes", "boxTypeId": "bt2", "boxQuantity": 1}
        sync_client_order("c1", config, reference, now=wednesday_morning)
        assert seed_client.rows("upcoming_orders")[0]["take_effect_date"] == "2099-12-31"

    def test_clearing_the_draft(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", TWO_DAY_ORDER, reference, now=wednesday_morning)
        result = sync_client_order("c1", None, reference, now=wednesday_morning)

        assert sorted(result.removed_days) == ["Monday", "Wednesday"]
        assert seed_client.rows("upcoming_orders") == []
        assert seed_client.rows("upcoming_order_items") == []
        assert seed_client.rows("clients")[0]["active_order"] is None

    def test_resync_all_clients(self, seed_client, wednesday_morning):
        seed_client.seed(
            "clients",
            {
                "id": "c2",
                "full_name": "Ben Ortiz",
                "service_type": "Food",
                "active_order": monday_only({"m1": 1}),
            },
        )
        results = resync_all_clients_sync(now=wednesday_morning)
        assert [result.client_id for result in results] == ["c2"]
        assert seed_client.rows("upcoming_orders")[0]["client_id"] == "c2"


class TestAsyncEntryPoint:
    def test_unknown_client(self, seed_client):
        with pytest.raises(ValueError):
            asyncio.run(sync_current_order_to_upcoming("nobody", TWO_DAY_ORDER))

    def test_syncs_known_client(self, seed_client, wednesday_morning):
        result = asyncio.run(
            sync_current_order_to_upcoming("c1", TWO_DAY_ORDER, now=wednesday_morning)
        )
        assert len(result.upcoming_order_ids) == 2

    def test_boxes_within_authorization(self, seed_client, wednesday_morning):
        config = {"serviceType": "Boxes", "boxTypeId": "bt1", "boxQuantity": 2}
        result = asyncio.run(sync_current_order_to_upcoming("c1", config, now=wednesday_morning))
        assert result.synced_days == ["Tuesday"]
        assert seed_client.rows("upcoming_orders")[0]["total_value"] == 80

    def test_boxes_over_authorization(self, seed_client):
        config = {"serviceType": "Boxes", "boxTypeId": "bt1", "boxQuantity": 3}
        with pytest.raises(OrderValidationError):
            asyncio.run(sync_current_order_to_upcoming("c1", config))


class TestLinePrices:
    def test_unit_value_saved_on_items(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)
        [item] = seed_client.rows("upcoming_order_items")
        assert item["unit_value"] == 10
        assert item["total_value"] == 20

    def test_price_change_reaches_upcoming_item(self, seed_client, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), load_reference_data_sync(), now=wednesday_morning)
        next(row for row in seed_client.rows("menu_items") if row["id"] == "m1")["value"] = 12

        sync_client_order("c1", monday_only({"m1": 2}), load_reference_data_sync(), now=wednesday_morning)

        [item] = seed_client.rows("upcoming_order_items")
        assert item["unit_value"] == 12
        assert seed_client.rows("upcoming_orders")[0]["total_value"] == 24

    def test_infinite_quantity_is_ignored(self, seed_client, reference, wednesday_morning):
        result = sync_client_order(
            "c1", monday_only({"m1": float("inf")}), reference, now=wednesday_morning
        )
        assert result.synced_days == []
        assert seed_client.rows("upcoming_orders") == []


class TestRepeatedCustomNames:
    CAKES = {
        "serviceType": "Custom",
        "vendorId": "v-mon",
        "deliveryDay": "Monday",
        "customItems": [
            {"name": "Cake", "price": 15, "quantity": 2},
            {"name": "Cake", "price": 5, "quantity": 1},
            {"price": 3},
            {"price": 4},
        ],
    }

    def test_lines_with_same_name_are_kept(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", self.CAKES, reference, now=wednesday_morning)
        items = seed_client.rows("upcoming_order_items")
        assert len(items) == 4
        assert seed_client.rows("upcoming_orders")[0]["total_value"] == 42

    def test_resync_keeps_row_ids(self, seed_client, reference, wednesday_morning, monkeypatch):
        sync_client_order("c1", self.CAKES, reference, now=wednesday_morning)
        first_ids = sorted(row["id"] for row in seed_client.rows("upcoming_order_items"))

        from services import order_sync_service

        def no_insert(*_args, **_kwargs):
            raise AssertionError("unchanged custom lines were re-inserted")

        monkeypatch.setattr(order_sync_service, "insert_item", no_insert)
        sync_client_order("c1", self.CAKES, reference, now=wednesday_morning)

        assert sorted(row["id"] for row in seed_client.rows("upcoming_order_items")) == first_ids


class TestDueOrdersAreLeftForPromotion:
    def test_resync_after_take_effect_keeps_due_row(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)
        due = seed_client.rows("upcoming_orders")[0]
        just_after_midnight = datetime(2025, 1, 12, 0, 30, tzinfo=app_timezone())

        result = sync_client_order("c1", monday_only({"m1": 3}), reference, now=just_after_midnight)

        assert result.due_days == ["Monday"]
        rows = {row["take_effect_date"]: row for row in seed_client.rows("upcoming_orders")}
        assert sorted(rows) == ["2025-01-12", "2025-01-19"]
        assert rows["2025-01-12"]["id"] == due["id"]
        assert rows["2025-01-12"]["total_value"] == 20
        assert rows["2025-01-19"]["total_value"] == 30

    def test_clearing_draft_keeps_due_row(self, seed_client, reference, wednesday_morning):
        sync_client_order("c1", monday_only({"m1": 2}), reference, now=wednesday_morning)
        just_after_midnight = datetime(2025, 1, 12, 0, 30, tzinfo=app_timezone())

        result = sync_client_order("c1", None, reference, now=just_after_midnight)

        assert result.removed_days == []
        assert len(seed_client.rows("upcoming_orders")) == 1
        assert len(seed_client.rows("upcoming_order_items")) == 1

"""Tests for status computation and the expiry monitor."""

import random
from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import NOW, OWNER
from pantry_tracker.exceptions import ValidationError
from pantry_tracker.expiry_monitor import (
    DEFAULT_EXPIRING_WINDOW,
    ExpiryMonitor,
    compute_status,
    days_to_expiry,
)
from pantry_tracker.models import InventoryStatus, Priority, StorageLocation, WasteReason


class TestComputeStatus:
    """Tests for the status precedence rules."""

    def test_fresh_item(self):
        """500 g, threshold 100 g, ten days left."""
        status = compute_status(500, NOW + timedelta(days=10), 100, NOW)
        assert status == InventoryStatus.FRESH

    def test_expiring_item(self):
        """Same item with two days left."""
        status = compute_status(500, NOW + timedelta(days=2), 100, NOW)
        assert status == InventoryStatus.EXPIRING

    def test_window_boundary_is_expiring(self):
        status = compute_status(1, NOW + DEFAULT_EXPIRING_WINDOW, None, NOW)
        assert status == InventoryStatus.EXPIRING

    def test_expiry_instant_is_not_expired(self):
        assert compute_status(1, NOW, None, NOW) == InventoryStatus.EXPIRING
        later = NOW + timedelta(seconds=1)
        assert compute_status(1, NOW, None, later) == InventoryStatus.EXPIRED

    def test_out_of_stock_wins(self):
        status = compute_status(0, NOW - timedelta(days=5), 100, NOW)
        assert status == InventoryStatus.OUT_OF_STOCK

    def test_expired_beats_low_stock(self):
        status = compute_status(10, NOW - timedelta(days=1), 100, NOW)
        assert status == InventoryStatus.EXPIRED

    def test_low_stock_without_expiry(self):
        assert compute_status(10, None, 100, NOW) == InventoryStatus.LOW_STOCK
        assert compute_status(100, None, 100, NOW) == InventoryStatus.FRESH

    def test_custom_window(self):
        expiry = NOW + timedelta(days=5)
        assert compute_status(1, expiry, None, NOW) == InventoryStatus.FRESH
        status = compute_status(1, expiry, None, NOW, expiring_window=timedelta(days=7))
        assert status == InventoryStatus.EXPIRING

    def test_random_combinations_follow_precedence(self):
        """Generated inputs always land on the first matching rule."""
        rng = random.Random(20260301)
        window = DEFAULT_EXPIRING_WINDOW

        for _ in range(500):
            quantity = rng.choice([0, 0.5, 1, 50, 99.9, 100, 500])
            threshold = rng.choice([None, 0, 1, 100])
            expiry = rng.choice(
                [None, NOW + timedelta(hours=rng.randint(-24 * 10, 24 * 10))]
            )

            status = compute_status(quantity, expiry, threshold, NOW, window)

            if quantity <= 0:
                expected = InventoryStatus.OUT_OF_STOCK
            elif expiry is not None and NOW > expiry:
                expected = InventoryStatus.EXPIRED
            elif expiry is not None and expiry - NOW <= window:
                expected = InventoryStatus.EXPIRING
            elif threshold is not None and quantity < threshold:
                expected = InventoryStatus.LOW_STOCK
            else:
                expected = InventoryStatus.FRESH
            assert status == expected, (quantity, threshold, expiry)


class TestDaysToExpiry:
    def test_rounds_up(self):
        assert days_to_expiry(NOW + timedelta(hours=30), NOW) == 2
        assert days_to_expiry(NOW + timedelta(days=3), NOW) == 3

    def test_negative_once_expired(self):
        assert days_to_expiry(NOW - timedelta(days=2), NOW) == -2


class TestUpdateExpiryStatuses:
    """Tests for persisted status sweeps."""

    def test_sweep_persists_changes(self, monitor, add_item, store, clock):
        item = add_item(days=5)
        assert item.status == InventoryStatus.FRESH

        clock.advance(days=3)
        assert monitor.update_expiry_statuses(OWNER) == 1
        assert store.get_item(item.id).status == InventoryStatus.EXPIRING

    def test_second_sweep_changes_nothing(self, monitor, add_item, clock):
        add_item(days=1)
        add_item("rice", days=4)
        add_item("onion", quantity=2, unit="pcs")

        clock.advance(days=2)
        assert monitor.update_expiry_statuses(OWNER) == 2
        assert monitor.update_expiry_statuses(OWNER) == 0

    def test_sweep_is_per_owner(self, monitor, add_item, clock):
        add_item(days=1)
        add_item(days=1, owner="bob")

        clock.advance(days=2)
        assert monitor.update_expiry_statuses(OWNER) == 1
        assert monitor.update_all_expiry_statuses() == 1

    def test_sweep_skips_removed_items(self, monitor, tracker, add_item, clock):
        item = add_item(days=1)
        tracker.delete_inventory_item(item.id)

        clock.advance(days=2)
        assert monitor.update_expiry_statuses(OWNER) == 0


class TestExpiryAlerts:
    """Tests for expiry alerts."""

    def test_partitions_and_orders(self, monitor, add_item):
        later = add_item("rice", days=3, purchase_price=3.0, quantity=1000)
        sooner = add_item("tomato", days=1)
        gone = add_item("milk", quantity=1, unit="l", days=-1, purchase_price=2.0)
        add_item("onion", quantity=3, unit="pcs", days=20)
        add_item("chicken")

        alerts = monitor.get_expiry_alerts(OWNER)

        assert [a.item_id for a in alerts.expiring_items] == [sooner.id, later.id]
        assert [a.item_id for a in alerts.expired_items] == [gone.id]
        assert alerts.expired_items[0].days_to_expiry == -1
        assert alerts.expiring_items[0].food_name == "Tomato"
        assert alerts.total_expiring_value == 3.0
        assert alerts.total_expired_value == 2.0

    def test_empty(self, monitor):
        alerts = monitor.get_expiry_alerts(OWNER)
        assert alerts.expiring_items == []
        assert alerts.expired_items == []


class TestHandleExpiredItems:
    """Tests for writing items off as waste."""

    def test_records_full_quantity_and_removes(self, monitor, tracker, add_item, store):
        item = add_item(quantity=400, days=-2, purchase_price=2.0)

        result = monitor.handle_expired_items(OWNER, [item.id])

        assert result.processed_ids == [item.id]
        assert result.failed_ids == []
        [record] = result.waste_records
        assert record.wasted_quantity == 400
        assert record.reason == WasteReason.EXPIRED
        assert record.value == 2.0
        assert store.list_waste_records(OWNER) == [record]
        assert tracker.get_inventory_items(OWNER) == []
        assert store.get_item(item.id).is_deleted

    def test_caller_supplied_reason(self, monitor, add_item):
        item = add_item()
        result = monitor.handle_expired_items(
            OWNER, [str(item.id)], reason=WasteReason.SPOILED, notes="mould"
        )
        assert result.waste_records[0].reason == WasteReason.SPOILED
        assert result.waste_records[0].notes == "mould"

    def test_bad_ids_are_reported_not_raised(self, monitor, add_item):
        mine = add_item()
        theirs = add_item(owner="bob")
        missing = uuid4()

        result = monitor.handle_expired_items(
            OWNER, [mine.id, theirs.id, missing, "not-a-uuid"]
        )

        assert result.processed_ids == [mine.id]
        assert result.failed_ids == [str(theirs.id), str(missing), "not-a-uuid"]

    def test_already_removed_item_fails(self, monitor, add_item):
        item = add_item()
        monitor.handle_expired_items(OWNER, [item.id])
        result = monitor.handle_expired_items(OWNER, [item.id])
        assert result.processed_count == 0
        assert result.failed_ids == [str(item.id)]


class TestExpiryNotifications:
    """Tests for notification payloads."""

    def test_expired_and_expiring_payloads(self, monitor, add_item, outbox):
        add_item("milk", quantity=1, unit="l", days=-1)
        add_item("tomato", days=2)
        add_item("rice", days=1)

        payloads = monitor.generate_expiry_notifications(OWNER)

        expired, expiring = payloads
        assert expired.kind == "expired"
        assert expired.priority == Priority.HIGH
        assert expired.title == "1 item has expired"
        assert "• Milk (1 l) - -1 days" in expired.message
        assert expiring.kind == "expiring"
        assert expiring.priority == Priority.MEDIUM
        assert expiring.title == "2 items expiring soon"
        assert expiring.metadata["item_count"] == 2
        assert [i["food_name"] for i in expiring.metadata["items"]] == ["Rice", "Tomato"]
        assert expiring.message.endswith("Deal with them soon to avoid waste.")
        assert outbox.pending(OWNER) == payloads

    def test_message_truncates_long_lists(self, monitor, add_item):
        for _ in range(7):
            add_item(days=1)

        [payload] = monitor.generate_expiry_notifications(OWNER)

        assert payload.message.count("•") == 5
        assert "... and 2 more" in payload.message
        assert payload.metadata["item_count"] == 7

    def test_nothing_to_report(self, monitor, add_item, outbox):
        add_item(days=30)
        assert monitor.generate_expiry_notifications(OWNER) == []
        assert outbox.pending() == []

    def test_without_notification_service(self, store, add_item, clock):
        add_item(days=1)
        monitor = ExpiryMonitor(store, clock=clock)
        assert len(monitor.generate_expiry_notifications(OWNER)) == 1
        assert store.load_notifications() == []


class TestExpiryAnalysis:
    """Tests for expiry analysis."""

    def test_counts_and_advice(self, monitor, add_item):
        add_item("milk", quantity=1, unit="l", days=-1, storage_location=StorageLocation.FRIDGE)
        add_item("rice", quantity=1000, days=2)
        add_item("onion", quantity=4, unit="pcs", days=30)

        analysis = monitor.get_expiry_analysis(OWNER)

        assert analysis.total_items == 3
        assert analysis.fresh_count == 1
        assert analysis.expiring_count == 1
        assert analysis.expired_count == 1
        assert analysis.expiring_window_days == 3
        assert "Discard 1 expired item to avoid health risks" in analysis.recommendations
        assert "1 item expiring within 3 days: use them first" in analysis.recommendations
        assert "Check the fridge is set below 4°C" in analysis.recommendations
        assert any("pantry" in r for r in analysis.recommendations)

    @pytest.mark.parametrize("days", [10, None])
    def test_no_advice_when_all_fresh(self, monitor, add_item, days):
        add_item(days=days)
        assert monitor.get_expiry_analysis(OWNER).recommendations == []


class TestExpiryTrends:
    """Tests for daily waste history."""

    @pytest.fixture
    def wasted(self, monitor, add_item, clock):
        """Two items expired yesterday, one spoiled today."""
        for food_id in ("onion", "rice", "chicken"):
            add_item(food_id, days=30)
        milk = add_item("milk", quantity=1, unit="l", days=-1, purchase_price=2.0)
        tomato = add_item("tomato", days=-2, purchase_price=3.0)
        monitor.handle_expired_items(OWNER, [milk.id, tomato.id])

        clock.advance(days=1)
        spoiled = add_item("tomato", purchase_price=1.0)
        monitor.handle_expired_items(OWNER, [spoiled.id], reason=WasteReason.SPOILED)

    def test_daily_counts(self, monitor, wasted):
        trends = monitor.get_expiry_trends(OWNER, days=7)

        assert trends.days == 7
        assert [d.day for d in trends.daily_expired][-1] == NOW.date() + timedelta(days=1)
        assert len(trends.daily_wasted) == 7
        assert [d.count for d in trends.daily_expired] == [0, 0, 0, 0, 0, 2, 0]
        assert [d.count for d in trends.daily_wasted] == [0, 0, 0, 0, 0, 2, 1]

    def test_top_categories_and_rate(self, monitor, wasted):
        trends = monitor.get_expiry_trends(OWNER)

        assert [(c.category, c.count, c.value) for c in trends.top_waste_categories] == [
            ("Vegetables", 2, 4.0),
            ("Dairy", 1, 2.0),
        ]
        # three waste events against three items still held
        assert trends.waste_rate == 100.0

    def test_window_excludes_older_waste(self, monitor, wasted):
        trends = monitor.get_expiry_trends(OWNER, days=1)

        assert [(d.day, d.count) for d in trends.daily_wasted] == [
            (NOW.date() + timedelta(days=1), 1)
        ]
        assert trends.daily_expired[0].count == 0
        assert [c.category for c in trends.top_waste_categories] == ["Vegetables"]

    def test_empty_history(self, monitor):
        trends = monitor.get_expiry_trends(OWNER, days=3)

        assert all(d.count == 0 for d in trends.daily_wasted)
        assert trends.top_waste_categories == []
        assert trends.waste_rate == 0.0

    def test_rejects_non_positive_days(self, monitor):
        with pytest.raises(ValidationError):
            monitor.get_expiry_trends(OWNER, days=0)

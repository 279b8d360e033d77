"""Tests for usage and waste analytics."""

from datetime import timedelta

import pytest

from conftest import NOW, OWNER
from pantry_tracker.exceptions import ValidationError
from pantry_tracker.inventory_analyzer import InventoryAnalyzer
from pantry_tracker.models import Priority, RecommendationType, WasteReason


@pytest.fixture
def history(tracker, monitor, add_item):
    """600 g rice used, 500 g tomato thrown away."""
    rice = add_item("rice", quantity=1000, purchase_price=4.0)
    tomato = add_item("tomato", quantity=500, purchase_price=2.0, days=-1)
    tracker.use_inventory(rice.id, OWNER, 600)
    monitor.handle_expired_items(OWNER, [tomato.id])
    return rice, tomato


class TestInventoryAnalysis:
    """Tests for the full analysis report."""

    def test_summary(self, analyzer, history):
        analysis = analyzer.get_inventory_analysis(OWNER)
        summary = analysis.summary

        assert analysis.window_days == 30
        assert analysis.end_date == NOW
        assert analysis.start_date == NOW - timedelta(days=30)
        assert summary.total_items == 1
        assert summary.total_value == 1.6
        assert summary.used_items == 1
        assert summary.wasted_items == 1
        assert summary.used_quantity == 600
        assert summary.wasted_quantity == 500
        assert summary.waste_rate == 45.5
        assert summary.usage_rate == 54.5

    def test_categories_include_removed_items(self, analyzer, history):
        grains, vegetables = analyzer.get_inventory_analysis(OWNER).category_analysis

        assert grains.category == "Grains"
        assert grains.item_count == 1
        assert grains.used_quantity == 600
        assert grains.efficiency == 100.0
        assert vegetables.category == "Vegetables"
        assert vegetables.item_count == 0
        assert vegetables.wasted_quantity == 500
        assert vegetables.waste_value == 2.0
        assert vegetables.waste_rate == 100.0

    def test_usage_patterns(self, analyzer, history, tracker):
        rice, _ = history
        tracker.use_inventory(rice.id, OWNER, 100)

        patterns = analyzer.get_inventory_analysis(OWNER).usage_patterns

        assert patterns[0].food_id == "rice"
        assert patterns[0].food_name == "Rice"
        assert patterns[0].usage_frequency == 2
        assert patterns[0].average_usage == 350
        assert patterns[1].food_id == "tomato"
        assert patterns[1].waste_frequency == 1
        assert patterns[1].efficiency == 0.0

    def test_waste_breakdowns(self, analyzer, history):
        waste = analyzer.get_inventory_analysis(OWNER).waste_analysis

        assert waste.total_waste_value == 2.0
        [reason] = waste.by_reason
        assert (reason.key, reason.count, reason.value, reason.percentage) == (
            "expired",
            1,
            2.0,
            100.0,
        )
        assert waste.top_wasted_items[0].food_name == "Tomato"

    def test_breakdown_falls_back_to_counts(self, analyzer, monitor, add_item):
        items = [add_item(), add_item(), add_item("onion", quantity=2, unit="pcs")]
        monitor.handle_expired_items(OWNER, [items[0].id, items[1].id])
        monitor.handle_expired_items(OWNER, [items[2].id], reason=WasteReason.SPOILED)

        by_reason = analyzer.get_inventory_analysis(OWNER).waste_analysis.by_reason

        assert [(b.key, b.percentage) for b in by_reason] == [("expired", 66.7), ("spoiled", 33.3)]

    def test_window_excludes_old_history(self, analyzer, tracker, add_item, clock):
        clock.now = NOW - timedelta(days=40)
        rice = add_item("rice", quantity=1000)
        tracker.use_inventory(rice.id, OWNER, 200)
        clock.now = NOW

        assert analyzer.get_inventory_analysis(OWNER).summary.used_items == 0
        assert analyzer.get_inventory_analysis(OWNER, window_days=60).summary.used_items == 1

    def test_zero_day_window_is_kept(self, analyzer, tracker, add_item, clock):
        rice = add_item("rice", quantity=1000)
        clock.advance(hours=2)
        tracker.use_inventory(rice.id, OWNER, 200)
        clock.advance(hours=1)

        analysis = analyzer.get_inventory_analysis(OWNER, window_days=0)

        assert analysis.window_days == 0
        assert analysis.start_date == analysis.end_date
        assert analysis.summary.used_items == 0

    def test_recommendations(self, analyzer, history, add_item):
        add_item("onion", quantity=3, unit="pcs", days=2)
        add_item("milk", quantity=1, unit="l", days=-2)

        recommendations = analyzer.get_inventory_analysis(OWNER).recommendations
        kinds = [r.type for r in recommendations]

        first = recommendations[0]
        assert first.type == RecommendationType.WASTE_REDUCTION
        assert first.priority == Priority.HIGH
        assert first.potential_savings == 1.0
        assert RecommendationType.PURCHASE in kinds
        assert RecommendationType.USAGE in kinds
        assert RecommendationType.STORAGE in kinds

    def test_repeated_waste_recommendation(self, analyzer, monitor, add_item, tracker):
        rice = add_item("rice", quantity=10000)
        tracker.use_inventory(rice.id, OWNER, 9000)
        for _ in range(2):
            item = add_item(quantity=100)
            monitor.handle_expired_items(OWNER, [item.id])

        titles = [r.title for r in analyzer.get_inventory_analysis(OWNER).recommendations]

        assert "Reduce restock quantity of Tomato" in titles

    def test_quiet_history_has_no_recommendations(self, analyzer, tracker, add_item):
        rice = add_item("rice", quantity=1000)
        tracker.use_inventory(rice.id, OWNER, 100)
        assert analyzer.get_inventory_analysis(OWNER).recommendations == []


class TestPurchaseSuggestions:
    """Tests for restock suggestions."""

    def test_priorities_and_quantities(self, analyzer, tracker, add_item):
        onion = add_item("onion", quantity=4, unit="pcs", min_stock_threshold=2)
        tracker.use_inventory(onion.id, OWNER, 4)
        add_item("milk", quantity=1, unit="l", min_stock_threshold=2, purchase_price=2.0)
        rice = add_item("rice", quantity=1000)
        tracker.use_inventory(rice.id, OWNER, 900)
        add_item("chicken", quantity=500)

        onion_s, milk_s, rice_s = analyzer.generate_purchase_suggestions(OWNER)

        assert onion_s.food_id == "onion"
        assert onion_s.priority == Priority.HIGH
        assert onion_s.current_stock == 0
        assert onion_s.suggested_quantity == 1.87
        assert onion_s.estimated_cost is None

        assert milk_s.priority == Priority.MEDIUM
        assert milk_s.suggested_quantity == 3.0
        assert milk_s.reason == "Below minimum stock"
        assert milk_s.estimated_cost == 6.0

        assert rice_s.priority == Priority.LOW
        assert rice_s.current_stock == 100
        assert rice_s.suggested_quantity == 320
        assert rice_s.daily_usage == 30

    def test_out_of_stock_without_history_uses_original(self, analyzer, store, add_item):
        item = add_item("chicken", quantity=800)
        store.update_item(item.model_copy(update={"quantity": 0.0}), expected_quantity=800)

        [suggestion] = analyzer.generate_purchase_suggestions(OWNER)

        assert suggestion.priority == Priority.HIGH
        assert suggestion.suggested_quantity == 800
        assert suggestion.reason == "Out of stock"

    def test_capped(self, store, catalog, clock, add_item):
        for food in ("onion", "milk", "rice"):
            add_item(food, quantity=1, min_stock_threshold=5)
        analyzer = InventoryAnalyzer(store, food_catalog=catalog, clock=clock, max_suggestions=2)
        assert len(analyzer.generate_purchase_suggestions(OWNER)) == 2


class TestInventoryEfficiency:
    """Tests for efficiency scoring."""

    def test_empty_inventory(self, analyzer):
        score = analyzer.calculate_inventory_efficiency(OWNER)

        assert score.usage_efficiency == 0
        assert score.waste_reduction == 100
        assert score.storage_optimization == 100
        assert score.purchase_planning == 100
        assert score.overall_score == 70
        assert "Ingredient usage is low" in score.weaknesses
        assert "Food waste is well controlled" in score.strengths

    def test_everything_used(self, analyzer, tracker, add_item):
        rice = add_item("rice", quantity=1000)
        tracker.use_inventory(rice.id, OWNER, 1000)

        score = analyzer.calculate_inventory_efficiency(OWNER)

        assert score.usage_efficiency == 100
        assert score.purchase_planning == 85
        assert score.overall_score == 97
        assert score.weaknesses == []

    def test_expired_stock_hurts_storage(self, analyzer, add_item):
        add_item(days=-1)
        add_item("rice", days=1)
        assert analyzer.calculate_inventory_efficiency(OWNER).storage_optimization == 85


class TestInventoryTrends:
    """Tests for daily inventory, usage and waste series."""

    @pytest.fixture
    def timeline(self, tracker, monitor, add_item, clock):
        clock.now = NOW - timedelta(days=2)
        rice = add_item("rice", quantity=1000, purchase_price=4.0)
        tomato = add_item("tomato", quantity=500, purchase_price=2.0, days=1)
        clock.now = NOW - timedelta(days=1)
        tracker.use_inventory(rice.id, OWNER, 400)
        clock.now = NOW
        monitor.handle_expired_items(OWNER, [tomato.id], reason=WasteReason.SPOILED)

    def test_daily_inventory(self, analyzer, timeline):
        trends = analyzer.get_inventory_trends(OWNER, days=3)

        rows = [
            (s.day, s.total_items, s.total_value, s.fresh_items, s.expiring_items)
            for s in trends.daily_inventory
        ]
        assert rows == [
            (NOW.date() - timedelta(days=2), 2, 6.0, 1, 1),
            (NOW.date() - timedelta(days=1), 2, 4.4, 1, 1),
            (NOW.date(), 1, 2.4, 1, 0),
        ]

    def test_days_before_first_item_are_empty(self, analyzer, timeline):
        trends = analyzer.get_inventory_trends(OWNER, days=5)

        assert [s.total_items for s in trends.daily_inventory] == [0, 0, 2, 2, 1]
        assert trends.daily_inventory[0].total_value == 0.0

    def test_usage_and_waste_series(self, analyzer, timeline):
        trends = analyzer.get_inventory_trends(OWNER, days=3)

        [usage] = trends.usage_trend
        assert (usage.day, usage.usage_count, usage.total_usage) == (
            NOW.date() - timedelta(days=1),
            1,
            400,
        )
        [waste] = trends.waste_trend
        assert (waste.day, waste.waste_count, waste.total_waste, waste.waste_value) == (
            NOW.date(),
            1,
            500,
            2.0,
        )

    def test_default_window(self, analyzer):
        trends = analyzer.get_inventory_trends(OWNER)

        assert trends.days == 30
        assert len(trends.daily_inventory) == 30
        assert trends.daily_inventory[-1].day == NOW.date()
        assert trends.usage_trend == []

    def test_rejects_non_positive_days(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.get_inventory_trends(OWNER, days=0)

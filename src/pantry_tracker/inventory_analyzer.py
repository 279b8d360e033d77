"""Usage and waste analytics for Pantry Tracker."""

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

from .catalog import FoodCatalog
from .data_store import InventoryStore
from .exceptions import ValidationError
from .expiry_monitor import DEFAULT_EXPIRING_WINDOW, compute_status, is_low_stock
from .models import (
    PRIORITY_ORDER,
    AnalysisSummary,
    CategoryAnalysis,
    EfficiencyScore,
    InventoryAnalysis,
    InventoryItem,
    InventorySnapshot,
    InventoryStatus,
    InventoryTrends,
    Priority,
    PurchaseSuggestion,
    Recommendation,
    RecommendationType,
    UsagePattern,
    UsageRecord,
    UsageTrendPoint,
    WasteAnalysis,
    WasteBreakdown,
    WastedItem,
    WasteRecord,
    WasteTrendPoint,
)

logger = logging.getLogger(__name__)

# Share of wasted value assumed recoverable by acting on a recommendation
SAVINGS_FACTOR = 0.5

TOP_WASTED_LIMIT = 10

# Stock lasting fewer days than this at the current usage rate gets a LOW suggestion
RUNOUT_HORIZON_DAYS = 7


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


class InventoryAnalyzer:
    """Aggregates usage and waste history into reports and suggestions."""

    def __init__(
        self,
        data_store: InventoryStore,
        food_catalog: FoodCatalog | None = None,
        clock: Callable[[], datetime] = datetime.now,
        expiring_window: timedelta = DEFAULT_EXPIRING_WINDOW,
        window_days: int = 30,
        restock_cover_days: int = 14,
        waste_rate_threshold: float = 20.0,
        repeated_waste_count: int = 2,
        max_suggestions: int = 20,
    ):
        """Initialize inventory analyzer.

        Args:
            data_store: Inventory store
            food_catalog: Optional catalog for naming foods with no stored items
            clock: Source of the current time
            expiring_window: How close to expiry counts as expiring
            window_days: Default analysis window
            restock_cover_days: Days of average use a restock suggestion covers
            waste_rate_threshold: Waste rate (percent) that triggers recommendations
            repeated_waste_count: Waste events for one food that trigger a recommendation
            max_suggestions: Cap on purchase suggestions returned
        """
        self.data_store = data_store
        self.food_catalog = food_catalog
        self.clock = clock
        self.expiring_window = expiring_window
        self.window_days = window_days
        self.restock_cover_days = restock_cover_days
        self.waste_rate_threshold = waste_rate_threshold
        self.repeated_waste_count = repeated_waste_count
        self.max_suggestions = max_suggestions

    # --- Data access ---

    def _status(self, item: InventoryItem, now: datetime) -> InventoryStatus:
        return compute_status(
            item.quantity,
            item.expiry_date,
            item.min_stock_threshold,
            now,
            self.expiring_window,
        )

    def _history(
        self, owner_id: str, start: datetime, end: datetime
    ) -> tuple[list[UsageRecord], list[WasteRecord]]:
        usage = self.data_store.list_usage_records(owner_id, since=start)
        waste = self.data_store.list_waste_records(owner_id, since=start)
        usage = [r for r in usage if r.created_at <= end]
        waste = [r for r in waste if r.created_at <= end]
        return usage, waste

    def _item_lookup(self, owner_id: str) -> dict:
        """All of a member's items by id, removed ones included."""
        return {i.id: i for i in self.data_store.list_items(owner_id, include_deleted=True)}

    def _category_of(self, record: UsageRecord | WasteRecord, lookup: dict) -> str:
        item = lookup.get(record.inventory_item_id)
        if item is not None:
            return item.category
        food = self.food_catalog.get_food(record.food_id) if self.food_catalog else None
        return food.category if food else "Other"

    def _name_of(self, food_id: str, lookup: dict) -> str:
        for item in lookup.values():
            if item.food_id == food_id and item.food_name:
                return item.food_name
        food = self.food_catalog.get_food(food_id) if self.food_catalog else None
        return food.name if food else food_id

    # --- Full report ---

    def get_inventory_analysis(
        self, owner_id: str, window_days: int | None = None
    ) -> InventoryAnalysis:
        """Build a usage/waste report over a trailing window.

        Args:
            owner_id: Member to analyse
            window_days: Days of history to include

        Returns:
            InventoryAnalysis
        """
        window = window_days if window_days is not None else self.window_days
        end = self.clock()
        start = end - timedelta(days=window)

        lookup = self._item_lookup(owner_id)
        active = [i for i in lookup.values() if not i.is_deleted]
        usage, waste = self._history(owner_id, start, end)

        summary = self._summary(active, usage, waste)
        categories = self._analyze_categories(active, usage, waste, lookup)
        patterns = self._analyze_usage_patterns(usage, waste, lookup)
        waste_analysis = self._analyze_waste(waste, lookup)
        recommendations = self._recommendations(summary, categories, waste_analysis, active, end)

        logger.debug(
            "Analysed %d usage and %d waste records for %s over %d days",
            len(usage),
            len(waste),
            owner_id,
            window,
        )
        return InventoryAnalysis(
            owner_id=owner_id,
            start_date=start,
            end_date=end,
            window_days=window,
            summary=summary,
            category_analysis=categories,
            usage_patterns=patterns,
            waste_analysis=waste_analysis,
            recommendations=recommendations,
        )

    def _summary(
        self,
        items: list[InventoryItem],
        usage: list[UsageRecord],
        waste: list[WasteRecord],
    ) -> AnalysisSummary:
        used = sum(r.used_quantity for r in usage)
        wasted = sum(r.wasted_quantity for r in waste)
        return AnalysisSummary(
            total_items=len(items),
            total_value=round(sum(i.value for i in items), 2),
            used_items=len(usage),
            wasted_items=len(waste),
            used_quantity=round(used, 6),
            wasted_quantity=round(wasted, 6),
            waste_rate=_percent(wasted, used + wasted),
            usage_rate=_percent(used, used + wasted),
        )

    def _analyze_categories(
        self,
        items: list[InventoryItem],
        usage: list[UsageRecord],
        waste: list[WasteRecord],
        lookup: dict,
    ) -> list[CategoryAnalysis]:
        stats: dict[str, CategoryAnalysis] = {}

        def entry(category: str) -> CategoryAnalysis:
            if category not in stats:
                stats[category] = CategoryAnalysis(category=category)
            return stats[category]

        for item in items:
            cat = entry(item.category)
            cat.item_count += 1
            cat.total_value += item.value
        for record in usage:
            entry(self._category_of(record, lookup)).used_quantity += record.used_quantity
        for record in waste:
            cat = entry(self._category_of(record, lookup))
            cat.wasted_quantity += record.wasted_quantity
            cat.waste_value += record.value

        for cat in stats.values():
            total = cat.used_quantity + cat.wasted_quantity
            cat.total_value = round(cat.total_value, 2)
            cat.waste_value = round(cat.waste_value, 2)
            cat.used_quantity = round(cat.used_quantity, 6)
            cat.wasted_quantity = round(cat.wasted_quantity, 6)
            cat.waste_rate = _percent(cat.wasted_quantity, total)
            cat.efficiency = _percent(cat.used_quantity, total)

        return sorted(stats.values(), key=lambda c: c.category)

    def _analyze_usage_patterns(
        self, usage: list[UsageRecord], waste: list[WasteRecord], lookup: dict
    ) -> list[UsagePattern]:
        patterns: dict[str, UsagePattern] = {}

        def entry(food_id: str) -> UsagePattern:
            if food_id not in patterns:
                patterns[food_id] = UsagePattern(
                    food_id=food_id, food_name=self._name_of(food_id, lookup)
                )
            return patterns[food_id]

        for record in usage:
            pattern = entry(record.food_id)
            pattern.usage_frequency += 1
            pattern.total_usage += record.used_quantity
        for record in waste:
            pattern = entry(record.food_id)
            pattern.waste_frequency += 1
            pattern.total_waste += record.wasted_quantity

        for pattern in patterns.values():
            pattern.total_usage = round(pattern.total_usage, 6)
            pattern.total_waste = round(pattern.total_waste, 6)
            if pattern.usage_frequency:
                pattern.average_usage = round(pattern.total_usage / pattern.usage_frequency, 3)
            pattern.efficiency = _percent(
                pattern.total_usage, pattern.total_usage + pattern.total_waste
            )

        return sorted(
            patterns.values(),
            key=lambda p: (-p.usage_frequency, -p.total_usage, p.food_name),
        )

    def _analyze_waste(self, waste: list[WasteRecord], lookup: dict) -> WasteAnalysis:
        total_value = round(sum(r.value for r in waste), 2)

        by_reason: dict[str, list[WasteRecord]] = defaultdict(list)
        by_category: dict[str, list[WasteRecord]] = defaultdict(list)
        by_food: dict[str, list[WasteRecord]] = defaultdict(list)
        for record in waste:
            by_reason[record.reason.value].append(record)
            by_category[self._category_of(record, lookup)].append(record)
            by_food[record.food_id].append(record)

        def breakdown(groups: dict[str, list[WasteRecord]]) -> list[WasteBreakdown]:
            rows = []
            for key, records in groups.items():
                value = round(sum(r.value for r in records), 2)
                # Fall back to event share when nothing wasted had a price
                share = (
                    _percent(value, total_value)
                    if total_value > 0
                    else _percent(len(records), len(waste))
                )
                rows.append(
                    WasteBreakdown(key=key, count=len(records), value=value, percentage=share)
                )
            return sorted(rows, key=lambda b: (-b.value, -b.count, b.key))

        top = [
            WastedItem(
                food_id=food_id,
                food_name=self._name_of(food_id, lookup),
                waste_count=len(records),
                wasted_quantity=round(sum(r.wasted_quantity for r in records), 6),
                total_waste_value=round(sum(r.value for r in records), 2),
            )
            for food_id, records in by_food.items()
        ]
        top.sort(key=lambda w: (-w.total_waste_value, -w.waste_count, w.food_name))

        return WasteAnalysis(
            total_waste_value=total_value,
            by_reason=breakdown(by_reason),
            by_category=breakdown(by_category),
            top_wasted_items=top[:TOP_WASTED_LIMIT],
        )

    def _recommendations(
        self,
        summary: AnalysisSummary,
        categories: list[CategoryAnalysis],
        waste: WasteAnalysis,
        items: list[InventoryItem],
        now: datetime,
    ) -> list[Recommendation]:
        recommendations = []

        if summary.waste_rate > self.waste_rate_threshold:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.WASTE_REDUCTION,
                    priority=Priority.HIGH,
                    title="Reduce food waste",
                    description=(
                        f"Your waste rate is {summary.waste_rate:.1f}%. "
                        "Buy smaller quantities and review how food is stored."
                    ),
                    potential_savings=round(waste.total_waste_value * SAVINGS_FACTOR, 2),
                    data={"waste_rate": summary.waste_rate},
                )
            )

        for cat in categories:
            if cat.waste_rate > self.waste_rate_threshold:
                recommendations.append(
                    Recommendation(
                        type=RecommendationType.PURCHASE,
                        priority=Priority.MEDIUM,
                        title=f"Buy smaller batches of {cat.category}",
                        description=(
                            f"{cat.waste_rate:.1f}% of {cat.category} was wasted. "
                            "Buy less at a time or improve storage."
                        ),
                        potential_savings=round(cat.waste_value * SAVINGS_FACTOR, 2) or None,
                        data={"category": cat.category, "waste_rate": cat.waste_rate},
                    )
                )

        for wasted in waste.top_wasted_items:
            if wasted.waste_count >= self.repeated_waste_count:
                recommendations.append(
                    Recommendation(
                        type=RecommendationType.PURCHASE,
                        priority=Priority.MEDIUM,
                        title=f"Reduce restock quantity of {wasted.food_name}",
                        description=(
                            f"{wasted.food_name} was wasted {wasted.waste_count} times. "
                            "Restock in smaller amounts."
                        ),
                        potential_savings=(
                            round(wasted.total_waste_value * SAVINGS_FACTOR, 2) or None
                        ),
                        data={"food_id": wasted.food_id, "waste_count": wasted.waste_count},
                    )
                )

        expiring = [i for i in items if self._status(i, now) == InventoryStatus.EXPIRING]
        if expiring:
            value = round(sum(i.value for i in expiring), 2)
            recommendations.append(
                Recommendation(
                    type=RecommendationType.USAGE,
                    priority=Priority.MEDIUM,
                    title="Use expiring items first",
                    description=(
                        f"{len(expiring)} items expire within "
                        f"{self.expiring_window.days} days. Plan meals around them."
                    ),
                    potential_savings=value or None,
                    data={"item_ids": [str(i.id) for i in expiring]},
                )
            )

        expired = [i for i in items if self._status(i, now) == InventoryStatus.EXPIRED]
        if expired:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.STORAGE,
                    priority=Priority.MEDIUM,
                    title="Clear out expired stock",
                    description=(
                        f"{len(expired)} items have expired. "
                        "Discard them and check storage conditions."
                    ),
                    data={"item_ids": [str(i.id) for i in expired]},
                )
            )

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        return recommendations

    # --- Purchase suggestions ---

    def generate_purchase_suggestions(self, owner_id: str) -> list[PurchaseSuggestion]:
        """Suggest restocks from stock levels and consumption rate.

        Foods with low or empty items are suggested at HIGH priority when no
        stock remains and MEDIUM otherwise. Foods that will run out within a
        week at the current usage rate are suggested at LOW priority.

        Args:
            owner_id: Member to suggest for

        Returns:
            One suggestion per food, highest priority first
        """
        now = self.clock()
        start = now - timedelta(days=self.window_days)
        usage, _ = self._history(owner_id, start, now)

        used_per_food: dict[str, float] = defaultdict(float)
        for record in usage:
            used_per_food[record.food_id] += record.used_quantity

        by_food: dict[str, list[InventoryItem]] = defaultdict(list)
        for item in self.data_store.list_items(owner_id):
            by_food[item.food_id].append(item)

        suggestions = []
        for food_id, items in by_food.items():
            latest = max(items, key=lambda i: i.created_at)
            usable = [i for i in items if self._status(i, now) != InventoryStatus.EXPIRED]
            stock = round(sum(i.quantity for i in usable), 6)
            daily = used_per_food.get(food_id, 0.0) / self.window_days
            flagged = any(
                self._status(i, now) in (InventoryStatus.LOW_STOCK, InventoryStatus.OUT_OF_STOCK)
                or is_low_stock(i.quantity, i.min_stock_threshold)
                for i in items
            )

            if flagged:
                priority = Priority.HIGH if stock <= 0 else Priority.MEDIUM
                if daily > 0:
                    target = daily * self.restock_cover_days
                    reason = (
                        f"Covers {self.restock_cover_days} days at {daily:.2f} {latest.unit}/day"
                    )
                elif latest.min_stock_threshold:
                    target = latest.min_stock_threshold * 2
                    reason = "Out of stock" if stock <= 0 else "Below minimum stock"
                else:
                    target = latest.original_quantity
                    reason = "Out of stock" if stock <= 0 else "Below minimum stock"
            elif daily > 0 and stock < daily * RUNOUT_HORIZON_DAYS:
                priority = Priority.LOW
                target = daily * self.restock_cover_days
                reason = f"Runs out in about {stock / daily:.0f} days at current usage"
            else:
                continue

            quantity = round(target - stock, 2)
            if quantity <= 0:
                continue

            unit_price = latest.unit_price
            suggestions.append(
                PurchaseSuggestion(
                    food_id=food_id,
                    food_name=latest.display_name,
                    category=latest.category,
                    suggested_quantity=quantity,
                    unit=latest.unit,
                    reason=reason,
                    priority=priority,
                    current_stock=stock,
                    daily_usage=round(daily, 3) if daily > 0 else None,
                    estimated_cost=round(quantity * unit_price, 2) if unit_price > 0 else None,
                )
            )

        suggestions.sort(key=lambda s: (PRIORITY_ORDER[s.priority], s.food_name))
        return suggestions[: self.max_suggestions]

    # --- Efficiency ---

    def calculate_inventory_efficiency(self, owner_id: str) -> EfficiencyScore:
        """Score how well a member's inventory is managed.

        Returns:
            EfficiencyScore with 0-100 sub-scores and commentary
        """
        now = self.clock()
        usage, waste = self._history(owner_id, now - timedelta(days=self.window_days), now)
        items = self.data_store.list_items(owner_id)
        statuses = [self._status(i, now) for i in items]

        initial = sum(i.original_quantity for i in items)
        used = sum(r.used_quantity for r in usage)
        wasted = sum(r.wasted_quantity for r in waste)

        usage_efficiency = min(100.0, used / initial * 100) if initial > 0 else 0.0
        waste_rate = wasted / initial * 100 if initial > 0 else 0.0
        waste_reduction = max(0.0, 100 - waste_rate * 2)

        expired = statuses.count(InventoryStatus.EXPIRED)
        expiring = statuses.count(InventoryStatus.EXPIRING)
        storage = max(0.0, 100.0 - (expired * 10 + expiring * 5))

        low = sum(1 for i in items if is_low_stock(i.quantity, i.min_stock_threshold))
        out = statuses.count(InventoryStatus.OUT_OF_STOCK)
        planning = max(0.0, 100.0 - (low * 8 + out * 15))

        overall = usage_efficiency * 0.3 + waste_reduction * 0.3 + storage * 0.2 + planning * 0.2

        score = EfficiencyScore(
            overall_score=round(overall),
            usage_efficiency=round(usage_efficiency),
            waste_reduction=round(waste_reduction),
            storage_optimization=round(storage),
            purchase_planning=round(planning),
        )

        labels = {
            "usage_efficiency": (
                "Ingredients are used efficiently",
                "Ingredient usage is low",
                "Plan meals to use what you buy",
            ),
            "waste_reduction": (
                "Food waste is well controlled",
                "Food waste is high",
                "Reduce food waste",
            ),
            "storage_optimization": (
                "Storage is well managed",
                "Storage conditions need attention",
                "Improve storage and rotate stock",
            ),
            "purchase_planning": (
                "Purchases are well planned",
                "Purchase planning needs work",
                "Restock before items run out",
            ),
        }
        for field_name, (strength, weakness, improvement) in labels.items():
            value = getattr(score, field_name)
            if value > 80:
                score.strengths.append(strength)
            if value < 50:
                score.weaknesses.append(weakness)
            if value < 70:
                score.improvements.append(improvement)

        return score

    # --- Trends ---

    def get_inventory_trends(self, owner_id: str, days: int | None = None) -> InventoryTrends:
        """Daily inventory snapshots plus usage and waste series.

        Each snapshot describes the items held at the end of that day (or now,
        for today). Quantities are rebuilt by adding back usage recorded after
        that moment; restocks are not replayed.

        Args:
            owner_id: Member to analyse
            days: Days to cover, today included

        Returns:
            InventoryTrends. Usage and waste series only list days with records.

        Raises:
            ValidationError: If days is not positive
        """
        window = days if days is not None else self.window_days
        if window <= 0:
            raise ValidationError(f"Days must be positive, got {window}")

        now = self.clock()
        first = now.date() - timedelta(days=window - 1)
        usage, waste = self._history(owner_id, datetime.combine(first, time.min), now)
        items = list(self._item_lookup(owner_id).values())

        usage_by_item: dict = defaultdict(list)
        for record in usage:
            usage_by_item[record.inventory_item_id].append(record)

        trends = InventoryTrends(owner_id=owner_id, days=window)
        for n in range(window):
            day = first + timedelta(days=n)
            at = min(datetime.combine(day, time.max), now)
            snapshot = InventorySnapshot(day=day)
            for item in items:
                if item.created_at > at or (item.deleted_at is not None and item.deleted_at <= at):
                    continue
                used_after = sum(
                    r.used_quantity for r in usage_by_item[item.id] if r.created_at > at
                )
                held = item.model_copy(update={"quantity": round(item.quantity + used_after, 6)})
                status = self._status(held, at)
                snapshot.total_items += 1
                snapshot.total_value += held.value
                if status == InventoryStatus.FRESH:
                    snapshot.fresh_items += 1
                elif status == InventoryStatus.EXPIRING:
                    snapshot.expiring_items += 1
                elif status == InventoryStatus.EXPIRED:
                    snapshot.expired_items += 1
            snapshot.total_value = round(snapshot.total_value, 2)
            trends.daily_inventory.append(snapshot)

        usage_days: dict[date, UsageTrendPoint] = {}
        for record in usage:
            day = record.created_at.date()
            point = usage_days.setdefault(day, UsageTrendPoint(day=day))
            point.usage_count += 1
            point.total_usage = round(point.total_usage + record.used_quantity, 6)

        waste_days: dict[date, WasteTrendPoint] = {}
        for record in waste:
            day = record.created_at.date()
            point = waste_days.setdefault(day, WasteTrendPoint(day=day))
            point.waste_count += 1
            point.total_waste = round(point.total_waste + record.wasted_quantity, 6)
            point.waste_value = round(point.waste_value + record.value, 2)

        trends.usage_trend = [usage_days[d] for d in sorted(usage_days)]
        trends.waste_trend = [waste_days[d] for d in sorted(waste_days)]
        return trends

"""Shopping list generation from inventory state."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from .exceptions import NotFoundError, PantryError
from .inventory_analyzer import InventoryAnalyzer
from .inventory_tracker import InventoryTracker
from .models import (
    PRIORITY_ORDER,
    InventoryItem,
    InventoryShoppingList,
    InventoryStatus,
    Priority,
    PurchasedItem,
    PurchaseSyncResult,
    ShoppingListItem,
    ShoppingListOptimization,
    ShoppingSuggestion,
)
from .shopping_lists import ShoppingListService

logger = logging.getLogger(__name__)

# Budget headroom over the estimated cost of a generated list
BUDGET_BUFFER = 1.2

# Suggestions proposed for foods missing from a list being optimized
MAX_ADDED_SUGGESTIONS = 5


class ShoppingIntegration:
    """Turns low-stock detection and analysis output into shopping lists."""

    def __init__(
        self,
        tracker: InventoryTracker,
        analyzer: InventoryAnalyzer,
        shopping_lists: ShoppingListService,
    ):
        self.tracker = tracker
        self.analyzer = analyzer
        self.shopping_lists = shopping_lists

    def generate_shopping_suggestions(self, owner_id: str) -> list[ShoppingSuggestion]:
        """Merge live low-stock items with analyzer purchase suggestions.

        Stock is judged per food: a food is HIGH priority only when none of
        its unexpired items has anything left, and the suggested quantity
        is net of that stock. One suggestion is kept per food, carrying the
        highest priority and largest quantity of its sources.

        Args:
            owner_id: Member to shop for

        Returns:
            Suggestions, highest priority first
        """
        merged: dict[str, ShoppingSuggestion] = {}
        stock = self.tracker.available_quantities(owner_id)

        by_food: dict[str, list[InventoryItem]] = defaultdict(list)
        for item in self.tracker.get_inventory_items(owner_id):
            by_food[item.food_id].append(item)

        for food_id, items in by_food.items():
            if not any(i.status == InventoryStatus.OUT_OF_STOCK or i.is_low_stock for i in items):
                continue
            current = stock.get(food_id, 0.0)
            out = current <= 0
            latest = max(items, key=lambda i: i.created_at)
            threshold = max(
                (i.min_stock_threshold for i in items if i.min_stock_threshold), default=None
            )
            target = threshold * 2 if threshold else latest.original_quantity
            quantity = round(target - current, 2)
            if quantity <= 0:
                continue
            self._merge(
                merged,
                ShoppingSuggestion(
                    food_id=food_id,
                    food_name=latest.display_name,
                    category=latest.category,
                    suggested_quantity=quantity,
                    unit=latest.unit,
                    priority=Priority.HIGH if out else Priority.MEDIUM,
                    estimated_price=(
                        round(quantity * latest.unit_price, 2) if latest.unit_price else None
                    ),
                    current_stock=current,
                    min_stock_threshold=threshold,
                    reasons=["Out of stock" if out else "Below minimum stock"],
                ),
            )

        for suggestion in self.analyzer.generate_purchase_suggestions(owner_id):
            self._merge(
                merged,
                ShoppingSuggestion(
                    food_id=suggestion.food_id,
                    food_name=suggestion.food_name,
                    category=suggestion.category,
                    suggested_quantity=suggestion.suggested_quantity,
                    unit=suggestion.unit,
                    priority=suggestion.priority,
                    estimated_price=suggestion.estimated_cost,
                    current_stock=suggestion.current_stock,
                    reasons=[suggestion.reason],
                ),
            )

        return sorted(merged.values(), key=lambda s: (PRIORITY_ORDER[s.priority], s.food_name))

    @staticmethod
    def _merge(merged: dict[str, ShoppingSuggestion], new: ShoppingSuggestion) -> None:
        existing = merged.get(new.food_id)
        if existing is None:
            merged[new.food_id] = new
            return

        if PRIORITY_ORDER[new.priority] < PRIORITY_ORDER[existing.priority]:
            existing.priority = new.priority
        if new.suggested_quantity > existing.suggested_quantity:
            existing.suggested_quantity = new.suggested_quantity
            existing.estimated_price = new.estimated_price or existing.estimated_price
        if existing.min_stock_threshold is None:
            existing.min_stock_threshold = new.min_stock_threshold
        for reason in new.reasons:
            if reason not in existing.reasons:
                existing.reasons.append(reason)

    def create_inventory_based_shopping_list(
        self, owner_id: str, name: str = "Restock list"
    ) -> InventoryShoppingList:
        """Create a shopping list seeded with current suggestions.

        The budget is the total estimated cost plus a 20% buffer.

        Args:
            owner_id: Member owning the list
            name: List name

        Returns:
            The created list with the seeding suggestions and totals
        """
        suggestions = self.generate_shopping_suggestions(owner_id)
        total = round(sum(s.estimated_price or 0.0 for s in suggestions), 2)
        budget = round(total * BUDGET_BUFFER, 2) if total > 0 else None

        shopping_list = self.shopping_lists.create_list(owner_id, name, budget)
        for suggestion in suggestions:
            shopping_list = self.shopping_lists.add_item(
                shopping_list.id,
                ShoppingListItem(
                    food_id=suggestion.food_id,
                    food_name=suggestion.food_name,
                    quantity=suggestion.suggested_quantity,
                    unit=suggestion.unit,
                    category=suggestion.category,
                    priority=suggestion.priority,
                    estimated_price=suggestion.estimated_price,
                ),
            )

        logger.info(
            "Created shopping list '%s' for %s with %d items", name, owner_id, len(suggestions)
        )
        return InventoryShoppingList(
            shopping_list=shopping_list,
            suggestions=suggestions,
            total_estimated_cost=total,
            high_priority_count=sum(1 for s in suggestions if s.priority == Priority.HIGH),
            medium_priority_count=sum(1 for s in suggestions if s.priority == Priority.MEDIUM),
            low_priority_count=sum(1 for s in suggestions if s.priority == Priority.LOW),
        )

    def sync_shopping_list_to_inventory(
        self,
        owner_id: str,
        list_id: UUID,
        purchases: Iterable[PurchasedItem],
    ) -> PurchaseSyncResult:
        """Record purchased list items in inventory.

        Each purchase restocks the newest unexpired item of its food, or
        creates a new item when there is none, then marks the list entry
        purchased. Failures are collected per purchase.

        Args:
            owner_id: Member owning the list
            list_id: Shopping list the purchases belong to
            purchases: What was actually bought

        Returns:
            PurchaseSyncResult

        Raises:
            NotFoundError: If the list does not exist or belongs to someone else
        """
        shopping_list = self.shopping_lists.get_list(list_id, owner_id)
        entries = {item.id: item for item in shopping_list.items}
        result = PurchaseSyncResult(list_id=list_id)

        for purchase in purchases:
            entry = entries.get(purchase.shopping_item_id)
            if entry is None:
                missing = NotFoundError("shopping list item", purchase.shopping_item_id)
                result.errors.append(str(missing))
                continue

            try:
                target = self._restock_target(owner_id, entry.food_id)
                if target is not None:
                    self.tracker.restock_inventory_item(
                        target,
                        purchase.actual_quantity,
                        owner_id=owner_id,
                        purchase_price=purchase.actual_price,
                        expiry_date=purchase.expiry_date,
                    )
                    result.updated_items += 1
                else:
                    self.tracker.create_inventory_item(
                        owner_id,
                        entry.food_id,
                        purchase.actual_quantity,
                        entry.unit,
                        expiry_date=purchase.expiry_date,
                        purchase_price=purchase.actual_price,
                        purchase_source=f"Shopping list: {shopping_list.name}",
                        food_name=entry.food_name,
                        category=entry.category,
                    )
                    result.added_items += 1
                self.shopping_lists.mark_purchased(list_id, entry.id, purchase.actual_price)
            except PantryError as e:
                logger.warning("Could not sync %s from list %s: %s", entry.food_name, list_id, e)
                result.errors.append(f"{entry.food_name}: {e}")

        result.list_completed = self.shopping_lists.get_list(list_id).is_complete
        logger.info(
            "Synced list %s: %d added, %d restocked, %d errors",
            list_id,
            result.added_items,
            result.updated_items,
            len(result.errors),
        )
        return result

    def _restock_target(self, owner_id: str, food_id: str) -> UUID | None:
        # Emptied items report OUT_OF_STOCK, so check the expiry date itself
        now = self.tracker.clock()
        items = [
            i
            for i in self.tracker.get_inventory_items(owner_id)
            if i.food_id == food_id and (i.expiry_date is None or now <= i.expiry_date)
        ]
        if not items:
            return None
        return max(items, key=lambda i: i.created_at).id

    def optimize_shopping_list(self, owner_id: str, list_id: UUID) -> ShoppingListOptimization:
        """Check an existing list against current stock.

        Stock above a food's minimum threshold counts as spare. Entries fully
        covered by spare stock are proposed for removal, partly covered ones
        are reduced, and foods the suggestions want that are not on the list
        are proposed as additions. The list itself is not changed.

        Args:
            owner_id: Member owning the list
            list_id: List to optimize

        Returns:
            ShoppingListOptimization

        Raises:
            NotFoundError: If the list does not exist or belongs to someone else
        """
        shopping_list = self.shopping_lists.get_list(list_id, owner_id)
        stock = self.tracker.available_quantities(owner_id)

        thresholds: dict[str, float] = {}
        for item in self.tracker.get_inventory_items(owner_id):
            if item.min_stock_threshold:
                thresholds[item.food_id] = max(
                    thresholds.get(item.food_id, 0.0), item.min_stock_threshold
                )

        result = ShoppingListOptimization(list_id=list_id)
        original_cost = 0.0
        optimized_cost = 0.0

        pending = [entry for entry in shopping_list.items if not entry.purchased]
        for entry in pending:
            current = stock.get(entry.food_id, 0.0)
            spare = round(current - thresholds.get(entry.food_id, 0.0), 6)
            original_cost += entry.estimated_price or 0.0

            if spare >= entry.quantity:
                result.removed_item_ids.append(entry.id)
                continue

            if spare > 0:
                quantity = round(entry.quantity - spare, 2)
                reason = "Partly in stock"
            else:
                quantity = entry.quantity
                reason = "Not enough in stock"

            price = None
            if entry.estimated_price is not None:
                price = round(entry.estimated_price * quantity / entry.quantity, 2)
                optimized_cost += price
            result.optimized_items.append(
                ShoppingSuggestion(
                    food_id=entry.food_id,
                    food_name=entry.food_name,
                    category=entry.category,
                    suggested_quantity=quantity,
                    unit=entry.unit,
                    priority=entry.priority,
                    estimated_price=price,
                    current_stock=current,
                    min_stock_threshold=thresholds.get(entry.food_id),
                    reasons=[reason],
                )
            )

        listed = {entry.food_id for entry in shopping_list.items}
        result.added_items = [
            s for s in self.generate_shopping_suggestions(owner_id) if s.food_id not in listed
        ][:MAX_ADDED_SUGGESTIONS]
        result.savings = round(original_cost - optimized_cost, 2)

        logger.info(
            "Optimized list %s: %d kept, %d removable, %d to add",
            list_id,
            len(result.optimized_items),
            len(result.removed_item_ids),
            len(result.added_items),
        )
        return result

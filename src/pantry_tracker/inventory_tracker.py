"""Inventory ledger operations for Pantry Tracker."""

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from typing import Any, TypeVar
from uuid import UUID

import pydantic

from .catalog import FoodCatalog
from .data_store import InventoryStore
from .exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    Shortage,
    ValidationError,
)
from .expiry_monitor import DEFAULT_EXPIRING_WINDOW, compute_status, is_low_stock
from .models import (
    STATUS_SEVERITY,
    IngredientRequest,
    InventoryItem,
    InventoryStats,
    InventoryStatus,
    StorageLocation,
    UsageRecord,
    UsageType,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields update_inventory_item() accepts
UPDATABLE_FIELDS = frozenset(
    {
        "quantity",
        "unit",
        "food_name",
        "category",
        "purchase_date",
        "purchase_price",
        "purchase_source",
        "expiry_date",
        "production_date",
        "storage_location",
        "storage_notes",
        "min_stock_threshold",
        "brand",
        "barcode",
        "package_info",
    }
)

# Quantities are rounded to this many decimals after arithmetic
QUANTITY_PRECISION = 6


def deduction_order(item: InventoryItem) -> tuple:
    """Sort key for consuming stock: earliest expiry first, undated last."""
    return (
        item.expiry_date is None,
        item.expiry_date or datetime.max,
        item.purchase_date,
        item.created_at,
    )


def listing_order(item: InventoryItem) -> tuple:
    """Sort key for inventory listings: most urgent status first."""
    return (
        STATUS_SEVERITY[item.status],
        item.expiry_date is None,
        item.expiry_date or datetime.max,
        item.display_name.lower(),
    )


class InventoryTracker:
    """Manages household inventory items, usage and restocking."""

    def __init__(
        self,
        data_store: InventoryStore,
        food_catalog: FoodCatalog | None = None,
        clock: Callable[[], datetime] = datetime.now,
        expiring_window: timedelta = DEFAULT_EXPIRING_WINDOW,
        max_retries: int = 3,
        lookback_days: int = 30,
    ):
        """Initialize inventory tracker.

        Args:
            data_store: Inventory store
            food_catalog: Optional catalog used to validate food ids and copy names
            clock: Source of the current time
            expiring_window: How close to expiry counts as expiring
            max_retries: Restarts allowed when a concurrent update conflicts
            lookback_days: Default window for waste counts in stats
        """
        self.data_store = data_store
        self.food_catalog = food_catalog
        self.clock = clock
        self.expiring_window = expiring_window
        self.max_retries = max_retries
        self.lookback_days = lookback_days

    # --- Helpers ---

    def _status(self, item: InventoryItem, now: datetime | None = None) -> InventoryStatus:
        return compute_status(
            item.quantity,
            item.expiry_date,
            item.min_stock_threshold,
            now or self.clock(),
            self.expiring_window,
        )

    def _refreshed(self, item: InventoryItem, now: datetime | None = None) -> InventoryItem:
        return item.model_copy(update={"status": self._status(item, now)})

    def _load_owned(self, item_id: UUID | str, owner_id: str | None = None) -> InventoryItem:
        if isinstance(item_id, str):
            try:
                item_id = UUID(item_id)
            except ValueError as e:
                raise NotFoundError("inventory item", item_id) from e

        item = self.data_store.get_item(item_id)
        if item is None or item.is_deleted:
            raise NotFoundError("inventory item", item_id)
        if owner_id is not None and item.owner_id != owner_id:
            raise NotFoundError("inventory item", item_id)
        return item

    def _run_atomic(self, operation: Callable[[], T]) -> T:
        """Run operation in a store transaction, restarting it on conflicts."""
        attempt = 0
        while True:
            try:
                with self.data_store.transaction():
                    return operation()
            except ConflictError as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise
                logger.warning("Retrying after conflict (%d/%d): %s", attempt, self.max_retries, e)

    @staticmethod
    def _validated(item: InventoryItem, changes: dict[str, Any]) -> InventoryItem:
        try:
            return InventoryItem.model_validate({**item.model_dump(), **changes})
        except pydantic.ValidationError as e:
            raise ValidationError(str(e)) from e

    # --- Create ---

    def create_inventory_item(
        self,
        owner_id: str,
        food_id: str,
        quantity: float,
        unit: str,
        expiry_date: datetime | None = None,
        storage_location: StorageLocation = StorageLocation.PANTRY,
        purchase_date: date | None = None,
        purchase_price: float | None = None,
        purchase_source: str | None = None,
        min_stock_threshold: float | None = None,
        production_date: date | None = None,
        storage_notes: str | None = None,
        brand: str | None = None,
        barcode: str | None = None,
        package_info: str | None = None,
        food_name: str | None = None,
        category: str | None = None,
    ) -> InventoryItem:
        """Add a stock entry to a member's inventory.

        Args:
            owner_id: Member owning the stock
            food_id: Catalog food id
            quantity: Amount purchased, must be positive
            unit: Unit of measurement
            expiry_date: When the stock expires
            storage_location: Where the stock is kept
            purchase_date: Date purchased, defaults to today
            purchase_price: Total price paid for the quantity
            purchase_source: Store or source
            min_stock_threshold: Quantity below which the item is low stock
            production_date: Production/packing date
            storage_notes: Free-form notes
            brand: Brand name
            barcode: Barcode
            package_info: Package description
            food_name: Display name when no catalog entry supplies one
            category: Category when no catalog entry supplies one

        Returns:
            The created InventoryItem

        Raises:
            ValidationError: If quantity, unit, price or threshold is invalid
            NotFoundError: If a food catalog is configured and the food is unknown
        """
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {quantity:g}")
        if not unit or not unit.strip():
            raise ValidationError("Unit is required")
        if purchase_price is not None and purchase_price < 0:
            raise ValidationError("Purchase price cannot be negative")
        if min_stock_threshold is not None and min_stock_threshold < 0:
            raise ValidationError("Minimum stock threshold cannot be negative")

        if self.food_catalog is not None:
            food = self.food_catalog.get_food(food_id)
            if food is None:
                raise NotFoundError("food", food_id)
            food_name = food.name
            category = food.category

        now = self.clock()
        try:
            item = InventoryItem(
                owner_id=owner_id,
                food_id=food_id,
                food_name=food_name,
                category=category or "Other",
                quantity=quantity,
                original_quantity=quantity,
                unit=unit.strip(),
                purchase_date=purchase_date or now.date(),
                purchase_price=purchase_price,
                purchase_source=purchase_source,
                expiry_date=expiry_date,
                production_date=production_date,
                storage_location=storage_location,
                storage_notes=storage_notes,
                min_stock_threshold=min_stock_threshold,
                brand=brand,
                barcode=barcode,
                package_info=package_info,
                created_at=now,
                updated_at=now,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(str(e)) from e

        item.status = self._status(item, now)
        self.data_store.add_item(item)
        logger.info(
            "Added %g %s of %s for %s (%s)",
            quantity,
            item.unit,
            item.display_name,
            owner_id,
            item.status.value,
        )
        return item

    # --- Read ---

    def get_inventory_item(self, item_id: UUID | str, owner_id: str | None = None) -> InventoryItem:
        """Get a single item with its status recomputed.

        Raises:
            NotFoundError: If the item is unknown, removed or not owned by owner_id
        """
        return self._refreshed(self._load_owned(item_id, owner_id))

    def get_inventory_items(
        self,
        owner_id: str,
        status: InventoryStatus | None = None,
        location: StorageLocation | None = None,
        category: str | None = None,
        low_stock: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[InventoryItem]:
        """Get a member's items with optional filters.

        Statuses are recomputed before filtering. Results are ordered by
        status severity, then expiry date (undated last), then name.

        Args:
            owner_id: Member whose items to list
            status: Filter by current status
            location: Filter by storage location
            category: Filter by category (case-insensitive)
            low_stock: Filter on the low-stock flag, independent of status
            limit: Maximum items to return
            offset: Items to skip after ordering

        Returns:
            List of matching inventory items
        """
        now = self.clock()
        items = [self._refreshed(i, now) for i in self.data_store.list_items(owner_id)]

        if status is not None:
            items = [i for i in items if i.status == status]
        if location is not None:
            items = [i for i in items if i.storage_location == location]
        if category:
            items = [i for i in items if i.category.lower() == category.lower()]
        if low_stock is not None:
            items = [
                i for i in items if is_low_stock(i.quantity, i.min_stock_threshold) == low_stock
            ]

        items.sort(key=listing_order)
        end = None if limit is None else offset + limit
        return items[offset:end]

    def available_quantities(
        self,
        owner_id: str,
        food_ids: Iterable[str] | None = None,
        include_expired: bool = False,
    ) -> dict[str, float]:
        """Summed stock per food.

        Args:
            owner_id: Member whose stock to sum
            food_ids: Only these foods (each present in the result, 0 if none)
            include_expired: Count expired stock too

        Returns:
            Mapping of food id to available quantity
        """
        wanted = set(food_ids) if food_ids is not None else None
        totals: dict[str, float] = {f: 0.0 for f in wanted} if wanted is not None else {}

        for item in self._candidates(owner_id, include_expired, self.clock()):
            if wanted is not None and item.food_id not in wanted:
                continue
            totals[item.food_id] = round(
                totals.get(item.food_id, 0.0) + item.quantity, QUANTITY_PRECISION
            )
        return totals

    def get_usage_records(
        self, owner_id: str, usage_type: UsageType | None = None, limit: int | None = None
    ) -> list[UsageRecord]:
        """A member's usage records, newest first."""
        records = self.data_store.list_usage_records(owner_id)
        if usage_type is not None:
            records = [r for r in records if r.usage_type == usage_type]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def _candidates(
        self, owner_id: str, include_expired: bool, now: datetime
    ) -> list[InventoryItem]:
        items = [i for i in self.data_store.list_items(owner_id) if i.quantity > 0]
        if not include_expired:
            items = [i for i in items if i.expiry_date is None or now <= i.expiry_date]
        return items

    # --- Update ---

    def update_inventory_item(
        self, item_id: UUID | str, owner_id: str | None = None, **patch: Any
    ) -> InventoryItem:
        """Apply field changes to an item.

        Raising quantity above original_quantity resets original_quantity.
        Status is recomputed before the item is stored.

        Args:
            item_id: Item to update
            owner_id: When given, the item must belong to this member
            **patch: Field values to set (see UPDATABLE_FIELDS)

        Returns:
            Updated item

        Raises:
            ValidationError: If a field is unknown or a value is invalid
            NotFoundError: If the item is unknown
        """
        unknown = sorted(set(patch) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")
        if "unit" in patch and (not patch["unit"] or not str(patch["unit"]).strip()):
            raise ValidationError("Unit is required")

        def apply() -> InventoryItem:
            item = self._load_owned(item_id, owner_id)
            now = self.clock()
            changes = dict(patch, updated_at=now)
            if "quantity" in patch and patch["quantity"] > item.original_quantity:
                changes["original_quantity"] = patch["quantity"]

            updated = self._validated(item, changes)
            updated.status = self._status(updated, now)
            self.data_store.update_item(updated, expected_quantity=item.quantity)
            return updated

        updated = self._run_atomic(apply)
        logger.info(
            "Updated %s (%s): %s", updated.display_name, updated.id, ", ".join(sorted(patch))
        )
        return updated

    def restock_inventory_item(
        self,
        item_id: UUID | str,
        added_quantity: float,
        owner_id: str | None = None,
        purchase_price: float | None = None,
        expiry_date: datetime | None = None,
    ) -> InventoryItem:
        """Add stock to an existing item.

        The remaining stock keeps its unit price; purchase_price is what was
        paid for the added quantity.

        Args:
            item_id: Item to restock
            added_quantity: Amount added, must be positive
            owner_id: When given, the item must belong to this member
            purchase_price: Price paid for the added quantity
            expiry_date: New expiry date for the combined stock

        Returns:
            Updated item

        Raises:
            ValidationError: If added_quantity is not positive
            NotFoundError: If the item is unknown
        """
        if added_quantity <= 0:
            raise ValidationError(f"Restock quantity must be positive, got {added_quantity:g}")
        if purchase_price is not None and purchase_price < 0:
            raise ValidationError("Purchase price cannot be negative")

        def apply() -> InventoryItem:
            item = self._load_owned(item_id, owner_id)
            now = self.clock()
            quantity = round(item.quantity + added_quantity, QUANTITY_PRECISION)

            total_price = item.purchase_price
            if purchase_price is not None:
                total_price = round(item.value + purchase_price, 2)
            elif item.purchase_price is not None:
                total_price = round(item.unit_price * quantity, 2)

            changes: dict[str, Any] = {
                "quantity": quantity,
                "original_quantity": quantity,
                "purchase_price": total_price,
                "purchase_date": now.date(),
                "updated_at": now,
            }
            if expiry_date is not None:
                changes["expiry_date"] = expiry_date

            updated = self._validated(item, changes)
            updated.status = self._status(updated, now)
            self.data_store.update_item(updated, expected_quantity=item.quantity)
            return updated

        updated = self._run_atomic(apply)
        logger.info(
            "Restocked %s (%s) by %g to %g %s",
            updated.display_name,
            updated.id,
            added_quantity,
            updated.quantity,
            updated.unit,
        )
        return updated

    # --- Consumption ---

    def use_inventory(
        self,
        item_id: UUID | str,
        owner_id: str,
        used_quantity: float,
        usage_type: UsageType = UsageType.MANUAL,
        recipe_name: str | None = None,
        notes: str | None = None,
    ) -> UsageRecord:
        """Consume stock from one item.

        Args:
            item_id: Item to consume from
            owner_id: Member owning the item
            used_quantity: Amount used, must be positive
            usage_type: Why the stock was used
            recipe_name: Recipe the stock went into
            notes: Free-form notes

        Returns:
            The UsageRecord written

        Raises:
            ValidationError: If used_quantity is not positive
            NotFoundError: If the item is unknown or not owned by owner_id
            InsufficientStockError: If used_quantity exceeds the item's quantity
        """
        if used_quantity <= 0:
            raise ValidationError(f"Used quantity must be positive, got {used_quantity:g}")

        def apply() -> UsageRecord:
            item = self._load_owned(item_id, owner_id)
            if used_quantity > item.quantity:
                raise InsufficientStockError([Shortage(item.food_id, used_quantity, item.quantity)])
            now = self.clock()
            return self._deduct(item, used_quantity, now, usage_type, recipe_name, notes)

        record = self._run_atomic(apply)
        logger.info("Used %g %s of %s", used_quantity, record.unit, record.food_id)
        return record

    def use_inventory_for_recipe(
        self,
        owner_id: str,
        ingredients: Iterable[IngredientRequest],
        label: str | None = None,
        usage_type: UsageType = UsageType.RECIPE,
        include_expired: bool = True,
        notes: str | None = None,
    ) -> list[UsageRecord]:
        """Consume several foods at once, all or nothing.

        Requests for the same food are summed. Stock of each food is drawn
        from the earliest-expiring items first. If any food is short, an
        InsufficientStockError listing every shortage is raised and no item
        is changed.

        Args:
            owner_id: Member whose stock is used
            ingredients: Foods and amounts to consume
            label: Recipe or meal name stored on the usage records
            usage_type: Usage type stored on the usage records
            include_expired: Allow drawing from expired items
            notes: Free-form notes stored on the usage records

        Returns:
            One UsageRecord per item actually deducted

        Raises:
            ValidationError: If a requested quantity is not positive
            InsufficientStockError: If any food is short
        """
        required: dict[str, float] = {}
        for ingredient in ingredients:
            if ingredient.quantity <= 0:
                raise ValidationError(
                    f"Quantity for {ingredient.food_id} must be positive, "
                    f"got {ingredient.quantity:g}"
                )
            required[ingredient.food_id] = round(
                required.get(ingredient.food_id, 0.0) + ingredient.quantity, QUANTITY_PRECISION
            )

        def apply() -> list[UsageRecord]:
            now = self.clock()
            by_food: dict[str, list[InventoryItem]] = {food_id: [] for food_id in required}
            for item in self._candidates(owner_id, include_expired, now):
                if item.food_id in by_food:
                    by_food[item.food_id].append(item)

            shortages = []
            for food_id, amount in required.items():
                available = round(sum(i.quantity for i in by_food[food_id]), QUANTITY_PRECISION)
                if available < amount:
                    shortages.append(Shortage(food_id, amount, available))
            if shortages:
                raise InsufficientStockError(shortages)

            records = []
            for food_id, amount in required.items():
                remaining = amount
                for item in sorted(by_food[food_id], key=deduction_order):
                    if remaining <= 0:
                        break
                    take = min(item.quantity, remaining)
                    records.append(self._deduct(item, take, now, usage_type, label, notes))
                    remaining = round(remaining - take, QUANTITY_PRECISION)
            return records

        records = self._run_atomic(apply)
        logger.info(
            "Used %d ingredients for %s across %d items",
            len(required),
            label or usage_type.value,
            len(records),
        )
        return records

    def _deduct(
        self,
        item: InventoryItem,
        amount: float,
        now: datetime,
        usage_type: UsageType,
        recipe_name: str | None,
        notes: str | None,
    ) -> UsageRecord:
        quantity = max(0.0, round(item.quantity - amount, QUANTITY_PRECISION))
        updated = item.model_copy(update={"quantity": quantity, "updated_at": now})
        updated.status = self._status(updated, now)
        self.data_store.update_item(updated, expected_quantity=item.quantity)

        record = UsageRecord(
            inventory_item_id=item.id,
            owner_id=item.owner_id,
            food_id=item.food_id,
            used_quantity=round(amount, QUANTITY_PRECISION),
            unit=item.unit,
            usage_type=usage_type,
            recipe_name=recipe_name,
            notes=notes,
            created_at=now,
        )
        self.data_store.add_usage_record(record)
        return record

    # --- Stats ---

    def get_inventory_stats(
        self, owner_id: str, lookback_days: int | None = None
    ) -> InventoryStats:
        """Counters describing a member's inventory.

        Args:
            owner_id: Member to summarise
            lookback_days: Window for counting wasted items

        Returns:
            InventoryStats
        """
        now = self.clock()
        lookback = lookback_days if lookback_days is not None else self.lookback_days
        items = [self._refreshed(i, now) for i in self.data_store.list_items(owner_id)]

        by_status = {s.value: 0 for s in InventoryStatus}
        for item in items:
            by_status[item.status.value] += 1

        waste = self.data_store.list_waste_records(owner_id, since=now - timedelta(days=lookback))

        return InventoryStats(
            owner_id=owner_id,
            total_items=len(items),
            total_categories=len({i.category for i in items}),
            total_value=round(sum(i.value for i in items), 2),
            by_status=by_status,
            fresh_items=by_status[InventoryStatus.FRESH.value],
            expiring_items=by_status[InventoryStatus.EXPIRING.value],
            expired_items=by_status[InventoryStatus.EXPIRED.value],
            low_stock_items=sum(
                1 for i in items if is_low_stock(i.quantity, i.min_stock_threshold)
            ),
            out_of_stock_items=by_status[InventoryStatus.OUT_OF_STOCK.value],
            waste_items=len({r.inventory_item_id for r in waste}),
            lookback_days=lookback,
        )

    # --- Delete ---

    def delete_inventory_item(
        self, item_id: UUID | str, owner_id: str | None = None
    ) -> InventoryItem:
        """Remove an item from inventory without recording waste.

        The stored row is kept with ``deleted_at`` set so past usage and
        waste records still resolve.

        Raises:
            NotFoundError: If the item is unknown, already removed or not owned
        """

        def apply() -> InventoryItem:
            item = self._load_owned(item_id, owner_id)
            now = self.clock()
            removed = item.model_copy(update={"deleted_at": now, "updated_at": now})
            self.data_store.update_item(removed, expected_quantity=item.quantity)
            return removed

        removed = self._run_atomic(apply)
        logger.info("Removed %s (%s) from inventory", removed.display_name, removed.id)
        return removed

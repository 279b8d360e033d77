"""Expiry status derivation and expiry sweeps."""

import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime, time, timedelta
from uuid import UUID

from .data_store import InventoryStore
from .exceptions import NotFoundError, PantryError, ValidationError
from .models import (
    CategoryWaste,
    DailyCount,
    ExpiryAlert,
    ExpiryAlerts,
    ExpiryAnalysis,
    ExpiryTrends,
    InventoryItem,
    InventoryStatus,
    NotificationPayload,
    Priority,
    StorageLocation,
    SweepResult,
    WasteReason,
    WasteRecord,
)
from .notifications import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_EXPIRING_WINDOW = timedelta(days=3)

# Items listed in a notification body before the rest are summarised
NOTIFICATION_ITEM_LIMIT = 5

TOP_WASTE_CATEGORIES = 5


def compute_status(
    quantity: float,
    expiry_date: datetime | None,
    min_stock_threshold: float | None,
    now: datetime,
    expiring_window: timedelta = DEFAULT_EXPIRING_WINDOW,
) -> InventoryStatus:
    """Derive the status of a stock entry.

    Rules are checked in order and the first match wins: out of stock,
    expired, expiring within the window, below threshold, fresh.

    Args:
        quantity: Remaining quantity
        expiry_date: Expiry timestamp, if known
        min_stock_threshold: Low-stock threshold, if set
        now: Evaluation time
        expiring_window: How close to expiry counts as expiring

    Returns:
        InventoryStatus
    """
    if quantity <= 0:
        return InventoryStatus.OUT_OF_STOCK
    if expiry_date is not None:
        if now > expiry_date:
            return InventoryStatus.EXPIRED
        if expiry_date - now <= expiring_window:
            return InventoryStatus.EXPIRING
    if is_low_stock(quantity, min_stock_threshold):
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.FRESH


def is_low_stock(quantity: float, min_stock_threshold: float | None) -> bool:
    """Check if a quantity is below its threshold, regardless of expiry."""
    if min_stock_threshold is None:
        return False
    return quantity < min_stock_threshold


def days_to_expiry(expiry_date: datetime, now: datetime) -> int:
    """Whole days until expiry, rounded up. Negative once expired."""
    return math.ceil((expiry_date - now).total_seconds() / 86400)


def _plural(count: int, word: str = "item") -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class ExpiryMonitor:
    """Recomputes item statuses and handles expiring or expired stock."""

    def __init__(
        self,
        data_store: InventoryStore,
        notification_service: NotificationService | None = None,
        clock: Callable[[], datetime] = datetime.now,
        expiring_window: timedelta = DEFAULT_EXPIRING_WINDOW,
    ):
        """Initialize expiry monitor.

        Args:
            data_store: Inventory store
            notification_service: Receives generated expiry notifications
            clock: Source of the current time
            expiring_window: How close to expiry counts as expiring
        """
        self.data_store = data_store
        self.notification_service = notification_service
        self.clock = clock
        self.expiring_window = expiring_window

    def status_of(self, item: InventoryItem, now: datetime | None = None) -> InventoryStatus:
        """Current status of an item, ignoring the stored value."""
        return compute_status(
            item.quantity,
            item.expiry_date,
            item.min_stock_threshold,
            now or self.clock(),
            self.expiring_window,
        )

    # --- Status sweeps ---

    def update_expiry_statuses(self, owner_id: str) -> int:
        """Recompute and persist statuses for one member's items.

        Args:
            owner_id: Member whose items are swept

        Returns:
            Number of items whose stored status changed
        """
        return self._sweep(self.data_store.list_items(owner_id))

    def update_all_expiry_statuses(self) -> int:
        """Recompute and persist statuses for every member's items.

        Returns:
            Number of items whose stored status changed
        """
        return self._sweep(self.data_store.list_items())

    def _sweep(self, items: list[InventoryItem]) -> int:
        now = self.clock()
        changed = 0

        for item in items:
            status = self.status_of(item, now)
            if status == item.status:
                continue
            updated = item.model_copy(update={"status": status, "updated_at": now})
            try:
                self.data_store.update_item(updated, expected_quantity=item.quantity)
            except PantryError as e:
                logger.warning("Skipping status update for %s: %s", item.id, e)
                continue
            logger.debug("Status of %s: %s -> %s", item.id, item.status.value, status.value)
            changed += 1

        if changed:
            logger.info("Updated %d item statuses", changed)
        return changed

    # --- Alerts ---

    def get_expiry_alerts(self, owner_id: str) -> ExpiryAlerts:
        """Partition a member's items into expiring and expired.

        Statuses are recomputed; nothing is written.

        Args:
            owner_id: Member to inspect

        Returns:
            ExpiryAlerts with both partitions ordered by expiry date
        """
        now = self.clock()
        alerts = ExpiryAlerts(owner_id=owner_id)

        items = [i for i in self.data_store.list_items(owner_id) if i.expiry_date is not None]
        for item in sorted(items, key=lambda i: i.expiry_date):
            status = self.status_of(item, now)
            if status not in (InventoryStatus.EXPIRED, InventoryStatus.EXPIRING):
                continue
            alert = ExpiryAlert(
                item_id=item.id,
                food_id=item.food_id,
                food_name=item.display_name,
                expiry_date=item.expiry_date,
                days_to_expiry=days_to_expiry(item.expiry_date, now),
                status=status,
                quantity=item.quantity,
                unit=item.unit,
                storage_location=item.storage_location,
                value=item.value,
            )
            if status == InventoryStatus.EXPIRED:
                alerts.expired_items.append(alert)
            else:
                alerts.expiring_items.append(alert)

        alerts.total_expired_value = round(sum(a.value for a in alerts.expired_items), 2)
        alerts.total_expiring_value = round(sum(a.value for a in alerts.expiring_items), 2)
        return alerts

    # --- Disposal ---

    def handle_expired_items(
        self,
        owner_id: str,
        item_ids: Iterable[UUID | str],
        reason: WasteReason = WasteReason.EXPIRED,
        notes: str | None = None,
    ) -> SweepResult:
        """Write off items as waste and remove them from inventory.

        Each item gets one WasteRecord for its full remaining quantity.
        Unknown, removed or foreign ids are logged and reported as failed.

        Args:
            owner_id: Member owning the items
            item_ids: Items to dispose of
            reason: Waste reason recorded for every item
            notes: Optional note stored on each WasteRecord

        Returns:
            SweepResult with processed and failed ids
        """
        result = SweepResult()

        for raw_id in item_ids:
            try:
                record = self._dispose(owner_id, raw_id, reason, notes)
            except (PantryError, ValueError) as e:
                logger.warning("Skipping disposal of %s: %s", raw_id, e)
                result.failed_ids.append(str(raw_id))
                continue
            result.processed_ids.append(record.inventory_item_id)
            result.waste_records.append(record)

        logger.info(
            "Disposed of %d items for %s (%d failed)",
            result.processed_count,
            owner_id,
            len(result.failed_ids),
        )
        return result

    def _dispose(
        self,
        owner_id: str,
        raw_id: UUID | str,
        reason: WasteReason,
        notes: str | None,
    ) -> WasteRecord:
        item_id = raw_id if isinstance(raw_id, UUID) else UUID(raw_id)
        now = self.clock()

        with self.data_store.transaction():
            item = self.data_store.get_item(item_id)
            if item is None or item.is_deleted or item.owner_id != owner_id:
                raise NotFoundError("inventory item", item_id)

            record = WasteRecord(
                inventory_item_id=item.id,
                owner_id=owner_id,
                food_id=item.food_id,
                wasted_quantity=item.quantity,
                unit=item.unit,
                reason=reason,
                value=item.value,
                notes=notes,
                created_at=now,
            )
            self.data_store.add_waste_record(record)
            removed = item.model_copy(update={"deleted_at": now, "updated_at": now})
            self.data_store.update_item(removed, expected_quantity=item.quantity)

        return record

    # --- Notifications ---

    def generate_expiry_notifications(self, owner_id: str) -> list[NotificationPayload]:
        """Build expiry notifications and hand them to the notification service.

        One HIGH priority payload covers expired items and one MEDIUM
        priority payload covers expiring items; either is omitted when empty.

        Args:
            owner_id: Member to notify

        Returns:
            The payloads that were sent
        """
        alerts = self.get_expiry_alerts(owner_id)
        now = self.clock()
        payloads = []

        if alerts.expired_items:
            count = len(alerts.expired_items)
            payloads.append(
                NotificationPayload(
                    owner_id=owner_id,
                    kind="expired",
                    title=f"{_plural(count)} {'has' if count == 1 else 'have'} expired",
                    message=self._build_message(alerts.expired_items, "have expired"),
                    priority=Priority.HIGH,
                    metadata=self._build_metadata(alerts.expired_items),
                    created_at=now,
                )
            )

        if alerts.expiring_items:
            count = len(alerts.expiring_items)
            payloads.append(
                NotificationPayload(
                    owner_id=owner_id,
                    kind="expiring",
                    title=f"{_plural(count)} expiring soon",
                    message=self._build_message(alerts.expiring_items, "are expiring soon"),
                    priority=Priority.MEDIUM,
                    metadata=self._build_metadata(alerts.expiring_items),
                    created_at=now,
                )
            )

        if self.notification_service is not None:
            for payload in payloads:
                self.notification_service.send(payload)
        return payloads

    def _build_message(self, alerts: list[ExpiryAlert], verb: str) -> str:
        lines = [
            f"• {a.food_name} ({a.quantity:g} {a.unit}) - {a.days_to_expiry} days"
            for a in alerts[:NOTIFICATION_ITEM_LIMIT]
        ]
        message = f"The following items {verb}:\n\n" + "\n".join(lines)

        remaining = len(alerts) - NOTIFICATION_ITEM_LIMIT
        if remaining > 0:
            message += f"\n\n... and {remaining} more"

        return message + "\n\nDeal with them soon to avoid waste."

    def _build_metadata(self, alerts: list[ExpiryAlert]) -> dict:
        return {
            "item_count": len(alerts),
            "items": [
                {
                    "item_id": str(a.item_id),
                    "food_name": a.food_name,
                    "expiry_date": a.expiry_date.isoformat(),
                }
                for a in alerts
            ],
        }

    # --- Analysis ---

    def get_expiry_analysis(self, owner_id: str) -> ExpiryAnalysis:
        """Summarise a member's expiry situation with advice.

        Args:
            owner_id: Member to analyse

        Returns:
            ExpiryAnalysis
        """
        alerts = self.get_expiry_alerts(owner_id)
        now = self.clock()
        items = self.data_store.list_items(owner_id)
        window_days = self.expiring_window.days

        analysis = ExpiryAnalysis(
            owner_id=owner_id,
            total_items=len(items),
            fresh_count=sum(1 for i in items if self.status_of(i, now) == InventoryStatus.FRESH),
            expiring_count=len(alerts.expiring_items),
            expired_count=len(alerts.expired_items),
            expiring_value=alerts.total_expiring_value,
            expired_value=alerts.total_expired_value,
            expiring_window_days=window_days,
        )

        recommendations = analysis.recommendations
        if alerts.expired_items:
            recommendations.append(
                f"Discard {_plural(len(alerts.expired_items), 'expired item')} "
                "to avoid health risks"
            )
            recommendations.append("Check storage conditions such as temperature and humidity")
        if alerts.expiring_items:
            recommendations.append(
                f"{_plural(len(alerts.expiring_items))} expiring within {window_days} days: "
                "use them first"
            )
            recommendations.append("Plan meals around the expiring ingredients")

        locations = {a.storage_location for a in alerts.expired_items + alerts.expiring_items}
        if StorageLocation.FRIDGE in locations:
            recommendations.append("Check the fridge is set below 4°C")
        if StorageLocation.PANTRY in locations:
            recommendations.append("Check pantry items regularly for upcoming expiry dates")

        return analysis

    # --- Trends ---

    def get_expiry_trends(self, owner_id: str, days: int = 30) -> ExpiryTrends:
        """Daily waste counts over the last ``days`` days, today included.

        Args:
            owner_id: Member to analyse
            days: Length of the window in days

        Returns:
            ExpiryTrends with one entry per day, oldest first

        Raises:
            ValidationError: If days is not positive
        """
        if days <= 0:
            raise ValidationError(f"Days must be positive, got {days}")

        now = self.clock()
        first = now.date() - timedelta(days=days - 1)
        since = datetime.combine(first, time.min)
        waste = [
            r
            for r in self.data_store.list_waste_records(owner_id, since=since)
            if r.created_at <= now
        ]
        lookup = {i.id: i for i in self.data_store.list_items(owner_id, include_deleted=True)}

        expired = {first + timedelta(days=n): 0 for n in range(days)}
        wasted = dict(expired)
        categories: dict[str, CategoryWaste] = {}
        for record in waste:
            day = record.created_at.date()
            wasted[day] += 1
            if record.reason == WasteReason.EXPIRED:
                expired[day] += 1

            item = lookup.get(record.inventory_item_id)
            category = item.category if item is not None else "Other"
            stats = categories.setdefault(category, CategoryWaste(category=category))
            stats.count += 1
            stats.value = round(stats.value + record.value, 2)

        active = sum(1 for i in lookup.values() if not i.is_deleted)
        return ExpiryTrends(
            owner_id=owner_id,
            days=days,
            daily_expired=[DailyCount(day=d, count=c) for d, c in expired.items()],
            daily_wasted=[DailyCount(day=d, count=c) for d, c in wasted.items()],
            top_waste_categories=sorted(
                categories.values(), key=lambda c: (-c.count, -c.value, c.category)
            )[:TOP_WASTE_CATEGORIES],
            waste_rate=round(len(waste) / active * 100, 1) if active else 0.0,
        )

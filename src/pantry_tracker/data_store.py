"""Data persistence for Pantry Tracker.

This module provides data persistence with support for JSON (default) or SQLite backends.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

from .exceptions import ConflictError, NotFoundError, PersistenceError
from .models import (
    InventoryItem,
    NotificationPayload,
    ShoppingList,
    UsageRecord,
    WasteRecord,
)

logger = logging.getLogger(__name__)


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class InventoryStore(Protocol):
    """Protocol defining the persistence interface used by the engine."""

    def transaction(self) -> AbstractContextManager[None]: ...
    def add_item(self, item: InventoryItem) -> UUID: ...
    def get_item(self, item_id: UUID) -> InventoryItem | None: ...
    def list_items(
        self, owner_id: str | None = None, include_deleted: bool = False
    ) -> list[InventoryItem]: ...
    def update_item(
        self, item: InventoryItem, expected_quantity: float | None = None
    ) -> InventoryItem: ...
    def add_usage_record(self, record: UsageRecord) -> UUID: ...
    def list_usage_records(
        self, owner_id: str | None = None, since: datetime | None = None
    ) -> list[UsageRecord]: ...
    def add_waste_record(self, record: WasteRecord) -> UUID: ...
    def list_waste_records(
        self, owner_id: str | None = None, since: datetime | None = None
    ) -> list[WasteRecord]: ...
    def save_shopping_list(self, shopping_list: ShoppingList) -> UUID: ...
    def load_shopping_list(self, list_id: UUID) -> ShoppingList | None: ...
    def list_shopping_lists(self, owner_id: str | None = None) -> list[ShoppingList]: ...
    def add_notification(self, payload: NotificationPayload) -> UUID: ...
    def load_notifications(self, owner_id: str | None = None) -> list[NotificationPayload]: ...


class DataStore:
    """Manages JSON file persistence for inventory data.

    Every read-modify-write runs under one re-entrant lock. ``transaction()``
    holds that lock for the whole block and restores the files it started
    with if the block raises.
    """

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._lock = threading.RLock()
        self._depth = 0
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _inventory_path(self) -> Path:
        """Path to inventory file."""
        return self.data_dir / "inventory.json"

    def _usage_log_path(self) -> Path:
        """Path to usage log file."""
        return self.data_dir / "usage_log.json"

    def _waste_log_path(self) -> Path:
        """Path to waste log file."""
        return self.data_dir / "waste_log.json"

    def _shopping_lists_path(self) -> Path:
        """Path to shopping lists file."""
        return self.data_dir / "shopping_lists.json"

    def _notifications_path(self) -> Path:
        """Path to notification outbox file."""
        return self.data_dir / "notifications.json"

    def _all_paths(self) -> list[Path]:
        return [
            self._inventory_path(),
            self._usage_log_path(),
            self._waste_log_path(),
            self._shopping_lists_path(),
            self._notifications_path(),
        ]

    def _read(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {path.name}: {e}") from e

    def _write(self, path: Path, rows: list[dict[str, Any]]) -> None:
        try:
            with open(path, "w") as f:
                json.dump(rows, f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path.name}: {e}") from e

    # --- Transactions ---

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed reads and writes as one unit."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = {}
            for path in self._all_paths():
                try:
                    snapshot[path] = path.read_text() if path.exists() else None
                except OSError as e:
                    raise PersistenceError(f"Cannot read {path.name}: {e}") from e

            self._depth = 1
            try:
                yield
            except BaseException:
                logger.debug("Rolling back JSON transaction in %s", self.data_dir)
                for path, content in snapshot.items():
                    if content is None:
                        path.unlink(missing_ok=True)
                    else:
                        path.write_text(content)
                raise
            finally:
                self._depth = 0

    # --- Inventory Operations ---

    def add_item(self, item: InventoryItem) -> UUID:
        """Add an inventory item.

        Args:
            item: InventoryItem to add

        Returns:
            Item ID
        """
        with self._lock:
            rows = self._read(self._inventory_path())
            rows.append(item.model_dump(mode="json"))
            self._write(self._inventory_path(), rows)
        return item.id

    def get_item(self, item_id: UUID) -> InventoryItem | None:
        """Get an inventory item by ID, including removed items.

        Args:
            item_id: UUID of the item

        Returns:
            InventoryItem if found, None otherwise
        """
        with self._lock:
            for row in self._read(self._inventory_path()):
                if row["id"] == str(item_id):
                    return InventoryItem(**row)
        return None

    def list_items(
        self, owner_id: str | None = None, include_deleted: bool = False
    ) -> list[InventoryItem]:
        """List inventory items.

        Args:
            owner_id: Only items owned by this member
            include_deleted: Also return removed (tombstoned) items

        Returns:
            List of InventoryItem
        """
        with self._lock:
            items = [InventoryItem(**row) for row in self._read(self._inventory_path())]

        if owner_id is not None:
            items = [i for i in items if i.owner_id == owner_id]
        if not include_deleted:
            items = [i for i in items if i.deleted_at is None]
        return items

    def update_item(
        self, item: InventoryItem, expected_quantity: float | None = None
    ) -> InventoryItem:
        """Replace a stored inventory item.

        Args:
            item: Updated item
            expected_quantity: When given, the update only applies if the stored
                quantity still equals this value

        Returns:
            The stored item

        Raises:
            NotFoundError: If the item does not exist
            ConflictError: If the stored quantity no longer matches
        """
        with self._lock:
            rows = self._read(self._inventory_path())
            for i, row in enumerate(rows):
                if row["id"] != str(item.id):
                    continue
                if expected_quantity is not None and row["quantity"] != expected_quantity:
                    raise ConflictError(
                        f"Inventory item {item.id} changed: expected quantity "
                        f"{expected_quantity:g}, found {row['quantity']:g}"
                    )
                rows[i] = item.model_dump(mode="json")
                self._write(self._inventory_path(), rows)
                return item

        raise NotFoundError("inventory item", item.id)

    # --- Usage Log Operations ---

    def add_usage_record(self, record: UsageRecord) -> UUID:
        """Append a usage record.

        Args:
            record: UsageRecord to add

        Returns:
            Record ID
        """
        with self._lock:
            rows = self._read(self._usage_log_path())
            rows.append(record.model_dump(mode="json"))
            self._write(self._usage_log_path(), rows)
        return record.id

    def list_usage_records(
        self, owner_id: str | None = None, since: datetime | None = None
    ) -> list[UsageRecord]:
        """List usage records, oldest first.

        Args:
            owner_id: Only records of this member
            since: Only records created at or after this time

        Returns:
            List of UsageRecord
        """
        with self._lock:
            records = [UsageRecord(**row) for row in self._read(self._usage_log_path())]

        if owner_id is not None:
            records = [r for r in records if r.owner_id == owner_id]
        if since is not None:
            records = [r for r in records if r.created_at >= since]
        return sorted(records, key=lambda r: r.created_at)

    # --- Waste Log Operations ---

    def add_waste_record(self, record: WasteRecord) -> UUID:
        """Append a waste record.

        Args:
            record: WasteRecord to add

        Returns:
            Record ID
        """
        with self._lock:
            rows = self._read(self._waste_log_path())
            rows.append(record.model_dump(mode="json"))
            self._write(self._waste_log_path(), rows)
        return record.id

    def list_waste_records(
        self, owner_id: str | None = None, since: datetime | None = None
    ) -> list[WasteRecord]:
        """List waste records, oldest first.

        Args:
            owner_id: Only records of this member
            since: Only records created at or after this time

        Returns:
            List of WasteRecord
        """
        with self._lock:
            records = [WasteRecord(**row) for row in self._read(self._waste_log_path())]

        if owner_id is not None:
            records = [r for r in records if r.owner_id == owner_id]
        if since is not None:
            records = [r for r in records if r.created_at >= since]
        return sorted(records, key=lambda r: r.created_at)

    # --- Shopping List Operations ---

    def save_shopping_list(self, shopping_list: ShoppingList) -> UUID:
        """Insert or replace a shopping list.

        Args:
            shopping_list: ShoppingList to save

        Returns:
            List ID
        """
        with self._lock:
            rows = [
                row
                for row in self._read(self._shopping_lists_path())
                if row["id"] != str(shopping_list.id)
            ]
            rows.append(shopping_list.model_dump(mode="json"))
            self._write(self._shopping_lists_path(), rows)
        return shopping_list.id

    def load_shopping_list(self, list_id: UUID) -> ShoppingList | None:
        """Load a shopping list by ID.

        Args:
            list_id: Shopping list ID

        Returns:
            ShoppingList if found, None otherwise
        """
        with self._lock:
            for row in self._read(self._shopping_lists_path()):
                if row["id"] == str(list_id):
                    return ShoppingList(**row)
        return None

    def list_shopping_lists(self, owner_id: str | None = None) -> list[ShoppingList]:
        """List shopping lists, newest first.

        Args:
            owner_id: Only lists of this member

        Returns:
            List of ShoppingList
        """
        with self._lock:
            lists = [ShoppingList(**row) for row in self._read(self._shopping_lists_path())]

        if owner_id is not None:
            lists = [sl for sl in lists if sl.owner_id == owner_id]
        return sorted(lists, key=lambda sl: sl.created_at, reverse=True)

    # --- Notification Outbox Operations ---

    def add_notification(self, payload: NotificationPayload) -> UUID:
        """Append a notification payload to the outbox.

        Args:
            payload: NotificationPayload to store

        Returns:
            Payload ID
        """
        with self._lock:
            rows = self._read(self._notifications_path())
            rows.append(payload.model_dump(mode="json"))
            self._write(self._notifications_path(), rows)
        return payload.id

    def load_notifications(self, owner_id: str | None = None) -> list[NotificationPayload]:
        """Load stored notification payloads, oldest first.

        Args:
            owner_id: Only payloads addressed to this member

        Returns:
            List of NotificationPayload
        """
        with self._lock:
            payloads = [
                NotificationPayload(**row) for row in self._read(self._notifications_path())
            ]

        if owner_id is not None:
            payloads = [p for p in payloads if p.owner_id == owner_id]
        return payloads


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> InventoryStore:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/pantry.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "pantry.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)

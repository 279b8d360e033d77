"""SQLite-based data persistence for Pantry Tracker.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
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

INVENTORY_COLUMNS = (
    "id",
    "owner_id",
    "food_id",
    "food_name",
    "category",
    "quantity",
    "original_quantity",
    "unit",
    "purchase_date",
    "purchase_price",
    "purchase_source",
    "expiry_date",
    "production_date",
    "storage_location",
    "storage_notes",
    "status",
    "min_stock_threshold",
    "brand",
    "barcode",
    "package_info",
    "created_at",
    "updated_at",
    "deleted_at",
)

USAGE_COLUMNS = (
    "id",
    "inventory_item_id",
    "owner_id",
    "food_id",
    "used_quantity",
    "unit",
    "usage_type",
    "recipe_name",
    "notes",
    "created_at",
)

WASTE_COLUMNS = (
    "id",
    "inventory_item_id",
    "owner_id",
    "food_id",
    "wasted_quantity",
    "unit",
    "reason",
    "value",
    "notes",
    "created_at",
)


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    names = ", ".join(columns)
    params = ", ".join(f":{c}" for c in columns)
    return f"INSERT INTO {table} ({names}) VALUES ({params})"


class SQLiteStore:
    """Manages SQLite database persistence for inventory data.

    ``transaction()`` opens a ``BEGIN IMMEDIATE`` transaction on a connection
    bound to the calling thread. Store methods called inside it reuse that
    connection, so the whole block commits or rolls back together.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None, timeout: float = 30.0):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/pantry.db
            timeout: Seconds to wait for a competing writer to release the database
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "pantry.db"
        self.db_path = db_path
        self.timeout = timeout
        self._local = threading.local()
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create directory {self.db_path.parent}: {e}") from e

    def _connect(self, isolation_level: str | None = "") -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.timeout,
            isolation_level=isolation_level,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with proper cleanup.

        Inside ``transaction()`` the thread's open connection is reused and
        left for the transaction to commit.
        """
        active = getattr(self._local, "conn", None)
        if active is not None:
            try:
                yield active
            except sqlite3.Error as e:
                raise PersistenceError(f"SQLite error: {e}") from e
            return

        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"SQLite error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed reads and writes as one unit."""
        if getattr(self._local, "conn", None) is not None:
            yield
            return

        try:
            conn = self._connect(isolation_level=None)
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot start transaction: {e}") from e

        self._local.conn = conn
        try:
            yield
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise PersistenceError(f"SQLite error: {e}") from e
        except BaseException:
            logger.debug("Rolling back SQLite transaction on %s", self.db_path)
            conn.execute("ROLLBACK")
            raise
        finally:
            self._local.conn = None
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Inventory items (deleted_at marks removed rows)
                CREATE TABLE IF NOT EXISTS inventory_items (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    food_id TEXT NOT NULL,
                    food_name TEXT,
                    category TEXT NOT NULL DEFAULT 'Other',
                    quantity REAL NOT NULL DEFAULT 0.0,
                    original_quantity REAL NOT NULL DEFAULT 0.0,
                    unit TEXT NOT NULL,
                    purchase_date TEXT NOT NULL,
                    purchase_price REAL,
                    purchase_source TEXT,
                    expiry_date TEXT,
                    production_date TEXT,
                    storage_location TEXT NOT NULL DEFAULT 'pantry',
                    storage_notes TEXT,
                    status TEXT NOT NULL DEFAULT 'fresh',
                    min_stock_threshold REAL,
                    brand TEXT,
                    barcode TEXT,
                    package_info TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT
                );

                -- Usage log
                CREATE TABLE IF NOT EXISTS usage_records (
                    id TEXT PRIMARY KEY,
                    inventory_item_id TEXT NOT NULL REFERENCES inventory_items(id),
                    owner_id TEXT NOT NULL,
                    food_id TEXT NOT NULL,
                    used_quantity REAL NOT NULL,
                    unit TEXT,
                    usage_type TEXT NOT NULL DEFAULT 'manual',
                    recipe_name TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL
                );

                -- Waste log
                CREATE TABLE IF NOT EXISTS waste_records (
                    id TEXT PRIMARY KEY,
                    inventory_item_id TEXT NOT NULL REFERENCES inventory_items(id),
                    owner_id TEXT NOT NULL,
                    food_id TEXT NOT NULL,
                    wasted_quantity REAL NOT NULL DEFAULT 0.0,
                    unit TEXT,
                    reason TEXT NOT NULL DEFAULT 'other',
                    value REAL NOT NULL DEFAULT 0.0,
                    notes TEXT,
                    created_at TEXT NOT NULL
                );

                -- Shopping lists (items stored as JSON)
                CREATE TABLE IF NOT EXISTS shopping_lists (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    budget REAL,
                    items TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                );

                -- Notification outbox
                CREATE TABLE IF NOT EXISTS notifications (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    metadata TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL
                );

                -- Indexes for common queries
                CREATE INDEX IF NOT EXISTS idx_inventory_owner ON inventory_items(owner_id);
                CREATE INDEX IF NOT EXISTS idx_inventory_food ON inventory_items(food_id);
                CREATE INDEX IF NOT EXISTS idx_usage_owner ON usage_records(owner_id, created_at);
                CREATE INDEX IF NOT EXISTS idx_waste_owner ON waste_records(owner_id, created_at);

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version) VALUES (1);
            """)

    # --- Inventory Operations ---

    def add_item(self, item: InventoryItem) -> UUID:
        """Add an inventory item.

        Args:
            item: InventoryItem to add

        Returns:
            Item ID
        """
        with self._get_connection() as conn:
            conn.execute(
                _insert_sql("inventory_items", INVENTORY_COLUMNS),
                item.model_dump(mode="json"),
            )
        return item.id

    def get_item(self, item_id: UUID) -> InventoryItem | None:
        """Get an inventory item by ID, including removed items.

        Args:
            item_id: UUID of the item

        Returns:
            InventoryItem if found, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM inventory_items WHERE id = ?", (str(item_id),)
            ).fetchone()
        return InventoryItem(**dict(row)) if row else None

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
        query = "SELECT * FROM inventory_items WHERE 1 = 1"
        params: list[str] = []
        if owner_id is not None:
            query += " AND owner_id = ?"
            params.append(owner_id)
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY created_at, rowid"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [InventoryItem(**dict(row)) for row in rows]

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
        assignments = ", ".join(f"{c} = :{c}" for c in INVENTORY_COLUMNS if c != "id")
        query = f"UPDATE inventory_items SET {assignments} WHERE id = :id"
        params = item.model_dump(mode="json")
        if expected_quantity is not None:
            query += " AND quantity = :expected_quantity"
            params["expected_quantity"] = expected_quantity

        with self._get_connection() as conn:
            cursor = conn.execute(query, params)
            if cursor.rowcount:
                return item
            row = conn.execute(
                "SELECT quantity FROM inventory_items WHERE id = ?", (str(item.id),)
            ).fetchone()

        if row is None:
            raise NotFoundError("inventory item", item.id)
        raise ConflictError(
            f"Inventory item {item.id} changed: expected quantity "
            f"{expected_quantity:g}, found {row['quantity']:g}"
        )

    # --- Usage Log Operations ---

    def add_usage_record(self, record: UsageRecord) -> UUID:
        """Append a usage record.

        Args:
            record: UsageRecord to add

        Returns:
            Record ID
        """
        with self._get_connection() as conn:
            conn.execute(
                _insert_sql("usage_records", USAGE_COLUMNS),
                record.model_dump(mode="json"),
            )
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
        rows = self._select_log("usage_records", owner_id, since)
        return [UsageRecord(**dict(row)) for row in rows]

    # --- Waste Log Operations ---

    def add_waste_record(self, record: WasteRecord) -> UUID:
        """Append a waste record.

        Args:
            record: WasteRecord to add

        Returns:
            Record ID
        """
        with self._get_connection() as conn:
            conn.execute(
                _insert_sql("waste_records", WASTE_COLUMNS),
                record.model_dump(mode="json"),
            )
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
        rows = self._select_log("waste_records", owner_id, since)
        return [WasteRecord(**dict(row)) for row in rows]

    def _select_log(
        self, table: str, owner_id: str | None, since: datetime | None
    ) -> list[sqlite3.Row]:
        query = f"SELECT * FROM {table} WHERE 1 = 1"
        params: list[str] = []
        if owner_id is not None:
            query += " AND owner_id = ?"
            params.append(owner_id)
        if since is not None:
            query += " AND created_at >= ?"
            params.append(since.isoformat())
        query += " ORDER BY created_at, rowid"

        with self._get_connection() as conn:
            return conn.execute(query, params).fetchall()

    # --- Shopping List Operations ---

    def save_shopping_list(self, shopping_list: ShoppingList) -> UUID:
        """Insert or replace a shopping list.

        Args:
            shopping_list: ShoppingList to save

        Returns:
            List ID
        """
        data = shopping_list.model_dump(mode="json")
        data["items"] = json.dumps(data["items"])
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO shopping_lists
                (id, owner_id, name, budget, items, created_at, completed_at)
                VALUES (:id, :owner_id, :name, :budget, :items, :created_at, :completed_at)
                """,
                data,
            )
        return shopping_list.id

    def load_shopping_list(self, list_id: UUID) -> ShoppingList | None:
        """Load a shopping list by ID.

        Args:
            list_id: Shopping list ID

        Returns:
            ShoppingList if found, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM shopping_lists WHERE id = ?", (str(list_id),)
            ).fetchone()
        return self._row_to_shopping_list(row) if row else None

    def list_shopping_lists(self, owner_id: str | None = None) -> list[ShoppingList]:
        """List shopping lists, newest first.

        Args:
            owner_id: Only lists of this member

        Returns:
            List of ShoppingList
        """
        with self._get_connection() as conn:
            if owner_id is None:
                rows = conn.execute(
                    "SELECT * FROM shopping_lists ORDER BY created_at DESC, rowid DESC"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM shopping_lists WHERE owner_id = ? "
                    "ORDER BY created_at DESC, rowid DESC",
                    (owner_id,),
                ).fetchall()
        return [self._row_to_shopping_list(row) for row in rows]

    def _row_to_shopping_list(self, row: sqlite3.Row) -> ShoppingList:
        data = dict(row)
        data["items"] = json.loads(data["items"])
        return ShoppingList(**data)

    # --- Notification Outbox Operations ---

    def add_notification(self, payload: NotificationPayload) -> UUID:
        """Append a notification payload to the outbox.

        Args:
            payload: NotificationPayload to store

        Returns:
            Payload ID
        """
        data = payload.model_dump(mode="json")
        data["metadata"] = json.dumps(data["metadata"])
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO notifications
                (id, owner_id, kind, title, message, priority, metadata, created_at)
                VALUES (:id, :owner_id, :kind, :title, :message, :priority, :metadata, :created_at)
                """,
                data,
            )
        return payload.id

    def load_notifications(self, owner_id: str | None = None) -> list[NotificationPayload]:
        """Load stored notification payloads, oldest first.

        Args:
            owner_id: Only payloads addressed to this member

        Returns:
            List of NotificationPayload
        """
        with self._get_connection() as conn:
            if owner_id is None:
                rows = conn.execute(
                    "SELECT * FROM notifications ORDER BY created_at, rowid"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM notifications WHERE owner_id = ? ORDER BY created_at, rowid",
                    (owner_id,),
                ).fetchall()

        payloads = []
        for row in rows:
            data = dict(row)
            data["metadata"] = json.loads(data["metadata"])
            payloads.append(NotificationPayload(**data))
        return payloads

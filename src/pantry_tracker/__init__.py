"""Pantry Tracker - Household inventory, expiry and waste tracking."""

from .catalog import FoodCatalog, RecipeCatalog, StaticCatalog
from .config import ConfigManager
from .data_store import BackendType, DataStore, InventoryStore, create_data_store
from .exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PantryError,
    PersistenceError,
    Shortage,
    ValidationError,
)
from .expiry_monitor import ExpiryMonitor, compute_status
from .inventory_analyzer import InventoryAnalyzer
from .inventory_tracker import InventoryTracker
from .models import (
    InventoryItem,
    InventoryStatus,
    Priority,
    StorageLocation,
    UsageRecord,
    UsageType,
    WasteReason,
    WasteRecord,
)
from .notifications import NotificationOutbox, NotificationService
from .output_formatter import OutputFormatter
from .recipe_integration import RecipeIntegration
from .shopping_integration import ShoppingIntegration
from .shopping_lists import ShoppingListService, StoredShoppingLists
from .sqlite_store import SQLiteStore

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "compute_status",
    "ConfigManager",
    "ConflictError",
    "create_data_store",
    "DataStore",
    "ExpiryMonitor",
    "FoodCatalog",
    "InsufficientStockError",
    "InventoryAnalyzer",
    "InventoryItem",
    "InventoryStatus",
    "InventoryStore",
    "InventoryTracker",
    "NotFoundError",
    "NotificationOutbox",
    "NotificationService",
    "OutputFormatter",
    "PantryError",
    "PersistenceError",
    "Priority",
    "RecipeCatalog",
    "RecipeIntegration",
    "SQLiteStore",
    "ShoppingIntegration",
    "ShoppingListService",
    "Shortage",
    "StaticCatalog",
    "StorageLocation",
    "StoredShoppingLists",
    "UsageRecord",
    "UsageType",
    "ValidationError",
    "WasteReason",
    "WasteRecord",
]

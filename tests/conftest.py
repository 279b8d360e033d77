"""Shared test fixtures for Pantry Tracker."""

from datetime import datetime, timedelta

import pytest

from pantry_tracker.catalog import StaticCatalog
from pantry_tracker.data_store import DataStore
from pantry_tracker.expiry_monitor import ExpiryMonitor
from pantry_tracker.inventory_analyzer import InventoryAnalyzer
from pantry_tracker.inventory_tracker import InventoryTracker
from pantry_tracker.models import FoodInfo, Recipe, RecipeIngredient
from pantry_tracker.notifications import NotificationOutbox
from pantry_tracker.recipe_integration import RecipeIntegration
from pantry_tracker.shopping_integration import ShoppingIntegration
from pantry_tracker.shopping_lists import StoredShoppingLists
from pantry_tracker.sqlite_store import SQLiteStore

NOW = datetime(2026, 3, 1, 12, 0)
OWNER = "alice"


class FakeClock:
    """Settable clock passed to services instead of datetime.now."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a SQLiteStore in a temporary directory."""
    return SQLiteStore(db_path=tmp_path / "pantry.db")


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path):
    """Each backend in turn."""
    if request.param == "json":
        return DataStore(data_dir=tmp_path / "json")
    return SQLiteStore(db_path=tmp_path / "sqlite" / "pantry.db")


@pytest.fixture
def catalog():
    """Small food and recipe catalog."""
    return StaticCatalog(
        foods=[
            FoodInfo(id="tomato", name="Tomato", category="Vegetables"),
            FoodInfo(id="onion", name="Onion", category="Vegetables"),
            FoodInfo(id="rice", name="Rice", category="Grains"),
            FoodInfo(id="chicken", name="Chicken", category="Meat"),
            FoodInfo(id="milk", name="Milk", category="Dairy"),
        ],
        recipes=[
            Recipe(
                id="tomato-rice",
                name="Tomato Rice",
                category="Main",
                servings=2,
                ingredients=[
                    RecipeIngredient(food_id="tomato", quantity=200, unit="g"),
                    RecipeIngredient(food_id="rice", quantity=150, unit="g"),
                ],
            ),
            Recipe(
                id="chicken-curry",
                name="Chicken Curry",
                category="Main",
                servings=4,
                ingredients=[
                    RecipeIngredient(food_id="chicken", quantity=500, unit="g"),
                    RecipeIngredient(food_id="tomato", quantity=300, unit="g"),
                    RecipeIngredient(food_id="onion", quantity=2, unit="pcs"),
                    RecipeIngredient(food_id="rice", quantity=200, unit="g"),
                ],
            ),
            Recipe(
                id="rice-pudding",
                name="Rice Pudding",
                category="Dessert",
                ingredients=[
                    RecipeIngredient(food_id="rice", quantity=100, unit="g"),
                    RecipeIngredient(food_id="milk", quantity=500, unit="ml"),
                ],
            ),
        ],
    )


@pytest.fixture
def tracker(store, catalog, clock):
    """InventoryTracker over each backend."""
    return InventoryTracker(store, food_catalog=catalog, clock=clock)


@pytest.fixture
def outbox(store):
    return NotificationOutbox(store)


@pytest.fixture
def monitor(store, outbox, clock):
    """ExpiryMonitor sending to a stored outbox."""
    return ExpiryMonitor(store, notification_service=outbox, clock=clock)


@pytest.fixture
def analyzer(store, catalog, clock):
    return InventoryAnalyzer(store, food_catalog=catalog, clock=clock)


@pytest.fixture
def shopping_lists(store, clock):
    return StoredShoppingLists(store, clock=clock)


@pytest.fixture
def shopping(tracker, analyzer, shopping_lists):
    return ShoppingIntegration(tracker, analyzer, shopping_lists)


@pytest.fixture
def recipes(tracker, catalog):
    return RecipeIntegration(tracker, catalog, food_catalog=catalog)


@pytest.fixture
def add_item(tracker):
    """Shortcut for creating items owned by the default test owner."""

    def _add(food_id="tomato", quantity=500.0, unit="g", days=None, owner=OWNER, **kwargs):
        expiry = NOW + timedelta(days=days) if days is not None else None
        return tracker.create_inventory_item(
            owner, food_id, quantity, unit, expiry_date=expiry, **kwargs
        )

    return _add

"""Core data models for Pantry Tracker."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class Priority(str, Enum):
    """Suggestion priority levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class InventoryStatus(str, Enum):
    """Derived freshness/stock status of an inventory item."""

    FRESH = "fresh"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


# Lower number sorts first in inventory listings
STATUS_SEVERITY = {
    InventoryStatus.OUT_OF_STOCK: 0,
    InventoryStatus.EXPIRED: 1,
    InventoryStatus.EXPIRING: 2,
    InventoryStatus.LOW_STOCK: 3,
    InventoryStatus.FRESH: 4,
}


class StorageLocation(str, Enum):
    """Storage locations for inventory items."""

    PANTRY = "pantry"
    FRIDGE = "fridge"
    FREEZER = "freezer"
    COUNTER = "counter"
    CABINET = "cabinet"
    OTHER = "other"


class UsageType(str, Enum):
    """Why stock was consumed."""

    COOKING = "cooking"
    MEAL_LOG = "meal_log"
    MANUAL = "manual"
    RECIPE = "recipe"
    SHARING = "sharing"
    OTHER = "other"


class WasteReason(str, Enum):
    """Reasons for food waste."""

    EXPIRED = "expired"
    SPOILED = "spoiled"
    OVERSTOCK = "overstock"
    PREFERENCE = "preference"
    OTHER = "other"


class RecommendationType(str, Enum):
    """Kinds of analysis recommendations."""

    PURCHASE = "purchase"
    STORAGE = "storage"
    USAGE = "usage"
    WASTE_REDUCTION = "waste_reduction"


# --- Inventory ledger ---


class InventoryItem(BaseModel):
    """One physical stock entry owned by a household member."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    food_id: str
    food_name: str | None = None
    category: str = "Other"
    quantity: float = Field(ge=0)
    original_quantity: float = Field(default=0.0, ge=0)
    unit: str
    purchase_date: date = Field(default_factory=date.today)
    purchase_price: float | None = Field(default=None, ge=0)
    purchase_source: str | None = None
    expiry_date: datetime | None = None
    production_date: date | None = None
    storage_location: StorageLocation = StorageLocation.PANTRY
    storage_notes: str | None = None
    status: InventoryStatus = InventoryStatus.FRESH
    min_stock_threshold: float | None = Field(default=None, ge=0)
    brand: str | None = None
    barcode: str | None = None
    package_info: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    deleted_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.food_name or self.food_id

    @property
    def unit_price(self) -> float:
        """Price per unit, derived from the purchase price."""
        if self.purchase_price is None or self.original_quantity <= 0:
            return 0.0
        return self.purchase_price / self.original_quantity

    @property
    def value(self) -> float:
        """Money value of the remaining quantity."""
        return round(self.quantity * self.unit_price, 2)

    @property
    def is_low_stock(self) -> bool:
        """Check if item is below its threshold."""
        if self.min_stock_threshold is None:
            return False
        return self.quantity < self.min_stock_threshold

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class UsageRecord(BaseModel):
    """One consumption event against an inventory item."""

    id: UUID = Field(default_factory=uuid4)
    inventory_item_id: UUID
    owner_id: str
    food_id: str
    used_quantity: float = Field(gt=0)
    unit: str | None = None
    usage_type: UsageType = UsageType.MANUAL
    recipe_name: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class WasteRecord(BaseModel):
    """One disposal event against an inventory item."""

    id: UUID = Field(default_factory=uuid4)
    inventory_item_id: UUID
    owner_id: str
    food_id: str
    wasted_quantity: float = Field(ge=0)
    unit: str | None = None
    reason: WasteReason = WasteReason.OTHER
    value: float = Field(default=0.0, ge=0)
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class IngredientRequest(BaseModel):
    """A quantity of one food requested from inventory."""

    food_id: str
    quantity: float
    unit: str | None = None


class InventoryStats(BaseModel):
    """Per-owner inventory counters."""

    owner_id: str
    total_items: int = 0
    total_categories: int = 0
    total_value: float = 0.0
    by_status: dict[str, int] = Field(default_factory=dict)
    fresh_items: int = 0
    expiring_items: int = 0
    expired_items: int = 0
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    waste_items: int = 0
    lookback_days: int = 30


# --- Expiry monitoring ---


class ExpiryAlert(BaseModel):
    """An item that is expiring or already expired."""

    item_id: UUID
    food_id: str
    food_name: str
    expiry_date: datetime
    days_to_expiry: int
    status: InventoryStatus
    quantity: float
    unit: str
    storage_location: StorageLocation
    value: float = 0.0


class ExpiryAlerts(BaseModel):
    """Expiring/expired partition of an owner's inventory."""

    owner_id: str
    expiring_items: list[ExpiryAlert] = Field(default_factory=list)
    expired_items: list[ExpiryAlert] = Field(default_factory=list)
    total_expiring_value: float = 0.0
    total_expired_value: float = 0.0


class ExpiryAnalysis(BaseModel):
    """Expiry summary with plain-language advice."""

    owner_id: str
    total_items: int = 0
    fresh_count: int = 0
    expiring_count: int = 0
    expired_count: int = 0
    expiring_value: float = 0.0
    expired_value: float = 0.0
    expiring_window_days: int = 3
    recommendations: list[str] = Field(default_factory=list)


class NotificationPayload(BaseModel):
    """Channel-agnostic notification handed to the delivery service."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    kind: str  # "expired", "expiring"
    title: str
    message: str
    priority: Priority = Priority.MEDIUM
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)


class DailyCount(BaseModel):
    day: date
    count: int = 0


class CategoryWaste(BaseModel):
    category: str
    count: int = 0
    value: float = 0.0


class ExpiryTrends(BaseModel):
    """Day-by-day waste history of a member over a trailing window."""

    owner_id: str
    days: int
    daily_expired: list[DailyCount] = Field(default_factory=list)
    daily_wasted: list[DailyCount] = Field(default_factory=list)
    top_waste_categories: list[CategoryWaste] = Field(default_factory=list)
    waste_rate: float = 0.0  # waste events per 100 current items


class SweepResult(BaseModel):
    """Tally of a batch operation that tolerates per-item failures."""

    processed_ids: list[UUID] = Field(default_factory=list)
    failed_ids: list[str] = Field(default_factory=list)
    waste_records: list[WasteRecord] = Field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.processed_ids)


# --- Analysis ---


class AnalysisSummary(BaseModel):
    """Headline numbers of an inventory analysis."""

    total_items: int = 0
    total_value: float = 0.0
    used_items: int = 0
    wasted_items: int = 0
    used_quantity: float = 0.0
    wasted_quantity: float = 0.0
    waste_rate: float = 0.0  # percent
    usage_rate: float = 0.0  # percent


class CategoryAnalysis(BaseModel):
    """Usage/waste rollup for a food category."""

    category: str
    item_count: int = 0
    total_value: float = 0.0
    used_quantity: float = 0.0
    wasted_quantity: float = 0.0
    waste_value: float = 0.0
    waste_rate: float = 0.0
    efficiency: float = 0.0


class UsagePattern(BaseModel):
    """Consumption pattern for a single food."""

    food_id: str
    food_name: str
    usage_frequency: int = 0
    average_usage: float = 0.0
    total_usage: float = 0.0
    waste_frequency: int = 0
    total_waste: float = 0.0
    efficiency: float = 0.0


class WasteBreakdown(BaseModel):
    """Waste grouped under one key (reason or category)."""

    key: str
    count: int
    value: float
    percentage: float


class WastedItem(BaseModel):
    """A food ranked by how much money was lost to waste."""

    food_id: str
    food_name: str
    waste_count: int
    wasted_quantity: float
    total_waste_value: float


class WasteAnalysis(BaseModel):
    """Waste breakdowns over the analysis window."""

    total_waste_value: float = 0.0
    by_reason: list[WasteBreakdown] = Field(default_factory=list)
    by_category: list[WasteBreakdown] = Field(default_factory=list)
    top_wasted_items: list[WastedItem] = Field(default_factory=list)


class Recommendation(BaseModel):
    """A rule-based recommendation from the analyzer."""

    type: RecommendationType
    priority: Priority = Priority.MEDIUM
    title: str
    description: str
    potential_savings: float | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class InventoryAnalysis(BaseModel):
    """Full inventory analysis report."""

    owner_id: str
    start_date: datetime
    end_date: datetime
    window_days: int
    summary: AnalysisSummary
    category_analysis: list[CategoryAnalysis] = Field(default_factory=list)
    usage_patterns: list[UsagePattern] = Field(default_factory=list)
    waste_analysis: WasteAnalysis = Field(default_factory=WasteAnalysis)
    recommendations: list[Recommendation] = Field(default_factory=list)


class PurchaseSuggestion(BaseModel):
    """A restock suggestion derived from stock level and consumption rate."""

    food_id: str
    food_name: str
    category: str = "Other"
    suggested_quantity: float
    unit: str
    reason: str
    priority: Priority = Priority.MEDIUM
    current_stock: float = 0.0
    daily_usage: float | None = None
    estimated_cost: float | None = None


class EfficiencyScore(BaseModel):
    """0-100 scores describing how well inventory is managed."""

    overall_score: int
    usage_efficiency: int
    waste_reduction: int
    storage_optimization: int
    purchase_planning: int
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)


class InventorySnapshot(BaseModel):
    """Inventory as it stood at the end of one day."""

    day: date
    total_items: int = 0
    total_value: float = 0.0
    fresh_items: int = 0
    expiring_items: int = 0
    expired_items: int = 0


class UsageTrendPoint(BaseModel):
    day: date
    usage_count: int = 0
    total_usage: float = 0.0


class WasteTrendPoint(BaseModel):
    day: date
    waste_count: int = 0
    total_waste: float = 0.0
    waste_value: float = 0.0


class InventoryTrends(BaseModel):
    """Daily inventory, usage and waste series, oldest day first."""

    owner_id: str
    days: int
    daily_inventory: list[InventorySnapshot] = Field(default_factory=list)
    usage_trend: list[UsageTrendPoint] = Field(default_factory=list)
    waste_trend: list[WasteTrendPoint] = Field(default_factory=list)


# --- Shopping ---


class ShoppingSuggestion(BaseModel):
    """A merged, prioritized shopping suggestion."""

    food_id: str
    food_name: str
    category: str = "Other"
    suggested_quantity: float
    unit: str
    priority: Priority = Priority.MEDIUM
    estimated_price: float | None = None
    current_stock: float = 0.0
    min_stock_threshold: float | None = None
    reasons: list[str] = Field(default_factory=list)


class ShoppingListItem(BaseModel):
    """An entry on a persisted shopping list."""

    id: UUID = Field(default_factory=uuid4)
    food_id: str
    food_name: str
    quantity: float
    unit: str
    category: str = "Other"
    priority: Priority = Priority.MEDIUM
    estimated_price: float | None = None
    purchased: bool = False
    purchased_at: datetime | None = None
    actual_price: float | None = None


class ShoppingList(BaseModel):
    """A persisted shopping list."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    name: str
    budget: float | None = None
    items: list[ShoppingListItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.items) and all(i.purchased for i in self.items)


class InventoryShoppingList(BaseModel):
    """A created shopping list with its seeding suggestions embedded."""

    shopping_list: ShoppingList
    suggestions: list[ShoppingSuggestion] = Field(default_factory=list)
    total_estimated_cost: float = 0.0
    high_priority_count: int = 0
    medium_priority_count: int = 0
    low_priority_count: int = 0


class PurchasedItem(BaseModel):
    """What was actually bought for a shopping list entry."""

    shopping_item_id: UUID
    actual_quantity: float
    actual_price: float | None = None
    expiry_date: datetime | None = None


class PurchaseSyncResult(BaseModel):
    """Outcome of moving purchased shopping items into inventory."""

    list_id: UUID
    added_items: int = 0
    updated_items: int = 0
    errors: list[str] = Field(default_factory=list)
    list_completed: bool = False

    @property
    def success(self) -> bool:
        return not self.errors


class ShoppingListOptimization(BaseModel):
    """Proposed changes to a shopping list given current stock."""

    list_id: UUID
    optimized_items: list[ShoppingSuggestion] = Field(default_factory=list)
    removed_item_ids: list[UUID] = Field(default_factory=list)
    added_items: list[ShoppingSuggestion] = Field(default_factory=list)
    savings: float = 0.0


# --- Catalog ---


class FoodInfo(BaseModel):
    """Read-only food catalog entry."""

    id: str
    name: str
    category: str = "Other"
    nutrients: dict[str, float] = Field(default_factory=dict)


class RecipeIngredient(BaseModel):
    """One ingredient line of a recipe."""

    food_id: str
    quantity: float = Field(gt=0)
    unit: str


class Recipe(BaseModel):
    """Read-only recipe catalog entry."""

    id: str
    name: str
    category: str = "Other"
    servings: int = 1
    ingredients: list[RecipeIngredient] = Field(default_factory=list)


# --- Recipe matching ---


class IngredientAvailability(BaseModel):
    """How well current stock covers one recipe ingredient."""

    food_id: str
    food_name: str
    required_quantity: float
    unit: str
    available_quantity: float
    shortage_quantity: float
    stock_status: str  # "sufficient", "insufficient", "out_of_stock"


class RecipeMatch(BaseModel):
    """A recipe annotated with cookability against current stock."""

    recipe_id: str
    name: str
    category: str = "Other"
    servings: int = 1
    can_cook: bool
    match_score: int = 0
    ingredients: list[IngredientAvailability] = Field(default_factory=list)
    missing_ingredients: list[IngredientAvailability] = Field(default_factory=list)


class RecipeRecommendation(BaseModel):
    """Ranked recipe matches with counters."""

    recipes: list[RecipeMatch] = Field(default_factory=list)
    total_recipes: int = 0
    can_cook_count: int = 0
    partially_available_count: int = 0
    unavailable_count: int = 0


class UsedIngredient(BaseModel):
    """Stock consumed for one ingredient while cooking."""

    food_id: str
    food_name: str
    used_quantity: float
    unit: str


class CookResult(BaseModel):
    """Outcome of cooking a recipe from inventory."""

    recipe_id: str
    recipe_name: str
    servings: int
    used_ingredients: list[UsedIngredient] = Field(default_factory=list)
    usage_records: list[UsageRecord] = Field(default_factory=list)


class RecipeShoppingItem(BaseModel):
    """Aggregate shortfall for one food across a set of recipes."""

    food_id: str
    food_name: str
    required_quantity: float
    unit: str
    current_stock: float
    need_to_buy: float
    estimated_price: float | None = None


class RecipeShoppingList(BaseModel):
    """Shopping list computed for a set of recipes."""

    items: list[RecipeShoppingItem] = Field(default_factory=list)
    total_estimated_cost: float = 0.0
    can_cook_recipes: list[str] = Field(default_factory=list)
    cannot_cook_recipes: list[str] = Field(default_factory=list)


class RecipeCategoryStats(BaseModel):
    category: str
    count: int = 0
    can_cook_count: int = 0


class CookedRecipe(BaseModel):
    recipe_name: str
    cooked_at: datetime
    ingredient_count: int = 0


class InventoryRecipeStats(BaseModel):
    """How much of the recipe catalog current stock supports."""

    total_recipes: int = 0
    can_cook_count: int = 0
    partially_available_count: int = 0
    top_categories: list[RecipeCategoryStats] = Field(default_factory=list)
    recent_cooked: list[CookedRecipe] = Field(default_factory=list)

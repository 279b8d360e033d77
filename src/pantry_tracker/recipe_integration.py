"""Recipe matching and cooking against current inventory."""

import logging
from collections.abc import Iterable

from .catalog import FoodCatalog, RecipeCatalog
from .exceptions import NotFoundError, ValidationError
from .inventory_tracker import QUANTITY_PRECISION, InventoryTracker
from .models import (
    CookedRecipe,
    CookResult,
    IngredientAvailability,
    IngredientRequest,
    InventoryRecipeStats,
    Recipe,
    RecipeCategoryStats,
    RecipeMatch,
    RecipeRecommendation,
    RecipeShoppingItem,
    RecipeShoppingList,
    UsageType,
    UsedIngredient,
)

logger = logging.getLogger(__name__)

SUFFICIENT = "sufficient"
INSUFFICIENT = "insufficient"
OUT_OF_STOCK = "out_of_stock"

TOP_RECIPE_CATEGORIES = 5
RECENT_COOKS_LIMIT = 10


def stock_status(available: float, required: float) -> str:
    if available <= 0:
        return OUT_OF_STOCK
    if available < required:
        return INSUFFICIENT
    return SUFFICIENT


def required_quantities(recipe: Recipe, servings: int = 1) -> dict[str, float]:
    """Total quantity per food for a recipe, scaled by servings."""
    required: dict[str, float] = {}
    for ingredient in recipe.ingredients:
        required[ingredient.food_id] = round(
            required.get(ingredient.food_id, 0.0) + ingredient.quantity * servings,
            QUANTITY_PRECISION,
        )
    return required


class RecipeIntegration:
    """Matches recipes to stock and cooks them from inventory."""

    def __init__(
        self,
        tracker: InventoryTracker,
        recipe_catalog: RecipeCatalog,
        food_catalog: FoodCatalog | None = None,
    ):
        """Initialize recipe integration.

        Args:
            tracker: Inventory tracker used for stock levels and deductions
            recipe_catalog: Source of recipes
            food_catalog: Optional source of food names
        """
        self.tracker = tracker
        self.recipe_catalog = recipe_catalog
        self.food_catalog = food_catalog

    def _get_recipe(self, recipe_id: str) -> Recipe:
        recipe = self.recipe_catalog.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError("recipe", recipe_id)
        return recipe

    def _food_names(self, owner_id: str) -> dict[str, str]:
        return {i.food_id: i.display_name for i in self.tracker.get_inventory_items(owner_id)}

    def _food_name(self, food_id: str, known: dict[str, str]) -> str:
        if self.food_catalog is not None:
            food = self.food_catalog.get_food(food_id)
            if food is not None:
                return food.name
        return known.get(food_id, food_id)

    def _match(
        self,
        recipe: Recipe,
        available: dict[str, float],
        names: dict[str, str],
    ) -> RecipeMatch:
        units = {i.food_id: i.unit for i in recipe.ingredients}
        ingredients = []
        for food_id, required in required_quantities(recipe).items():
            have = available.get(food_id, 0.0)
            ingredients.append(
                IngredientAvailability(
                    food_id=food_id,
                    food_name=self._food_name(food_id, names),
                    required_quantity=required,
                    unit=units[food_id],
                    available_quantity=have,
                    shortage_quantity=round(max(0.0, required - have), QUANTITY_PRECISION),
                    stock_status=stock_status(have, required),
                )
            )

        missing = [i for i in ingredients if i.stock_status != SUFFICIENT]
        sufficient = len(ingredients) - len(missing)
        return RecipeMatch(
            recipe_id=recipe.id,
            name=recipe.name,
            category=recipe.category,
            servings=recipe.servings,
            can_cook=not missing,
            match_score=round(sufficient / len(ingredients) * 100) if ingredients else 0,
            ingredients=ingredients,
            missing_ingredients=missing,
        )

    def recommend_recipes(
        self,
        owner_id: str,
        require_all_ingredients: bool = False,
        category: str | None = None,
        limit: int = 20,
    ) -> RecipeRecommendation:
        """Rank recipes by how well unexpired stock covers them.

        Args:
            owner_id: Member whose stock is checked
            require_all_ingredients: Only return recipes that can be cooked now
            category: Only recipes of this category (case-insensitive)
            limit: Maximum recipes returned

        Returns:
            RecipeRecommendation, cookable recipes first, then fewest missing
        """
        available = self.tracker.available_quantities(owner_id, include_expired=False)
        names = self._food_names(owner_id)

        matches = [
            self._match(recipe, available, names)
            for recipe in self.recipe_catalog.list_recipes()
            if not category or recipe.category.lower() == category.lower()
        ]

        total = len(matches)
        can_cook = sum(1 for m in matches if m.can_cook)
        partial = sum(
            1
            for m in matches
            if not m.can_cook and any(i.available_quantity > 0 for i in m.ingredients)
        )

        if require_all_ingredients:
            matches = [m for m in matches if m.can_cook]
        matches.sort(
            key=lambda m: (not m.can_cook, len(m.missing_ingredients), -m.match_score, m.name)
        )

        return RecipeRecommendation(
            recipes=matches[:limit],
            total_recipes=total,
            can_cook_count=can_cook,
            partially_available_count=partial,
            unavailable_count=total - can_cook - partial,
        )

    def cook_recipe(self, owner_id: str, recipe_id: str, servings: int = 1) -> CookResult:
        """Consume a recipe's ingredients from unexpired stock.

        Ingredient quantities are multiplied by servings. Nothing is deducted
        unless every ingredient is fully covered.

        Args:
            owner_id: Member whose stock is used
            recipe_id: Recipe to cook
            servings: Multiplier applied to ingredient quantities

        Returns:
            CookResult with the consumed ingredients and usage records

        Raises:
            ValidationError: If servings is not positive
            NotFoundError: If the recipe is unknown
            InsufficientStockError: If any ingredient is short
        """
        if servings <= 0:
            raise ValidationError(f"Servings must be positive, got {servings}")
        recipe = self._get_recipe(recipe_id)

        units = {i.food_id: i.unit for i in recipe.ingredients}
        requests = [
            IngredientRequest(food_id=food_id, quantity=quantity, unit=units[food_id])
            for food_id, quantity in required_quantities(recipe, servings).items()
        ]
        records = self.tracker.use_inventory_for_recipe(
            owner_id,
            requests,
            label=recipe.name,
            usage_type=UsageType.RECIPE,
            include_expired=False,
        )

        names = self._food_names(owner_id)
        used: dict[str, float] = {}
        for record in records:
            total = used.get(record.food_id, 0.0) + record.used_quantity
            used[record.food_id] = round(total, QUANTITY_PRECISION)

        logger.info("Cooked %s x%d for %s", recipe.name, servings, owner_id)
        return CookResult(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            servings=servings,
            used_ingredients=[
                UsedIngredient(
                    food_id=food_id,
                    food_name=self._food_name(food_id, names),
                    used_quantity=quantity,
                    unit=units[food_id],
                )
                for food_id, quantity in used.items()
            ],
            usage_records=records,
        )

    def generate_recipe_shopping_list(
        self, owner_id: str, recipe_ids: Iterable[str], servings: int = 1
    ) -> RecipeShoppingList:
        """Work out what to buy to cook a set of recipes.

        Shortfalls are computed on the combined requirement of all recipes.
        Each recipe is separately marked cookable if current stock covers it
        on its own.

        Args:
            owner_id: Member whose stock is checked
            recipe_ids: Recipes to plan for
            servings: Multiplier applied to every recipe

        Returns:
            RecipeShoppingList

        Raises:
            ValidationError: If servings is not positive
            NotFoundError: If a recipe is unknown
        """
        if servings <= 0:
            raise ValidationError(f"Servings must be positive, got {servings}")
        recipes = [self._get_recipe(recipe_id) for recipe_id in recipe_ids]

        available = self.tracker.available_quantities(owner_id, include_expired=False)
        items = self.tracker.get_inventory_items(owner_id)
        names = {i.food_id: i.display_name for i in items}
        prices = {i.food_id: i.unit_price for i in sorted(items, key=lambda i: i.created_at)}

        result = RecipeShoppingList()
        totals: dict[str, float] = {}
        units: dict[str, str] = {}
        for recipe in recipes:
            required = required_quantities(recipe, servings)
            if all(available.get(f, 0.0) >= q for f, q in required.items()):
                result.can_cook_recipes.append(recipe.name)
            else:
                result.cannot_cook_recipes.append(recipe.name)
            for food_id, quantity in required.items():
                totals[food_id] = round(totals.get(food_id, 0.0) + quantity, QUANTITY_PRECISION)
            for ingredient in recipe.ingredients:
                units.setdefault(ingredient.food_id, ingredient.unit)

        for food_id, required in totals.items():
            stock = available.get(food_id, 0.0)
            need = round(max(0.0, required - stock), QUANTITY_PRECISION)
            if need <= 0:
                continue
            price = prices.get(food_id, 0.0)
            result.items.append(
                RecipeShoppingItem(
                    food_id=food_id,
                    food_name=self._food_name(food_id, names),
                    required_quantity=required,
                    unit=units[food_id],
                    current_stock=stock,
                    need_to_buy=need,
                    estimated_price=round(need * price, 2) if price > 0 else None,
                )
            )

        result.total_estimated_cost = round(sum(i.estimated_price or 0.0 for i in result.items), 2)
        return result

    def get_inventory_recipe_stats(self, owner_id: str) -> InventoryRecipeStats:
        """Summarise which recipes current stock supports and what was cooked.

        Args:
            owner_id: Member whose stock and history are read

        Returns:
            InventoryRecipeStats with the five categories with the most
            cookable recipes and the ten most recent cooks
        """
        available = self.tracker.available_quantities(owner_id, include_expired=False)
        names = self._food_names(owner_id)
        matches = [self._match(r, available, names) for r in self.recipe_catalog.list_recipes()]

        stats = InventoryRecipeStats(total_recipes=len(matches))
        categories: dict[str, RecipeCategoryStats] = {}
        for match in matches:
            category = categories.setdefault(
                match.category, RecipeCategoryStats(category=match.category)
            )
            category.count += 1
            if match.can_cook:
                stats.can_cook_count += 1
                category.can_cook_count += 1
            elif any(i.available_quantity > 0 for i in match.ingredients):
                stats.partially_available_count += 1
        stats.top_categories = sorted(
            categories.values(), key=lambda c: (-c.can_cook_count, -c.count, c.category)
        )[:TOP_RECIPE_CATEGORIES]

        # One cook writes all of its usage records with the same timestamp
        cooks: dict[tuple, set[str]] = {}
        for record in self.tracker.get_usage_records(owner_id, usage_type=UsageType.RECIPE):
            key = (record.created_at, record.recipe_name or "Unnamed recipe")
            cooks.setdefault(key, set()).add(record.food_id)
        stats.recent_cooked = [
            CookedRecipe(recipe_name=name, cooked_at=cooked_at, ingredient_count=len(foods))
            for (cooked_at, name), foods in list(cooks.items())[:RECENT_COOKS_LIMIT]
        ]
        return stats

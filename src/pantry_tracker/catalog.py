"""Read-only food and recipe catalogs."""

import logging
import tomllib
from pathlib import Path
from typing import Protocol

import pydantic

from .exceptions import PersistenceError, ValidationError
from .models import FoodInfo, Recipe

logger = logging.getLogger(__name__)


class FoodCatalog(Protocol):
    """Lookup of food metadata by id."""

    def get_food(self, food_id: str) -> FoodInfo | None: ...


class RecipeCatalog(Protocol):
    """Lookup of recipes."""

    def get_recipe(self, recipe_id: str) -> Recipe | None: ...
    def list_recipes(self) -> list[Recipe]: ...


class StaticCatalog:
    """In-memory food and recipe catalog.

    Implements both FoodCatalog and RecipeCatalog. Usually loaded from a TOML
    file with ``[[foods]]`` and ``[[recipes]]`` tables:

        [[foods]]
        id = "rice"
        name = "Rice"
        category = "Grains"

        [[recipes]]
        id = "fried-rice"
        name = "Fried Rice"
        servings = 2
        ingredients = [
            { food_id = "rice", quantity = 200, unit = "g" },
        ]
    """

    def __init__(
        self,
        foods: list[FoodInfo] | None = None,
        recipes: list[Recipe] | None = None,
    ):
        self._foods = {f.id: f for f in foods or []}
        self._recipes = {r.id: r for r in recipes or []}

    @classmethod
    def from_toml(cls, path: Path) -> "StaticCatalog":
        """Load a catalog from a TOML file.

        Args:
            path: Catalog file

        Returns:
            StaticCatalog with the file's foods and recipes

        Raises:
            PersistenceError: If the file cannot be read or parsed
            ValidationError: If an entry is malformed
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise PersistenceError(f"Cannot load catalog {path}: {e}") from e

        try:
            foods = [FoodInfo(**entry) for entry in data.get("foods", [])]
            recipes = [Recipe(**entry) for entry in data.get("recipes", [])]
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid catalog entry in {path}: {e}") from e

        logger.debug("Loaded %d foods and %d recipes from %s", len(foods), len(recipes), path)
        return cls(foods=foods, recipes=recipes)

    def get_food(self, food_id: str) -> FoodInfo | None:
        return self._foods.get(food_id)

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        return self._recipes.get(recipe_id)

    def list_recipes(self) -> list[Recipe]:
        return list(self._recipes.values())

    def add_food(self, food: FoodInfo) -> None:
        self._foods[food.id] = food

    def add_recipe(self, recipe: Recipe) -> None:
        self._recipes[recipe.id] = recipe

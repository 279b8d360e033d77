"""Tests for the TOML food and recipe catalog."""

import pytest

from pantry_tracker.catalog import StaticCatalog
from pantry_tracker.exceptions import PersistenceError, ValidationError
from pantry_tracker.models import FoodInfo, Recipe, RecipeIngredient


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.toml"
    path.write_text("""
[[foods]]
id = "rice"
name = "Rice"
category = "Grains"
nutrients = { kcal = 130.0 }

[[foods]]
id = "egg"
name = "Egg"

[[recipes]]
id = "fried-rice"
name = "Fried Rice"
category = "Main"
servings = 2
ingredients = [
    { food_id = "rice", quantity = 200, unit = "g" },
    { food_id = "egg", quantity = 2, unit = "pcs" },
]
""")
    return path


class TestStaticCatalog:
    """Tests for StaticCatalog."""

    def test_from_toml(self, catalog_file):
        catalog = StaticCatalog.from_toml(catalog_file)

        rice = catalog.get_food("rice")
        assert rice.category == "Grains"
        assert rice.nutrients == {"kcal": 130.0}
        assert catalog.get_food("egg").category == "Other"

        [recipe] = catalog.list_recipes()
        assert recipe.name == "Fried Rice"
        assert [i.food_id for i in recipe.ingredients] == ["rice", "egg"]
        assert catalog.get_recipe("fried-rice") == recipe

    def test_unknown_ids(self, catalog_file):
        catalog = StaticCatalog.from_toml(catalog_file)
        assert catalog.get_food("caviar") is None
        assert catalog.get_recipe("soup") is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            StaticCatalog.from_toml(tmp_path / "missing.toml")

    def test_bad_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[[foods]\nid = ")
        with pytest.raises(PersistenceError):
            StaticCatalog.from_toml(path)

    def test_invalid_ingredient(self, tmp_path):
        """Ingredient quantities must be positive."""
        path = tmp_path / "catalog.toml"
        path.write_text("""
[[recipes]]
id = "air"
name = "Air"
ingredients = [{ food_id = "rice", quantity = 0, unit = "g" }]
""")
        with pytest.raises(ValidationError):
            StaticCatalog.from_toml(path)

    def test_add_entries(self):
        catalog = StaticCatalog()
        catalog.add_food(FoodInfo(id="salt", name="Salt"))
        assert catalog.get_food("salt").name == "Salt"
        assert catalog.list_recipes() == []
        catalog.add_recipe(
            Recipe(
                id="salted-rice",
                name="Salted Rice",
                ingredients=[RecipeIngredient(food_id="salt", quantity=2, unit="g")],
            )
        )
        assert [r.id for r in catalog.list_recipes()] == ["salted-rice"]
        assert catalog.get_recipe("salted-rice").ingredients[0].food_id == "salt"

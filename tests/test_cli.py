"""Tests for CLI commands."""

import json
from datetime import date, timedelta

import pytest
from typer.testing import CliRunner

from pantry_tracker.main import app

runner = CliRunner()

CATALOG = """
[[foods]]
id = "rice"
name = "Rice"
category = "Grains"

[[foods]]
id = "tomato"
name = "Tomato"
category = "Vegetables"

[[recipes]]
id = "tomato-rice"
name = "Tomato Rice"
ingredients = [
    { food_id = "tomato", quantity = 200, unit = "g" },
    { food_id = "rice", quantity = 150, unit = "g" },
]
"""


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.toml"
    path.write_text(CATALOG)
    return path


@pytest.fixture
def cli(temp_data_dir, catalog_file):
    """Run a command in JSON mode against a temporary data directory."""

    def invoke(*args, owner="alice"):
        return runner.invoke(
            app,
            [
                "--json",
                "--data-dir",
                str(temp_data_dir),
                "--catalog",
                str(catalog_file),
                "--owner",
                owner,
                *args,
            ],
        )

    return invoke


def payload(result):
    return json.loads(result.stdout)


def in_days(days):
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture
def rice_id(cli):
    result = cli(
        "inventory", "add", "rice", "-q", "1000", "-u", "g", "-p", "4", "--expires", in_days(60)
    )
    return payload(result)["data"]["inventory_item"]["id"]


class TestInventoryCommands:
    """Tests for the inventory command group."""

    def test_add_uses_catalog(self, cli):
        """Name and category come from the catalog."""
        result = cli("inventory", "add", "rice", "-q", "500", "-u", "g")
        assert result.exit_code == 0

        data = payload(result)
        assert data["success"] is True
        item = data["data"]["inventory_item"]
        assert item["food_name"] == "Rice"
        assert item["category"] == "Grains"
        assert item["quantity"] == 500
        assert item["owner_id"] == "alice"

    def test_add_rejects_bad_date(self, cli):
        result = cli("inventory", "add", "rice", "--expires", "next week")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "VALIDATION_ERROR"

    def test_list_and_show(self, cli, rice_id):
        cli("inventory", "add", "tomato", "-q", "300", "-u", "g", "--expires", in_days(1))

        data = payload(cli("inventory", "list"))
        items = data["data"]["inventory"]
        # expiring items sort ahead of fresh ones
        assert [i["food_id"] for i in items] == ["tomato", "rice"]
        assert items[0]["status"] == "expiring"

        expiring = payload(cli("inventory", "list", "--status", "expiring"))["data"]["inventory"]
        assert len(expiring) == 1

        shown = payload(cli("inventory", "show", rice_id))["data"]["inventory_item"]
        assert shown["id"] == rice_id

    def test_owners_are_isolated(self, cli, rice_id):
        assert payload(cli("inventory", "list", owner="bob"))["data"]["inventory"] == []

        result = cli("inventory", "show", rice_id, owner="bob")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "NOT_FOUND"

    def test_use_and_restock(self, cli, rice_id):
        used = cli("inventory", "use", rice_id, "-q", "250")
        assert used.exit_code == 0
        assert payload(used)["data"]["usage"][0]["used_quantity"] == 250

        restocked = payload(cli("inventory", "restock", rice_id, "-q", "500"))
        assert restocked["data"]["inventory_item"]["quantity"] == 1250

    def test_use_more_than_available(self, cli, rice_id):
        result = cli("inventory", "use", rice_id, "-q", "5000")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INSUFFICIENT_STOCK"

    def test_update(self, cli, rice_id):
        result = cli("inventory", "update", rice_id, "--threshold", "2000", "-l", "cabinet")
        item = payload(result)["data"]["inventory_item"]
        assert item["storage_location"] == "cabinet"
        assert item["status"] == "low_stock"

    def test_update_without_changes_warns(self, cli, rice_id):
        result = cli("inventory", "update", rice_id)
        assert result.exit_code == 0
        assert payload(result) == {"warning": "Nothing to update"}

    def test_remove(self, cli, rice_id):
        assert cli("inventory", "remove", rice_id).exit_code == 0
        assert payload(cli("inventory", "list"))["data"]["inventory"] == []
        assert cli("inventory", "remove", rice_id).exit_code == 1

    def test_stats(self, cli, rice_id):
        stats = payload(cli("inventory", "stats"))["data"]["stats"]
        assert stats["total_items"] == 1
        assert stats["total_value"] == 4.0
        assert stats["fresh_items"] == 1


class TestExpiryCommands:
    """Tests for the expiry command group."""

    @pytest.fixture
    def expired_id(self, cli):
        result = cli(
            "inventory", "add", "tomato", "-q", "300", "-u", "g",
            "-p", "3", "--expires", in_days(-2),
        )
        return payload(result)["data"]["inventory_item"]["id"]

    def test_alerts(self, cli, expired_id, rice_id):
        alerts = payload(cli("expiry", "alerts"))["data"]["alerts"]
        assert [a["food_id"] for a in alerts["expired_items"]] == ["tomato"]
        assert alerts["expiring_items"] == []
        assert alerts["total_expired_value"] == 3.0

    def test_sweep_is_idempotent(self, cli, expired_id, temp_data_dir):
        """A stale stored status is corrected once."""
        inventory_file = temp_data_dir / "inventory.json"
        rows = json.loads(inventory_file.read_text())
        rows[0]["status"] = "fresh"
        inventory_file.write_text(json.dumps(rows))

        first = payload(cli("expiry", "sweep"))
        assert first["data"]["changed"] == 1
        assert payload(cli("expiry", "sweep", "--all"))["data"]["changed"] == 0

    def test_discard(self, cli, expired_id):
        result = cli("expiry", "discard", expired_id, "--reason", "spoiled")
        assert result.exit_code == 0
        sweep = payload(result)["data"]["sweep"]
        assert sweep["processed_ids"] == [expired_id]
        assert sweep["waste_records"][0]["reason"] == "spoiled"

        report = payload(cli("analysis", "report"))["data"]["analysis"]
        assert report["summary"]["wasted_items"] == 1

    def test_discard_unknown_only(self, cli):
        result = cli("expiry", "discard", "nope")
        assert result.exit_code == 1
        assert '"failed_ids"' in result.stdout

    def test_notify(self, cli, expired_id):
        notifications = payload(cli("expiry", "notify"))["data"]["notifications"]
        assert [n["kind"] for n in notifications] == ["expired"]

    def test_analysis(self, cli, expired_id, rice_id):
        analysis = payload(cli("expiry", "analysis"))["data"]["expiry_analysis"]
        assert analysis["total_items"] == 2

    def test_trends(self, cli, expired_id):
        cli("expiry", "discard", expired_id)

        trends = payload(cli("expiry", "trends", "--days", "7"))["data"]["expiry_trends"]
        assert len(trends["daily_wasted"]) == 7
        assert trends["daily_expired"][-1] == {"day": in_days(0), "count": 1}
        assert trends["top_waste_categories"][0]["category"] == "Vegetables"


class TestAnalysisCommands:
    def test_suggestions_and_efficiency(self, cli):
        added = cli("inventory", "add", "rice", "-q", "100", "-u", "g", "--threshold", "500")
        assert added.exit_code == 0

        suggestions = payload(cli("analysis", "suggestions"))["data"]["purchase_suggestions"]
        assert [s["food_id"] for s in suggestions] == ["rice"]
        assert suggestions[0]["priority"] == "medium"

        score = payload(cli("analysis", "efficiency"))["data"]["efficiency"]
        assert 0 <= score["overall_score"] <= 100

    def test_trends(self, cli, rice_id):
        cli("inventory", "use", rice_id, "-q", "100")

        trends = payload(cli("analysis", "trends", "-d", "3"))["data"]["trends"]
        assert [s["total_items"] for s in trends["daily_inventory"]] == [0, 0, 1]
        assert trends["usage_trend"] == [
            {"day": in_days(0), "usage_count": 1, "total_usage": 100.0}
        ]


class TestShoppingCommands:
    """Tests for the shopping command group."""

    def test_create_and_sync(self, cli, rice_id):
        cli("inventory", "update", rice_id, "--threshold", "2000")

        assert payload(cli("shopping", "suggest"))["data"]["shopping_suggestions"]

        created = payload(cli("shopping", "create", "--name", "Weekly"))
        shopping_list = created["data"]["shopping_list"]["shopping_list"]
        [entry] = shopping_list["items"]
        assert entry["food_id"] == "rice"

        [listed] = payload(cli("shopping", "lists"))["data"]["lists"]
        assert listed["name"] == "Weekly"

        result = cli("shopping", "sync", shopping_list["id"], "--item", f"{entry['id']}:1000:4")
        assert result.exit_code == 0
        sync = payload(result)["data"]["sync"]
        assert sync["updated_items"] == 1
        assert sync["list_completed"] is True

        item = payload(cli("inventory", "show", rice_id))["data"]["inventory_item"]
        assert item["quantity"] == 2000

    def test_optimize(self, cli, rice_id):
        cli("inventory", "update", rice_id, "--threshold", "2000")
        created = payload(cli("shopping", "create"))["data"]["shopping_list"]
        list_id = created["shopping_list"]["id"]

        result = cli("shopping", "optimize", list_id)
        assert result.exit_code == 0
        optimization = payload(result)["data"]["optimization"]
        [kept] = optimization["optimized_items"]
        assert kept["food_id"] == "rice"
        assert kept["reasons"] == ["Not enough in stock"]
        assert optimization["removed_item_ids"] == []

    def test_sync_rejects_malformed_item(self, cli, rice_id):
        result = cli("shopping", "sync", "not-a-list", "--item", "abc")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "VALIDATION_ERROR"


class TestRecipeCommands:
    """Tests for the recipes command group."""

    def test_recommend_and_cook(self, cli, rice_id):
        cli("inventory", "add", "tomato", "-q", "300", "-u", "g", "--expires", in_days(5))

        recommendation = payload(cli("recipes", "recommend", "--cookable"))["data"]["recipes"]
        assert [r["recipe_id"] for r in recommendation["recipes"]] == ["tomato-rice"]

        cooked = cli("recipes", "cook", "tomato-rice")
        assert cooked.exit_code == 0
        assert payload(cooked)["data"]["cook"]["recipe_name"] == "Tomato Rice"

        short = cli("recipes", "cook", "tomato-rice")
        assert short.exit_code == 1
        assert payload(short)["error_code"] == "INSUFFICIENT_STOCK"

    def test_shopping_list(self, cli):
        result = payload(cli("recipes", "shopping-list", "tomato-rice", "-s", "2"))
        items = result["data"]["recipe_shopping_list"]["items"]
        needed = {i["food_id"]: i["need_to_buy"] for i in items}
        assert needed == {"tomato": 400, "rice": 300}

    def test_stats(self, cli, rice_id):
        cli("inventory", "add", "tomato", "-q", "300", "-u", "g", "--expires", in_days(5))
        cli("recipes", "cook", "tomato-rice")

        stats = payload(cli("recipes", "stats"))["data"]["recipe_stats"]
        assert stats["total_recipes"] == 1
        assert stats["can_cook_count"] == 0
        assert stats["partially_available_count"] == 1
        assert [c["recipe_name"] for c in stats["recent_cooked"]] == ["Tomato Rice"]

    def test_unknown_recipe(self, cli):
        result = cli("recipes", "cook", "pizza")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "NOT_FOUND"


class TestRichOutput:
    """Smoke tests for the human-readable output."""

    def test_list_table(self, temp_data_dir, catalog_file):
        base = ["--data-dir", str(temp_data_dir), "--catalog", str(catalog_file)]
        runner.invoke(app, [*base, "inventory", "add", "rice", "-q", "500", "-u", "g"])

        result = runner.invoke(app, [*base, "inventory", "list"])

        assert result.exit_code == 0
        assert "Rice" in result.stdout

    def test_recipes_need_catalog(self, temp_data_dir):
        result = runner.invoke(app, ["--data-dir", str(temp_data_dir), "recipes", "recommend"])
        assert result.exit_code == 1
        assert "No recipe catalog" in result.stdout

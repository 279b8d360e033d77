"""CLI entry point for Pantry Tracker."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated
from uuid import UUID

import typer
from rich.console import Console
from rich.logging import RichHandler

from .catalog import StaticCatalog
from .config import ConfigManager
from .data_store import BackendType, InventoryStore, create_data_store
from .exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PantryError,
    ValidationError,
)
from .expiry_monitor import ExpiryMonitor
from .inventory_analyzer import InventoryAnalyzer
from .inventory_tracker import InventoryTracker
from .models import InventoryStatus, PurchasedItem, StorageLocation, WasteReason
from .notifications import NotificationOutbox
from .output_formatter import OutputFormatter
from .recipe_integration import RecipeIntegration
from .shopping_integration import ShoppingIntegration
from .shopping_lists import StoredShoppingLists

app = typer.Typer(
    name="pantry",
    help="Household inventory, expiry and waste tracking",
    no_args_is_help=True,
)

# Global state (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
owner: str = "default"
data_store: InventoryStore | None = None
catalog: StaticCatalog | None = None
catalog_path: Path | None = None
tracker: InventoryTracker | None = None
monitor: ExpiryMonitor | None = None
analyzer: InventoryAnalyzer | None = None
shopping_lists: StoredShoppingLists | None = None

ERROR_CODES = {
    NotFoundError: "NOT_FOUND",
    InsufficientStockError: "INSUFFICIENT_STOCK",
    ConflictError: "CONFLICT",
    ValidationError: "VALIDATION_ERROR",
}


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_store() -> InventoryStore:
    """Get or create the inventory store using config values."""
    global data_store
    if data_store is None:
        cfg = get_config()
        data_store = create_data_store(
            backend=BackendType(cfg.data.backend), data_dir=cfg.data.storage_dir
        )
    return data_store


def get_catalog() -> StaticCatalog | None:
    """Load the food/recipe catalog if one is configured."""
    global catalog
    if catalog is None:
        path = catalog_path or get_config().catalog.path
        if path is not None:
            catalog = StaticCatalog.from_toml(path)
    return catalog


def get_tracker() -> InventoryTracker:
    """Get or create InventoryTracker instance."""
    global tracker
    if tracker is None:
        cfg = get_config()
        tracker = InventoryTracker(
            get_data_store(),
            food_catalog=get_catalog(),
            expiring_window=cfg.expiry.expiring_window,
            max_retries=cfg.concurrency.max_retries,
            lookback_days=cfg.analysis.window_days,
        )
    return tracker


def get_monitor() -> ExpiryMonitor:
    """Get or create ExpiryMonitor instance."""
    global monitor
    if monitor is None:
        cfg = get_config()
        store = get_data_store()
        monitor = ExpiryMonitor(
            store,
            notification_service=NotificationOutbox(store) if cfg.expiry.notify else None,
            expiring_window=cfg.expiry.expiring_window,
        )
    return monitor


def get_analyzer() -> InventoryAnalyzer:
    """Get or create InventoryAnalyzer instance."""
    global analyzer
    if analyzer is None:
        cfg = get_config()
        analyzer = InventoryAnalyzer(
            get_data_store(),
            food_catalog=get_catalog(),
            expiring_window=cfg.expiry.expiring_window,
            window_days=cfg.analysis.window_days,
            restock_cover_days=cfg.analysis.restock_cover_days,
            waste_rate_threshold=cfg.analysis.waste_rate_threshold,
            repeated_waste_count=cfg.analysis.repeated_waste_count,
            max_suggestions=cfg.analysis.max_suggestions,
        )
    return analyzer


def get_shopping_lists() -> StoredShoppingLists:
    """Get or create the shopping list service."""
    global shopping_lists
    if shopping_lists is None:
        shopping_lists = StoredShoppingLists(get_data_store())
    return shopping_lists


def get_shopping_integration() -> ShoppingIntegration:
    return ShoppingIntegration(get_tracker(), get_analyzer(), get_shopping_lists())


def get_recipe_integration() -> RecipeIntegration:
    cat = get_catalog()
    if cat is None:
        raise ValidationError("No recipe catalog configured (use --catalog or [catalog] path)")
    return RecipeIntegration(get_tracker(), cat, food_catalog=cat)


def parse_expiry(value: str | None) -> datetime | None:
    """Parse an expiry given as YYYY-MM-DD or a full ISO timestamp."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid expiry date: {value}") from e


def fail(error: Exception) -> None:
    """Report an error and exit with status 1."""
    code = next((c for cls, c in ERROR_CODES.items() if isinstance(error, cls)), None)
    formatter.error(str(error), error_code=code)
    raise typer.Exit(code=1)


def configure_logging(level: str, verbose: bool) -> None:
    root = logging.getLogger("pantry_tracker")
    root.handlers.clear()
    root.addHandler(
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    )
    root.setLevel(logging.DEBUG if verbose else level.upper())
    root.propagate = False


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    owner_id: Annotated[
        str | None, typer.Option("--owner", "-o", help="Household member to act as")
    ] = None,
    catalog_file: Annotated[
        Path | None, typer.Option("--catalog", help="Food/recipe catalog TOML file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Pantry Tracker CLI - Know what you have before it goes off."""
    global formatter, config, owner, data_store, catalog, catalog_path
    global tracker, monitor, analyzer, shopping_lists

    formatter = OutputFormatter(json_mode=json_output)

    # Load config early
    config = ConfigManager()
    configure_logging(config.logging.level, verbose)

    # CLI options override config, which overrides defaults
    effective_data_dir = data_dir if data_dir else config.data.storage_dir
    backend = BackendType(config.data.backend)
    owner = owner_id or config.defaults.owner
    catalog_path = catalog_file

    data_store = create_data_store(backend=backend, data_dir=effective_data_dir)
    catalog = None
    tracker = None
    monitor = None
    analyzer = None
    shopping_lists = None


# --- Inventory ---

inv_app = typer.Typer(help="Inventory management commands")
app.add_typer(inv_app, name="inventory")


@inv_app.command("add")
def inv_add(
    food_id: Annotated[str, typer.Argument(help="Food id (catalog id or free-form)")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Quantity")] = 1.0,
    unit: Annotated[str | None, typer.Option("--unit", "-u", help="Unit of measurement")] = None,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Display name")] = None,
    category: Annotated[str | None, typer.Option("--category", "-c", help="Category")] = None,
    location: Annotated[
        StorageLocation | None, typer.Option("--location", "-l", help="Storage location")
    ] = None,
    expires: Annotated[
        str | None, typer.Option("--expires", help="Expiry date (YYYY-MM-DD)")
    ] = None,
    price: Annotated[float | None, typer.Option("--price", "-p", help="Price paid")] = None,
    source: Annotated[str | None, typer.Option("--source", help="Where it was bought")] = None,
    threshold: Annotated[
        float | None, typer.Option("--threshold", help="Minimum stock threshold")
    ] = None,
    brand: Annotated[str | None, typer.Option("--brand", "-b", help="Brand")] = None,
    notes: Annotated[str | None, typer.Option("--notes", help="Storage notes")] = None,
) -> None:
    """Add an item to household inventory."""
    try:
        cfg = get_config()
        item = get_tracker().create_inventory_item(
            owner,
            food_id,
            quantity,
            unit or cfg.defaults.unit,
            expiry_date=parse_expiry(expires),
            storage_location=location or StorageLocation(cfg.defaults.storage_location),
            purchase_price=price,
            purchase_source=source,
            min_stock_threshold=threshold,
            storage_notes=notes,
            brand=brand,
            food_name=name,
            category=category,
        )
        output_data = {
            "success": True,
            "message": f"Added {item.display_name} to inventory ({item.storage_location.value})",
            "data": {"inventory_item": item.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@inv_app.command("list")
def inv_list(
    status: Annotated[
        InventoryStatus | None, typer.Option("--status", "-s", help="Filter by status")
    ] = None,
    location: Annotated[
        StorageLocation | None, typer.Option("--location", "-l", help="Filter by location")
    ] = None,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Filter by category")
    ] = None,
    low_stock: Annotated[
        bool, typer.Option("--low-stock", help="Only items below their minimum")
    ] = False,
    limit: Annotated[int | None, typer.Option("--limit", help="Maximum items")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Items to skip")] = 0,
) -> None:
    """View household inventory."""
    try:
        items = get_tracker().get_inventory_items(
            owner,
            status=status,
            location=location,
            category=category,
            low_stock=True if low_stock else None,
            limit=limit,
            offset=offset,
        )
        formatter.output(
            {"success": True, "data": {"inventory": [i.model_dump(mode="json") for i in items]}}
        )
    except PantryError as e:
        fail(e)


@inv_app.command("show")
def inv_show(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
) -> None:
    """Show one inventory item."""
    try:
        item = get_tracker().get_inventory_item(item_id, owner)
        formatter.output(
            {"success": True, "data": {"inventory_item": item.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


@inv_app.command("update")
def inv_update(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
    quantity: Annotated[float | None, typer.Option("--quantity", "-q", help="Quantity")] = None,
    unit: Annotated[str | None, typer.Option("--unit", "-u", help="Unit")] = None,
    location: Annotated[
        StorageLocation | None, typer.Option("--location", "-l", help="Storage location")
    ] = None,
    expires: Annotated[
        str | None, typer.Option("--expires", help="Expiry date (YYYY-MM-DD)")
    ] = None,
    threshold: Annotated[
        float | None, typer.Option("--threshold", help="Minimum stock threshold")
    ] = None,
    notes: Annotated[str | None, typer.Option("--notes", help="Storage notes")] = None,
) -> None:
    """Change fields of an inventory item."""
    try:
        patch = {
            "quantity": quantity,
            "unit": unit,
            "storage_location": location,
            "expiry_date": parse_expiry(expires),
            "min_stock_threshold": threshold,
            "storage_notes": notes,
        }
        patch = {k: v for k, v in patch.items() if v is not None}
        if not patch:
            formatter.warning("Nothing to update")
            return

        item = get_tracker().update_inventory_item(item_id, owner, **patch)
        output_data = {
            "success": True,
            "message": f"Updated {item.display_name}",
            "data": {"inventory_item": item.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@inv_app.command("use")
def inv_use(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Quantity used")] = 1.0,
    notes: Annotated[str | None, typer.Option("--notes", help="Notes")] = None,
) -> None:
    """Record consumption of an inventory item."""
    try:
        record = get_tracker().use_inventory(item_id, owner, quantity, notes=notes)
        output_data = {
            "success": True,
            "message": f"Used {quantity:g} of {record.food_id}",
            "data": {"usage": [record.model_dump(mode="json")]},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@inv_app.command("restock")
def inv_restock(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Quantity added")] = 1.0,
    price: Annotated[
        float | None, typer.Option("--price", "-p", help="Price paid for the added quantity")
    ] = None,
    expires: Annotated[
        str | None, typer.Option("--expires", help="New expiry date (YYYY-MM-DD)")
    ] = None,
) -> None:
    """Add stock to an existing inventory item."""
    try:
        item = get_tracker().restock_inventory_item(
            item_id,
            quantity,
            owner_id=owner,
            purchase_price=price,
            expiry_date=parse_expiry(expires),
        )
        output_data = {
            "success": True,
            "message": f"Restocked {item.display_name} to {item.quantity:g} {item.unit}",
            "data": {"inventory_item": item.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@inv_app.command("remove")
def inv_remove(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
) -> None:
    """Remove an item from inventory."""
    try:
        removed = get_tracker().delete_inventory_item(item_id, owner)
        output_data = {
            "success": True,
            "message": f"Removed {removed.display_name} from inventory",
            "data": {"inventory_item": removed.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@inv_app.command("stats")
def inv_stats(
    days: Annotated[int | None, typer.Option("--days", "-d", help="Waste lookback days")] = None,
) -> None:
    """Show inventory statistics."""
    try:
        stats = get_tracker().get_inventory_stats(owner, lookback_days=days)
        formatter.output({"success": True, "data": {"stats": stats.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


# --- Expiry ---

expiry_app = typer.Typer(help="Expiry monitoring commands")
app.add_typer(expiry_app, name="expiry")


@expiry_app.command("sweep")
def expiry_sweep(
    all_owners: Annotated[
        bool, typer.Option("--all", help="Refresh every member's items")
    ] = False,
) -> None:
    """Recompute and store item statuses."""
    try:
        mon = get_monitor()
        if all_owners:
            changed = mon.update_all_expiry_statuses()
        else:
            changed = mon.update_expiry_statuses(owner)
        formatter.success(f"Updated status of {changed} item(s)", {"changed": changed})
    except PantryError as e:
        fail(e)


@expiry_app.command("alerts")
def expiry_alerts() -> None:
    """List expired and soon-to-expire items."""
    try:
        alerts = get_monitor().get_expiry_alerts(owner)
        formatter.output({"success": True, "data": {"alerts": alerts.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


@expiry_app.command("discard")
def expiry_discard(
    item_ids: Annotated[list[str], typer.Argument(help="Inventory item IDs to write off")],
    reason: Annotated[
        WasteReason, typer.Option("--reason", "-r", help="Why it was thrown away")
    ] = WasteReason.EXPIRED,
    notes: Annotated[str | None, typer.Option("--notes", help="Notes")] = None,
) -> None:
    """Write items off as waste."""
    try:
        result = get_monitor().handle_expired_items(owner, item_ids, reason=reason, notes=notes)
        output_data = {
            "success": not result.failed_ids,
            "message": f"Discarded {result.processed_count} item(s)",
            "data": {"sweep": result.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
        if result.failed_ids and not result.processed_ids:
            raise typer.Exit(code=1)
    except PantryError as e:
        fail(e)


@expiry_app.command("analysis")
def expiry_analysis() -> None:
    """Summarize expiry risk with advice."""
    try:
        analysis = get_monitor().get_expiry_analysis(owner)
        formatter.output(
            {"success": True, "data": {"expiry_analysis": analysis.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


@expiry_app.command("notify")
def expiry_notify() -> None:
    """Generate expiry notifications."""
    try:
        payloads = get_monitor().generate_expiry_notifications(owner)
        formatter.output(
            {
                "success": True,
                "data": {"notifications": [p.model_dump(mode="json") for p in payloads]},
            }
        )
    except PantryError as e:
        fail(e)


@expiry_app.command("trends")
def expiry_trends(
    days: Annotated[int, typer.Option("--days", "-d", help="Days to cover")] = 30,
) -> None:
    """Daily expired and wasted counts."""
    try:
        trends = get_monitor().get_expiry_trends(owner, days)
        formatter.output(
            {"success": True, "data": {"expiry_trends": trends.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


# --- Analysis ---

analysis_app = typer.Typer(help="Usage and waste analysis")
app.add_typer(analysis_app, name="analysis")


@analysis_app.command("report")
def analysis_report(
    days: Annotated[int | None, typer.Option("--days", "-d", help="Analysis window")] = None,
) -> None:
    """Full usage and waste analysis."""
    try:
        analysis = get_analyzer().get_inventory_analysis(owner, window_days=days)
        formatter.output({"success": True, "data": {"analysis": analysis.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


@analysis_app.command("suggestions")
def analysis_suggestions() -> None:
    """Purchase suggestions from stock levels and usage rate."""
    try:
        suggestions = get_analyzer().generate_purchase_suggestions(owner)
        formatter.output(
            {
                "success": True,
                "data": {"purchase_suggestions": [s.model_dump(mode="json") for s in suggestions]},
            }
        )
    except PantryError as e:
        fail(e)


@analysis_app.command("efficiency")
def analysis_efficiency() -> None:
    """Score how well inventory is being used."""
    try:
        score = get_analyzer().calculate_inventory_efficiency(owner)
        formatter.output({"success": True, "data": {"efficiency": score.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


@analysis_app.command("trends")
def analysis_trends(
    days: Annotated[int | None, typer.Option("--days", "-d", help="Days to cover")] = None,
) -> None:
    """Daily inventory, usage and waste trends."""
    try:
        trends = get_analyzer().get_inventory_trends(owner, days)
        formatter.output({"success": True, "data": {"trends": trends.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


# --- Shopping ---

shop_app = typer.Typer(help="Shopping list commands")
app.add_typer(shop_app, name="shopping")


@shop_app.command("suggest")
def shop_suggest() -> None:
    """Show what needs buying."""
    try:
        suggestions = get_shopping_integration().generate_shopping_suggestions(owner)
        formatter.output(
            {
                "success": True,
                "data": {"shopping_suggestions": [s.model_dump(mode="json") for s in suggestions]},
            }
        )
    except PantryError as e:
        fail(e)


@shop_app.command("create")
def shop_create(
    name: Annotated[str, typer.Option("--name", "-n", help="List name")] = "Restock list",
) -> None:
    """Create a shopping list from current suggestions."""
    try:
        created = get_shopping_integration().create_inventory_based_shopping_list(owner, name)
        output_data = {
            "success": True,
            "message": f"Created '{name}' with {len(created.suggestions)} item(s)",
            "data": {"shopping_list": created.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@shop_app.command("lists")
def shop_lists() -> None:
    """List saved shopping lists."""
    try:
        lists = get_shopping_lists().list_lists(owner)
        formatter.output(
            {"success": True, "data": {"lists": [sl.model_dump(mode="json") for sl in lists]}}
        )
    except PantryError as e:
        fail(e)


@shop_app.command("sync")
def shop_sync(
    list_id: Annotated[str, typer.Argument(help="Shopping list ID")],
    items: Annotated[
        list[str],
        typer.Option(
            "--item",
            "-i",
            help="Purchased entry as ITEM_ID:QUANTITY[:PRICE[:EXPIRY]]",
        ),
    ],
) -> None:
    """Record purchased shopping list items in inventory."""
    try:
        purchases = [parse_purchase(spec) for spec in items]
        result = get_shopping_integration().sync_shopping_list_to_inventory(
            owner, parse_uuid(list_id, "shopping list"), purchases
        )
        output_data = {
            "success": result.success,
            "message": f"Added {result.added_items}, restocked {result.updated_items}",
            "data": {"sync": result.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
        if not result.success:
            raise typer.Exit(code=1)
    except PantryError as e:
        fail(e)


@shop_app.command("optimize")
def shop_optimize(
    list_id: Annotated[str, typer.Argument(help="Shopping list ID")],
) -> None:
    """Check a shopping list against current stock."""
    try:
        result = get_shopping_integration().optimize_shopping_list(
            owner, parse_uuid(list_id, "shopping list")
        )
        formatter.output(
            {"success": True, "data": {"optimization": result.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


def parse_uuid(value: str, kind: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as e:
        raise NotFoundError(kind, value) from e


def parse_purchase(spec: str) -> PurchasedItem:
    parts = spec.split(":", 3)
    if len(parts) < 2:
        raise ValidationError(f"Expected ITEM_ID:QUANTITY, got '{spec}'")
    try:
        quantity = float(parts[1])
        price = float(parts[2]) if len(parts) > 2 and parts[2] else None
    except ValueError as e:
        raise ValidationError(f"Invalid number in '{spec}'") from e
    return PurchasedItem(
        shopping_item_id=parse_uuid(parts[0], "shopping list item"),
        actual_quantity=quantity,
        actual_price=price,
        expiry_date=parse_expiry(parts[3]) if len(parts) > 3 else None,
    )


# --- Recipes ---

recipe_app = typer.Typer(help="Recipe matching commands")
app.add_typer(recipe_app, name="recipes")


@recipe_app.command("recommend")
def recipe_recommend(
    cookable: Annotated[
        bool, typer.Option("--cookable", help="Only recipes that can be cooked now")
    ] = False,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Recipe category")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", help="Maximum recipes")] = 20,
) -> None:
    """Rank recipes by what is in stock."""
    try:
        recommendation = get_recipe_integration().recommend_recipes(
            owner, require_all_ingredients=cookable, category=category, limit=limit
        )
        formatter.output(
            {"success": True, "data": {"recipes": recommendation.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


@recipe_app.command("cook")
def recipe_cook(
    recipe_id: Annotated[str, typer.Argument(help="Recipe id")],
    servings: Annotated[int, typer.Option("--servings", "-s", help="Batch multiplier")] = 1,
) -> None:
    """Cook a recipe, deducting its ingredients from stock."""
    try:
        result = get_recipe_integration().cook_recipe(owner, recipe_id, servings)
        output_data = {
            "success": True,
            "message": f"Cooked {result.recipe_name}",
            "data": {"cook": result.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except PantryError as e:
        fail(e)


@recipe_app.command("shopping-list")
def recipe_shopping_list(
    recipe_ids: Annotated[list[str], typer.Argument(help="Recipe ids")],
    servings: Annotated[int, typer.Option("--servings", "-s", help="Batch multiplier")] = 1,
) -> None:
    """What to buy to cook a set of recipes."""
    try:
        result = get_recipe_integration().generate_recipe_shopping_list(
            owner, recipe_ids, servings
        )
        formatter.output(
            {"success": True, "data": {"recipe_shopping_list": result.model_dump(mode="json")}}
        )
    except PantryError as e:
        fail(e)


@recipe_app.command("stats")
def recipe_stats() -> None:
    """How many recipes current stock supports."""
    try:
        stats = get_recipe_integration().get_inventory_recipe_stats(owner)
        formatter.output({"success": True, "data": {"recipe_stats": stats.model_dump(mode="json")}})
    except PantryError as e:
        fail(e)


if __name__ == "__main__":
    app()

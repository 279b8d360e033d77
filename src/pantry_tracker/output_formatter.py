"""Output formatting for CLI and programmatic use."""

import json
from datetime import date, datetime
from typing import Any
from uuid import UUID

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

STATUS_STYLES = {
    "fresh": "green",
    "expiring": "yellow",
    "expired": "red",
    "low_stock": "magenta",
    "out_of_stock": "dim",
}

PRIORITY_STYLES = {
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for output."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


def _qty(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


def _money(value: float | None) -> str:
    return "-" if not value else f"${value:.2f}"


def _day(value: str | None) -> str:
    return value[:10] if value else "-"


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "inventory" in payload:
            self._render_inventory(payload)
        elif "inventory_item" in payload:
            self._render_inventory_item(payload)
        elif "usage" in payload:
            self._render_usage(payload)
        elif "stats" in payload:
            self._render_stats(payload)
        elif "alerts" in payload:
            self._render_alerts(payload)
        elif "sweep" in payload:
            self._render_sweep(payload)
        elif "expiry_analysis" in payload:
            self._render_expiry_analysis(payload)
        elif "notifications" in payload:
            self._render_notifications(payload)
        elif "analysis" in payload:
            self._render_analysis(payload)
        elif "purchase_suggestions" in payload:
            self._render_purchase_suggestions(payload)
        elif "efficiency" in payload:
            self._render_efficiency(payload)
        elif "shopping_suggestions" in payload:
            self._render_shopping_suggestions(payload["shopping_suggestions"])
        elif "shopping_list" in payload:
            self._render_shopping_list(payload)
        elif "lists" in payload:
            self._render_lists(payload)
        elif "sync" in payload:
            self._render_sync(payload)
        elif "recipes" in payload:
            self._render_recipes(payload)
        elif "cook" in payload:
            self._render_cook(payload)
        elif "recipe_shopping_list" in payload:
            self._render_recipe_shopping_list(payload)
        elif "expiry_trends" in payload:
            self._render_expiry_trends(payload)
        elif "trends" in payload:
            self._render_trends(payload)
        elif "optimization" in payload:
            self._render_optimization(payload)
        elif "recipe_stats" in payload:
            self._render_recipe_stats(payload)

    # --- Inventory ---

    def _render_inventory(self, payload: dict) -> None:
        """Render inventory list."""
        items = payload["inventory"]

        if not items:
            self.console.print("[dim]No items in inventory[/dim]")
            return

        table = Table(title="Household Inventory", show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Location", style="green")
        table.add_column("Category", style="yellow")
        table.add_column("Expires")
        table.add_column("Status")
        table.add_column("ID", style="dim")

        for item in items:
            style = STATUS_STYLES.get(item["status"], "white")
            table.add_row(
                item.get("food_name") or item["food_id"],
                f"{_qty(item['quantity'])} {item['unit']}",
                item.get("storage_location", "pantry"),
                item.get("category", "Other"),
                _day(item.get("expiry_date")),
                f"[{style}]{item['status']}[/{style}]",
                str(item["id"])[:8],
            )

        self.console.print(table)
        self.console.print(f"\nTotal items: {len(items)}")

    def _render_inventory_item(self, payload: dict) -> None:
        """Render a single inventory item."""
        item = payload["inventory_item"]
        style = STATUS_STYLES.get(item["status"], "white")

        content = f"""[bold]{item.get("food_name") or item["food_id"]}[/bold]

Quantity: {_qty(item["quantity"])} {item["unit"]} (of {_qty(item.get("original_quantity"))})
Status: [{style}]{item["status"]}[/{style}]
Location: {item.get("storage_location", "pantry")}
Category: {item.get("category", "Other")}
Expires: {_day(item.get("expiry_date"))}
Purchased: {_day(item.get("purchase_date"))}"""

        if item.get("min_stock_threshold") is not None:
            content += f"\nMin stock: {_qty(item['min_stock_threshold'])} {item['unit']}"
        if item.get("purchase_price") is not None:
            content += f"\nPrice paid: {_money(item['purchase_price'])}"
        if item.get("brand"):
            content += f"\nBrand: {item['brand']}"
        if item.get("storage_notes"):
            content += f"\nNotes: {item['storage_notes']}"
        content += f"\n\n[dim]{item['id']}[/dim]"

        self.console.print(Panel(content, title="Inventory Item", border_style="green"))

    def _render_usage(self, payload: dict) -> None:
        """Render usage records."""
        records = payload["usage"]

        table = Table(show_header=True, header_style="bold")
        table.add_column("Food")
        table.add_column("Used", justify="right")
        table.add_column("Type")
        table.add_column("Item", style="dim")

        for record in records:
            table.add_row(
                record["food_id"],
                f"{_qty(record['used_quantity'])} {record.get('unit') or ''}",
                record["usage_type"],
                str(record["inventory_item_id"])[:8],
            )

        self.console.print(table)

    def _render_stats(self, payload: dict) -> None:
        """Render inventory stats."""
        stats = payload["stats"]

        self.console.print(f"\n[bold]Inventory Stats: {stats['owner_id']}[/bold]")
        self.console.print(
            f"Items: {stats['total_items']} in {stats['total_categories']} categories"
        )
        self.console.print(f"Value: {_money(stats['total_value'])}")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Status")
        table.add_column("Count", justify="right")
        for status, count in stats["by_status"].items():
            style = STATUS_STYLES.get(status, "white")
            table.add_row(f"[{style}]{status}[/{style}]", str(count))
        self.console.print(table)

        self.console.print(f"Below minimum stock: {stats['low_stock_items']}")
        self.console.print(
            f"Items wasted in the last {stats['lookback_days']} days: {stats['waste_items']}"
        )

    # --- Expiry ---

    def _render_alerts(self, payload: dict) -> None:
        """Render expiring and expired items."""
        alerts = payload["alerts"]

        if not alerts["expired_items"] and not alerts["expiring_items"]:
            self.console.print("[dim]Nothing is expiring[/dim]")
            return

        for key, title, style, total in (
            ("expired_items", "Expired", "red", alerts["total_expired_value"]),
            ("expiring_items", "Expiring Soon", "yellow", alerts["total_expiring_value"]),
        ):
            if not alerts[key]:
                continue
            table = Table(title=f"[bold {style}]{title}[/bold {style}]", show_header=True)
            table.add_column("Item")
            table.add_column("Qty", justify="right")
            table.add_column("Expires", style=style)
            table.add_column("Days", justify="right")
            table.add_column("Location")
            table.add_column("ID", style="dim")
            for alert in alerts[key]:
                table.add_row(
                    alert["food_name"],
                    f"{_qty(alert['quantity'])} {alert['unit']}",
                    _day(alert["expiry_date"]),
                    str(alert["days_to_expiry"]),
                    alert["storage_location"],
                    str(alert["item_id"])[:8],
                )
            self.console.print(table)
            if total:
                self.console.print(f"Value: {_money(total)}")

    def _render_sweep(self, payload: dict) -> None:
        """Render a disposal sweep result."""
        sweep = payload["sweep"]

        self.console.print(f"Processed: {len(sweep['processed_ids'])}")
        if sweep["failed_ids"]:
            self.console.print(f"[red]Failed: {', '.join(sweep['failed_ids'])}[/red]")
        value = sum(r["value"] for r in sweep["waste_records"])
        if value:
            self.console.print(f"Value written off: {_money(value)}")

    def _render_expiry_analysis(self, payload: dict) -> None:
        """Render expiry analysis."""
        analysis = payload["expiry_analysis"]

        self.console.print(f"\n[bold]Expiry Analysis: {analysis['owner_id']}[/bold]")
        self.console.print(f"Items: {analysis['total_items']} ({analysis['fresh_count']} fresh)")
        self.console.print(
            f"[yellow]Expiring within {analysis['expiring_window_days']} days: "
            f"{analysis['expiring_count']}[/yellow] ({_money(analysis['expiring_value'])})"
        )
        self.console.print(
            f"[red]Expired: {analysis['expired_count']}[/red] ({_money(analysis['expired_value'])})"
        )
        for rec in analysis["recommendations"]:
            self.console.print(f"  • {rec}")

    def _render_expiry_trends(self, payload: dict) -> None:
        """Render daily waste counts."""
        trends = payload["expiry_trends"]

        self.console.print(f"\n[bold]Expiry Trends: last {trends['days']} days[/bold]")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Day")
        table.add_column("Expired", justify="right", style="red")
        table.add_column("Wasted", justify="right")
        for expired, wasted in zip(trends["daily_expired"], trends["daily_wasted"]):
            if wasted["count"]:
                table.add_row(expired["day"], str(expired["count"]), str(wasted["count"]))
        if table.row_count:
            self.console.print(table)
        else:
            self.console.print("[dim]Nothing was thrown away[/dim]")

        for category in trends["top_waste_categories"]:
            self.console.print(
                f"  {category['category']}: {category['count']} ({_money(category['value'])})"
            )
        self.console.print(f"Waste events per 100 items: {trends['waste_rate']:.1f}")

    def _render_notifications(self, payload: dict) -> None:
        """Render generated notifications."""
        notifications = payload["notifications"]

        if not notifications:
            self.console.print("[dim]No notifications to send[/dim]")
            return

        for n in notifications:
            style = PRIORITY_STYLES.get(n["priority"], "white")
            self.console.print(
                Panel(n["message"], title=f"[{style}]{n['title']}[/{style}]", border_style=style)
            )

    # --- Analysis ---

    def _render_analysis(self, payload: dict) -> None:
        """Render an inventory analysis report."""
        analysis = payload["analysis"]
        summary = analysis["summary"]

        self.console.print(
            f"\n[bold]Inventory Analysis: last {analysis['window_days']} days[/bold]"
        )
        self.console.print(
            f"Items: {summary['total_items']} worth {_money(summary['total_value'])}"
        )
        self.console.print(
            f"Usage events: {summary['used_items']}  Waste events: {summary['wasted_items']}"
        )
        rate_color = "red" if summary["waste_rate"] > 20 else "green"
        self.console.print(
            f"Waste rate: [{rate_color}]{summary['waste_rate']:.1f}%[/{rate_color}]  "
            f"Usage rate: {summary['usage_rate']:.1f}%"
        )

        if analysis["category_analysis"]:
            table = Table(title="By Category", show_header=True, header_style="bold")
            table.add_column("Category")
            table.add_column("Items", justify="right")
            table.add_column("Used", justify="right")
            table.add_column("Wasted", justify="right")
            table.add_column("Waste %", justify="right")
            for cat in analysis["category_analysis"]:
                table.add_row(
                    cat["category"],
                    str(cat["item_count"]),
                    _qty(cat["used_quantity"]),
                    _qty(cat["wasted_quantity"]),
                    f"{cat['waste_rate']:.1f}",
                )
            self.console.print(table)

        waste = analysis["waste_analysis"]
        if waste["top_wasted_items"]:
            total = _money(waste["total_waste_value"])
            self.console.print(f"\n[bold]Most Wasted[/bold] (total {total})")
            for item in waste["top_wasted_items"]:
                self.console.print(
                    f"  {item['food_name']}: {item['waste_count']} times, "
                    f"{_money(item['total_waste_value'])}"
                )

        if analysis["recommendations"]:
            self.console.print("\n[bold]Recommendations[/bold]")
            for rec in analysis["recommendations"]:
                style = PRIORITY_STYLES.get(rec["priority"], "white")
                line = f"  [{style}]•[/{style}] [bold]{rec['title']}[/bold]: {rec['description']}"
                if rec.get("potential_savings"):
                    line += f" (save ~{_money(rec['potential_savings'])})"
                self.console.print(line)

    def _render_purchase_suggestions(self, payload: dict) -> None:
        """Render analyzer purchase suggestions."""
        suggestions = payload["purchase_suggestions"]

        if not suggestions:
            self.console.print("[dim]No purchase suggestions at this time[/dim]")
            return

        table = Table(title="Purchase Suggestions", show_header=True, header_style="bold")
        table.add_column("Food")
        table.add_column("Buy", justify="right")
        table.add_column("In Stock", justify="right")
        table.add_column("Priority")
        table.add_column("Est. Cost", justify="right")
        table.add_column("Reason")

        for s in suggestions:
            style = PRIORITY_STYLES.get(s["priority"], "white")
            table.add_row(
                s["food_name"],
                f"{_qty(s['suggested_quantity'])} {s['unit']}",
                _qty(s["current_stock"]),
                f"[{style}]{s['priority']}[/{style}]",
                _money(s.get("estimated_cost")),
                s["reason"],
            )

        self.console.print(table)

    def _render_trends(self, payload: dict) -> None:
        """Render daily inventory, usage and waste trends."""
        trends = payload["trends"]
        usage = {p["day"]: p for p in trends["usage_trend"]}
        waste = {p["day"]: p for p in trends["waste_trend"]}

        table = Table(
            title=f"Inventory Trends: last {trends['days']} days",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Day")
        table.add_column("Items", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("Fresh", justify="right", style="green")
        table.add_column("Expiring", justify="right", style="yellow")
        table.add_column("Expired", justify="right", style="red")
        table.add_column("Used", justify="right")
        table.add_column("Wasted", justify="right")

        for snapshot in trends["daily_inventory"]:
            day = snapshot["day"]
            table.add_row(
                day,
                str(snapshot["total_items"]),
                _money(snapshot["total_value"]),
                str(snapshot["fresh_items"]),
                str(snapshot["expiring_items"]),
                str(snapshot["expired_items"]),
                _qty(usage[day]["total_usage"]) if day in usage else "-",
                _qty(waste[day]["total_waste"]) if day in waste else "-",
            )

        self.console.print(table)

    def _render_efficiency(self, payload: dict) -> None:
        """Render efficiency scores."""
        score = payload["efficiency"]

        self.console.print(f"\n[bold]Inventory Efficiency: {score['overall_score']}/100[/bold]")
        self.console.print(f"Usage efficiency: {score['usage_efficiency']}")
        self.console.print(f"Waste reduction: {score['waste_reduction']}")
        self.console.print(f"Storage: {score['storage_optimization']}")
        self.console.print(f"Purchase planning: {score['purchase_planning']}")

        for title, key, style in (
            ("Strengths", "strengths", "green"),
            ("Weaknesses", "weaknesses", "red"),
            ("Improvements", "improvements", "yellow"),
        ):
            if score[key]:
                self.console.print(f"\n[{style}]{title}:[/{style}]")
                for line in score[key]:
                    self.console.print(f"  - {line}")

    # --- Shopping ---

    def _render_shopping_suggestions(self, suggestions: list[dict]) -> None:
        """Render merged shopping suggestions."""
        if not suggestions:
            self.console.print("[dim]Nothing to buy right now[/dim]")
            return

        table = Table(title="Shopping Suggestions", show_header=True, header_style="bold")
        table.add_column("Food")
        table.add_column("Buy", justify="right")
        table.add_column("In Stock", justify="right")
        table.add_column("Priority")
        table.add_column("Est. Price", justify="right")
        table.add_column("Why")

        for s in suggestions:
            style = PRIORITY_STYLES.get(s["priority"], "white")
            table.add_row(
                s["food_name"],
                f"{_qty(s['suggested_quantity'])} {s['unit']}",
                _qty(s["current_stock"]),
                f"[{style}]{s['priority']}[/{style}]",
                _money(s.get("estimated_price")),
                "; ".join(s["reasons"]),
            )

        self.console.print(table)

    def _render_shopping_list(self, payload: dict) -> None:
        """Render a created shopping list."""
        created = payload["shopping_list"]
        shopping_list = created["shopping_list"]

        self.console.print(
            f"\n[bold]{shopping_list['name']}[/bold] [dim]{shopping_list['id']}[/dim]"
        )
        self._render_shopping_suggestions(created["suggestions"])
        self.console.print(
            f"High: {created['high_priority_count']}  "
            f"Medium: {created['medium_priority_count']}  "
            f"Low: {created['low_priority_count']}"
        )
        self.console.print(f"Estimated cost: {_money(created['total_estimated_cost'])}")
        if shopping_list.get("budget"):
            self.console.print(f"Budget: {_money(shopping_list['budget'])}")

    def _render_lists(self, payload: dict) -> None:
        """Render saved shopping lists."""
        lists = payload["lists"]

        if not lists:
            self.console.print("[dim]No shopping lists[/dim]")
            return

        for shopping_list in lists:
            done = sum(1 for i in shopping_list["items"] if i["purchased"])
            table = Table(
                title=f"{shopping_list['name']} ({done}/{len(shopping_list['items'])})",
                show_header=True,
                header_style="bold cyan",
            )
            table.add_column("", width=1)
            table.add_column("Item")
            table.add_column("Qty", justify="right")
            table.add_column("Priority")
            table.add_column("ID", style="dim")
            for item in shopping_list["items"]:
                table.add_row(
                    "[green]✓[/green]" if item["purchased"] else "",
                    item["food_name"],
                    f"{_qty(item['quantity'])} {item['unit']}",
                    item["priority"],
                    str(item["id"]),
                )
            self.console.print(table)
            self.console.print(f"[dim]{shopping_list['id']}[/dim]")

    def _render_sync(self, payload: dict) -> None:
        """Render a shopping list sync result."""
        sync = payload["sync"]

        for error in sync["errors"]:
            self.console.print(f"[red]✗[/red] {error}")
        if sync["list_completed"]:
            self.console.print("[green]Shopping list complete[/green]")

    def _render_optimization(self, payload: dict) -> None:
        """Render proposed shopping list changes."""
        result = payload["optimization"]

        if result["removed_item_ids"]:
            self.console.print(
                f"[green]Already in stock:[/green] {len(result['removed_item_ids'])} item(s)"
            )
            for item_id in result["removed_item_ids"]:
                self.console.print(f"  [dim]{item_id}[/dim]")
        self._render_shopping_suggestions(result["optimized_items"])
        if result["added_items"]:
            self.console.print("\n[bold]Also worth buying[/bold]")
            self._render_shopping_suggestions(result["added_items"])
        if result["savings"]:
            self.console.print(f"Savings: {_money(result['savings'])}")

    # --- Recipes ---

    def _render_recipes(self, payload: dict) -> None:
        """Render recipe recommendations."""
        recommendation = payload["recipes"]
        recipes = recommendation["recipes"]

        if not recipes:
            self.console.print("[dim]No matching recipes[/dim]")
            return

        table = Table(title="Recipes", show_header=True, header_style="bold")
        table.add_column("Recipe")
        table.add_column("Category")
        table.add_column("Match", justify="right")
        table.add_column("Can Cook")
        table.add_column("Missing")

        for r in recipes:
            missing = ", ".join(
                f"{m['food_name']} ({_qty(m['shortage_quantity'])} {m['unit']})"
                for m in r["missing_ingredients"]
            )
            table.add_row(
                r["name"],
                r["category"],
                f"{r['match_score']}%",
                "[green]✓[/green]" if r["can_cook"] else "[red]✗[/red]",
                missing or "-",
            )

        self.console.print(table)
        self.console.print(
            f"Can cook {recommendation['can_cook_count']} "
            f"of {recommendation['total_recipes']} recipes"
        )

    def _render_cook(self, payload: dict) -> None:
        """Render a cooked recipe."""
        result = payload["cook"]

        self.console.print(f"\n[bold]{result['recipe_name']}[/bold] x{result['servings']}")
        for used in result["used_ingredients"]:
            self.console.print(
                f"  - {used['food_name']}: {_qty(used['used_quantity'])} {used['unit']}"
            )

    def _render_recipe_shopping_list(self, payload: dict) -> None:
        """Render the shopping list for a set of recipes."""
        result = payload["recipe_shopping_list"]

        if result["can_cook_recipes"]:
            ready = ", ".join(result["can_cook_recipes"])
            self.console.print(f"[green]Ready to cook:[/green] {ready}")
        if result["cannot_cook_recipes"]:
            blocked = ", ".join(result["cannot_cook_recipes"])
            self.console.print(f"[yellow]Need shopping:[/yellow] {blocked}")

        if not result["items"]:
            self.console.print("[dim]Everything needed is in stock[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Food")
        table.add_column("Need", justify="right")
        table.add_column("Have", justify="right")
        table.add_column("Buy", justify="right", style="red")
        table.add_column("Est. Price", justify="right")

        for item in result["items"]:
            table.add_row(
                item["food_name"],
                f"{_qty(item['required_quantity'])} {item['unit']}",
                _qty(item["current_stock"]),
                _qty(item["need_to_buy"]),
                _money(item.get("estimated_price")),
            )

        self.console.print(table)
        self.console.print(f"Estimated cost: {_money(result['total_estimated_cost'])}")

    def _render_recipe_stats(self, payload: dict) -> None:
        """Render recipe availability stats."""
        stats = payload["recipe_stats"]

        self.console.print(
            f"\n[bold]Recipes:[/bold] {stats['total_recipes']}  "
            f"[green]Cookable: {stats['can_cook_count']}[/green]  "
            f"[yellow]Partial: {stats['partially_available_count']}[/yellow]"
        )
        for category in stats["top_categories"]:
            self.console.print(
                f"  {category['category']}: {category['can_cook_count']}/{category['count']}"
            )
        if stats["recent_cooked"]:
            self.console.print("\n[bold]Recently cooked[/bold]")
            for cooked in stats["recent_cooked"]:
                self.console.print(f"  {_day(cooked['cooked_at'])} {cooked['recipe_name']}")

    # --- Messages ---

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def success(self, message: str, data: dict | None = None) -> None:
        """Output success message.

        Args:
            message: Success message
            data: Optional data to include
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if data:
                output["data"] = data
            print(json.dumps(output, cls=JSONEncoder))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")

"""Inventory commands for InvTrac CLI.

Each command loads the inventory, applies one change through the domain
store and flushes the sync scheduler before exiting.

Commands:
- list: Show items, optionally filtered by category and name
- add-category / delete-category
- add-item / delete-item
- adjust: Add or remove stock
- set-quantity: Set the stock level
- price: Set per-piece prices and show the pricing summary
"""

from __future__ import annotations

import sys

import click

from invtrac.client.cli.common import open_inventory, run, server_option
from invtrac.client.store import ALL_CATEGORIES, DomainStore
from invtrac.core.models import Category, Item, PricingSummary


def _require_category(store: DomainStore, name: str) -> Category:
    category = store.find_category(name)
    if category is None:
        click.echo(f"Error: No category named '{name}'.", err=True)
        sys.exit(1)
    return category


def _require_item(store: DomainStore, name: str) -> Item:
    item = store.find_item(name)
    if item is None:
        click.echo(f"Error: No item named '{name}'.", err=True)
        sys.exit(1)
    return item


def format_pricing(item: Item, summary: PricingSummary) -> list[str]:
    """Render the pricing summary of an item."""
    lines = [
        f"{item.name} ({summary.quantity} in stock)",
        f"  Original price per piece: ${item.original_price:.2f}",
        f"  Sales price per piece:    ${item.sales_price:.2f}",
        f"  Total original price:     ${summary.total_original:.2f}",
        f"  Total sales price:        ${summary.total_sales:.2f}",
    ]
    if summary.margin_percent is None:
        lines.append(f"  Margin:                   ${summary.margin:.2f}")
    else:
        lines.append(
            f"  Margin:                   ${summary.margin:.2f} "
            f"({summary.margin_percent:.1f}%)"
        )
    return lines


@click.command(name="list")
@server_option
@click.option("--category", "category_name", default=None, help="Only this category.")
@click.option("--search", default="", help="Case-insensitive name filter.")
def list_items(server: str | None, category_name: str | None, search: str) -> None:
    """List inventory items."""

    async def _list() -> tuple[str, list[Item], dict[str, str]]:
        async with open_inventory(server) as runtime:
            store = runtime.store
            if category_name:
                store.select_category(_require_category(store, category_name).id)
            else:
                store.select_category(ALL_CATEGORIES)
            names = {c.id: c.name for c in store.snapshot.categories}
            return store.current_category_name(), store.filtered_items(search), names

    title, items, names = run(_list())
    click.echo(title)
    if not items:
        click.echo("  No items found")
        return
    for item in items:
        click.echo(f"  {item.name:<30} {item.quantity:>6}  [{names[item.category_id]}]")


@click.command(name="add-category")
@server_option
@click.argument("name")
def add_category(server: str | None, name: str) -> None:
    """Create a category."""

    async def _add() -> Category | None:
        async with open_inventory(server) as runtime:
            return runtime.store.add_category(name)

    category = run(_add())
    if category is None:
        click.echo("Error: Category name cannot be empty.", err=True)
        sys.exit(1)
    click.echo(f"Added category '{category.name}'.")


@click.command(name="delete-category")
@server_option
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def delete_category(server: str | None, name: str, yes: bool) -> None:
    """Delete a category and all its items."""
    if not yes:
        click.confirm(
            f"Delete '{name}' and all its items? This action cannot be undone.",
            abort=True,
        )

    async def _delete() -> int:
        async with open_inventory(server) as runtime:
            store = runtime.store
            category = _require_category(store, name)
            before = len(store.snapshot.items)
            store.delete_category(category.id)
            return before - len(store.snapshot.items)

    removed = run(_delete())
    click.echo(f"Deleted category '{name}' and {removed} item(s).")


@click.command(name="add-item")
@server_option
@click.argument("name")
@click.option("--category", "category_name", required=True, help="Category name.")
@click.option("--quantity", default=0, type=int, help="Initial quantity.")
def add_item(server: str | None, name: str, category_name: str, quantity: int) -> None:
    """Create an item in a category."""

    async def _add() -> Item | None:
        async with open_inventory(server) as runtime:
            category = _require_category(runtime.store, category_name)
            return runtime.store.add_item(name, quantity, category.id)

    item = run(_add())
    if item is None:
        click.echo("Error: Item name cannot be empty.", err=True)
        sys.exit(1)
    click.echo(f"Added '{item.name}' with quantity {item.quantity}.")


@click.command(name="delete-item")
@server_option
@click.argument("name")
def delete_item(server: str | None, name: str) -> None:
    """Delete an item."""

    async def _delete() -> None:
        async with open_inventory(server) as runtime:
            runtime.store.delete_item(_require_item(runtime.store, name).id)

    run(_delete())
    click.echo(f"Deleted '{name}'.")


@click.command()
@server_option
@click.argument("name")
@click.argument("delta", type=int)
def adjust(server: str | None, name: str, delta: int) -> None:
    """Add (positive DELTA) or remove (negative DELTA) stock.

    Use `--` before a negative number: invtrac adjust Apples -- -5
    """

    async def _adjust() -> Item | None:
        async with open_inventory(server) as runtime:
            item = _require_item(runtime.store, name)
            return runtime.store.adjust_quantity(item.id, delta)

    item = run(_adjust())
    if item is not None:
        click.echo(f"{item.name}: {item.quantity}")


@click.command(name="set-quantity")
@server_option
@click.argument("name")
@click.argument("value", type=int)
def set_quantity(server: str | None, name: str, value: int) -> None:
    """Set the stock level of an item."""

    async def _set() -> Item | None:
        async with open_inventory(server) as runtime:
            item = _require_item(runtime.store, name)
            return runtime.store.set_quantity(item.id, value)

    item = run(_set())
    if item is not None:
        click.echo(f"{item.name}: {item.quantity}")


@click.command()
@server_option
@click.argument("name")
@click.argument("original_price", type=float, required=False)
@click.argument("sales_price", type=float, required=False)
def price(
    server: str | None,
    name: str,
    original_price: float | None,
    sales_price: float | None,
) -> None:
    """Show pricing, or set ORIGINAL_PRICE and SALES_PRICE per piece."""

    async def _price() -> tuple[Item, PricingSummary]:
        async with open_inventory(server) as runtime:
            store = runtime.store
            item = _require_item(store, name)
            if original_price is not None:
                updated = store.set_pricing(
                    item.id,
                    original_price,
                    sales_price if sales_price is not None else item.sales_price,
                )
                if updated is not None:
                    item = updated
            return item, PricingSummary.for_item(item)

    item, summary = run(_price())
    for line in format_pricing(item, summary):
        click.echo(line)

"""Command-line interface for InvTrac.

This module provides the main CLI entry point and assembles all commands.

Commands:
- signup, login, logout, status: Account and session
- list, add-category, delete-category, add-item, delete-item: Inventory
- adjust, set-quantity, price: Stock and pricing
- server: Run the API server
"""

from __future__ import annotations

import click

from invtrac.client.cli.account import login, logout, signup, status
from invtrac.client.cli.common import setup_logging
from invtrac.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_server_config,
    load_config,
    save_config,
)
from invtrac.client.cli.inventory import (
    add_category,
    add_item,
    adjust,
    delete_category,
    delete_item,
    list_items,
    price,
    set_quantity,
)
from invtrac.client.cli.server import server


@click.group()
@click.version_option(package_name="invtrac")
@click.option("-v", "--verbose", is_flag=True, help="Log sync activity to stderr.")
def cli(verbose: bool) -> None:
    """InvTrac - inventory tracking with automatic cloud sync."""
    setup_logging(verbose)


# Account commands
cli.add_command(signup)
cli.add_command(login)
cli.add_command(logout)
cli.add_command(status)

# Inventory commands
cli.add_command(list_items)
cli.add_command(add_category)
cli.add_command(delete_category)
cli.add_command(add_item)
cli.add_command(delete_item)
cli.add_command(adjust)
cli.add_command(set_quantity)
cli.add_command(price)

# Server command
cli.add_command(server)

__all__ = [
    "cli",
    "get_config_dir",
    "get_config_file",
    "get_server_config",
    "load_config",
    "save_config",
]

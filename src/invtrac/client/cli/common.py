"""Helpers shared by the CLI commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import click

from invtrac.client.cli.config import get_server_config, get_session_store
from invtrac.client.runtime import ClientRuntime
from invtrac.core.types import SessionState

T = TypeVar("T")

server_option = click.option(
    "--server",
    default=None,
    help="Server URL (default: configured server or http://localhost:8000).",
)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous click command."""
    return asyncio.run(coro)


def setup_logging(verbose: bool) -> None:
    """Send invtrac logs to stderr when --verbose is given."""
    if not verbose:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root_logger = logging.getLogger("invtrac")
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(handler)


@asynccontextmanager
async def open_runtime(server: str | None) -> AsyncIterator[ClientRuntime]:
    """Create a client runtime with the keyring-backed session."""
    config = get_server_config(server)
    runtime = ClientRuntime.create(config, get_session_store(config))
    try:
        yield runtime
    finally:
        await runtime.aclose()


@asynccontextmanager
async def open_inventory(server: str | None) -> AsyncIterator[ClientRuntime]:
    """Load the inventory, yield the runtime, then save pending changes.

    Exits with an error if there is no valid session.
    """
    async with open_runtime(server) as runtime:
        state = await runtime.controller.start()
        if state != SessionState.READY:
            click.echo("Error: Not logged in. Run 'invtrac login' first.", err=True)
            sys.exit(1)

        yield runtime

        if runtime.session.state != SessionState.READY:
            click.echo("Error: Session expired. Run 'invtrac login' again.", err=True)
            sys.exit(1)
        if not await runtime.scheduler.flush():
            click.echo("Warning: Changes could not be saved to the server.", err=True)
            sys.exit(2)

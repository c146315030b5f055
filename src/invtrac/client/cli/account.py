"""Account commands for InvTrac CLI.

Commands:
- signup: Create an account and sign in
- login: Sign in with email and password
- logout: Sign out and forget the stored session
- status: Show server and session status
"""

from __future__ import annotations

import sys

import click

from invtrac.client.api import IdentityError, RemoteFailure
from invtrac.client.cli.common import open_runtime, run, server_option
from invtrac.client.cli.config import load_config, save_config
from invtrac.core.types import SessionState


def _remember_server(server_url: str) -> None:
    config = load_config()
    config["server_url"] = server_url
    save_config(config)


@click.command()
@server_option
@click.option("--email", prompt=True, help="Account email.")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Account password.",
)
@click.option("--name", default="", help="Display name.")
def signup(server: str | None, email: str, password: str, name: str) -> None:
    """Create an account on the server and sign in."""

    async def _signup() -> None:
        async with open_runtime(server) as runtime:
            await runtime.identity.sign_up(email, password, name)
            await runtime.identity.sign_in(email, password)
            _remember_server(runtime.config.server_url)

    try:
        run(_signup())
    except IdentityError as e:
        if "already" in str(e).lower():
            click.echo(
                "Error: An account with this email already exists. "
                "Please sign in instead.",
                err=True,
            )
        else:
            click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except RemoteFailure as e:
        click.echo(f"Error: Could not reach server: {e}", err=True)
        sys.exit(1)

    click.echo(f"Account created. Signed in as {email}.")


@click.command()
@server_option
@click.option("--email", prompt=True, help="Account email.")
@click.option("--password", prompt=True, hide_input=True, help="Account password.")
def login(server: str | None, email: str, password: str) -> None:
    """Sign in and load the inventory."""

    async def _login() -> tuple[int, int]:
        async with open_runtime(server) as runtime:
            if await runtime.controller.start() == SessionState.READY:
                # Revoke the previous session before replacing it
                await runtime.controller.sign_out()
            await runtime.controller.sign_in(email, password)
            _remember_server(runtime.config.server_url)
            snapshot = runtime.store.snapshot
            return len(snapshot.categories), len(snapshot.items)

    try:
        categories, items = run(_login())
    except IdentityError:
        click.echo("Error: Invalid email or password.", err=True)
        sys.exit(1)
    except RemoteFailure as e:
        click.echo(f"Error: Could not reach server: {e}", err=True)
        sys.exit(1)

    click.echo(f"Signed in as {email}.")
    click.echo(f"Inventory: {categories} categories, {items} items.")


@click.command()
@server_option
def logout(server: str | None) -> None:
    """Sign out and forget the stored session."""

    async def _logout() -> None:
        async with open_runtime(server) as runtime:
            await runtime.controller.sign_out()

    run(_logout())
    click.echo("Signed out.")


@click.command()
@server_option
def status(server: str | None) -> None:
    """Show server reachability and session state."""

    async def _status() -> tuple[bool, SessionState, str]:
        async with open_runtime(server) as runtime:
            healthy = await runtime.remote.health_check()
            state = await runtime.controller.start()
            session = runtime.identity.session
            email = session.email if session else ""
            return healthy, state, email

    healthy, state, email = run(_status())
    click.echo(f"Server: {'online' if healthy else 'unreachable'}")
    if state == SessionState.READY:
        click.echo(f"Session: signed in as {email}")
    else:
        click.echo("Session: signed out")

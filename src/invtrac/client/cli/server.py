"""Server command for InvTrac CLI.

Commands:
- server: Run the InvTrac API server with uvicorn
"""

from __future__ import annotations

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, type=int, show_default=True, help="Bind port.")
def server(host: str, port: int) -> None:
    """Run the InvTrac API server.

    Database and log locations come from INVTRAC_DB_PATH and
    INVTRAC_LOG_PATH.
    """
    import uvicorn

    uvicorn.run("invtrac.server.app:app_factory", host=host, port=port, factory=True)

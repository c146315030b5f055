"""Configuration utilities for InvTrac CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path

from invtrac.client.identity import KeyringSessionStore, SessionStore
from invtrac.core.config import ServerConfig

DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_dir() -> Path:
    """Get the configuration directory for InvTrac.

    Returns:
        Path to ~/.invtrac or equivalent.
    """
    return Path.home() / ".invtrac"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_server_config(server: str | None = None) -> ServerConfig:
    """Build the ServerConfig for a command.

    Args:
        server: Explicit server URL; falls back to the configured one.
    """
    url = server or load_config().get("server_url") or DEFAULT_SERVER_URL
    return ServerConfig(server_url=url)


def get_session_store(config: ServerConfig) -> SessionStore:
    """Session persistence used by the CLI (the OS keyring)."""
    return KeyringSessionStore(config.server_url)

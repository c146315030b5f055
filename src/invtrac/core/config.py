"""Shared configuration classes for invtrac.

This module defines the connection settings used by the client components
(RemoteStoreClient, IdentityClient, SyncScheduler).
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SYNC_DELAY_S = 1.0


@dataclass
class ServerConfig:
    """Configuration for connecting to an InvTrac server.

    Used by both the data client (RemoteStoreClient) and the identity client
    (IdentityClient) to ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://inv.example.com").
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
        sync_delay_s: Quiet interval before a pending change is pushed.
    """

    server_url: str
    timeout: float = 30.0
    verify_ssl: bool = True
    sync_delay_s: float = DEFAULT_SYNC_DELAY_S

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")

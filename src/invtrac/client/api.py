"""HTTP client for the InvTrac user-data API.

This module provides:
- APIError hierarchy: Unauthorized vs RemoteFailure outcome split
- RemoteStoreClient: fetch_snapshot / replace_snapshot against /user-data
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from invtrac.core.config import ServerConfig
from invtrac.core.models import Snapshot

logger = logging.getLogger(__name__)

USER_DATA_PATH = "/user-data"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Unauthorized(APIError):
    """The credential was rejected. The session must be torn down."""


class RemoteFailure(APIError):
    """Transport, server or decoding failure unrelated to authorization.

    Never forces a logout: loads fall back to an empty snapshot and saves
    are dropped until the next debounced push.
    """


class IdentityError(APIError):
    """Sign-in or sign-up was refused (bad credentials, duplicate email)."""


def error_detail(response: httpx.Response, default: str) -> str:
    """Extract the error message from an error response body.

    The server renders errors as {"error": ...}; FastAPI validation errors
    use {"detail": ...}.
    """
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail")
        if detail:
            return str(detail)
    return default


def bearer(credential: str) -> dict[str, str]:
    """Authorization header for a bearer credential."""
    return {"Authorization": f"Bearer {credential}"}


class RemoteStoreClient:
    """Async HTTP client for the remote key-value store.

    One network call per invocation, no caching. Never mutates snapshots it
    is given.

    Usage:
        async with RemoteStoreClient(config) as client:
            snapshot = await client.fetch_snapshot(token)
            await client.replace_snapshot(token, snapshot)
    """

    def __init__(
        self,
        config: ServerConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server connection settings.
            client: Optional pre-built httpx client (shared with identity).
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RemoteStoreClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def _handle_response(
        self, response: httpx.Response, operation: str
    ) -> httpx.Response:
        """Map HTTP status codes onto the Unauthorized/RemoteFailure split."""
        if response.status_code == 401:
            raise Unauthorized(
                error_detail(response, "Invalid or expired token"), 401
            )
        if response.status_code >= 400:
            raise RemoteFailure(
                error_detail(response, f"Failed to {operation}"),
                response.status_code,
            )
        return response

    async def _send(
        self, method: str, credential: str, operation: str, **kwargs: Any
    ) -> Any:
        try:
            response = await self._client.request(
                method, USER_DATA_PATH, headers=bearer(credential), **kwargs
            )
        except httpx.RequestError as e:
            raise RemoteFailure(f"Failed to {operation}: {e}") from e

        logger.debug("%s %s -> %d", method, USER_DATA_PATH, response.status_code)
        self._handle_response(response, operation)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteFailure(
                f"Failed to {operation}: invalid JSON response",
                response.status_code,
            ) from e

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === User data ===

    async def fetch_snapshot(self, credential: str) -> Snapshot:
        """Fetch the stored snapshot for the authenticated user.

        Args:
            credential: Bearer access token.

        Returns:
            The stored snapshot (empty for a new account).

        Raises:
            Unauthorized: If the credential is rejected.
            RemoteFailure: On any other failure.
        """
        data = await self._send("GET", credential, "load user data")
        if not isinstance(data, dict):
            raise RemoteFailure("Failed to load user data: unexpected payload")
        try:
            snapshot = Snapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteFailure(f"Failed to load user data: {e}") from e

        logger.info(
            "Loaded %d categories and %d items",
            len(snapshot.categories),
            len(snapshot.items),
        )
        return snapshot

    async def replace_snapshot(self, credential: str, snapshot: Snapshot) -> None:
        """Replace the stored snapshot (whole-document last-writer-wins).

        Args:
            credential: Bearer access token.
            snapshot: Snapshot to persist.

        Raises:
            Unauthorized: If the credential is rejected.
            RemoteFailure: On any other failure.
        """
        data = await self._send(
            "POST", credential, "save user data", json=snapshot.to_dict()
        )
        if not isinstance(data, dict) or data.get("success") is not True:
            raise RemoteFailure("Failed to save user data: not acknowledged")

        logger.info(
            "Saved %d categories and %d items",
            len(snapshot.categories),
            len(snapshot.items),
        )

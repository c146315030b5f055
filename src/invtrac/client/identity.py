"""Identity subsystem: sign-up, sign-in, token refresh and sign-out.

This module provides:
- AuthSession: Access/refresh token pair with expiry
- KeyringSessionStore: Persists the session in the OS keyring
- InMemorySessionStore: Non-persistent store (tests, --no-keyring)
- IdentityClient: Auth endpoints client with transparent refresh and
  SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED notifications
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any, Protocol

import httpx
import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from invtrac.client.api import IdentityError, RemoteFailure, bearer, error_detail
from invtrac.core.config import ServerConfig
from invtrac.core.types import AuthEvent

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "invtrac"

# Refresh this many seconds before the access token actually expires
DEFAULT_REFRESH_MARGIN_S = 60.0

AuthListener = Callable[[AuthEvent, "AuthSession | None"], None]


@dataclass
class AuthSession:
    """Tokens issued by the server for a signed-in user."""

    access_token: str
    refresh_token: str
    expires_at: float
    email: str = ""

    @classmethod
    def from_token_response(
        cls, data: dict[str, Any], email: str, now: float
    ) -> AuthSession:
        """Create from a /auth/token or /auth/refresh response."""
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=now + float(data["expires_in"]),
            email=email,
        )

    def expires_within(self, seconds: float, now: float) -> bool:
        """Check whether the access token expires in the next `seconds`."""
        return self.expires_at - seconds <= now


class SessionStore(Protocol):
    """Persistence for the current AuthSession."""

    def load(self) -> AuthSession | None: ...

    def save(self, session: AuthSession) -> None: ...

    def clear(self) -> None: ...


class InMemorySessionStore:
    """Session store that forgets everything when the process exits."""

    def __init__(self, session: AuthSession | None = None) -> None:
        self._session = session

    def load(self) -> AuthSession | None:
        return self._session

    def save(self, session: AuthSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class KeyringSessionStore:
    """Session store backed by the OS keyring.

    One entry per server URL, holding the session as JSON.
    """

    def __init__(self, server_url: str, service: str = KEYRING_SERVICE) -> None:
        self._service = service
        self._username = server_url

    def load(self) -> AuthSession | None:
        """Load the stored session, if any."""
        try:
            raw = keyring.get_password(self._service, self._username)
        except KeyringError:
            logger.warning("Keyring unavailable, starting without a session")
            return None
        if not raw:
            return None
        try:
            return AuthSession(**json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable session from keyring")
            return None

    def save(self, session: AuthSession) -> None:
        """Store the session."""
        try:
            keyring.set_password(
                self._service, self._username, json.dumps(asdict(session))
            )
        except KeyringError:
            logger.warning("Keyring unavailable, session will not persist")

    def clear(self) -> None:
        """Delete the stored session."""
        try:
            keyring.delete_password(self._service, self._username)
        except PasswordDeleteError:
            logger.debug("No stored session to delete")
        except KeyringError:
            logger.warning("Keyring unavailable, stored session not deleted")


class IdentityClient:
    """Client for the server's identity endpoints.

    Keeps the current AuthSession, renews the access token shortly before it
    expires, and notifies listeners of session transitions.

    Usage:
        identity = IdentityClient(config, KeyringSessionStore(config.server_url))
        await identity.sign_in("me@example.com", "secret")
        token = await identity.get_current_credential()
        await identity.sign_out()
    """

    def __init__(
        self,
        config: ServerConfig,
        store: SessionStore | None = None,
        client: httpx.AsyncClient | None = None,
        refresh_margin_s: float = DEFAULT_REFRESH_MARGIN_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the identity client.

        Args:
            config: Server connection settings.
            store: Where the session persists (default: in memory).
            client: Optional pre-built httpx client.
            refresh_margin_s: Renew tokens expiring within this many seconds.
            clock: Wall-clock source, injectable for tests.
        """
        self._config = config
        self._store: SessionStore = store or InMemorySessionStore()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )
        self._refresh_margin_s = refresh_margin_s
        self._clock = clock
        self._session: AuthSession | None = self._store.load()
        self._refreshing: asyncio.Task[AuthSession | None] | None = None
        self._listeners: list[AuthListener] = []

    @property
    def session(self) -> AuthSession | None:
        """Get the current session, if signed in."""
        return self._session

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # === Subscriptions ===

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener for auth events.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent) -> None:
        logger.info("Auth state changed: %s", event.value)
        for listener in list(self._listeners):
            listener(event, self._session)

    def _set_session(self, session: AuthSession | None) -> None:
        self._session = session
        if session is None:
            self._store.clear()
        else:
            self._store.save(session)

    # === Account operations ===

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.post(path, **kwargs)
        except httpx.RequestError as e:
            raise RemoteFailure(f"Request to {path} failed: {e}") from e

    async def sign_up(self, email: str, password: str, name: str = "") -> dict[str, Any]:
        """Create an account.

        Returns:
            The created user ({"id", "email", "name"}).

        Raises:
            IdentityError: If the server refuses the account.
            RemoteFailure: On transport or server errors.
        """
        response = await self._post(
            "/signup", json={"email": email, "password": password, "name": name}
        )
        if response.status_code in (400, 409, 422):
            raise IdentityError(
                error_detail(response, "Failed to create account"),
                response.status_code,
            )
        if response.status_code >= 400:
            raise RemoteFailure(
                error_detail(response, "Failed to create account"),
                response.status_code,
            )
        user: dict[str, Any] = response.json()["user"]
        logger.info("Created account %s", user.get("email"))
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password.

        Raises:
            IdentityError: If the credentials are rejected.
            RemoteFailure: On transport or server errors.
        """
        response = await self._post(
            "/auth/token", json={"email": email, "password": password}
        )
        if response.status_code in (400, 401, 422):
            raise IdentityError(
                error_detail(response, "Invalid email or password"),
                response.status_code,
            )
        if response.status_code >= 400:
            raise RemoteFailure(
                error_detail(response, "Sign-in failed"), response.status_code
            )

        session = AuthSession.from_token_response(
            response.json(), email=email, now=self._clock()
        )
        self._set_session(session)
        self._emit(AuthEvent.SIGNED_IN)
        return session

    async def sign_out(self) -> None:
        """Sign out, revoking the tokens server-side when possible.

        Local session data is cleared even if the server cannot be reached.
        """
        session = self._session
        if session is None:
            return

        try:
            response = await self._client.post(
                "/auth/logout", headers=bearer(session.access_token)
            )
            if response.status_code >= 400 and response.status_code != 401:
                logger.warning("Server logout failed: %d", response.status_code)
        except httpx.RequestError as e:
            logger.warning("Server logout failed: %s", e)

        self._set_session(None)
        self._emit(AuthEvent.SIGNED_OUT)

    # === Credentials ===

    async def get_current_credential(self) -> str | None:
        """Get a currently valid access token.

        Renews the token first if it expires within the refresh margin.
        Concurrent callers share one refresh request.

        Returns:
            The access token, or None if there is no session or the refresh
            token was rejected.

        Raises:
            RemoteFailure: If the refresh could not be attempted (network).
        """
        session = self._session
        if session is None:
            return None
        if not session.expires_within(self._refresh_margin_s, self._clock()):
            return session.access_token

        if self._refreshing is None:
            self._refreshing = asyncio.ensure_future(self._refresh(session))
        task = self._refreshing
        try:
            refreshed = await task
        finally:
            if self._refreshing is task:
                self._refreshing = None
        return refreshed.access_token if refreshed else None

    async def _refresh(self, session: AuthSession) -> AuthSession | None:
        logger.debug("Refreshing access token for %s", session.email)
        response = await self._post(
            "/auth/refresh", json={"refresh_token": session.refresh_token}
        )
        if response.status_code in (400, 401):
            logger.warning(
                "Refresh token rejected: %s",
                error_detail(response, "invalid refresh token"),
            )
            if self._session is session:
                self._set_session(None)
                self._emit(AuthEvent.SIGNED_OUT)
            return None
        if response.status_code >= 400:
            raise RemoteFailure(
                error_detail(response, "Token refresh failed"), response.status_code
            )

        refreshed = AuthSession.from_token_response(
            response.json(), email=session.email, now=self._clock()
        )
        if self._session is not session:
            # Signed out (or in as someone else) while the refresh was running
            return None
        self._set_session(refreshed)
        self._emit(AuthEvent.TOKEN_REFRESHED)
        return refreshed

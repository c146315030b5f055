"""Tests for the identity client and session stores."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from unittest.mock import patch

import httpx
import keyring
import pytest
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError
from pytest_httpx import HTTPXMock

from invtrac.client.api import IdentityError, RemoteFailure
from invtrac.client.identity import (
    KEYRING_SERVICE,
    AuthSession,
    IdentityClient,
    InMemorySessionStore,
    KeyringSessionStore,
)
from invtrac.core.config import ServerConfig
from invtrac.core.types import AuthEvent

NOW = 1_000_000.0


def token_response(access: str = "at1", refresh: str = "rt1", expires_in: int = 3600) -> dict:
    """Build a /auth/token response body."""
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": expires_in,
        "token_type": "bearer",
    }


def make_identity(
    session: AuthSession | None = None,
) -> tuple[IdentityClient, InMemorySessionStore, list[AuthEvent]]:
    """Create an IdentityClient with an in-memory store and event recorder."""
    store = InMemorySessionStore(session)
    identity = IdentityClient(
        ServerConfig("http://test"), store, clock=lambda: NOW
    )
    events: list[AuthEvent] = []
    identity.subscribe(lambda event, _session: events.append(event))
    return identity, store, events


def expiring_session() -> AuthSession:
    """A session whose access token expires within the refresh margin."""
    return AuthSession("old", "rt-old", expires_at=NOW + 10, email="me@example.com")


class TestAuthSession:
    """Tests for AuthSession."""

    def test_from_token_response(self) -> None:
        """Should compute the absolute expiry."""
        session = AuthSession.from_token_response(token_response(), "me@example.com", NOW)

        assert session.access_token == "at1"
        assert session.refresh_token == "rt1"
        assert session.expires_at == NOW + 3600
        assert session.email == "me@example.com"

    def test_expires_within(self) -> None:
        """Should compare expiry against the margin."""
        session = AuthSession("a", "r", expires_at=NOW + 30)

        assert session.expires_within(60, NOW)
        assert not session.expires_within(10, NOW)


class TestSignIn:
    """Tests for sign-in and sign-up."""

    @pytest.mark.asyncio
    async def test_sign_in(self, httpx_mock: HTTPXMock) -> None:
        """Should store the session and emit SIGNED_IN."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/token",
            match_json={"email": "me@example.com", "password": "secret"},
            json=token_response(),
        )
        identity, store, events = make_identity()

        session = await identity.sign_in("me@example.com", "secret")
        await identity.aclose()

        assert session.access_token == "at1"
        assert store.load() == session
        assert events == [AuthEvent.SIGNED_IN]

    @pytest.mark.asyncio
    async def test_sign_in_rejected(self, httpx_mock: HTTPXMock) -> None:
        """Bad credentials should raise IdentityError."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/token",
            status_code=401,
            json={"error": "Invalid login credentials"},
        )
        identity, store, events = make_identity()

        with pytest.raises(IdentityError, match="Invalid login credentials"):
            await identity.sign_in("me@example.com", "wrong")
        await identity.aclose()

        assert store.load() is None
        assert events == []

    @pytest.mark.asyncio
    async def test_sign_up(self, httpx_mock: HTTPXMock) -> None:
        """Should return the created user."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/signup",
            status_code=201,
            json={"user": {"id": 1, "email": "me@example.com", "name": "Me"}},
        )
        identity, _, _ = make_identity()

        user = await identity.sign_up("me@example.com", "secret", "Me")
        await identity.aclose()

        assert user["email"] == "me@example.com"

    @pytest.mark.asyncio
    async def test_sign_up_duplicate(self, httpx_mock: HTTPXMock) -> None:
        """A duplicate email should raise IdentityError."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/signup",
            status_code=409,
            json={"error": "A user with this email address has already been registered"},
        )
        identity, _, _ = make_identity()

        with pytest.raises(IdentityError, match="already been registered"):
            await identity.sign_up("me@example.com", "secret")
        await identity.aclose()

    @pytest.mark.asyncio
    async def test_sign_in_unreachable(self, httpx_mock: HTTPXMock) -> None:
        """Transport errors should raise RemoteFailure."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        identity, _, _ = make_identity()

        with pytest.raises(RemoteFailure):
            await identity.sign_in("me@example.com", "secret")
        await identity.aclose()


class TestCredential:
    """Tests for get_current_credential and refresh."""

    @pytest.mark.asyncio
    async def test_no_session(self) -> None:
        """Should return None without a session."""
        identity, _, _ = make_identity()

        assert await identity.get_current_credential() is None
        await identity.aclose()

    @pytest.mark.asyncio
    async def test_valid_token_is_returned_without_request(self) -> None:
        """A token far from expiry should be returned as is."""
        identity, _, _ = make_identity(AuthSession("fresh", "rt", expires_at=NOW + 3600))

        assert await identity.get_current_credential() == "fresh"
        await identity.aclose()

    @pytest.mark.asyncio
    async def test_expiring_token_is_refreshed(self, httpx_mock: HTTPXMock) -> None:
        """A token about to expire should be renewed first."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/refresh",
            match_json={"refresh_token": "rt-old"},
            json=token_response("new", "rt-new"),
        )
        identity, store, events = make_identity(expiring_session())

        assert await identity.get_current_credential() == "new"
        await identity.aclose()

        saved = store.load()
        assert saved is not None
        assert saved.refresh_token == "rt-new"
        assert saved.email == "me@example.com"
        assert events == [AuthEvent.TOKEN_REFRESHED]

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(
        self, httpx_mock: HTTPXMock
    ) -> None:
        """Concurrent renewals should result in one refresh request."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/refresh",
            json=token_response("new", "rt-new"),
        )
        identity, _, _ = make_identity(expiring_session())

        results = await asyncio.gather(
            identity.get_current_credential(),
            identity.get_current_credential(),
        )
        await identity.aclose()

        assert results == ["new", "new"]
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_rejected_refresh_signs_out(self, httpx_mock: HTTPXMock) -> None:
        """A refused refresh token should end the session."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/refresh",
            status_code=401,
            json={"error": "Invalid refresh token"},
        )
        identity, store, events = make_identity(expiring_session())

        assert await identity.get_current_credential() is None
        await identity.aclose()

        assert identity.session is None
        assert store.load() is None
        assert events == [AuthEvent.SIGNED_OUT]

    @pytest.mark.asyncio
    async def test_refresh_server_error_keeps_session(
        self, httpx_mock: HTTPXMock
    ) -> None:
        """A transient refresh failure should raise without signing out."""
        httpx_mock.add_response(
            method="POST", url="http://test/auth/refresh", status_code=503
        )
        identity, store, events = make_identity(expiring_session())

        with pytest.raises(RemoteFailure):
            await identity.get_current_credential()
        await identity.aclose()

        assert store.load() is not None
        assert events == []


class TestSignOut:
    """Tests for sign-out."""

    @pytest.mark.asyncio
    async def test_sign_out(self, httpx_mock: HTTPXMock) -> None:
        """Should revoke server-side and clear the session."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/auth/logout",
            match_headers={"Authorization": "Bearer fresh"},
            status_code=204,
        )
        identity, store, events = make_identity(
            AuthSession("fresh", "rt", expires_at=NOW + 3600)
        )

        await identity.sign_out()
        await identity.aclose()

        assert store.load() is None
        assert events == [AuthEvent.SIGNED_OUT]

    @pytest.mark.asyncio
    async def test_sign_out_offline(self, httpx_mock: HTTPXMock) -> None:
        """Local data should be cleared even if the server is unreachable."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        identity, store, events = make_identity(
            AuthSession("fresh", "rt", expires_at=NOW + 3600)
        )

        await identity.sign_out()
        await identity.aclose()

        assert store.load() is None
        assert events == [AuthEvent.SIGNED_OUT]


class TestKeyringSessionStore:
    """Tests for the keyring-backed session store."""

    def test_save(self) -> None:
        """Should store the session as JSON under the server URL."""
        session = AuthSession("a", "r", 1.0, "me@example.com")
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            KeyringSessionStore("http://test").save(session)

        service, username, raw = mock_keyring.set_password.call_args.args
        assert service == KEYRING_SERVICE
        assert username == "http://test"
        assert json.loads(raw)["access_token"] == "a"

    def test_load(self) -> None:
        """Should decode a stored session."""
        raw = json.dumps(
            {"access_token": "a", "refresh_token": "r", "expires_at": 1.0, "email": ""}
        )
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = raw
            session = KeyringSessionStore("http://test").load()

        assert session == AuthSession("a", "r", 1.0, "")

    def test_load_missing(self) -> None:
        """Should return None when nothing is stored."""
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = None
            assert KeyringSessionStore("http://test").load() is None

    def test_load_corrupt(self) -> None:
        """Should discard unreadable entries."""
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = "not json"
            assert KeyringSessionStore("http://test").load() is None

    def test_load_keyring_unavailable(self) -> None:
        """Should start without a session when the keyring fails."""
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            mock_keyring.get_password.side_effect = KeyringError("no backend")
            assert KeyringSessionStore("http://test").load() is None

    def test_clear_missing(self) -> None:
        """Clearing a missing entry should not raise."""
        with patch("invtrac.client.identity.keyring") as mock_keyring:
            mock_keyring.delete_password.side_effect = PasswordDeleteError("missing")
            KeyringSessionStore("http://test").clear()

        mock_keyring.delete_password.assert_called_once_with(
            KEYRING_SERVICE, "http://test"
        )


@pytest.fixture
def no_keyring() -> Iterator[None]:
    """Install the keyring backend that fails every operation."""
    previous = keyring.get_keyring()
    keyring.set_keyring(fail.Keyring())
    yield
    keyring.set_keyring(previous)


class TestWithoutKeyringBackend:
    """Tests for hosts where no keyring backend is available."""

    def test_store_operations_do_not_raise(self, no_keyring) -> None:
        """Load, save and clear should degrade to warnings."""
        store = KeyringSessionStore("http://test")

        store.save(AuthSession("a", "r", 1.0))
        store.clear()

        assert store.load() is None

    @pytest.mark.asyncio
    async def test_sign_out_still_signs_out(
        self, no_keyring, httpx_mock: HTTPXMock
    ) -> None:
        """Sign-out should clear the session and emit SIGNED_OUT."""
        httpx_mock.add_response(
            method="POST", url="http://test/auth/token", json=token_response()
        )
        httpx_mock.add_response(
            method="POST", url="http://test/auth/logout", status_code=204
        )
        identity = IdentityClient(
            ServerConfig("http://test"), KeyringSessionStore("http://test")
        )
        events: list[AuthEvent] = []
        identity.subscribe(lambda event, _session: events.append(event))

        await identity.sign_in("me@example.com", "secret")
        await identity.sign_out()
        await identity.aclose()

        assert identity.session is None
        assert events == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]

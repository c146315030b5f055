"""Token provider: the credential precondition for every remote call.

This module provides:
- IdentityProvider: Protocol of the identity subsystem the provider wraps
- SessionChanged: Notification carrying the new credential (or None)
- TokenProvider: Thin adapter resolving the currently valid credential
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from invtrac.core.types import AuthEvent

if TYPE_CHECKING:
    from invtrac.client.identity import AuthSession

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Identity subsystem consumed by the TokenProvider."""

    async def get_current_credential(self) -> str | None: ...

    async def sign_out(self) -> None: ...

    def subscribe(
        self, listener: Callable[[AuthEvent, AuthSession | None], None]
    ) -> Callable[[], None]: ...


@dataclass(frozen=True)
class SessionChanged:
    """Sign-in, sign-out or token refresh.

    Attributes:
        credential: The new access token, None when signed out.
        event: The identity event that caused the change.
    """

    credential: str | None
    event: AuthEvent


SessionListener = Callable[[SessionChanged], None]


class TokenProvider:
    """Resolves the currently valid credential.

    Never forces a logout itself: network failures during renewal propagate
    as RemoteFailure ("try again later"); only a definitive refusal yields
    None.
    """

    def __init__(self, identity: IdentityProvider) -> None:
        self._identity = identity
        self._listeners: list[SessionListener] = []
        self._unsubscribe_identity = identity.subscribe(self._on_auth_event)

    async def get_token(self) -> str | None:
        """Get the current credential, renewing it if it is about to expire.

        Returns:
            Access token, or None if there is no session or renewal was
            refused.

        Raises:
            RemoteFailure: If renewal failed for a transient reason.
        """
        token = await self._identity.get_current_credential()
        if token is None:
            logger.debug("No valid access token available")
        return token

    async def sign_out(self) -> None:
        """Sign out of the identity subsystem."""
        await self._identity.sign_out()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a SessionChanged listener.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Detach from the identity subsystem."""
        self._unsubscribe_identity()
        self._listeners.clear()

    def _on_auth_event(self, event: AuthEvent, session: AuthSession | None) -> None:
        credential = session.access_token if session is not None else None
        if event == AuthEvent.SIGNED_OUT:
            credential = None
        change = SessionChanged(credential=credential, event=event)
        for listener in list(self._listeners):
            listener(change)

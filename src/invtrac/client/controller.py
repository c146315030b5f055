"""Session controller: startup load, session transitions, sync wiring.

State machine:
    INITIALIZING --(no credential)--------------------> LOGGED_OUT
    INITIALIZING --(credential)--> LOADING_DATA
    LOADING_DATA --(snapshot)-----------------------------> READY
    LOADING_DATA --(RemoteFailure: empty snapshot)--------> READY
    LOADING_DATA --(Unauthorized)-------------------------> LOGGED_OUT
    READY --(SessionChanged(None) / Unauthorized)---------> LOGGED_OUT
    LOGGED_OUT --(sign_in)--> INITIALIZING
    READY --(sign_in)--> LOGGED_OUT --> INITIALIZING

Entering LOGGED_OUT cancels the armed push, clears the store and signs out
of the identity subsystem.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from invtrac.client.api import RemoteFailure, Unauthorized
from invtrac.client.auth import SessionChanged
from invtrac.core.models import Snapshot
from invtrac.core.types import SessionState

if TYPE_CHECKING:
    from invtrac.client.api import RemoteStoreClient
    from invtrac.client.auth import TokenProvider
    from invtrac.client.identity import IdentityClient
    from invtrac.client.scheduler import SyncScheduler
    from invtrac.client.session import Session
    from invtrac.client.store import DomainStore

logger = logging.getLogger(__name__)


class SessionController:
    """Orchestrates the client session.

    Usage:
        controller = SessionController(
            session, store, tokens, remote, scheduler, identity
        )
        state = await controller.start()
        if state == SessionState.LOGGED_OUT:
            await controller.sign_in(email, password)

        store.adjust_quantity(item_id, +1)   # pushed after the quiet interval

        await controller.close()
    """

    def __init__(
        self,
        session: Session,
        store: DomainStore,
        tokens: TokenProvider,
        remote: RemoteStoreClient,
        scheduler: SyncScheduler,
        identity: IdentityClient | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            session: Shared session state.
            store: Domain store seeded on load and cleared on logout.
            tokens: Credential source.
            remote: Remote store client for the initial fetch.
            scheduler: Scheduler fed by store mutations.
            identity: Identity client for explicit sign-in (optional).
        """
        self._session = session
        self._store = store
        self._tokens = tokens
        self._remote = remote
        self._scheduler = scheduler
        self._identity = identity

        self._unsubscribers: list[Callable[[], None]] = []
        self._started = False

        self._scheduler.set_on_unauthorized(self.force_logout)

    @property
    def state(self) -> SessionState:
        """Get the current session state."""
        return self._session.state

    @property
    def store(self) -> DomainStore:
        """Get the domain store."""
        return self._store

    # === Lifecycle ===

    async def start(self) -> SessionState:
        """Subscribe to session events and run the initial load.

        Returns:
            The state reached (READY or LOGGED_OUT).
        """
        if not self._started:
            self._started = True
            self._unsubscribers.append(self._tokens.subscribe(self._on_session_changed))
            self._unsubscribers.append(
                self._store.subscribe(lambda _snapshot: self._scheduler.notify())
            )
        return await self._initialize()

    async def close(self) -> None:
        """Tear down: disarm the timer and detach from all sources.

        An in-flight push is allowed to finish; its result is ignored.
        """
        self._scheduler.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._started = False

    async def _initialize(self) -> SessionState:
        # No pushes until the (re)load completes
        self._scheduler.cancel()
        self._session.transition(SessionState.INITIALIZING)
        try:
            token = await self._tokens.get_token()
        except RemoteFailure as e:
            logger.warning("Could not reach identity service: %s", e)
            self._enter_logged_out()
            return self._session.state

        if token is None:
            self._enter_logged_out()
            return self._session.state

        return await self._load(token)

    async def _load(self, token: str) -> SessionState:
        self._session.transition(SessionState.LOADING_DATA)
        generation = self._session.generation
        try:
            snapshot = await self._remote.fetch_snapshot(token)
        except Unauthorized:
            logger.error("Authentication token is invalid or expired, logging out")
            await self.force_logout()
            return self._session.state
        except RemoteFailure as e:
            # New account or unreachable server: start from an empty inventory
            logger.warning("Error loading user data, starting empty: %s", e)
            snapshot = Snapshot.empty()

        if not self._session.is_current(generation):
            logger.debug("Load finished after logout, result ignored")
            return self._session.state

        self._store.replace(snapshot)
        self._session.transition(SessionState.READY)
        self._scheduler.enable()
        return self._session.state

    # === Logout ===

    def _enter_logged_out(self) -> None:
        self._scheduler.cancel()
        self._store.clear()
        self._session.transition(SessionState.LOGGED_OUT)

    async def force_logout(self) -> None:
        """Tear the session down after a rejected credential."""
        if self._session.state == SessionState.LOGGED_OUT:
            return
        logger.warning("Session invalid, logging out")
        self._enter_logged_out()
        await self._tokens.sign_out()

    async def sign_out(self) -> None:
        """Explicit user logout."""
        self._enter_logged_out()
        await self._tokens.sign_out()

    async def sign_in(self, email: str, password: str) -> SessionState:
        """Sign in and re-enter INITIALIZING.

        Raises:
            IdentityError: If the credentials are rejected.
            RemoteFailure: If the identity service is unreachable.
        """
        if self._identity is None:
            raise RuntimeError("No identity client configured")
        if self._session.state != SessionState.LOGGED_OUT:
            # Results of the previous session must not leak into the new one
            self._enter_logged_out()
        await self._identity.sign_in(email, password)
        return await self._initialize()

    # === Session events ===

    def _on_session_changed(self, change: SessionChanged) -> None:
        if change.credential is not None:
            logger.debug("Session event %s", change.event.value)
            return
        if self._session.state == SessionState.LOGGED_OUT:
            return

        logger.info("Signed out (%s)", change.event.value)
        self._enter_logged_out()

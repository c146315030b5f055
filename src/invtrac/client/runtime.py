"""Assembly of the client components.

ClientRuntime builds one shared httpx client and wires IdentityClient,
TokenProvider, RemoteStoreClient, DomainStore, SyncScheduler and
SessionController together around a single Session.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from invtrac.client.api import RemoteStoreClient
from invtrac.client.auth import TokenProvider
from invtrac.client.controller import SessionController
from invtrac.client.identity import IdentityClient, SessionStore
from invtrac.client.scheduler import Clock, SyncScheduler
from invtrac.client.session import Session
from invtrac.client.store import DomainStore
from invtrac.core.config import ServerConfig


@dataclass
class ClientRuntime:
    """All client components for one server."""

    config: ServerConfig
    http: httpx.AsyncClient
    session: Session
    identity: IdentityClient
    tokens: TokenProvider
    remote: RemoteStoreClient
    store: DomainStore
    scheduler: SyncScheduler
    controller: SessionController

    @classmethod
    def create(
        cls,
        config: ServerConfig,
        session_store: SessionStore | None = None,
        clock: Clock | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> ClientRuntime:
        """Build and wire the components.

        Args:
            config: Server connection settings.
            session_store: Where the auth session persists (default: memory).
            clock: Timer source for the scheduler (default: asyncio loop).
            http: Optional pre-built httpx client.
        """
        http = http or httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )
        session = Session()
        identity = IdentityClient(config, session_store, client=http)
        tokens = TokenProvider(identity)
        remote = RemoteStoreClient(config, client=http)
        store = DomainStore()
        scheduler = SyncScheduler(
            store, tokens, remote, session, clock=clock, delay=config.sync_delay_s
        )
        controller = SessionController(
            session, store, tokens, remote, scheduler, identity
        )
        return cls(
            config=config,
            http=http,
            session=session,
            identity=identity,
            tokens=tokens,
            remote=remote,
            store=store,
            scheduler=scheduler,
            controller=controller,
        )

    async def aclose(self) -> None:
        """Close the controller, detach listeners and the HTTP client."""
        await self.controller.close()
        await self.scheduler.drain()
        self.tokens.close()
        await self.http.aclose()

    async def __aenter__(self) -> ClientRuntime:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

"""Client module - Domain store and the debounced synchronization engine."""

from invtrac.client.api import (
    APIError,
    IdentityError,
    RemoteFailure,
    RemoteStoreClient,
    Unauthorized,
)
from invtrac.client.auth import SessionChanged, TokenProvider
from invtrac.client.controller import SessionController
from invtrac.client.identity import (
    AuthSession,
    IdentityClient,
    InMemorySessionStore,
    KeyringSessionStore,
)
from invtrac.client.runtime import ClientRuntime
from invtrac.client.scheduler import DebounceTimer, LoopClock, SyncScheduler
from invtrac.client.session import Session
from invtrac.client.store import ALL_CATEGORIES, DomainStore

__all__ = [
    # Errors
    "APIError",
    "IdentityError",
    "RemoteFailure",
    "Unauthorized",
    # Remote
    "RemoteStoreClient",
    # Identity
    "AuthSession",
    "IdentityClient",
    "InMemorySessionStore",
    "KeyringSessionStore",
    "SessionChanged",
    "TokenProvider",
    # Sync engine
    "ALL_CATEGORIES",
    "ClientRuntime",
    "DebounceTimer",
    "DomainStore",
    "LoopClock",
    "Session",
    "SessionController",
    "SyncScheduler",
]

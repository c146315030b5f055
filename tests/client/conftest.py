"""Fakes for the client components."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from invtrac.client.auth import SessionChanged
from invtrac.core.models import Category, Item, Snapshot
from invtrac.core.types import AuthEvent


class FakeRemote:
    """In-memory stand-in for RemoteStoreClient."""

    def __init__(self) -> None:
        self.stored = Snapshot.empty()
        self.saved: list[Snapshot] = []
        self.credentials: list[str] = []
        self.fetch_error: Exception | None = None
        self.save_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.fetch_gate: asyncio.Event | None = None

    async def fetch_snapshot(self, credential: str) -> Snapshot:
        self.credentials.append(credential)
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.stored

    async def replace_snapshot(self, credential: str, snapshot: Snapshot) -> None:
        self.credentials.append(credential)
        if self.gate is not None:
            await self.gate.wait()
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(snapshot)
        self.stored = snapshot


class FakeTokens:
    """In-memory stand-in for TokenProvider."""

    def __init__(self, token: str | None = "token123") -> None:
        self.token = token
        self.error: Exception | None = None
        self.sign_outs = 0
        self._listeners: list[Callable[[SessionChanged], None]] = []

    async def get_token(self) -> str | None:
        if self.error is not None:
            raise self.error
        return self.token

    async def sign_out(self) -> None:
        self.sign_outs += 1
        self.token = None
        self.emit(SessionChanged(credential=None, event=AuthEvent.SIGNED_OUT))

    def subscribe(self, listener: Callable[[SessionChanged], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def emit(self, change: SessionChanged) -> None:
        for listener in list(self._listeners):
            listener(change)


@pytest.fixture
def remote() -> FakeRemote:
    """Create a fake remote store."""
    return FakeRemote()


@pytest.fixture
def tokens() -> FakeTokens:
    """Create a fake token provider holding a valid token."""
    return FakeTokens()


@pytest.fixture
def food_snapshot() -> Snapshot:
    """Snapshot with one category and one item."""
    return Snapshot(
        categories=(Category("c1", "Food"),),
        items=(Item("i1", "Apples", 3, "c1"),),
    )

"""Debounced, serialized persistence of the inventory snapshot.

This module provides:
- Clock / TimerHandle: Timer abstraction (LoopClock in production, a virtual
  clock in tests)
- DebounceTimer: Owns the single armed timer handle
- SyncScheduler: Collapses bursts of mutations into one outbound write

Rules:
    | Situation                      | Action                                  |
    |--------------------------------|-----------------------------------------|
    | mutation, scheduler disabled   | ignored (initial load not finished)     |
    | mutation                       | cancel armed timer, arm quiet interval  |
    | timer fires, nothing in flight | push store snapshot as of now           |
    | timer fires, push in flight    | re-arm once the in-flight push is done  |
    | push -> RemoteFailure          | log, drop; next mutation retries        |
    | push -> Unauthorized / no token| report to the session controller        |
    | cancel() (logout / close)      | disarm; in-flight result is ignored     |
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from invtrac.client.api import RemoteFailure, Unauthorized
from invtrac.core.config import DEFAULT_SYNC_DELAY_S
from invtrac.core.models import Snapshot

if TYPE_CHECKING:
    from invtrac.client.api import RemoteStoreClient
    from invtrac.client.auth import TokenProvider
    from invtrac.client.session import Session
    from invtrac.client.store import DomainStore

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of delayed callbacks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopClock:
    """Clock backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class DebounceTimer:
    """A single re-armable timer.

    Arming replaces any previously armed callback, so at most one callback
    is ever pending.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._handle: TimerHandle | None = None

    @property
    def armed(self) -> bool:
        """True while a callback is pending."""
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Cancel any pending callback and schedule `callback` after `delay`."""
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = self._clock.call_later(delay, fire)

    def cancel(self) -> None:
        """Cancel the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class SyncScheduler:
    """Debounces store mutations into single replace_snapshot calls.

    At most one push is in flight and at most one timer is armed at any
    time. The snapshot pushed is the one in the store when the timer fires,
    so a burst of edits results in one write of the final state.

    Usage:
        scheduler = SyncScheduler(store, tokens, remote, session)
        scheduler.set_on_unauthorized(controller.force_logout)
        store.subscribe(lambda _snapshot: scheduler.notify())

        scheduler.enable()   # after the initial load
        ...
        await scheduler.flush()
        scheduler.cancel()
    """

    def __init__(
        self,
        store: DomainStore,
        tokens: TokenProvider,
        remote: RemoteStoreClient,
        session: Session,
        clock: Clock | None = None,
        delay: float = DEFAULT_SYNC_DELAY_S,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Store whose snapshot is pushed.
            tokens: Credential source for each push.
            remote: Client performing replace_snapshot.
            session: Session whose generation scopes push results.
            clock: Timer source (default: the running asyncio loop).
            delay: Quiet interval in seconds.
        """
        self._store = store
        self._tokens = tokens
        self._remote = remote
        self._session = session
        self._timer = DebounceTimer(clock or LoopClock())
        self._delay = delay

        self._enabled = False
        self._dirty = False
        self._rerun = False
        self._generation = session.generation
        self._in_flight: asyncio.Task[bool] | None = None

        self._pushes = 0
        self._on_unauthorized: Callable[[], Awaitable[None]] | None = None

    @property
    def enabled(self) -> bool:
        """True once pushes are allowed (initial load finished)."""
        return self._enabled

    @property
    def pending(self) -> bool:
        """True while a debounce timer is armed."""
        return self._timer.armed

    @property
    def in_flight(self) -> bool:
        """True while a push is running."""
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def dirty(self) -> bool:
        """True if a mutation has not been picked up by a push yet."""
        return self._dirty

    @property
    def push_count(self) -> int:
        """Number of pushes started since creation."""
        return self._pushes

    def set_on_unauthorized(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Set the coroutine called when a push finds the session invalid."""
        self._on_unauthorized = callback

    def enable(self) -> None:
        """Allow pushes for the current session generation."""
        self._enabled = True
        self._generation = self._session.generation
        self._dirty = False
        self._rerun = False

    def cancel(self) -> None:
        """Disarm the timer and suppress further pushes.

        An in-flight push is left to finish; its outcome is ignored.
        """
        self._enabled = False
        self._dirty = False
        self._rerun = False
        self._timer.cancel()

    def notify(self) -> None:
        """Record a mutation and restart the quiet interval."""
        if not self._enabled:
            logger.debug("Ignoring mutation: sync not enabled")
            return
        self._dirty = True
        self._timer.arm(self._delay, self._on_timer)

    def _on_timer(self) -> None:
        if not self._enabled or not self._dirty:
            return
        if self.in_flight:
            logger.debug("Push in flight, deferring next push")
            self._rerun = True
            return
        self._start_push()

    def _start_push(self) -> asyncio.Task[bool]:
        self._dirty = False
        self._pushes += 1
        snapshot = self._store.snapshot
        task = asyncio.get_running_loop().create_task(
            self._push(snapshot, self._generation)
        )
        task.add_done_callback(self._on_push_done)
        self._in_flight = task
        return task

    async def _push(self, snapshot: Snapshot, generation: int) -> bool:
        """Push one snapshot. Returns True if the server acknowledged it."""
        try:
            token = await self._tokens.get_token()
        except RemoteFailure as e:
            logger.warning("Could not obtain a credential, push dropped: %s", e)
            return False

        if token is None:
            logger.error("No valid access token available for saving")
            await self._report_unauthorized(generation)
            return False

        try:
            await self._remote.replace_snapshot(token, snapshot)
        except Unauthorized:
            logger.error("Authentication token rejected during save")
            await self._report_unauthorized(generation)
            return False
        except RemoteFailure as e:
            logger.warning("Failed to save user data, push dropped: %s", e)
            return False

        if not self._session.is_current(generation):
            logger.debug("Push finished after logout, result ignored")
            return False
        return True

    async def _report_unauthorized(self, generation: int) -> None:
        if not self._session.is_current(generation):
            logger.debug("Unauthorized result for a torn-down session ignored")
            return
        if self._on_unauthorized is not None:
            await self._on_unauthorized()

    def _on_push_done(self, task: asyncio.Task[bool]) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled() and task.exception() is not None:
            logger.error("Push error", exc_info=task.exception())

        if self._rerun and self._enabled:
            self._rerun = False
            self._timer.arm(self._delay, self._on_timer)

    async def drain(self) -> None:
        """Wait for the in-flight push, if any, to finish."""
        task = self._in_flight
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def flush(self) -> bool:
        """Push unsaved changes now instead of waiting for the timer.

        Returns:
            True if everything is saved (or there was nothing to save).
        """
        if not self._enabled:
            return not self._dirty
        self._timer.cancel()
        self._rerun = False
        await self.drain()
        self._timer.cancel()
        if not self._dirty or not self._enabled:
            return True

        task = self._start_push()
        await asyncio.wait({task})
        return not task.cancelled() and task.exception() is None and task.result()

"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest


class FakeHandle:
    """Timer handle of the virtual clock."""

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Virtual clock: callbacks run only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        """Armed, not yet fired, not cancelled handles."""
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due callbacks in order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (h for h in self._handles if not h.cancelled and h.when <= target),
                key=lambda h: h.when,
            )
            if not due:
                break
            handle = due[0]
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


@pytest.fixture
def clock() -> FakeClock:
    """Create a virtual clock."""
    return FakeClock()

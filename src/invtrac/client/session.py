"""Process-wide session state, passed explicitly to the components.

The Session records which SessionState the client is in and a generation
counter that increments every time a session is torn down. Work started
under one generation (an in-flight push) compares generations on completion
and drops its result if the session it belonged to is gone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from invtrac.core.types import SessionState

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState, SessionState], None]


class Session:
    """Observable session state."""

    def __init__(self) -> None:
        self._state = SessionState.INITIALIZING
        self._generation = 0
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        """Get the current state."""
        return self._state

    @property
    def generation(self) -> int:
        """Identifier of the current session; bumped on every teardown."""
        return self._generation

    @property
    def is_ready(self) -> bool:
        """True once the initial load has completed."""
        return self._state == SessionState.READY

    def is_current(self, generation: int) -> bool:
        """Check whether work started under `generation` is still relevant."""
        return generation == self._generation

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with (old_state, new_state).

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def transition(self, new_state: SessionState) -> None:
        """Move to a new state and notify listeners.

        Entering LOGGED_OUT from any other state starts a new generation.
        """
        old_state = self._state
        if old_state == new_state:
            return
        if new_state == SessionState.LOGGED_OUT:
            self._generation += 1

        self._state = new_state
        logger.info("Session %s -> %s", old_state.value, new_state.value)
        for listener in list(self._listeners):
            listener(old_state, new_state)

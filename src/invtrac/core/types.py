"""Shared types for invtrac.

This module defines enums used by the client session machinery.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of the client session.

    INITIALIZING -> LOGGED_OUT, or INITIALIZING -> LOADING_DATA -> READY.
    Any state returns to LOGGED_OUT on sign-out or a rejected credential.
    """

    INITIALIZING = "initializing"
    LOGGED_OUT = "logged_out"
    LOADING_DATA = "loading_data"
    READY = "ready"


class AuthEvent(str, Enum):
    """Events emitted by the identity subsystem."""

    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"

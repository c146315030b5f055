"""Core module - Shared domain model, configuration and types."""

from invtrac.core.config import DEFAULT_SYNC_DELAY_S, ServerConfig
from invtrac.core.models import (
    Category,
    Item,
    PricingSummary,
    Snapshot,
    clamp_price,
    clamp_quantity,
)
from invtrac.core.types import AuthEvent, SessionState

__all__ = [
    # Config
    "DEFAULT_SYNC_DELAY_S",
    "ServerConfig",
    # Models
    "Category",
    "Item",
    "PricingSummary",
    "Snapshot",
    "clamp_price",
    "clamp_quantity",
    # Types
    "AuthEvent",
    "SessionState",
]

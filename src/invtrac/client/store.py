"""In-memory inventory store.

This module provides:
- DomainStore: Holds the current Snapshot and applies mutations
- ALL_CATEGORIES: Sentinel for the "all items" category filter

Every applied mutation replaces the Snapshot with a new immutable value and
notifies mutation listeners (the SyncScheduler). Inapplicable mutations
(empty name, unknown category, missing id) are skipped without notifying.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace

from invtrac.core.models import (
    Category,
    Item,
    PricingSummary,
    Snapshot,
    clamp_quantity,
)

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

MutationListener = Callable[[Snapshot], None]


def generate_id() -> str:
    """Generate a unique opaque identifier."""
    return uuid.uuid4().hex


class DomainStore:
    """Locally-authoritative copy of the inventory.

    Usage:
        store = DomainStore()
        store.subscribe(lambda snapshot: scheduler.notify())

        food = store.add_category("Food")
        apples = store.add_item("Apples", 3, food.id)
        store.adjust_quantity(apples.id, -5)  # quantity clamps to 0
    """

    def __init__(
        self,
        snapshot: Snapshot | None = None,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        """Initialize the store.

        Args:
            snapshot: Initial snapshot (default: empty).
            id_factory: Generator for new category and item ids.
        """
        self._snapshot = snapshot or Snapshot.empty()
        self._id_factory = id_factory
        self._selected_category = ALL_CATEGORIES
        self._listeners: list[MutationListener] = []

    @property
    def snapshot(self) -> Snapshot:
        """Get the current snapshot."""
        return self._snapshot

    @property
    def selected_category(self) -> str:
        """Get the active category filter (ALL_CATEGORIES or a category id)."""
        return self._selected_category

    def subscribe(self, listener: MutationListener) -> Callable[[], None]:
        """Register a mutation listener.

        Args:
            listener: Called with the new snapshot after each applied mutation.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, snapshot: Snapshot) -> None:
        """Adopt a mutated snapshot and notify listeners."""
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _skip(self, operation: str, reason: str) -> None:
        logger.debug("Skipping %s: %s", operation, reason)

    # === Wholesale replacement (load / logout) ===

    def replace(self, snapshot: Snapshot) -> None:
        """Adopt a fetched snapshot wholesale without notifying listeners."""
        self._snapshot = snapshot
        if (
            self._selected_category != ALL_CATEGORIES
            and snapshot.get_category(self._selected_category) is None
        ):
            self._selected_category = ALL_CATEGORIES

    def clear(self) -> None:
        """Discard all local data without notifying listeners."""
        self._snapshot = Snapshot.empty()
        self._selected_category = ALL_CATEGORIES

    # === Category operations ===

    def add_category(self, name: str) -> Category | None:
        """Append a new category.

        Args:
            name: Category name; surrounding whitespace is stripped.

        Returns:
            The created category, or None if the name is empty.
        """
        name = name.strip()
        if not name:
            self._skip("add_category", "empty name")
            return None

        category = Category(id=self._id_factory(), name=name)
        self._commit(
            replace(self._snapshot, categories=(*self._snapshot.categories, category))
        )
        return category

    def delete_category(self, category_id: str) -> bool:
        """Delete a category and every item that references it.

        Both removals land in one snapshot, so no item ever references a
        missing category. Resets the filter if it pointed at this category.

        Returns:
            True if the category existed.
        """
        if self._snapshot.get_category(category_id) is None:
            self._skip("delete_category", f"unknown category {category_id}")
            return False

        if self._selected_category == category_id:
            self._selected_category = ALL_CATEGORIES

        self._commit(
            Snapshot(
                categories=tuple(
                    c for c in self._snapshot.categories if c.id != category_id
                ),
                items=tuple(
                    i for i in self._snapshot.items if i.category_id != category_id
                ),
            )
        )
        return True

    def select_category(self, category_id: str) -> None:
        """Set the active category filter.

        Unknown ids fall back to ALL_CATEGORIES.
        """
        if (
            category_id != ALL_CATEGORIES
            and self._snapshot.get_category(category_id) is None
        ):
            category_id = ALL_CATEGORIES
        self._selected_category = category_id

    # === Item operations ===

    def add_item(
        self, name: str, initial_quantity: int, category_id: str
    ) -> Item | None:
        """Append a new item with zero pricing.

        Returns:
            The created item, or None if the name is empty or the category
            does not exist.
        """
        name = name.strip()
        if not name:
            self._skip("add_item", "empty name")
            return None
        if self._snapshot.get_category(category_id) is None:
            self._skip("add_item", f"unknown category {category_id}")
            return None

        item = Item(
            id=self._id_factory(),
            name=name,
            quantity=clamp_quantity(initial_quantity),
            category_id=category_id,
        )
        self._commit(replace(self._snapshot, items=(*self._snapshot.items, item)))
        return item

    def delete_item(self, item_id: str) -> bool:
        """Delete an item.

        Returns:
            True if the item existed.
        """
        if self._snapshot.get_item(item_id) is None:
            self._skip("delete_item", f"unknown item {item_id}")
            return False

        self._commit(
            replace(
                self._snapshot,
                items=tuple(i for i in self._snapshot.items if i.id != item_id),
            )
        )
        return True

    def _update_item(
        self, operation: str, item_id: str, update: Callable[[Item], Item]
    ) -> Item | None:
        """Apply an update to one item, preserving item order."""
        current = self._snapshot.get_item(item_id)
        if current is None:
            self._skip(operation, f"unknown item {item_id}")
            return None

        updated = update(current)
        self._commit(
            replace(
                self._snapshot,
                items=tuple(
                    updated if i.id == item_id else i for i in self._snapshot.items
                ),
            )
        )
        return updated

    def adjust_quantity(self, item_id: str, delta: int) -> Item | None:
        """Add delta to an item's quantity, never going below zero."""
        return self._update_item(
            "adjust_quantity",
            item_id,
            lambda item: item.with_quantity(item.quantity + delta),
        )

    def set_quantity(self, item_id: str, value: int) -> Item | None:
        """Set an item's quantity, clamped to zero."""
        return self._update_item(
            "set_quantity", item_id, lambda item: item.with_quantity(value)
        )

    def set_pricing(
        self, item_id: str, original_price: float, sales_price: float
    ) -> Item | None:
        """Set an item's per-piece prices, each clamped to zero."""
        return self._update_item(
            "set_pricing",
            item_id,
            lambda item: item.with_pricing(original_price, sales_price),
        )

    # === Queries ===

    def filtered_items(self, query: str = "") -> list[Item]:
        """Items in the active category whose name contains query.

        Matching is case-insensitive.
        """
        needle = query.lower()
        return [
            item
            for item in self._snapshot.items
            if (
                self._selected_category == ALL_CATEGORIES
                or item.category_id == self._selected_category
            )
            and needle in item.name.lower()
        ]

    def current_category_name(self) -> str:
        """Display name of the active filter."""
        if self._selected_category == ALL_CATEGORIES:
            return "All Items"
        category = self._snapshot.get_category(self._selected_category)
        return category.name if category else "Items"

    def pricing(self, item_id: str) -> PricingSummary | None:
        """Pricing summary for an item, or None if it does not exist."""
        item = self._snapshot.get_item(item_id)
        if item is None:
            return None
        return PricingSummary.for_item(item)

    def find_category(self, name: str) -> Category | None:
        """Find a category by case-insensitive name."""
        wanted = name.strip().lower()
        for category in self._snapshot.categories:
            if category.name.lower() == wanted:
                return category
        return None

    def find_item(self, name: str) -> Item | None:
        """Find an item by case-insensitive name."""
        wanted = name.strip().lower()
        for item in self._snapshot.items:
            if item.name.lower() == wanted:
                return item
        return None

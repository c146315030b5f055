"""Inventory domain model.

This module provides:
- Category, Item: Immutable domain records
- Snapshot: The whole-document unit of remote persistence
- PricingSummary: Totals and margin derived from persisted item fields

Wire format (JSON, camelCase as stored by the server):
    {
        "categories": [{"id": "c1", "name": "Food"}],
        "items": [{"id": "i1", "name": "Apples", "quantity": 3,
                   "categoryId": "c1", "originalPrice": 0, "salesPrice": 0}]
    }
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any


def clamp_quantity(value: int) -> int:
    """Clamp a quantity to the non-negative range."""
    return max(0, int(value))


def clamp_price(value: float) -> float:
    """Clamp a price to the non-negative range.

    Non-finite values (NaN, infinity) cannot be encoded as JSON and become 0.
    """
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)


@dataclass(frozen=True)
class Category:
    """A named group of items."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Category:
        """Create from API response dictionary."""
        return cls(id=str(data["id"]), name=str(data["name"]))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Item:
    """A stocked item belonging to one category."""

    id: str
    name: str
    quantity: int
    category_id: str
    original_price: float = 0.0
    sales_price: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        """Create from API response dictionary.

        Items saved before pricing existed have no price keys; they
        decode as 0. Out-of-range values are clamped.
        """
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            quantity=clamp_quantity(data.get("quantity") or 0),
            category_id=str(data["categoryId"]),
            original_price=clamp_price(data.get("originalPrice") or 0),
            sales_price=clamp_price(data.get("salesPrice") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "categoryId": self.category_id,
            "originalPrice": self.original_price,
            "salesPrice": self.sales_price,
        }

    def with_quantity(self, quantity: int) -> Item:
        """Return a copy with a clamped quantity."""
        return replace(self, quantity=clamp_quantity(quantity))

    def with_pricing(self, original_price: float, sales_price: float) -> Item:
        """Return a copy with clamped prices."""
        return replace(
            self,
            original_price=clamp_price(original_price),
            sales_price=clamp_price(sales_price),
        )


@dataclass(frozen=True)
class Snapshot:
    """Complete inventory state: the unit of remote persistence.

    Snapshots are immutable; every store mutation produces a new one.
    """

    categories: tuple[Category, ...] = field(default_factory=tuple)
    items: tuple[Item, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> Snapshot:
        """Create an empty snapshot."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """Create from API response dictionary.

        Missing or null sequences decode as empty.
        """
        return cls(
            categories=tuple(
                Category.from_dict(c) for c in data.get("categories") or []
            ),
            items=tuple(Item.from_dict(i) for i in data.get("items") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the request body of POST /user-data."""
        return {
            "categories": [c.to_dict() for c in self.categories],
            "items": [i.to_dict() for i in self.items],
        }

    @property
    def is_empty(self) -> bool:
        """True when there are no categories and no items."""
        return not self.categories and not self.items

    def get_category(self, category_id: str) -> Category | None:
        """Look up a category by id."""
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def get_item(self, item_id: str) -> Item | None:
        """Look up an item by id."""
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class PricingSummary:
    """Stock valuation for one item.

    Attributes:
        quantity: Units in stock.
        total_original: original_price * quantity.
        total_sales: sales_price * quantity.
        margin: total_sales - total_original.
        margin_percent: margin relative to total_original, None if that is 0.
    """

    quantity: int
    total_original: float
    total_sales: float
    margin: float
    margin_percent: float | None

    @classmethod
    def for_item(cls, item: Item) -> PricingSummary:
        """Compute the summary from an item's persisted fields."""
        total_original = item.original_price * item.quantity
        total_sales = item.sales_price * item.quantity
        margin = total_sales - total_original
        margin_percent = (
            margin / total_original * 100 if total_original > 0 else None
        )
        return cls(
            quantity=item.quantity,
            total_original=total_original,
            total_sales=total_sales,
            margin=margin,
            margin_percent=margin_percent,
        )

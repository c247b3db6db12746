"""Domain models used throughout the ShukList price comparison application."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional


@dataclass(slots=True)
class Product:
    """A grocery product that can carry prices in several stores."""

    id: str
    name: str
    category: str
    unit: str
    brand: Optional[str] = None
    barcode: Optional[str] = None


@dataclass(slots=True)
class Store:
    """A physical store where prices are recorded."""

    id: str
    name: str
    town: str
    address: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """Single price observation for a product in a store."""

    product_id: str
    store_id: str
    price: Decimal
    recorded_at: datetime
    is_promotion: bool = False
    promotion_end: Optional[date] = None
    unit: Optional[str] = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"Price must not be negative: {self.price}")


@dataclass(slots=True)
class ShoppingList:
    """A named shopping list owned by the user."""

    id: str
    name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class ShoppingListItem:
    """A product and quantity on a shopping list.

    ``product`` carries the joined product row when the repository provides it;
    the comparison engine only relies on ``product_id`` and ``quantity``.
    """

    id: str
    product_id: str
    quantity: int = 1
    product: Optional[Product] = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"Quantity must be at least 1: {self.quantity}")


@dataclass(frozen=True, slots=True)
class CheapestPrice:
    """Lowest current price for a product and the store offering it."""

    price: Decimal
    store_id: str


@dataclass(frozen=True, slots=True)
class StoreComparison:
    """Cost of fulfilling a shopping list at a single store."""

    store: Store
    total: Decimal
    available_items: int
    missing_items: int
    savings: Optional[Decimal] = None

    @property
    def is_complete(self) -> bool:
        return self.missing_items == 0


@dataclass(slots=True)
class ProductWithPrice:
    """Product annotated with its cheapest current price, for pickers."""

    product: Product
    cheapest_price: Optional[Decimal] = None
    cheapest_store: Optional[str] = None

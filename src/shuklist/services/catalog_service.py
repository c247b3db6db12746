"""Service for entering stores, products and prices."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from decimal import Decimal

from ..models import PriceRecord, Product, Store
from ..storage.repository import CsvCatalogRepository

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


@dataclass(slots=True)
class CatalogService:
    """Keeps the store and product catalogue and records observed prices."""

    repository: CsvCatalogRepository

    def stores_by_town(self) -> dict[str, list[Store]]:
        """Stores grouped by town, towns and names in alphabetical order."""

        grouped: dict[str, list[Store]] = {}
        stores = sorted(self.repository.fetch_stores(), key=lambda store: (store.town.lower(), store.name.lower()))
        for store in stores:
            grouped.setdefault(store.town, []).append(store)
        return grouped

    def add_store(self, name: str, town: str, address: str | None = None) -> Store:
        name, town = (name or "").strip(), (town or "").strip()
        if not name:
            raise ValueError("Please enter a store name")
        if not town:
            raise ValueError("Please select or enter a town")
        for store in self.repository.fetch_stores():
            if store.name.lower() == name.lower() and store.town.lower() == town.lower():
                raise ValueError("This store already exists in this town")
        store = self.repository.add_store(name, town, _clean(address))
        logger.info("Added store %s (%s, %s)", store.id, store.name, store.town)
        return store

    def get_product(self, product_id: str) -> Product:
        product = self.repository.get_product(product_id)
        if product is None:
            raise KeyError(f"Unknown product: {product_id}")
        return product

    def add_product(
        self,
        name: str,
        category: str,
        unit: str,
        store_id: str,
        price: Decimal | None,
        brand: str | None = None,
        barcode: str | None = None,
        is_promotion: bool = False,
        promotion_end: date | None = None,
    ) -> tuple[Product, PriceRecord]:
        """Create a product together with its first price.

        A product whose barcode is already known is reused instead of being
        duplicated, and only the new price is recorded.
        """

        name, category, unit = (name or "").strip(), (category or "").strip(), (unit or "").strip()
        if not name or not category or not unit:
            raise ValueError("Please fill in product name, category, and unit")
        if not store_id or price is None:
            raise ValueError("Please select a store and enter a price")
        if price < 0:
            raise ValueError(f"Price must not be negative: {price}")

        barcode = _clean(barcode)
        product = None
        if barcode:
            product = next((p for p in self.repository.fetch_products() if p.barcode == barcode), None)
        if product is None:
            self._require_store(store_id)
            product = self.repository.add_product(name, category, unit, brand=_clean(brand), barcode=barcode)
            logger.info("Added product %s (%s)", product.id, product.name)
        record = self.record_price(product.id, store_id, price, is_promotion, promotion_end)
        return product, record

    def update_product(
        self,
        product_id: str,
        name: str,
        category: str,
        unit: str,
        brand: str | None = None,
        barcode: str | None = None,
    ) -> Product:
        product = self.get_product(product_id)
        name = (name or "").strip()
        if not name:
            raise ValueError("Product name is required")
        updated = replace(
            product,
            name=name,
            category=_clean(category) or product.category,
            unit=_clean(unit) or product.unit,
            brand=_clean(brand),
            barcode=_clean(barcode),
        )
        self.repository.update_product(updated)
        logger.info("Updated product %s", product_id)
        return updated

    def record_price(
        self,
        product_id: str,
        store_id: str,
        price: Decimal | None,
        is_promotion: bool = False,
        promotion_end: date | None = None,
        recorded_at: datetime | None = None,
    ) -> PriceRecord:
        """Record a price observation for ``product_id`` at ``store_id``."""

        product = self.get_product(product_id)
        self._require_store(store_id)
        if price is None:
            raise ValueError("Please select a store and enter a price")
        record = PriceRecord(
            product_id=product.id,
            store_id=store_id,
            price=price,
            recorded_at=recorded_at or datetime.now(UTC),
            is_promotion=is_promotion,
            promotion_end=promotion_end if is_promotion else None,
            unit=product.unit,
        )
        self.repository.record_price(record)
        logger.info("Recorded price %s for product %s at store %s", price, product_id, store_id)
        return record

    def _require_store(self, store_id: str) -> None:
        if not any(store.id == store_id for store in self.repository.fetch_stores()):
            raise KeyError(f"Unknown store: {store_id}")

"""Coordinates fetching, indexing and comparing prices for shopping lists."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal

from .. import comparison
from ..catalog import build_catalog_index, latest_records_by_product
from ..models import (
    CheapestPrice,
    PriceRecord,
    Product,
    ProductWithPrice,
    ShoppingList,
    ShoppingListItem,
    Store,
    StoreComparison,
)
from ..storage.repository import CsvCatalogRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ListComparison:
    """Everything the list detail view needs to render a comparison."""

    shopping_list: ShoppingList
    items: list[ShoppingListItem]
    results: list[StoreComparison]
    best: StoreComparison | None
    potential_savings: Decimal | None

    @property
    def has_complete_store(self) -> bool:
        return self.best is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "list": {"id": self.shopping_list.id, "name": self.shopping_list.name},
            "item_count": len(self.items),
            "best_store_id": self.best.store.id if self.best else None,
            "potential_savings": _money(self.potential_savings),
            "stores": [
                {
                    "store": {"id": result.store.id, "name": result.store.name, "town": result.store.town},
                    "total": _money(result.total),
                    "available_items": result.available_items,
                    "missing_items": result.missing_items,
                    "savings": _money(result.savings),
                }
                for result in self.results
            ],
        }


def _money(amount: Decimal | None) -> str | None:
    return f"{amount:.2f}" if amount is not None else None


def _promotion_active(record: PriceRecord, today: date) -> bool:
    return record.is_promotion and (record.promotion_end is None or record.promotion_end >= today)


@dataclass(slots=True)
class ComparisonService:
    """High-level service answering price questions for the UI."""

    repository: CsvCatalogRepository

    def compare(self, shopping_list: ShoppingList) -> ListComparison:
        """Compare the cost of ``shopping_list`` across every known store.

        Only prices for products on the list are fetched; the catalog index is
        rebuilt on every call so the result always reflects stored data.
        """

        items = self.repository.fetch_list_items(shopping_list.id)
        stores = self.repository.fetch_stores()
        prices = self.repository.fetch_prices_for_products(item.product_id for item in items)
        index = build_catalog_index(prices, stores)
        results = comparison.compare_list(items, index, stores)
        logger.debug("Compared list %s with %s items", shopping_list.id, len(items))
        return ListComparison(
            shopping_list=shopping_list,
            items=items,
            results=results,
            best=comparison.best_option(results),
            potential_savings=comparison.potential_savings(results),
        )

    def product_picker(self, search: str = "", category: str | None = None) -> list[ProductWithPrice]:
        """Products matching ``search``/``category`` with their cheapest price hint."""

        products = comparison.filter_products(self.repository.fetch_products(), search, category)
        prices = self.repository.fetch_prices_for_products(product.id for product in products)
        index = build_catalog_index(prices, self.repository.fetch_stores())
        return comparison.annotate_products(products, index)

    def cheapest_price_for(self, product_id: str) -> CheapestPrice | None:
        prices = self.repository.fetch_prices_for_products([product_id])
        index = build_catalog_index(prices, self.repository.fetch_stores())
        return comparison.cheapest_price_for(product_id, index)

    def store_prices(self, product_id: str) -> list[tuple[Store, PriceRecord]]:
        """Current price of ``product_id`` in each store that carries it, cheapest first."""

        stores = self.repository.fetch_stores()
        index = build_catalog_index(self.repository.fetch_prices_for_products([product_id]), stores)
        rows = [(store, index.record_for(product_id, store.id)) for store in stores]
        priced = [(store, record) for store, record in rows if record is not None]
        priced.sort(key=lambda row: row[1].price)
        return priced

    def catalogue(self, search: str = "", category: str | None = None) -> list[tuple[Product, PriceRecord | None]]:
        """Products with their most recent price record from any store, newest products first."""

        products = comparison.filter_products(self.repository.fetch_products(), search, category)
        latest = latest_records_by_product(self.repository.fetch_prices_for_products(p.id for p in products))
        return [(product, latest.get(product.id)) for product in reversed(products)]

    def categories(self) -> list[str]:
        return sorted({product.category for product in self.repository.fetch_products()})

    def dashboard_summary(self, today: date | None = None) -> dict[str, object]:
        """Counts shown on the dashboard."""

        today = today or datetime.now(UTC).date()
        stores = self.repository.fetch_stores()
        index = build_catalog_index(self.repository.fetch_prices(), stores)
        promotions = sum(1 for record in index.current_prices.values() if _promotion_active(record, today))
        return {
            "stores": len(stores),
            "products": len(self.repository.fetch_products()),
            "lists": len(self.repository.fetch_lists()),
            "promotions": promotions,
        }

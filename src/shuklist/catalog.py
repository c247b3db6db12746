"""In-memory price lookups built fresh for each comparison request."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from .models import CheapestPrice, PriceRecord, Store

logger = logging.getLogger(__name__)

PriceKey = tuple[str, str]


@dataclass(slots=True)
class CatalogIndex:
    """Current prices keyed by ``(product_id, store_id)`` plus the cheapest view.

    Both mappings are total in the sense that a missing key simply means there
    is no current price; lookups never raise.
    """

    current_prices: dict[PriceKey, PriceRecord] = field(default_factory=dict)
    cheapest_per_product: dict[str, CheapestPrice] = field(default_factory=dict)
    stores: dict[str, Store] = field(default_factory=dict)

    def record_for(self, product_id: str, store_id: str) -> PriceRecord | None:
        return self.current_prices.get((product_id, store_id))

    def price_for(self, product_id: str, store_id: str) -> Decimal | None:
        record = self.current_prices.get((product_id, store_id))
        return record.price if record is not None else None

    def cheapest_for(self, product_id: str) -> CheapestPrice | None:
        return self.cheapest_per_product.get(product_id)

    def store_name(self, store_id: str) -> str | None:
        store = self.stores.get(store_id)
        return store.name if store is not None else None


def _is_newer(candidate: PriceRecord, current: PriceRecord | None) -> bool:
    # Strictly newer only: on equal timestamps the first-inserted record stays.
    return current is None or candidate.recorded_at > current.recorded_at


def build_catalog_index(prices: Iterable[PriceRecord], stores: Iterable[Store]) -> CatalogIndex:
    """Reduce raw price records to current prices and index them.

    For every ``(product, store)`` pair the most recently recorded price is the
    current one. The cheapest view scans stores in the order given and only
    replaces a candidate with a strictly lower price, so ties go to the first
    store enumerated.
    """

    store_list = list(stores)
    current: dict[PriceKey, PriceRecord] = {}
    for record in prices:
        key = (record.product_id, record.store_id)
        if _is_newer(record, current.get(key)):
            current[key] = record

    product_ids = list(dict.fromkeys(product_id for product_id, _ in current))
    cheapest: dict[str, CheapestPrice] = {}
    for product_id in product_ids:
        best: CheapestPrice | None = None
        for store in store_list:
            record = current.get((product_id, store.id))
            if record is None:
                continue
            if best is None or record.price < best.price:
                best = CheapestPrice(price=record.price, store_id=store.id)
        if best is not None:
            cheapest[product_id] = best

    logger.debug(
        "Built catalog index with %s current prices for %s products across %s stores",
        len(current),
        len(cheapest),
        len(store_list),
    )
    return CatalogIndex(
        current_prices=current,
        cheapest_per_product=cheapest,
        stores={store.id: store for store in store_list},
    )


def latest_records_by_product(prices: Iterable[PriceRecord]) -> dict[str, PriceRecord]:
    """Return the most recent record for each product, regardless of store."""

    latest: dict[str, PriceRecord] = {}
    for record in prices:
        if _is_newer(record, latest.get(record.product_id)):
            latest[record.product_id] = record
    return latest

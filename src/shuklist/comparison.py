"""Multi-store price comparison for shopping lists."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from .catalog import CatalogIndex
from .models import CheapestPrice, Product, ProductWithPrice, ShoppingListItem, Store, StoreComparison

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round a currency amount to two decimals, half up."""

    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def compare_list(
    items: Sequence[ShoppingListItem],
    catalog_index: CatalogIndex,
    stores: Iterable[Store],
) -> list[StoreComparison]:
    """Rank ``stores`` by the cost of fulfilling ``items``.

    Every store yields one result. Complete stores (carrying every item) come
    first, sorted by total with ties kept in store order, and carry a
    ``savings`` figure relative to the cheapest complete store. Incomplete
    stores follow in their original order with ``savings`` left as ``None``.
    An empty shopping list yields an empty result rather than zero totals.
    """

    if not items:
        return []

    rows: list[tuple[Store, Decimal, int]] = []
    for store in stores:
        total = Decimal(0)
        available = 0
        for item in items:
            price = catalog_index.price_for(item.product_id, store.id)
            if price is None:
                continue
            total += price * item.quantity
            available += 1
        rows.append((store, total, available))

    complete = [row for row in rows if row[2] == len(items)]
    incomplete = [row for row in rows if row[2] < len(items)]
    complete.sort(key=lambda row: row[1])

    results: list[StoreComparison] = []
    cheapest = complete[0][1] if complete else Decimal(0)
    for store, total, available in complete:
        results.append(
            StoreComparison(
                store=store,
                total=round_money(total),
                available_items=available,
                missing_items=0,
                savings=round_money(total - cheapest),
            )
        )
    for store, total, available in incomplete:
        results.append(
            StoreComparison(
                store=store,
                total=round_money(total),
                available_items=available,
                missing_items=len(items) - available,
            )
        )

    logger.debug(
        "Compared %s items across %s stores (%s complete)", len(items), len(results), len(complete)
    )
    return results


def cheapest_price_for(product_id: str, catalog_index: CatalogIndex) -> CheapestPrice | None:
    """Lowest current price for ``product_id`` and its store, if any store carries it."""

    return catalog_index.cheapest_for(product_id)


def update_quantity(
    items: Sequence[ShoppingListItem], item_id: str, new_quantity: int
) -> list[ShoppingListItem]:
    """Return a copy of ``items`` with the quantity of ``item_id`` replaced.

    Quantities below one are ignored and the items are returned unchanged. The
    caller recomputes the comparison from the returned items.
    """

    if new_quantity < 1:
        return list(items)
    return [replace(item, quantity=new_quantity) if item.id == item_id else item for item in items]


def best_option(results: Sequence[StoreComparison]) -> StoreComparison | None:
    """The top-ranked result when it carries the whole list."""

    if results and results[0].is_complete:
        return results[0]
    return None


def potential_savings(results: Sequence[StoreComparison]) -> Decimal | None:
    """Spread between the most expensive and the cheapest complete store."""

    totals = [result.total for result in results if result.is_complete]
    if not totals:
        return None
    return max(totals) - min(totals)


def annotate_products(products: Iterable[Product], catalog_index: CatalogIndex) -> list[ProductWithPrice]:
    """Attach cheapest-price hints to ``products``.

    Priced products come first, cheapest first; unpriced products follow in
    alphabetical order.
    """

    annotated: list[ProductWithPrice] = []
    for product in products:
        cheapest = catalog_index.cheapest_for(product.id)
        if cheapest is None:
            annotated.append(ProductWithPrice(product=product))
            continue
        annotated.append(
            ProductWithPrice(
                product=product,
                cheapest_price=cheapest.price,
                cheapest_store=catalog_index.store_name(cheapest.store_id) or "Unknown",
            )
        )

    priced = [entry for entry in annotated if entry.cheapest_price is not None]
    unpriced = [entry for entry in annotated if entry.cheapest_price is None]
    priced.sort(key=lambda entry: entry.cheapest_price)
    unpriced.sort(key=lambda entry: entry.product.name.lower())
    return priced + unpriced


def filter_products(
    products: Iterable[Product], search: str = "", category: str | None = None
) -> list[Product]:
    """Case-insensitive search on name or brand, optionally within one category."""

    needle = search.strip().lower()
    matches: list[Product] = []
    for product in products:
        if category and product.category != category:
            continue
        if needle and needle not in product.name.lower() and needle not in (product.brand or "").lower():
            continue
        matches.append(product)
    return matches

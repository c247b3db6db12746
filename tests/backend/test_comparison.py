from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from shuklist.catalog import build_catalog_index
from shuklist.comparison import (
    annotate_products,
    best_option,
    cheapest_price_for,
    compare_list,
    filter_products,
    potential_savings,
    round_money,
    update_quantity,
)
from shuklist.models import PriceRecord, Product, ShoppingListItem, Store

NOW = datetime(2024, 5, 1, tzinfo=UTC)

S1 = Store(id="S1", name="Conad", town="Grottaminarda")
S2 = Store(id="S2", name="Lidl", town="Ariano Irpino")
S3 = Store(id="S3", name="Eurospin", town="Flumeri")


def prices(table: dict[tuple[str, str], str]) -> list[PriceRecord]:
    return [
        PriceRecord(product_id=product_id, store_id=store_id, price=Decimal(amount), recorded_at=NOW)
        for (product_id, store_id), amount in table.items()
    ]


def item(product_id: str, quantity: int = 1) -> ShoppingListItem:
    return ShoppingListItem(id=f"item-{product_id}", product_id=product_id, quantity=quantity)


def test_cheaper_complete_store_ranks_first_with_savings() -> None:
    stores = [S1, S2]
    index = build_catalog_index(prices({("P1", "S1"): "1.50", ("P1", "S2"): "1.00"}), stores)

    results = compare_list([item("P1", 2)], index, stores)

    assert [result.store.id for result in results] == ["S2", "S1"]
    assert results[0].total == Decimal("2.00")
    assert results[0].savings == Decimal("0")
    assert results[1].total == Decimal("3.00")
    assert results[1].savings == Decimal("1.00")
    assert all(result.is_complete for result in results)


def test_incomplete_store_has_partial_total_and_no_savings() -> None:
    stores = [S2, S1]
    table = {("P1", "S1"): "1.00", ("P2", "S1"): "2.50", ("P1", "S2"): "0.80"}
    index = build_catalog_index(prices(table), stores)

    results = compare_list([item("P1"), item("P2")], index, stores)

    first, second = results
    assert first.store.id == "S1"
    assert (first.available_items, first.missing_items) == (2, 0)
    assert first.total == Decimal("3.50")
    assert first.savings == Decimal("0")
    assert second.store.id == "S2"
    assert (second.available_items, second.missing_items) == (1, 1)
    assert second.total == Decimal("0.80")
    assert second.savings is None


def test_empty_list_yields_empty_result() -> None:
    index = build_catalog_index(prices({("P1", "S1"): "1.00"}), [S1])

    assert compare_list([], index, [S1]) == []


def test_store_without_matching_products_is_kept() -> None:
    stores = [S1, S3]
    index = build_catalog_index(prices({("P1", "S1"): "1.00", ("P2", "S1"): "1.00"}), stores)

    results = compare_list([item("P1"), item("P2")], index, stores)

    empty = next(result for result in results if result.store.id == "S3")
    assert empty.total == Decimal("0")
    assert empty.available_items == 0
    assert empty.missing_items == 2
    assert empty.savings is None


def test_no_complete_store_leaves_every_savings_undefined() -> None:
    stores = [S1, S2, S3]
    index = build_catalog_index(prices({("P1", "S1"): "1.00", ("P2", "S2"): "2.00"}), stores)

    results = compare_list([item("P1"), item("P2")], index, stores)

    assert [result.store.id for result in results] == ["S1", "S2", "S3"]
    assert all(result.savings is None for result in results)
    assert best_option(results) is None
    assert potential_savings(results) is None


def test_equal_totals_keep_store_order() -> None:
    stores = [S3, S1, S2]
    table = {("P1", "S1"): "1.00", ("P1", "S2"): "1.00", ("P1", "S3"): "1.00"}
    index = build_catalog_index(prices(table), stores)

    results = compare_list([item("P1")], index, stores)

    assert [result.store.id for result in results] == ["S3", "S1", "S2"]
    assert all(result.savings == 0 for result in results)


def test_incomplete_stores_follow_in_original_order() -> None:
    stores = [S3, S2, S1]
    table = {("P1", "S1"): "5.00", ("P2", "S1"): "5.00", ("P1", "S2"): "9.00", ("P2", "S3"): "0.10"}
    index = build_catalog_index(prices(table), stores)

    results = compare_list([item("P1"), item("P2")], index, stores)

    assert [result.store.id for result in results] == ["S1", "S3", "S2"]


def test_one_result_per_store_with_consistent_counts() -> None:
    stores = [S1, S2, S3]
    table = {("P1", "S1"): "1.10", ("P2", "S1"): "2.20", ("P3", "S2"): "0.30", ("P1", "S3"): "1.00"}
    items = [item("P1", 3), item("P2", 2), item("P3", 1)]
    index = build_catalog_index(prices(table), stores)

    results = compare_list(items, index, stores)

    assert sorted(result.store.id for result in results) == ["S1", "S2", "S3"]
    for result in results:
        assert result.available_items + result.missing_items == len(items)


def test_totals_do_not_drift_over_many_line_items() -> None:
    stores = [S1]
    table = {(f"P{n}", "S1"): "0.10" for n in range(30)}
    items = [item(f"P{n}", 3) for n in range(30)]
    index = build_catalog_index(prices(table), stores)

    (result,) = compare_list(items, index, stores)

    assert result.total == Decimal("9.00")
    assert str(result.total) == "9.00"


def test_complete_totals_sorted_and_match_independent_sum() -> None:
    stores = [S1, S2, S3]
    table = {
        ("P1", "S1"): "1.99", ("P2", "S1"): "0.49",
        ("P1", "S2"): "1.49", ("P2", "S2"): "0.89",
        ("P1", "S3"): "2.05", ("P2", "S3"): "0.15",
    }
    items = [item("P1", 2), item("P2", 5)]
    index = build_catalog_index(prices(table), stores)

    results = compare_list(items, index, stores)

    totals = [result.total for result in results]
    assert totals == sorted(totals)
    assert results[0].savings == 0
    for result in results:
        expected = sum(Decimal(table[(i.product_id, result.store.id)]) * i.quantity for i in items)
        assert result.total == expected
        assert result.savings == result.total - results[0].total


def test_compare_list_is_idempotent() -> None:
    stores = [S1, S2]
    index = build_catalog_index(prices({("P1", "S1"): "1.50", ("P1", "S2"): "1.00"}), stores)
    items = [item("P1", 2)]

    assert compare_list(items, index, stores) == compare_list(items, index, stores)


def test_update_quantity_then_compare_matches_direct_construction() -> None:
    stores = [S1, S2]
    index = build_catalog_index(prices({("P1", "S1"): "1.50", ("P1", "S2"): "1.00"}), stores)
    items = [item("P1", 1)]

    updated = update_quantity(items, "item-P1", 4)

    assert updated == [item("P1", 4)]
    assert compare_list(updated, index, stores) == compare_list([item("P1", 4)], index, stores)
    assert items == [item("P1", 1)]


@pytest.mark.parametrize("quantity", [0, -3])
def test_update_quantity_below_one_is_a_no_op(quantity: int) -> None:
    items = [item("P1", 2)]

    assert update_quantity(items, "item-P1", quantity) == items


def test_update_quantity_unknown_item_leaves_items_unchanged() -> None:
    items = [item("P1", 2)]

    assert update_quantity(items, "missing", 5) == items


def test_cheapest_price_for_passes_through_index() -> None:
    stores = [S1, S2]
    index = build_catalog_index(prices({("P1", "S1"): "1.50", ("P1", "S2"): "1.00"}), stores)

    cheapest = cheapest_price_for("P1", index)

    assert cheapest is not None
    assert (cheapest.price, cheapest.store_id) == (Decimal("1.00"), "S2")
    assert cheapest_price_for("unknown", index) is None


def test_best_option_and_potential_savings() -> None:
    stores = [S1, S2, S3]
    table = {("P1", "S1"): "1.50", ("P1", "S2"): "1.00", ("P1", "S3"): "1.25"}
    index = build_catalog_index(prices(table), stores)

    results = compare_list([item("P1", 2)], index, stores)

    assert best_option(results).store.id == "S2"
    assert potential_savings(results) == Decimal("1.00")


def test_fractional_cent_prices_are_rounded_only_on_the_total() -> None:
    stores = [S1, S2]
    index = build_catalog_index(prices({("P1", "S1"): "0.125", ("P1", "S2"): "0.119"}), stores)

    results = compare_list([item("P1", 4)], index, stores)

    cheaper, dearer = results
    assert (cheaper.store.id, cheaper.total) == ("S2", Decimal("0.48"))
    assert (dearer.store.id, dearer.total) == ("S1", Decimal("0.50"))
    assert dearer.savings == Decimal("0.02")


def test_round_money_rounds_half_up() -> None:
    assert round_money(Decimal("1.005")) == Decimal("1.01")
    assert str(round_money(Decimal("0.1"))) == "0.10"


def test_annotate_products_orders_priced_first() -> None:
    stores = [S1, S2]
    products = [
        Product(id="P1", name="Pasta", category="Pasta & Rice", unit="500g"),
        Product(id="P2", name="burro", category="Dairy & Eggs", unit="250g"),
        Product(id="P3", name="Acqua", category="Beverages", unit="1.5L"),
        Product(id="P4", name="Caffè", category="Coffee & Tea", unit="250g"),
    ]
    table = {("P1", "S1"): "1.20", ("P1", "S2"): "0.99", ("P4", "S1"): "3.49"}
    index = build_catalog_index(prices(table), stores)

    annotated = annotate_products(products, index)

    assert [entry.product.id for entry in annotated] == ["P1", "P4", "P3", "P2"]
    assert annotated[0].cheapest_price == Decimal("0.99")
    assert annotated[0].cheapest_store == "Lidl"
    assert annotated[2].cheapest_price is None


def test_filter_products_matches_name_brand_and_category() -> None:
    products = [
        Product(id="P1", name="Spaghetti", category="Pasta & Rice", unit="500g", brand="Barilla"),
        Product(id="P2", name="Latte", category="Dairy & Eggs", unit="1L", brand="Granarolo"),
        Product(id="P3", name="Penne", category="Pasta & Rice", unit="500g"),
    ]

    assert [p.id for p in filter_products(products, "barilla")] == ["P1"]
    assert [p.id for p in filter_products(products, "PENNE")] == ["P3"]
    assert [p.id for p in filter_products(products, category="Pasta & Rice")] == ["P1", "P3"]
    assert [p.id for p in filter_products(products, "latte", "Pasta & Rice")] == []
    assert len(filter_products(products)) == 3

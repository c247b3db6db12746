"""CSV-based storage for stores, products, prices and shopping lists."""
from __future__ import annotations

import csv
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TypeVar

from ..models import PriceRecord, Product, ShoppingList, ShoppingListItem, Store

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_FIELDS = ["id", "name", "town", "address"]
PRODUCT_FIELDS = ["id", "name", "category", "unit", "brand", "barcode"]
PRICE_FIELDS = ["product_id", "store_id", "price", "recorded_at", "is_promotion", "promotion_end", "unit"]
LIST_FIELDS = ["id", "name", "created_at"]
LIST_ITEM_FIELDS = ["id", "list_id", "product_id", "quantity"]

_ROW_ERRORS = (KeyError, TypeError, ValueError, InvalidOperation)


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_store(row: dict[str, str]) -> Store:
    return Store(id=row["id"], name=row["name"], town=row["town"], address=row.get("address") or None)


def _parse_product(row: dict[str, str]) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        unit=row["unit"],
        brand=row.get("brand") or None,
        barcode=row.get("barcode") or None,
    )


def _parse_timestamp(value: str) -> datetime:
    # Naive timestamps are stored as UTC so they compare with aware ones.
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _parse_price(row: dict[str, str]) -> PriceRecord:
    promotion_end = row.get("promotion_end")
    return PriceRecord(
        product_id=row["product_id"],
        store_id=row["store_id"],
        price=Decimal(row["price"]),
        recorded_at=_parse_timestamp(row["recorded_at"]),
        is_promotion=row.get("is_promotion", "").lower() == "true",
        promotion_end=date.fromisoformat(promotion_end) if promotion_end else None,
        unit=row.get("unit") or None,
    )


def _parse_list(row: dict[str, str]) -> ShoppingList:
    return ShoppingList(id=row["id"], name=row["name"], created_at=_parse_timestamp(row["created_at"]))


class CsvCatalogRepository:
    """Persists the grocery catalogue and shopping lists to CSV files.

    Each table lives in its own file under ``base_path`` with a header row.
    Rows that cannot be parsed are skipped with a warning so one bad line does
    not hide the rest of the table.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)

    def file_path_for(self, table: str) -> Path:
        """Public accessor for the CSV path backing ``table``."""

        return self._base_path / f"{table}.csv"

    def _read(self, table: str, parse: Callable[[dict[str, str]], T]) -> list[T]:
        file_path = self.file_path_for(table)
        if not file_path.exists():
            return []

        records: list[T] = []
        with file_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle)
            for line_number, row in enumerate(reader, start=2):
                try:
                    records.append(parse(row))
                except _ROW_ERRORS as exc:
                    logger.warning("Skipping malformed row %s in %s: %s", line_number, file_path.name, exc)
        return records

    def _read_raw(self, table: str) -> list[dict[str, str]]:
        file_path = self.file_path_for(table)
        if not file_path.exists():
            return []
        with file_path.open("r", encoding="utf-8", newline="") as handle:
            return list(csv.DictReader(handle))

    def _append(self, table: str, fields: list[str], row: list[object]) -> None:
        file_path = self.file_path_for(table)
        is_new_file = not file_path.exists()
        with file_path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle)
            if is_new_file:
                writer.writerow(fields)
            writer.writerow(["" if value is None else value for value in row])

    def _rewrite(self, table: str, fields: list[str], rows: Iterable[dict[str, str]]) -> None:
        file_path = self.file_path_for(table)
        with file_path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=fields, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)

    # Stores and products

    def fetch_stores(self) -> list[Store]:
        return self._read("stores", _parse_store)

    def add_store(self, name: str, town: str, address: str | None = None, store_id: str | None = None) -> Store:
        store = Store(id=store_id or _new_id(), name=name, town=town, address=address)
        self._append("stores", STORE_FIELDS, [store.id, store.name, store.town, store.address])
        return store

    def fetch_products(self) -> list[Product]:
        return self._read("products", _parse_product)

    def get_product(self, product_id: str) -> Product | None:
        return next((product for product in self.fetch_products() if product.id == product_id), None)

    def add_product(
        self,
        name: str,
        category: str,
        unit: str,
        brand: str | None = None,
        barcode: str | None = None,
        product_id: str | None = None,
    ) -> Product:
        product = Product(
            id=product_id or _new_id(), name=name, category=category, unit=unit, brand=brand, barcode=barcode
        )
        self._append(
            "products",
            PRODUCT_FIELDS,
            [product.id, product.name, product.category, product.unit, product.brand, product.barcode],
        )
        return product

    def update_product(self, product: Product) -> None:
        """Rewrite the stored row for ``product.id``."""

        rows = self._read_raw("products")
        for row in rows:
            if row.get("id") == product.id:
                row.update(
                    {
                        "name": product.name,
                        "category": product.category,
                        "unit": product.unit,
                        "brand": product.brand or "",
                        "barcode": product.barcode or "",
                    }
                )
        self._rewrite("products", PRODUCT_FIELDS, rows)

    # Prices

    def fetch_prices(self) -> list[PriceRecord]:
        """Return every stored price record in insertion order."""

        return self._read("prices", _parse_price)

    def fetch_prices_for_products(self, product_ids: Iterable[str]) -> list[PriceRecord]:
        """Return price records for ``product_ids`` only, in insertion order."""

        wanted = set(product_ids)
        if not wanted:
            return []
        return [record for record in self.fetch_prices() if record.product_id in wanted]

    def record_price(self, record: PriceRecord) -> None:
        self._append(
            "prices",
            PRICE_FIELDS,
            [
                record.product_id,
                record.store_id,
                str(record.price),
                record.recorded_at.isoformat(),
                "true" if record.is_promotion else "false",
                record.promotion_end.isoformat() if record.promotion_end else None,
                record.unit,
            ],
        )

    # Shopping lists

    def fetch_lists(self) -> list[ShoppingList]:
        return self._read("lists", _parse_list)

    def get_list(self, list_id: str) -> ShoppingList | None:
        return next((shopping_list for shopping_list in self.fetch_lists() if shopping_list.id == list_id), None)

    def create_list(self, name: str, list_id: str | None = None) -> ShoppingList:
        shopping_list = ShoppingList(id=list_id or _new_id(), name=name)
        self._append("lists", LIST_FIELDS, [shopping_list.id, shopping_list.name, shopping_list.created_at.isoformat()])
        return shopping_list

    def delete_list(self, list_id: str) -> None:
        """Remove a list together with its items."""

        self._rewrite("lists", LIST_FIELDS, [row for row in self._read_raw("lists") if row.get("id") != list_id])
        self._rewrite(
            "list_items",
            LIST_ITEM_FIELDS,
            [row for row in self._read_raw("list_items") if row.get("list_id") != list_id],
        )

    def fetch_list_items(self, list_id: str) -> list[ShoppingListItem]:
        """Return the items of ``list_id`` joined with their products."""

        products = {product.id: product for product in self.fetch_products()}
        items: list[ShoppingListItem] = []
        for row in self._read_raw("list_items"):
            if row.get("list_id") != list_id:
                continue
            try:
                item = ShoppingListItem(
                    id=row["id"],
                    product_id=row["product_id"],
                    quantity=int(row["quantity"]),
                    product=products.get(row["product_id"]),
                )
            except _ROW_ERRORS as exc:
                logger.warning("Skipping malformed list item %s: %s", row.get("id"), exc)
                continue
            items.append(item)
        return items

    def add_list_item(
        self, list_id: str, product_id: str, quantity: int = 1, item_id: str | None = None
    ) -> ShoppingListItem:
        item = ShoppingListItem(id=item_id or _new_id(), product_id=product_id, quantity=quantity)
        self._append("list_items", LIST_ITEM_FIELDS, [item.id, list_id, item.product_id, item.quantity])
        return item

    def save_list_items(self, list_id: str, items: Iterable[ShoppingListItem]) -> None:
        """Replace the stored items of ``list_id`` with ``items``."""

        kept = [row for row in self._read_raw("list_items") if row.get("list_id") != list_id]
        kept.extend(
            {"id": item.id, "list_id": list_id, "product_id": item.product_id, "quantity": str(item.quantity)}
            for item in items
        )
        self._rewrite("list_items", LIST_ITEM_FIELDS, kept)

    def remove_list_item(self, list_id: str, item_id: str) -> None:
        self._rewrite(
            "list_items",
            LIST_ITEM_FIELDS,
            [
                row
                for row in self._read_raw("list_items")
                if not (row.get("list_id") == list_id and row.get("id") == item_id)
            ],
        )

    def is_empty(self) -> bool:
        """``True`` when no stores and no products have been stored yet."""

        return not self.fetch_stores() and not self.fetch_products()

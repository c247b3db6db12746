"""Service for managing shopping lists and their items."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from ..comparison import update_quantity
from ..models import ShoppingList, ShoppingListItem
from ..storage.repository import CsvCatalogRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ShoppingListService:
    """Creates lists and keeps their items consistent."""

    repository: CsvCatalogRepository

    def all_lists(self) -> list[ShoppingList]:
        return sorted(self.repository.fetch_lists(), key=lambda shopping_list: shopping_list.created_at, reverse=True)

    def get_list(self, list_id: str) -> ShoppingList:
        shopping_list = self.repository.get_list(list_id)
        if shopping_list is None:
            raise KeyError(f"Unknown shopping list: {list_id}")
        return shopping_list

    def create_list(self, name: str) -> ShoppingList:
        name = name.strip()
        if not name:
            raise ValueError("A shopping list needs a name")
        shopping_list = self.repository.create_list(name)
        logger.info("Created shopping list %s (%s)", shopping_list.id, shopping_list.name)
        return shopping_list

    def delete_list(self, list_id: str) -> None:
        self.get_list(list_id)
        self.repository.delete_list(list_id)
        logger.info("Deleted shopping list %s", list_id)

    def items(self, list_id: str) -> list[ShoppingListItem]:
        self.get_list(list_id)
        return self.repository.fetch_list_items(list_id)

    def add_item(self, list_id: str, product_id: str, quantity: int = 1) -> ShoppingListItem:
        """Add ``product_id`` to the list, rejecting products already on it."""

        items = self.items(list_id)
        if self.repository.get_product(product_id) is None:
            raise KeyError(f"Unknown product: {product_id}")
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if any(item.product_id == product_id for item in items):
            raise ValueError("This product is already in your list")
        item = self.repository.add_list_item(list_id, product_id, quantity)
        logger.info("Added product %s x%s to list %s", product_id, quantity, list_id)
        return item

    def remove_item(self, list_id: str, item_id: str) -> None:
        self.get_list(list_id)
        self.repository.remove_list_item(list_id, item_id)
        logger.info("Removed item %s from list %s", item_id, list_id)

    def update_quantity(self, list_id: str, item_id: str, quantity: int) -> list[ShoppingListItem]:
        """Set the quantity of ``item_id``; quantities below one leave the list untouched."""

        items = self.items(list_id)
        updated = update_quantity(items, item_id, quantity)
        if updated != items:
            self.repository.save_list_items(list_id, updated)
            logger.info("Set quantity of item %s on list %s to %s", item_id, list_id, quantity)
        return updated

"""Shopping list persistence service."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol
from uuid import UUID

from .data_store import InventoryStore
from .exceptions import NotFoundError
from .models import ShoppingList, ShoppingListItem

logger = logging.getLogger(__name__)


class ShoppingListService(Protocol):
    """Interface the shopping integration uses to manage lists."""

    def create_list(
        self, owner_id: str, name: str, budget: float | None = None
    ) -> ShoppingList: ...
    def add_item(self, list_id: UUID, item: ShoppingListItem) -> ShoppingList: ...
    def get_list(self, list_id: UUID, owner_id: str | None = None) -> ShoppingList: ...
    def mark_purchased(
        self, list_id: UUID, item_id: UUID, actual_price: float | None = None
    ) -> ShoppingListItem: ...


class StoredShoppingLists:
    """Shopping lists kept in the inventory store."""

    def __init__(
        self,
        data_store: InventoryStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize shopping list service.

        Args:
            data_store: Store the lists are saved in
            clock: Source of the current time
        """
        self.data_store = data_store
        self.clock = clock

    def create_list(
        self, owner_id: str, name: str, budget: float | None = None
    ) -> ShoppingList:
        """Create and persist an empty shopping list.

        Args:
            owner_id: Member owning the list
            name: List name
            budget: Optional spending budget

        Returns:
            The new ShoppingList
        """
        shopping_list = ShoppingList(
            owner_id=owner_id, name=name, budget=budget, created_at=self.clock()
        )
        self.data_store.save_shopping_list(shopping_list)
        logger.info("Created shopping list '%s' for %s", name, owner_id)
        return shopping_list

    def add_item(self, list_id: UUID, item: ShoppingListItem) -> ShoppingList:
        """Append an item to a list.

        Raises:
            NotFoundError: If the list does not exist
        """
        shopping_list = self.get_list(list_id)
        shopping_list.items.append(item)
        self.data_store.save_shopping_list(shopping_list)
        return shopping_list

    def get_list(self, list_id: UUID, owner_id: str | None = None) -> ShoppingList:
        """Get a list by ID.

        Args:
            list_id: Shopping list ID
            owner_id: When given, the list must belong to this member

        Returns:
            ShoppingList

        Raises:
            NotFoundError: If the list does not exist or belongs to someone else
        """
        shopping_list = self.data_store.load_shopping_list(list_id)
        if shopping_list is None or (owner_id is not None and shopping_list.owner_id != owner_id):
            raise NotFoundError("shopping list", list_id)
        return shopping_list

    def list_lists(self, owner_id: str) -> list[ShoppingList]:
        """All lists of a member, newest first."""
        return self.data_store.list_shopping_lists(owner_id)

    def mark_purchased(
        self, list_id: UUID, item_id: UUID, actual_price: float | None = None
    ) -> ShoppingListItem:
        """Mark a list item as purchased.

        The list is stamped completed once every item is purchased.

        Args:
            list_id: Shopping list ID
            item_id: Item on that list
            actual_price: Price actually paid

        Returns:
            The updated ShoppingListItem

        Raises:
            NotFoundError: If the list or item does not exist
        """
        shopping_list = self.get_list(list_id)

        for item in shopping_list.items:
            if item.id == item_id:
                item.purchased = True
                item.purchased_at = self.clock()
                if actual_price is not None:
                    item.actual_price = actual_price
                if shopping_list.is_complete and shopping_list.completed_at is None:
                    shopping_list.completed_at = self.clock()
                self.data_store.save_shopping_list(shopping_list)
                return item

        raise NotFoundError("shopping list item", item_id)

"""Cart and wishlist interactions with user-facing notices."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional

from logic.catalog_query import QUICK_ADD, QUICK_ADD_OUT_OF_STOCK, quick_add_decision
from memory.wishlist import WishlistStore
from models.cart import CartItem
from models.errors import StorefrontError
from models.product import Product
from storefront_app.logging_config import get_logger, log_event
from tools.cart_store import CartStore, LocalCart
from tools.notifier import ERROR, INFO, SUCCESS, WARNING, Notifier

LOGGER = get_logger(__name__)


def new_guest_token() -> str:
    return f"guest_{uuid.uuid4().hex}"


class CartService:
    """Routes signed-in callers to the cart store and guests to a local cart."""

    def __init__(self, store: CartStore, notifier: Notifier, local_cart: Optional[LocalCart] = None) -> None:
        self.store = store
        self.notifier = notifier
        self.local_cart = local_cart or LocalCart()

    def add_to_cart(
        self,
        caller_id: str | None,
        product: Product,
        quantity: int = 1,
        size: Optional[str] = None,
        guest_token: Optional[str] = None,
    ) -> bool:
        """Add a product line and report whether it succeeded.

        Guests are keyed by ``guest_token``; without one the line goes to a
        fresh cart of its own rather than one shared between guests.
        """

        item = CartItem.for_product(product, quantity=quantity, size=size)
        if not caller_id:
            self.local_cart.add_item(guest_token or new_guest_token(), item)
        else:
            try:
                self.store.add_item(caller_id, item)
            except StorefrontError as exc:
                log_event(LOGGER, logging.ERROR, "cart_add_failed", product_id=product.product_id, error=str(exc))
                self.notifier.notify(ERROR, "Error", "Failed to add item to cart. Please try again.")
                return False
        self.notifier.notify(SUCCESS, "Added to Cart", f"{product.name} has been added to your cart!")
        return True

    def quick_add(self, caller_id: str | None, product: Product, guest_token: Optional[str] = None) -> str:
        """One-click add. Returns the decision taken for the product."""

        decision = quick_add_decision(product)
        if decision == QUICK_ADD_OUT_OF_STOCK:
            self.notifier.notify(WARNING, "Out of Stock", "This item is currently out of stock.")
        elif decision == QUICK_ADD:
            self.add_to_cart(caller_id, product, quantity=1, guest_token=guest_token)
        return decision


class WishlistService:
    """Toggles wishlist entries for a caller's store and announces the change."""

    def __init__(self, store_factory: Callable[[str], WishlistStore], notifier: Notifier) -> None:
        self.store_factory = store_factory
        self.notifier = notifier
        self._stores: dict[str, WishlistStore] = {}

    def store_for(self, caller_id: str) -> WishlistStore:
        store = self._stores.get(caller_id)
        if store is None:
            store = self.store_factory(caller_id)
            self._stores[caller_id] = store
        return store

    def toggle(self, caller_id: str, product_id: str) -> bool:
        added = self.store_for(caller_id).toggle(product_id)
        if added:
            self.notifier.notify(SUCCESS, "Added to Wishlist", "Item has been saved to your wishlist!")
        else:
            self.notifier.notify(INFO, "Removed from Wishlist", "Item has been removed from your wishlist.")
        return added

    def get(self, caller_id: str) -> list[str]:
        return self.store_for(caller_id).get()


__all__ = ["CartService", "WishlistService", "new_guest_token"]

# storefront/client/cart.py
from typing import List, Optional

from storefront.client.cache import QueryCache
from storefront.client.mutations import MutationResult, OptimisticMutation
from storefront.client.notify import LoggingNotifier, Notifier
from storefront.client.pricing import OrderSummary, summarize
from storefront.client.rpc import StorefrontClient
from storefront.db.schemas import CartLine

CART_KEY = "cart.list"


def apply_quantity(lines: List[CartLine], cart_item_id: int, quantity: int) -> List[CartLine]:
    if quantity <= 0:
        return [line for line in lines if line.id != cart_item_id]
    return [line.model_copy(update={"quantity": quantity}) if line.id == cart_item_id else line for line in lines]


def apply_remove(lines: List[CartLine], cart_item_id: int) -> List[CartLine]:
    return [line for line in lines if line.id != cart_item_id]


def apply_clear(lines: List[CartLine]) -> List[CartLine]:
    return []


class CartController:
    """Server-backed cart with optimistic quantity/remove/clear."""

    def __init__(self, client: StorefrontClient, cache: Optional[QueryCache] = None,
                 notifier: Optional[Notifier] = None, timeout: Optional[float] = None):
        self.client = client
        self.cache = cache or QueryCache()
        self.notifier = notifier or LoggingNotifier()
        self.cache.register(CART_KEY, client.cart_list)

        self._add = OptimisticMutation(
            self.cache, CART_KEY, client.cart_add,
            notifier=self.notifier, timeout=timeout,
            success_message="Item added to cart!", error_message="Failed to add item to cart",
        )
        self._update_quantity = OptimisticMutation(
            self.cache, CART_KEY, client.cart_update_quantity, apply=apply_quantity,
            notifier=self.notifier, timeout=timeout,
            error_message="Failed to update quantity",
        )
        self._remove = OptimisticMutation(
            self.cache, CART_KEY, client.cart_remove, apply=apply_remove,
            notifier=self.notifier, timeout=timeout,
            success_message="Item removed from cart", error_message="Failed to remove item",
        )
        self._clear = OptimisticMutation(
            self.cache, CART_KEY, client.cart_clear, apply=apply_clear,
            notifier=self.notifier, timeout=timeout,
            success_message="Cart cleared", error_message="Failed to clear cart",
        )

    async def load(self) -> List[CartLine]:
        return await self.cache.fetch(CART_KEY)

    def lines(self) -> List[CartLine]:
        # rows pointing at a vanished menu item are not shown
        return [line for line in self.cache.get_data(CART_KEY) or [] if line.menu_item is not None]

    def summary(self) -> OrderSummary:
        return summarize(self.lines())

    async def add(self, menu_item_id: int, quantity: int = 1) -> MutationResult:
        return await self._add.run(menu_item_id=menu_item_id, quantity=quantity)

    async def update_quantity(self, cart_item_id: int, quantity: int) -> MutationResult:
        return await self._update_quantity.run(cart_item_id=cart_item_id, quantity=quantity)

    async def remove(self, cart_item_id: int) -> MutationResult:
        return await self._remove.run(cart_item_id=cart_item_id)

    async def clear(self) -> MutationResult:
        return await self._clear.run()

    async def settle(self):
        await self.cache.wait_idle()

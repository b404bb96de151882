# storefront/client/storefront.py
import logging
from typing import List, Optional

from storefront.client.cache import QueryCache
from storefront.client.cart import CartController
from storefront.client.local import LocalCart, LocalCatalog, LocalStorage, get_mock_user, merge_menu_items
from storefront.client.mutations import MutationResult, MutationState
from storefront.client.notify import LoggingNotifier, Notifier
from storefront.client.pricing import OrderSummary, summarize
from storefront.client.rpc import StorefrontClient
from storefront.db.schemas import MenuItemSchema
from storefront.errors import AuthenticationRequired, StorefrontError

logger = logging.getLogger(__name__)

MENU_KEY = "menu.list"

REMOTE = "remote"
LOCAL = "local"
ANONYMOUS = "anonymous"


class Storefront:
    """
    Same catalog/cart operations in every mode:

    * remote    - a server session exists, everything goes over RPC
    * local     - no session but a mock user, cart lives in local storage
    * anonymous - browsing only, cart operations need a login
    """

    def __init__(self, client: StorefrontClient, storage: LocalStorage, notifier: Optional[Notifier] = None,
                 cache: Optional[QueryCache] = None, timeout: Optional[float] = None):
        self.client = client
        self.storage = storage
        self.notifier = notifier or LoggingNotifier()
        self.cache = cache or QueryCache()
        self.cache.register(MENU_KEY, client.menu_list)
        self.cart = CartController(client, self.cache, self.notifier, timeout=timeout)
        self.local_cart = LocalCart(storage)
        self.local_catalog = LocalCatalog(storage)

    @property
    def mode(self) -> str:
        if self.client.token:
            return REMOTE
        if get_mock_user(self.storage) is not None:
            return LOCAL
        return ANONYMOUS

    def _require_login(self, message: str):
        self.notifier.error(message)
        raise AuthenticationRequired()

    # catalog

    async def _remote_menu(self) -> List[MenuItemSchema]:
        try:
            return await self.cache.fetch(MENU_KEY)
        except StorefrontError as e:
            if self.mode != LOCAL:
                raise
            logger.warning("menu.list unavailable, using the last known items: %s", e.message)
            return self.cache.get_data(MENU_KEY) or []

    async def menu_items(self) -> List[MenuItemSchema]:
        return merge_menu_items(await self._remote_menu(), self.local_catalog.items())

    async def menu_item(self, menu_item_id: int) -> Optional[MenuItemSchema]:
        try:
            item = await self.client.menu_get_by_id(menu_item_id)
        except StorefrontError as e:
            if self.mode != LOCAL:
                raise
            logger.warning("menu.getById unavailable: %s", e.message)
            item = None
        if item is not None:
            return item
        return next((i for i in self.local_catalog.items() if i.id == menu_item_id), None)

    async def create_menu_item(self, name: str, price: int, description: Optional[str] = None,
                               image_url: Optional[str] = None, category: Optional[str] = None) -> MenuItemSchema:
        mode = self.mode
        if mode == ANONYMOUS:
            self._require_login("Please login to create menu items")
        if mode == LOCAL:
            item = self.local_catalog.create(name, price, description=description, image_url=image_url,
                                             category=category, remote_items=await self._remote_menu())
        else:
            try:
                item = await self.client.menu_create(name, price, description=description, image_url=image_url,
                                                     category=category)
            except StorefrontError as e:
                self.notifier.error(e.message or "Failed to create menu item")
                raise
        self.cache.invalidate(MENU_KEY)
        self.notifier.success("Menu item created")
        return item

    # cart

    async def cart_lines(self) -> list:
        mode = self.mode
        if mode == LOCAL:
            return self.local_cart.lines(await self.menu_items())
        if mode == REMOTE:
            await self.cart.load()
            return self.cart.lines()
        raise AuthenticationRequired()

    async def summary(self) -> OrderSummary:
        return summarize(await self.cart_lines())

    async def add_to_cart(self, menu_item_id: int, quantity: int = 1) -> MutationResult:
        mode = self.mode
        if mode == ANONYMOUS:
            self._require_login("Please login to add items to cart")
        if mode == REMOTE:
            return await self.cart.add(menu_item_id, quantity)
        self.local_cart.add(menu_item_id, quantity)
        self.notifier.success("Item added to cart!")
        return MutationResult(MutationState.COMMITTED)

    async def update_quantity(self, cart_item_id: int, quantity: int) -> MutationResult:
        mode = self.mode
        if mode == ANONYMOUS:
            raise AuthenticationRequired()
        if mode == REMOTE:
            return await self.cart.update_quantity(cart_item_id, quantity)
        self.local_cart.update_quantity(cart_item_id, quantity)
        return MutationResult(MutationState.COMMITTED)

    async def remove_from_cart(self, cart_item_id: int) -> MutationResult:
        mode = self.mode
        if mode == ANONYMOUS:
            raise AuthenticationRequired()
        if mode == REMOTE:
            return await self.cart.remove(cart_item_id)
        self.local_cart.remove(cart_item_id)
        self.notifier.success("Item removed from cart")
        return MutationResult(MutationState.COMMITTED)

    async def clear_cart(self) -> MutationResult:
        mode = self.mode
        if mode == ANONYMOUS:
            raise AuthenticationRequired()
        if mode == REMOTE:
            return await self.cart.clear()
        self.local_cart.clear()
        self.notifier.success("Cart cleared")
        return MutationResult(MutationState.COMMITTED)

    async def settle(self):
        """Wait for background refreshes to land."""
        await self.cache.wait_idle()

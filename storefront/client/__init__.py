from storefront.client.cache import QueryCache
from storefront.client.cart import CartController
from storefront.client.local import LocalCart, LocalCatalog, LocalStorage, merge_menu_items
from storefront.client.mutations import MutationResult, MutationState, OptimisticMutation
from storefront.client.notify import LoggingNotifier, Notifier
from storefront.client.pricing import OrderSummary, format_price, summarize
from storefront.client.rpc import StorefrontClient
from storefront.client.storefront import Storefront

__all__ = [
    "CartController",
    "LocalCart",
    "LocalCatalog",
    "LocalStorage",
    "LoggingNotifier",
    "MutationResult",
    "MutationState",
    "Notifier",
    "OptimisticMutation",
    "OrderSummary",
    "QueryCache",
    "Storefront",
    "StorefrontClient",
    "format_price",
    "merge_menu_items",
    "summarize",
]

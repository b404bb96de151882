# storefront/client/rpc.py
import logging
from typing import Any, Callable, List, Optional

import httpx
from pydantic import ValidationError as SchemaError

from storefront.config import settings
from storefront.db.schemas import CartLine, LoginResponse, MenuItemSchema, SuccessResponse, UserSchema
from storefront.errors import TransportError, error_from_payload

logger = logging.getLogger(__name__)

API_PREFIX = "/api/trpc"


def _optional(schema):
    def parse(data):
        return schema.model_validate(data) if data is not None else None
    return parse


def _many(schema):
    def parse(data):
        return [schema.model_validate(item) for item in data]
    return parse


def _success(data) -> dict:
    return SuccessResponse.model_validate(data).model_dump()


class StorefrontClient:
    """Async client for the /api/trpc operations."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.client_timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, operation: str, parse: Optional[Callable[[Any], Any]] = None,
                       **kwargs) -> Any:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self._client.request(method, f"{API_PREFIX}/{operation}", headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{operation} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{operation} failed: {e}") from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            err = error_from_payload(response.status_code, payload)
            logger.debug("%s -> %s %s", operation, response.status_code, err.code)
            raise err

        # a proxy in front of the server may answer 200 with an HTML page
        try:
            data = response.json()
            return parse(data) if parse is not None else data
        except (SchemaError, ValueError, TypeError) as e:
            logger.warning("%s returned a malformed response: %s", operation, e)
            raise TransportError(f"{operation} returned a malformed response") from e

    async def _query(self, operation: str, params: Optional[dict] = None,
                     parse: Optional[Callable[[Any], Any]] = None) -> Any:
        return await self._request("GET", operation, parse=parse, params=params)

    async def _mutate(self, operation: str, payload: Optional[dict] = None,
                      parse: Optional[Callable[[Any], Any]] = None) -> Any:
        return await self._request("POST", operation, parse=parse, json=payload)

    # auth

    async def auth_me(self) -> Optional[UserSchema]:
        return await self._query("auth.me", parse=_optional(UserSchema))

    async def auth_login(self, open_id: str, name: Optional[str] = None, email: Optional[str] = None) -> LoginResponse:
        result = await self._mutate("auth.login", {"openId": open_id, "name": name, "email": email},
                                    parse=LoginResponse.model_validate)
        self.token = result.token
        return result

    async def auth_logout(self):
        await self._mutate("auth.logout")
        self.token = None
        self._client.cookies.clear()

    # menu

    async def menu_list(self) -> List[MenuItemSchema]:
        return await self._query("menu.list", parse=_many(MenuItemSchema))

    async def menu_get_by_id(self, id: int) -> Optional[MenuItemSchema]:
        return await self._query("menu.getById", {"id": id}, parse=_optional(MenuItemSchema))

    async def menu_create(self, name: str, price: int, description: Optional[str] = None,
                          image_url: Optional[str] = None, category: Optional[str] = None) -> MenuItemSchema:
        return await self._mutate("menu.create", {
            "name": name,
            "price": price,
            "description": description,
            "imageUrl": image_url,
            "category": category,
        }, parse=MenuItemSchema.model_validate)

    # cart

    async def cart_list(self) -> List[CartLine]:
        return await self._query("cart.list", parse=_many(CartLine))

    async def cart_add(self, menu_item_id: int, quantity: int = 1) -> dict:
        return await self._mutate("cart.add", {"menuItemId": menu_item_id, "quantity": quantity}, parse=_success)

    async def cart_update_quantity(self, cart_item_id: int, quantity: int) -> dict:
        return await self._mutate("cart.updateQuantity", {"cartItemId": cart_item_id, "quantity": quantity},
                                  parse=_success)

    async def cart_remove(self, cart_item_id: int) -> dict:
        return await self._mutate("cart.remove", {"cartItemId": cart_item_id}, parse=_success)

    async def cart_clear(self) -> dict:
        return await self._mutate("cart.clear", parse=_success)

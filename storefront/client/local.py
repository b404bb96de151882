# storefront/client/local.py
"""
Local-only mode: catalog and cart kept in a JSON file on disk, used when
there is a mock user but no server session. Keys and value layout follow
the browser localStorage the web client uses (string values, cart as a
{menuItemId: quantity} object).
"""
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

from pydantic import ValidationError as SchemaError

from storefront.db.schemas import MenuItemCreate, MenuItemSchema
from storefront.errors import ValidationError

logger = logging.getLogger(__name__)

MOCK_USER_KEY = "mockUser"
MOCK_CART_KEY = "mockCart"
MOCK_MENU_ITEMS_KEY = "mockMenuItems"


class LocalStorage:
    """Durable string key-value store backed by one JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("local storage %s is corrupt, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self):
        self._write({})

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("could not parse local value %s", key)
            return default

    def set_json(self, key: str, value: Any):
        self.set_item(key, json.dumps(value))


def get_mock_user(storage: LocalStorage) -> Optional[dict]:
    user = storage.get_json(MOCK_USER_KEY)
    return user if isinstance(user, dict) else None


def mock_login(storage: LocalStorage, name: str, email: Optional[str] = None) -> dict:
    if not name or not name.strip():
        raise ValidationError("Name is required", field="name")
    user = {"name": name.strip(), "email": email, "loginMethod": "local"}
    storage.set_json(MOCK_USER_KEY, user)
    return user


def mock_logout(storage: LocalStorage):
    storage.remove_item(MOCK_USER_KEY)


def merge_menu_items(remote: Iterable[MenuItemSchema], local: Iterable[MenuItemSchema]) -> List[MenuItemSchema]:
    """Remote items first, then local ones whose id the server does not already use."""
    merged: Dict[int, MenuItemSchema] = {}
    for item in remote:
        merged.setdefault(item.id, item)
    for item in local:
        merged.setdefault(item.id, item)
    return list(merged.values())


class LocalCatalog:
    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def items(self) -> List[MenuItemSchema]:
        raw = self.storage.get_json(MOCK_MENU_ITEMS_KEY, [])
        items = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                items.append(MenuItemSchema.model_validate(entry))
            except SchemaError:
                logger.warning("skipping malformed local menu item %r", entry)
        return items

    def create(self, name: str, price: int, description: Optional[str] = None, image_url: Optional[str] = None,
               category: Optional[str] = None, remote_items: Iterable[MenuItemSchema] = ()) -> MenuItemSchema:
        try:
            data = MenuItemCreate(name=name, price=price, description=description, image_url=image_url,
                                  category=category)
        except SchemaError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise ValidationError(first["msg"], field=field) from e

        local = self.items()
        max_id = max([item.id for item in remote_items] + [item.id for item in local] + [0])
        new_item = MenuItemSchema(
            id=max_id + 1,
            name=data.name.strip(),
            description=(data.description or "").strip() or None,
            price=data.price,
            image_url=data.image_url,
            category=(data.category or "").strip() or None,
            created_at=datetime.now(timezone.utc),
        )
        stored = [item.model_dump(mode="json", by_alias=True) for item in local]
        stored.append(new_item.model_dump(mode="json", by_alias=True))
        self.storage.set_json(MOCK_MENU_ITEMS_KEY, stored)
        logger.debug("created local menu item id=%s", new_item.id)
        return new_item


class LocalCartLine(NamedTuple):
    id: int  # same as the menu item id, local carts have one row per item
    quantity: int
    menu_item: MenuItemSchema


class LocalCart:
    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def quantities(self) -> Dict[int, int]:
        raw = self.storage.get_json(MOCK_CART_KEY, {})
        if not isinstance(raw, dict):
            return {}
        cart = {}
        for key, value in raw.items():
            try:
                cart[int(key)] = int(value)
            except (TypeError, ValueError):
                logger.warning("skipping malformed local cart entry %r", key)
        return {item_id: qty for item_id, qty in cart.items() if qty > 0}

    def _save(self, cart: Dict[int, int]):
        self.storage.set_json(MOCK_CART_KEY, {str(item_id): qty for item_id, qty in cart.items()})

    def add(self, menu_item_id: int, quantity: int = 1):
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        cart = self.quantities()
        cart[menu_item_id] = cart.get(menu_item_id, 0) + quantity
        self._save(cart)

    def update_quantity(self, menu_item_id: int, quantity: int):
        cart = self.quantities()
        if menu_item_id not in cart:
            return
        if quantity <= 0:
            del cart[menu_item_id]
        else:
            cart[menu_item_id] = quantity
        self._save(cart)

    def remove(self, menu_item_id: int):
        cart = self.quantities()
        if cart.pop(menu_item_id, None) is not None:
            self._save(cart)

    def clear(self):
        self.storage.remove_item(MOCK_CART_KEY)

    def lines(self, menu_items: Iterable[MenuItemSchema]) -> List[LocalCartLine]:
        by_id = {item.id: item for item in menu_items}
        return [
            LocalCartLine(id=item_id, quantity=qty, menu_item=by_id[item_id])
            for item_id, qty in self.quantities().items()
            if item_id in by_id
        ]

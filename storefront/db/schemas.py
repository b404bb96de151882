# storefront/db/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from storefront.db.models import RoleEnum


class CamelModel(BaseModel):
    # snake_case в питоне, camelCase в JSON
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Схема для товара меню
class MenuItemSchema(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    image_url: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime


class MenuItemCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: int = Field(ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v

    @field_validator("image_url")
    @classmethod
    def image_url_or_data_uri(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.startswith(("http://", "https://", "data:image/")):
            raise ValueError("Image must be an http(s) URL or an image data URI")
        return v


class MenuItemQuery(CamelModel):
    id: int


# Схема для строки корзины (с подгруженным товаром)
class CartLine(CamelModel):
    id: int
    user_id: int
    menu_item_id: int
    quantity: int
    created_at: datetime
    menu_item: Optional[MenuItemSchema] = None


class CartAdd(CamelModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1)


class CartUpdateQuantity(CamelModel):
    cart_item_id: int
    quantity: int = Field(ge=0)


class CartRemove(CamelModel):
    cart_item_id: int


class SuccessResponse(CamelModel):
    success: bool = True


class UserSchema(CamelModel):
    id: int
    open_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    login_method: Optional[str] = None
    role: RoleEnum = RoleEnum.user
    created_at: datetime
    updated_at: datetime
    last_signed_in: datetime


class LoginRequest(CamelModel):
    open_id: str = Field(min_length=1)
    name: Optional[str] = None
    email: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    token: str
    user: UserSchema

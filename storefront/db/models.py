# storefront/db/models.py
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text, UniqueConstraint

from storefront.db.database import Base


def utcnow():
    return datetime.now(timezone.utc)


# Enum для ролей пользователя
class RoleEnum(str, PyEnum):
    user = "user"
    admin = "admin"


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    open_id = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(Text, nullable=True)
    email = Column(String(320), nullable=True)
    login_method = Column(String(64), nullable=True)
    role = Column(Enum(RoleEnum), default=RoleEnum.user, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    last_signed_in = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MenuItem(Base):
    __tablename__ = "menu_items"
    # id не выдаются повторно даже после удаления
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)  # в центах
    image_url = Column(Text, nullable=True)  # ссылка или base64 data uri
    category = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "menu_item_id", name="uq_cart_items_user_menu_item"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    # без внешнего ключа: строка может пережить товар меню, такие строки отсекаются при чтении
    menu_item_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

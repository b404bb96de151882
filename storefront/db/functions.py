# storefront/db/functions.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.db.models import CartItem, MenuItem, RoleEnum, User, utcnow
from storefront.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------- users

async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_open_id(db: AsyncSession, open_id: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.open_id == open_id))
    return result.scalar_one_or_none()


async def upsert_user(db: AsyncSession, open_id: str, name: Optional[str] = None, email: Optional[str] = None,
                      login_method: Optional[str] = None, role: Optional[RoleEnum] = None) -> User:
    """Создает пользователя или обновляет существующего по open_id."""
    if not open_id:
        raise ValidationError("User openId is required for upsert", field="openId")

    user = await get_user_by_open_id(db, open_id)
    if user is None:
        user = User(open_id=open_id, name=name, email=email, login_method=login_method,
                    role=role or RoleEnum.user)
        db.add(user)
    else:
        if name is not None:
            user.name = name
        if email is not None:
            user.email = email
        if login_method is not None:
            user.login_method = login_method
        if role is not None:
            user.role = role
    user.last_signed_in = utcnow()
    await db.commit()
    await db.refresh(user)
    logger.debug("upserted user id=%s open_id=%s", user.id, open_id)
    return user


# ---------------------------------------------------------------- menu

async def get_all_menu_items(db: AsyncSession) -> List[MenuItem]:
    result = await db.execute(select(MenuItem).order_by(MenuItem.id))
    return list(result.scalars().all())


async def get_menu_item_by_id(db: AsyncSession, menu_item_id: int) -> Optional[MenuItem]:
    result = await db.execute(select(MenuItem).filter(MenuItem.id == menu_item_id))
    return result.scalar_one_or_none()


async def create_menu_item(db: AsyncSession, name: str, price: int, description: Optional[str] = None,
                           image_url: Optional[str] = None, category: Optional[str] = None) -> MenuItem:
    if not name or not name.strip():
        raise ValidationError("Name is required", field="name")
    if isinstance(price, bool) or not isinstance(price, int):
        raise ValidationError("Price must be an integer amount of cents", field="price")
    if price < 0:
        raise ValidationError("Price must be positive", field="price")

    new_item = MenuItem(
        name=name,
        description=description or None,
        price=price,
        image_url=image_url or None,
        category=category or None,
    )
    db.add(new_item)
    await db.commit()
    await db.refresh(new_item)
    logger.debug("created menu item id=%s name=%r", new_item.id, new_item.name)
    return new_item


SAMPLE_MENU_ITEMS = [
    ("Classic Burger", "Juicy beef patty with lettuce, tomato, and special sauce", 1299,
     "https://images.unsplash.com/photo-1495446815901-a7297e633e8d?w=800&h=600&fit=crop", "Burgers"),
    ("Margherita Pizza", "Fresh mozzarella, tomatoes, and basil on thin crust", 1499,
     "https://images.unsplash.com/photo-1524995997946-a1c2e315a42f?w=800&h=600&fit=crop", "Pizza"),
    ("Caesar Salad", "Crisp romaine lettuce with parmesan and croutons", 899,
     "https://images.unsplash.com/photo-1524578271613-d550eacf6090?w=800&h=600&fit=crop", "Salads"),
    ("Grilled Salmon", "Fresh Atlantic salmon with lemon butter sauce", 1899,
     "https://images.unsplash.com/photo-1513001900722-370f803f498d?w=800&h=600&fit=crop", "Seafood"),
    ("Chicken Tacos", "Three soft tacos with grilled chicken and fresh toppings", 1099,
     "https://images.unsplash.com/photo-1610116306796-6fea9f4fae38?w=800&h=600&fit=crop", "Mexican"),
    ("Chocolate Cake", "Rich chocolate layer cake with ganache frosting", 699,
     "https://images.unsplash.com/photo-1604866830893-c13cafa515d5?w=800&h=600&fit=crop", "Desserts"),
    ("Iced Coffee", "Cold brew coffee served over ice", 499,
     "https://images.unsplash.com/photo-1550399105-c4db5fb85c18?w=800&h=600&fit=crop", "Beverages"),
    ("Spaghetti Carbonara", "Classic Italian pasta with bacon and creamy sauce", 1399,
     "https://images.unsplash.com/photo-1497633762265-9d179a990aa6?w=800&h=600&fit=crop", "Pasta"),
]


async def seed_menu_items(db: AsyncSession) -> int:
    """Заполняет пустое меню демо-товарами. Возвращает количество добавленных."""
    count = (await db.execute(select(func.count()).select_from(MenuItem))).scalar_one()
    if count:
        return 0
    for name, description, price, image_url, category in SAMPLE_MENU_ITEMS:
        db.add(MenuItem(name=name, description=description, price=price, image_url=image_url, category=category))
    await db.commit()
    logger.info("seeded %d menu items", len(SAMPLE_MENU_ITEMS))
    return len(SAMPLE_MENU_ITEMS)


# ---------------------------------------------------------------- cart

async def get_cart_items_by_user_id(db: AsyncSession, user_id: int) -> List[Tuple[CartItem, Optional[MenuItem]]]:
    """
    Товары из корзины пользователя вместе с товаром меню.
    Если товар меню пропал, вместо него None.
    """
    result = await db.execute(
        select(CartItem, MenuItem)
        .outerjoin(MenuItem, MenuItem.id == CartItem.menu_item_id)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .execution_options(populate_existing=True)
    )
    return [(cart_item, menu_item) for cart_item, menu_item in result.all()]


async def get_cart_item(db: AsyncSession, cart_item_id: int, user_id: int) -> Optional[CartItem]:
    result = await db.execute(
        select(CartItem).filter(CartItem.id == cart_item_id, CartItem.user_id == user_id)
    )
    return result.scalar_one_or_none()


def _same_cart_row(user_id: int, menu_item_id: int):
    return CartItem.user_id == user_id, CartItem.menu_item_id == menu_item_id


async def get_cart_row(db: AsyncSession, user_id: int, menu_item_id: int) -> Optional[CartItem]:
    result = await db.execute(
        select(CartItem)
        .filter(*_same_cart_row(user_id, menu_item_id))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def add_to_cart(db: AsyncSession, user_id: int, menu_item_id: int, quantity: int = 1) -> Optional[CartItem]:
    """
    Добавляет товар в корзину. Повторное добавление увеличивает количество.
    Если количество стало <= 0, строка удаляется и возвращается None.
    """
    while True:
        # Инкремент считается в базе: quantity = quantity + :n
        result = await db.execute(
            update(CartItem)
            .where(*_same_cart_row(user_id, menu_item_id))
            .values(quantity=CartItem.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await db.execute(
                delete(CartItem)
                .where(*_same_cart_row(user_id, menu_item_id), CartItem.quantity <= 0)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            cart_item = await get_cart_row(db, user_id, menu_item_id)
            logger.debug("cart add user=%s menu_item=%s quantity=%s", user_id, menu_item_id,
                         cart_item.quantity if cart_item else 0)
            return cart_item

        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        cart_item = CartItem(user_id=user_id, menu_item_id=menu_item_id, quantity=quantity)
        db.add(cart_item)
        try:
            await db.commit()
        except IntegrityError:
            # Строку успел создать параллельный запрос, повторяем через инкремент
            await db.rollback()
            logger.debug("cart add race user=%s menu_item=%s, retrying", user_id, menu_item_id)
            continue
        await db.refresh(cart_item)
        logger.debug("cart add user=%s menu_item=%s quantity=%s", user_id, menu_item_id, cart_item.quantity)
        return cart_item


async def update_cart_item_quantity(db: AsyncSession, cart_item_id: int, user_id: int, quantity: int) -> None:
    if quantity <= 0:
        await remove_from_cart(db, cart_item_id, user_id)
        return

    cart_item = await get_cart_item(db, cart_item_id, user_id)
    if cart_item is None:
        # чужая или несуществующая строка - ничего не делаем
        return
    cart_item.quantity = quantity
    await db.commit()
    logger.debug("cart update user=%s cart_item=%s quantity=%s", user_id, cart_item_id, quantity)


async def remove_from_cart(db: AsyncSession, cart_item_id: int, user_id: int) -> None:
    await db.execute(delete(CartItem).filter(CartItem.id == cart_item_id, CartItem.user_id == user_id))
    await db.commit()
    logger.debug("cart remove user=%s cart_item=%s", user_id, cart_item_id)


async def clear_cart(db: AsyncSession, user_id: int) -> None:
    """Очистка корзины пользователя"""
    await db.execute(delete(CartItem).filter(CartItem.user_id == user_id))
    await db.commit()
    logger.debug("cart cleared user=%s", user_id)

# storefront/db/init_db.py
from storefront.db.database import Database
from storefront.db import models  # noqa: F401  регистрирует таблицы в Base.metadata
from storefront.db.functions import seed_menu_items


async def init_db(database: Database, seed: bool = True):
    # Создание всех таблиц
    await database.init()
    if seed:
        async with database.session_factory() as session:
            await seed_menu_items(session)

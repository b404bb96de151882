# storefront/db/database.py
import asyncio
import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url)


class Database:
    """Хранилище: init (пустые таблицы) -> выдача сессий -> dispose."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        options = {}
        # in-memory sqlite живет на одном общем соединении, сессии берут его по очереди
        self.lock: Optional[asyncio.Lock] = None
        if _is_memory_sqlite(url):
            options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
            self.lock = asyncio.Lock()
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **options)
        # Асинхронная фабрика сессий
        self.session_factory = async_sessionmaker(bind=self.engine, class_=AsyncSession, expire_on_commit=False)

    async def init(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database ready at %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self):
        await self.engine.dispose()
        logger.info("database disposed")


# Генератор сессий
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    if database.lock is None:
        async with database.session_factory() as session:
            yield session
        return
    async with database.lock:
        async with database.session_factory() as session:
            yield session

"""
Фабрика для создания сессий базы данных
"""

from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from core.config.settings import settings
from core.logging.logger import logger


class DatabaseManager:
    """Менеджер базы данных для создания сессий."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, database_url: Optional[str] = None):
        """Инициализирует подключение к базе данных."""
        if self._initialized:
            return

        try:
            self.engine = create_async_engine(
                database_url or settings.async_database_url,
                echo=settings.database_echo,
                poolclass=NullPool,
            )
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            self._initialized = True
            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    async def create_tables(self):
        """Создает таблицы по метаданным моделей."""
        from domain.entities import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def close(self):
        """Закрывает подключение к базе данных."""
        if self.engine:
            await self.engine.dispose()
            self._initialized = False
            logger.info("Database connection closed")

    def get_session(self) -> AsyncSession:
        """Возвращает новую сессию базы данных."""
        if not self._initialized:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        return self.session_factory()


# Глобальный экземпляр менеджера БД
db_manager = DatabaseManager()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency для получения сессии БД."""
    session = db_manager.get_session()
    try:
        yield session
    finally:
        await session.close()


async def init_database():
    """Инициализирует базу данных."""
    await db_manager.initialize()
    if settings.database_auto_create:
        await db_manager.create_tables()


async def close_database():
    """Закрывает подключение к базе данных."""
    await db_manager.close()


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Асинхронный контекстный менеджер для получения сессии БД.

    Используется вне HTTP запросов (фоновые задачи, скрипты):
        async with get_async_session() as session:
            ...
    """
    if not db_manager.is_initialized:
        await db_manager.initialize()
    session = db_manager.get_session()
    try:
        yield session
    finally:
        await session.close()

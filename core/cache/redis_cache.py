"""Redis кэширование для QA Dashboard."""

import json
from datetime import timedelta
from functools import wraps
from typing import Any, Optional, Union

import redis.asyncio as redis

from core.config.settings import settings
from core.logging.logger import StructuredLogger

logger = StructuredLogger("qa_dashboard.cache")


def _ttl_seconds(ttl: Optional[Union[int, timedelta]]) -> Optional[int]:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return ttl


class RedisCache:
    """Асинхронный Redis кэш с JSON сериализацией.

    Если Redis недоступен, все операции становятся no-op:
    чтение возвращает None, запись возвращает False.
    """

    def __init__(self, redis_url: str = None, db: int = None):
        self.redis_url = redis_url or settings.redis_url
        self.db = db if db is not None else settings.redis_db
        self.redis: Optional[redis.Redis] = None
        self.is_connected = False

    async def connect(self) -> None:
        """Подключение к Redis."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                db=self.db,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            await self.redis.ping()
            self.is_connected = True
            logger.info("Redis cache connected successfully")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self.is_connected = False
            raise

    async def disconnect(self) -> None:
        """Отключение от Redis."""
        if self.redis:
            await self.redis.aclose()
            self.is_connected = False
            logger.info("Redis cache disconnected")

    async def set(self, key: str, value: Any, ttl: Optional[Union[int, timedelta]] = None) -> bool:
        """Сохранение значения в кэш.

        Args:
            key: Ключ для сохранения
            value: Значение (сериализуется в JSON)
            ttl: Время жизни в секундах или timedelta
        """
        if not self.is_connected:
            return False

        try:
            serialized_value = json.dumps(value, ensure_ascii=False, default=str)
            success = await self.redis.set(key, serialized_value, ex=_ttl_seconds(ttl))
            if success:
                logger.debug("Cache set successful", key=key)
            return bool(success)

        except Exception as e:
            logger.error(f"Failed to set cache: {e}", key=key)
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Получение значения из кэша."""
        if not self.is_connected:
            return None

        try:
            serialized_value = await self.redis.get(key)
            if serialized_value is None:
                logger.debug("Cache miss", key=key)
                return None

            logger.debug("Cache hit", key=key)
            return json.loads(serialized_value.decode('utf-8'))

        except Exception as e:
            logger.error(f"Failed to get cache: {e}", key=key)
            return None

    async def delete(self, key: str) -> bool:
        """Удаление значения из кэша."""
        if not self.is_connected:
            return False

        try:
            result = await self.redis.delete(key)
            return bool(result)
        except Exception as e:
            logger.error(f"Failed to delete cache: {e}", key=key)
            return False

    async def incr(self, key: str, ttl: Optional[Union[int, timedelta]] = None) -> Optional[int]:
        """Инкремент счетчика. TTL ставится при первом инкременте."""
        if not self.is_connected:
            return None

        try:
            current = await self.redis.incr(key)
            if current == 1 and ttl is not None:
                await self.redis.expire(key, _ttl_seconds(ttl))
            return int(current)
        except Exception as e:
            logger.error(f"Failed to increment cache counter: {e}", key=key)
            return None


# Глобальный экземпляр кэша
cache = RedisCache()


def cached(ttl: Union[int, timedelta] = 60, key: str = ""):
    """Декоратор для кэширования результатов корутин без аргументов-сущностей.

    Ключ задается явно, например cached(ttl=30, key="stats:dashboard").
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            cache_key = key or f"fn:{func.__qualname__}"

            cached_result = await cache.get(cache_key)
            if cached_result is not None:
                return cached_result

            result = await func(*args, **kwargs)
            await cache.set(cache_key, result, ttl=ttl)
            return result
        return wrapper
    return decorator


async def init_cache() -> None:
    """Инициализация кэша при запуске приложения."""
    if not settings.cache_enabled:
        logger.info("Cache disabled by settings")
        return
    await cache.connect()


async def close_cache() -> None:
    """Закрытие кэша при остановке приложения."""
    await cache.disconnect()

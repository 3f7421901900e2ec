"""Ограничение числа неудачных попыток входа через Redis."""

from core.cache.redis_cache import cache
from core.logging.logger import logger


class RateLimiter:
    """Счетчик попыток в окне фиксированной длины.

    При недоступном Redis ограничение не применяется.
    """

    PREFIX = "rate_limit"

    @classmethod
    def _key(cls, key: str) -> str:
        return f"{cls.PREFIX}:{key}"

    @classmethod
    async def is_limited(cls, key: str, max_attempts: int) -> bool:
        """Проверяет, исчерпан ли лимит попыток для ключа."""
        current = await cache.get(cls._key(key))
        if current is None:
            return False
        try:
            return int(current) >= max_attempts
        except (TypeError, ValueError):
            return False

    @classmethod
    async def register_attempt(cls, key: str, window_seconds: int) -> int:
        """Учитывает попытку. Возвращает текущее значение счетчика (0 без Redis)."""
        current = await cache.incr(cls._key(key), ttl=window_seconds)
        if current is None:
            return 0
        logger.debug(f"Rate limit counter for {key}: {current}")
        return current

    @classmethod
    async def reset_limit(cls, key: str) -> bool:
        """Сброс счетчика для ключа."""
        return await cache.delete(cls._key(key))

"""Сервис кэширования для сущностей QA Dashboard."""

from datetime import timedelta
from typing import Optional, Dict, Any
from core.cache.redis_cache import cache


class CacheService:
    """Сервис для кэширования тестеров, багов и статистики."""

    # Префиксы ключей
    TESTER_PREFIX = "tester"
    BUG_PREFIX = "bug"
    DASHBOARD_STATS_KEY = "stats:dashboard"

    # TTL
    ENTITY_TTL = timedelta(seconds=60)
    STATS_TTL = timedelta(seconds=30)

    @classmethod
    async def get_tester(cls, tester_id: int) -> Optional[Dict[str, Any]]:
        return await cache.get(f"{cls.TESTER_PREFIX}:{tester_id}")

    @classmethod
    async def set_tester(cls, tester_id: int, tester_data: Dict[str, Any]) -> bool:
        return await cache.set(f"{cls.TESTER_PREFIX}:{tester_id}", tester_data, ttl=cls.ENTITY_TTL)

    @classmethod
    async def invalidate_tester(cls, tester_id: int) -> bool:
        return await cache.delete(f"{cls.TESTER_PREFIX}:{tester_id}")

    @classmethod
    async def get_bug(cls, bug_id: int) -> Optional[Dict[str, Any]]:
        return await cache.get(f"{cls.BUG_PREFIX}:{bug_id}")

    @classmethod
    async def set_bug(cls, bug_id: int, bug_data: Dict[str, Any]) -> bool:
        return await cache.set(f"{cls.BUG_PREFIX}:{bug_id}", bug_data, ttl=cls.ENTITY_TTL)

    @classmethod
    async def invalidate_bug(cls, bug_id: int) -> bool:
        """Сбрасывает кэш бага и зависящую от него статистику."""
        await cache.delete(cls.DASHBOARD_STATS_KEY)
        return await cache.delete(f"{cls.BUG_PREFIX}:{bug_id}")

    @classmethod
    async def invalidate_dashboard_stats(cls) -> bool:
        return await cache.delete(cls.DASHBOARD_STATS_KEY)

"""Проверка здоровья системы - подключения к БД и Redis."""

from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.config.settings import settings
from core.logging.logger import logger


class HealthChecker:
    """Проверка доступности сервисов."""

    async def check_database(self, session: AsyncSession) -> Dict[str, Any]:
        """Проверка подключения к базе данных."""
        try:
            result = await session.execute(text("SELECT 1"))
            if result.scalar() != 1:
                raise RuntimeError("Unexpected database response")
            return {'status': 'healthy', 'message': 'Database connection successful'}

        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return {'status': 'unhealthy', 'message': f'Database connection failed: {str(e)}'}

    async def check_redis(self) -> Dict[str, Any]:
        """Проверка подключения к Redis. Без Redis приложение работает без кэша."""
        if not settings.cache_enabled:
            return {'status': 'disabled', 'message': 'Cache disabled by settings'}

        from core.cache.redis_cache import cache

        if not cache.is_connected or not cache.redis:
            return {'status': 'unhealthy', 'message': 'Redis not connected'}
        try:
            await cache.redis.ping()
            return {'status': 'healthy', 'message': 'Redis connection successful'}
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return {'status': 'unhealthy', 'message': f'Redis connection failed: {str(e)}'}

    async def check_all_services(self, session: AsyncSession) -> Dict[str, Any]:
        """
        Проверка всех сервисов.

        Returns:
            status: ok, degraded (Redis недоступен) или error (БД недоступна)
        """
        database = await self.check_database(session)
        redis_status = await self.check_redis()

        overall_status = 'ok'
        if database['status'] != 'healthy':
            overall_status = 'error'
        elif redis_status['status'] == 'unhealthy':
            overall_status = 'degraded'  # Redis не критичен, система может работать

        return {
            'status': overall_status,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': settings.version,
            'services': {
                'database': database,
                'redis': redis_status,
            },
        }


# Глобальный экземпляр
health_checker = HealthChecker()

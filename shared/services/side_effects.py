"""Выполнение побочных эффектов, которые не должны ломать основную операцию."""

from typing import Any, Awaitable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging.logger import logger


async def best_effort(
    effect: Awaitable[Any],
    description: str,
    session: Optional[AsyncSession] = None,
) -> Optional[Any]:
    """Выполняет эффект после фиксации основной записи.

    Ошибка эффекта только логируется. Если передана сессия, она
    откатывается, чтобы вызывающий код мог продолжать с ней работать.
    """
    try:
        return await effect
    except Exception as e:
        logger.warning(f"{description}: {e}")
        if session is not None:
            try:
                await session.rollback()
            except Exception as rollback_error:
                logger.warning(f"Rollback after failed side effect also failed: {rollback_error}")
        return None

#!/usr/bin/env python3
"""Скрипт для ручного пересчета рейтингов всех тестеров."""

import asyncio
import sys
import os

# Добавляем корневую папку проекта в путь
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database.session import db_manager, get_async_session
from shared.services.rating_service import RatingService


async def recalculate() -> None:
    try:
        async with get_async_session() as session:
            totals = await RatingService(session).recalculate_all_ratings()
            print(
                f"✅ Обработано: {totals['processed']}, "
                f"обновлено: {totals['updated']}, ошибок: {totals['errors']}"
            )
    finally:
        await db_manager.close()


if __name__ == "__main__":
    asyncio.run(recalculate())

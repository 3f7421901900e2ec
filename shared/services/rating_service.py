"""
Сервис для расчета рейтинга тестеров.

Рейтинг - взвешенная сумма багов тестера по приоритетам:
critical=4, high=3, medium=2, low=1. Рейтинг и количество багов
всегда пересчитываются по текущему набору багов целиком, без инкрементов.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case

from core.cache.cache_service import CacheService
from core.exceptions import NotFoundError
from core.logging.logger import logger
from domain.entities.base import utcnow
from domain.entities.bug import Bug
from domain.entities.tester import Tester
from domain.entities.activity_history import ActivityHistory, ActivityEventType


class RatingService:
    """Сервис для работы с рейтингами тестеров."""

    PRIORITY_WEIGHTS = {
        "critical": 4,
        "high": 3,
        "medium": 2,
        "low": 1,
    }

    # Размер пачки при полном пересчете
    RECALCULATE_BATCH_SIZE = 50

    # Порядок корзин распределения рейтингов
    DISTRIBUTION_RANGES = ("0", "1-10", "11-25", "26-50", "50+")

    def __init__(self, session: AsyncSession):
        """Инициализация сервиса."""
        self.session = session

    async def calculate_rating(self, tester_id: int) -> Dict[str, Any]:
        """
        Расчет рейтинга тестера без записи в БД.

        Args:
            tester_id: ID тестера

        Returns:
            Dict: testerId, rating, bugsCount, breakdown (только ненулевые приоритеты)
        """
        query = (
            select(Bug.priority, func.count(Bug.id))
            .where(Bug.tester_id == tester_id)
            .group_by(Bug.priority)
        )
        result = await self.session.execute(query)

        rating = 0
        bugs_count = 0
        breakdown: Dict[str, int] = {}

        for priority, count in result.all():
            breakdown[priority] = count
            bugs_count += count
            rating += count * self.PRIORITY_WEIGHTS.get(priority, 0)

        return {
            "testerId": tester_id,
            "rating": rating,
            "bugsCount": bugs_count,
            "breakdown": breakdown,
        }

    async def update_tester_rating(self, tester_id: int) -> Dict[str, Any]:
        """
        Пересчитывает рейтинг и сохраняет его в карточке тестера.

        Raises:
            NotFoundError: тестер не найден
        """
        tester = await self.session.get(Tester, tester_id)
        if not tester:
            raise NotFoundError("Тестер не найден", resource="tester", id=tester_id)

        calculation = await self.calculate_rating(tester_id)

        tester.rating = calculation["rating"]
        tester.bugs_count = calculation["bugsCount"]
        tester.updated_at = utcnow()
        await self.session.commit()

        await CacheService.invalidate_tester(tester_id)

        logger.info(
            f"Updated rating for tester {tester_id}: rating={tester.rating}, bugs={tester.bugs_count}"
        )

        return {
            "id": tester.id,
            "name": tester.name,
            "rating": tester.rating,
            "bugsCount": tester.bugs_count,
            "breakdown": calculation["breakdown"],
        }

    async def update_multiple_tester_ratings(self, tester_ids: List[int]) -> Dict[str, Any]:
        """Пересчет рейтингов для списка тестеров. Ошибки собираются, а не прерывают обработку."""
        updated = []
        errors = []

        for tester_id in tester_ids:
            try:
                updated.append(await self.update_tester_rating(tester_id))
            except NotFoundError as e:
                errors.append({"testerId": tester_id, "error": e.message})
            except Exception as e:
                logger.error(f"Error updating rating for tester {tester_id}: {e}")
                await self.session.rollback()
                errors.append({"testerId": tester_id, "error": str(e)})

        return {"updated": updated, "errors": errors}

    async def recalculate_all_ratings(self) -> Dict[str, int]:
        """Полный пересчет рейтингов всех тестеров пачками."""
        result = await self.session.execute(select(Tester.id).order_by(Tester.id))
        tester_ids = list(result.scalars().all())

        logger.info(f"Starting rating recalculation for {len(tester_ids)} testers")

        totals = {"processed": 0, "updated": 0, "errors": 0}
        for start in range(0, len(tester_ids), self.RECALCULATE_BATCH_SIZE):
            batch = tester_ids[start:start + self.RECALCULATE_BATCH_SIZE]
            batch_result = await self.update_multiple_tester_ratings(batch)

            totals["processed"] += len(batch)
            totals["updated"] += len(batch_result["updated"])
            totals["errors"] += len(batch_result["errors"])

        logger.info(f"Rating recalculation completed: {totals}")
        return totals

    # === Триггеры изменений багов ===

    async def on_bug_created(self, tester_id: int, priority: str) -> Dict[str, Any]:
        """Пересчет после создания бага."""
        return await self._update_and_record(
            tester_id,
            trigger="bug_created",
            description_prefix=f"Рейтинг обновлен после создания бага с приоритетом {priority}",
            metadata={"priority": priority},
        )

    async def on_bug_priority_changed(self, tester_id: int, old_priority: str, new_priority: str) -> Dict[str, Any]:
        """Пересчет после смены приоритета бага."""
        return await self._update_and_record(
            tester_id,
            trigger="priority_changed",
            description_prefix=(
                f"Рейтинг обновлен после изменения приоритета бага с {old_priority} на {new_priority}"
            ),
            metadata={"oldPriority": old_priority, "newPriority": new_priority},
        )

    async def on_bug_deleted(self, tester_id: int, priority: str) -> Dict[str, Any]:
        """Пересчет после удаления бага."""
        return await self._update_and_record(
            tester_id,
            trigger="bug_deleted",
            description_prefix=f"Рейтинг обновлен после удаления бага с приоритетом {priority}",
            metadata={"priority": priority},
        )

    async def _update_and_record(
        self,
        tester_id: int,
        trigger: str,
        description_prefix: str,
        metadata: Dict[str, Any],
    ) -> Dict[str, Any]:
        previous = await self.session.get(Tester, tester_id)
        old_rating = previous.rating if previous else None

        updated = await self.update_tester_rating(tester_id)

        await self.record_rating_activity(
            tester_id,
            description=f"{description_prefix}. Новый рейтинг: {updated['rating']}",
            metadata={
                "trigger": trigger,
                "oldRating": old_rating,
                "newRating": updated["rating"],
                "bugsCount": updated["bugsCount"],
                "breakdown": updated["breakdown"],
                **metadata,
            },
        )
        return updated

    async def record_rating_activity(
        self,
        tester_id: int,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityHistory]:
        """Запись события rating_updated. Ошибка записи не прерывает пересчет."""
        try:
            entry = ActivityHistory(
                tester_id=tester_id,
                event_type=ActivityEventType.RATING_UPDATED.value,
                description=description,
                meta={**(metadata or {}), "timestamp": utcnow().isoformat()},
            )
            self.session.add(entry)
            await self.session.commit()
            return entry
        except Exception as e:
            logger.warning(f"Failed to record rating activity for tester {tester_id}: {e}")
            await self.session.rollback()
            return None

    # === Чтение ===

    async def get_top_testers(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Лучшие тестеры по рейтингу.

        Порядок: rating DESC, bugs_count DESC, registration_date ASC -
        при равенстве выше тот, кто зарегистрировался раньше.
        """
        query = (
            select(Tester)
            .where(Tester.rating > 0)
            .order_by(
                Tester.rating.desc(),
                Tester.bugs_count.desc(),
                Tester.registration_date.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [tester.to_dict() for tester in result.scalars().all()]

    async def get_rating_statistics(self) -> Dict[str, Any]:
        """Сводная статистика рейтингов."""
        active_query = select(func.count(Tester.id), func.avg(Tester.rating)).where(Tester.rating > 0)
        total_active, average = (await self.session.execute(active_query)).one()

        max_rating = (await self.session.execute(select(func.max(Tester.rating)))).scalar()

        bucket = case(
            (Tester.rating == 0, "0"),
            (Tester.rating <= 10, "1-10"),
            (Tester.rating <= 25, "11-25"),
            (Tester.rating <= 50, "26-50"),
            else_="50+",
        ).label("bucket")
        distribution_rows = (
            await self.session.execute(select(bucket, func.count(Tester.id)).group_by(bucket))
        ).all()
        counts = {row[0]: row[1] for row in distribution_rows}

        return {
            "totalActiveTesters": total_active or 0,
            "averageRating": round(float(average), 2) if average is not None else 0,
            "maxRating": max_rating or 0,
            "distribution": {key: counts[key] for key in self.DISTRIBUTION_RANGES if key in counts},
        }

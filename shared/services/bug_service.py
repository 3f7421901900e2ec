"""
Сервис багов.

После записи бага выполняются побочные эффекты: журнал активности,
пересчет рейтинга тестера и уведомление о критическом баге.
"""

import math
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func, or_, case
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache.cache_service import CacheService
from core.cache.redis_cache import cached
from core.exceptions import ValidationError, NotFoundError
from core.logging.logger import logger
from domain.entities.base import utcnow
from domain.entities.bug import Bug, BugPriority, BugStatus, BugType
from domain.entities.tester import Tester
from shared.services.activity_history_service import ActivityHistoryService, _is_numeric
from shared.services.notification_service import NotificationService
from shared.services.rating_service import RatingService
from shared.services.screenshot_service import ScreenshotService
from shared.services.side_effects import best_effort

BUG_PRIORITIES = tuple(p.value for p in BugPriority)
BUG_STATUSES = tuple(s.value for s in BugStatus)
BUG_TYPES = tuple(t.value for t in BugType)

TITLE_MAX_LENGTH = 500
UNKNOWN_TESTER_NAME = "Неизвестный тестер"

UPDATABLE_FIELDS = ("title", "description", "priority", "status", "type")

# Порядок приоритетов для сортировки: low < medium < high < critical
PRIORITY_ORDER = case(
    {p: RatingService.PRIORITY_WEIGHTS[p] for p in BUG_PRIORITIES},
    value=Bug.priority,
    else_=0,
)

SORT_FIELDS = {
    "created_at": Bug.created_at,
    "updated_at": Bug.updated_at,
    "title": Bug.title,
    "priority": PRIORITY_ORDER,
    "status": Bug.status,
    "type": Bug.type,
    "testerName": Tester.name,
}


def _enum_error(field: str, label: str, allowed: tuple) -> Dict[str, str]:
    return {"field": field, "message": f"{label} должен быть одним из: {', '.join(allowed)}"}


class BugService:
    """Сервис для работы с багами."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Проверка данных бага. Возвращает все ошибки сразу."""
        errors = []

        title = data.get("title")
        if not title or not str(title).strip():
            errors.append({"field": "title", "message": "Название обязательно"})
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append({"field": "title", "message": f"Название не может быть длиннее {TITLE_MAX_LENGTH} символов"})

        description = data.get("description")
        if not description or not str(description).strip():
            errors.append({"field": "description", "message": "Описание обязательно"})

        tester_id = data.get("testerId")
        if tester_id is None or tester_id == "":
            errors.append({"field": "testerId", "message": "ID тестера обязательно"})
        elif not _is_numeric(tester_id):
            errors.append({"field": "testerId", "message": "ID тестера должен быть числом"})

        priority = data.get("priority")
        if not priority:
            errors.append({"field": "priority", "message": "Приоритет обязателен"})
        elif priority not in BUG_PRIORITIES:
            errors.append(_enum_error("priority", "Приоритет", BUG_PRIORITIES))

        status = data.get("status")
        if not status:
            errors.append({"field": "status", "message": "Статус обязателен"})
        elif status not in BUG_STATUSES:
            errors.append(_enum_error("status", "Статус", BUG_STATUSES))

        bug_type = data.get("type")
        if not bug_type:
            errors.append({"field": "type", "message": "Тип обязателен"})
        elif bug_type not in BUG_TYPES:
            errors.append(_enum_error("type", "Тип", BUG_TYPES))

        return errors

    async def _get_or_404(self, bug_id: int) -> Bug:
        bug = await self.session.get(Bug, bug_id)
        if not bug:
            raise NotFoundError("Баг не найден", resource="bug", id=bug_id)
        return bug

    async def _tester_name(self, tester_id: int) -> str:
        name = (await self.session.execute(select(Tester.name).where(Tester.id == tester_id))).scalar()
        return name or UNKNOWN_TESTER_NAME

    async def _create_critical_notification(self, bug: Dict[str, Any]) -> Dict[str, Any]:
        tester_name = await self._tester_name(bug["testerId"])
        return await NotificationService(self.session).create_critical_bug_notification(bug, tester_name)

    async def _notify_critical(self, bug: Dict[str, Any]) -> None:
        # Поиск имени тестера тоже часть побочного эффекта
        await best_effort(
            self._create_critical_notification(bug),
            f"Failed to create critical bug notification for bug {bug['id']}",
            self.session,
        )

    async def _on_priority_changed(self, bug: Dict[str, Any], old_priority: str) -> None:
        await best_effort(
            RatingService(self.session).on_bug_priority_changed(bug["testerId"], old_priority, bug["priority"]),
            f"Failed to update rating for tester {bug['testerId']} after priority change",
            self.session,
        )
        if bug["priority"] == BugPriority.CRITICAL.value:
            await self._notify_critical(bug)

    # === Создание ===

    async def create_bug(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Создание бага.

        Raises:
            ValidationError: некорректные данные
            NotFoundError: тестер не найден
        """
        errors = self.validate(data)
        if errors:
            raise ValidationError(errors)

        tester_id = int(data["testerId"])
        if not await self.session.get(Tester, tester_id):
            raise NotFoundError(
                "Тестер не найден",
                resource="tester",
                id=tester_id,
                details=[{"field": "testerId", "message": "Тестер с таким ID не существует"}],
            )

        bug = Bug(
            title=data["title"].strip(),
            description=data["description"],
            tester_id=tester_id,
            priority=data["priority"],
            type=data["type"],
        )
        bug.apply_status(data["status"])
        self.session.add(bug)
        await self.session.commit()
        await CacheService.invalidate_dashboard_stats()

        result = bug.to_dict()
        logger.info(f"Created bug {result['id']} for tester {tester_id} (priority={result['priority']})")

        await best_effort(
            ActivityHistoryService(self.session).record_bug_found(tester_id, result),
            f"Failed to record bug_found activity for bug {result['id']}",
            self.session,
        )
        await best_effort(
            RatingService(self.session).on_bug_created(tester_id, result["priority"]),
            f"Failed to update rating for tester {tester_id} after bug creation",
            self.session,
        )
        if result["priority"] == BugPriority.CRITICAL.value:
            await self._notify_critical(result)

        return result

    # === Чтение ===

    async def get_bug_by_id(self, bug_id: int) -> Dict[str, Any]:
        """Баг с именем тестера."""
        cached_bug = await CacheService.get_bug(bug_id)
        if cached_bug:
            return cached_bug

        query = (
            select(Bug, Tester.name)
            .outerjoin(Tester, Tester.id == Bug.tester_id)
            .where(Bug.id == bug_id)
        )
        row = (await self.session.execute(query)).first()
        if not row:
            raise NotFoundError("Баг не найден", resource="bug", id=bug_id)

        bug, tester_name = row
        result = bug.to_dict(tester_name=tester_name or UNKNOWN_TESTER_NAME)
        await CacheService.set_bug(bug_id, result)
        return result

    async def get_all_bugs(
        self,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        type: Optional[str] = None,
        tester_id: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> Dict[str, Any]:
        """Список багов с фильтрами, сортировкой и пагинацией."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Bug.title.ilike(pattern), Bug.description.ilike(pattern)))
        if status:
            conditions.append(Bug.status == status)
        if priority:
            conditions.append(Bug.priority == priority)
        if type:
            conditions.append(Bug.type == type)
        if tester_id is not None:
            conditions.append(Bug.tester_id == tester_id)

        total = (await self.session.execute(select(func.count(Bug.id)).where(*conditions))).scalar() or 0

        column = SORT_FIELDS.get(sort_by, Bug.created_at)
        ordering = column.asc() if str(sort_order).upper() == "ASC" else column.desc()

        query = (
            select(Bug, Tester.name)
            .outerjoin(Tester, Tester.id == Bug.tester_id)
            .where(*conditions)
            .order_by(ordering, Bug.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        rows = (await self.session.execute(query)).all()

        return {
            "bugs": [bug.to_dict(tester_name=name or UNKNOWN_TESTER_NAME) for bug, name in rows],
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": math.ceil(total / page_size) if page_size else 0,
        }

    async def get_bugs_by_tester_id(self, tester_id: int) -> Dict[str, Any]:
        query = select(Bug).where(Bug.tester_id == tester_id).order_by(Bug.created_at.desc(), Bug.id.desc())
        bugs = (await self.session.execute(query)).scalars().all()
        return {"data": [bug.to_dict() for bug in bugs], "count": len(bugs)}

    @cached(ttl=CacheService.STATS_TTL, key=CacheService.DASHBOARD_STATS_KEY)
    async def get_bug_statistics(self) -> Dict[str, Any]:
        """Количество багов всего и в разрезе статуса, приоритета и типа."""
        total = (await self.session.execute(select(func.count(Bug.id)))).scalar() or 0

        async def grouped(column) -> Dict[str, int]:
            rows = (await self.session.execute(select(column, func.count(Bug.id)).group_by(column))).all()
            return {value: count for value, count in rows}

        return {
            "total": total,
            "byStatus": await grouped(Bug.status),
            "byPriority": await grouped(Bug.priority),
            "byType": await grouped(Bug.type),
        }

    # === Изменение ===

    async def update_bug(self, bug_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Обновление разрешенных полей бага.

        Смена приоритета пересчитывает рейтинг тестера, переход в critical
        создает уведомление.
        """
        values = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}
        if not values:
            raise ValidationError.single("updates", "Нет допустимых полей для обновления")

        errors = []
        if "title" in values:
            title = values["title"]
            if not title or not str(title).strip():
                errors.append({"field": "title", "message": "Название обязательно"})
            elif len(title) > TITLE_MAX_LENGTH:
                errors.append({
                    "field": "title",
                    "message": f"Название не может быть длиннее {TITLE_MAX_LENGTH} символов",
                })
        if "description" in values and not values["description"]:
            errors.append({"field": "description", "message": "Описание обязательно"})
        if "priority" in values and values["priority"] not in BUG_PRIORITIES:
            errors.append(_enum_error("priority", "Приоритет", BUG_PRIORITIES))
        if "status" in values and values["status"] not in BUG_STATUSES:
            errors.append(_enum_error("status", "Статус", BUG_STATUSES))
        if "type" in values and values["type"] not in BUG_TYPES:
            errors.append(_enum_error("type", "Тип", BUG_TYPES))
        if errors:
            raise ValidationError(errors)

        bug = await self._get_or_404(bug_id)
        old_priority = bug.priority

        for field in ("title", "description", "priority", "type"):
            if field in values:
                setattr(bug, field, values[field].strip() if field == "title" else values[field])
        if "status" in values:
            bug.apply_status(values["status"])
        bug.updated_at = utcnow()

        await self.session.commit()
        await CacheService.invalidate_bug(bug_id)

        result = bug.to_dict()
        if "priority" in values and old_priority != result["priority"]:
            await self._on_priority_changed(result, old_priority)
        return result

    async def update_bug_status(self, bug_id: int, status: str) -> Dict[str, Any]:
        if status not in BUG_STATUSES:
            raise ValidationError([_enum_error("status", "Статус", BUG_STATUSES)], message="Неверное значение статуса")

        bug = await self._get_or_404(bug_id)
        bug.apply_status(status)
        bug.updated_at = utcnow()
        await self.session.commit()
        await CacheService.invalidate_bug(bug_id)
        return bug.to_dict()

    async def update_bug_priority(self, bug_id: int, priority: str) -> Dict[str, Any]:
        """Смена приоритета. Рейтинг пересчитывается только при реальном изменении."""
        if priority not in BUG_PRIORITIES:
            raise ValidationError(
                [_enum_error("priority", "Приоритет", BUG_PRIORITIES)],
                message="Неверное значение приоритета",
            )

        bug = await self._get_or_404(bug_id)
        old_priority = bug.priority
        bug.priority = priority
        bug.updated_at = utcnow()
        await self.session.commit()
        await CacheService.invalidate_bug(bug_id)

        result = bug.to_dict()
        if old_priority != priority:
            await self._on_priority_changed(result, old_priority)
        return result

    async def delete_bug(self, bug_id: int) -> str:
        """Удаление бага вместе с комментариями и скриншотами."""
        bug = await self._get_or_404(bug_id)
        tester_id = bug.tester_id
        priority = bug.priority

        removed = await ScreenshotService(self.session).delete_by_bug_id(bug_id)

        await self.session.delete(bug)
        await self.session.commit()
        await CacheService.invalidate_bug(bug_id)

        logger.info(f"Deleted bug {bug_id} of tester {tester_id} ({removed} screenshots removed)")

        await best_effort(
            RatingService(self.session).on_bug_deleted(tester_id, priority),
            f"Failed to update rating for tester {tester_id} after bug deletion",
            self.session,
        )
        return "Баг успешно удален"

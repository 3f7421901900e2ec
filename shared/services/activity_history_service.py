"""Сервис журнала активности тестеров."""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from core.exceptions import ValidationError, NotFoundError
from core.logging.logger import logger
from domain.entities.base import utcnow
from domain.entities.tester import Tester
from domain.entities.activity_history import ActivityHistory, ActivityEventType, USER_FACING_EVENT_TYPES

EVENT_TYPES = tuple(event.value for event in ActivityEventType)


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().isdigit()


class ActivityHistoryService:
    """Запись и чтение событий жизненного цикла тестера.

    Журнал только пополняется: записи не изменяются.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Проверка данных события. Возвращает все ошибки сразу."""
        errors = []

        tester_id = data.get("testerId")
        if tester_id is None or tester_id == "":
            errors.append({"field": "testerId", "message": "ID тестера обязательно"})
        elif not _is_numeric(tester_id):
            errors.append({"field": "testerId", "message": "ID тестера должен быть числом"})

        event_type = data.get("eventType")
        if not event_type:
            errors.append({"field": "eventType", "message": "Тип события обязателен"})
        elif event_type not in EVENT_TYPES:
            errors.append({
                "field": "eventType",
                "message": f"Тип события должен быть одним из: {', '.join(EVENT_TYPES)}",
            })

        if not data.get("description"):
            errors.append({"field": "description", "message": "Описание обязательно"})

        return errors

    async def record_activity(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Добавление записи в журнал.

        Args:
            data: testerId, eventType, description, metadata (опционально)

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

        entry = ActivityHistory(
            tester_id=tester_id,
            event_type=data["eventType"],
            description=data["description"],
            meta=data.get("metadata") or {},
        )
        self.session.add(entry)
        await self.session.commit()

        logger.info(f"Recorded {entry.event_type} activity for tester {tester_id}")
        return entry.to_dict()

    async def record_registration(self, tester: Dict[str, Any]) -> Dict[str, Any]:
        """Событие регистрации тестера."""
        return await self.record_activity({
            "testerId": tester["id"],
            "eventType": ActivityEventType.REGISTRATION.value,
            "description": "Тестер зарегистрировался в системе",
            "metadata": {
                "deviceType": tester.get("deviceType"),
                "os": tester.get("os"),
                "osVersion": tester.get("osVersion"),
                "timestamp": utcnow().isoformat(),
            },
        })

    async def record_bug_found(self, tester_id: int, bug: Dict[str, Any]) -> Dict[str, Any]:
        """Событие обнаружения бага."""
        return await self.record_activity({
            "testerId": tester_id,
            "eventType": ActivityEventType.BUG_FOUND.value,
            "description": f"Найден баг: {bug['title']}",
            "metadata": {
                "bugId": bug["id"],
                "bugTitle": bug["title"],
                "priority": bug.get("priority"),
                "bugType": bug.get("type"),
                "status": bug.get("status"),
                "timestamp": utcnow().isoformat(),
            },
        })

    async def record_status_changed(self, tester_id: int, old_status: str, new_status: str) -> Dict[str, Any]:
        """Событие смены статуса тестера."""
        return await self.record_activity({
            "testerId": tester_id,
            "eventType": ActivityEventType.STATUS_CHANGED.value,
            "description": f'Статус изменен с "{old_status}" на "{new_status}"',
            "metadata": {
                "oldStatus": old_status,
                "newStatus": new_status,
                "timestamp": utcnow().isoformat(),
            },
        })

    async def get_tester_activity(
        self,
        tester_id: int,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        История тестера, новые записи первыми.

        Фильтр event_type допускает только registration, bug_found, status_changed.
        """
        if event_type and event_type not in USER_FACING_EVENT_TYPES:
            raise ValidationError.single(
                "eventType",
                f"Тип события должен быть одним из: {', '.join(USER_FACING_EVENT_TYPES)}",
                summary="Неверный тип события",
            )

        if not await self.session.get(Tester, tester_id):
            raise NotFoundError("Тестер не найден", resource="tester", id=tester_id)

        query = select(ActivityHistory).where(ActivityHistory.tester_id == tester_id)
        if event_type:
            query = query.where(ActivityHistory.event_type == event_type)
        query = query.order_by(ActivityHistory.created_at.desc(), ActivityHistory.id.desc())
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        rows = [entry.to_dict() for entry in result.scalars().all()]
        return {"data": rows, "count": len(rows)}

    async def get_all_activity(
        self,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Лента активности по всем тестерам с именем тестера."""
        query = select(ActivityHistory, Tester.name).join(Tester, Tester.id == ActivityHistory.tester_id)
        if event_type:
            query = query.where(ActivityHistory.event_type == event_type)
        query = query.order_by(ActivityHistory.created_at.desc(), ActivityHistory.id.desc()).limit(limit).offset(offset)

        result = await self.session.execute(query)
        rows = [entry.to_dict(tester_name=name) for entry, name in result.all()]
        return {"data": rows, "count": len(rows)}

    async def get_activity_by_id(self, activity_id: int) -> Dict[str, Any]:
        entry = await self.session.get(ActivityHistory, activity_id)
        if not entry:
            raise NotFoundError("Запись активности не найдена", resource="activity", id=activity_id)
        return entry.to_dict()

    async def get_activity_statistics(self, tester_id: Optional[int] = None) -> Dict[str, Any]:
        """Количество событий по типам."""
        query = select(ActivityHistory.event_type, func.count(ActivityHistory.id)).group_by(ActivityHistory.event_type)
        if tester_id is not None:
            query = query.where(ActivityHistory.tester_id == tester_id)

        result = await self.session.execute(query)
        by_event_type = {event_type: count for event_type, count in result.all()}
        return {"total": sum(by_event_type.values()), "byEventType": by_event_type}

"""Сервис системных уведомлений QA Dashboard."""

from typing import List, Optional, Dict, Any
from datetime import timedelta
from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ValidationError, NotFoundError
from core.logging.logger import logger
from domain.entities.base import utcnow
from domain.entities.notification import Notification, NotificationType

NOTIFICATION_TYPES = tuple(t.value for t in NotificationType)

TITLE_MAX_LENGTH = 255


class NotificationService:
    """Сервис для управления уведомлениями.

    Уведомления создаются только системными триггерами. Методы find_all,
    find_by_id, mark_as_read и delete возвращают None/False для
    отсутствующего id; методы уровня API превращают это в NotFoundError.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[Dict[str, str]]:
        errors = []

        notification_type = data.get("type")
        if not notification_type:
            errors.append({"field": "type", "message": "Тип уведомления обязателен"})
        elif notification_type not in NOTIFICATION_TYPES:
            errors.append({
                "field": "type",
                "message": f"Тип уведомления должен быть одним из: {', '.join(NOTIFICATION_TYPES)}",
            })

        title = data.get("title")
        if not title:
            errors.append({"field": "title", "message": "Заголовок обязателен"})
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append({"field": "title", "message": "Заголовок не может быть длиннее 255 символов"})

        if not data.get("message"):
            errors.append({"field": "message", "message": "Сообщение обязательно"})

        return errors

    async def create_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Создание уведомления.

        Args:
            data: type, title, message, metadata (опционально)

        Returns:
            Dict: созданное уведомление (isRead всегда False)
        """
        errors = self.validate(data)
        if errors:
            raise ValidationError(errors)

        notification = Notification(
            type=data["type"],
            title=data["title"],
            message=data["message"],
            is_read=False,
            meta=data.get("metadata") or {},
        )
        self.session.add(notification)
        await self.session.commit()

        logger.info(f"Created {notification.type} notification {notification.id}")
        return notification.to_dict()

    # === Шаблоны ===

    async def create_new_tester_notification(self, tester: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create_notification({
            "type": NotificationType.NEW_TESTER.value,
            "title": "Новый тестер зарегистрирован",
            "message": f"Тестер {tester['name']} ({tester['email']}) зарегистрировался в системе",
            "metadata": {
                "testerId": tester["id"],
                "testerName": tester["name"],
                "testerEmail": tester["email"],
                "deviceType": tester.get("deviceType"),
                "os": tester.get("os"),
            },
        })

    async def create_critical_bug_notification(self, bug: Dict[str, Any], tester_name: str) -> Dict[str, Any]:
        return await self.create_notification({
            "type": NotificationType.CRITICAL_BUG.value,
            "title": "Обнаружен критический баг",
            "message": f'Тестер {tester_name} обнаружил критический баг: "{bug["title"]}"',
            "metadata": {
                "bugId": bug["id"],
                "bugTitle": bug["title"],
                "testerId": bug.get("testerId"),
                "testerName": tester_name,
                "priority": bug.get("priority"),
                "type": bug.get("type"),
            },
        })

    async def create_server_down_notification(self, server: Dict[str, Any]) -> Dict[str, Any]:
        return await self.create_notification({
            "type": NotificationType.SERVER_DOWN.value,
            "title": "Сервер недоступен",
            "message": f'Сервер "{server["name"]}" перешел в статус "offline"',
            "metadata": {
                "serverId": server.get("id"),
                "serverName": server["name"],
                "ipAddress": server.get("ipAddress"),
                "status": "offline",
            },
        })

    async def create_info_notification(
        self,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Информационное уведомление с произвольным текстом."""
        return await self.create_notification({
            "type": NotificationType.INFO.value,
            "title": title,
            "message": message,
            "metadata": metadata,
        })

    # === Чтение и изменение ===

    async def find_all(self, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Страница уведомлений, новые первыми, с общим числом и числом непрочитанных."""
        base = select(Notification)
        count_query = select(func.count(Notification.id))
        if unread_only:
            base = base.where(Notification.is_read.is_(False))
            count_query = count_query.where(Notification.is_read.is_(False))

        query = base.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).offset(offset)
        notifications = (await self.session.execute(query)).scalars().all()
        total = (await self.session.execute(count_query)).scalar() or 0

        unread_count = total if unread_only else await self.get_unread_count()

        return {
            "notifications": [n.to_dict() for n in notifications],
            "total": total,
            "unreadCount": unread_count,
        }

    async def find_by_id(self, notification_id: int) -> Optional[Notification]:
        return await self.session.get(Notification, notification_id)

    async def mark_as_read(self, notification_id: int) -> Optional[Notification]:
        """Отметить прочитанным. None, если уведомления нет."""
        notification = await self.find_by_id(notification_id)
        if not notification:
            return None
        notification.is_read = True
        await self.session.commit()
        return notification

    async def mark_all_as_read(self) -> int:
        result = await self.session.execute(
            update(Notification).where(Notification.is_read.is_(False)).values(is_read=True)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete(self, notification_id: int) -> bool:
        """Удалить уведомление. False, если уведомления нет."""
        notification = await self.find_by_id(notification_id)
        if not notification:
            return False
        await self.session.delete(notification)
        await self.session.commit()
        return True

    async def get_unread_count(self) -> int:
        query = select(func.count(Notification.id)).where(Notification.is_read.is_(False))
        return (await self.session.execute(query)).scalar() or 0

    async def delete_old(self, days: int = 30) -> int:
        """Удаление уведомлений старше указанного числа дней."""
        threshold = utcnow() - timedelta(days=days)
        result = await self.session.execute(delete(Notification).where(Notification.created_at < threshold))
        await self.session.commit()
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} notifications older than {days} days")
        return deleted

    # === Уровень API ===

    async def get_notifications(self, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        return await self.find_all(unread_only=unread_only, limit=limit, offset=offset)

    async def get_notification_by_id(self, notification_id: int) -> Dict[str, Any]:
        notification = await self.find_by_id(notification_id)
        if not notification:
            raise self._not_found(notification_id)
        return notification.to_dict()

    async def mark_notification_as_read(self, notification_id: int) -> Dict[str, Any]:
        notification = await self.mark_as_read(notification_id)
        if not notification:
            raise self._not_found(notification_id)
        return notification.to_dict()

    async def delete_notification(self, notification_id: int) -> None:
        if not await self.delete(notification_id):
            raise self._not_found(notification_id)

    @staticmethod
    def _not_found(notification_id: int) -> NotFoundError:
        return NotFoundError("Уведомление не найдено", resource="notification", id=notification_id)

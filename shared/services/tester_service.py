"""
Сервис тестеров: регистрация, поиск, изменение и синхронизация с Google Sheets.
"""

import math
import re
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache.cache_service import CacheService
from core.exceptions import ValidationError, NotFoundError, ConflictError
from core.logging.logger import logger
from domain.entities.base import utcnow
from domain.entities.bug import Bug
from domain.entities.screenshot import Screenshot
from domain.entities.tester import Tester, TesterStatus
from shared.services.activity_history_service import ActivityHistoryService
from shared.services.google_sheets_service import GoogleSheetsService
from shared.services.notification_service import NotificationService
from shared.services.screenshot_service import ScreenshotService
from shared.services.side_effects import best_effort

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TESTER_STATUSES = tuple(s.value for s in TesterStatus)

# Поле API -> атрибут модели
UPDATABLE_FIELDS = {
    "name": "name",
    "email": "email",
    "nickname": "nickname",
    "telegram": "telegram",
    "deviceType": "device_type",
    "os": "os",
    "osVersion": "os_version",
    "status": "status",
}

SORT_FIELDS = {
    "registration_date": Tester.registration_date,
    "name": Tester.name,
    "email": Tester.email,
    "rating": Tester.rating,
    "bugsCount": Tester.bugs_count,
    "bugs_count": Tester.bugs_count,
}

DUPLICATE_EMAIL_MESSAGE = "Email already registered"


def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class TesterService:
    """Сервис для работы с тестерами."""

    def __init__(self, session: AsyncSession, sheets: Optional[GoogleSheetsService] = None):
        self.session = session
        self.sheets = sheets or GoogleSheetsService()

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Проверка данных регистрации. Возвращает все ошибки сразу."""
        errors = []

        if not _clean(data.get("name")):
            errors.append({"field": "name", "message": "Имя обязательно"})

        email = _clean(data.get("email"))
        if not email:
            errors.append({"field": "email", "message": "Email обязателен"})
        elif not EMAIL_PATTERN.match(email):
            errors.append({"field": "email", "message": "Неверный формат email"})

        if not _clean(data.get("deviceType")):
            errors.append({"field": "deviceType", "message": "Тип устройства обязателен"})

        if not _clean(data.get("os")):
            errors.append({"field": "os", "message": "Операционная система обязательна"})

        return errors

    async def _get_or_404(self, tester_id: int) -> Tester:
        tester = await self.session.get(Tester, tester_id)
        if not tester:
            raise NotFoundError("Тестер не найден", resource="tester", id=tester_id)
        return tester

    async def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Tester.id).where(Tester.email == email)
        if exclude_id is not None:
            query = query.where(Tester.id != exclude_id)
        return (await self.session.execute(query)).first() is not None

    async def _commit_or_conflict(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Integrity error on tester write: {e.orig}")
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="email")

    # === Регистрация ===

    async def register_tester(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Регистрация тестера.

        После записи выполняются побочные эффекты (журнал, Google Sheets,
        уведомление). Их ошибки логируются и не влияют на результат.

        Raises:
            ValidationError: некорректные данные
            ConflictError: email уже зарегистрирован
        """
        errors = self.validate(data)
        if errors:
            raise ValidationError(errors)

        email = _clean(data["email"])
        if await self._email_taken(email):
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="email")

        tester = Tester(
            name=_clean(data["name"]),
            email=email,
            nickname=_clean(data.get("nickname")) or None,
            telegram=_clean(data.get("telegram")) or None,
            device_type=_clean(data["deviceType"]),
            os=_clean(data["os"]),
            os_version=_clean(data.get("osVersion")) or None,
            status=TesterStatus.ACTIVE.value,
            bugs_count=0,
            rating=0,
        )
        self.session.add(tester)
        await self._commit_or_conflict()

        result = tester.to_dict()
        logger.info(f"Registered tester {result['id']} ({result['email']})")

        await best_effort(
            ActivityHistoryService(self.session).record_registration(result),
            f"Failed to record registration activity for tester {result['id']}",
            self.session,
        )
        await best_effort(
            self.sheets.append_tester(result),
            f"Failed to sync tester {result['id']} to Google Sheets",
        )
        await best_effort(
            NotificationService(self.session).create_new_tester_notification(result),
            f"Failed to create new tester notification for tester {result['id']}",
            self.session,
        )
        return result

    # === Чтение ===

    async def get_all_testers(
        self,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        device_type: Optional[str] = None,
        os: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "registration_date",
        sort_order: str = "DESC",
    ) -> Dict[str, Any]:
        """Список тестеров с фильтрами, сортировкой и пагинацией."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Tester.name.ilike(pattern), Tester.email.ilike(pattern)))
        if device_type:
            conditions.append(Tester.device_type == device_type)
        if os:
            conditions.append(Tester.os == os)
        if status:
            conditions.append(Tester.status == status)

        total = (await self.session.execute(select(func.count(Tester.id)).where(*conditions))).scalar() or 0

        column = SORT_FIELDS.get(sort_by, Tester.registration_date)
        ordering = column.asc() if str(sort_order).upper() == "ASC" else column.desc()

        query = (
            select(Tester)
            .where(*conditions)
            .order_by(ordering, Tester.id.asc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        testers = (await self.session.execute(query)).scalars().all()

        return {
            "testers": [tester.to_dict() for tester in testers],
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": math.ceil(total / page_size) if page_size else 0,
        }

    async def get_tester_by_id(self, tester_id: int) -> Dict[str, Any]:
        cached_tester = await CacheService.get_tester(tester_id)
        if cached_tester:
            return cached_tester

        tester = await self._get_or_404(tester_id)
        result = tester.to_dict()
        await CacheService.set_tester(tester_id, result)
        return result

    async def get_tester_by_email(self, email: str) -> Dict[str, Any]:
        result = await self.session.execute(select(Tester).where(Tester.email == email))
        tester = result.scalar_one_or_none()
        if not tester:
            raise NotFoundError("Тестер не найден", resource="tester", id=email)
        return tester.to_dict()

    async def get_tester_bugs(self, tester_id: int) -> Dict[str, Any]:
        """Баги тестера, новые первыми."""
        await self._get_or_404(tester_id)
        query = select(Bug).where(Bug.tester_id == tester_id).order_by(Bug.created_at.desc(), Bug.id.desc())
        bugs = (await self.session.execute(query)).scalars().all()
        return {"data": [bug.to_dict() for bug in bugs], "count": len(bugs)}

    # === Изменение ===

    async def update_tester(self, tester_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Обновление разрешенных полей тестера."""
        values = {UPDATABLE_FIELDS[key]: _clean(value) for key, value in updates.items() if key in UPDATABLE_FIELDS}
        if not values:
            raise ValidationError.single("updates", "Нет допустимых полей для обновления")

        errors = []
        if "email" in values and not (values["email"] and EMAIL_PATTERN.match(values["email"])):
            errors.append({"field": "email", "message": "Неверный формат email"})
        if "status" in values and values["status"] not in TESTER_STATUSES:
            errors.append({
                "field": "status",
                "message": f"Статус должен быть одним из: {', '.join(TESTER_STATUSES)}",
            })
        for required in ("name", "device_type", "os"):
            if required in values and not values[required]:
                field = next(k for k, v in UPDATABLE_FIELDS.items() if v == required)
                errors.append({"field": field, "message": "Поле не может быть пустым"})
        if errors:
            raise ValidationError(errors)

        tester = await self._get_or_404(tester_id)
        if "email" in values and await self._email_taken(values["email"], exclude_id=tester_id):
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="email")

        old_status = tester.status
        for attr, value in values.items():
            setattr(tester, attr, value)
        tester.updated_at = utcnow()
        await self._commit_or_conflict()
        await CacheService.invalidate_tester(tester_id)

        result = tester.to_dict()
        if "status" in values and old_status != result["status"]:
            await best_effort(
                ActivityHistoryService(self.session).record_status_changed(tester_id, old_status, result["status"]),
                f"Failed to record status change for tester {tester_id}",
                self.session,
            )
        await best_effort(
            self.sheets.update_tester(tester_id, result),
            f"Failed to update tester {tester_id} in Google Sheets",
        )
        return result

    async def update_tester_status(self, tester_id: int, status: str) -> Dict[str, Any]:
        """Смена статуса. Событие status_changed пишется только при реальном изменении."""
        if status not in TESTER_STATUSES:
            raise ValidationError.single(
                "status",
                f"Статус должен быть одним из: {', '.join(TESTER_STATUSES)}",
                summary="Неверное значение статуса",
            )

        tester = await self._get_or_404(tester_id)
        old_status = tester.status
        tester.status = status
        tester.updated_at = utcnow()
        await self.session.commit()
        await CacheService.invalidate_tester(tester_id)

        result = tester.to_dict()
        if old_status != status:
            await best_effort(
                ActivityHistoryService(self.session).record_status_changed(tester_id, old_status, status),
                f"Failed to record status change for tester {tester_id}",
                self.session,
            )
            await best_effort(
                self.sheets.update_tester(tester_id, {"status": status}),
                f"Failed to update tester {tester_id} status in Google Sheets",
            )
        return result

    async def update_last_activity(self, tester_id: int) -> Dict[str, Any]:
        tester = await self._get_or_404(tester_id)
        tester.last_activity_date = utcnow()
        await self.session.commit()
        await CacheService.invalidate_tester(tester_id)
        return tester.to_dict()

    async def delete_tester(self, tester_id: int) -> None:
        """Удаление тестера вместе с багами, комментариями, скриншотами и журналом."""
        tester = await self._get_or_404(tester_id)

        paths_query = (
            select(Screenshot.file_path)
            .join(Bug, Bug.id == Screenshot.bug_id)
            .where(Bug.tester_id == tester_id)
        )
        file_paths = list((await self.session.execute(paths_query)).scalars().all())
        bug_ids = list((await self.session.execute(select(Bug.id).where(Bug.tester_id == tester_id))).scalars().all())

        await self.session.delete(tester)
        await self.session.commit()
        await CacheService.invalidate_tester(tester_id)
        await CacheService.invalidate_dashboard_stats()
        for bug_id in bug_ids:
            await CacheService.invalidate_bug(bug_id)

        for path in file_paths:
            ScreenshotService.remove_file(path)

        logger.info(f"Deleted tester {tester_id} ({len(file_paths)} screenshot files removed)")

    # === Google Sheets ===

    async def load_testers_from_google_sheets(self) -> Dict[str, Any]:
        """Чтение тестеров из таблицы без записи в БД."""
        testers = await self.sheets.fetch_testers()
        for tester in testers:
            tester["registrationDate"] = tester["registrationDate"].isoformat()
        return {"testers": testers, "count": len(testers)}

    async def sync_testers_from_google_sheets(self) -> Dict[str, Any]:
        """Перенос тестеров из таблицы в БД с сопоставлением по email."""
        sheet_testers = await self.sheets.fetch_testers()
        summary = {"processed": 0, "created": 0, "updated": 0, "errors": []}

        for row in sheet_testers:
            summary["processed"] += 1
            email = row.get("email")
            if not email or not EMAIL_PATTERN.match(email):
                summary["errors"].append({"row": row["googleSheetsRowId"], "error": "Неверный или пустой email"})
                continue

            status = row["status"] if row["status"] in TESTER_STATUSES else TesterStatus.ACTIVE.value
            existing = (await self.session.execute(select(Tester).where(Tester.email == email))).scalar_one_or_none()
            try:
                if existing:
                    existing.name = row["name"]
                    existing.nickname = row["nickname"] or None
                    existing.telegram = row["telegram"] or None
                    existing.device_type = row["deviceType"]
                    existing.os = row["os"]
                    existing.os_version = row["osVersion"] or None
                    existing.status = status
                    existing.updated_at = utcnow()
                    await self.session.commit()
                    await CacheService.invalidate_tester(existing.id)
                    summary["updated"] += 1
                else:
                    self.session.add(Tester(
                        name=row["name"],
                        email=email,
                        nickname=row["nickname"] or None,
                        telegram=row["telegram"] or None,
                        device_type=row["deviceType"],
                        os=row["os"],
                        os_version=row["osVersion"] or None,
                        status=status,
                        registration_date=row["registrationDate"],
                    ))
                    await self.session.commit()
                    summary["created"] += 1
            except IntegrityError as e:
                await self.session.rollback()
                summary["errors"].append({"row": row["googleSheetsRowId"], "error": str(e.orig)})

        logger.info(
            f"Google Sheets sync: processed={summary['processed']}, "
            f"created={summary['created']}, updated={summary['updated']}, errors={len(summary['errors'])}"
        )
        return summary

    async def check_google_sheets_connection(self) -> Dict[str, Any]:
        status = self.sheets.get_status()
        connected = await self.sheets.check_connection() if status["configured"] else False
        return {**status, "connected": connected}

    async def retry_google_sheets_operations(self) -> Dict[str, int]:
        return await self.sheets.retry_failed_operations()

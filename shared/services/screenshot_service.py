"""
Сервис скриншотов багов.

Файлы хранятся в {upload_dir}/screenshots, в БД - метаданные.
На один баг допускается не больше max_screenshots_per_bug скриншотов.
"""

import mimetypes
import os
import random
import re
import time
from pathlib import Path
from typing import Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.config.settings import settings
from core.exceptions import ValidationError, NotFoundError, LimitExceededError
from core.logging.logger import logger
from domain.entities.bug import Bug
from domain.entities.screenshot import Screenshot, ALLOWED_MIME_TYPES

UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.-]+")


class ScreenshotService:
    """Сервис для работы со скриншотами."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.max_per_bug = settings.max_screenshots_per_bug
        self.max_file_size = settings.screenshot_max_bytes
        self.storage_dir = Path(settings.screenshots_dir)

    def validate(self, data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Проверка метаданных файла. Возвращает все ошибки сразу."""
        errors = []

        if not data.get("bugId"):
            errors.append({"field": "bugId", "message": "ID бага обязательно"})
        if not data.get("filename"):
            errors.append({"field": "filename", "message": "Имя файла обязательно"})
        if not data.get("filePath"):
            errors.append({"field": "filePath", "message": "Путь к файлу обязателен"})

        file_size = data.get("fileSize")
        if not file_size or file_size <= 0:
            errors.append({"field": "fileSize", "message": "Размер файла обязателен"})
        elif file_size > self.max_file_size:
            max_mb = self.max_file_size // (1024 * 1024)
            errors.append({"field": "fileSize", "message": f"Размер файла не может превышать {max_mb} МБ"})

        mime_type = data.get("mimeType")
        if not mime_type:
            errors.append({"field": "mimeType", "message": "Тип файла обязателен"})
        elif mime_type not in ALLOWED_MIME_TYPES:
            errors.append({
                "field": "mimeType",
                "message": f"Тип файла должен быть одним из: {', '.join(ALLOWED_MIME_TYPES)}",
            })

        return errors

    async def _count(self, bug_id: int) -> int:
        query = select(func.count(Screenshot.id)).where(Screenshot.bug_id == bug_id)
        return (await self.session.execute(query)).scalar() or 0

    async def _ensure_bug(self, bug_id: int, lock: bool = False) -> Bug:
        query = select(Bug).where(Bug.id == bug_id)
        if lock:
            # Блокировка строки бага сериализует параллельные загрузки (на PostgreSQL)
            query = query.with_for_update()
        bug = (await self.session.execute(query)).scalar_one_or_none()
        if not bug:
            raise NotFoundError("Баг не найден", resource="bug", id=bug_id)
        return bug

    async def check_screenshot_limit(self, bug_id: int) -> Dict[str, Any]:
        count = await self._count(bug_id)
        return {
            "count": count,
            "limit": self.max_per_bug,
            "remaining": max(0, self.max_per_bug - count),
            "canUpload": count < self.max_per_bug,
        }

    def _build_storage_path(self, original_name: str, mime_type: str) -> Path:
        """{timestamp}-{random}-{name}{ext} в каталоге скриншотов."""
        base = Path(original_name or "screenshot").name
        stem = UNSAFE_FILENAME_CHARS.sub("_", Path(base).stem) or "screenshot"
        ext = Path(base).suffix.lower() or mimetypes.guess_extension(mime_type or "") or ""
        unique = f"{int(time.time() * 1000)}-{random.randint(0, 999_999_999)}"
        return self.storage_dir / f"{unique}-{stem}{ext}"

    async def upload_screenshot(
        self,
        bug_id: int,
        original_name: str,
        content: bytes,
        mime_type: str,
    ) -> Dict[str, Any]:
        """
        Сохранение скриншота бага.

        Raises:
            NotFoundError: баг не найден
            LimitExceededError: у бага уже максимальное число скриншотов
            ValidationError: файл не прошел проверку
        """
        await self._ensure_bug(bug_id, lock=True)

        count = await self._count(bug_id)
        if count >= self.max_per_bug:
            await self.session.rollback()
            raise LimitExceededError(
                f"Достигнуто максимальное количество скриншотов для этого бага ({self.max_per_bug})",
                details=[{"field": "bugId", "message": f"Максимум {self.max_per_bug} скриншотов на баг"}],
                limit=self.max_per_bug,
                current=count,
            )

        file_path = self._build_storage_path(original_name, mime_type)
        errors = self.validate({
            "bugId": bug_id,
            "filename": original_name,
            "filePath": str(file_path),
            "fileSize": len(content),
            "mimeType": mime_type,
        })
        if errors:
            await self.session.rollback()
            raise ValidationError(errors)

        self.storage_dir.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(content)

        screenshot = Screenshot(
            bug_id=bug_id,
            filename=original_name,
            file_path=str(file_path),
            file_size=len(content),
            mime_type=mime_type,
        )
        self.session.add(screenshot)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            self.remove_file(str(file_path))
            raise

        logger.info(f"Uploaded screenshot {screenshot.id} for bug {bug_id} ({len(content)} bytes)")
        return screenshot.to_dict()

    async def get_screenshots_by_bug_id(self, bug_id: int) -> Dict[str, Any]:
        """Скриншоты бага, новые первыми, с остатком лимита."""
        await self._ensure_bug(bug_id)
        query = (
            select(Screenshot)
            .where(Screenshot.bug_id == bug_id)
            .order_by(Screenshot.uploaded_at.desc(), Screenshot.id.desc())
        )
        screenshots = (await self.session.execute(query)).scalars().all()
        count = len(screenshots)
        return {
            "data": [s.to_dict() for s in screenshots],
            "count": count,
            "limit": self.max_per_bug,
            "remaining": max(0, self.max_per_bug - count),
        }

    async def delete_screenshot(self, bug_id: int, screenshot_id: int) -> None:
        """Удаление записи, затем файла. Ошибка удаления файла только логируется."""
        screenshot = await self.session.get(Screenshot, screenshot_id)
        if not screenshot or screenshot.bug_id != bug_id:
            raise NotFoundError("Скриншот не найден", resource="screenshot", id=screenshot_id)

        file_path = screenshot.file_path
        await self.session.delete(screenshot)
        await self.session.commit()
        self.remove_file(file_path)

    async def delete_by_bug_id(self, bug_id: int) -> int:
        """Удаление всех скриншотов бага вместе с файлами."""
        screenshots = (
            await self.session.execute(select(Screenshot).where(Screenshot.bug_id == bug_id))
        ).scalars().all()
        paths = [s.file_path for s in screenshots]
        for screenshot in screenshots:
            await self.session.delete(screenshot)
        await self.session.commit()

        for path in paths:
            self.remove_file(path)
        return len(paths)

    async def get_screenshot_statistics(self, bug_id: int) -> Dict[str, Any]:
        await self._ensure_bug(bug_id)
        query = select(func.count(Screenshot.id), func.coalesce(func.sum(Screenshot.file_size), 0)).where(
            Screenshot.bug_id == bug_id
        )
        count, total_size = (await self.session.execute(query)).one()
        return {
            "count": count,
            "totalSize": int(total_size),
            "totalSizeMB": round(int(total_size) / (1024 * 1024), 2),
            "limit": self.max_per_bug,
            "remaining": max(0, self.max_per_bug - count),
        }

    @staticmethod
    def remove_file(file_path: str) -> bool:
        """Удаляет файл скриншота с диска."""
        try:
            os.remove(file_path)
            return True
        except FileNotFoundError:
            logger.warning(f"Screenshot file already missing: {file_path}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete screenshot file {file_path}: {e}")
            return False

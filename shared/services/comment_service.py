"""Сервис комментариев к багам."""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache.cache_service import CacheService
from core.config.settings import settings
from core.exceptions import ValidationError, NotFoundError, AuthorizationError, EditWindowExpiredError
from core.logging.logger import logger
from domain.entities.base import utcnow, as_utc
from domain.entities.bug import Bug
from domain.entities.comment import Comment
from shared.services.activity_history_service import _is_numeric

CONTENT_MAX_LENGTH = 5000
AUTHOR_NAME_MAX_LENGTH = 255


class CommentService:
    """Сервис для работы с комментариями.

    Редактировать и удалять комментарий может только его автор.
    Редактирование разрешено в течение окна после создания, удаление - всегда.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.edit_window_minutes = settings.comment_edit_window_minutes

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[Dict[str, str]]:
        errors = []

        content = data.get("content")
        if not content or not str(content).strip():
            errors.append({"field": "content", "message": "Текст комментария обязателен"})
        elif len(content) > CONTENT_MAX_LENGTH:
            errors.append({
                "field": "content",
                "message": f"Комментарий не может быть длиннее {CONTENT_MAX_LENGTH} символов",
            })

        author_id = data.get("authorId")
        if author_id is None or author_id == "":
            errors.append({"field": "authorId", "message": "ID автора обязательно"})
        elif not _is_numeric(author_id):
            errors.append({"field": "authorId", "message": "ID автора должен быть числом"})

        author_name = data.get("authorName")
        if not author_name or not str(author_name).strip():
            errors.append({"field": "authorName", "message": "Имя автора обязательно"})
        elif len(author_name) > AUTHOR_NAME_MAX_LENGTH:
            errors.append({
                "field": "authorName",
                "message": f"Имя автора не может быть длиннее {AUTHOR_NAME_MAX_LENGTH} символов",
            })

        return errors

    async def _ensure_bug(self, bug_id: int) -> Bug:
        bug = await self.session.get(Bug, bug_id)
        if not bug:
            raise NotFoundError("Баг не найден", resource="bug", id=bug_id)
        return bug

    async def _get_comment(self, bug_id: int, comment_id: int) -> Comment:
        comment = await self.session.get(Comment, comment_id)
        if not comment or comment.bug_id != bug_id:
            raise NotFoundError("Комментарий не найден", resource="comment", id=comment_id)
        return comment

    @staticmethod
    def _check_author(comment: Comment, author_id: int, action: str) -> None:
        if comment.author_id != int(author_id):
            raise AuthorizationError(f"Только автор может {action} комментарий")

    async def create_comment(self, bug_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Создание комментария.

        Вставка комментария и обновление updated_at бага выполняются
        в одной транзакции.

        Raises:
            ValidationError: некорректные данные
            NotFoundError: баг не найден
        """
        errors = self.validate(data)
        if errors:
            raise ValidationError(errors)

        bug = await self._ensure_bug(bug_id)

        comment = Comment(
            bug_id=bug_id,
            author_id=int(data["authorId"]),
            author_name=data["authorName"].strip(),
            content=data["content"],
            is_edited=False,
        )
        try:
            self.session.add(comment)
            bug.updated_at = utcnow()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await CacheService.invalidate_bug(bug_id)
        logger.info(f"Created comment {comment.id} on bug {bug_id} by author {comment.author_id}")
        return comment.to_dict()

    async def get_comments_by_bug_id(self, bug_id: int) -> Dict[str, Any]:
        """Комментарии бага в хронологическом порядке."""
        await self._ensure_bug(bug_id)
        query = (
            select(Comment)
            .where(Comment.bug_id == bug_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        comments = (await self.session.execute(query)).scalars().all()
        return {"data": [c.to_dict() for c in comments], "count": len(comments)}

    def can_edit(self, comment: Comment, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Можно ли еще редактировать комментарий. Считается при каждом вызове."""
        now = as_utc(now) if now else utcnow()
        elapsed = now - as_utc(comment.created_at)
        return {
            "canEdit": elapsed <= timedelta(minutes=self.edit_window_minutes),
            "minutesElapsed": int(elapsed.total_seconds() // 60),
            "timeLimit": f"{self.edit_window_minutes} minutes",
        }

    async def update_comment(
        self,
        bug_id: int,
        comment_id: int,
        author_id: int,
        content: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Редактирование комментария автором.

        Raises:
            NotFoundError: комментарий не найден или относится к другому багу
            AuthorizationError: редактирует не автор
            EditWindowExpiredError: окно редактирования истекло
            ValidationError: пустой или слишком длинный текст
        """
        if not content or not str(content).strip():
            raise ValidationError.single("content", "Текст комментария обязателен")
        if len(content) > CONTENT_MAX_LENGTH:
            raise ValidationError.single(
                "content", f"Комментарий не может быть длиннее {CONTENT_MAX_LENGTH} символов"
            )

        comment = await self._get_comment(bug_id, comment_id)
        self._check_author(comment, author_id, "редактировать")

        if not self.can_edit(comment, now)["canEdit"]:
            raise EditWindowExpiredError(
                f"Комментарий можно редактировать только в течение {self.edit_window_minutes} минут после создания"
            )

        comment.content = content
        comment.is_edited = True
        comment.updated_at = utcnow()
        await self.session.commit()

        return comment.to_dict()

    async def delete_comment(self, bug_id: int, comment_id: int, author_id: int) -> None:
        """Удаление комментария автором. Ограничения по времени нет."""
        comment = await self._get_comment(bug_id, comment_id)
        self._check_author(comment, author_id, "удалить")

        await self.session.delete(comment)
        await self.session.commit()
        logger.info(f"Deleted comment {comment_id} on bug {bug_id}")

    async def get_comment_count(self, bug_id: int) -> int:
        query = select(func.count(Comment.id)).where(Comment.bug_id == bug_id)
        return (await self.session.execute(query)).scalar() or 0

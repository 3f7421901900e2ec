"""Unit тесты для CommentService"""

import pytest
import pytest_asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

from core.exceptions import AuthorizationError, EditWindowExpiredError, NotFoundError, ValidationError
from domain.entities import Bug, Comment
from domain.entities.base import as_utc
from shared.services.bug_service import BugService
from shared.services.comment_service import CommentService


@pytest_asyncio.fixture
async def bug(make_tester, make_bug):
    tester = await make_tester()
    return await make_bug(tester.id)


class TestCommentCreation:

    def test_validate(self):
        errors = CommentService.validate({"content": "   ", "authorId": "x"})
        assert [e["field"] for e in errors] == ["content", "authorId", "authorName"]

    @pytest.mark.asyncio
    async def test_create_bumps_bug_updated_at(self, db_session, bug):
        before = as_utc(bug.updated_at)

        comment = await CommentService(db_session).create_comment(bug.id, {
            "content": "Воспроизвел",
            "authorId": 1,
            "authorName": "Admin",
        })

        assert comment["isEdited"] is False
        stored = await db_session.get(Bug, bug.id)
        assert as_utc(stored.updated_at) >= before

    @pytest.mark.asyncio
    async def test_create_evicts_cached_bug(self, db_session, bug, fake_cache):
        bug_id = bug.id
        bugs = BugService(db_session)
        await bugs.get_bug_by_id(bug_id)
        assert f"bug:{bug_id}" in fake_cache.store

        await CommentService(db_session).create_comment(bug_id, {
            "content": "Воспроизвел",
            "authorId": 1,
            "authorName": "Admin",
        })

        assert f"bug:{bug_id}" not in fake_cache.store
        fresh = await bugs.get_bug_by_id(bug_id)
        stored = await db_session.get(Bug, bug_id)
        assert fresh["updatedAt"] == stored.to_dict()["updatedAt"]

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back_both(self, db_session, bug, monkeypatch):
        bug_id = bug.id
        service = CommentService(db_session)
        monkeypatch.setattr(db_session, "commit", AsyncMock(side_effect=RuntimeError("disk full")))

        with pytest.raises(RuntimeError):
            await service.create_comment(bug_id, {"content": "x", "authorId": 1, "authorName": "Admin"})

        monkeypatch.undo()
        assert await service.get_comment_count(bug_id) == 0

    @pytest.mark.asyncio
    async def test_missing_bug(self, db_session):
        with pytest.raises(NotFoundError):
            await CommentService(db_session).create_comment(404, {
                "content": "x", "authorId": 1, "authorName": "Admin",
            })


class TestCommentEditWindow:

    @pytest.mark.asyncio
    async def test_edit_at_14_59(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id, author_id=1)
        now = as_utc(comment.created_at) + timedelta(minutes=14, seconds=59)

        result = await CommentService(db_session).update_comment(bug.id, comment.id, 1, "Исправлено", now=now)

        assert result["content"] == "Исправлено"
        assert result["isEdited"] is True

    @pytest.mark.asyncio
    async def test_edit_at_15_01_expired(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id, author_id=1)
        now = as_utc(comment.created_at) + timedelta(minutes=15, seconds=1)

        with pytest.raises(EditWindowExpiredError) as exc_info:
            await CommentService(db_session).update_comment(bug.id, comment.id, 1, "Поздно", now=now)

        assert exc_info.value.code == "EDIT_WINDOW_EXPIRED"
        assert exc_info.value.message == "Комментарий можно редактировать только в течение 15 минут после создания"

    @pytest.mark.asyncio
    async def test_can_edit_report(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id)
        now = as_utc(comment.created_at) + timedelta(minutes=20)

        status = CommentService(db_session).can_edit(comment, now)

        assert status == {"canEdit": False, "minutesElapsed": 20, "timeLimit": "15 minutes"}

    @pytest.mark.asyncio
    async def test_wrong_author(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id, author_id=1)
        with pytest.raises(AuthorizationError) as exc_info:
            await CommentService(db_session).update_comment(bug.id, comment.id, 2, "Чужой")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_empty_content(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id)
        with pytest.raises(ValidationError):
            await CommentService(db_session).update_comment(bug.id, comment.id, 1, "  ")

    @pytest.mark.asyncio
    async def test_comment_of_other_bug(self, db_session, bug, make_bug, make_comment):
        other = await make_bug(bug.tester_id)
        comment = await make_comment(other.id)
        with pytest.raises(NotFoundError) as exc_info:
            await CommentService(db_session).update_comment(bug.id, comment.id, 1, "x")
        assert exc_info.value.message == "Комментарий не найден"


class TestCommentDeletion:

    @pytest.mark.asyncio
    async def test_author_deletes_any_time(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id, author_id=3, created_at=as_utc(bug.created_at) - timedelta(days=2))
        service = CommentService(db_session)

        await service.delete_comment(bug.id, comment.id, 3)

        assert await db_session.get(Comment, comment.id) is None

    @pytest.mark.asyncio
    async def test_other_author_forbidden(self, db_session, bug, make_comment):
        comment = await make_comment(bug.id, author_id=3)
        with pytest.raises(AuthorizationError):
            await CommentService(db_session).delete_comment(bug.id, comment.id, 4)

    @pytest.mark.asyncio
    async def test_listing_chronological(self, db_session, bug, make_comment):
        now = as_utc(bug.created_at)
        await make_comment(bug.id, content="второй", created_at=now + timedelta(minutes=2))
        await make_comment(bug.id, content="первый", created_at=now + timedelta(minutes=1))

        result = await CommentService(db_session).get_comments_by_bug_id(bug.id)

        assert [c["content"] for c in result["data"]] == ["первый", "второй"]
        assert result["count"] == 2

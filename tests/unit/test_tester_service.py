"""Unit тесты для TesterService"""

import pytest
from sqlalchemy import select

from core.exceptions import ConflictError, NotFoundError, ValidationError
from domain.entities import ActivityHistory, Bug, Notification, Tester
from shared.services.bug_service import BugService
from shared.services.tester_service import TesterService


class TestTesterRegistration:
    """Регистрация тестера и побочные эффекты."""

    def test_validate_reports_every_field(self):
        errors = TesterService.validate({"email": "not-an-email"})
        assert [e["field"] for e in errors] == ["name", "email", "deviceType", "os"]
        assert errors[1]["message"] == "Неверный формат email"

    @pytest.mark.asyncio
    async def test_register_creates_active_tester(self, db_session, mock_sheets, tester_data):
        tester = await TesterService(db_session, mock_sheets).register_tester(tester_data)

        assert tester["id"] is not None
        assert tester["status"] == "active"
        assert tester["rating"] == 0
        assert tester["bugsCount"] == 0
        assert tester["registrationDate"] is not None

    @pytest.mark.asyncio
    async def test_register_side_effects(self, db_session, mock_sheets, tester_data):
        tester = await TesterService(db_session, mock_sheets).register_tester(tester_data)

        activity = (await db_session.execute(select(ActivityHistory))).scalars().all()
        notifications = (await db_session.execute(select(Notification))).scalars().all()

        assert [a.event_type for a in activity] == ["registration"]
        assert [n.type for n in notifications] == ["new_tester"]
        assert notifications[0].meta["testerId"] == tester["id"]
        mock_sheets.append_tester.assert_awaited_once()
        assert mock_sheets.append_tester.await_args.args[0]["email"] == "ivan@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflict(self, db_session, mock_sheets, tester_data):
        service = TesterService(db_session, mock_sheets)
        await service.register_tester(tester_data)

        with pytest.raises(ConflictError) as exc_info:
            await service.register_tester({**tester_data, "name": "Другой"})

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == [{"field": "email", "message": "Email already registered"}]

    @pytest.mark.asyncio
    async def test_sheets_failure_does_not_fail_registration(self, db_session, failing_sheets, tester_data):
        tester = await TesterService(db_session, failing_sheets).register_tester(tester_data)

        stored = await db_session.get(Tester, tester["id"])
        assert stored is not None
        failing_sheets.append_tester.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_data(self, db_session, mock_sheets):
        with pytest.raises(ValidationError) as exc_info:
            await TesterService(db_session, mock_sheets).register_tester({"name": "  "})
        assert exc_info.value.details[0]["field"] == "name"
        mock_sheets.append_tester.assert_not_awaited()


class TestTesterListing:

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, mock_sheets, make_tester):
        for _ in range(5):
            await make_tester()

        result = await TesterService(db_session, mock_sheets).get_all_testers(page=2, page_size=2)

        assert result["total"] == 5
        assert result["totalPages"] == 3
        assert result["page"] == 2
        assert len(result["testers"]) == 2

    @pytest.mark.asyncio
    async def test_search_and_filters(self, db_session, mock_sheets, make_tester):
        await make_tester(name="Анна", email="anna@qa.io", os="Android")
        await make_tester(name="Борис", email="boris@qa.io", os="iOS")
        await make_tester(name="Вера", email="vera@qa.io", os="Android", status="inactive")
        service = TesterService(db_session, mock_sheets)

        by_email = await service.get_all_testers(search="boris")
        android_active = await service.get_all_testers(os="Android", status="active")

        assert [t["name"] for t in by_email["testers"]] == ["Борис"]
        assert [t["name"] for t in android_active["testers"]] == ["Анна"]

    @pytest.mark.asyncio
    async def test_sort_by_rating(self, db_session, mock_sheets, make_tester):
        await make_tester(name="low", rating=1)
        await make_tester(name="high", rating=9)

        result = await TesterService(db_session, mock_sheets).get_all_testers(sort_by="rating", sort_order="ASC")

        assert [t["name"] for t in result["testers"]] == ["low", "high"]

    @pytest.mark.asyncio
    async def test_missing_tester(self, db_session, mock_sheets):
        with pytest.raises(NotFoundError) as exc_info:
            await TesterService(db_session, mock_sheets).get_tester_by_id(404)
        assert exc_info.value.message == "Тестер не найден"


class TestTesterUpdates:

    @pytest.mark.asyncio
    async def test_status_change_recorded_once(self, db_session, mock_sheets, make_tester):
        tester = await make_tester()
        service = TesterService(db_session, mock_sheets)

        await service.update_tester_status(tester.id, "suspended")
        await service.update_tester_status(tester.id, "suspended")

        activity = (await db_session.execute(select(ActivityHistory))).scalars().all()
        assert len(activity) == 1
        assert activity[0].meta["oldStatus"] == "active"
        assert activity[0].meta["newStatus"] == "suspended"
        mock_sheets.update_tester.assert_awaited_once_with(tester.id, {"status": "suspended"})

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session, mock_sheets, make_tester):
        tester = await make_tester()
        with pytest.raises(ValidationError):
            await TesterService(db_session, mock_sheets).update_tester_status(tester.id, "banned")

    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, db_session, mock_sheets, make_tester):
        tester = await make_tester()

        result = await TesterService(db_session, mock_sheets).update_tester(
            tester.id,
            {"name": "Новое имя", "rating": 100},
        )

        assert result["name"] == "Новое имя"
        assert result["rating"] == 0

    @pytest.mark.asyncio
    async def test_update_without_allowed_fields(self, db_session, mock_sheets, make_tester):
        tester = await make_tester()
        with pytest.raises(ValidationError):
            await TesterService(db_session, mock_sheets).update_tester(tester.id, {"rating": 5})

    @pytest.mark.asyncio
    async def test_update_email_conflict(self, db_session, mock_sheets, make_tester):
        await make_tester(email="taken@example.com")
        tester = await make_tester()
        with pytest.raises(ConflictError):
            await TesterService(db_session, mock_sheets).update_tester(tester.id, {"email": "taken@example.com"})

    @pytest.mark.asyncio
    async def test_sheets_update_failure_is_swallowed(self, db_session, failing_sheets, make_tester):
        tester = await make_tester()

        result = await TesterService(db_session, failing_sheets).update_tester(tester.id, {"os": "HarmonyOS"})

        assert result["os"] == "HarmonyOS"


class TestTesterDeletion:

    @pytest.mark.asyncio
    async def test_delete_cascades_bugs(self, db_session, mock_sheets, make_tester, make_bug):
        tester = await make_tester()
        await make_bug(tester.id)
        tester_id = tester.id
        service = TesterService(db_session, mock_sheets)

        await service.delete_tester(tester_id)

        db_session.expunge_all()
        remaining = (await db_session.execute(select(Bug).where(Bug.tester_id == tester_id))).scalars().all()
        assert remaining == []
        with pytest.raises(NotFoundError):
            await service.get_tester_by_id(tester_id)

    @pytest.mark.asyncio
    async def test_delete_evicts_cached_bugs(self, db_session, mock_sheets, make_tester, make_bug, fake_cache):
        tester = await make_tester()
        tester_id = tester.id
        bug_ids = [(await make_bug(tester_id)).id, (await make_bug(tester_id, "high")).id]
        bugs = BugService(db_session)
        for bug_id in bug_ids:
            await bugs.get_bug_by_id(bug_id)

        await TesterService(db_session, mock_sheets).delete_tester(tester_id)

        assert not any(key.startswith("bug:") for key in fake_cache.store)
        db_session.expunge_all()
        for bug_id in bug_ids:
            with pytest.raises(NotFoundError):
                await bugs.get_bug_by_id(bug_id)


class TestTesterLookup:

    @pytest.mark.asyncio
    async def test_get_by_email(self, db_session, mock_sheets, make_tester):
        tester = await make_tester(email="olga@example.com", name="Ольга")

        found = await TesterService(db_session, mock_sheets).get_tester_by_email("olga@example.com")

        assert found["id"] == tester.id
        assert found["name"] == "Ольга"

    @pytest.mark.asyncio
    async def test_get_by_email_missing(self, db_session, mock_sheets):
        with pytest.raises(NotFoundError) as exc_info:
            await TesterService(db_session, mock_sheets).get_tester_by_email("nobody@example.com")
        assert exc_info.value.message == "Тестер не найден"

    @pytest.mark.asyncio
    async def test_update_last_activity(self, db_session, mock_sheets, make_tester, fake_cache):
        tester = await make_tester()
        service = TesterService(db_session, mock_sheets)
        before = await service.get_tester_by_id(tester.id)
        assert before["lastActivityDate"] is None

        result = await service.update_last_activity(tester.id)

        assert result["lastActivityDate"] is not None
        assert f"tester:{tester.id}" not in fake_cache.store
        assert (await service.get_tester_by_id(tester.id))["lastActivityDate"] == result["lastActivityDate"]

    @pytest.mark.asyncio
    async def test_update_last_activity_missing(self, db_session, mock_sheets):
        with pytest.raises(NotFoundError):
            await TesterService(db_session, mock_sheets).update_last_activity(404)


class TestGoogleSheetsSync:

    @pytest.mark.asyncio
    async def test_sync_creates_and_updates(self, db_session, mock_sheets, make_tester):
        from datetime import datetime, timezone

        await make_tester(name="Старое имя", email="old@example.com")
        row = {
            "id": "1", "nickname": "", "telegram": "", "deviceType": "mobile", "os": "Android",
            "osVersion": "", "registrationDate": datetime(2024, 1, 1, tzinfo=timezone.utc), "status": "active",
        }
        mock_sheets.fetch_testers.return_value = [
            {**row, "name": "Обновленный", "email": "old@example.com", "googleSheetsRowId": 2},
            {**row, "name": "Новый", "email": "new@example.com", "googleSheetsRowId": 3},
            {**row, "name": "Без почты", "email": "", "googleSheetsRowId": 4},
        ]

        summary = await TesterService(db_session, mock_sheets).sync_testers_from_google_sheets()

        assert summary["processed"] == 3
        assert summary["created"] == 1
        assert summary["updated"] == 1
        assert summary["errors"] == [{"row": 4, "error": "Неверный или пустой email"}]
        names = (await db_session.execute(select(Tester.name).order_by(Tester.id))).scalars().all()
        assert names == ["Обновленный", "Новый"]

    @pytest.mark.asyncio
    async def test_connection_status(self, db_session, mock_sheets):
        status = await TesterService(db_session, mock_sheets).check_google_sheets_connection()
        assert status["connected"] is True
        assert status["configured"] is True

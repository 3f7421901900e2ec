"""Интеграционные тесты API уведомлений и журнала активности"""

import pytest

from shared.services.notification_service import NotificationService


async def seed(session, count):
    service = NotificationService(session)
    for index in range(count):
        await service.create_notification({"type": "info", "title": f"n{index}", "message": "m"})


@pytest.mark.asyncio
async def test_list_and_counts(client, db_session):
    await seed(db_session, 3)

    listing = await client.get("/api/notifications", params={"limit": 2})
    unread = await client.get("/api/notifications/count/unread")

    data = listing.json()["data"]
    assert len(data["notifications"]) == 2
    assert data["total"] == 3
    assert unread.json()["data"]["count"] == 3


@pytest.mark.asyncio
async def test_mark_read_and_delete(client, db_session):
    await seed(db_session, 2)

    marked = await client.patch("/api/notifications/1/read")
    all_marked = await client.patch("/api/notifications/read-all")
    deleted = await client.delete("/api/notifications/2")
    missing = await client.get("/api/notifications/2")

    assert marked.json()["data"]["isRead"] is True
    assert all_marked.json()["success"] is True
    assert deleted.json()["success"] is True
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Уведомление не найдено"


@pytest.mark.asyncio
async def test_notifications_require_auth(anon_client):
    response = await anon_client.get("/api/notifications")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_activity_feed(client, make_tester, db_session):
    from shared.services.activity_history_service import ActivityHistoryService

    tester = await make_tester()
    await ActivityHistoryService(db_session).record_registration(tester.to_dict())

    feed = await client.get("/api/activity")
    stats = await client.get("/api/activity/statistics")

    assert feed.json()["count"] == 1
    assert stats.json()["data"]["byEventType"] == {"registration": 1}

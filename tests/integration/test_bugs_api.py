"""Интеграционные тесты API багов, комментариев и скриншотов"""

import pytest

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.mark.asyncio
async def test_bugs_require_auth(anon_client):
    response = await anon_client.get("/api/bugs")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_and_fetch(client, make_tester):
    tester = await make_tester(name="Ольга")

    created = await client.post("/api/bugs", json={
        "title": "Падение на старте",
        "description": "Шаги",
        "testerId": tester.id,
        "priority": "critical",
        "status": "new",
        "type": "crash",
    })
    fetched = await client.get(f"/api/bugs/{created.json()['data']['id']}")
    notifications = await client.get("/api/notifications")

    assert created.status_code == 201
    assert fetched.json()["data"]["testerName"] == "Ольга"
    assert notifications.json()["data"]["unreadCount"] == 1


@pytest.mark.asyncio
async def test_create_validation(client):
    response = await client.post("/api/bugs", json={"title": ""})
    assert response.status_code == 400
    assert len(response.json()["error"]["details"]) == 6


@pytest.mark.asyncio
async def test_status_and_priority(client, make_tester, make_bug):
    tester = await make_tester()
    bug = await make_bug(tester.id, "low")

    fixed = await client.patch(f"/api/bugs/{bug.id}/status", json={"status": "fixed"})
    bad = await client.patch(f"/api/bugs/{bug.id}/priority", json={"priority": "urgent"})

    assert fixed.json()["data"]["fixedAt"] is not None
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_list_sorted_by_priority(client, make_tester, make_bug):
    tester = await make_tester()
    for priority in ("low", "critical", "medium"):
        await make_bug(tester.id, priority)

    response = await client.get("/api/bugs", params={"sortBy": "priority", "sortOrder": "ASC"})

    assert [b["priority"] for b in response.json()["data"]["bugs"]] == ["low", "medium", "critical"]


@pytest.mark.asyncio
async def test_delete_bug(client, make_tester, make_bug):
    tester = await make_tester()
    bug = await make_bug(tester.id)

    response = await client.delete(f"/api/bugs/{bug.id}")
    missing = await client.get(f"/api/bugs/{bug.id}")

    assert response.json() == {"success": True, "message": "Баг успешно удален"}
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_comment_flow(client, make_tester, make_bug):
    tester = await make_tester()
    bug = await make_bug(tester.id)

    created = await client.post(f"/api/bugs/{bug.id}/comments", json={
        "content": "Воспроизвел", "authorId": 1, "authorName": "Admin",
    })
    comment_id = created.json()["data"]["id"]
    edited = await client.put(
        f"/api/bugs/{bug.id}/comments/{comment_id}",
        json={"content": "Воспроизвел на Android", "authorId": 1},
    )
    foreign = await client.put(
        f"/api/bugs/{bug.id}/comments/{comment_id}",
        json={"content": "чужой", "authorId": 2},
    )
    deleted = await client.delete(f"/api/bugs/{bug.id}/comments/{comment_id}", params={"authorId": 1})

    assert created.status_code == 201
    assert edited.json()["data"]["isEdited"] is True
    assert foreign.status_code == 403
    assert deleted.json()["message"] == "Комментарий успешно удален"


@pytest.mark.asyncio
async def test_comment_delete_requires_author(client, make_tester, make_bug, make_comment):
    tester = await make_tester()
    bug = await make_bug(tester.id)
    comment = await make_comment(bug.id)

    response = await client.delete(f"/api/bugs/{bug.id}/comments/{comment.id}")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_screenshot_upload_and_limit(client, make_tester, make_bug, make_screenshots, upload_dir):
    tester = await make_tester()
    bug_id = (await make_bug(tester.id)).id
    await make_screenshots(bug_id, 9)

    tenth = await client.post(
        f"/api/bugs/{bug_id}/screenshots",
        files={"screenshot": ("tenth.png", PNG_BYTES, "image/png")},
    )
    eleventh = await client.post(
        f"/api/bugs/{bug_id}/screenshots",
        files={"screenshot": ("eleventh.png", PNG_BYTES, "image/png")},
    )
    listing = await client.get(f"/api/bugs/{bug_id}/screenshots")

    assert tenth.status_code == 201
    assert eleventh.status_code == 409
    assert eleventh.json()["error"]["code"] == "LIMIT_EXCEEDED"
    assert listing.json()["count"] == 10
    assert listing.json()["remaining"] == 0


@pytest.mark.asyncio
async def test_screenshot_wrong_type(client, make_tester, make_bug, upload_dir):
    tester = await make_tester()
    bug = await make_bug(tester.id)

    response = await client.post(
        f"/api/bugs/{bug.id}/screenshots",
        files={"screenshot": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "mimeType"


@pytest.mark.asyncio
async def test_screenshot_missing_file(client, make_tester, make_bug):
    tester = await make_tester()
    bug = await make_bug(tester.id)

    response = await client.post(f"/api/bugs/{bug.id}/screenshots")

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "screenshot"

"""Интеграционные тесты экспорта"""

import pytest


@pytest.mark.asyncio
async def test_testers_csv(client, make_tester):
    await make_tester(name="Анна, старший QA")

    response = await client.get("/api/export/testers/csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="testers_')
    assert '"Анна, старший QA"' in response.text


@pytest.mark.asyncio
async def test_bugs_csv_filters(client, make_tester, make_bug):
    tester = await make_tester()
    await make_bug(tester.id, "critical", title="Критичный")
    await make_bug(tester.id, "low", title="Мелкий")

    response = await client.get("/api/export/bugs/csv", params={"priority": "critical"})

    lines = response.text.strip().splitlines()
    assert len(lines) == 2
    assert "Критичный" in lines[1]


@pytest.mark.asyncio
async def test_bugs_report(client, make_tester, make_bug):
    tester = await make_tester()
    await make_bug(tester.id)

    response = await client.get("/api/export/bugs/pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith('inline; filename="bugs_')
    assert "Bugs Report" in response.text


@pytest.mark.asyncio
async def test_export_requires_auth(anon_client):
    response = await anon_client.get("/api/export/testers/csv")
    assert response.status_code == 401

"""Unit тесты преобразования строк Google Sheets"""

import pytest
from datetime import datetime, timezone

from core.exceptions import ExternalServiceError
from shared.services.google_sheets_service import (
    GoogleSheetsService,
    SHEET_COLUMNS,
    is_header_row,
    parse_date,
    parse_row,
    tester_to_row as to_row,
)


class TestRowConversion:

    def test_tester_to_row_order(self):
        row = to_row({
            "id": 7,
            "name": "Иван",
            "email": "ivan@example.com",
            "nickname": None,
            "telegram": "@ivan",
            "deviceType": "mobile",
            "os": "Android",
            "osVersion": None,
            "registrationDate": "2024-05-01T10:00:00+00:00",
            "status": "active",
        })
        assert len(row) == len(SHEET_COLUMNS)
        assert row == [
            7, "Иван", "ivan@example.com", "", "@ivan", "mobile", "Android", "",
            "2024-05-01T10:00:00+00:00", "active",
        ]

    def test_parse_row_defaults(self):
        tester = parse_row(["3", "Анна", "anna@example.com", "", "", "desktop", "Windows"], 5)
        assert tester["id"] == "3"
        assert tester["status"] == "active"
        assert tester["googleSheetsRowId"] == 5
        assert tester["registrationDate"].tzinfo is not None

    def test_parse_row_missing_required(self):
        with pytest.raises(ValueError):
            parse_row(["3", "Анна", "anna@example.com"], 2)

    def test_empty_row(self):
        assert parse_row([], 2) is None

    @pytest.mark.parametrize("first_cell, expected", [
        ("ID", True),
        ("identifier", True),
        ("Тестер", True),
        ("12", False),
    ])
    def test_header_detection(self, first_cell, expected):
        assert is_header_row([first_cell, "Name"]) is expected

    def test_parse_date(self):
        assert parse_date("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert parse_date("вчера").tzinfo is not None


class TestServiceWithoutConfiguration:

    @pytest.mark.asyncio
    async def test_append_without_spreadsheet_not_queued(self, monkeypatch):
        from core.config.settings import settings

        monkeypatch.setattr(settings, "google_sheets_spreadsheet_id", None)
        service = GoogleSheetsService.get_instance()

        with pytest.raises(ExternalServiceError):
            await service.append_tester({"id": 1, "name": "Иван"})

        assert service.get_status()["configured"] is False
        assert service.get_status()["queueSize"] == 0

    @pytest.mark.asyncio
    async def test_fetch_skips_header_and_bad_rows(self, monkeypatch):
        service = GoogleSheetsService.get_instance()

        async def fake_call(request_factory):
            return {"values": [
                ["ID", "Name"],
                ["1", "Иван", "ivan@example.com", "", "", "mobile", "Android"],
                ["2", "", "broken@example.com"],
            ]}

        monkeypatch.setattr(service, "_call", fake_call)
        testers = await service.fetch_testers()

        assert len(testers) == 1
        assert testers[0]["googleSheetsRowId"] == 2

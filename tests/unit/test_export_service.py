"""Unit тесты экспорта в CSV и HTML"""

import csv
import io
import re
from datetime import datetime, timezone

import pytest

from apps.web.services.export_service import (
    BUG_COLUMNS,
    TESTER_COLUMNS,
    ExportService,
    export_filename,
    generate_csv,
    render_table,
)


class TestCsvGeneration:

    def test_header_only_when_empty(self):
        assert generate_csv(("ID", "Name"), []) == "ID,Name\n"

    def test_escaping(self):
        content = generate_csv(("A", "B", "C"), [['Иванов, Иван', 'say "hi"', "line\nbreak"]])
        assert content == 'A,B,C\n"Иванов, Иван","say ""hi""","line\nbreak"\n'

    def test_dates_and_nulls(self):
        content = generate_csv(("Date", "Empty"), [[datetime(2024, 3, 5, 17, 30, tzinfo=timezone.utc), None]])
        assert content.splitlines()[1] == "2024-03-05,"

    def test_filename(self):
        assert re.fullmatch(r"testers_\d{4}-\d{2}-\d{2}\.csv", export_filename("testers", "csv"))


class TestHtmlReport:

    def test_escapes_values(self):
        html = render_table("Bugs Report", ("Title",), [["<script>alert(1)</script>"]], "#e74c3c")
        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;" in html

    def test_empty_report(self):
        html = render_table("Testers Report", TESTER_COLUMNS, [], "#3498db")
        assert "No records" in html
        assert "Testers Report" in html


class TestExportService:

    @pytest.mark.asyncio
    async def test_testers_csv_filtered(self, db_session, make_tester):
        await make_tester(name="Анна", os="Android", rating=7, bugs_count=2)
        await make_tester(name="Борис", os="iOS")

        content = await ExportService(db_session).testers_csv({"os": "Android"})

        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == list(TESTER_COLUMNS)
        assert len(rows) == 2
        assert rows[1][1] == "Анна"
        assert rows[1][-2:] == ["2", "7"]

    @pytest.mark.asyncio
    async def test_bugs_csv_has_tester_name(self, db_session, make_tester, make_bug):
        tester = await make_tester(name="Ольга")
        await make_bug(tester.id, "critical", title="Падение")

        content = await ExportService(db_session).bugs_csv({"priority": "critical"})

        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == list(BUG_COLUMNS)
        assert rows[1][1:5] == ["Падение", "Шаги воспроизведения", "Ольга", "critical"]
        assert rows[1][-1] == ""

    @pytest.mark.asyncio
    async def test_bugs_html_truncates_description(self, db_session, make_tester, make_bug):
        tester = await make_tester()
        await make_bug(tester.id, description="x" * 150)

        html = await ExportService(db_session).bugs_html({})

        assert "x" * 100 + "..." in html
        assert "x" * 101 not in html

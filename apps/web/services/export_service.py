"""
Сервис экспорта тестеров и багов в CSV и HTML таблицу
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.jinja import templates
from apps.web.utils.jinja_filters import format_date
from core.logging.logger import logger
from domain.entities.bug import Bug
from domain.entities.tester import Tester

TESTER_COLUMNS = (
    "ID", "Name", "Email", "Nickname", "Telegram", "Device Type",
    "OS", "OS Version", "Status", "Registration Date", "Bugs Count", "Rating",
)

BUG_COLUMNS = (
    "ID", "Title", "Description", "Tester", "Priority",
    "Status", "Type", "Created At", "Updated At", "Fixed At",
)

# Описание бага в HTML отчете обрезается
HTML_DESCRIPTION_LIMIT = 100


def export_filename(entity: str, extension: str) -> str:
    """Имя файла вида testers_2024-01-31.csv"""
    return f"{entity}_{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.{extension}"


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return format_date(value)
    return value


def generate_csv(columns: Sequence[str], rows: List[Sequence[Any]]) -> str:
    """CSV с заголовком. Значения с запятой, кавычкой или переводом строки берутся в кавычки."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(value) for value in row])
    return output.getvalue()


def render_table(title: str, columns: Sequence[str], rows: List[Sequence[Any]], accent: str) -> str:
    template = templates.env.get_template("export/table.html")
    return template.render(
        title=title,
        columns=columns,
        rows=[[_cell(value) for value in row] for row in rows],
        accent=accent,
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
    )


class ExportService:
    """Выгрузка списков с теми же фильтрами, что и у списочных эндпоинтов"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _testers(self, filters: Dict[str, Any]) -> List[Tester]:
        query = select(Tester)
        if filters.get("status"):
            query = query.where(Tester.status == filters["status"])
        if filters.get("deviceType"):
            query = query.where(Tester.device_type == filters["deviceType"])
        if filters.get("os"):
            query = query.where(Tester.os == filters["os"])
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.where(or_(Tester.name.ilike(pattern), Tester.email.ilike(pattern)))
        query = query.order_by(Tester.registration_date.desc(), Tester.id.desc())
        return list((await self.session.execute(query)).scalars().all())

    async def _bugs(self, filters: Dict[str, Any]) -> List[tuple]:
        query = select(Bug, Tester.name).outerjoin(Tester, Tester.id == Bug.tester_id)
        if filters.get("status"):
            query = query.where(Bug.status == filters["status"])
        if filters.get("priority"):
            query = query.where(Bug.priority == filters["priority"])
        if filters.get("type"):
            query = query.where(Bug.type == filters["type"])
        if filters.get("testerId"):
            query = query.where(Bug.tester_id == filters["testerId"])
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.where(or_(Bug.title.ilike(pattern), Bug.description.ilike(pattern)))
        query = query.order_by(Bug.created_at.desc(), Bug.id.desc())
        return list((await self.session.execute(query)).all())

    @staticmethod
    def _tester_row(tester: Tester) -> list:
        return [
            tester.id, tester.name, tester.email, tester.nickname, tester.telegram,
            tester.device_type, tester.os, tester.os_version, tester.status,
            tester.registration_date, tester.bugs_count, tester.rating,
        ]

    @staticmethod
    def _bug_row(bug: Bug, tester_name: Optional[str], description_limit: Optional[int] = None) -> list:
        description = bug.description or ""
        if description_limit and len(description) > description_limit:
            description = description[:description_limit] + "..."
        return [
            bug.id, bug.title, description, tester_name, bug.priority,
            bug.status, bug.type, bug.created_at, bug.updated_at, bug.fixed_at,
        ]

    async def testers_csv(self, filters: Dict[str, Any]) -> str:
        testers = await self._testers(filters)
        logger.info(f"Exporting {len(testers)} testers to CSV")
        return generate_csv(TESTER_COLUMNS, [self._tester_row(t) for t in testers])

    async def testers_html(self, filters: Dict[str, Any]) -> str:
        testers = await self._testers(filters)
        logger.info(f"Exporting {len(testers)} testers to HTML report")
        return render_table("Testers Report", TESTER_COLUMNS, [self._tester_row(t) for t in testers], "#3498db")

    async def bugs_csv(self, filters: Dict[str, Any]) -> str:
        bugs = await self._bugs(filters)
        logger.info(f"Exporting {len(bugs)} bugs to CSV")
        return generate_csv(BUG_COLUMNS, [self._bug_row(bug, name) for bug, name in bugs])

    async def bugs_html(self, filters: Dict[str, Any]) -> str:
        bugs = await self._bugs(filters)
        logger.info(f"Exporting {len(bugs)} bugs to HTML report")
        rows = [self._bug_row(bug, name, HTML_DESCRIPTION_LIMIT) for bug, name in bugs]
        return render_table("Bugs Report", BUG_COLUMNS, rows, "#e74c3c")

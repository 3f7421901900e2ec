"""Экспорт тестеров и багов в CSV и HTML отчет."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.middleware.auth_middleware import require_admin
from apps.web.services.export_service import ExportService, export_filename
from core.database.session import get_db_session

router = APIRouter(dependencies=[Depends(require_admin)])

# HTML отчет отдается с типом PDF для скачивания браузером
REPORT_MEDIA_TYPE = "application/pdf"


def _tester_filters(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    device_type: Optional[str] = Query(None, alias="deviceType"),
    os: Optional[str] = Query(None),
) -> dict:
    return {"search": search, "status": status, "deviceType": device_type, "os": os}


def _bug_filters(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    tester_id: Optional[int] = Query(None, alias="testerId"),
) -> dict:
    return {"search": search, "status": status, "priority": priority, "type": type, "testerId": tester_id}


def _file_response(content: str, media_type: str, filename: str, disposition: str = "attachment") -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )


@router.get("/testers/csv")
async def export_testers_csv(filters: dict = Depends(_tester_filters), session: AsyncSession = Depends(get_db_session)):
    content = await ExportService(session).testers_csv(filters)
    return _file_response(content, "text/csv; charset=utf-8", export_filename("testers", "csv"))


@router.get("/testers/pdf")
async def export_testers_pdf(filters: dict = Depends(_tester_filters), session: AsyncSession = Depends(get_db_session)):
    content = await ExportService(session).testers_html(filters)
    return _file_response(content, REPORT_MEDIA_TYPE, export_filename("testers", "pdf"), "inline")


@router.get("/bugs/csv")
async def export_bugs_csv(filters: dict = Depends(_bug_filters), session: AsyncSession = Depends(get_db_session)):
    content = await ExportService(session).bugs_csv(filters)
    return _file_response(content, "text/csv; charset=utf-8", export_filename("bugs", "csv"))


@router.get("/bugs/pdf")
async def export_bugs_pdf(filters: dict = Depends(_bug_filters), session: AsyncSession = Depends(get_db_session)):
    content = await ExportService(session).bugs_html(filters)
    return _file_response(content, REPORT_MEDIA_TYPE, export_filename("bugs", "pdf"), "inline")

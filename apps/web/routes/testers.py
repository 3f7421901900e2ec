"""API тестеров: регистрация, список, рейтинги, журнал и Google Sheets."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.dependencies import get_sheets_service
from apps.web.middleware.auth_middleware import require_admin
from core.database.session import get_db_session
from shared.services.activity_history_service import ActivityHistoryService
from shared.services.google_sheets_service import GoogleSheetsService
from shared.services.rating_service import RatingService
from shared.services.tester_service import TesterService

router = APIRouter()


class TesterCreateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    nickname: Optional[str] = None
    telegram: Optional[str] = None
    deviceType: Optional[str] = None
    os: Optional[str] = None
    osVersion: Optional[str] = None


class TesterUpdateRequest(TesterCreateRequest):
    status: Optional[str] = None


class TesterStatusRequest(BaseModel):
    status: Optional[str] = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_tester(
    payload: TesterCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
):
    """Публичная регистрация тестера."""
    tester = await TesterService(session, sheets).register_tester(payload.model_dump())
    return {"success": True, "data": tester, "message": "Тестер успешно зарегистрирован"}


@router.get("")
async def list_testers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    search: Optional[str] = Query(None),
    device_type: Optional[str] = Query(None, alias="deviceType"),
    os: Optional[str] = Query(None),
    tester_status: Optional[str] = Query(None, alias="status"),
    sort_by: str = Query("registration_date", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    result = await TesterService(session).get_all_testers(
        page=page,
        page_size=page_size,
        search=search,
        device_type=device_type,
        os=os,
        status=tester_status,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"success": True, "data": result}


@router.get("/top")
async def top_testers(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    """Лучшие тестеры по рейтингу."""
    testers = await RatingService(session).get_top_testers(limit)
    return {"success": True, "data": testers, "count": len(testers)}


@router.get("/ratings/statistics")
async def rating_statistics(
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    return {"success": True, "data": await RatingService(session).get_rating_statistics()}


@router.post("/ratings/recalculate")
async def recalculate_ratings(
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    """Полный пересчет рейтингов всех тестеров."""
    result = await RatingService(session).recalculate_all_ratings()
    return {"success": True, "data": result, "message": "Рейтинги пересчитаны"}


# === Google Sheets ===

@router.get("/google-sheets/load")
async def load_from_google_sheets(
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    result = await TesterService(session, sheets).load_testers_from_google_sheets()
    return {"success": True, "data": result["testers"], "count": result["count"]}


@router.post("/google-sheets/sync")
async def sync_from_google_sheets(
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    result = await TesterService(session, sheets).sync_testers_from_google_sheets()
    return {"success": True, "data": result}


@router.get("/google-sheets/status")
async def google_sheets_status(
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    result = await TesterService(session, sheets).check_google_sheets_connection()
    return {"success": True, "data": result}


@router.post("/google-sheets/retry")
async def retry_google_sheets(
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    """Ручной повтор операций из очереди синхронизации."""
    result = await TesterService(session, sheets).retry_google_sheets_operations()
    return {"success": True, "data": result}


# === Тестер по ID ===

@router.get("/{tester_id}")
async def get_tester(
    tester_id: int,
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    return {"success": True, "data": await TesterService(session).get_tester_by_id(tester_id)}


@router.patch("/{tester_id}")
async def update_tester(
    tester_id: int,
    payload: TesterUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    tester = await TesterService(session, sheets).update_tester(tester_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": tester}


@router.patch("/{tester_id}/status")
async def update_tester_status(
    tester_id: int,
    payload: TesterStatusRequest,
    session: AsyncSession = Depends(get_db_session),
    sheets: GoogleSheetsService = Depends(get_sheets_service),
    admin: dict = Depends(require_admin),
):
    tester = await TesterService(session, sheets).update_tester_status(tester_id, payload.status)
    return {"success": True, "data": tester}


@router.delete("/{tester_id}")
async def delete_tester(
    tester_id: int,
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    await TesterService(session).delete_tester(tester_id)
    return {"success": True, "message": "Тестер успешно удален"}


@router.get("/{tester_id}/bugs")
async def tester_bugs(
    tester_id: int,
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    result = await TesterService(session).get_tester_bugs(tester_id)
    return {"success": True, "data": result["data"], "count": result["count"]}


@router.get("/{tester_id}/activity")
async def tester_activity(
    tester_id: int,
    event_type: Optional[str] = Query(None, alias="eventType"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    session: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
):
    """История активности тестера, новые события первыми."""
    result = await ActivityHistoryService(session).get_tester_activity(tester_id, event_type, limit)
    return {"success": True, "data": result["data"], "count": result["count"]}

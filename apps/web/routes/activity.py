"""API общей ленты активности тестеров."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.middleware.auth_middleware import require_admin
from core.database.session import get_db_session
from shared.services.activity_history_service import ActivityHistoryService

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("")
async def list_activity(
    event_type: Optional[str] = Query(None, alias="eventType"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
):
    result = await ActivityHistoryService(session).get_all_activity(event_type=event_type, limit=limit, offset=offset)
    return {"success": True, "data": result["data"], "count": result["count"]}


@router.get("/statistics")
async def activity_statistics(
    tester_id: Optional[int] = Query(None, alias="testerId"),
    session: AsyncSession = Depends(get_db_session),
):
    return {"success": True, "data": await ActivityHistoryService(session).get_activity_statistics(tester_id)}


@router.get("/{activity_id}")
async def get_activity(activity_id: int, session: AsyncSession = Depends(get_db_session)):
    return {"success": True, "data": await ActivityHistoryService(session).get_activity_by_id(activity_id)}

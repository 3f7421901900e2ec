"""API системных уведомлений."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.middleware.auth_middleware import require_admin
from core.database.session import get_db_session
from shared.services.notification_service import NotificationService

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
):
    """Уведомления, новые первыми, с числом непрочитанных."""
    result = await NotificationService(session).get_notifications(unread_only=unread_only, limit=limit, offset=offset)
    return {"success": True, "data": result}


@router.get("/unread")
async def list_unread_notifications(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
):
    result = await NotificationService(session).get_notifications(unread_only=True, limit=limit, offset=offset)
    return {"success": True, "data": result}


@router.get("/count/unread")
async def unread_count(session: AsyncSession = Depends(get_db_session)):
    count = await NotificationService(session).get_unread_count()
    return {"success": True, "data": {"count": count}}


@router.patch("/read-all")
async def mark_all_read(session: AsyncSession = Depends(get_db_session)):
    updated = await NotificationService(session).mark_all_as_read()
    return {"success": True, "data": {"updated": updated}}


@router.get("/{notification_id}")
async def get_notification(notification_id: int, session: AsyncSession = Depends(get_db_session)):
    return {"success": True, "data": await NotificationService(session).get_notification_by_id(notification_id)}


@router.patch("/{notification_id}/read")
async def mark_notification_read(notification_id: int, session: AsyncSession = Depends(get_db_session)):
    notification = await NotificationService(session).mark_notification_as_read(notification_id)
    return {"success": True, "data": notification}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: int, session: AsyncSession = Depends(get_db_session)):
    await NotificationService(session).delete_notification(notification_id)
    return {"success": True, "message": "Уведомление удалено"}

"""Проверка состояния приложения."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core.database.session import get_db_session
from core.health.health_check import health_checker

router = APIRouter()


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """Состояние БД и Redis. Недоступная БД дает 503."""
    result = await health_checker.check_all_services(session)
    status_code = 503 if result["status"] == "error" else 200
    return JSONResponse(result, status_code=status_code)

"""
Роуты авторизации администратора
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.dependencies import get_client_ip
from apps.web.middleware.auth_middleware import ACCESS_TOKEN_COOKIE, get_current_admin
from apps.web.services.auth_service import AuthService
from core.config.settings import settings
from core.database.session import get_db_session
from core.exceptions import AuthenticationError, RateLimitError
from core.logging.logger import logger
from core.utils.rate_limiter import RateLimiter

router = APIRouter()


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


def _login_limit_key(ip: str) -> str:
    return f"login:{ip}"


@router.post("/login")
async def login(
    payload: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_db_session),
):
    """Вход по логину и паролю. Токен сохраняется в HttpOnly cookie."""
    ip = get_client_ip(request)
    limit_key = _login_limit_key(ip)

    if await RateLimiter.is_limited(limit_key, settings.login_rate_limit_attempts):
        logger.warning(f"Login rate limit exceeded for {ip}")
        raise RateLimitError(
            "Too many login attempts. Please try again later.",
            retryAfter=settings.login_rate_limit_window_seconds,
        )

    try:
        result = await AuthService(session).authenticate(payload.username, payload.password)
    except AuthenticationError:
        await RateLimiter.register_attempt(limit_key, settings.login_rate_limit_window_seconds)
        raise

    await RateLimiter.reset_limit(limit_key)

    response = JSONResponse({"success": True, "data": {"admin": result["admin"]}, "message": "Login successful"})
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=result["token"],
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.jwt_expire_minutes * 60,
    )
    return response


@router.post("/logout")
async def logout():
    """Выход из системы"""
    response = JSONResponse({"success": True, "message": "Logout successful"})
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


@router.get("/session")
async def get_session(
    admin: Optional[dict] = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Текущая сессия администратора"""
    if not admin:
        return {"success": True, "data": {"authenticated": False, "admin": None}}

    admin_data = await AuthService(session).get_admin(admin["id"])
    return {
        "success": True,
        "data": {"authenticated": admin_data is not None, "admin": admin_data},
    }

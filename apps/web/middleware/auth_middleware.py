"""Проверка авторизации администратора по JWT в cookie."""

from typing import Optional

from fastapi import Request

from apps.web.services.auth_service import AuthService
from core.exceptions import AuthenticationError
from core.logging.logger import logger

ACCESS_TOKEN_COOKIE = "access_token"
AUTH_REQUIRED_MESSAGE = "Authentication required. Please log in."


class AuthMiddleware:
    """Извлечение администратора из токена запроса."""

    def __init__(self):
        self.auth_service = AuthService()

    def get_current_admin(self, request: Request) -> Optional[dict]:
        """Получение администратора из JWT токена."""
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            logger.debug("No access token found in cookies")
            return None

        payload = self.auth_service.verify_token(token)
        if not payload:
            logger.warning("Token verification failed")
            return None
        return payload


# Глобальный экземпляр middleware
auth_middleware = AuthMiddleware()


# Функции-зависимости для FastAPI
async def get_current_admin(request: Request) -> Optional[dict]:
    """Получение текущего администратора или None."""
    return auth_middleware.get_current_admin(request)


async def require_admin(request: Request) -> dict:
    """Требует авторизации администратора."""
    admin = auth_middleware.get_current_admin(request)
    if not admin:
        raise AuthenticationError(AUTH_REQUIRED_MESSAGE)
    request.state.current_admin = admin
    return admin

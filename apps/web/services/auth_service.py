"""
Сервис авторизации администраторов
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config.settings import settings
from core.exceptions import AuthenticationError, ConflictError, ValidationError
from core.logging.logger import logger
from domain.entities.admin import Admin
from domain.entities.base import utcnow

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class AuthService:
    """Сервис авторизации с JWT токенами в cookie"""

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.token_expire_minutes = settings.jwt_expire_minutes

    def create_token(self, admin: Dict[str, Any]) -> str:
        """Создание JWT токена для администратора"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(admin["id"]),
            "username": admin["username"],
            "exp": now + timedelta(minutes=self.token_expire_minutes),
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Проверка и декодирование JWT токена"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return {"id": int(payload["sub"]), "username": payload.get("username")}
        except jwt.ExpiredSignatureError:
            logger.debug("Access token expired")
            return None
        except (jwt.InvalidTokenError, KeyError, ValueError):
            return None

    @staticmethod
    def validate_credentials(username: Optional[str], password: Optional[str]) -> List[Dict[str, str]]:
        errors = []
        if not username:
            errors.append({"field": "username", "message": "Username is required"})
        if not password:
            errors.append({"field": "password", "message": "Password is required"})
        return errors

    async def authenticate(self, username: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        """
        Проверка логина и пароля.

        Returns:
            Dict: {"token": str, "admin": {...}}

        Raises:
            ValidationError: не указан логин или пароль
            AuthenticationError: неверные учетные данные
        """
        errors = self.validate_credentials(username, password)
        if errors:
            raise ValidationError(errors, message="Username and password are required")

        result = await self.session.execute(select(Admin).where(Admin.username == username))
        admin = result.scalar_one_or_none()
        if not admin or not verify_password(password, admin.password_hash):
            logger.warning(f"Failed login attempt for username '{username}'")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        admin.last_login = utcnow()
        await self.session.commit()

        admin_data = admin.to_dict()
        logger.info(f"Admin {admin_data['username']} logged in")
        return {"token": self.create_token(admin_data), "admin": admin_data}

    async def get_admin(self, admin_id: int) -> Optional[Dict[str, Any]]:
        admin = await self.session.get(Admin, admin_id)
        return admin.to_dict() if admin else None

    async def create_admin(self, username: str, password: str, email: Optional[str] = None) -> Dict[str, Any]:
        """Создание администратора с bcrypt хэшем пароля"""
        errors = self.validate_credentials(username, password)
        if errors:
            raise ValidationError(errors)

        admin = Admin(username=username, password_hash=get_password_hash(password), email=email)
        self.session.add(admin)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Admin already exists", field="username")

        logger.info(f"Created admin {username}")
        return admin.to_dict()

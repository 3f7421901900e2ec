"""
Иерархия ошибок приложения.

Каждая ошибка знает свой код, HTTP статус и умеет превращаться
в тело ответа единого формата {"success": false, "error": {...}}.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Базовая ошибка приложения."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[List[Dict[str, str]]] = None,
        **extra: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = {key: value for key, value in extra.items() if value is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Тело ошибки для ответа API."""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        error.update(self.extra)
        return error


class ValidationError(AppError):
    """Ошибка валидации. Всегда содержит список полей."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, details: List[Dict[str, str]], message: str = "Ошибка валидации"):
        super().__init__(message, details=details)

    @classmethod
    def single(cls, field: str, message: str, summary: Optional[str] = None) -> "ValidationError":
        return cls([{"field": field, "message": message}], message=summary or message)


class AuthenticationError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class AuthorizationError(AppError):
    """Действие выполняет не тот пользователь."""

    code = "UNAUTHORIZED"
    status_code = 403


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        id: Any = None,
        details: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message, details=details, resource=resource, id=id)


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        details = [{"field": field, "message": message}] if field else None
        super().__init__(message, details=details)


class EditWindowExpiredError(AppError):
    code = "EDIT_WINDOW_EXPIRED"
    status_code = 409


class LimitExceededError(AppError):
    code = "LIMIT_EXCEEDED"
    status_code = 409


class ExternalServiceError(AppError):
    """Внешний сервис недоступен, операцию можно повторить."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, message: str, service: str = "google_sheets"):
        super().__init__(message, service=service, retryable=True)


class RateLimitError(AppError):
    code = "RATE_LIMITED"
    status_code = 429

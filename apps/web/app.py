"""
Веб-приложение QA Dashboard
FastAPI приложение для управления тестерами, багами и уведомлениями
"""

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.web.routes import activity, auth, bugs, export, health, notifications, testers
from core.config.settings import settings
from core.exceptions import AppError
from core.logging.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    # Инициализация Redis
    from core.cache.redis_cache import init_cache, close_cache
    try:
        await init_cache()
    except Exception as e:
        logger.warning(f"Redis unavailable, continuing without cache: {e}")

    # Инициализация базы данных
    from core.database.session import init_database, close_database
    await init_database()

    os.makedirs(settings.screenshots_dir, exist_ok=True)

    # Фоновый обработчик повторов синхронизации с Google Sheets
    from shared.services.google_sheets_service import GoogleSheetsService
    sheets = GoogleSheetsService.get_instance()
    sheets.start_retry_worker()

    yield

    await sheets.stop_retry_worker()

    try:
        await close_cache()
    except Exception as e:
        logger.warning(f"Error closing Redis connection: {e}")

    await close_database()
    logger.info(f"{settings.app_name} stopped")


def _error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def register_exception_handlers(app: FastAPI) -> None:
    """Все ошибки отдаются в едином формате {"success": false, "error": {...}}"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return _error_response(exc.status_code, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            details.append({"field": ".".join(location) or "request", "message": error.get("msg", "Invalid value")})
        return _error_response(400, {"code": "VALIDATION_ERROR", "message": "Ошибка валидации", "details": details})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return _error_response(exc.status_code, {"code": "NOT_FOUND", "message": "Endpoint not found"})
        return _error_response(exc.status_code, {"code": "HTTP_ERROR", "message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return _error_response(500, {"code": "INTERNAL_ERROR", "message": "Внутренняя ошибка сервера"})


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Администрирование QA тестеров и багов",
        version=settings.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Загруженные скриншоты
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    # Включение роутов
    app.include_router(health.router, prefix="/api", tags=["Состояние"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Авторизация"])
    app.include_router(testers.router, prefix="/api/testers", tags=["Тестеры"])
    app.include_router(bugs.router, prefix="/api/bugs", tags=["Баги"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Уведомления"])
    app.include_router(activity.router, prefix="/api/activity", tags=["Активность"])
    app.include_router(export.router, prefix="/api/export", tags=["Экспорт"])

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "apps.web.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )

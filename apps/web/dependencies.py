"""Зависимости для веб-приложения."""

from fastapi import Request

from shared.services.google_sheets_service import GoogleSheetsService


def get_sheets_service() -> GoogleSheetsService:
    """Общий клиент Google Sheets (singleton процесса)."""
    return GoogleSheetsService.get_instance()


def get_client_ip(request: Request) -> str:
    """IP клиента с учетом X-Forwarded-For от прокси."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"

"""
Базовый файл для всех доменных сущностей
Решает проблему циклических импортов
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Общая Base для всех моделей
Base = declarative_base()


def utcnow() -> datetime:
    """Текущее время в UTC для default значений колонок."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Приводит datetime к aware UTC (SQLite возвращает naive значения)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iso(value) -> str:
    """ISO строка для datetime или None."""
    return as_utc(value).isoformat() if value else None

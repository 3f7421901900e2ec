"""
Jinja2 фильтры для приложения
"""
from datetime import datetime
from typing import Any, Optional


def format_date(value: Optional[Any], format_str: str = '%Y-%m-%d') -> str:
    """
    Jinja2 фильтр для вывода даты без времени

    Args:
        value: datetime или ISO строка
        format_str: Формат вывода

    Returns:
        Отформатированная строка или '-' для пустого значения
    """
    if value is None or value == '':
        return '-'
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return value
    return value.strftime(format_str)


def dash_filter(value: Optional[Any]) -> Any:
    """Пустое значение выводится как '-'."""
    if value is None or value == '':
        return '-'
    return value


def register_filters(templates):
    """
    Регистрация всех кастомных фильтров в Jinja2Templates

    Args:
        templates: Экземпляр Jinja2Templates
    """
    templates.env.filters['format_date'] = format_date
    templates.env.filters['dash'] = dash_filter

"""Единый Jinja2 environment для веб-приложения.

Содержит общий экземпляр `templates` с зарегистрированными кастомными фильтрами.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates
from core.config.settings import settings

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Создаем единый экземпляр шаблонизатора
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# Регистрируем кастомные фильтры Jinja2
from apps.web.utils.jinja_filters import register_filters

register_filters(templates)

# Добавляем settings в глобальные переменные Jinja2
templates.env.globals['settings'] = settings

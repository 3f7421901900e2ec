"""
Модуль логирования для QA Dashboard
Текстовый вывод по умолчанию, JSON при LOG_FORMAT=json
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any

from core.config.settings import settings

# Поля контекста, которые переносятся в JSON вывод
CONTEXT_FIELDS = (
    "tester_id",
    "bug_id",
    "request_id",
    "operation",
    "attempt",
    "key",
)


class JSONFormatter(logging.Formatter):
    """Форматтер для вывода логов в JSON формате"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """Структурированный логгер с дополнительным контекстом"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log_with_context(self, level: int, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        extra = {key: value for key, value in kwargs.items() if value is not None}
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Логирует exception с traceback"""
        self._log_with_context(logging.ERROR, message, exc_info=True, **kwargs)


def setup_logging() -> None:
    """Настраивает логирование для приложения"""
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)

    if settings.log_format == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )

    root_logger.addHandler(console_handler)


# Основной логгер приложения
logger = logging.getLogger("qa_dashboard")

setup_logging()

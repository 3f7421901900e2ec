"""
Модуль логирования QA Dashboard
"""

from .logger import logger, StructuredLogger, JSONFormatter, setup_logging

__all__ = ["logger", "StructuredLogger", "JSONFormatter", "setup_logging"]

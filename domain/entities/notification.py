"""Модель системных уведомлений дашборда."""

import enum
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON

from .base import Base, utcnow, iso


class NotificationType(enum.Enum):
    """Тип уведомления."""
    NEW_TESTER = "new_tester"           # Зарегистрирован новый тестер
    CRITICAL_BUG = "critical_bug"       # Найден критический баг
    SERVER_DOWN = "server_down"         # Сервер недоступен
    INFO = "info"                       # Информационное


class Notification(Base):
    """Уведомление, созданное системным триггером."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    # Имя metadata зарезервировано декларативной моделью
    meta = Column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type='{self.type}', is_read={self.is_read})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "isRead": self.is_read,
            "createdAt": iso(self.created_at),
            "metadata": self.meta or {},
        }

"""Модель бага."""

import enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, utcnow, iso


class BugPriority(enum.Enum):
    """Приоритет бага."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BugStatus(enum.Enum):
    """Статус бага."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    FIXED = "fixed"
    CLOSED = "closed"


class BugType(enum.Enum):
    """Тип бага."""
    UI = "ui"
    FUNCTIONALITY = "functionality"
    PERFORMANCE = "performance"
    CRASH = "crash"
    SECURITY = "security"
    OTHER = "other"


class Bug(Base):
    """Отчет о дефекте."""

    __tablename__ = "bugs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    tester_id = Column(Integer, ForeignKey("testers.id", ondelete="CASCADE"), nullable=False, index=True)

    priority = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BugStatus.NEW.value, index=True)
    type = Column(String(20), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    fixed_at = Column(DateTime(timezone=True), nullable=True)

    tester = relationship("Tester", back_populates="bugs")
    comments = relationship("Comment", back_populates="bug", cascade="all, delete-orphan", passive_deletes=True)
    screenshots = relationship(
        "Screenshot", back_populates="bug", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Bug(id={self.id}, tester_id={self.tester_id}, priority='{self.priority}', status='{self.status}')>"

    def apply_status(self, status: str) -> None:
        """Меняет статус, поддерживая fixed_at: задан только для статуса fixed."""
        self.status = status
        self.fixed_at = utcnow() if status == BugStatus.FIXED.value else None

    def to_dict(self, tester_name: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "testerId": self.tester_id,
            "priority": self.priority,
            "status": self.status,
            "type": self.type,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "fixedAt": iso(self.fixed_at),
        }
        if tester_name is not None:
            data["testerName"] = tester_name
        return data

"""Журнал активности тестеров (только добавление)."""

import enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, Text, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from .base import Base, utcnow, iso


class ActivityEventType(enum.Enum):
    """Тип события в журнале."""
    REGISTRATION = "registration"
    BUG_FOUND = "bug_found"
    STATUS_CHANGED = "status_changed"
    RATING_UPDATED = "rating_updated"


# rating_updated пишется системой, но не фильтруется в истории тестера
USER_FACING_EVENT_TYPES = (
    ActivityEventType.REGISTRATION.value,
    ActivityEventType.BUG_FOUND.value,
    ActivityEventType.STATUS_CHANGED.value,
)


class ActivityHistory(Base):
    """Запись журнала активности."""

    __tablename__ = "activity_history"

    id = Column(Integer, primary_key=True, index=True)
    tester_id = Column(Integer, ForeignKey("testers.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    tester = relationship("Tester", back_populates="activities")

    def __repr__(self) -> str:
        return f"<ActivityHistory(id={self.id}, tester_id={self.tester_id}, event_type='{self.event_type}')>"

    def to_dict(self, tester_name: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "testerId": self.tester_id,
            "eventType": self.event_type,
            "description": self.description,
            "metadata": self.meta or {},
            "createdAt": iso(self.created_at),
        }
        if tester_name is not None:
            data["testerName"] = tester_name
        return data

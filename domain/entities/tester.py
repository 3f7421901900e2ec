"""Модель тестера."""

import enum
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from .base import Base, utcnow, iso


class TesterStatus(enum.Enum):
    """Статус тестера."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Tester(Base):
    """Тестер, регистрирующий устройства и сообщающий о багах."""

    __tablename__ = "testers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    nickname = Column(String(255), nullable=True)
    telegram = Column(String(255), nullable=True)
    device_type = Column(String(100), nullable=False, index=True)
    os = Column(String(100), nullable=False, index=True)
    os_version = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=TesterStatus.ACTIVE.value, index=True)

    registration_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    last_activity_date = Column(DateTime(timezone=True), nullable=True)

    # Производные значения, пересчитываются RatingService
    bugs_count = Column(Integer, nullable=False, default=0)
    rating = Column(Integer, nullable=False, default=0, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bugs = relationship("Bug", back_populates="tester", cascade="all, delete-orphan", passive_deletes=True)
    activities = relationship(
        "ActivityHistory", back_populates="tester", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Tester(id={self.id}, email='{self.email}', rating={self.rating})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "nickname": self.nickname,
            "telegram": self.telegram,
            "deviceType": self.device_type,
            "os": self.os,
            "osVersion": self.os_version,
            "status": self.status,
            "registrationDate": iso(self.registration_date),
            "lastActivityDate": iso(self.last_activity_date),
            "bugsCount": self.bugs_count,
            "rating": self.rating,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

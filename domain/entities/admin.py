"""Администратор дашборда."""

from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime

from .base import Base, utcnow, iso


class Admin(Base):
    """Учетная запись для входа в дашборд."""

    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Admin(id={self.id}, username='{self.username}')>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "lastLogin": iso(self.last_login),
        }

"""Модель скриншота бага."""

import os
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, utcnow, iso

# Разрешенные MIME-типы изображений
ALLOWED_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/gif")

PUBLIC_URL_PREFIX = "/uploads/screenshots"


class Screenshot(Base):
    """Скриншот, прикрепленный к багу."""

    __tablename__ = "screenshots"

    id = Column(Integer, primary_key=True, index=True)
    bug_id = Column(Integer, ForeignKey("bugs.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(50), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    bug = relationship("Bug", back_populates="screenshots")

    def __repr__(self) -> str:
        return f"<Screenshot(id={self.id}, bug_id={self.bug_id}, filename='{self.filename}')>"

    @property
    def url(self) -> str:
        return f"{PUBLIC_URL_PREFIX}/{os.path.basename(self.file_path)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bugId": self.bug_id,
            "filename": self.filename,
            "filePath": self.file_path,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
            "uploadedAt": iso(self.uploaded_at),
            "url": self.url,
            # Отдельных превью нет, отдаем оригинал
            "thumbnailUrl": self.url,
        }

"""Модель комментария к багу."""

from typing import Any, Dict

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base, utcnow, iso


class Comment(Base):
    """Комментарий к багу. Редактируется только автором в течение окна редактирования."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    bug_id = Column(Integer, ForeignKey("bugs.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, nullable=False)
    author_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    is_edited = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bug = relationship("Bug", back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, bug_id={self.bug_id}, author_id={self.author_id})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bugId": self.bug_id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "content": self.content,
            "isEdited": self.is_edited,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

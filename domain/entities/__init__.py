"""
Модуль доменных сущностей QA Dashboard
"""

from .base import Base
from .tester import Tester, TesterStatus
from .bug import Bug, BugPriority, BugStatus, BugType
from .comment import Comment
from .screenshot import Screenshot
from .notification import Notification, NotificationType
from .activity_history import ActivityHistory, ActivityEventType
from .admin import Admin

__all__ = [
    "Base",
    "Tester",
    "TesterStatus",
    "Bug",
    "BugPriority",
    "BugStatus",
    "BugType",
    "Comment",
    "Screenshot",
    "Notification",
    "NotificationType",
    "ActivityHistory",
    "ActivityEventType",
    "Admin",
]

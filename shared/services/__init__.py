"""Shared services package."""

from .rating_service import RatingService
from .activity_history_service import ActivityHistoryService
from .notification_service import NotificationService
from .tester_service import TesterService
from .bug_service import BugService
from .comment_service import CommentService
from .screenshot_service import ScreenshotService
from .google_sheets_service import GoogleSheetsService

__all__ = [
    'RatingService',
    'ActivityHistoryService',
    'NotificationService',
    'TesterService',
    'BugService',
    'CommentService',
    'ScreenshotService',
    'GoogleSheetsService',
]

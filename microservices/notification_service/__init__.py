"""
Notification Service Package

Notification dispatcher: renders lifecycle events into in-app
notifications and push messages.
"""

from .models import (
    NotificationKind,
    Notification,
    NotificationSettings,
    NotificationListResponse,
)
from .protocols import NotificationServiceError, NotificationNotFoundError
from .notification_service import NotificationService

__version__ = "1.0.0"
__all__ = [
    "NotificationKind",
    "Notification",
    "NotificationSettings",
    "NotificationListResponse",
    "NotificationServiceError",
    "NotificationNotFoundError",
    "NotificationService",
]

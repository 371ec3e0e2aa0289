"""
Notification Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import List, Optional, Protocol, runtime_checkable

from .models import Notification, NotificationSettings, PushMessage, PushTicket


class NotificationServiceError(Exception):
    """Base exception for notification service errors"""
    error_code = "NOTIFICATION_ERROR"


class NotificationNotFoundError(NotificationServiceError):
    """Notification resource not found"""
    error_code = "NOT_FOUND"


@runtime_checkable
class NotificationRepositoryProtocol(Protocol):
    """
    Interface for Notification Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    # In-app notification operations
    async def create_notification(self, notification: Notification) -> Notification:
        """Persist an in-app notification"""
        ...

    async def list_notifications(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[Notification]:
        """List a user's notifications, newest first"""
        ...

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one of the user's notifications as read"""
        ...

    async def mark_all_as_read(self, user_id: str) -> int:
        """Mark all of the user's notifications as read, returning how many changed"""
        ...

    async def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for user"""
        ...

    # Settings
    async def get_settings(self, user_id: str) -> Optional[NotificationSettings]:
        """Get stored settings, None when the user never saved any"""
        ...

    async def upsert_settings(self, settings: NotificationSettings) -> NotificationSettings:
        """Create or replace settings"""
        ...

    # Push tokens
    async def get_push_token(self, user_id: str) -> Optional[str]:
        """Get the user's device push token"""
        ...

    async def set_push_token(self, user_id: str, push_token: Optional[str]) -> None:
        """Store or clear the user's device push token"""
        ...


@runtime_checkable
class PushClientProtocol(Protocol):
    """Interface for the push gateway client"""

    async def send(self, messages: List[PushMessage]) -> List[PushTicket]:
        """Send push messages, returning one ticket per message"""
        ...

"""
Notification Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_notification_service
    service = create_notification_service(settings)
"""
from typing import Optional

from core.config import MarketConfig, get_settings
from .notification_service import NotificationService


def create_notification_service(config: Optional[MarketConfig] = None, db=None) -> NotificationService:
    """
    Create NotificationService with real dependencies.

    The push client is only built when push delivery is enabled.

    Args:
        config: Marketplace configuration
        db: Shared PostgreSQL client; the notification pool is used if omitted

    Returns:
        Configured NotificationService instance
    """
    config = config or get_settings()

    # Import real repository and clients here (not at module level)
    from .notification_repository import NotificationRepository
    from .clients import PushClient

    repository = NotificationRepository(config=config.infrastructure, db=db)
    push_client = PushClient(config.services) if config.services.push_enabled else None

    return NotificationService(
        repository=repository,
        push_client=push_client,
    )

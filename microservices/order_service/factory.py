"""
Order Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_order_service
    service = create_order_service(settings, event_bus=event_bus)
"""
from typing import Optional

from core.config import MarketConfig, get_settings

from .order_service import OrderService
from .pickup_token import PickupTokenCodec


def create_order_service(
    config: Optional[MarketConfig] = None,
    event_bus=None,
    stock_guard=None,
    notification_dispatcher=None,
    account_client=None,
) -> OrderService:
    """
    Create OrderService with real dependencies.

    This function imports the real repository (which has I/O dependencies).
    Use this in production, NOT in tests.

    Args:
        config: Marketplace configuration
        event_bus: Event bus for publishing events
        stock_guard: Stock guard; built on the inventory repository if omitted
        notification_dispatcher: Notification dispatcher; built if omitted
        account_client: Account service client; built if omitted

    Returns:
        Configured OrderService instance
    """
    config = config or get_settings()

    # Import real repository and clients here (not at module level)
    from core.postgres_client import get_postgres_client
    from .order_repository import OrderRepository
    from .clients import AccountClient
    from microservices.inventory_service.factory import create_stock_guard
    from microservices.notification_service.factory import create_notification_service

    # One pool serves orders, stock and notifications
    db = get_postgres_client("order_service", config=config.infrastructure)

    if notification_dispatcher is None:
        notification_dispatcher = create_notification_service(config, db=db)

    if stock_guard is None:
        stock_guard = create_stock_guard(
            config=config.infrastructure,
            notification_dispatcher=notification_dispatcher,
            event_bus=event_bus,
            db=db,
        )

    return OrderService(
        repository=OrderRepository(config=config.infrastructure, db=db),
        stock_guard=stock_guard,
        token_codec=PickupTokenCodec(qr_image_base_url=config.services.qr_image_base_url),
        notification_dispatcher=notification_dispatcher,
        account_client=account_client or AccountClient(config=config.services),
        event_bus=event_bus,
    )

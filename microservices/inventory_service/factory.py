"""
Inventory Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_stock_guard
    guard = create_stock_guard(config, notification_dispatcher, event_bus)
"""
from typing import Optional

from core.config import InfraConfig

from .stock_guard import StockGuard


def create_stock_guard(
    config: Optional[InfraConfig] = None,
    notification_dispatcher=None,
    event_bus=None,
    db=None,
) -> StockGuard:
    """
    Create StockGuard with real dependencies.

    Use this in production, NOT in tests.

    Args:
        config: Infrastructure configuration
        notification_dispatcher: Dispatcher for STOCK_LOW / STOCK_OUT
        event_bus: Event bus for publishing stock events
        db: Shared PostgreSQL client; the inventory pool is used if omitted

    Returns:
        Configured StockGuard instance
    """
    # Import real repository here (not at module level)
    from .inventory_repository import InventoryRepository

    return StockGuard(
        repository=InventoryRepository(config=config, db=db),
        notification_dispatcher=notification_dispatcher,
        event_bus=event_bus,
    )

"""
Inventory Service Events Module

Exports all event-related functionality for inventory service
"""

from .models import StockSignalEvent
from .publishers import publish_stock_signal

__all__ = [
    # Event Models
    "StockSignalEvent",
    # Publishers
    "publish_stock_signal",
]

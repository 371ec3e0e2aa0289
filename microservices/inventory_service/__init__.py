"""
Inventory Service

Stock guard for marketplace products: availability checks, atomic
reservation, restoration and low / out-of-stock signals.
"""

from .models import (
    LOW_STOCK_THRESHOLD,
    ProductStock,
    StockAvailability,
    StockChange,
    StockSignal,
    StockUnavailableReason,
)
from .protocols import (
    StockError,
    ProductNotFoundError,
    ProductInactiveError,
    InsufficientStockError,
    StockForbiddenError,
    StockValidationError,
)
from .stock_guard import StockGuard

__all__ = [
    "LOW_STOCK_THRESHOLD",
    "ProductStock",
    "StockAvailability",
    "StockChange",
    "StockSignal",
    "StockUnavailableReason",
    "StockError",
    "ProductNotFoundError",
    "ProductInactiveError",
    "InsufficientStockError",
    "StockForbiddenError",
    "StockValidationError",
    "StockGuard",
]

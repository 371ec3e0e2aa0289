"""
Inventory Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from microservices.notification_service.models import NotificationKind

from .models import ProductSales, ProductStock


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class StockError(Exception):
    """Base exception for stock guard errors"""
    error_code = "STOCK_ERROR"


class ProductNotFoundError(StockError):
    """Product does not exist"""
    error_code = "NOT_FOUND"


class ProductInactiveError(StockError):
    """Product exists but is not active"""
    error_code = "INVALID_STATE"


class InsufficientStockError(StockError):
    """Requested quantity exceeds available stock"""
    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str, available: int = 0, requested: int = 0):
        super().__init__(message)
        self.available = available
        self.requested = requested


class StockForbiddenError(StockError):
    """Actor does not own the product"""
    error_code = "FORBIDDEN"


class StockValidationError(StockError):
    """Invalid stock value"""
    error_code = "VALIDATION_ERROR"


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class ProductStockRepositoryProtocol(Protocol):
    """
    Interface for Product Stock Repository.

    Every mutation is a single conditional statement in storage, so
    concurrent callers can never drive stock below zero.
    """

    async def get_product(self, product_id: str) -> Optional[ProductStock]:
        """Get stock view of a product"""
        ...

    async def decrement_stock(self, product_id: str, quantity: int) -> Optional[int]:
        """
        Decrement stock if the product is active and has enough units.

        Returns the new stock level, or None when the condition failed.
        """
        ...

    async def increment_stock(self, product_id: str, quantity: int) -> Optional[int]:
        """Increment stock. Returns the new level, or None if the product is missing"""
        ...

    async def set_stock(self, product_id: str, stock: int) -> Optional[int]:
        """Set stock to an absolute value. Returns the new level"""
        ...

    async def list_low_stock(self, seller_id: str, threshold: int) -> List[ProductStock]:
        """Active products of a seller with 0 < stock <= threshold"""
        ...

    async def list_out_of_stock(self, seller_id: str) -> List[ProductStock]:
        """Active products of a seller with stock = 0"""
        ...

    async def list_product_sales(self, seller_id: str, since: datetime) -> List[ProductSales]:
        """Active products of a seller with orders sold since the given time"""
        ...


# ============================================================================
# Collaborator Protocols
# ============================================================================

@runtime_checkable
class NotificationDispatcherProtocol(Protocol):
    """Interface for the notification dispatcher"""

    async def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Render and deliver a notification"""
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus"""

    async def publish_event(self, event: Any) -> None:
        """Publish an event"""
        ...

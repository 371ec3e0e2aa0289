"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from microservices.inventory_service.models import StockAvailability, StockChange
from microservices.notification_service.models import NotificationKind

from .models import Branch, Order, OrderStatus, SellerStats, UserSummary


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class OrderServiceError(Exception):
    """Base exception for order service errors"""
    error_code = "ORDER_ERROR"


class OrderNotFoundError(OrderServiceError):
    """Order not found error"""
    error_code = "NOT_FOUND"


class BranchNotFoundError(OrderServiceError):
    """Pickup branch not found, or no active branch exists"""
    error_code = "NOT_FOUND"


class BranchInactiveError(OrderServiceError):
    """Pickup branch is not active"""
    error_code = "INVALID_STATE"


class BranchValidationError(OrderServiceError):
    """Branch fields missing or blank"""
    error_code = "VALIDATION_ERROR"


class InvalidTransitionError(OrderServiceError):
    """Invalid order state transition"""
    error_code = "INVALID_TRANSITION"


class OrderForbiddenError(OrderServiceError):
    """Actor may not perform this operation on the order"""
    error_code = "FORBIDDEN"


class InvalidTokenError(OrderServiceError):
    """Pickup token rejected"""
    error_code = "INVALID_TOKEN"


class MalformedTokenError(InvalidTokenError):
    """Pickup token payload cannot be decoded"""
    pass


class ExpiredTokenError(InvalidTokenError):
    """Pickup token is older than its time to live"""
    pass


class SecretMismatchError(InvalidTokenError):
    """Pickup token secret differs from the stored one"""
    pass


class InvalidPickupCodeError(OrderServiceError):
    """Presented pickup code does not match"""
    error_code = "INVALID_CODE"


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    Status updates are compare-and-set: they apply only while the stored
    status still equals expected_status, and return None otherwise.
    """

    async def create_order(self, order: Order) -> Order:
        """Persist a new order"""
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        ...

    async def list_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Order]:
        """List orders, newest first"""
        ...

    async def update_order_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        qr_code: Optional[str] = None,
        qr_secret_token: Optional[str] = None,
        pickup_code: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> Optional[Order]:
        """Move an order to new_status if it is still in expected_status"""
        ...

    async def mark_delivered(self, order_id: str, expected_status: OrderStatus) -> Optional[Order]:
        """Move an order to DELIVERED and add it to the seller aggregate in one step"""
        ...

    async def get_branch(self, branch_id: str) -> Optional[Branch]:
        """Get branch by ID"""
        ...

    async def get_first_active_branch(self) -> Optional[Branch]:
        """Oldest active branch"""
        ...

    async def list_active_branches(self) -> List[Branch]:
        """Active branches by name, each with its order count"""
        ...

    async def create_branch(self, branch: Branch) -> Branch:
        """Persist a new branch"""
        ...

    async def list_branch_orders(self, branch_id: str, status: OrderStatus) -> List[Order]:
        """Orders of a branch in one status, oldest first"""
        ...

    async def get_seller_stats(self, seller_id: str) -> Optional[SellerStats]:
        """Get seller aggregate"""
        ...


# ============================================================================
# Collaborator Protocols
# ============================================================================

@runtime_checkable
class StockGuardProtocol(Protocol):
    """Interface for the stock guard"""

    async def check_available(self, product_id: str, quantity: int) -> StockAvailability:
        ...

    async def reserve(self, product_id: str, quantity: int) -> StockChange:
        """Decrement stock without signalling"""
        ...

    async def emit_signal(self, change: StockChange) -> None:
        """Low / out-of-stock signalling for a committed change"""
        ...

    async def restore(self, product_id: str, quantity: int) -> StockChange:
        ...


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
class AccountClientProtocol(Protocol):
    """Interface for Account Service Client"""

    async def get_user(self, user_id: str) -> Optional[UserSummary]:
        """Get user role and contact info"""
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> None:
        """Publish an event"""
        ...

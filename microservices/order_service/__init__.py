"""
Order Service Package

Order fulfillment lifecycle with QR-based pickup verification.
"""

from .models import OrderStatus, DeliveryMode, Order, OrderResponse
from .order_service import OrderService
from .pickup_token import PickupTokenCodec, PickupToken, MintedToken
from .transitions import ORDER_TRANSITIONS, can_transition

__version__ = "1.0.0"
__all__ = [
    "OrderStatus",
    "DeliveryMode",
    "Order",
    "OrderResponse",
    "OrderService",
    "PickupTokenCodec",
    "PickupToken",
    "MintedToken",
    "ORDER_TRANSITIONS",
    "can_transition",
]

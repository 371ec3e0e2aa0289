"""
Order Service Event Models

Pydantic models for events published by order service
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal


class OrderCreatedEvent(BaseModel):
    """Event published when order is created"""
    order_id: str
    buyer_id: str
    seller_id: str
    product_id: str
    quantity: int
    total: Decimal
    delivery_mode: str
    branch_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OrderStatusChangedEvent(BaseModel):
    """Event published when an order moves to a new status"""
    order_id: str
    buyer_id: str
    seller_id: str
    old_status: str
    new_status: str
    actor_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

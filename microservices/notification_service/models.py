"""
Notification Service Data Models

In-app notifications, per-user delivery settings and push messages.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple
from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Lifecycle events that produce a user-facing notification"""
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    PRODUCT_READY = "PRODUCT_READY"
    PRODUCT_PICKED_UP = "PRODUCT_PICKED_UP"
    CONTACT_SELLER = "CONTACT_SELLER"
    STOCK_LOW = "STOCK_LOW"
    STOCK_OUT = "STOCK_OUT"


ORDER_KINDS = frozenset({
    NotificationKind.ORDER_CREATED,
    NotificationKind.ORDER_STATUS_CHANGED,
    NotificationKind.PRODUCT_READY,
    NotificationKind.PRODUCT_PICKED_UP,
    NotificationKind.CONTACT_SELLER,
})

STOCK_KINDS = frozenset({
    NotificationKind.STOCK_LOW,
    NotificationKind.STOCK_OUT,
})


# Title / message templates per kind; {{variable}} is replaced from the payload
NOTIFICATION_TEMPLATES: Dict[NotificationKind, Tuple[str, str]] = {
    NotificationKind.ORDER_CREATED: (
        "New order received",
        'You received a new order from {{buyer_name}} for "{{product_title}}" ({{total}})',
    ),
    NotificationKind.ORDER_STATUS_CHANGED: (
        "{{status_label}}",
        'Your order of "{{product_title}}" is now: {{status_label}}',
    ),
    NotificationKind.PRODUCT_READY: (
        "Your product is ready for pickup!",
        'Your order of "{{product_title}}" is ready at {{branch_name}}. Pickup code: {{pickup_code}}',
    ),
    NotificationKind.PRODUCT_PICKED_UP: (
        "Product picked up",
        '{{buyer_name}} picked up the order of "{{product_title}}"',
    ),
    NotificationKind.CONTACT_SELLER: (
        "Contact the seller to complete your purchase",
        'Contact {{seller_name}} to arrange payment for "{{product_title}}". {{contact_line}}',
    ),
    NotificationKind.STOCK_LOW: (
        "Low stock",
        'Product "{{product_title}}" has only {{current_stock}} units left',
    ),
    NotificationKind.STOCK_OUT: (
        "Out of stock",
        'Product "{{product_title}}" is out of stock',
    ),
}

# Human readable order status labels used in ORDER_STATUS_CHANGED
ORDER_STATUS_LABELS: Dict[str, str] = {
    "PAYMENT_PENDING": "Waiting for payment confirmation",
    "PAYMENT_CONFIRMED": "Payment confirmed",
    "PREPARING": "Product delivered to the pickup branch",
    "READY_FOR_PICKUP": "Ready for pickup",
    "PICKED_UP": "Product picked up",
    "DELIVERED": "Order delivered",
    "CANCELLED": "Order cancelled",
}


# Core Models

class Notification(BaseModel):
    """In-app notification"""
    notification_id: str
    user_id: str
    kind: NotificationKind
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: Optional[datetime] = None


class NotificationSettings(BaseModel):
    """Per-user delivery settings"""
    user_id: str
    notifications_enabled: bool = True
    order_alerts_enabled: bool = True
    stock_alerts_enabled: bool = True
    updated_at: Optional[datetime] = None

    def allows_push(self, kind: NotificationKind) -> bool:
        """Whether a push for this kind should be sent"""
        if not self.notifications_enabled:
            return False
        if kind in STOCK_KINDS:
            return self.stock_alerts_enabled
        if kind in ORDER_KINDS:
            return self.order_alerts_enabled
        return True


class PushMessage(BaseModel):
    """Expo-style push message"""
    to: str
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    sound: str = "default"
    priority: str = "high"
    channel_id: str = Field(default="default", serialization_alias="channelId")


class PushTicket(BaseModel):
    """Push gateway ticket"""
    status: str
    id: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def device_not_registered(self) -> bool:
        return self.status == "error" and self.details.get("error") == "DeviceNotRegistered"


# Request Models

class UpdateSettingsRequest(BaseModel):
    """Partial settings update"""
    notifications_enabled: Optional[bool] = None
    order_alerts_enabled: Optional[bool] = None
    stock_alerts_enabled: Optional[bool] = None


class RegisterPushTokenRequest(BaseModel):
    """Register a device push token"""
    user_id: str
    push_token: str = Field(..., min_length=1)


# Response Models

class NotificationListResponse(BaseModel):
    """Notification list response"""
    notifications: List[Notification]
    unread_count: int
    limit: int
    offset: int

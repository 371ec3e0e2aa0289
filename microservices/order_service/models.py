"""
Order Service Data Models

Pydantic models for marketplace orders, pickup branches and seller aggregates.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PICKED_UP = "PICKED_UP"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryMode(str, Enum):
    """How the buyer receives the product"""
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class UserRole(str, Enum):
    """Marketplace user role"""
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


# Core Models

class Order(BaseModel):
    """Core order model"""
    order_id: str
    buyer_id: str
    seller_id: str
    product_id: str
    product_title: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    delivery_mode: DeliveryMode = DeliveryMode.PICKUP
    delivery_address: Optional[str] = None
    branch_id: Optional[str] = None
    qr_code: Optional[str] = None
    qr_secret_token: Optional[str] = Field(default=None, exclude=True, repr=False)
    pickup_code: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Branch(BaseModel):
    """Pickup branch"""
    branch_id: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    order_count: Optional[int] = Field(None, description="Orders routed to the branch, set on listings")


class SellerStats(BaseModel):
    """Per-seller sales aggregate, counted on delivery"""
    seller_id: str
    total_sales: int = 0
    total_revenue: Decimal = Decimal("0")
    products_sold: int = 0
    last_updated: Optional[datetime] = None


class UserSummary(BaseModel):
    """User view returned by the account service"""
    user_id: str
    display_name: Optional[str] = None
    role: UserRole = UserRole.BUYER
    is_active: bool = True
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN and self.is_active

    def contact_info(self) -> dict:
        """Contact fields shared with buyers"""
        return {
            "display_name": self.display_name,
            "phone": self.phone,
            "whatsapp": self.whatsapp,
            "instagram": self.instagram,
            "facebook": self.facebook,
        }


# Request Models

class OrderCreateRequest(BaseModel):
    """Create order request"""
    buyer_id: str = Field(..., description="User placing the order")
    product_id: str = Field(..., description="Product being ordered")
    quantity: int = Field(default=1, ge=1, description="Units ordered")
    delivery_mode: DeliveryMode = Field(default=DeliveryMode.PICKUP, description="Pickup or delivery")
    branch_id: Optional[str] = Field(None, description="Pickup branch; first active branch if omitted")
    delivery_address: Optional[str] = Field(None, description="Required for delivery orders")
    notes: Optional[str] = Field(None, max_length=500, description="Free-text note for the seller")

    @model_validator(mode='after')
    def validate_delivery_address(self):
        if self.delivery_mode == DeliveryMode.DELIVERY and not (self.delivery_address or "").strip():
            raise ValueError('Delivery address is required for delivery orders')
        return self


class ConfirmPaymentRequest(BaseModel):
    """Seller confirms a manual payment"""
    seller_id: str
    payment_method: str = Field(default="cash", min_length=1)


class DeliverToBranchRequest(BaseModel):
    """Seller hands the product to the pickup branch"""
    seller_id: str


class ScanPickupTokenRequest(BaseModel):
    """Branch staff scans the QR pickup token"""
    qr_payload: str = Field(..., min_length=1)
    admin_id: str


class ConfirmPickupRequest(BaseModel):
    """Branch staff confirms the buyer's pickup code"""
    pickup_code: str = Field(..., min_length=1)
    admin_id: str


class SetStatusRequest(BaseModel):
    """Generic status change"""
    status: OrderStatus
    actor_id: str


class BranchCreateRequest(BaseModel):
    """Admin opens a new pickup branch"""
    admin_id: str
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None


class OrderFilter(BaseModel):
    """Order filtering parameters"""
    buyer_id: Optional[str] = None
    seller_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


# Response Models

class OrderResponse(BaseModel):
    """Order response model"""
    success: bool
    order: Optional[Order] = None
    message: str
    error_code: Optional[str] = None
    qr_image_url: Optional[str] = None


class OrderListResponse(BaseModel):
    """Order list response"""
    orders: List[Order]
    count: int
    limit: int
    offset: int


class BranchResponse(BaseModel):
    """Branch response model"""
    success: bool
    branch: Optional[Branch] = None
    message: str
    error_code: Optional[str] = None


class BranchListResponse(BaseModel):
    """Active branch list"""
    branches: List[Branch]
    count: int


class ReadyOrdersResponse(BaseModel):
    """Orders waiting for pickup at a branch, oldest first"""
    success: bool
    branch_id: str
    orders: List[Order] = Field(default_factory=list)
    count: int = 0
    message: str
    error_code: Optional[str] = None


class OrderServiceStatus(BaseModel):
    """Order service status"""
    service: str = "order_service"
    status: str = "operational"
    version: str = "1.0.0"
    database_connected: bool
    timestamp: datetime

"""
Inventory Service Data Models

Stock-relevant view of marketplace products and the results of stock operations.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


# Fixed stock policy: a product at or below this level is "low stock"
LOW_STOCK_THRESHOLD = 5
OUT_OF_STOCK_LEVEL = 0


class StockUnavailableReason(str, Enum):
    """Why a product cannot satisfy a requested quantity"""
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    INSUFFICIENT = "INSUFFICIENT"


class StockSignal(str, Enum):
    """Signal raised after a stock change"""
    STOCK_LOW = "STOCK_LOW"
    STOCK_OUT = "STOCK_OUT"


class ProductStock(BaseModel):
    """Stock record for a product"""
    product_id: str
    seller_id: str
    title: str
    price: Decimal = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)
    is_active: bool = True
    updated_at: Optional[datetime] = None


class StockAvailability(BaseModel):
    """Read-only availability check result"""
    product_id: str
    requested_quantity: int
    available: bool
    reason: Optional[StockUnavailableReason] = None
    current_stock: int = 0
    product: Optional[ProductStock] = None


class StockChange(BaseModel):
    """Stock level before and after a mutation"""
    product_id: str
    previous_stock: int
    new_stock: int
    signal: Optional[StockSignal] = None


# Request / Response Models

class StockSetRequest(BaseModel):
    """Manual stock set by the owning seller"""
    seller_id: str = Field(..., description="Seller performing the update")
    stock: int = Field(..., description="New stock level")


class BulkStockUpdateItem(BaseModel):
    """One entry of a bulk stock update"""
    product_id: str
    stock: int


class BulkStockUpdateRequest(BaseModel):
    """Bulk stock update request"""
    seller_id: str
    updates: List[BulkStockUpdateItem] = Field(default_factory=list)


class BulkStockUpdateResult(BaseModel):
    """Per-item result of a bulk stock update"""
    product_id: str
    success: bool
    change: Optional[StockChange] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


# Analytics

# Order statuses that count as a sale (payment confirmed onwards)
SOLD_ORDER_STATUSES = (
    "PAYMENT_CONFIRMED",
    "PREPARING",
    "READY_FOR_PICKUP",
    "PICKED_UP",
    "DELIVERED",
)

TOP_SELLING_LIMIT = 10

# Reorder policy, in days of stock
REORDER_COVER_DAYS = 30
REORDER_SOON_DAYS = 7
PLAN_REORDER_DAYS = 14


class AnalyticsPeriod(str, Enum):
    """Window for stock analytics"""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        return {"week": 7, "month": 30, "year": 365}[self.value]


class ReorderAction(str, Enum):
    """Reorder recommendation"""
    REORDER_NOW = "REORDER_NOW"
    REORDER_SOON = "REORDER_SOON"
    PLAN_REORDER = "PLAN_REORDER"


class ReorderUrgency(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ProductSales(ProductStock):
    """Product stock with the number of sold orders in a window"""
    orders_sold: int = 0


class StockDistribution(BaseModel):
    """Share of products per stock band, in percent"""
    out_of_stock: float = 0.0
    low_stock: float = 0.0
    in_stock: float = 0.0


class StockAnalytics(BaseModel):
    """Stock overview of a seller's active products"""
    seller_id: str
    period: AnalyticsPeriod
    total_products: int = 0
    out_of_stock: int = 0
    low_stock: int = 0
    in_stock: int = 0
    total_orders_sold: int = 0
    average_stock_level: float = 0.0
    top_selling_products: List[ProductSales] = Field(default_factory=list)
    stock_distribution: StockDistribution = Field(default_factory=StockDistribution)


class ReorderSuggestion(BaseModel):
    """Reorder recommendation for one product"""
    product_id: str
    product_title: str
    current_stock: int
    daily_sales_rate: float
    days_of_stock_remaining: Optional[float] = None
    suggestion: ReorderAction
    suggested_quantity: int
    urgency: ReorderUrgency

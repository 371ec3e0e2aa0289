"""
Inventory Service Event Models

Pydantic models for events published by inventory service
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone


class StockSignalEvent(BaseModel):
    """Event published when a product runs low or out of stock"""
    product_id: str
    seller_id: str
    product_title: str
    current_stock: int
    threshold: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

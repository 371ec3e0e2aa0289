"""
Order Microservice

Responsibilities:
- Order creation with atomic stock reservation
- Manual payment confirmation and branch handoff
- QR pickup token scan and pickup code verification
- Pickup branches and the per-branch ready-for-pickup queue
- Seller stock management, low / out-of-stock listings, analytics and reorder advice
- In-app notifications and notification settings
"""

from fastapi import FastAPI, HTTPException, Depends, status, Query, Path
from fastapi.responses import JSONResponse
import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_all_clients
from microservices.inventory_service.models import (
    LOW_STOCK_THRESHOLD, REORDER_COVER_DAYS, ProductStock, StockAvailability, StockChange,
    StockSetRequest, BulkStockUpdateRequest, BulkStockUpdateResult,
    AnalyticsPeriod, StockAnalytics, ReorderSuggestion,
)
from microservices.inventory_service.protocols import StockError
from microservices.inventory_service.stock_guard import StockGuard
from microservices.notification_service.models import (
    NotificationListResponse, NotificationSettings,
    UpdateSettingsRequest, RegisterPushTokenRequest,
)
from microservices.notification_service.notification_service import NotificationService
from microservices.notification_service.protocols import NotificationServiceError

from .factory import create_order_service
from .order_service import OrderService
from .models import (
    OrderCreateRequest, OrderResponse, OrderListResponse, OrderFilter, OrderStatus,
    ConfirmPaymentRequest, DeliverToBranchRequest, ScanPickupTokenRequest,
    ConfirmPickupRequest, SetStatusRequest, SellerStats, OrderServiceStatus,
    BranchCreateRequest, BranchResponse, BranchListResponse, ReadyOrdersResponse,
)

# Initialize configuration
settings = get_settings()

# Setup loggers (use actual service name)
logger = setup_service_logger("order_service")

# Error code -> HTTP status
ERROR_STATUS_CODES = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INSUFFICIENT_STOCK": status.HTTP_409_CONFLICT,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "INVALID_STATE": status.HTTP_400_BAD_REQUEST,
    "INVALID_TOKEN": status.HTTP_400_BAD_REQUEST,
    "INVALID_CODE": status.HTTP_400_BAD_REQUEST,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
}


def http_status_for(error_code: Optional[str]) -> int:
    return ERROR_STATUS_CODES.get(error_code or "", status.HTTP_500_INTERNAL_SERVER_ERROR)


class OrderMicroservice:
    """Order microservice core class"""

    def __init__(self):
        self.order_service: Optional[OrderService] = None
        self.stock_guard: Optional[StockGuard] = None
        self.notification_service: Optional[NotificationService] = None
        self.event_bus = None
        self.db = None

    async def initialize(self, event_bus=None):
        """Initialize the microservice"""
        try:
            self.event_bus = event_bus
            self.order_service = create_order_service(settings, event_bus=event_bus)
            self.stock_guard = self.order_service.stock_guard
            self.notification_service = self.order_service.notification_dispatcher
            self.db = getattr(self.order_service.repository, "db", None)
            logger.info("Order microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize order microservice: {e}")
            raise

        if self.db is not None:
            try:
                await self.db.connect()
            except Exception as e:
                logger.warning(f"⚠️  PostgreSQL not reachable at startup: {e}. Pool opens on first use.")

    async def health(self) -> bool:
        """Database reachability"""
        if self.db is None:
            return False
        return await self.db.health_check()

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.order_service:
                await self.order_service.close()
            if self.notification_service:
                await self.notification_service.close()
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            await close_all_clients()
            logger.info("Order microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


# Global microservice instance
order_microservice = OrderMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    event_bus = None
    if settings.infrastructure.nats_enabled:
        try:
            event_bus = await get_event_bus("order_service")
            logger.info("✅ Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"⚠️  Failed to initialize event bus: {e}. Continuing without event publishing.")
            event_bus = None

    await order_microservice.initialize(event_bus=event_bus)

    yield

    await order_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Order Service",
    description="Marketplace order fulfillment with QR pickup verification",
    version="1.0.0",
    lifespan=lifespan
)


# Dependency injection
def get_order_service() -> OrderService:
    """Get order service instance"""
    if not order_microservice.order_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order service not initialized"
        )
    return order_microservice.order_service


def get_stock_guard() -> StockGuard:
    """Get stock guard instance"""
    if not order_microservice.stock_guard:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stock guard not initialized"
        )
    return order_microservice.stock_guard


def get_notification_service() -> NotificationService:
    """Get notification service instance"""
    if not order_microservice.notification_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification service not initialized"
        )
    return order_microservice.notification_service


def order_result(result):
    """Successful results pass through; failures carry their mapped status

    Works for any response model with success and error_code fields.
    """
    if result.success:
        return result
    return JSONResponse(
        status_code=http_status_for(result.error_code),
        content=result.model_dump(mode='json')
    )


# Health check endpoints
@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": "order_service",
        "port": settings.order_service_port,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health/detailed", response_model=OrderServiceStatus)
async def detailed_health_check():
    """Detailed health check with database connectivity"""
    database_connected = await order_microservice.health()
    return OrderServiceStatus(
        status="operational" if database_connected else "degraded",
        database_connected=database_connected,
        timestamp=datetime.now(timezone.utc)
    )


# ==================== Orders ====================

@app.post("/api/v1/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    order_service: OrderService = Depends(get_order_service)
):
    """Create a new order"""
    return order_result(await order_service.create_order(request))


@app.get("/api/v1/orders", response_model=OrderListResponse)
async def list_orders(
    buyer_id: Optional[str] = Query(None, description="Filter by buyer"),
    seller_id: Optional[str] = Query(None, description="Filter by seller"),
    order_status: Optional[OrderStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    order_service: OrderService = Depends(get_order_service)
):
    """List orders with filtering"""
    filter_params = OrderFilter(
        buyer_id=buyer_id,
        seller_id=seller_id,
        status=order_status,
        limit=limit,
        offset=offset
    )
    return await order_service.list_orders(filter_params)


@app.post("/api/v1/orders/scan-qr", response_model=OrderResponse)
async def scan_pickup_token(
    request: ScanPickupTokenRequest,
    order_service: OrderService = Depends(get_order_service)
):
    """Branch staff scans the QR pickup token"""
    return order_result(await order_service.scan_for_pickup_ready(request.qr_payload, request.admin_id))


@app.get("/api/v1/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Path(..., description="Order ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Get order details"""
    return order_result(await order_service.get_order(order_id))


@app.post("/api/v1/orders/{order_id}/confirm-payment", response_model=OrderResponse)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    order_id: str = Path(..., description="Order ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Seller confirms payment"""
    return order_result(
        await order_service.confirm_payment(order_id, request.seller_id, request.payment_method)
    )


@app.post("/api/v1/orders/{order_id}/deliver-to-branch", response_model=OrderResponse)
async def deliver_to_branch(
    request: DeliverToBranchRequest,
    order_id: str = Path(..., description="Order ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Seller hands the product to the pickup branch"""
    return order_result(await order_service.deliver_to_branch(order_id, request.seller_id))


@app.post("/api/v1/orders/{order_id}/confirm-pickup", response_model=OrderResponse)
async def confirm_pickup(
    request: ConfirmPickupRequest,
    order_id: str = Path(..., description="Order ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Branch staff confirms the buyer's pickup code"""
    return order_result(
        await order_service.confirm_pickup(order_id, request.pickup_code, request.admin_id)
    )


@app.put("/api/v1/orders/{order_id}/status", response_model=OrderResponse)
async def set_order_status(
    request: SetStatusRequest,
    order_id: str = Path(..., description="Order ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Generic status change (payment pending, delivered, cancelled)"""
    return order_result(await order_service.set_status(order_id, request.status, request.actor_id))


@app.get("/api/v1/sellers/{seller_id}/stats", response_model=SellerStats)
async def get_seller_stats(
    seller_id: str = Path(..., description="Seller ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Seller sales aggregate"""
    return await order_service.get_seller_stats(seller_id)


# ==================== Branches ====================

@app.get("/api/v1/branches", response_model=BranchListResponse)
async def list_branches(order_service: OrderService = Depends(get_order_service)):
    """Active pickup branches by name"""
    return await order_service.list_branches()


@app.post("/api/v1/branches", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    request: BranchCreateRequest,
    order_service: OrderService = Depends(get_order_service)
):
    """Admin opens a pickup branch"""
    return order_result(await order_service.create_branch(request))


@app.get("/api/v1/branches/{branch_id}/orders-ready", response_model=ReadyOrdersResponse)
async def list_ready_orders(
    branch_id: str = Path(..., description="Branch ID"),
    admin_id: str = Query(..., description="Branch staff user ID"),
    order_service: OrderService = Depends(get_order_service)
):
    """Orders waiting for pickup at a branch, oldest first"""
    return order_result(await order_service.list_ready_orders(branch_id, admin_id))


# ==================== Stock ====================

@app.get("/api/v1/products/{product_id}/stock/check", response_model=StockAvailability)
async def check_stock(
    product_id: str = Path(..., description="Product ID"),
    quantity: int = Query(1, ge=1),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Check whether a product can satisfy a quantity"""
    return await stock_guard.check_available(product_id, quantity)


@app.put("/api/v1/products/{product_id}/stock", response_model=StockChange)
async def set_stock(
    request: StockSetRequest,
    product_id: str = Path(..., description="Product ID"),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Owning seller sets the stock level"""
    return await stock_guard.manual_set(product_id, request.stock, request.seller_id)


@app.post("/api/v1/stock/bulk", response_model=List[BulkStockUpdateResult])
async def bulk_update_stock(
    request: BulkStockUpdateRequest,
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Set the stock of several products of one seller"""
    return await stock_guard.bulk_update_stock(request.seller_id, request.updates)


@app.get("/api/v1/sellers/{seller_id}/products/low-stock", response_model=List[ProductStock])
async def get_low_stock_products(
    seller_id: str = Path(..., description="Seller ID"),
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=1),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Active products running low"""
    return await stock_guard.get_low_stock_products(seller_id, threshold)


@app.get("/api/v1/sellers/{seller_id}/products/out-of-stock", response_model=List[ProductStock])
async def get_out_of_stock_products(
    seller_id: str = Path(..., description="Seller ID"),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Active products with no stock"""
    return await stock_guard.get_out_of_stock_products(seller_id)


@app.get("/api/v1/sellers/{seller_id}/stock/analytics", response_model=StockAnalytics)
async def get_stock_analytics(
    seller_id: str = Path(..., description="Seller ID"),
    period: AnalyticsPeriod = Query(AnalyticsPeriod.MONTH),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Stock bands and best sellers over a period"""
    return await stock_guard.get_stock_analytics(seller_id, period)


@app.get("/api/v1/sellers/{seller_id}/stock/reorder-suggestions", response_model=List[ReorderSuggestion])
async def get_reorder_suggestions(
    seller_id: str = Path(..., description="Seller ID"),
    lookback_days: int = Query(REORDER_COVER_DAYS, ge=1, le=365),
    stock_guard: StockGuard = Depends(get_stock_guard)
):
    """Products to reorder given their recent sales rate"""
    return await stock_guard.get_reorder_suggestions(seller_id, lookback_days)


# ==================== Notifications ====================

@app.get("/api/v1/users/{user_id}/notifications", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str = Path(..., description="User ID"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """List a user's notifications"""
    return await notification_service.list_notifications(
        user_id, limit=limit, offset=offset, unread_only=unread_only
    )


@app.get("/api/v1/users/{user_id}/notifications/unread-count")
async def get_unread_count(
    user_id: str = Path(..., description="User ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Unread notification count"""
    return {"user_id": user_id, "unread_count": await notification_service.get_unread_count(user_id)}


@app.post("/api/v1/users/{user_id}/notifications/read-all")
async def mark_all_notifications_read(
    user_id: str = Path(..., description="User ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Mark all notifications as read"""
    return {"user_id": user_id, "updated": await notification_service.mark_all_as_read(user_id)}


@app.post("/api/v1/users/{user_id}/notifications/{notification_id}/read")
async def mark_notification_read(
    user_id: str = Path(..., description="User ID"),
    notification_id: str = Path(..., description="Notification ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Mark a notification as read"""
    await notification_service.mark_as_read(notification_id, user_id)
    return {"notification_id": notification_id, "is_read": True}


@app.get("/api/v1/users/{user_id}/notification-settings", response_model=NotificationSettings)
async def get_notification_settings(
    user_id: str = Path(..., description="User ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Get notification settings"""
    return await notification_service.get_settings(user_id)


@app.put("/api/v1/users/{user_id}/notification-settings", response_model=NotificationSettings)
async def update_notification_settings(
    request: UpdateSettingsRequest,
    user_id: str = Path(..., description="User ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Update notification settings"""
    return await notification_service.update_settings(user_id, request)


@app.post("/api/v1/push-tokens", status_code=status.HTTP_204_NO_CONTENT)
async def register_push_token(
    request: RegisterPushTokenRequest,
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Register a device push token"""
    await notification_service.register_push_token(request.user_id, request.push_token)


@app.delete("/api/v1/users/{user_id}/push-token", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_push_token(
    user_id: str = Path(..., description="User ID"),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Remove the user's device push token"""
    await notification_service.unregister_push_token(user_id)


# Error handlers
@app.exception_handler(StockError)
async def stock_error_handler(request, exc: StockError):
    return JSONResponse(
        status_code=http_status_for(exc.error_code),
        content={"detail": str(exc), "error_code": exc.error_code}
    )


@app.exception_handler(NotificationServiceError)
async def notification_error_handler(request, exc: NotificationServiceError):
    return JSONResponse(
        status_code=http_status_for(exc.error_code),
        content={"detail": str(exc), "error_code": exc.error_code}
    )


if __name__ == "__main__":
    uvicorn.run(
        "microservices.order_service.main:app",
        host=settings.default_host,
        port=settings.order_service_port,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower()
    )

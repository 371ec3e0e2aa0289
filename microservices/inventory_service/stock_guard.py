"""
Stock Guard

Business logic for product stock: availability checks, atomic reservation,
restoration on cancellation, manual adjustments by the owning seller,
low / out-of-stock signalling and per-seller stock analytics.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from core.nats_client import EventType
from microservices.notification_service.models import NotificationKind

from .events.publishers import publish_stock_signal
from .models import (
    LOW_STOCK_THRESHOLD, OUT_OF_STOCK_LEVEL, TOP_SELLING_LIMIT,
    REORDER_COVER_DAYS, REORDER_SOON_DAYS, PLAN_REORDER_DAYS,
    ProductStock, StockAvailability, StockChange, StockSignal, StockUnavailableReason,
    BulkStockUpdateItem, BulkStockUpdateResult,
    AnalyticsPeriod, StockAnalytics, StockDistribution,
    ReorderAction, ReorderSuggestion, ReorderUrgency,
)
from .protocols import (
    ProductStockRepositoryProtocol,
    NotificationDispatcherProtocol,
    EventBusProtocol,
    StockError,
    ProductNotFoundError,
    ProductInactiveError,
    InsufficientStockError,
    StockForbiddenError,
    StockValidationError,
)

logger = logging.getLogger(__name__)


def stock_signal_for(stock: int) -> Optional[StockSignal]:
    """Classify a stock level against the fixed thresholds"""
    if stock <= OUT_OF_STOCK_LEVEL:
        return StockSignal.STOCK_OUT
    if stock <= LOW_STOCK_THRESHOLD:
        return StockSignal.STOCK_LOW
    return None


class StockGuard:
    """
    Stock guard service

    Reservation is delegated to a single conditional decrement in storage,
    so concurrent reservations of the last unit can never oversell.
    """

    def __init__(
        self,
        repository: ProductStockRepositoryProtocol,
        notification_dispatcher: Optional[NotificationDispatcherProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.notification_dispatcher = notification_dispatcher
        self.event_bus = event_bus
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        logger.info("✅ StockGuard initialized")

    # =========================================================================
    # Availability
    # =========================================================================

    async def check_available(self, product_id: str, quantity: int) -> StockAvailability:
        """Read-only check that a product can satisfy the requested quantity"""
        product = await self.repository.get_product(product_id)

        if not product:
            return StockAvailability(
                product_id=product_id,
                requested_quantity=quantity,
                available=False,
                reason=StockUnavailableReason.NOT_FOUND,
            )

        if not product.is_active:
            reason = StockUnavailableReason.INACTIVE
        elif product.stock < quantity:
            reason = StockUnavailableReason.INSUFFICIENT
        else:
            reason = None

        return StockAvailability(
            product_id=product_id,
            requested_quantity=quantity,
            available=reason is None,
            reason=reason,
            current_stock=product.stock,
            product=product,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def reserve(self, product_id: str, quantity: int) -> StockChange:
        """
        Atomically decrement stock for an order.

        No signal is emitted here: the caller passes the returned change to
        emit_signal once the order holding the units is stored.

        Raises:
            StockValidationError: quantity < 1
            ProductNotFoundError / ProductInactiveError / InsufficientStockError
        """
        if quantity < 1:
            raise StockValidationError("Quantity must be at least 1")

        new_stock = await self.repository.decrement_stock(product_id, quantity)

        if new_stock is None:
            # The conditional update matched nothing; find out why
            product = await self.repository.get_product(product_id)
            if not product:
                raise ProductNotFoundError(f"Product {product_id} not found")
            if not product.is_active:
                raise ProductInactiveError(f"Product {product_id} is not active")
            raise InsufficientStockError(
                f"Insufficient stock for product {product_id}: "
                f"{product.stock} available, {quantity} requested",
                available=product.stock,
                requested=quantity,
            )

        change = StockChange(
            product_id=product_id,
            previous_stock=new_stock + quantity,
            new_stock=new_stock,
            signal=stock_signal_for(new_stock),
        )
        logger.info(f"Reserved {quantity} of {product_id}: {change.previous_stock} -> {new_stock}")
        return change

    async def restore(self, product_id: str, quantity: int) -> StockChange:
        """Return reserved units to stock (no upper bound)"""
        if quantity < 1:
            raise StockValidationError("Quantity must be at least 1")

        new_stock = await self.repository.increment_stock(product_id, quantity)
        if new_stock is None:
            raise ProductNotFoundError(f"Product {product_id} not found")

        logger.info(f"Restored {quantity} of {product_id}: now {new_stock}")
        return StockChange(
            product_id=product_id,
            previous_stock=new_stock - quantity,
            new_stock=new_stock,
        )

    async def manual_set(self, product_id: str, new_stock: int, owner_id: str) -> StockChange:
        """Set stock directly; only the owning seller may do this"""
        if new_stock < 0:
            raise StockValidationError("Stock cannot be negative")

        product = await self.repository.get_product(product_id)
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")
        if product.seller_id != owner_id:
            raise StockForbiddenError(f"User {owner_id} does not own product {product_id}")

        stored = await self.repository.set_stock(product_id, new_stock)
        if stored is None:
            raise ProductNotFoundError(f"Product {product_id} not found")

        change = StockChange(
            product_id=product_id,
            previous_stock=product.stock,
            new_stock=stored,
            signal=stock_signal_for(stored),
        )
        logger.info(f"Stock of {product_id} set by {owner_id}: {product.stock} -> {stored}")

        await self.emit_signal(change, product)
        return change

    async def bulk_update_stock(
        self,
        seller_id: str,
        updates: List[BulkStockUpdateItem],
    ) -> List[BulkStockUpdateResult]:
        """Apply several manual sets; one failing item does not stop the others"""
        results = []
        for item in updates:
            try:
                change = await self.manual_set(item.product_id, item.stock, seller_id)
                results.append(BulkStockUpdateResult(
                    product_id=item.product_id,
                    success=True,
                    change=change,
                ))
            except StockError as e:
                results.append(BulkStockUpdateResult(
                    product_id=item.product_id,
                    success=False,
                    error_code=e.error_code,
                    message=str(e),
                ))
        return results

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_low_stock_products(
        self,
        seller_id: str,
        threshold: int = LOW_STOCK_THRESHOLD,
    ) -> List[ProductStock]:
        """Active products of a seller at or below the threshold (excluding empty ones)"""
        return await self.repository.list_low_stock(seller_id, threshold)

    async def get_out_of_stock_products(self, seller_id: str) -> List[ProductStock]:
        """Active products of a seller with no stock left"""
        return await self.repository.list_out_of_stock(seller_id)

    # =========================================================================
    # Analytics
    # =========================================================================

    async def get_stock_analytics(
        self,
        seller_id: str,
        period: AnalyticsPeriod = AnalyticsPeriod.MONTH,
    ) -> StockAnalytics:
        """
        Stock bands, average level and best sellers over a period

        Products are the seller's active ones; sales are orders from payment
        confirmation onwards created within the period.
        """
        since = self.clock() - timedelta(days=period.days)
        products = await self.repository.list_product_sales(seller_id, since)

        analytics = StockAnalytics(seller_id=seller_id, period=period)
        if not products:
            return analytics

        total = len(products)
        analytics.total_products = total
        analytics.out_of_stock = sum(1 for p in products if p.stock <= OUT_OF_STOCK_LEVEL)
        analytics.low_stock = sum(1 for p in products if OUT_OF_STOCK_LEVEL < p.stock <= LOW_STOCK_THRESHOLD)
        analytics.in_stock = total - analytics.out_of_stock - analytics.low_stock
        analytics.total_orders_sold = sum(p.orders_sold for p in products)
        analytics.average_stock_level = round(sum(p.stock for p in products) / total, 2)
        analytics.top_selling_products = sorted(
            products, key=lambda p: p.orders_sold, reverse=True
        )[:TOP_SELLING_LIMIT]
        analytics.stock_distribution = StockDistribution(
            out_of_stock=round(analytics.out_of_stock * 100 / total, 2),
            low_stock=round(analytics.low_stock * 100 / total, 2),
            in_stock=round(analytics.in_stock * 100 / total, 2),
        )
        return analytics

    async def get_reorder_suggestions(
        self,
        seller_id: str,
        lookback_days: int = REORDER_COVER_DAYS,
    ) -> List[ReorderSuggestion]:
        """
        Reorder advice from the sales rate over the lookback window

        Empty products must be reordered now; otherwise the days of stock left
        at the current rate decide between soon (<= 7) and planned (<= 14).
        Suggested quantities cover 30 days of sales.
        """
        if lookback_days < 1:
            raise StockValidationError("Lookback must be at least one day")

        since = self.clock() - timedelta(days=lookback_days)
        products = await self.repository.list_product_sales(seller_id, since)

        suggestions = []
        for product in products:
            daily_rate = product.orders_sold / lookback_days
            days_left = product.stock * lookback_days / product.orders_sold if product.orders_sold else None

            if product.stock <= OUT_OF_STOCK_LEVEL:
                action, urgency = ReorderAction.REORDER_NOW, ReorderUrgency.HIGH
            elif days_left is not None and days_left <= REORDER_SOON_DAYS:
                action, urgency = ReorderAction.REORDER_SOON, ReorderUrgency.MEDIUM
            elif days_left is not None and days_left <= PLAN_REORDER_DAYS:
                action, urgency = ReorderAction.PLAN_REORDER, ReorderUrgency.LOW
            else:
                continue

            suggestions.append(ReorderSuggestion(
                product_id=product.product_id,
                product_title=product.title,
                current_stock=product.stock,
                daily_sales_rate=round(daily_rate, 2),
                days_of_stock_remaining=round(days_left, 2) if days_left is not None else None,
                suggestion=action,
                suggested_quantity=math.ceil(product.orders_sold * REORDER_COVER_DAYS / lookback_days),
                urgency=urgency,
            ))
        return suggestions

    # =========================================================================
    # Signals
    # =========================================================================

    async def emit_signal(self, change: StockChange, product: Optional[ProductStock] = None):
        """
        Notify the owner and publish a stock event for a committed change.

        The notification and the event are independent; a failure of one
        is logged and does not skip the other. Never raises.
        """
        if change.signal is None:
            return

        if product is None:
            try:
                product = await self.repository.get_product(change.product_id)
            except Exception as e:
                logger.error(f"Failed to load {change.product_id} for {change.signal.value}: {e}")
                return
        if not product or not product.is_active:
            return

        if change.signal == StockSignal.STOCK_OUT:
            kind, event_type = NotificationKind.STOCK_OUT, EventType.STOCK_OUT
        else:
            kind, event_type = NotificationKind.STOCK_LOW, EventType.STOCK_LOW

        if self.notification_dispatcher:
            try:
                await self.notification_dispatcher.notify(
                    product.seller_id,
                    kind,
                    {
                        "product_id": product.product_id,
                        "product_title": product.title,
                        "current_stock": change.new_stock,
                        "threshold": LOW_STOCK_THRESHOLD,
                    },
                )
            except Exception as e:
                logger.error(f"Failed to send {kind.value} notification for {product.product_id}: {e}")

        # Publisher logs and swallows its own failures
        await publish_stock_signal(
            self.event_bus,
            event_type,
            product_id=product.product_id,
            seller_id=product.seller_id,
            product_title=product.title,
            current_stock=change.new_stock,
            threshold=LOW_STOCK_THRESHOLD,
        )

"""
Order Service Business Logic

Order fulfillment lifecycle: creation with stock reservation, manual payment
confirmation, branch handoff with QR pickup token, staff scan, pickup code
verification and the generic status changes (delivered / cancelled).

Every status change is checked against ORDER_TRANSITIONS and applied as a
compare-and-set in storage. Notifications and events run after the change
is stored and never undo it.
"""

from typing import Any, Dict, Optional
import hmac
import logging
import uuid

from microservices.inventory_service.models import StockUnavailableReason
from microservices.inventory_service.protocols import (
    StockError,
    ProductNotFoundError,
    ProductInactiveError,
    InsufficientStockError,
)
from microservices.notification_service.models import NotificationKind

from .models import (
    Branch, BranchCreateRequest, BranchListResponse, BranchResponse,
    DeliveryMode, Order, OrderCreateRequest, OrderFilter, ReadyOrdersResponse,
    OrderListResponse, OrderResponse, OrderStatus, SellerStats, UserSummary,
)
from .pickup_token import PickupTokenCodec
from .protocols import (
    OrderRepositoryProtocol,
    StockGuardProtocol,
    NotificationDispatcherProtocol,
    AccountClientProtocol,
    EventBusProtocol,
    OrderServiceError,
    OrderNotFoundError,
    BranchNotFoundError,
    BranchInactiveError,
    InvalidTransitionError,
    OrderForbiddenError,
    InvalidPickupCodeError,
    BranchValidationError,
)
from .transitions import BUYER_CANCELLABLE, SET_STATUS_TARGETS, can_transition

# Import event publishers
from .events.publishers import publish_order_created, publish_order_status_changed

logger = logging.getLogger(__name__)


class OrderService:
    """
    Order lifecycle engine

    Operations return OrderResponse; failures carry a stable error_code.
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        stock_guard: StockGuardProtocol,
        token_codec: Optional[PickupTokenCodec] = None,
        notification_dispatcher: Optional[NotificationDispatcherProtocol] = None,
        account_client: Optional[AccountClientProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        """
        Initialize Order Service

        Args:
            repository: Order repository
            stock_guard: Stock guard for availability, reservation and restore
            token_codec: Pickup token codec
            notification_dispatcher: Notification dispatcher (optional)
            account_client: Account service client for roles and contact info
            event_bus: NATS event bus instance (optional)
        """
        self.repository = repository
        self.stock_guard = stock_guard
        self.token_codec = token_codec or PickupTokenCodec()
        self.notification_dispatcher = notification_dispatcher
        self.account_client = account_client
        self.event_bus = event_bus

        logger.info("✅ OrderService initialized")

    # =========================================================================
    # Order Creation
    # =========================================================================

    async def create_order(self, request: OrderCreateRequest) -> OrderResponse:
        """
        Create a new order

        Checks the product, resolves the pickup branch, mints the pickup
        token, reserves stock and stores the order in PENDING.
        """
        try:
            availability = await self.stock_guard.check_available(request.product_id, request.quantity)
            if not availability.available:
                self._raise_unavailable(availability.reason, request, availability.current_stock)

            product = availability.product

            branch_id = None
            if request.delivery_mode == DeliveryMode.PICKUP:
                branch = await self._resolve_branch(request.branch_id)
                branch_id = branch.branch_id

            order_id = f"ord_{uuid.uuid4().hex[:12]}"
            minted = self.token_codec.mint(order_id)

            stock_change = await self.stock_guard.reserve(request.product_id, request.quantity)

            order = Order(
                order_id=order_id,
                buyer_id=request.buyer_id,
                seller_id=product.seller_id,
                product_id=product.product_id,
                product_title=product.title,
                quantity=request.quantity,
                unit_price=product.price,
                total=product.price * request.quantity,
                status=OrderStatus.PENDING,
                delivery_mode=request.delivery_mode,
                delivery_address=request.delivery_address,
                branch_id=branch_id,
                qr_code=minted.payload,
                qr_secret_token=minted.secret,
                notes=request.notes,
            )

            try:
                order = await self.repository.create_order(order)
            except Exception:
                await self._release_stock(order)
                raise

            logger.info(f"Order created: {order.order_id} for buyer {request.buyer_id}")

            # Signal only for units held by a stored order
            await self.stock_guard.emit_signal(stock_change)

            buyer = await self._lookup_user(order.buyer_id)
            seller = await self._lookup_user(order.seller_id)

            await self._notify(order.seller_id, NotificationKind.ORDER_CREATED, {
                "order_id": order.order_id,
                "product_title": order.product_title,
                "buyer_name": self._display_name(buyer, order.buyer_id),
                "total": str(order.total),
            })
            await self._notify(order.buyer_id, NotificationKind.CONTACT_SELLER, {
                "order_id": order.order_id,
                "product_title": order.product_title,
                "seller_name": self._display_name(seller, order.seller_id),
                "seller_info": seller.contact_info() if seller else {},
            })

            if self.event_bus:
                await publish_order_created(self.event_bus, order)

            return OrderResponse(
                success=True,
                order=order,
                message="Order created successfully",
                qr_image_url=self.token_codec.image_url(order.qr_code),
            )

        except (OrderServiceError, StockError) as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to create order: {e}")
            return self._internal_error("create order", e)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_order(self, order_id: str) -> OrderResponse:
        """Get order by ID"""
        try:
            order = await self._get_order_or_raise(order_id)
            return OrderResponse(success=True, order=order, message="Order retrieved")
        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            return self._internal_error("get order", e)

    async def list_orders(self, filter_params: OrderFilter) -> OrderListResponse:
        """List orders with filtering, newest first"""
        orders = await self.repository.list_orders(
            buyer_id=filter_params.buyer_id,
            seller_id=filter_params.seller_id,
            status=filter_params.status,
            limit=filter_params.limit,
            offset=filter_params.offset,
        )
        return OrderListResponse(
            orders=orders,
            count=len(orders),
            limit=filter_params.limit,
            offset=filter_params.offset,
        )

    async def get_seller_stats(self, seller_id: str) -> SellerStats:
        """Seller aggregate, zeros if the seller has no delivered orders"""
        stats = await self.repository.get_seller_stats(seller_id)
        return stats or SellerStats(seller_id=seller_id)

    # =========================================================================
    # Seller Operations
    # =========================================================================

    async def confirm_payment(
        self,
        order_id: str,
        seller_id: str,
        payment_method: str = "cash",
    ) -> OrderResponse:
        """Seller confirms a manual payment: PENDING / PAYMENT_PENDING -> PAYMENT_CONFIRMED"""
        try:
            order = await self._get_order_or_raise(order_id)
            self._require_seller(order, seller_id)

            updated = await self._transition(
                order,
                OrderStatus.PAYMENT_CONFIRMED,
                actor_id=seller_id,
                payment_method=payment_method,
            )
            await self._notify_status_changed(updated)

            return OrderResponse(success=True, order=updated, message="Payment confirmed")

        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to confirm payment for order {order_id}: {e}")
            return self._internal_error("confirm payment", e)

    async def deliver_to_branch(self, order_id: str, seller_id: str) -> OrderResponse:
        """
        Seller hands the product to the branch: PENDING / PAYMENT_CONFIRMED -> PREPARING

        A new pickup token is minted; the previous secret stops validating.
        """
        try:
            order = await self._get_order_or_raise(order_id)
            self._require_seller(order, seller_id)

            minted = self.token_codec.mint(order.order_id)
            updated = await self._transition(
                order,
                OrderStatus.PREPARING,
                actor_id=seller_id,
                qr_code=minted.payload,
                qr_secret_token=minted.secret,
            )
            await self._notify_status_changed(updated)

            return OrderResponse(
                success=True,
                order=updated,
                message="Product delivered to branch",
                qr_image_url=self.token_codec.image_url(minted.payload),
            )

        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to deliver order {order_id} to branch: {e}")
            return self._internal_error("deliver to branch", e)

    # =========================================================================
    # Branch Staff Operations
    # =========================================================================

    async def scan_for_pickup_ready(self, scanned_token: str, admin_id: str) -> OrderResponse:
        """
        Branch staff scans the QR token: PREPARING -> READY_FOR_PICKUP

        Generates the pickup code the buyer presents at handoff.
        """
        try:
            await self._require_admin(admin_id)

            token = self.token_codec.decode(scanned_token)
            order = await self._get_order_or_raise(token.order_id)
            self.token_codec.validate(scanned_token, order.qr_secret_token)

            pickup_code = self.token_codec.generate_pickup_code()
            updated = await self._transition(
                order,
                OrderStatus.READY_FOR_PICKUP,
                actor_id=admin_id,
                pickup_code=pickup_code,
            )

            branch = await self._get_branch_quietly(updated.branch_id)
            await self._notify(updated.buyer_id, NotificationKind.PRODUCT_READY, {
                "order_id": updated.order_id,
                "product_title": updated.product_title,
                "pickup_code": pickup_code,
                "branch_id": updated.branch_id,
                "branch_name": branch.name if branch else None,
            })

            return OrderResponse(success=True, order=updated, message="Order ready for pickup")

        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to process QR scan: {e}")
            return self._internal_error("scan pickup token", e)

    async def confirm_pickup(self, order_id: str, pickup_code: str, admin_id: str) -> OrderResponse:
        """Branch staff verifies the buyer's code: READY_FOR_PICKUP -> PICKED_UP"""
        try:
            await self._require_admin(admin_id)
            order = await self._get_order_or_raise(order_id)

            if order.status != OrderStatus.READY_FOR_PICKUP:
                raise InvalidTransitionError(
                    f"Order {order_id} is {order.status.value}, not READY_FOR_PICKUP"
                )

            stored_code = order.pickup_code or ""
            presented_code = (pickup_code or "").strip()
            if not stored_code or not hmac.compare_digest(
                stored_code.encode("utf-8"), presented_code.encode("utf-8")
            ):
                raise InvalidPickupCodeError(f"Invalid pickup code for order {order_id}")

            updated = await self._transition(order, OrderStatus.PICKED_UP, actor_id=admin_id)

            buyer = await self._lookup_user(updated.buyer_id)
            await self._notify(updated.seller_id, NotificationKind.PRODUCT_PICKED_UP, {
                "order_id": updated.order_id,
                "product_title": updated.product_title,
                "buyer_name": self._display_name(buyer, updated.buyer_id),
            })

            return OrderResponse(success=True, order=updated, message="Pickup confirmed")

        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to confirm pickup for order {order_id}: {e}")
            return self._internal_error("confirm pickup", e)

    # =========================================================================
    # Branches
    # =========================================================================

    async def list_branches(self) -> BranchListResponse:
        """Active branches by name, each with its order count"""
        branches = await self.repository.list_active_branches()
        return BranchListResponse(branches=branches, count=len(branches))

    async def create_branch(self, request: BranchCreateRequest) -> BranchResponse:
        """Admin opens a pickup branch"""
        try:
            await self._require_admin(request.admin_id)

            name = request.name.strip()
            address = request.address.strip()
            if not name or not address:
                raise BranchValidationError("Name and address are required")

            branch = Branch(
                branch_id=f"br_{uuid.uuid4().hex[:12]}",
                name=name,
                address=address,
                phone=request.phone,
                email=request.email,
            )
            created = await self.repository.create_branch(branch)
            logger.info(f"Branch {created.branch_id} created by {request.admin_id}")

            return BranchResponse(success=True, branch=created, message="Branch created successfully")

        except OrderServiceError as e:
            logger.info(f"Branch creation rejected [{e.error_code}]: {e}")
            return BranchResponse(success=False, message=str(e), error_code=e.error_code)
        except Exception as e:
            logger.error(f"Failed to create branch: {e}")
            return BranchResponse(success=False, message="Failed to create branch", error_code="INTERNAL_ERROR")

    async def list_ready_orders(self, branch_id: str, admin_id: str) -> ReadyOrdersResponse:
        """Orders waiting for pickup at a branch, oldest first; admin only"""
        try:
            await self._require_admin(admin_id)

            branch = await self.repository.get_branch(branch_id)
            if not branch:
                raise BranchNotFoundError(f"Branch {branch_id} not found")

            orders = await self.repository.list_branch_orders(branch_id, OrderStatus.READY_FOR_PICKUP)
            return ReadyOrdersResponse(
                success=True,
                branch_id=branch_id,
                orders=orders,
                count=len(orders),
                message="Ready orders retrieved",
            )

        except OrderServiceError as e:
            logger.info(f"Ready order listing rejected [{e.error_code}]: {e}")
            return ReadyOrdersResponse(
                success=False, branch_id=branch_id, message=str(e), error_code=e.error_code
            )
        except Exception as e:
            logger.error(f"Failed to list ready orders of branch {branch_id}: {e}")
            return ReadyOrdersResponse(
                success=False,
                branch_id=branch_id,
                message="Failed to list ready orders",
                error_code="INTERNAL_ERROR",
            )

    # =========================================================================
    # Generic Status Changes
    # =========================================================================

    async def set_status(self, order_id: str, target_status: OrderStatus, actor_id: str) -> OrderResponse:
        """
        Generic status change for PAYMENT_PENDING, DELIVERED and CANCELLED

        DELIVERED adds the order to the seller aggregate; CANCELLED returns
        the reserved units to stock.
        """
        try:
            if target_status not in SET_STATUS_TARGETS:
                raise InvalidTransitionError(
                    f"Status {target_status.value} is set by its dedicated operation"
                )

            order = await self._get_order_or_raise(order_id)
            await self._authorize_status_change(order, target_status, actor_id)

            updated = await self._transition(order, target_status, actor_id=actor_id)

            if updated.status == OrderStatus.CANCELLED:
                await self._release_stock(updated)

            await self._notify_status_changed(updated)

            return OrderResponse(
                success=True,
                order=updated,
                message=f"Order status updated to {updated.status.value}",
            )

        except OrderServiceError as e:
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Failed to set status of order {order_id}: {e}")
            return self._internal_error("update order status", e)

    async def close(self):
        """Release the account service client"""
        close = getattr(self.account_client, "close", None)
        if close:
            await close()

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _transition(
        self,
        order: Order,
        new_status: OrderStatus,
        actor_id: Optional[str] = None,
        **fields: Any,
    ) -> Order:
        """Apply a legal status change as a compare-and-set"""
        if not can_transition(order.status, new_status):
            raise InvalidTransitionError(
                f"Cannot change order {order.order_id} from {order.status.value} to {new_status.value}"
            )

        if new_status == OrderStatus.DELIVERED:
            updated = await self.repository.mark_delivered(order.order_id, order.status)
        else:
            updated = await self.repository.update_order_status(
                order.order_id, order.status, new_status, **fields
            )

        if updated is None:
            raise InvalidTransitionError(
                f"Order {order.order_id} is no longer {order.status.value}; re-read before retrying"
            )

        logger.info(f"Order {order.order_id}: {order.status.value} -> {new_status.value}")

        if self.event_bus:
            await publish_order_status_changed(
                self.event_bus, updated, old_status=order.status.value, actor_id=actor_id
            )

        return updated

    async def _get_order_or_raise(self, order_id: str) -> Order:
        order = await self.repository.get_order(order_id)
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    async def _resolve_branch(self, branch_id: Optional[str]) -> Branch:
        """Explicit branch, else the first active one"""
        if branch_id:
            branch = await self.repository.get_branch(branch_id)
            if not branch:
                raise BranchNotFoundError(f"Branch {branch_id} not found")
            if not branch.is_active:
                raise BranchInactiveError(f"Branch {branch_id} is not active")
            return branch

        branch = await self.repository.get_first_active_branch()
        if not branch:
            raise BranchNotFoundError("No active pickup branch available")
        return branch

    async def _get_branch_quietly(self, branch_id: Optional[str]) -> Optional[Branch]:
        if not branch_id:
            return None
        try:
            return await self.repository.get_branch(branch_id)
        except Exception as e:
            logger.warning(f"Failed to load branch {branch_id}: {e}")
            return None

    def _require_seller(self, order: Order, seller_id: str):
        if order.seller_id != seller_id:
            raise OrderForbiddenError(f"User {seller_id} does not own order {order.order_id}")

    async def _require_admin(self, admin_id: str) -> UserSummary:
        user = await self._lookup_user(admin_id)
        if not user or not user.is_admin:
            raise OrderForbiddenError(f"User {admin_id} is not an administrator")
        return user

    async def _authorize_status_change(self, order: Order, target: OrderStatus, actor_id: str):
        """Owning seller, an admin, or the buyer cancelling before payment"""
        if actor_id == order.seller_id:
            return
        if (
            actor_id == order.buyer_id
            and target == OrderStatus.CANCELLED
            and order.status in BUYER_CANCELLABLE
        ):
            return
        user = await self._lookup_user(actor_id)
        if user and user.is_admin:
            return
        raise OrderForbiddenError(
            f"User {actor_id} may not set order {order.order_id} to {target.value}"
        )

    async def _lookup_user(self, user_id: str) -> Optional[UserSummary]:
        if not self.account_client:
            return None
        try:
            return await self.account_client.get_user(user_id)
        except Exception as e:
            logger.warning(f"Failed to look up user {user_id}: {e}")
            return None

    def _display_name(self, user: Optional[UserSummary], fallback: str) -> str:
        return (user.display_name if user else None) or fallback

    async def _release_stock(self, order: Order):
        """Return the order's units to stock"""
        try:
            await self.stock_guard.restore(order.product_id, order.quantity)
        except Exception as e:
            logger.error(
                f"Failed to restore {order.quantity} of {order.product_id} for order {order.order_id}: {e}"
            )

    def _raise_unavailable(self, reason: Optional[StockUnavailableReason], request: OrderCreateRequest, current: int):
        if reason == StockUnavailableReason.NOT_FOUND:
            raise ProductNotFoundError(f"Product {request.product_id} not found")
        if reason == StockUnavailableReason.INACTIVE:
            raise ProductInactiveError(f"Product {request.product_id} is not active")
        raise InsufficientStockError(
            f"Insufficient stock for product {request.product_id}: "
            f"{current} available, {request.quantity} requested",
            available=current,
            requested=request.quantity,
        )

    async def _notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]):
        """Best-effort notification"""
        if not self.notification_dispatcher:
            return
        try:
            await self.notification_dispatcher.notify(user_id, kind, payload)
        except Exception as e:
            logger.error(f"Failed to send {kind.value} notification to {user_id}: {e}")

    async def _notify_status_changed(self, order: Order):
        await self._notify(order.buyer_id, NotificationKind.ORDER_STATUS_CHANGED, {
            "order_id": order.order_id,
            "product_title": order.product_title,
            "new_status": order.status.value,
        })

    def _error_response(self, error: Exception) -> OrderResponse:
        error_code = getattr(error, "error_code", "INTERNAL_ERROR")
        logger.info(f"Order operation rejected [{error_code}]: {error}")
        return OrderResponse(success=False, message=str(error), error_code=error_code)

    def _internal_error(self, operation: str, error: Exception) -> OrderResponse:
        """Driver detail stays in the log; callers only see the operation"""
        logger.debug(f"Internal error during {operation}: {type(error).__name__}")
        return OrderResponse(
            success=False,
            message=f"Failed to {operation}",
            error_code="INTERNAL_ERROR",
        )

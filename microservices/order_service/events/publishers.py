"""
Order Service Event Publishers

Functions to publish events from order service
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from ..models import Order
from .models import OrderCreatedEvent, OrderStatusChangedEvent

logger = logging.getLogger(__name__)


async def publish_order_created(event_bus, order: Order) -> bool:
    """Publish order.created event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.created event")
        return False

    try:
        event_data = OrderCreatedEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            product_id=order.product_id,
            quantity=order.quantity,
            total=order.total,
            delivery_mode=order.delivery_mode.value,
            branch_id=order.branch_id,
        )

        event = Event(
            event_type=EventType.ORDER_CREATED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published order.created event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish order.created event: {e}")
        return False


async def publish_order_status_changed(
    event_bus,
    order: Order,
    old_status: str,
    actor_id: Optional[str] = None
) -> bool:
    """Publish order.status_changed event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.status_changed event")
        return False

    try:
        event_data = OrderStatusChangedEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            old_status=old_status,
            new_status=order.status.value,
            actor_id=actor_id,
        )

        event = Event(
            event_type=EventType.ORDER_STATUS_CHANGED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published order.status_changed event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish order.status_changed event: {e}")
        return False

"""
Inventory Service Event Publishers

Functions to publish events from inventory service
"""

import logging

from core.nats_client import Event, EventType, ServiceSource
from .models import StockSignalEvent

logger = logging.getLogger(__name__)


async def publish_stock_signal(
    event_bus,
    event_type: EventType,
    product_id: str,
    seller_id: str,
    product_title: str,
    current_stock: int,
    threshold: int,
) -> bool:
    """Publish stock.low / stock.out event"""
    if not event_bus:
        logger.warning(f"Event bus not available, skipping {event_type.value} event")
        return False

    try:
        event_data = StockSignalEvent(
            product_id=product_id,
            seller_id=seller_id,
            product_title=product_title,
            current_stock=current_stock,
            threshold=threshold,
        )

        event = Event(
            event_type=event_type,
            source=ServiceSource.INVENTORY_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published {event_type.value} event for product {product_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish {event_type.value} event: {e}")
        return False

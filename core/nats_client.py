"""
NATS Event Bus for Python Microservices

Provides event-driven communication between the marketplace services.
Events are JSON documents published on subjects named after their type
(e.g. "order.created").
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS

from core.config import InfraConfig, get_settings


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published by the marketplace services"""

    # Order events
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"

    # Stock events
    STOCK_LOW = "stock.low"
    STOCK_OUT = "stock.out"


class ServiceSource(Enum):
    """Service sources"""

    ORDER_SERVICE = "order_service"
    INVENTORY_SERVICE = "inventory_service"
    NOTIFICATION_SERVICE = "notification_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS event bus backed by a nats-py connection."""

    def __init__(self, service_name: str, config: Optional[InfraConfig] = None):
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self._client: Optional[NATS] = None
        logger.info(f"NATS EventBus initialized: {self.config.nats_servers}")

    async def connect(self):
        """Connect to NATS"""
        try:
            self._client = await nats.connect(
                servers=self.config.nats_servers,
                name=self.service_name,
            )
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """Publish an event on the subject named by its type"""
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event.subject or event.type
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            await self._client.publish(subject, data)
            logger.info(f"Published event {event.type} [{event.id}]")
            return True
        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def close(self):
        """Drain and close the NATS connection"""
        if self._client:
            await self._client.drain()
            self._client = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._client is not None and self._client.is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(service_name: str, config: Optional[InfraConfig] = None) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        config: Optional infrastructure config override

    Returns:
        NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        _event_bus = NATSEventBus(service_name=service_name, config=config)
        await _event_bus.connect()

    return _event_bus

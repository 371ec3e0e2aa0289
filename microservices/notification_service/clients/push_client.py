"""
Push Gateway Client

HTTP client for an Expo-compatible push gateway.
"""

import httpx
import logging
from typing import List, Optional

from core.config import ServiceConfig, get_settings

from ..models import PushMessage, PushTicket

logger = logging.getLogger(__name__)


class PushClient:
    """Client for the push gateway HTTP API"""

    def __init__(self, config: Optional[ServiceConfig] = None):
        """
        Initialize push client

        Args:
            config: Peer service configuration (push endpoint, timeout)
        """
        self.config = config or get_settings().services
        self.push_url = self.config.push_service_url
        self.enabled = self.config.push_enabled

        self.client = httpx.AsyncClient(
            timeout=self.config.http_timeout,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        logger.info(f"PushClient initialized with push_url: {self.push_url}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def send(self, messages: List[PushMessage]) -> List[PushTicket]:
        """
        Send push messages

        Args:
            messages: Messages to deliver

        Returns:
            One ticket per message, or an empty list if the gateway failed
        """
        if not self.enabled or not messages:
            return []

        try:
            response = await self.client.post(
                self.push_url,
                json=[m.model_dump(mode='json', by_alias=True) for m in messages],
            )
            response.raise_for_status()
            return [PushTicket(**ticket) for ticket in response.json().get("data", [])]

        except httpx.HTTPStatusError as e:
            logger.error(f"Push gateway error: {e.response.status_code} - {e.response.text}")
            return []
        except Exception as e:
            logger.error(f"Error sending push messages: {e}")
            return []

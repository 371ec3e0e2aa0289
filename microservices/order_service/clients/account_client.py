"""
Account Service Client for Order Service

HTTP client for user roles and seller contact info
"""

import httpx
import logging
from typing import Optional

from pydantic import ValidationError

from core.config import ServiceConfig, get_settings

from ..models import UserSummary

logger = logging.getLogger(__name__)


class AccountClient:
    """Client for account_service"""

    def __init__(self, base_url: Optional[str] = None, config: Optional[ServiceConfig] = None):
        """
        Initialize Account Service client

        Args:
            base_url: Account service base URL
            config: Peer service configuration
        """
        config = config or get_settings().services
        self.base_url = (base_url or config.account_service_url).rstrip('/')

        self.client = httpx.AsyncClient(timeout=config.http_timeout)
        logger.info(f"AccountClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_user(self, user_id: str) -> Optional[UserSummary]:
        """
        Get user by ID

        Args:
            user_id: User ID

        Returns:
            User summary if found
        """
        try:
            response = await self.client.get(
                f"{self.base_url}/api/v1/accounts/users/{user_id}"
            )
            response.raise_for_status()
            data = response.json()
            data.setdefault("user_id", user_id)
            if isinstance(data.get("role"), str):
                data["role"] = data["role"].upper()
            return UserSummary.model_validate(data)

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning(f"User {user_id} not found")
                return None
            logger.error(f"Failed to get user: {e.response.status_code}")
            return None
        except ValidationError as e:
            logger.error(f"Unexpected user payload for {user_id}: {e}")
            return None
        except Exception as e:
            logger.error(f"Error getting user: {e}")
            return None

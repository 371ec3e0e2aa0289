"""
Notification Service Business Logic Layer

Renders marketplace lifecycle events into in-app notifications and push
messages, and manages per-user notification settings.

Uses dependency injection for testability:
- Repository is injected, not created at import time
- Push client is injected
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

# Import only models (no I/O dependencies)
from .models import (
    Notification, NotificationKind, NotificationSettings, NotificationListResponse,
    PushMessage, UpdateSettingsRequest,
    NOTIFICATION_TEMPLATES, ORDER_STATUS_LABELS,
)
from .protocols import NotificationNotFoundError

# Type checking imports (not executed at runtime)
if TYPE_CHECKING:
    from .protocols import NotificationRepositoryProtocol, PushClientProtocol

logger = logging.getLogger(__name__)


class NotificationService:
    """Notification dispatcher"""

    def __init__(
        self,
        repository: "NotificationRepositoryProtocol",
        push_client: Optional["PushClientProtocol"] = None,
    ):
        """
        Initialize notification service.

        Args:
            repository: Notification repository
            push_client: Optional push gateway client; without it only in-app
                notifications are stored
        """
        self.repository = repository
        self.push_client = push_client

        logger.info("✅ NotificationService initialized")

    # ====================
    # Dispatch
    # ====================

    async def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Render, store and push a notification.

        Push delivery is best-effort; storage errors propagate.
        """
        payload = dict(payload or {})
        title, message = self.render(kind, payload)

        notification = await self.repository.create_notification(Notification(
            notification_id=f"ntf_{uuid.uuid4().hex[:16]}",
            user_id=user_id,
            kind=kind,
            title=title,
            message=message,
            data=payload,
            created_at=datetime.now(timezone.utc),
        ))
        logger.info(f"Notification {kind.value} stored for {user_id}")

        await self._send_push(notification)
        return notification

    def render(self, kind: NotificationKind, payload: Dict[str, Any]) -> Tuple[str, str]:
        """Render title and message for a kind"""
        title_template, message_template = NOTIFICATION_TEMPLATES[kind]
        variables = self._template_variables(kind, payload)
        return (
            self._replace_template_variables(title_template, variables),
            self._replace_template_variables(message_template, variables).strip(),
        )

    async def _send_push(self, notification: Notification):
        """Push a stored notification if the user's settings allow it"""
        if not self.push_client:
            return

        try:
            settings = await self.get_settings(notification.user_id)
            if not settings.allows_push(notification.kind):
                logger.debug(f"Push {notification.kind.value} disabled for {notification.user_id}")
                return

            push_token = await self.repository.get_push_token(notification.user_id)
            if not push_token:
                logger.debug(f"No push token for {notification.user_id}")
                return

            tickets = await self.push_client.send([PushMessage(
                to=push_token,
                title=notification.title,
                body=notification.message,
                data={
                    **notification.data,
                    "type": notification.kind.value,
                    "notification_id": notification.notification_id,
                },
            )])

            for ticket in tickets:
                if ticket.status == "error":
                    logger.warning(f"Push error for {notification.user_id}: {ticket.message}")
                if ticket.device_not_registered:
                    await self.repository.set_push_token(notification.user_id, None)
                    logger.info(f"Cleared unregistered push token of {notification.user_id}")

        except Exception as e:
            logger.error(f"Failed to send push {notification.notification_id}: {e}")

    # ====================
    # In-app notifications
    # ====================

    async def list_notifications(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> NotificationListResponse:
        """List a user's notifications, newest first"""
        notifications = await self.repository.list_notifications(
            user_id, limit=limit, offset=offset, unread_only=unread_only
        )
        unread_count = await self.repository.get_unread_count(user_id)
        return NotificationListResponse(
            notifications=notifications,
            unread_count=unread_count,
            limit=limit,
            offset=offset,
        )

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """Mark a notification as read"""
        if not await self.repository.mark_as_read(notification_id, user_id):
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return True

    async def mark_all_as_read(self, user_id: str) -> int:
        return await self.repository.mark_all_as_read(user_id)

    async def get_unread_count(self, user_id: str) -> int:
        return await self.repository.get_unread_count(user_id)

    # ====================
    # Settings & push tokens
    # ====================

    async def get_settings(self, user_id: str) -> NotificationSettings:
        """Get settings, creating the defaults on first access"""
        settings = await self.repository.get_settings(user_id)
        if settings is None:
            settings = await self.repository.upsert_settings(NotificationSettings(user_id=user_id))
        return settings

    async def update_settings(self, user_id: str, request: UpdateSettingsRequest) -> NotificationSettings:
        """Apply a partial settings update"""
        current = await self.get_settings(user_id)
        updated = current.model_copy(update=request.model_dump(exclude_none=True))
        return await self.repository.upsert_settings(updated)

    async def register_push_token(self, user_id: str, push_token: str) -> None:
        await self.repository.set_push_token(user_id, push_token)
        logger.info(f"Push token registered for {user_id}")

    async def unregister_push_token(self, user_id: str) -> None:
        await self.repository.set_push_token(user_id, None)
        logger.info(f"Push token removed for {user_id}")

    async def close(self):
        """Release the push gateway client"""
        close = getattr(self.push_client, "close", None)
        if close:
            await close()

    # ====================
    # Helpers
    # ====================

    def _template_variables(self, kind: NotificationKind, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Payload plus values derived for a kind's template"""
        variables = dict(payload)

        if kind == NotificationKind.ORDER_STATUS_CHANGED:
            status = str(payload.get("new_status", ""))
            variables["status_label"] = ORDER_STATUS_LABELS.get(status, status or "Order updated")

        if kind == NotificationKind.CONTACT_SELLER:
            seller = payload.get("seller_info") or {}
            variables.setdefault("seller_name", seller.get("display_name") or "the seller")
            if seller.get("whatsapp"):
                variables["contact_line"] = f"WhatsApp: {seller['whatsapp']}"
            elif seller.get("phone"):
                variables["contact_line"] = f"Phone: {seller['phone']}"
            else:
                variables["contact_line"] = ""

        if kind == NotificationKind.PRODUCT_READY:
            if not variables.get("branch_name"):
                variables["branch_name"] = "the branch"

        return variables

    def _replace_template_variables(self, content: str, variables: Dict[str, Any]) -> str:
        """Replace {{variable_name}} placeholders"""
        if not variables:
            return content

        pattern = r'\{\{(\w+)\}\}'

        def replace_var(match):
            var_name = match.group(1)
            return str(variables.get(var_name, match.group(0)))

        return re.sub(pattern, replace_var, content)

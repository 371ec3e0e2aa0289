"""
Notification Service Repository Layer

Data access for in-app notifications, settings and push tokens.
Matches schema: notification.notifications, notification.user_settings
"""

import json
import logging
from typing import List, Optional, Dict, Any

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper, get_postgres_client

from .models import Notification, NotificationKind, NotificationSettings

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Notification data access layer"""

    def __init__(self, config: Optional[InfraConfig] = None, db: Optional[PostgresClientWrapper] = None):
        self.db = db or get_postgres_client("notification_service", config=config)
        self.schema = "notification"
        self.notifications_table = "notifications"
        self.settings_table = "user_settings"

    # ====================
    # In-app notifications
    # ====================

    async def create_notification(self, notification: Notification) -> Notification:
        """Persist an in-app notification"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.notifications_table}
                    (notification_id, user_id, kind, title, message, data, is_read, created_at)
                VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, NOW())
                RETURNING *
            '''
            params = [
                notification.notification_id,
                notification.user_id,
                notification.kind.value,
                notification.title,
                notification.message,
                json.dumps(notification.data, default=str),
                notification.is_read,
            ]
            async with self.db:
                result = await self.db.query_row(query, params)
            return self._to_notification(result)

        except Exception as e:
            logger.error(f"Failed to create notification for {notification.user_id}: {e}")
            raise

    async def list_notifications(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[Notification]:
        """List a user's notifications, newest first"""
        try:
            conditions = ["user_id = $1"]
            if unread_only:
                conditions.append("is_read = FALSE")

            query = f'''
                SELECT * FROM {self.schema}.{self.notifications_table}
                WHERE {" AND ".join(conditions)}
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
            '''
            async with self.db:
                results = await self.db.query(query, [user_id, limit, offset])
            return [self._to_notification(row) for row in results]

        except Exception as e:
            logger.error(f"Failed to list notifications for {user_id}: {e}")
            raise

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one of the user's notifications as read"""
        try:
            query = f'''
                UPDATE {self.schema}.{self.notifications_table}
                SET is_read = TRUE
                WHERE notification_id = $1 AND user_id = $2
                RETURNING notification_id
            '''
            async with self.db:
                result = await self.db.query_row(query, [notification_id, user_id])
            return result is not None

        except Exception as e:
            logger.error(f"Failed to mark notification {notification_id} as read: {e}")
            raise

    async def mark_all_as_read(self, user_id: str) -> int:
        """Mark all unread notifications of a user as read"""
        try:
            query = f'''
                UPDATE {self.schema}.{self.notifications_table}
                SET is_read = TRUE
                WHERE user_id = $1 AND is_read = FALSE
            '''
            async with self.db:
                status = await self.db.execute(query, [user_id])
            # asyncpg status tag: "UPDATE <count>"
            return int(status.split()[-1])

        except Exception as e:
            logger.error(f"Failed to mark all notifications as read for {user_id}: {e}")
            raise

    async def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for user"""
        try:
            query = f'''
                SELECT COUNT(*) AS count FROM {self.schema}.{self.notifications_table}
                WHERE user_id = $1 AND is_read = FALSE
            '''
            async with self.db:
                result = await self.db.query_row(query, [user_id])
            return int(result["count"]) if result else 0

        except Exception as e:
            logger.error(f"Failed to count unread notifications for {user_id}: {e}")
            raise

    # ====================
    # Settings & push tokens
    # ====================

    async def get_settings(self, user_id: str) -> Optional[NotificationSettings]:
        """Get stored settings"""
        try:
            query = f'''
                SELECT user_id, notifications_enabled, order_alerts_enabled,
                       stock_alerts_enabled, updated_at
                FROM {self.schema}.{self.settings_table}
                WHERE user_id = $1
            '''
            async with self.db:
                result = await self.db.query_row(query, [user_id])
            return NotificationSettings(**result) if result else None

        except Exception as e:
            logger.error(f"Failed to get settings for {user_id}: {e}")
            raise

    async def upsert_settings(self, settings: NotificationSettings) -> NotificationSettings:
        """Create or replace settings"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.settings_table}
                    (user_id, notifications_enabled, order_alerts_enabled, stock_alerts_enabled, updated_at)
                VALUES ($1, $2, $3, $4, NOW())
                ON CONFLICT (user_id) DO UPDATE SET
                    notifications_enabled = EXCLUDED.notifications_enabled,
                    order_alerts_enabled = EXCLUDED.order_alerts_enabled,
                    stock_alerts_enabled = EXCLUDED.stock_alerts_enabled,
                    updated_at = NOW()
                RETURNING user_id, notifications_enabled, order_alerts_enabled,
                          stock_alerts_enabled, updated_at
            '''
            params = [
                settings.user_id,
                settings.notifications_enabled,
                settings.order_alerts_enabled,
                settings.stock_alerts_enabled,
            ]
            async with self.db:
                result = await self.db.query_row(query, params)
            return NotificationSettings(**result)

        except Exception as e:
            logger.error(f"Failed to save settings for {settings.user_id}: {e}")
            raise

    async def get_push_token(self, user_id: str) -> Optional[str]:
        """Get the user's device push token"""
        try:
            query = f'SELECT push_token FROM {self.schema}.{self.settings_table} WHERE user_id = $1'
            async with self.db:
                result = await self.db.query_row(query, [user_id])
            return result["push_token"] if result else None

        except Exception as e:
            logger.error(f"Failed to get push token for {user_id}: {e}")
            raise

    async def set_push_token(self, user_id: str, push_token: Optional[str]) -> None:
        """Store or clear the user's device push token"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.settings_table} (user_id, push_token, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (user_id) DO UPDATE SET push_token = EXCLUDED.push_token, updated_at = NOW()
            '''
            async with self.db:
                await self.db.execute(query, [user_id, push_token])

        except Exception as e:
            logger.error(f"Failed to set push token for {user_id}: {e}")
            raise

    def _to_notification(self, row: Dict[str, Any]) -> Notification:
        data = row.get("data") or {}
        if isinstance(data, str):
            data = json.loads(data)
        return Notification(
            notification_id=row["notification_id"],
            user_id=row["user_id"],
            kind=NotificationKind(row["kind"]),
            title=row["title"],
            message=row["message"],
            data=data,
            is_read=row["is_read"],
            created_at=row.get("created_at"),
        )

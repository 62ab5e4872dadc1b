# src/core/notifications/repository.py
"""
Репозиторий уведомлений.
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Connection

from src.core.notifications.models import Notification
from src.infra.database import DatabaseManager

_COLUMNS = "id, user_id, title, message, type, related_id, is_read, created_at"


class NotificationRepository:
    """Хранилище уведомлений (только вставка и флаг прочтения)."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, notification: Notification, conn: Connection | None = None) -> Notification:
        async with self._db.connection(conn) as c:
            await c.execute(
                f"""
                INSERT INTO notifications ({_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (id) DO NOTHING
                """,
                notification.id,
                notification.user_id,
                notification.title,
                notification.message,
                notification.type.value,
                notification.related_id,
                notification.is_read,
                notification.created_at,
            )
        return notification

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Уведомления пользователя, новые первыми."""
        unread_clause = "AND is_read = FALSE" if unread_only else ""
        async with self._db.connection() as c:
            rows = await c.fetch(
                f"""
                SELECT {_COLUMNS} FROM notifications
                WHERE user_id = $1 {unread_clause}
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                user_id,
                limit,
                offset,
            )
        return [Notification(**dict(r)) for r in rows]

    async def count_unread(self, user_id: str) -> int:
        async with self._db.connection() as c:
            value = await c.fetchval(
                "SELECT COUNT(*) FROM notifications WHERE user_id = $1 AND is_read = FALSE",
                user_id,
            )
        return int(value or 0)

    async def mark_read(self, notification_id: str, user_id: str) -> Optional[Notification]:
        """
        Отмечает уведомление прочитанным, только если оно принадлежит user_id.

        Returns:
            Обновлённое уведомление или None
        """
        async with self._db.connection() as c:
            row = await c.fetchrow(
                f"""
                UPDATE notifications SET is_read = TRUE
                WHERE id = $1 AND user_id = $2
                RETURNING {_COLUMNS}
                """,
                notification_id,
                user_id,
            )
        return Notification(**dict(row)) if row else None

    async def mark_all_read(self, user_id: str) -> int:
        async with self._db.connection() as c:
            result = await c.execute(
                "UPDATE notifications SET is_read = TRUE WHERE user_id = $1 AND is_read = FALSE",
                user_id,
            )
        return int(result.split()[-1])

# src/core/notifications/service.py
"""
Рассылка уведомлений по двум независимым каналам.

Durable: строка в таблице notifications, источник истины для клиента.
Real-time: событие в комнату через NotificationPort, без подтверждений
и повторов. Клиент, пропустивший push, догоняет следующим опросом.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

from src.common.constants import NotificationType, PushEvent, TypeMsg
from src.common.errors import NotificationNotFound
from src.common.logger import log_error, log_info
from src.core.notifications.models import Notification
from src.core.notifications.port import NotificationPort, user_room
from src.core.notifications.repository import NotificationRepository


class NotificationFanout:
    """
    Durable-уведомления и real-time push.

    Push запускается фоновой задачей и никогда не блокирует вызывающий
    код; ошибки доставки только логируются.
    """

    def __init__(self, repo: NotificationRepository, port: NotificationPort) -> None:
        self._repo = repo
        self._port = port
        self._pending: set[asyncio.Task[None]] = set()

    # =========================================================================
    # DURABLE
    # =========================================================================

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType,
        related_id: str | None = None,
        notification_id: str | None = None,
    ) -> Notification:
        """
        Сохраняет уведомление и дублирует его push-событием `notification`
        в комнату получателя.

        Ошибка записи пробрасывается: решение о повторе принимает вызывающий.
        Повторная запись с тем же notification_id не создаёт дубликат.
        """
        notification = await self._repo.create(
            Notification(
                id=notification_id or str(uuid4()),
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                related_id=related_id,
            )
        )
        self.push(
            user_room(user_id),
            PushEvent.NOTIFICATION,
            notification.model_dump(mode="json"),
        )
        return notification

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[Notification]:
        return await self._repo.list_for_user(user_id, limit=limit, offset=offset, unread_only=unread_only)

    async def unread_count(self, user_id: str) -> int:
        """Пересчитывается при каждом вызове, кэша нет."""
        return await self._repo.count_unread(user_id)

    async def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """
        Raises:
            NotificationNotFound: нет такого уведомления у этого пользователя
        """
        notification = await self._repo.mark_read(notification_id, user_id)
        if notification is None:
            raise NotificationNotFound(f"Уведомление {notification_id} не найдено")
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        updated = await self._repo.mark_all_read(user_id)
        await log_info(
            f"Пользователь {user_id}: прочитано уведомлений {updated}",
            type_msg=TypeMsg.DEBUG,
        )
        return updated

    # =========================================================================
    # REAL-TIME
    # =========================================================================

    def push(self, room: str, event: PushEvent | str, payload: dict[str, Any]) -> None:
        """Ставит отправку события в комнату фоновой задачей."""
        event_name = event.value if isinstance(event, PushEvent) else event
        task = asyncio.create_task(self._emit(room, event_name, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._port.emit(room, event, payload)
        except Exception as e:
            await log_error(f"Push {event} в комнату {room} не доставлен: {e}")

    async def drain(self) -> None:
        """Дожидается всех запущенных push-задач (остановка сервиса, тесты)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

# src/core/notifications/port.py
"""
Порт real-time доставки и его адаптер на Redis pub/sub.
"""

from __future__ import annotations

from typing import Any, Protocol

from src.infra.redis_client import RedisClient

# Комната для новых заявок без мастерской: её слушают все админы
UNASSIGNED_REQUESTS_ROOM = "unassigned-requests"


def user_room(user_id: str) -> str:
    return f"user-{user_id}"


def mechanic_room(mechanic_id: str) -> str:
    return f"mechanic-{mechanic_id}"


class NotificationPort(Protocol):
    """Отправка события в комнату. Доставка не гарантируется."""

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        ...


class RedisNotificationPort:
    """Публикует события комнат в Redis, шлюз realtime_ws раздаёт их сокетам."""

    def __init__(self, redis: RedisClient) -> None:
        self._redis = redis

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        await self._redis.publish_room(room, event, payload)

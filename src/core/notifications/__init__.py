# src/core/notifications/__init__.py
"""
Уведомления: durable-строки и real-time push по комнатам.
"""

from src.core.notifications.models import Notification, notification_effect
from src.core.notifications.port import (
    UNASSIGNED_REQUESTS_ROOM,
    NotificationPort,
    RedisNotificationPort,
    mechanic_room,
    user_room,
)
from src.core.notifications.repository import NotificationRepository
from src.core.notifications.service import NotificationFanout

__all__ = [
    "Notification",
    "NotificationFanout",
    "NotificationPort",
    "NotificationRepository",
    "RedisNotificationPort",
    "UNASSIGNED_REQUESTS_ROOM",
    "mechanic_room",
    "notification_effect",
    "user_room",
]

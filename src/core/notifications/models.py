# src/core/notifications/models.py
"""
Модель уведомления.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import NotificationType


class Notification(BaseModel):
    """Уведомление пользователя. Меняется только флаг прочтения."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID уведомления")
    user_id: str = Field(..., description="Получатель")
    title: str = Field(..., description="Заголовок")
    message: str = Field(..., description="Текст")
    type: NotificationType = Field(..., description="Тип")
    related_id: Optional[str] = Field(None, description="ID связанной заявки")
    is_read: bool = Field(False, description="Прочитано")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Время создания",
    )


def notification_effect(
    user_id: str,
    title: str,
    message: str,
    type: NotificationType,
    related_id: str | None = None,
) -> dict[str, Any]:
    """
    Payload побочного эффекта notification.create.

    ID уведомления выдаётся заранее: повтор из outbox после сбоя
    mark_done не создаёт вторую строку.
    """
    return {
        "id": str(uuid4()),
        "user_id": user_id,
        "title": title,
        "message": message,
        "type": type.value,
        "related_id": related_id,
    }

# src/core/outbox/models.py
"""
Запись outbox: побочный эффект, который не удалось выполнить сразу.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import OutboxStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OutboxEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: str = Field(..., description="Тип побочного эффекта")
    payload: dict[str, Any] = Field(default_factory=dict, description="Аргументы обработчика")
    status: OutboxStatus = Field(OutboxStatus.PENDING)
    attempts: int = Field(1, ge=0, description="Сколько раз уже пытались выполнить")
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

# src/core/updates/models.py
"""
Запись журнала обновлений по заявке.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ServiceUpdate(BaseModel):
    """Заметка механика о ходе работ. Только добавление."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    service_request_id: str = Field(..., description="Заявка")
    message: str = Field(..., description="Текст")
    images: list[str] = Field(default_factory=list, description="Фото")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ServiceUpdateCreate(BaseModel):
    message: str = Field(..., min_length=1, description="Текст обязателен")
    images: list[str] = Field(default_factory=list)

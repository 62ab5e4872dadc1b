# src/core/requests/models.py
"""
Модели заявки на обслуживание.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.constants import ServiceStatus, Urgency


class ServiceRequest(BaseModel):
    """Заявка на обслуживание. Никогда не удаляется."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID заявки")
    customer_id: str = Field(..., description="Клиент")
    workshop_id: Optional[str] = Field(None, description="Мастерская (выбранная или назначенная)")
    mechanic_id: Optional[str] = Field(None, description="Назначенный механик")

    # Транспорт и проблема
    vehicle_type: str = Field(..., description="Тип транспорта")
    vehicle_make: Optional[str] = Field(None, description="Марка")
    vehicle_model: Optional[str] = Field(None, description="Модель")
    issue_type: str = Field(..., description="Тип неисправности")
    description: str = Field(..., description="Описание проблемы")
    urgency: Urgency = Field(Urgency.MEDIUM, description="Срочность")
    images: list[str] = Field(default_factory=list, description="Фото (в порядке загрузки)")

    # Место
    pickup_address: str = Field(..., description="Адрес")
    latitude: float = Field(..., description="Широта")
    longitude: float = Field(..., description="Долгота")

    # Статус и стоимость
    status: ServiceStatus = Field(ServiceStatus.SUBMITTED, description="Статус")
    estimated_cost: Optional[float] = Field(None, description="Предварительная стоимость")
    actual_cost: Optional[float] = Field(None, description="Итоговая стоимость")

    # Временные метки
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    reached_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ServiceStatus.COMPLETED, ServiceStatus.CANCELLED)

    @property
    def short_id(self) -> str:
        """Последние 6 символов id для заголовков."""
        return self.id[-6:]


class ServiceRequestCreate(BaseModel):
    """Данные новой заявки от клиента."""

    vehicle_type: str = Field(..., min_length=1, description="Тип транспорта")
    vehicle_make: Optional[str] = Field(None, description="Марка")
    vehicle_model: Optional[str] = Field(None, description="Модель")
    issue_type: str = Field(..., min_length=1, description="Тип неисправности")
    description: str = Field(..., min_length=10, description="Описание (не короче 10 символов)")
    urgency: Urgency = Field(Urgency.MEDIUM, description="Срочность")
    images: list[str] = Field(default_factory=list, description="Фото")
    pickup_address: str = Field(..., min_length=1, description="Адрес")
    latitude: float = Field(..., ge=-90, le=90, description="Широта")
    longitude: float = Field(..., ge=-180, le=180, description="Долгота")
    workshop_id: Optional[str] = Field(None, description="Заранее выбранная мастерская")

    @field_validator("vehicle_type", "issue_type", "pickup_address", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("поле не может быть пустым")
        return v


class StatusChange(BaseModel):
    """Запрос механика на смену статуса."""

    status: ServiceStatus = Field(..., description="Целевой статус")
    message: Optional[str] = Field(None, description="Заметка в журнал обновлений")
    estimated_cost: Optional[float] = Field(None, ge=0, description="Предварительная стоимость")
    actual_cost: Optional[float] = Field(None, ge=0, description="Итоговая стоимость")


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Причина отмены")


class AssignRequest(BaseModel):
    mechanic_id: str = Field(..., min_length=1, description="ID механика")

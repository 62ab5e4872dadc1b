# src/core/workshops/models.py
"""
Модели мастерских и механиков.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import MechanicAvailability, UserRole


class UserContact(BaseModel):
    """Контактные данные пользователя (для уведомлений и писем)."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID пользователя")
    name: str = Field(..., description="Имя")
    email: str = Field(..., description="Email")
    phone: Optional[str] = Field(None, description="Телефон")
    role: UserRole = Field(..., description="Роль")


class Workshop(BaseModel):
    """Мастерская."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID мастерской")
    admin_id: str = Field(..., description="ID администратора (владельца)")
    name: str = Field(..., description="Название")
    description: Optional[str] = Field(None, description="Описание")
    address: str = Field(..., description="Адрес")
    phone: str = Field("", description="Телефон")
    latitude: float = Field(..., ge=-90, le=90, description="Широта")
    longitude: float = Field(..., ge=-180, le=180, description="Долгота")
    is_open: bool = Field(True, description="Открыта ли сейчас")
    rating: float = Field(0.0, ge=0.0, description="Рейтинг")
    review_count: int = Field(0, ge=0, description="Количество отзывов")


class Mechanic(BaseModel):
    """Механик мастерской."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID механика")
    user_id: str = Field(..., description="ID пользователя")
    workshop_id: str = Field(..., description="ID мастерской")
    availability: MechanicAvailability = Field(
        MechanicAvailability.AVAILABLE, description="Доступность"
    )
    specialties: list[str] = Field(default_factory=list, description="Специализации")
    experience: int = Field(0, ge=0, description="Опыт (лет)")
    rating: float = Field(0.0, ge=0.0, description="Рейтинг")
    review_count: int = Field(0, ge=0, description="Количество отзывов")
    updated_at: Optional[datetime] = Field(None, description="Время последнего изменения")

    @property
    def is_available(self) -> bool:
        return self.availability == MechanicAvailability.AVAILABLE

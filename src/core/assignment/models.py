# src/core/assignment/models.py
"""
Блок в расписании механика.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.common.constants import MechanicAvailability


class MechanicSchedule(BaseModel):
    """
    Информационный блок календаря. Доступность механика по нему
    не определяется.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    mechanic_id: str = Field(..., description="Механик")
    title: str = Field(..., description="Заголовок")
    description: Optional[str] = Field(None, description="Описание")
    start_time: datetime = Field(..., description="Начало")
    end_time: datetime = Field(..., description="Конец")
    is_all_day: bool = Field(False, description="Весь день")
    type: str = Field("SERVICE", description="Тип блока")
    service_id: Optional[str] = Field(None, description="Связанная заявка")

    @model_validator(mode="after")
    def check_interval(self) -> "MechanicSchedule":
        if self.end_time < self.start_time:
            raise ValueError("end_time раньше start_time")
        return self


class AvailabilityChange(BaseModel):
    availability: MechanicAvailability = Field(..., description="Новая доступность")


class ScheduleEntryCreate(BaseModel):
    """Блок календаря, который механик заводит сам."""
    title: str = Field(..., min_length=1, description="Заголовок")
    description: Optional[str] = Field(None, description="Описание")
    start_time: datetime = Field(..., description="Начало")
    end_time: datetime = Field(..., description="Конец")
    is_all_day: bool = Field(False, description="Весь день")
    type: str = Field(..., min_length=1, description="Тип блока")
    service_id: Optional[str] = Field(None, description="Связанная заявка")

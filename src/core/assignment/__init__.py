# src/core/assignment/__init__.py
"""
Назначение механиков, их доступность и расписание.
"""

from src.core.assignment.models import AvailabilityChange, MechanicSchedule, ScheduleEntryCreate
from src.core.assignment.repository import ScheduleRepository
from src.core.assignment.service import AssignmentCoordinator

__all__ = [
    "AssignmentCoordinator",
    "AvailabilityChange",
    "MechanicSchedule",
    "ScheduleEntryCreate",
    "ScheduleRepository",
]

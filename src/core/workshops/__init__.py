# src/core/workshops/__init__.py
"""
Справочник мастерских, механиков и контактов пользователей.
"""

from src.core.workshops.models import Mechanic, UserContact, Workshop
from src.core.workshops.repository import (
    MechanicRepository,
    UserRepository,
    WorkshopRepository,
)

__all__ = [
    "Mechanic",
    "UserContact",
    "Workshop",
    "MechanicRepository",
    "UserRepository",
    "WorkshopRepository",
]

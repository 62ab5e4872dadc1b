# src/core/__init__.py
"""
Доменный слой (Core Domain).

- requests: заявки и таблица переходов статусов
- assignment: назначение механика, доступность, расписание
- updates: журнал обновлений по заявке
- notifications: durable-уведомления и real-time push
- workshops, geo: справочник мастерских и поиск рядом
- access: единая проверка прав
- outbox: побочные эффекты с повтором
"""

from src.core.access import AccessPolicy, Actor
from src.core.assignment import AssignmentCoordinator
from src.core.notifications import NotificationFanout
from src.core.requests import RequestLifecycleManager, ServiceRequest
from src.core.updates import ServiceUpdateLog

__all__ = [
    "AccessPolicy",
    "Actor",
    "AssignmentCoordinator",
    "NotificationFanout",
    "RequestLifecycleManager",
    "ServiceRequest",
    "ServiceUpdateLog",
]

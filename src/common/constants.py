# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    END_USER = "END_USER"
    WORKSHOP_ADMIN = "WORKSHOP_ADMIN"
    MECHANIC = "MECHANIC"
    SUPER_ADMIN = "SUPER_ADMIN"


class ServiceStatus(str, Enum):
    """Статусы заявки на обслуживание."""
    SUBMITTED = "SUBMITTED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    REACHED = "REACHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Urgency(str, Enum):
    """Срочность заявки."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class MechanicAvailability(str, Enum):
    """Доступность механика."""
    AVAILABLE = "AVAILABLE"
    IN_SERVICE = "IN_SERVICE"
    NOT_AVAILABLE = "NOT_AVAILABLE"


class NotificationType(str, Enum):
    """Типы уведомлений."""
    NEW_ASSIGNMENT = "NEW_ASSIGNMENT"
    SERVICE_UPDATE = "SERVICE_UPDATE"
    NEW_REQUEST = "NEW_REQUEST"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"


class PushEvent(str, Enum):
    """Имена real-time событий."""
    NEW_SERVICE_REQUEST = "new-service-request"
    TASK_ASSIGNED = "task-assigned"
    REQUEST_ASSIGNED = "request-assigned"
    STATUS_UPDATED = "status-updated"
    SERVICE_UPDATE = "service-update"
    REQUEST_CANCELLED = "request-cancelled"
    NOTIFICATION = "notification"


class SideEffectKind(str, Enum):
    """Типы побочных эффектов, которые проходят через outbox."""
    SCHEDULE_CREATE = "schedule.create"
    NOTIFICATION_CREATE = "notification.create"
    WORKSHOP_EMAIL = "workshop.email"


class OutboxStatus(str, Enum):
    """Статусы записи outbox."""
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    DONE = "DONE"
    FAILED = "FAILED"

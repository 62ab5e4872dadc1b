# src/common/errors.py
"""
Иерархия доменных ошибок.

Каждая ошибка несёт стабильный `kind`, по которому HTTP-слой выбирает
код ответа, а клиенты различают причины отказа.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Базовая доменная ошибка."""

    kind: str = "service_error"

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Сериализует ошибку для ответа API."""
        data: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================

class ValidationError(ServiceError):
    """Некорректные или отсутствующие поля."""

    kind = "validation_error"

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """Создаёт ошибку из pydantic.ValidationError с деталями по полям."""
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return cls("Validation failed", details=details)


# =============================================================================
# НЕ НАЙДЕНО
# =============================================================================

class NotFoundError(ServiceError):
    """Сущность по идентификатору не найдена."""

    kind = "not_found"


class RequestNotFound(NotFoundError):
    kind = "request_not_found"


class MechanicNotFound(NotFoundError):
    kind = "mechanic_not_found"


class MechanicNotInWorkshop(NotFoundError):
    kind = "mechanic_not_in_workshop"


class WorkshopNotFound(NotFoundError):
    kind = "workshop_not_found"


class NotificationNotFound(NotFoundError):
    kind = "notification_not_found"


# =============================================================================
# ДОСТУП
# =============================================================================

class PermissionDeniedError(ServiceError):
    """Роль или владение не позволяют выполнить операцию."""

    kind = "permission_denied"


# =============================================================================
# КОНФЛИКТЫ СОСТОЯНИЯ
# =============================================================================

class StateConflictError(ServiceError):
    """Операция несовместима с текущим состоянием."""

    kind = "state_conflict"


class InvalidTransition(StateConflictError):
    kind = "invalid_transition"


class MechanicNotAvailable(StateConflictError):
    kind = "mechanic_not_available"


class RequestAlreadyAssigned(StateConflictError):
    kind = "request_already_assigned"


# =============================================================================
# ВНЕШНИЕ ЗАВИСИМОСТИ
# =============================================================================

class ExternalCollaboratorError(ServiceError):
    """
    Сбой внешнего соавтора (календарь, почта, уведомление, поиск).

    Для побочных эффектов никогда не прерывает основную операцию.
    """

    kind = "external_collaborator_error"

    def __init__(
        self,
        message: str,
        collaborator: str = "",
        details: Any | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.collaborator = collaborator

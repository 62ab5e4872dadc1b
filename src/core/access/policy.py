# src/core/access/policy.py
"""
Единая проверка прав `(actor, action, request) -> allowed`.

Все сервисы и HTTP-слой спрашивают только её; ролевые условия больше
нигде не дублируются.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from src.common.constants import UserRole
from src.common.errors import PermissionDeniedError

if TYPE_CHECKING:
    from src.core.requests.models import ServiceRequest
    from src.core.workshops.models import Mechanic


@dataclass(frozen=True)
class Actor:
    """
    Пользователь, выполняющий операцию.

    mechanic_id и workshop_id заполняются при аутентификации для ролей
    MECHANIC и WORKSHOP_ADMIN соответственно.
    """
    user_id: str
    role: UserRole
    mechanic_id: str | None = None
    workshop_id: str | None = None

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.END_USER

    @property
    def is_mechanic(self) -> bool:
        return self.role == UserRole.MECHANIC

    @property
    def is_workshop_admin(self) -> bool:
        return self.role == UserRole.WORKSHOP_ADMIN


class Action(str, Enum):
    VIEW_REQUEST = "view_request"
    VIEW_UPDATES = "view_updates"
    APPEND_UPDATE = "append_update"
    ADVANCE_STATUS = "advance_status"
    CANCEL = "cancel"
    ASSIGN = "assign"


class AccessPolicy:
    """
    Правила доступа к заявке.

    Args:
        strict_update_reads: False сохраняет исторически широкое чтение
            журнала обновлений (любой механик, любой админ мастерской)
    """

    def __init__(self, strict_update_reads: bool | None = None) -> None:
        if strict_update_reads is None:
            from src.config import settings
            strict_update_reads = settings.access.STRICT_UPDATE_READ_ACCESS
        self._strict_update_reads = strict_update_reads

    @property
    def strict_update_reads(self) -> bool:
        return self._strict_update_reads

    def is_allowed(self, actor: Actor, action: Action, request: ServiceRequest) -> bool:
        match action:
            case Action.VIEW_REQUEST:
                return actor.role == UserRole.SUPER_ADMIN or self._is_party(actor, request)
            case Action.VIEW_UPDATES:
                if actor.role == UserRole.SUPER_ADMIN:
                    return True
                if self._strict_update_reads:
                    return self._is_party(actor, request)
                return (
                    self._is_owner(actor, request)
                    or actor.is_mechanic
                    or actor.is_workshop_admin
                )
            case Action.APPEND_UPDATE | Action.ADVANCE_STATUS:
                return self._is_assigned_mechanic(actor, request)
            case Action.CANCEL:
                return (
                    self._is_owner(actor, request)
                    or self._is_assigned_mechanic(actor, request)
                    or self._is_owning_admin(actor, request)
                )
            case Action.ASSIGN:
                return (
                    actor.is_workshop_admin
                    and actor.workshop_id is not None
                    and request.workshop_id in (None, actor.workshop_id)
                )
        return False

    def ensure_allowed(self, actor: Actor, action: Action, request: ServiceRequest) -> None:
        """
        Raises:
            PermissionDeniedError: действие запрещено
        """
        if not self.is_allowed(actor, action, request):
            raise PermissionDeniedError(
                f"Нет прав на {action.value} для заявки {request.id}",
                details={"action": action.value, "role": actor.role.value},
            )

    # =========================================================================
    # ПРЕДИКАТЫ
    # =========================================================================

    @staticmethod
    def _is_owner(actor: Actor, request: ServiceRequest) -> bool:
        return actor.is_customer and actor.user_id == request.customer_id

    @staticmethod
    def _is_assigned_mechanic(actor: Actor, request: ServiceRequest) -> bool:
        return (
            actor.is_mechanic
            and actor.mechanic_id is not None
            and actor.mechanic_id == request.mechanic_id
        )

    @staticmethod
    def _is_owning_admin(actor: Actor, request: ServiceRequest) -> bool:
        return (
            actor.is_workshop_admin
            and actor.workshop_id is not None
            and actor.workshop_id == request.workshop_id
        )

    def _is_party(self, actor: Actor, request: ServiceRequest) -> bool:
        if self._is_owner(actor, request) or self._is_assigned_mechanic(actor, request):
            return True
        if self._is_owning_admin(actor, request):
            return True
        # Неназначенные заявки без выбранной мастерской видят все админы
        return actor.is_workshop_admin and request.workshop_id is None

    # =========================================================================
    # МЕХАНИКИ
    # =========================================================================

    def can_manage_mechanic(self, actor: Actor, mechanic: Mechanic) -> bool:
        """Сам механик или админ его мастерской."""
        if actor.is_mechanic:
            return actor.mechanic_id == mechanic.id
        if actor.is_workshop_admin:
            return actor.workshop_id is not None and actor.workshop_id == mechanic.workshop_id
        return False

    def ensure_can_manage_mechanic(self, actor: Actor, mechanic: Mechanic) -> None:
        if not self.can_manage_mechanic(actor, mechanic):
            raise PermissionDeniedError(f"Нет прав на механика {mechanic.id}")

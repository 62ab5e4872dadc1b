# src/core/requests/state_machine.py
"""
Таблица переходов статусов заявки.
"""

from __future__ import annotations

from src.common.constants import ServiceStatus
from src.common.errors import InvalidTransition


class ServiceStateMachine:
    """
    Единственный источник правил переходов.

    Каждый переход заполняет ровно одну временную метку.
    """

    ALLOWED_TRANSITIONS: dict[ServiceStatus, frozenset[ServiceStatus]] = {
        ServiceStatus.SUBMITTED: frozenset({ServiceStatus.ASSIGNED, ServiceStatus.CANCELLED}),
        ServiceStatus.ASSIGNED: frozenset({ServiceStatus.IN_PROGRESS, ServiceStatus.CANCELLED}),
        ServiceStatus.IN_PROGRESS: frozenset({ServiceStatus.REACHED, ServiceStatus.CANCELLED}),
        ServiceStatus.REACHED: frozenset({ServiceStatus.COMPLETED, ServiceStatus.CANCELLED}),
        ServiceStatus.COMPLETED: frozenset(),
        ServiceStatus.CANCELLED: frozenset(),
    }

    TIMESTAMP_FIELDS: dict[ServiceStatus, str] = {
        ServiceStatus.ASSIGNED: "assigned_at",
        ServiceStatus.IN_PROGRESS: "started_at",
        ServiceStatus.REACHED: "reached_at",
        ServiceStatus.COMPLETED: "completed_at",
        ServiceStatus.CANCELLED: "cancelled_at",
    }

    TERMINAL: frozenset[ServiceStatus] = frozenset({ServiceStatus.COMPLETED, ServiceStatus.CANCELLED})

    @classmethod
    def can_transition(cls, current: ServiceStatus | str, target: ServiceStatus | str) -> bool:
        try:
            curr = ServiceStatus(current)
            new = ServiceStatus(target)
        except ValueError:
            return False
        return new in cls.ALLOWED_TRANSITIONS.get(curr, frozenset())

    @classmethod
    def is_reachable(cls, status: ServiceStatus) -> bool:
        """Есть ли хотя бы одно ребро, ведущее в этот статус."""
        return status in cls.TIMESTAMP_FIELDS

    @classmethod
    def is_repeat(cls, current: ServiceStatus, target: ServiceStatus) -> bool:
        """Повтор уже применённого перехода: ничего не меняет и не ошибка."""
        return current == target and cls.is_reachable(target)

    @classmethod
    def is_terminal(cls, status: ServiceStatus) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def timestamp_field(cls, target: ServiceStatus) -> str:
        return cls.TIMESTAMP_FIELDS[target]

    @classmethod
    def validate(cls, current: ServiceStatus, target: ServiceStatus) -> None:
        """
        Raises:
            InvalidTransition: ребра current -> target нет в таблице
        """
        if not cls.can_transition(current, target):
            raise InvalidTransition(
                f"Переход {current.value} -> {target.value} недопустим",
                details={"from": current.value, "to": target.value},
            )

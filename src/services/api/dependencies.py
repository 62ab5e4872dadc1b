# src/services/api/dependencies.py
"""
Сборка сервисов и зависимости FastAPI.

Контейнер создаётся один раз в lifespan и хранится в app.state;
тесты подкладывают свой контейнер через create_app(container=...).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from src.common.constants import UserRole
from src.common.errors import PermissionDeniedError, ValidationError
from src.core.access import AccessPolicy, Actor
from src.core.assignment import AssignmentCoordinator, ScheduleRepository
from src.core.geo import ExternalSearchClient
from src.core.notifications import NotificationFanout, NotificationRepository, RedisNotificationPort
from src.core.outbox import OutboxRepository, SideEffectOutbox
from src.core.outbox.handlers import register_default_handlers
from src.core.requests import RequestLifecycleManager, ServiceRequestRepository
from src.core.updates import ServiceUpdateLog, ServiceUpdateRepository
from src.core.workshops import MechanicRepository, UserRepository, WorkshopRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.infra.redis_client import RedisClient


@dataclass
class ServiceContainer:
    """Все сервисы API-процесса."""
    lifecycle: RequestLifecycleManager
    coordinator: AssignmentCoordinator
    updates: ServiceUpdateLog
    fanout: NotificationFanout
    workshops: WorkshopRepository
    mechanics: MechanicRepository
    search: ExternalSearchClient
    db: Optional[DatabaseManager] = None
    redis: Optional[RedisClient] = None
    event_bus: Optional[EventBus] = None


def build_container(
    db: DatabaseManager,
    redis: RedisClient,
    event_bus: EventBus | None,
) -> ServiceContainer:
    """Собирает репозитории и сервисы поверх подключённой инфраструктуры."""
    requests = ServiceRequestRepository(db)
    mechanics = MechanicRepository(db)
    workshops = WorkshopRepository(db)
    users = UserRepository(db)
    update_repo = ServiceUpdateRepository(db)
    schedules = ScheduleRepository(db)

    policy = AccessPolicy()
    fanout = NotificationFanout(NotificationRepository(db), RedisNotificationPort(redis))
    outbox = register_default_handlers(
        SideEffectOutbox(OutboxRepository(db)),
        fanout=fanout,
        schedules=schedules,
        event_bus=event_bus,
    )

    lifecycle = RequestLifecycleManager(
        db=db,
        requests=requests,
        mechanics=mechanics,
        workshops=workshops,
        updates=update_repo,
        policy=policy,
        fanout=fanout,
        outbox=outbox,
        event_bus=event_bus,
    )
    coordinator = AssignmentCoordinator(
        db=db,
        lifecycle=lifecycle,
        requests=requests,
        mechanics=mechanics,
        workshops=workshops,
        users=users,
        schedules=schedules,
        policy=policy,
        fanout=fanout,
        outbox=outbox,
        event_bus=event_bus,
    )

    return ServiceContainer(
        lifecycle=lifecycle,
        coordinator=coordinator,
        updates=ServiceUpdateLog(requests, update_repo, policy, fanout),
        fanout=fanout,
        workshops=workshops,
        mechanics=mechanics,
        search=ExternalSearchClient(),
        db=db,
        redis=redis,
        event_bus=event_bus,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> Actor:
    """
    Пользователь из заголовков доверенного шлюза (X-User-Id, X-User-Role).

    Для механика и админа мастерской сразу подтягиваются их профили.
    """
    if not x_user_id or not x_user_role:
        raise PermissionDeniedError("Не переданы заголовки X-User-Id / X-User-Role")

    try:
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise ValidationError(
            "Validation failed",
            details=[{"field": "X-User-Role", "message": f"Неизвестная роль: {x_user_role}"}],
        )

    mechanic_id = None
    workshop_id = None
    if role == UserRole.MECHANIC:
        mechanic = await container.mechanics.get_by_user_id(x_user_id)
        mechanic_id = mechanic.id if mechanic else None
    elif role == UserRole.WORKSHOP_ADMIN:
        workshop = await container.workshops.get_by_admin(x_user_id)
        workshop_id = workshop.id if workshop else None

    return Actor(user_id=x_user_id, role=role, mechanic_id=mechanic_id, workshop_id=workshop_id)


def get_lifecycle(container: ServiceContainer = Depends(get_container)) -> RequestLifecycleManager:
    return container.lifecycle


def get_coordinator(container: ServiceContainer = Depends(get_container)) -> AssignmentCoordinator:
    return container.coordinator


def get_update_log(container: ServiceContainer = Depends(get_container)) -> ServiceUpdateLog:
    return container.updates


def get_fanout(container: ServiceContainer = Depends(get_container)) -> NotificationFanout:
    return container.fanout

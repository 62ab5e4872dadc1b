# src/core/assignment/service.py
"""
Назначение механика на заявку и управление его доступностью.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.common.constants import (
    MechanicAvailability,
    NotificationType,
    PushEvent,
    ServiceStatus,
    SideEffectKind,
    TypeMsg,
    UserRole,
)
from src.common.errors import (
    InvalidTransition,
    MechanicNotAvailable,
    MechanicNotFound,
    MechanicNotInWorkshop,
    PermissionDeniedError,
    RequestAlreadyAssigned,
    RequestNotFound,
    StateConflictError,
    ValidationError,
    WorkshopNotFound,
)
from src.common.logger import log_info, log_warning
from src.core.access import AccessPolicy, Action, Actor
from src.core.assignment.models import MechanicSchedule, ScheduleEntryCreate
from src.core.assignment.repository import ScheduleRepository
from src.core.notifications import NotificationFanout, mechanic_room, notification_effect, user_room
from src.core.outbox import SideEffectOutbox
from src.core.requests import RequestLifecycleManager, ServiceRequest, ServiceRequestRepository
from src.core.workshops import Mechanic, MechanicRepository, UserRepository, WorkshopRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class AssignmentCoordinator:
    """
    Связывает механика с заявкой.

    Заявка и механик меняются в одной транзакции под блокировкой строк:
    наблюдатель никогда не видит заявку ASSIGNED при свободном механике
    или наоборот. Расписание и уведомления выполняются после фиксации
    через outbox и не откатывают назначение.
    """

    def __init__(
        self,
        db: DatabaseManager,
        lifecycle: RequestLifecycleManager,
        requests: ServiceRequestRepository,
        mechanics: MechanicRepository,
        workshops: WorkshopRepository,
        users: UserRepository,
        schedules: ScheduleRepository,
        policy: AccessPolicy,
        fanout: NotificationFanout,
        outbox: SideEffectOutbox,
        event_bus: EventBus | None = None,
        block_hours: float | None = None,
        schedule_type: str | None = None,
    ) -> None:
        if block_hours is None or schedule_type is None:
            from src.config import settings
            block_hours = block_hours if block_hours is not None else settings.assignment.SERVICE_BLOCK_HOURS
            schedule_type = schedule_type or settings.assignment.SCHEDULE_TYPE

        self._db = db
        self._lifecycle = lifecycle
        self._requests = requests
        self._mechanics = mechanics
        self._workshops = workshops
        self._users = users
        self._schedules = schedules
        self._policy = policy
        self._fanout = fanout
        self._outbox = outbox
        self._event_bus = event_bus
        self._block = timedelta(hours=block_hours)
        self._schedule_type = schedule_type

    # =========================================================================
    # НАЗНАЧЕНИЕ
    # =========================================================================

    async def assign(self, request_id: str, mechanic_id: str, acting_admin_id: str) -> ServiceRequest:
        """
        Назначает механика на заявку.

        Raises:
            WorkshopNotFound: у админа нет мастерской
            RequestNotFound: заявки нет
            PermissionDeniedError: заявка выбрана для другой мастерской
            MechanicNotFound / MechanicNotInWorkshop: механик не найден
                или не из мастерской админа
            MechanicNotAvailable: механик не AVAILABLE
            RequestAlreadyAssigned: у заявки уже есть механик
            InvalidTransition: заявка не в статусе SUBMITTED
        """
        async with self._db.transaction() as conn:
            workshop = await self._workshops.get_by_admin(acting_admin_id, conn=conn)
            if workshop is None:
                raise WorkshopNotFound(f"У администратора {acting_admin_id} нет мастерской")

            request = await self._requests.get_by_id(request_id, conn=conn, for_update=True)
            if request is None:
                raise RequestNotFound(f"Заявка {request_id} не найдена")

            actor = Actor(user_id=acting_admin_id, role=UserRole.WORKSHOP_ADMIN, workshop_id=workshop.id)
            self._policy.ensure_allowed(actor, Action.ASSIGN, request)

            mechanic = await self._mechanics.get_by_id(mechanic_id, conn=conn, for_update=True)
            if mechanic is None:
                raise MechanicNotFound(f"Механик {mechanic_id} не найден")
            if mechanic.workshop_id != workshop.id:
                raise MechanicNotInWorkshop(f"Механик {mechanic_id} не из мастерской {workshop.id}")
            if not mechanic.is_available:
                raise MechanicNotAvailable(
                    f"Механик {mechanic_id} недоступен",
                    details={"availability": mechanic.availability.value},
                )

            if request.mechanic_id is not None:
                raise RequestAlreadyAssigned(
                    f"Заявка {request_id} уже назначена, сначала отмените её",
                    details={"mechanic_id": request.mechanic_id},
                )
            if request.status != ServiceStatus.SUBMITTED:
                raise InvalidTransition(
                    f"Заявку в статусе {request.status.value} назначить нельзя",
                    details={"from": request.status.value, "to": ServiceStatus.ASSIGNED.value},
                )

            updated = await self._lifecycle.apply_assignment(request, mechanic.id, workshop.id, conn)
            if updated is None:
                raise RequestAlreadyAssigned(f"Заявка {request_id} назначена параллельно")

            flipped = await self._mechanics.compare_and_set_availability(
                mechanic.id,
                expected=MechanicAvailability.AVAILABLE,
                new=MechanicAvailability.IN_SERVICE,
                conn=conn,
            )
            if not flipped:
                raise MechanicNotAvailable(f"Механик {mechanic_id} занят параллельно")

        await log_info(
            f"Заявка {updated.id} назначена механику {mechanic.id} (админ {acting_admin_id})",
            type_msg=TypeMsg.INFO,
        )
        await self._after_assignment(updated, mechanic)
        return updated

    async def _after_assignment(self, request: ServiceRequest, mechanic: Mechanic) -> None:
        now = datetime.now(timezone.utc)
        block = MechanicSchedule(
            mechanic_id=mechanic.id,
            title=f"Service Request #{request.short_id}",
            description=f"{request.vehicle_type} - {request.issue_type} at {request.pickup_address}",
            start_time=now,
            end_time=now + self._block,
            type=self._schedule_type,
            service_id=request.id,
        )
        await self._outbox.run(SideEffectKind.SCHEDULE_CREATE, block.model_dump(mode="json"))

        try:
            contact = await self._users.get_contact(mechanic.user_id)
        except Exception as e:
            await log_warning(f"Контакт механика {mechanic.id} не прочитан: {e}")
            contact = None
        mechanic_name = contact.name if contact else "a mechanic"

        await self._outbox.run(
            SideEffectKind.NOTIFICATION_CREATE,
            notification_effect(
                user_id=mechanic.user_id,
                title="New Service Assignment",
                message=(
                    f"You've been assigned a new {request.vehicle_type} service request "
                    f"in {request.pickup_address}"
                ),
                type=NotificationType.NEW_ASSIGNMENT,
                related_id=request.id,
            ),
        )
        await self._outbox.run(
            SideEffectKind.NOTIFICATION_CREATE,
            notification_effect(
                user_id=request.customer_id,
                title="Service Request Update",
                message=(
                    f"Your service request has been assigned to {mechanic_name}. "
                    "They will contact you shortly."
                ),
                type=NotificationType.SERVICE_UPDATE,
                related_id=request.id,
            ),
        )

        self._fanout.push(
            mechanic_room(mechanic.id),
            PushEvent.TASK_ASSIGNED,
            {"service_request": request.model_dump(mode="json")},
        )
        self._fanout.push(
            user_room(request.customer_id),
            PushEvent.REQUEST_ASSIGNED,
            {
                "service_request_id": request.id,
                "mechanic_id": mechanic.id,
                "mechanic_name": mechanic_name,
            },
        )

        if self._event_bus is not None:
            await self._event_bus.publish(
                DomainEvent(
                    event_type=EventTypes.SERVICE_REQUEST_ASSIGNED,
                    payload={
                        "service_request_id": request.id,
                        "mechanic_id": mechanic.id,
                        "workshop_id": request.workshop_id,
                        "customer_id": request.customer_id,
                    },
                )
            )

    # =========================================================================
    # ДОСТУПНОСТЬ И РАСПИСАНИЕ
    # =========================================================================

    async def set_availability(
        self,
        actor: Actor,
        mechanic_id: str,
        availability: MechanicAvailability,
    ) -> Mechanic:
        """
        Ручное переключение AVAILABLE <-> NOT_AVAILABLE.

        IN_SERVICE управляется только назначением и освобождением.

        Raises:
            MechanicNotFound, PermissionDeniedError, StateConflictError
        """
        availability = MechanicAvailability(availability)
        if availability == MechanicAvailability.IN_SERVICE:
            raise StateConflictError("IN_SERVICE устанавливается только назначением на заявку")

        mechanic = await self._mechanics.get_by_id(mechanic_id)
        if mechanic is None:
            raise MechanicNotFound(f"Механик {mechanic_id} не найден")
        self._policy.ensure_can_manage_mechanic(actor, mechanic)

        if mechanic.availability == MechanicAvailability.IN_SERVICE:
            raise MechanicNotAvailable(
                f"Механик {mechanic_id} выполняет заявку, доступность изменится после её завершения"
            )
        if mechanic.availability == availability:
            return mechanic

        changed = await self._mechanics.compare_and_set_availability(
            mechanic.id, expected=mechanic.availability, new=availability
        )
        if not changed:
            raise StateConflictError(f"Доступность механика {mechanic_id} изменена параллельно")

        await log_info(
            f"Механик {mechanic.id}: {mechanic.availability.value} -> {availability.value}",
            type_msg=TypeMsg.INFO,
        )
        if self._event_bus is not None:
            await self._event_bus.publish(
                DomainEvent(
                    event_type=EventTypes.MECHANIC_AVAILABILITY_CHANGED,
                    payload={"mechanic_id": mechanic.id, "availability": availability.value},
                )
            )
        return mechanic.model_copy(update={"availability": availability})

    async def list_schedule(
        self,
        actor: Actor,
        mechanic_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MechanicSchedule]:
        mechanic = await self._mechanics.get_by_id(mechanic_id)
        if mechanic is None:
            raise MechanicNotFound(f"Механик {mechanic_id} не найден")
        self._policy.ensure_can_manage_mechanic(actor, mechanic)
        return await self._schedules.list_for_mechanic(mechanic.id, start=start, end=end)

    async def add_schedule_entry(self, actor: Actor, payload: dict[str, Any]) -> MechanicSchedule:
        """
        Механик добавляет блок в свой календарь.

        Блок информационный: доступность механика он не меняет.

        Raises:
            PermissionDeniedError, ValidationError
        """
        if not actor.is_mechanic or actor.mechanic_id is None:
            raise PermissionDeniedError("Only mechanics can create schedule entries")
        try:
            data = ScheduleEntryCreate.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        try:
            block = MechanicSchedule(mechanic_id=actor.mechanic_id, **data.model_dump())
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        await self._schedules.create(block)
        await log_info(
            f"Механик {actor.mechanic_id}: блок расписания {block.id} ({block.type})",
            type_msg=TypeMsg.INFO,
        )
        return block

# src/core/requests/service.py
"""
Жизненный цикл заявки на обслуживание.

Все изменения статуса проходят через ServiceStateMachine и выполняются
в одной транзакции с блокировкой строки. Уведомления и события
отправляются только после фиксации транзакции.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from asyncpg import Connection
from pydantic import ValidationError as PydanticValidationError

from src.common.constants import (
    MechanicAvailability,
    NotificationType,
    PushEvent,
    ServiceStatus,
    SideEffectKind,
    TypeMsg,
)
from src.common.errors import (
    MechanicNotFound,
    PermissionDeniedError,
    RequestNotFound,
    StateConflictError,
    ValidationError,
    WorkshopNotFound,
)
from src.common.logger import log_info, log_warning
from src.core.access import AccessPolicy, Action, Actor
from src.core.notifications import (
    UNASSIGNED_REQUESTS_ROOM,
    NotificationFanout,
    mechanic_room,
    notification_effect,
    user_room,
)
from src.core.outbox import SideEffectOutbox
from src.core.requests.models import ServiceRequest, ServiceRequestCreate
from src.core.requests.repository import ServiceRequestRepository
from src.core.requests.state_machine import ServiceStateMachine
from src.core.updates.models import ServiceUpdate
from src.core.updates.repository import ServiceUpdateRepository
from src.core.workshops import Mechanic, MechanicRepository, WorkshopRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

_STATUS_MESSAGES: dict[ServiceStatus, str] = {
    ServiceStatus.IN_PROGRESS: "Your mechanic is on the way.",
    ServiceStatus.REACHED: "Your mechanic has reached your location.",
    ServiceStatus.COMPLETED: "Your service request has been completed.",
    ServiceStatus.CANCELLED: "Your service request has been cancelled.",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RequestLifecycleManager:
    """
    Создание заявок, смена статусов и чтение.

    Назначение механика (SUBMITTED -> ASSIGNED) выполняет только
    AssignmentCoordinator через apply_assignment().
    """

    def __init__(
        self,
        db: DatabaseManager,
        requests: ServiceRequestRepository,
        mechanics: MechanicRepository,
        workshops: WorkshopRepository,
        updates: ServiceUpdateRepository,
        policy: AccessPolicy,
        fanout: NotificationFanout,
        outbox: SideEffectOutbox,
        event_bus: EventBus | None = None,
    ) -> None:
        self._db = db
        self._requests = requests
        self._mechanics = mechanics
        self._workshops = workshops
        self._updates = updates
        self._policy = policy
        self._fanout = fanout
        self._outbox = outbox
        self._event_bus = event_bus

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create(self, customer: Actor, payload: ServiceRequestCreate | dict[str, Any]) -> ServiceRequest:
        """
        Создаёт заявку в статусе SUBMITTED.

        Без выбранной мастерской заявка уходит в общую комнату
        неназначенных заявок; с выбранной мастерской её админ получает
        уведомление и письмо.

        Raises:
            PermissionDeniedError: создавать может только клиент
            ValidationError: некорректные поля
            WorkshopNotFound: выбранной мастерской нет
        """
        if not customer.is_customer:
            raise PermissionDeniedError("Создавать заявки может только клиент")

        if isinstance(payload, ServiceRequestCreate):
            data = payload
        else:
            try:
                data = ServiceRequestCreate.model_validate(payload)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e) from e

        workshop = None
        if data.workshop_id is not None:
            workshop = await self._workshops.get_by_id(data.workshop_id)
            if workshop is None:
                raise WorkshopNotFound(f"Мастерская {data.workshop_id} не найдена")

        request = await self._requests.create(
            ServiceRequest(customer_id=customer.user_id, **data.model_dump())
        )
        await log_info(
            f"Заявка создана: {request.id} (клиент {request.customer_id}, мастерская {request.workshop_id})",
            type_msg=TypeMsg.INFO,
        )

        broadcast = {
            "id": request.id,
            "location": {"latitude": request.latitude, "longitude": request.longitude},
            "issue_type": request.issue_type,
            "urgency": request.urgency.value,
            "workshop_id": request.workshop_id,
        }

        if workshop is None:
            self._fanout.push(UNASSIGNED_REQUESTS_ROOM, PushEvent.NEW_SERVICE_REQUEST, broadcast)
        else:
            await self._outbox.run(
                SideEffectKind.NOTIFICATION_CREATE,
                notification_effect(
                    user_id=workshop.admin_id,
                    title="New Service Request",
                    message=(
                        f"New {request.vehicle_type} service request: "
                        f"{request.issue_type} at {request.pickup_address}"
                    ),
                    type=NotificationType.NEW_REQUEST,
                    related_id=request.id,
                ),
            )
            self._fanout.push(user_room(workshop.admin_id), PushEvent.NEW_SERVICE_REQUEST, broadcast)
            await self._outbox.run(
                SideEffectKind.WORKSHOP_EMAIL,
                {
                    "workshop_id": workshop.id,
                    "admin_id": workshop.admin_id,
                    "service_request": request.model_dump(mode="json"),
                },
            )

        await self._publish(EventTypes.SERVICE_REQUEST_CREATED, request)
        return request

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    async def transition(
        self,
        request_id: str,
        target: ServiceStatus,
        actor: Actor,
        notes: str | None = None,
        estimated_cost: float | None = None,
        actual_cost: float | None = None,
    ) -> ServiceRequest:
        """
        Переводит заявку в статус target.

        Повтор уже применённого перехода не меняет статус и временные метки
        и ничего не рассылает; заметка и стоимость при этом сохраняются.

        Raises:
            RequestNotFound: заявки нет
            PermissionDeniedError: ASSIGNED через этот путь или чужая заявка
            InvalidTransition: ребра нет в таблице
            StateConflictError: заявку изменили параллельно
        """
        target = ServiceStatus(target)
        if target == ServiceStatus.ASSIGNED:
            raise PermissionDeniedError("Статус ASSIGNED устанавливается только при назначении механика")

        action = Action.CANCEL if target == ServiceStatus.CANCELLED else Action.ADVANCE_STATUS
        released_mechanic = None

        async with self._db.transaction() as conn:
            request = await self._requests.get_by_id(request_id, conn=conn, for_update=True)
            if request is None:
                raise RequestNotFound(f"Заявка {request_id} не найдена")

            if ServiceStateMachine.is_repeat(request.status, target):
                self._policy.ensure_allowed(actor, action, request)
                return await self._record_repeat(request, notes, estimated_cost, actual_cost, conn)

            ServiceStateMachine.validate(request.status, target)
            self._policy.ensure_allowed(actor, action, request)

            previous = request.status
            updated = await self._requests.update_status(
                request.id,
                expected=previous,
                target=target,
                at=_utc_now(),
                estimated_cost=estimated_cost,
                actual_cost=actual_cost,
                conn=conn,
            )
            if updated is None:
                raise StateConflictError(f"Заявка {request.id} изменена параллельно, повторите запрос")

            await self._write_note(request.id, notes, conn)

            if ServiceStateMachine.is_terminal(target) and updated.mechanic_id:
                released_mechanic = await self._release_mechanic(updated.mechanic_id, conn)

        await log_info(
            f"Заявка {updated.id}: {previous.value} -> {target.value} ({actor.role.value} {actor.user_id})",
            type_msg=TypeMsg.INFO,
        )
        await self._fan_out_transition(updated, actor, notes, released_mechanic)
        return updated

    async def cancel(self, request_id: str, actor: Actor, reason: str | None = None) -> ServiceRequest:
        return await self.transition(request_id, ServiceStatus.CANCELLED, actor, notes=reason)

    async def _record_repeat(
        self,
        request: ServiceRequest,
        notes: str | None,
        estimated_cost: float | None,
        actual_cost: float | None,
        conn: Connection,
    ) -> ServiceRequest:
        updated = request
        if estimated_cost is not None or actual_cost is not None:
            # expected == target: меняются только стоимости, метка уже заполнена
            updated = await self._requests.update_status(
                request.id,
                expected=request.status,
                target=request.status,
                at=_utc_now(),
                estimated_cost=estimated_cost,
                actual_cost=actual_cost,
                conn=conn,
            )
            if updated is None:
                raise StateConflictError(f"Заявка {request.id} изменена параллельно, повторите запрос")
        await self._write_note(request.id, notes, conn)
        return updated

    async def _write_note(self, request_id: str, notes: str | None, conn: Connection) -> None:
        if notes and notes.strip():
            await self._updates.create(
                ServiceUpdate(service_request_id=request_id, message=notes.strip()),
                conn=conn,
            )

    async def _release_mechanic(self, mechanic_id: str, conn: Connection) -> Mechanic | None:
        mechanic = await self._mechanics.get_by_id(mechanic_id, conn=conn, for_update=True)
        if mechanic is None:
            await log_warning(f"Механик {mechanic_id} не найден при освобождении")
            return None
        released = await self._mechanics.compare_and_set_availability(
            mechanic_id,
            expected=MechanicAvailability.IN_SERVICE,
            new=MechanicAvailability.AVAILABLE,
            conn=conn,
        )
        if not released:
            await log_warning(
                f"Механик {mechanic_id} не в статусе IN_SERVICE ({mechanic.availability.value}), доступность не изменена"
            )
        return mechanic

    async def _fan_out_transition(
        self,
        request: ServiceRequest,
        actor: Actor,
        notes: str | None,
        mechanic: Mechanic | None,
    ) -> None:
        status = request.status

        if not (actor.is_customer and actor.user_id == request.customer_id):
            await self._outbox.run(
                SideEffectKind.NOTIFICATION_CREATE,
                notification_effect(
                    user_id=request.customer_id,
                    title="Service Request Update",
                    message=notes or _STATUS_MESSAGES[status],
                    type=NotificationType.SERVICE_UPDATE,
                    related_id=request.id,
                ),
            )
        self._fanout.push(
            user_room(request.customer_id),
            PushEvent.STATUS_UPDATED,
            {"status": status.value, "message": notes, "service_request_id": request.id},
        )

        if status == ServiceStatus.CANCELLED and mechanic is not None and actor.mechanic_id != mechanic.id:
            await self._outbox.run(
                SideEffectKind.NOTIFICATION_CREATE,
                notification_effect(
                    user_id=mechanic.user_id,
                    title="Service Request Cancelled",
                    message=f"Service request #{request.short_id} has been cancelled.",
                    type=NotificationType.REQUEST_CANCELLED,
                    related_id=request.id,
                ),
            )
            self._fanout.push(
                mechanic_room(mechanic.id),
                PushEvent.REQUEST_CANCELLED,
                {"service_request_id": request.id, "reason": notes},
            )

        await self._publish(EventTypes.SERVICE_REQUEST_STATUS_CHANGED, request)

    # =========================================================================
    # НАЗНАЧЕНИЕ (вызывается AssignmentCoordinator)
    # =========================================================================

    async def apply_assignment(
        self,
        request: ServiceRequest,
        mechanic_id: str,
        workshop_id: str,
        conn: Connection,
    ) -> ServiceRequest | None:
        """
        SUBMITTED -> ASSIGNED внутри транзакции координатора.

        Returns:
            Обновлённая заявка или None, если её изменили параллельно
        """
        ServiceStateMachine.validate(request.status, ServiceStatus.ASSIGNED)
        return await self._requests.assign(
            request.id,
            mechanic_id=mechanic_id,
            workshop_id=workshop_id,
            assigned_at=_utc_now(),
            conn=conn,
        )

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get(self, request_id: str, actor: Actor) -> ServiceRequest:
        request = await self._requests.get_by_id(request_id)
        if request is None:
            raise RequestNotFound(f"Заявка {request_id} не найдена")
        self._policy.ensure_allowed(actor, Action.VIEW_REQUEST, request)
        return request

    async def list_for_customer(self, actor: Actor, limit: int = 20, offset: int = 0) -> list[ServiceRequest]:
        return await self._requests.list_for_customer(actor.user_id, limit=limit, offset=offset)

    async def list_for_mechanic(
        self,
        actor: Actor,
        status: ServiceStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ServiceRequest]:
        if not actor.is_mechanic:
            raise PermissionDeniedError("Список задач доступен только механику")
        if actor.mechanic_id is None:
            raise MechanicNotFound("Профиль механика не найден")
        return await self._requests.list_for_mechanic(actor.mechanic_id, status=status, limit=limit, offset=offset)

    async def list_for_workshop(
        self,
        actor: Actor,
        status: ServiceStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ServiceRequest]:
        if not actor.is_workshop_admin:
            raise PermissionDeniedError("Список заявок мастерской доступен только её админу")
        if actor.workshop_id is None:
            raise WorkshopNotFound("У администратора нет мастерской")
        return await self._requests.list_for_workshop(actor.workshop_id, status=status, limit=limit, offset=offset)

    async def _publish(self, event_type: str, request: ServiceRequest) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            DomainEvent(
                event_type=event_type,
                payload={
                    "service_request_id": request.id,
                    "status": request.status.value,
                    "customer_id": request.customer_id,
                    "workshop_id": request.workshop_id,
                    "mechanic_id": request.mechanic_id,
                },
            )
        )

# src/core/outbox/handlers.py
"""
Обработчики побочных эффектов. Регистрируются одинаково в API-сервисе
(первая попытка) и в воркере (повтор).
"""

from __future__ import annotations

from typing import Any

from src.common.constants import NotificationType, SideEffectKind
from src.common.errors import ExternalCollaboratorError
from src.core.assignment.models import MechanicSchedule
from src.core.assignment.repository import ScheduleRepository
from src.core.notifications import NotificationFanout
from src.core.outbox.service import SideEffectOutbox
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


def register_default_handlers(
    outbox: SideEffectOutbox,
    fanout: NotificationFanout,
    schedules: ScheduleRepository,
    event_bus: EventBus | None,
) -> SideEffectOutbox:
    async def create_notification(payload: dict[str, Any]) -> None:
        await fanout.notify(
            user_id=payload["user_id"],
            title=payload["title"],
            message=payload["message"],
            type=NotificationType(payload["type"]),
            related_id=payload.get("related_id"),
            notification_id=payload.get("id"),
        )

    async def create_schedule(payload: dict[str, Any]) -> None:
        await schedules.create(MechanicSchedule.model_validate(payload))

    async def send_workshop_email(payload: dict[str, Any]) -> None:
        # Письмо отправляет почтовый сервис, подписанный на mail.*
        if event_bus is None:
            raise ExternalCollaboratorError("Шина событий не подключена", collaborator="mailer")
        await event_bus.publish(
            DomainEvent(event_type=EventTypes.MAIL_WORKSHOP_SELECTED, payload=payload),
            strict=True,
        )

    outbox.register(SideEffectKind.NOTIFICATION_CREATE, create_notification)
    outbox.register(SideEffectKind.SCHEDULE_CREATE, create_schedule)
    outbox.register(SideEffectKind.WORKSHOP_EMAIL, send_workshop_email)
    return outbox

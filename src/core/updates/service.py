# src/core/updates/service.py
"""
Журнал обновлений по заявке.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from src.common.constants import PushEvent, TypeMsg
from src.common.errors import RequestNotFound, ValidationError
from src.common.logger import log_info
from src.core.access import AccessPolicy, Action, Actor
from src.core.notifications import NotificationFanout, user_room
from src.core.requests.models import ServiceRequest
from src.core.requests.repository import ServiceRequestRepository
from src.core.updates.models import ServiceUpdate, ServiceUpdateCreate
from src.core.updates.repository import ServiceUpdateRepository


class ServiceUpdateLog:
    """
    Добавление и чтение заметок о ходе работ.

    Писать может только назначенный механик; читать разрешает
    AccessPolicy (по умолчанию широко, см. access.STRICT_UPDATE_READ_ACCESS).
    """

    def __init__(
        self,
        requests: ServiceRequestRepository,
        updates: ServiceUpdateRepository,
        policy: AccessPolicy,
        fanout: NotificationFanout,
    ) -> None:
        self._requests = requests
        self._updates = updates
        self._policy = policy
        self._fanout = fanout

    async def _get_request(self, request_id: str) -> ServiceRequest:
        request = await self._requests.get_by_id(request_id)
        if request is None:
            raise RequestNotFound(f"Заявка {request_id} не найдена")
        return request

    async def append(
        self,
        request_id: str,
        actor: Actor,
        message: str | None,
        images: list[str] | None = None,
    ) -> ServiceUpdate:
        """
        Добавляет заметку и отправляет клиенту `service-update`.

        Raises:
            RequestNotFound, ValidationError, PermissionDeniedError
        """
        if not (message or "").strip():
            raise ValidationError(
                "Validation failed",
                details=[{"field": "message", "message": "Message is required"}],
            )
        try:
            data = ServiceUpdateCreate(message=message, images=images or [])
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        request = await self._get_request(request_id)
        self._policy.ensure_allowed(actor, Action.APPEND_UPDATE, request)

        update = await self._updates.create(
            ServiceUpdate(
                service_request_id=request.id,
                message=data.message,
                images=data.images,
            )
        )
        await log_info(f"Заявка {request.id}: добавлено обновление {update.id}", type_msg=TypeMsg.DEBUG)

        self._fanout.push(
            user_room(request.customer_id),
            PushEvent.SERVICE_UPDATE,
            {"service_request_id": request.id, "update": update.model_dump(mode="json")},
        )
        return update

    async def list(self, request_id: str, actor: Actor) -> list[ServiceUpdate]:
        """Заметки по заявке, новые первыми."""
        request = await self._get_request(request_id)
        self._policy.ensure_allowed(actor, Action.VIEW_UPDATES, request)
        return await self._updates.list_for_request(request.id)

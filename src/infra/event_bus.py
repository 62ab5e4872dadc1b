# src/infra/event_bus.py
"""
Шина доменных событий на базе RabbitMQ (topic exchange).

Через неё уходят события жизненного цикла заявок и задания на отправку
писем мастерской: почтовый сервис подписан на `mail.*`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange

from src.common.constants import TypeMsg
from src.common.errors import ExternalCollaboratorError
from src.common.logger import log_error, log_info


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DomainEvent:
    """Событие, передаваемое через шину."""
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_json(self) -> str:
        return json.dumps(
            {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "timestamp": self.timestamp,
                "payload": self.payload,
            },
            ensure_ascii=False,
            default=str,
        )


class EventTypes:
    """Routing keys доменных событий."""
    SERVICE_REQUEST_CREATED = "service_request.created"
    SERVICE_REQUEST_ASSIGNED = "service_request.assigned"
    SERVICE_REQUEST_STATUS_CHANGED = "service_request.status_changed"

    MECHANIC_AVAILABILITY_CHANGED = "mechanic.availability_changed"

    # Задание почтовому сервису: новая заявка для мастерской
    MAIL_WORKSHOP_SELECTED = "mail.workshop_selected"


class EventBus:
    """
    Публикация доменных событий (один экземпляр на процесс).
    Потребители живут в других сервисах.
    """

    _instance: EventBus | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._exchange_name = "roadside.events"

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str,
        exchange_name: str | None = None,
    ) -> None:
        if self.is_connected:
            return

        if exchange_name:
            self._exchange_name = exchange_name

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

    async def disconnect(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchange = None

    async def publish(self, event: DomainEvent, strict: bool = False) -> bool:
        """
        Публикует событие, routing key = event_type.

        Args:
            event: Событие
            strict: Поднимать ExternalCollaboratorError вместо логирования
                (нужно, когда вызывающий сам решает, повторять ли доставку)

        Returns:
            True, если событие отправлено
        """
        try:
            if not self.is_connected or self._exchange is None:
                raise ConnectionError("нет соединения с RabbitMQ")

            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                timestamp=datetime.now(timezone.utc),
            )
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            if strict:
                raise ExternalCollaboratorError(
                    f"Не удалось опубликовать {event.event_type}: {e}",
                    collaborator="event_bus",
                ) from e
            await log_error(f"Событие {event.event_type} не опубликовано: {e}")
            return False

        await log_info(f"Событие опубликовано: {event.event_type}", type_msg=TypeMsg.DEBUG)
        return True

    async def health_check(self) -> bool:
        return self.is_connected


# =============================================================================
# ГЛОБАЛЬНЫЙ ЭКЗЕМПЛЯР
# =============================================================================

_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus() -> EventBus:
    """Подключается к RabbitMQ по настройкам."""
    from src.config import settings

    cfg = settings.rabbitmq
    bus = get_event_bus()
    await bus.connect(
        url=cfg.url,
        exchange_name=cfg.RABBITMQ_EXCHANGE,
    )
    await log_info(f"RabbitMQ подключён: {cfg.RABBITMQ_HOST}:{cfg.RABBITMQ_PORT}", type_msg=TypeMsg.INFO)
    return bus


async def close_event_bus() -> None:
    await get_event_bus().disconnect()
    await log_info("RabbitMQ отключён", type_msg=TypeMsg.INFO)

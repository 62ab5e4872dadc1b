# src/services/realtime_ws/redis_subscriber.py
"""
Подписчик на Redis Pub/Sub: слушает каналы комнат по шаблону
`{prefix}:*` и передаёт (комната, сообщение) обработчику.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Coroutine

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.infra.redis_client import RedisClient

MessageHandler = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisSubscriber:
    def __init__(self, redis: RedisClient, message_handler: MessageHandler) -> None:
        self._redis = redis
        self._handler = message_handler
        self._pubsub = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def pattern(self) -> str:
        return self._redis.room_channel("*")

    async def start(self) -> None:
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.psubscribe(self.pattern)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        await log_info(f"Подписка на Redis {self.pattern}", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                await self.process_message(message)
            except asyncio.CancelledError:
                break
            except Exception as e:
                await log_error(f"Ошибка Redis подписчика: {e}")
                await asyncio.sleep(1)

    async def process_message(self, message: dict[str, Any]) -> None:
        """Разбирает pmessage и вызывает обработчик с именем комнаты."""
        if message.get("type") not in ("message", "pmessage"):
            return

        channel = message.get("channel", "")
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")

        data = message.get("data", "")
        if isinstance(data, bytes):
            data = data.decode("utf-8")

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            await log_error(f"Некорректное сообщение в канале {channel}: {data!r}")
            return

        await self._handler(self._redis.room_from_channel(channel), parsed)

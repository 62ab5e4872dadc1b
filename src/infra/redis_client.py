# src/infra/redis_client.py
"""
Клиент Redis для real-time комнат.

API-сервис публикует события в каналы `room:{room}`, realtime-шлюз
подписывается на шаблон `room:*` и раздаёт их подключённым сокетам.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info


class RedisClient:
    """
    Асинхронный клиент Redis (один на процесс).
    """

    _instance: RedisClient | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client: redis.Redis | None = None
        self._channel_prefix = "room"

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован, вызовите connect()")
        return self._client

    @property
    def channel_prefix(self) -> str:
        return self._channel_prefix

    async def connect(
        self,
        url: str,
        max_connections: int = 50,
        channel_prefix: str = "room",
    ) -> None:
        if self._client is not None:
            return

        self._channel_prefix = channel_prefix
        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # КОМНАТЫ
    # =========================================================================

    def room_channel(self, room: str) -> str:
        """Имя Redis-канала для комнаты."""
        return f"{self._channel_prefix}:{room}"

    def room_from_channel(self, channel: str) -> str:
        """Обратное преобразование канала в имя комнаты."""
        prefix = f"{self._channel_prefix}:"
        return channel[len(prefix):] if channel.startswith(prefix) else channel

    async def publish_room(self, room: str, event: str, payload: dict[str, Any]) -> int:
        """
        Публикует событие в комнату.

        Returns:
            Количество подписчиков, получивших сообщение
        """
        message = json.dumps({"event": event, "payload": payload}, ensure_ascii=False, default=str)
        return await self.client.publish(self.room_channel(room), message)

    def pubsub(self) -> PubSub:
        return self.client.pubsub()

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis не прошёл: {e}")
            return False


# =============================================================================
# ГЛОБАЛЬНЫЙ ЭКЗЕМПЛЯР
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis() -> RedisClient:
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def init_redis() -> RedisClient:
    """Подключается к Redis по настройкам."""
    from src.config import settings

    cfg = settings.redis
    client = get_redis()
    await client.connect(
        url=cfg.url,
        max_connections=cfg.REDIS_MAX_CONNECTIONS,
        channel_prefix=cfg.ROOM_CHANNEL_PREFIX,
    )
    await log_info(f"Redis подключён: {cfg.REDIS_HOST}:{cfg.REDIS_PORT}", type_msg=TypeMsg.INFO)
    return client


async def close_redis() -> None:
    await get_redis().disconnect()
    await log_info("Redis отключён", type_msg=TypeMsg.INFO)

# src/infra/__init__.py
"""
Инфраструктурный слой: PostgreSQL (asyncpg), Redis Pub/Sub, RabbitMQ (aio-pika).

Каждый клиент — один экземпляр на процесс; init_* подключает его по
настройкам, close_* освобождает ресурсы при остановке сервиса.
"""

from src.infra.database import DatabaseManager, close_db, get_db, init_db
from src.infra.event_bus import DomainEvent, EventBus, EventTypes, close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import RedisClient, close_redis, get_redis, init_redis

__all__ = [
    "DatabaseManager",
    "DomainEvent",
    "EventBus",
    "EventTypes",
    "RedisClient",
    "close_db",
    "close_event_bus",
    "close_redis",
    "get_db",
    "get_event_bus",
    "get_redis",
    "init_db",
    "init_event_bus",
    "init_redis",
]

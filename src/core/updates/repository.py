# src/core/updates/repository.py
"""
Репозиторий журнала обновлений.
"""

from __future__ import annotations

from asyncpg import Connection

from src.core.updates.models import ServiceUpdate
from src.infra.database import DatabaseManager


class ServiceUpdateRepository:

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, update: ServiceUpdate, conn: Connection | None = None) -> ServiceUpdate:
        async with self._db.connection(conn) as c:
            await c.execute(
                """
                INSERT INTO service_updates (id, service_request_id, message, images, timestamp)
                VALUES ($1, $2, $3, $4, $5)
                """,
                update.id,
                update.service_request_id,
                update.message,
                update.images,
                update.timestamp,
            )
        return update

    async def list_for_request(self, request_id: str) -> list[ServiceUpdate]:
        """Новые первыми."""
        async with self._db.connection() as c:
            rows = await c.fetch(
                """
                SELECT id, service_request_id, message, images, timestamp
                FROM service_updates
                WHERE service_request_id = $1
                ORDER BY timestamp DESC
                """,
                request_id,
            )
        return [
            ServiceUpdate(**{**dict(r), "images": list(r["images"] or [])})
            for r in rows
        ]

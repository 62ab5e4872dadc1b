# src/core/outbox/repository.py
"""
Репозиторий outbox.
"""

from __future__ import annotations

import json

from asyncpg import Record

from src.common.constants import OutboxStatus
from src.core.outbox.models import OutboxEntry
from src.infra.database import DatabaseManager

_COLUMNS = "id, kind, payload, status, attempts, last_error, created_at, updated_at"


class OutboxRepository:

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, entry: OutboxEntry) -> OutboxEntry:
        await self._db.execute(
            f"""
            INSERT INTO outbox ({_COLUMNS})
            VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7, $8)
            """,
            entry.id,
            entry.kind,
            json.dumps(entry.payload, ensure_ascii=False, default=str),
            entry.status.value,
            entry.attempts,
            entry.last_error,
            entry.created_at,
            entry.updated_at,
        )
        return entry

    async def claim_pending(self, limit: int, stale_after: int) -> list[OutboxEntry]:
        """
        Забирает самые старые записи PENDING, переводя их в IN_FLIGHT.

        Строки, уже взятые другим воркером, пропускаются (SKIP LOCKED).
        Записи, зависшие в IN_FLIGHT дольше stale_after секунд, забираются
        повторно.
        """
        rows = await self._db.fetch(
            f"""
            UPDATE outbox
            SET status = $1, updated_at = NOW()
            WHERE id IN (
                SELECT id FROM outbox
                WHERE status = $2
                   OR (status = $1 AND updated_at < NOW() - make_interval(secs => $4))
                ORDER BY created_at
                LIMIT $3
                FOR UPDATE SKIP LOCKED
            )
            RETURNING {_COLUMNS}
            """,
            OutboxStatus.IN_FLIGHT.value,
            OutboxStatus.PENDING.value,
            limit,
            float(stale_after),
        )
        return sorted((_row_to_entry(r) for r in rows), key=lambda e: e.created_at)

    async def mark_done(self, entry_id: str) -> None:
        await self._db.execute(
            "UPDATE outbox SET status = $2, updated_at = NOW() WHERE id = $1",
            entry_id,
            OutboxStatus.DONE.value,
        )

    async def record_failure(
        self,
        entry_id: str,
        attempts: int,
        error: str,
        status: OutboxStatus,
    ) -> None:
        await self._db.execute(
            """
            UPDATE outbox
            SET attempts = $2, last_error = $3, status = $4, updated_at = NOW()
            WHERE id = $1
            """,
            entry_id,
            attempts,
            error,
            status.value,
        )


def _row_to_entry(row: Record) -> OutboxEntry:
    data = dict(row)
    if isinstance(data.get("payload"), str):
        data["payload"] = json.loads(data["payload"])
    return OutboxEntry(**data)

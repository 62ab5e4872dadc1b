# src/core/assignment/repository.py
"""
Репозиторий расписания механиков.
"""

from __future__ import annotations

from datetime import datetime

from src.core.assignment.models import MechanicSchedule
from src.infra.database import DatabaseManager

_COLUMNS = "id, mechanic_id, title, description, start_time, end_time, is_all_day, type, service_id"


class ScheduleRepository:

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, block: MechanicSchedule) -> MechanicSchedule:
        """Повторная вставка того же id (повтор из outbox) ничего не делает."""
        await self._db.execute(
            f"""
            INSERT INTO mechanic_schedules ({_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (id) DO NOTHING
            """,
            block.id,
            block.mechanic_id,
            block.title,
            block.description,
            block.start_time,
            block.end_time,
            block.is_all_day,
            block.type,
            block.service_id,
        )
        return block

    async def list_for_mechanic(
        self,
        mechanic_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MechanicSchedule]:
        """Блоки, пересекающие [start, end], по времени начала."""
        rows = await self._db.fetch(
            f"""
            SELECT {_COLUMNS} FROM mechanic_schedules
            WHERE mechanic_id = $1
              AND ($2::timestamptz IS NULL OR end_time >= $2)
              AND ($3::timestamptz IS NULL OR start_time <= $3)
            ORDER BY start_time
            """,
            mechanic_id,
            start,
            end,
        )
        return [MechanicSchedule(**dict(r)) for r in rows]

# src/core/workshops/repository.py
"""
Репозитории мастерских, механиков и пользователей.

Методы принимают необязательное соединение `conn`: внутри транзакции
сервиса передаётся её соединение, иначе берётся новое из пула.
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Connection, Record

from src.common.constants import MechanicAvailability
from src.core.workshops.models import Mechanic, UserContact, Workshop
from src.infra.database import DatabaseManager

_WORKSHOP_COLUMNS = """
    id, admin_id, name, description, address, phone,
    latitude, longitude, is_open, rating, review_count
"""

_MECHANIC_COLUMNS = """
    id, user_id, workshop_id, availability, specialties,
    experience, rating, review_count, updated_at
"""


class WorkshopRepository:
    """Репозиторий мастерских."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(self, workshop_id: str, conn: Connection | None = None) -> Optional[Workshop]:
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {_WORKSHOP_COLUMNS} FROM workshops WHERE id = $1",
                workshop_id,
            )
        return _row_to_workshop(row) if row else None

    async def get_by_admin(self, admin_id: str, conn: Connection | None = None) -> Optional[Workshop]:
        """Мастерская, которой владеет администратор (не более одной)."""
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {_WORKSHOP_COLUMNS} FROM workshops WHERE admin_id = $1",
                admin_id,
            )
        return _row_to_workshop(row) if row else None

    async def list_open(self) -> list[Workshop]:
        """Открытые мастерские в порядке создания."""
        async with self._db.connection() as c:
            rows = await c.fetch(
                f"SELECT {_WORKSHOP_COLUMNS} FROM workshops WHERE is_open = TRUE ORDER BY created_at"
            )
        return [_row_to_workshop(r) for r in rows]


class MechanicRepository:
    """Репозиторий механиков."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(
        self,
        mechanic_id: str,
        conn: Connection | None = None,
        for_update: bool = False,
    ) -> Optional[Mechanic]:
        lock = " FOR UPDATE" if for_update else ""
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {_MECHANIC_COLUMNS} FROM mechanics WHERE id = $1{lock}",
                mechanic_id,
            )
        return _row_to_mechanic(row) if row else None

    async def get_by_user_id(self, user_id: str, conn: Connection | None = None) -> Optional[Mechanic]:
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {_MECHANIC_COLUMNS} FROM mechanics WHERE user_id = $1",
                user_id,
            )
        return _row_to_mechanic(row) if row else None

    async def compare_and_set_availability(
        self,
        mechanic_id: str,
        expected: MechanicAvailability,
        new: MechanicAvailability,
        conn: Connection | None = None,
    ) -> bool:
        """
        Меняет доступность, только если текущее значение равно `expected`.

        Returns:
            True, если строка обновлена
        """
        async with self._db.connection(conn) as c:
            result = await c.execute(
                """
                UPDATE mechanics
                SET availability = $3, updated_at = NOW()
                WHERE id = $1 AND availability = $2
                """,
                mechanic_id,
                expected.value,
                new.value,
            )
        return result.endswith(" 1")


class UserRepository:
    """Чтение контактов пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_contact(self, user_id: str, conn: Connection | None = None) -> Optional[UserContact]:
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                "SELECT id, name, email, phone, role FROM users WHERE id = $1",
                user_id,
            )
        return UserContact(**dict(row)) if row else None


def _row_to_workshop(row: Record) -> Workshop:
    return Workshop(**dict(row))


def _row_to_mechanic(row: Record) -> Mechanic:
    data = dict(row)
    data["specialties"] = list(data.get("specialties") or [])
    return Mechanic(**data)

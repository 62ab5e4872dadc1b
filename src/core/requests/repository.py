# src/core/requests/repository.py
"""
Репозиторий заявок на обслуживание.

Изменения статуса выполняются как compare-and-swap по ожидаемому
текущему статусу: если строку успели изменить, UPDATE не затронет её
и метод вернёт None.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from asyncpg import Connection, Record

from src.common.constants import ServiceStatus
from src.core.requests.models import ServiceRequest
from src.core.requests.state_machine import ServiceStateMachine
from src.infra.database import DatabaseManager

_COLUMNS = """
    id, customer_id, workshop_id, mechanic_id,
    vehicle_type, vehicle_make, vehicle_model, issue_type, description,
    urgency, images, pickup_address, latitude, longitude,
    status, estimated_cost, actual_cost,
    created_at, assigned_at, started_at, reached_at, completed_at, cancelled_at
"""


class ServiceRequestRepository:
    """Репозиторий заявок."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(
        self,
        request_id: str,
        conn: Connection | None = None,
        for_update: bool = False,
    ) -> Optional[ServiceRequest]:
        """
        Заявка по id.

        Args:
            for_update: Заблокировать строку до конца транзакции
        """
        lock = " FOR UPDATE" if for_update else ""
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {_COLUMNS} FROM service_requests WHERE id = $1{lock}",
                request_id,
            )
        return _row_to_request(row) if row else None

    async def create(self, request: ServiceRequest, conn: Connection | None = None) -> ServiceRequest:
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO service_requests (
                    id, customer_id, workshop_id, vehicle_type, vehicle_make, vehicle_model,
                    issue_type, description, urgency, images, pickup_address,
                    latitude, longitude, status, created_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                RETURNING {_COLUMNS}
                """,
                request.id,
                request.customer_id,
                request.workshop_id,
                request.vehicle_type,
                request.vehicle_make,
                request.vehicle_model,
                request.issue_type,
                request.description,
                request.urgency.value,
                request.images,
                request.pickup_address,
                request.latitude,
                request.longitude,
                request.status.value,
                request.created_at,
            )
        return _row_to_request(row)

    async def assign(
        self,
        request_id: str,
        mechanic_id: str,
        workshop_id: str,
        assigned_at: datetime,
        conn: Connection | None = None,
    ) -> Optional[ServiceRequest]:
        """
        SUBMITTED без механика -> ASSIGNED.

        Мастерская проставляется, только если не была выбрана заранее.
        """
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE service_requests
                SET mechanic_id = $2,
                    workshop_id = COALESCE(workshop_id, $3),
                    status = $4,
                    assigned_at = $5,
                    updated_at = NOW()
                WHERE id = $1 AND status = $6 AND mechanic_id IS NULL
                RETURNING {_COLUMNS}
                """,
                request_id,
                mechanic_id,
                workshop_id,
                ServiceStatus.ASSIGNED.value,
                assigned_at,
                ServiceStatus.SUBMITTED.value,
            )
        return _row_to_request(row) if row else None

    async def update_status(
        self,
        request_id: str,
        expected: ServiceStatus,
        target: ServiceStatus,
        at: datetime,
        estimated_cost: float | None = None,
        actual_cost: float | None = None,
        conn: Connection | None = None,
    ) -> Optional[ServiceRequest]:
        """
        Переход expected -> target.

        Временная метка целевого статуса заполняется, только если пуста;
        стоимость меняется, только если передана.
        """
        ts_field = ServiceStateMachine.timestamp_field(target)
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE service_requests
                SET status = $3,
                    {ts_field} = COALESCE({ts_field}, $4),
                    estimated_cost = COALESCE($5, estimated_cost),
                    actual_cost = COALESCE($6, actual_cost),
                    updated_at = NOW()
                WHERE id = $1 AND status = $2
                RETURNING {_COLUMNS}
                """,
                request_id,
                expected.value,
                target.value,
                at,
                estimated_cost,
                actual_cost,
            )
        return _row_to_request(row) if row else None

    # =========================================================================
    # СПИСКИ
    # =========================================================================

    async def list_for_customer(self, customer_id: str, limit: int = 20, offset: int = 0) -> list[ServiceRequest]:
        return await self._list("customer_id = $1", [customer_id], None, limit, offset)

    async def list_for_mechanic(
        self,
        mechanic_id: str,
        status: ServiceStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ServiceRequest]:
        return await self._list("mechanic_id = $1", [mechanic_id], status, limit, offset)

    async def list_for_workshop(
        self,
        workshop_id: str,
        status: ServiceStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ServiceRequest]:
        """Заявки мастерской и все заявки без выбранной мастерской."""
        return await self._list("(workshop_id = $1 OR workshop_id IS NULL)", [workshop_id], status, limit, offset)

    async def _list(
        self,
        where: str,
        args: list,
        status: ServiceStatus | None,
        limit: int,
        offset: int,
    ) -> list[ServiceRequest]:
        params = list(args)
        if status is not None:
            params.append(status.value)
            where += f" AND status = ${len(params)}"
        params.extend([limit, offset])
        async with self._db.connection() as c:
            rows = await c.fetch(
                f"""
                SELECT {_COLUMNS} FROM service_requests
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT ${len(params) - 1} OFFSET ${len(params)}
                """,
                *params,
            )
        return [_row_to_request(r) for r in rows]


def _row_to_request(row: Record) -> ServiceRequest:
    data = dict(row)
    data["images"] = list(data.get("images") or [])
    return ServiceRequest(**data)

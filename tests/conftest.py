# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.

Сервисные сценарии выполняются на in-memory репозиториях: FakeDatabase
откатывает все таблицы при исключении внутри transaction(), поэтому
атомарность назначения и переходов проверяется без PostgreSQL.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("SERP_API_KEY", "test_serp_key")

from src.common.constants import (  # noqa: E402
    MechanicAvailability,
    OutboxStatus,
    ServiceStatus,
    UserRole,
)
from src.common.errors import ExternalCollaboratorError  # noqa: E402
from src.core.access import AccessPolicy, Actor  # noqa: E402
from src.core.assignment import AssignmentCoordinator, MechanicSchedule  # noqa: E402
from src.core.notifications import Notification, NotificationFanout  # noqa: E402
from src.core.outbox import OutboxEntry, SideEffectOutbox  # noqa: E402
from src.core.outbox.handlers import register_default_handlers  # noqa: E402
from src.core.requests import RequestLifecycleManager, ServiceRequest  # noqa: E402
from src.core.requests.state_machine import ServiceStateMachine  # noqa: E402
from src.core.updates import ServiceUpdate, ServiceUpdateLog  # noqa: E402
from src.core.workshops import Mechanic, UserContact, Workshop  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.publish_room = AsyncMock(return_value=1)
    redis.room_channel = lambda room: f"room:{room}"
    redis.room_from_channel = lambda channel: channel.split(":", 1)[1]
    return redis


# =============================================================================
# IN-MEMORY ХРАНИЛИЩЕ
# =============================================================================

FAKE_CONN = object()


class InMemoryStore:
    TABLES = (
        "requests",
        "mechanics",
        "workshops",
        "users",
        "updates",
        "notifications",
        "schedules",
        "outbox",
    )

    def __init__(self) -> None:
        for table in self.TABLES:
            setattr(self, table, {})

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {table: dict(getattr(self, table)) for table in self.TABLES}

    def restore(self, snapshot: dict[str, dict[str, Any]]) -> None:
        for table, rows in snapshot.items():
            setattr(self, table, rows)


class FakeDatabase:
    """Транзакция = снимок таблиц; при исключении снимок восстанавливается."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.transactions = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[object]:
        snapshot = self.store.snapshot()
        self.transactions += 1
        try:
            yield FAKE_CONN
        except BaseException:
            self.store.restore(snapshot)
            self.rollbacks += 1
            raise

    @asynccontextmanager
    async def connection(self, conn: object | None = None) -> AsyncIterator[object]:
        yield conn or FAKE_CONN

    async def health_check(self) -> bool:
        return True


def _newest_first(rows: list[Any], key: str) -> list[Any]:
    return sorted(reversed(rows), key=lambda r: getattr(r, key), reverse=True)


class FakeServiceRequestRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, request_id, conn=None, for_update=False) -> Optional[ServiceRequest]:
        return self._store.requests.get(request_id)

    async def create(self, request, conn=None) -> ServiceRequest:
        self._store.requests[request.id] = request
        return request

    async def assign(self, request_id, mechanic_id, workshop_id, assigned_at, conn=None):
        current = self._store.requests.get(request_id)
        if current is None or current.status != ServiceStatus.SUBMITTED or current.mechanic_id is not None:
            return None
        updated = current.model_copy(
            update={
                "status": ServiceStatus.ASSIGNED,
                "mechanic_id": mechanic_id,
                "workshop_id": current.workshop_id or workshop_id,
                "assigned_at": assigned_at,
            }
        )
        self._store.requests[request_id] = updated
        return updated

    async def update_status(
        self,
        request_id,
        expected,
        target,
        at,
        estimated_cost=None,
        actual_cost=None,
        conn=None,
    ):
        current = self._store.requests.get(request_id)
        if current is None or current.status != expected:
            return None
        field = ServiceStateMachine.TIMESTAMP_FIELDS[target]
        updated = current.model_copy(
            update={
                "status": target,
                field: getattr(current, field) or at,
                "estimated_cost": estimated_cost if estimated_cost is not None else current.estimated_cost,
                "actual_cost": actual_cost if actual_cost is not None else current.actual_cost,
            }
        )
        self._store.requests[request_id] = updated
        return updated

    def _list(self, predicate, status, limit, offset) -> list[ServiceRequest]:
        rows = [r for r in self._store.requests.values() if predicate(r)]
        if status is not None:
            rows = [r for r in rows if r.status == status]
        return _newest_first(rows, "created_at")[offset:offset + limit]

    async def list_for_customer(self, customer_id, limit=20, offset=0):
        return self._list(lambda r: r.customer_id == customer_id, None, limit, offset)

    async def list_for_mechanic(self, mechanic_id, status=None, limit=20, offset=0):
        return self._list(lambda r: r.mechanic_id == mechanic_id, status, limit, offset)

    async def list_for_workshop(self, workshop_id, status=None, limit=20, offset=0):
        return self._list(lambda r: r.workshop_id in (workshop_id, None), status, limit, offset)


class FakeWorkshopRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, workshop_id, conn=None):
        return self._store.workshops.get(workshop_id)

    async def get_by_admin(self, admin_id, conn=None):
        return next((w for w in self._store.workshops.values() if w.admin_id == admin_id), None)

    async def list_open(self):
        return [w for w in self._store.workshops.values() if w.is_open]


class FakeMechanicRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.fail_next_cas = False

    async def get_by_id(self, mechanic_id, conn=None, for_update=False):
        return self._store.mechanics.get(mechanic_id)

    async def get_by_user_id(self, user_id, conn=None):
        return next((m for m in self._store.mechanics.values() if m.user_id == user_id), None)

    async def compare_and_set_availability(self, mechanic_id, expected, new, conn=None) -> bool:
        if self.fail_next_cas:
            self.fail_next_cas = False
            return False
        current = self._store.mechanics.get(mechanic_id)
        if current is None or current.availability != expected:
            return False
        self._store.mechanics[mechanic_id] = current.model_copy(
            update={"availability": new, "updated_at": datetime.now(timezone.utc)}
        )
        return True


class FakeUserRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_contact(self, user_id, conn=None):
        return self._store.users.get(user_id)


class FakeServiceUpdateRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def create(self, update, conn=None) -> ServiceUpdate:
        self._store.updates[update.id] = update
        return update

    async def list_for_request(self, request_id):
        rows = [u for u in self._store.updates.values() if u.service_request_id == request_id]
        return _newest_first(rows, "timestamp")


class FakeNotificationRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.fail = False

    async def create(self, notification, conn=None) -> Notification:
        if self.fail:
            raise ConnectionError("notifications table unavailable")
        self._store.notifications.setdefault(notification.id, notification)
        return notification

    async def list_for_user(self, user_id, limit=50, offset=0, unread_only=False):
        rows = [n for n in self._store.notifications.values() if n.user_id == user_id]
        if unread_only:
            rows = [n for n in rows if not n.is_read]
        return _newest_first(rows, "created_at")[offset:offset + limit]

    async def count_unread(self, user_id) -> int:
        return sum(
            1 for n in self._store.notifications.values() if n.user_id == user_id and not n.is_read
        )

    async def mark_read(self, notification_id, user_id):
        current = self._store.notifications.get(notification_id)
        if current is None or current.user_id != user_id:
            return None
        updated = current.model_copy(update={"is_read": True})
        self._store.notifications[notification_id] = updated
        return updated

    async def mark_all_read(self, user_id) -> int:
        count = 0
        for n in list(self._store.notifications.values()):
            if n.user_id == user_id and not n.is_read:
                self._store.notifications[n.id] = n.model_copy(update={"is_read": True})
                count += 1
        return count


class FakeScheduleRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.fail = False

    async def create(self, block) -> MechanicSchedule:
        if self.fail:
            raise ConnectionError("calendar unavailable")
        self._store.schedules.setdefault(block.id, block)
        return self._store.schedules[block.id]

    async def list_for_mechanic(self, mechanic_id, start=None, end=None):
        rows = [s for s in self._store.schedules.values() if s.mechanic_id == mechanic_id]
        if start is not None:
            rows = [s for s in rows if s.end_time >= start]
        if end is not None:
            rows = [s for s in rows if s.start_time <= end]
        return sorted(rows, key=lambda s: s.start_time)


class FakeOutboxRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def add(self, entry) -> OutboxEntry:
        self._store.outbox[entry.id] = entry
        return entry

    async def claim_pending(self, limit, stale_after):
        # Без await внутри: параллельный вызов увидит уже забранные записи
        stale_before = datetime.now(timezone.utc) - timedelta(seconds=stale_after)
        rows = [
            e for e in self._store.outbox.values()
            if e.status == OutboxStatus.PENDING
            or (e.status == OutboxStatus.IN_FLIGHT and e.updated_at < stale_before)
        ]
        claimed = []
        for entry in sorted(rows, key=lambda e: e.created_at)[:limit]:
            entry = entry.model_copy(
                update={"status": OutboxStatus.IN_FLIGHT, "updated_at": datetime.now(timezone.utc)}
            )
            self._store.outbox[entry.id] = entry
            claimed.append(entry)
        return claimed

    async def mark_done(self, entry_id) -> None:
        entry = self._store.outbox[entry_id]
        self._store.outbox[entry_id] = entry.model_copy(update={"status": OutboxStatus.DONE})

    async def record_failure(self, entry_id, attempts, error, status) -> None:
        entry = self._store.outbox[entry_id]
        self._store.outbox[entry_id] = entry.model_copy(
            update={"attempts": attempts, "last_error": error, "status": status}
        )

    def entries(self, status: OutboxStatus | None = None) -> list[OutboxEntry]:
        return [e for e in self._store.outbox.values() if status is None or e.status == status]


# =============================================================================
# ПОРТЫ
# =============================================================================

class RecordingPort:
    """NotificationPort, который запоминает отправленные события."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = False

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.events.append((room, event, payload))

    def to_room(self, room: str) -> list[tuple[str, dict[str, Any]]]:
        return [(event, payload) for r, event, payload in self.events if r == room]

    def named(self, event: str) -> list[tuple[str, dict[str, Any]]]:
        return [(room, payload) for room, e, payload in self.events if e == event]


class FakeEventBus:
    def __init__(self) -> None:
        self.published: list[Any] = []
        self.fail = False

    async def publish(self, event, strict: bool = False) -> bool:
        if self.fail:
            if strict:
                raise ExternalCollaboratorError("broker unavailable", collaborator="event_bus")
            return False
        self.published.append(event)
        return True

    async def health_check(self) -> bool:
        return True

    def types(self) -> list[str]:
        return [e.event_type for e in self.published]


# =============================================================================
# СБОРКА СЕРВИСОВ
# =============================================================================

@dataclass
class Harness:
    store: InMemoryStore
    db: FakeDatabase
    port: RecordingPort
    event_bus: FakeEventBus
    requests: FakeServiceRequestRepository
    mechanics: FakeMechanicRepository
    workshops: FakeWorkshopRepository
    notifications: FakeNotificationRepository
    schedules: FakeScheduleRepository
    outbox_repo: FakeOutboxRepository
    policy: AccessPolicy
    fanout: NotificationFanout
    outbox: SideEffectOutbox
    lifecycle: RequestLifecycleManager
    coordinator: AssignmentCoordinator
    update_log: ServiceUpdateLog

    # ------------------------------------------------------------------ actors

    def customer(self, user_id: str = "cust-1") -> Actor:
        return Actor(user_id=user_id, role=UserRole.END_USER)

    def mechanic(self, mechanic_id: str = "mech-a") -> Actor:
        mechanic = self.store.mechanics[mechanic_id]
        return Actor(user_id=mechanic.user_id, role=UserRole.MECHANIC, mechanic_id=mechanic.id)

    def admin(self, admin_id: str = "admin-1") -> Actor:
        workshop = next(w for w in self.store.workshops.values() if w.admin_id == admin_id)
        return Actor(user_id=admin_id, role=UserRole.WORKSHOP_ADMIN, workshop_id=workshop.id)

    # --------------------------------------------------------------- helpers

    async def submit(self, customer: str = "cust-1", **overrides: Any) -> ServiceRequest:
        payload = {**request_payload(), **overrides}
        return await self.lifecycle.create(self.customer(customer), payload)

    async def submit_assigned(self, mechanic_id: str = "mech-a", **overrides: Any) -> ServiceRequest:
        request = await self.submit(**overrides)
        admin_id = self.store.workshops[self.store.mechanics[mechanic_id].workshop_id].admin_id
        return await self.coordinator.assign(request.id, mechanic_id, admin_id)

    def request(self, request_id: str) -> ServiceRequest:
        return self.store.requests[request_id]

    def availability(self, mechanic_id: str) -> MechanicAvailability:
        return self.store.mechanics[mechanic_id].availability


def request_payload() -> dict[str, Any]:
    return {
        "vehicle_type": "Car",
        "vehicle_make": "Toyota",
        "vehicle_model": "Corolla",
        "issue_type": "Flat tyre",
        "description": "Front left tyre is flat on the highway",
        "urgency": "HIGH",
        "images": ["https://img.example.com/1.jpg", "https://img.example.com/2.jpg"],
        "pickup_address": "Sector 17, Chandigarh",
        "latitude": 30.7333,
        "longitude": 76.7794,
    }


def seed(store: InMemoryStore) -> None:
    store.workshops["ws-1"] = Workshop(
        id="ws-1", admin_id="admin-1", name="Quick Fix", address="Sector 22",
        latitude=30.7343, longitude=76.7804, rating=4.5, review_count=12,
    )
    store.workshops["ws-2"] = Workshop(
        id="ws-2", admin_id="admin-2", name="Auto Care", address="Sector 35",
        latitude=30.7200, longitude=76.7600, rating=4.0, review_count=3,
    )
    for mechanic_id, user_id, workshop_id, name in (
        ("mech-a", "mech-user-a", "ws-1", "Alex Fixer"),
        ("mech-b", "mech-user-b", "ws-1", "Bea Spanner"),
        ("mech-c", "mech-user-c", "ws-2", "Cal Wrench"),
    ):
        store.mechanics[mechanic_id] = Mechanic(
            id=mechanic_id, user_id=user_id, workshop_id=workshop_id, specialties=["tyres"],
        )
        store.users[user_id] = UserContact(
            id=user_id, name=name, email=f"{user_id}@example.com", role=UserRole.MECHANIC,
        )
    for user_id, name in (("cust-1", "Chris Driver"), ("cust-2", "Dana Rider")):
        store.users[user_id] = UserContact(
            id=user_id, name=name, email=f"{user_id}@example.com", role=UserRole.END_USER,
        )


def build_harness(strict_update_reads: bool = False) -> Harness:
    store = InMemoryStore()
    seed(store)

    db = FakeDatabase(store)
    port = RecordingPort()
    event_bus = FakeEventBus()
    requests = FakeServiceRequestRepository(store)
    mechanics = FakeMechanicRepository(store)
    workshops = FakeWorkshopRepository(store)
    notifications = FakeNotificationRepository(store)
    schedules = FakeScheduleRepository(store)
    outbox_repo = FakeOutboxRepository(store)
    updates = FakeServiceUpdateRepository(store)

    policy = AccessPolicy(strict_update_reads=strict_update_reads)
    fanout = NotificationFanout(notifications, port)
    outbox = register_default_handlers(
        SideEffectOutbox(outbox_repo, max_attempts=3),
        fanout=fanout,
        schedules=schedules,
        event_bus=event_bus,
    )
    lifecycle = RequestLifecycleManager(
        db=db,
        requests=requests,
        mechanics=mechanics,
        workshops=workshops,
        updates=updates,
        policy=policy,
        fanout=fanout,
        outbox=outbox,
        event_bus=event_bus,
    )
    coordinator = AssignmentCoordinator(
        db=db,
        lifecycle=lifecycle,
        requests=requests,
        mechanics=mechanics,
        workshops=workshops,
        users=FakeUserRepository(store),
        schedules=schedules,
        policy=policy,
        fanout=fanout,
        outbox=outbox,
        event_bus=event_bus,
        block_hours=2.0,
        schedule_type="SERVICE",
    )
    return Harness(
        store=store,
        db=db,
        port=port,
        event_bus=event_bus,
        requests=requests,
        mechanics=mechanics,
        workshops=workshops,
        notifications=notifications,
        schedules=schedules,
        outbox_repo=outbox_repo,
        policy=policy,
        fanout=fanout,
        outbox=outbox,
        lifecycle=lifecycle,
        coordinator=coordinator,
        update_log=ServiceUpdateLog(requests, updates, policy, fanout),
    )


@pytest.fixture
def harness() -> Harness:
    """Полный набор сервисов на in-memory репозиториях."""
    return build_harness()


@pytest.fixture
def strict_harness() -> Harness:
    """То же, но чтение журнала обновлений только для участников заявки."""
    return build_harness(strict_update_reads=True)

# src/services/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.infra.database import close_db, init_db
from src.infra.event_bus import close_event_bus, init_event_bus
from src.infra.redis_client import close_redis, init_redis
from src.services.api.dependencies import ServiceContainer, build_container
from src.services.api.errors import register_exception_handlers
from src.services.api.routes import discovery_router, notifications_router, services_router


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Создаёт приложение API.

    Без готового контейнера lifespan подключает PostgreSQL, Redis и
    RabbitMQ и собирает сервисы; с контейнером инфраструктура не трогается.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_infra = container is None
        if owns_infra:
            db = await init_db()
            redis = await init_redis()
            event_bus = await init_event_bus()
            app.state.container = build_container(db, redis, event_bus)
        else:
            app.state.container = container

        await log_info("API сервис запущен", type_msg=TypeMsg.INFO)
        yield

        await app.state.container.fanout.drain()
        if owns_infra:
            await app.state.container.search.close()
            await close_event_bus()
            await close_redis()
            await close_db()
        await log_info("API сервис остановлен", type_msg=TypeMsg.INFO)

    app = FastAPI(
        title="Roadside Assist API",
        version="0.1.0",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    register_exception_handlers(app)
    app.include_router(services_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(discovery_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        current: ServiceContainer = app.state.container
        checks = {}
        if current.db is not None:
            checks["database"] = await current.db.health_check()
        if current.redis is not None:
            checks["redis"] = await current.redis.health_check()
        if current.event_bus is not None:
            checks["event_bus"] = await current.event_bus.health_check()
        healthy = all(checks.values())
        return {"status": "ok" if healthy else "degraded", "service": "api", "checks": checks}

    return app

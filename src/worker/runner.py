# src/worker/runner.py
"""
Запускалка воркеров.
"""

from __future__ import annotations

import asyncio
from typing import List

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.core.assignment import ScheduleRepository
from src.core.notifications import NotificationFanout, NotificationRepository, RedisNotificationPort
from src.core.outbox import OutboxRepository, SideEffectOutbox
from src.core.outbox.handlers import register_default_handlers
from src.infra.database import close_db, init_db
from src.infra.event_bus import close_event_bus, init_event_bus
from src.infra.redis_client import close_redis, init_redis
from src.worker.base import BaseWorker
from src.worker.outbox import OutboxReplayWorker


async def run_workers() -> None:
    """Поднимает инфраструктуру и крутит OutboxReplayWorker до остановки."""
    await log_info("Инициализация инфраструктуры для воркеров...", type_msg=TypeMsg.DEBUG)
    db = await init_db(apply_schema=False)
    redis = await init_redis()
    event_bus = await init_event_bus()

    fanout = NotificationFanout(NotificationRepository(db), RedisNotificationPort(redis))
    outbox = register_default_handlers(
        SideEffectOutbox(OutboxRepository(db)),
        fanout=fanout,
        schedules=ScheduleRepository(db),
        event_bus=event_bus,
    )

    workers: List[BaseWorker] = [OutboxReplayWorker(outbox)]

    try:
        for worker in workers:
            await worker.start()
        await log_info(f"Запущено {len(workers)} воркеров", type_msg=TypeMsg.INFO)

        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
    finally:
        for worker in workers:
            await worker.stop()
        await fanout.drain()

        await close_event_bus()
        await close_redis()
        await close_db()
        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

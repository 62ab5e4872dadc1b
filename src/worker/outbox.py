# src/worker/outbox.py
"""
Повтор отложенных побочных эффектов (расписание, уведомления, письма).
"""

from __future__ import annotations

from typing import Optional

from src.core.outbox import SideEffectOutbox
from src.worker.base import BaseWorker


class OutboxReplayWorker(BaseWorker):
    def __init__(
        self,
        outbox: SideEffectOutbox,
        interval: Optional[float] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        if interval is None or batch_size is None:
            from src.config import settings
            interval = interval if interval is not None else settings.outbox.REPLAY_INTERVAL
            batch_size = batch_size or settings.outbox.REPLAY_BATCH_SIZE

        super().__init__(interval=interval)
        self._outbox = outbox
        self._batch_size = batch_size
        self.last_stats: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "OutboxReplayWorker"

    async def run_once(self) -> None:
        self.last_stats = await self._outbox.replay_pending(limit=self._batch_size)

# src/worker/__init__.py
"""
Фоновые воркеры.
"""

from src.worker.base import BaseWorker
from src.worker.outbox import OutboxReplayWorker

__all__ = ["BaseWorker", "OutboxReplayWorker"]

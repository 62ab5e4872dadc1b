# src/core/outbox/__init__.py
"""
Outbox побочных эффектов: выполнить сразу или сохранить для повтора.
"""

from src.core.outbox.models import OutboxEntry
from src.core.outbox.repository import OutboxRepository
from src.core.outbox.service import SideEffectHandler, SideEffectOutbox

__all__ = ["OutboxEntry", "OutboxRepository", "SideEffectHandler", "SideEffectOutbox"]

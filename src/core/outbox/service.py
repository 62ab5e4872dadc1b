# src/core/outbox/service.py
"""
Выполнение побочных эффектов с сохранением неудач для повтора.

Основная операция (назначение, смена статуса) к этому моменту уже
зафиксирована. Побочный эффект либо выполняется сразу, либо попадает
в outbox и повторяется воркером.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from src.common.constants import OutboxStatus, SideEffectKind, TypeMsg
from src.common.errors import ExternalCollaboratorError
from src.common.logger import log_error, log_info, log_warning
from src.core.outbox.models import OutboxEntry
from src.core.outbox.repository import OutboxRepository

SideEffectHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class SideEffectOutbox:
    """
    Реестр обработчиков побочных эффектов.

    Один и тот же обработчик используется и при первой попытке, и при
    повторе из outbox, поэтому payload должен сериализоваться в JSON.
    """

    def __init__(
        self,
        repo: OutboxRepository,
        max_attempts: int | None = None,
        claim_timeout: int | None = None,
    ) -> None:
        from src.config import settings
        self._repo = repo
        self._max_attempts = max_attempts if max_attempts is not None else settings.outbox.MAX_ATTEMPTS
        self._claim_timeout = claim_timeout if claim_timeout is not None else settings.outbox.CLAIM_TIMEOUT
        self._handlers: dict[str, SideEffectHandler] = {}

    def register(self, kind: SideEffectKind | str, handler: SideEffectHandler) -> None:
        self._handlers[_kind_value(kind)] = handler

    def has_handler(self, kind: SideEffectKind | str) -> bool:
        return _kind_value(kind) in self._handlers

    async def _execute(self, kind: str, payload: dict[str, Any]) -> None:
        handler = self._handlers.get(kind)
        if handler is None:
            raise ExternalCollaboratorError(f"Нет обработчика для {kind}", collaborator=kind)
        try:
            await handler(payload)
        except ExternalCollaboratorError:
            raise
        except Exception as e:
            raise ExternalCollaboratorError(str(e) or type(e).__name__, collaborator=kind) from e

    async def run(self, kind: SideEffectKind | str, payload: dict[str, Any]) -> bool:
        """
        Выполняет побочный эффект. Никогда не поднимает исключение.

        Returns:
            True, если эффект выполнен; False, если он отложен в outbox
        """
        kind_value = _kind_value(kind)
        try:
            await self._execute(kind_value, payload)
            return True
        except ExternalCollaboratorError as e:
            await log_warning(f"Побочный эффект {kind_value} отложен: {e.message}")
            try:
                await self._repo.add(
                    OutboxEntry(kind=kind_value, payload=payload, last_error=e.message)
                )
            except Exception as store_error:
                await log_error(
                    f"Не удалось сохранить {kind_value} в outbox: {store_error}; payload={payload}",
                    exc_info=True,
                )
            return False

    async def replay_pending(self, limit: int = 50) -> dict[str, int]:
        """
        Повторяет отложенные эффекты.

        Записи сначала забираются атомарно, поэтому несколько воркеров
        не выполняют один и тот же эффект одновременно.

        Returns:
            Счётчики {"done": ..., "retry": ..., "failed": ...}
        """
        stats = {"done": 0, "retry": 0, "failed": 0}
        for entry in await self._repo.claim_pending(limit, self._claim_timeout):
            try:
                await self._execute(entry.kind, entry.payload)
            except ExternalCollaboratorError as e:
                attempts = entry.attempts + 1
                status = OutboxStatus.FAILED if attempts >= self._max_attempts else OutboxStatus.PENDING
                await self._repo.record_failure(entry.id, attempts, e.message, status)
                if status == OutboxStatus.FAILED:
                    stats["failed"] += 1
                    await log_error(
                        f"Побочный эффект {entry.kind} ({entry.id}) не выполнен после {attempts} попыток: {e.message}"
                    )
                else:
                    stats["retry"] += 1
                continue

            await self._repo.mark_done(entry.id)
            stats["done"] += 1

        if any(stats.values()):
            await log_info(f"Повтор outbox: {stats}", type_msg=TypeMsg.INFO)
        return stats


def _kind_value(kind: SideEffectKind | str) -> str:
    return kind.value if isinstance(kind, SideEffectKind) else kind

# tests/core/test_updates.py
"""
Тесты журнала обновлений по заявке.
"""

from __future__ import annotations

import pytest

from conftest import Harness
from src.common.errors import PermissionDeniedError, RequestNotFound, ValidationError


class TestAppend:
    @pytest.mark.asyncio
    async def test_assigned_mechanic_appends(self, harness: Harness) -> None:
        request = await harness.submit_assigned()
        await harness.fanout.drain()
        harness.port.events.clear()

        update = await harness.update_log.append(
            request.id, harness.mechanic(), "Replaced the tyre", images=["https://img.example.com/3.jpg"]
        )
        await harness.fanout.drain()

        assert update.service_request_id == request.id
        assert update.images == ["https://img.example.com/3.jpg"]
        pushed = harness.port.to_room("user-cust-1")
        assert [event for event, _ in pushed] == ["service-update"]
        assert pushed[0][1]["update"]["message"] == "Replaced the tyre"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [None, "", "   "])
    async def test_empty_message(self, harness: Harness, message: str | None) -> None:
        request = await harness.submit_assigned()

        with pytest.raises(ValidationError) as exc_info:
            await harness.update_log.append(request.id, harness.mechanic(), message)

        assert exc_info.value.details == [{"field": "message", "message": "Message is required"}]
        assert harness.store.updates == {}

    @pytest.mark.asyncio
    async def test_others_cannot_append(self, harness: Harness) -> None:
        request = await harness.submit_assigned()

        for actor in (harness.customer(), harness.mechanic("mech-b"), harness.admin()):
            with pytest.raises(PermissionDeniedError):
                await harness.update_log.append(request.id, actor, "Hello")
        assert harness.store.updates == {}

    @pytest.mark.asyncio
    async def test_terminal_request_still_accepts_notes(self, harness: Harness) -> None:
        request = await harness.submit_assigned()
        await harness.lifecycle.cancel(request.id, harness.customer())

        update = await harness.update_log.append(request.id, harness.mechanic(), "Left the site")

        assert update.message == "Left the site"

    @pytest.mark.asyncio
    async def test_unknown_request(self, harness: Harness) -> None:
        with pytest.raises(RequestNotFound):
            await harness.update_log.append("missing", harness.mechanic(), "Hello")


class TestList:
    @pytest.mark.asyncio
    async def test_newest_first(self, harness: Harness) -> None:
        request = await harness.submit_assigned()
        for message in ("first", "second", "third"):
            await harness.update_log.append(request.id, harness.mechanic(), message)

        updates = await harness.update_log.list(request.id, harness.customer())

        assert [u.message for u in updates] == ["third", "second", "first"]

    @pytest.mark.asyncio
    async def test_broad_reads_by_default(self, harness: Harness) -> None:
        """Любой механик и любой админ видят журнал, чужой клиент нет."""
        request = await harness.submit_assigned()

        assert await harness.update_log.list(request.id, harness.mechanic("mech-c")) == []
        assert await harness.update_log.list(request.id, harness.admin("admin-2")) == []
        with pytest.raises(PermissionDeniedError):
            await harness.update_log.list(request.id, harness.customer("cust-2"))

    @pytest.mark.asyncio
    async def test_strict_reads(self, strict_harness: Harness) -> None:
        request = await strict_harness.submit_assigned()

        assert await strict_harness.update_log.list(request.id, strict_harness.mechanic()) == []
        assert await strict_harness.update_log.list(request.id, strict_harness.admin()) == []
        for actor in (strict_harness.mechanic("mech-c"), strict_harness.admin("admin-2")):
            with pytest.raises(PermissionDeniedError):
                await strict_harness.update_log.list(request.id, actor)

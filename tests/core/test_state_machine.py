# tests/core/test_state_machine.py
"""
Тесты таблицы переходов статусов.
"""

from __future__ import annotations

import itertools

import pytest

from src.common.constants import ServiceStatus
from src.common.errors import InvalidTransition, StateConflictError
from src.core.requests.state_machine import ServiceStateMachine

S = ServiceStatus

VALID_EDGES = {
    (S.SUBMITTED, S.ASSIGNED),
    (S.SUBMITTED, S.CANCELLED),
    (S.ASSIGNED, S.IN_PROGRESS),
    (S.ASSIGNED, S.CANCELLED),
    (S.IN_PROGRESS, S.REACHED),
    (S.IN_PROGRESS, S.CANCELLED),
    (S.REACHED, S.COMPLETED),
    (S.REACHED, S.CANCELLED),
}


class TestTransitionTable:
    def test_every_pair(self) -> None:
        """Разрешены только рёбра из таблицы."""
        for current, target in itertools.product(ServiceStatus, repeat=2):
            expected = (current, target) in VALID_EDGES
            assert ServiceStateMachine.can_transition(current, target) is expected, (current, target)

    def test_terminal_have_no_exits(self) -> None:
        for status in (S.COMPLETED, S.CANCELLED):
            assert ServiceStateMachine.is_terminal(status)
            assert ServiceStateMachine.ALLOWED_TRANSITIONS[status] == frozenset()

    def test_accepts_raw_strings(self) -> None:
        assert ServiceStateMachine.can_transition("SUBMITTED", "ASSIGNED")
        assert not ServiceStateMachine.can_transition("SUBMITTED", "UNKNOWN")

    def test_timestamp_per_target(self) -> None:
        assert ServiceStateMachine.timestamp_field(S.ASSIGNED) == "assigned_at"
        assert ServiceStateMachine.timestamp_field(S.IN_PROGRESS) == "started_at"
        assert ServiceStateMachine.timestamp_field(S.REACHED) == "reached_at"
        assert ServiceStateMachine.timestamp_field(S.COMPLETED) == "completed_at"
        assert ServiceStateMachine.timestamp_field(S.CANCELLED) == "cancelled_at"


class TestValidate:
    def test_invalid_edge_raises(self) -> None:
        with pytest.raises(InvalidTransition) as exc_info:
            ServiceStateMachine.validate(S.COMPLETED, S.IN_PROGRESS)

        assert isinstance(exc_info.value, StateConflictError)
        assert exc_info.value.details == {"from": "COMPLETED", "to": "IN_PROGRESS"}

    def test_valid_edge_passes(self) -> None:
        ServiceStateMachine.validate(S.REACHED, S.COMPLETED)


class TestRepeat:
    def test_repeat_of_reachable_status(self) -> None:
        assert ServiceStateMachine.is_repeat(S.IN_PROGRESS, S.IN_PROGRESS)
        assert ServiceStateMachine.is_repeat(S.COMPLETED, S.COMPLETED)

    def test_submitted_is_not_a_repeat(self) -> None:
        """В SUBMITTED не ведёт ни одно ребро."""
        assert not ServiceStateMachine.is_repeat(S.SUBMITTED, S.SUBMITTED)
        assert not ServiceStateMachine.is_repeat(S.ASSIGNED, S.IN_PROGRESS)

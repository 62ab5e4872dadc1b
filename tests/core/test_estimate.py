# tests/core/test_estimate.py
"""
Тесты предварительной оценки стоимости.
"""

from __future__ import annotations

import pytest

from src.core.requests import CostEstimator, EstimateRequest


def _request(issue_type: str, vehicle_type: str) -> EstimateRequest:
    return EstimateRequest(
        workshop_id="ws-1",
        vehicle_type=vehicle_type,
        issue_type=issue_type,
        description="needs a look",
    )


class TestCostEstimator:
    @pytest.mark.parametrize(
        ("issue_type", "vehicle_type", "expected"),
        [
            ("Engine Problem", "Car", 2000),
            ("Flat Tire", "Motorcycle", 180),
            ("Brake Problem", "Truck", 2250),
            ("Oil Change", "Bus", 1000),
            ("Battery Issue", "Auto Rickshaw", 640),
        ],
    )
    def test_base_price_times_multiplier(self, issue_type: str, vehicle_type: str, expected: int) -> None:
        assert CostEstimator().estimate(_request(issue_type, vehicle_type)).estimated_cost == expected

    def test_unknown_types_use_defaults(self) -> None:
        estimate = CostEstimator().estimate(_request("Strange Noise", "Tractor"))

        assert estimate.estimated_cost == 1000
        assert estimate.estimated_time == "1-2 hours"

    def test_breakdown(self) -> None:
        estimate = CostEstimator().estimate(_request("Flat Tire", "Motorcycle"))

        assert estimate.workshop_id == "ws-1"
        assert estimate.breakdown.service_cost == 126
        assert estimate.breakdown.parts_cost == 54
        assert estimate.breakdown.taxes == 32

    def test_half_rounds_up(self) -> None:
        estimator = CostEstimator()
        estimator.base_prices["Wiper"] = 25
        estimator.vehicle_multipliers["Scooter"] = 0.5

        estimate = estimator.estimate(_request("Wiper", "Scooter"))

        assert estimate.estimated_cost == 13

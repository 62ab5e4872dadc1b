# src/core/requests/estimate.py
"""
Предварительная оценка стоимости ремонта.

Оценка ничего не сохраняет: базовая цена по типу неисправности
умножается на коэффициент типа транспорта.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field


def _round(value: float) -> int:
    """Округление до целого, половины вверх."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class EstimateRequest(BaseModel):
    """Запрос оценки стоимости."""
    workshop_id: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1)
    issue_type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class CostBreakdown(BaseModel):
    service_cost: int
    parts_cost: int
    taxes: int


class CostEstimate(BaseModel):
    """Результат оценки."""
    workshop_id: str
    vehicle_type: str
    issue_type: str
    estimated_cost: int
    estimated_time: str
    breakdown: CostBreakdown


class CostEstimator:
    """Калькулятор предварительной стоимости."""

    def __init__(self) -> None:
        """Инициализация с загрузкой тарифов из конфига."""
        from src.config import settings

        tariffs = settings.estimates
        self.base_prices = dict(tariffs.BASE_PRICES)
        self.vehicle_multipliers = dict(tariffs.VEHICLE_MULTIPLIERS)
        self.default_base_price = tariffs.DEFAULT_BASE_PRICE
        self.default_multiplier = tariffs.DEFAULT_MULTIPLIER
        self.service_share = tariffs.SERVICE_SHARE
        self.parts_share = tariffs.PARTS_SHARE
        self.tax_rate = tariffs.TAX_RATE
        self.estimated_time = tariffs.ESTIMATED_TIME

    def estimate(self, request: EstimateRequest) -> CostEstimate:
        """
        Рассчитывает оценку.

        Неизвестный тип неисправности берёт базовую цену по умолчанию,
        неизвестный тип транспорта берёт коэффициент по умолчанию.
        """
        base = self.base_prices.get(request.issue_type, self.default_base_price)
        multiplier = self.vehicle_multipliers.get(request.vehicle_type, self.default_multiplier)
        cost = _round(base * multiplier)

        return CostEstimate(
            workshop_id=request.workshop_id,
            vehicle_type=request.vehicle_type,
            issue_type=request.issue_type,
            estimated_cost=cost,
            estimated_time=self.estimated_time,
            breakdown=CostBreakdown(
                service_cost=_round(cost * self.service_share),
                parts_cost=_round(cost * self.parts_share),
                taxes=_round(cost * self.tax_rate),
            ),
        )

# src/core/requests/__init__.py
"""
Заявки на обслуживание: модель, таблица переходов, жизненный цикл.
"""

from src.core.requests.estimate import CostEstimate, CostEstimator, EstimateRequest
from src.core.requests.models import (
    AssignRequest,
    CancelRequest,
    ServiceRequest,
    ServiceRequestCreate,
    StatusChange,
)
from src.core.requests.repository import ServiceRequestRepository
from src.core.requests.service import RequestLifecycleManager
from src.core.requests.state_machine import ServiceStateMachine

__all__ = [
    "CostEstimate",
    "CostEstimator",
    "EstimateRequest",
    "AssignRequest",
    "CancelRequest",
    "RequestLifecycleManager",
    "ServiceRequest",
    "ServiceRequestCreate",
    "ServiceRequestRepository",
    "ServiceStateMachine",
    "StatusChange",
]

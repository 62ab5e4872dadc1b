# src/core/updates/__init__.py
"""
Журнал обновлений по заявке (только добавление).
"""

from src.core.updates.models import ServiceUpdate, ServiceUpdateCreate
from src.core.updates.repository import ServiceUpdateRepository
from src.core.updates.service import ServiceUpdateLog

__all__ = ["ServiceUpdate", "ServiceUpdateCreate", "ServiceUpdateLog", "ServiceUpdateRepository"]

# src/common/__init__.py
"""
Общие константы, доменные ошибки и логгер.
"""

from src.common.constants import ServiceStatus, TypeMsg, UserRole
from src.common.errors import ServiceError
from src.common.logger import get_logger, log_debug, log_error, log_info, log_warning

__all__ = [
    "ServiceError",
    "ServiceStatus",
    "TypeMsg",
    "UserRole",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
]

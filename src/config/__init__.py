# src/config/__init__.py
"""
Настройки roadside-assist: config/config.json + переменные окружения (.env).
"""

from src.config.loader import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]

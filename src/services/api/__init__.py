# src/services/api/__init__.py
"""
HTTP API: заявки, назначение, журнал обновлений, уведомления, поиск.
"""

# src/services/__init__.py
"""
Сервисы приложения.

Архитектура:
- Каждый сервис — отдельный процесс со своей точкой входа
- Общая PostgreSQL
- Доменные события через RabbitMQ, real-time события через Redis Pub/Sub

Сервисы:
- api: HTTP API заявок, уведомлений и поиска мастерских
- realtime_ws: WebSocket шлюз комнат пользователей и механиков
"""

__all__: list[str] = []

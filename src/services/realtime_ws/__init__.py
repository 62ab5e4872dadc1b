# src/services/realtime_ws/__init__.py
"""
Realtime-шлюз: WebSocket сессии пользователей и комнаты.

События публикуются API-сервисом в Redis (`room:{room}`) и
раздаются всем сессиям, вошедшим в комнату.
"""

# src/services/realtime_ws/connection_manager.py
"""
Менеджер WebSocket сессий и комнат.

У пользователя может быть несколько сессий (вкладки, устройства);
каждая сессия при подключении входит в комнату `user-{user_id}`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import WebSocket

from src.common.logger import log_warning
from src.core.notifications import user_room


@dataclass
class SessionInfo:
    """Информация о сессии."""
    websocket: WebSocket
    session_id: str
    user_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rooms: set[str] = field(default_factory=set)


class ConnectionManager:
    """
    Сессии, членство в комнатах и рассылка.

    Доставка без подтверждений: сессия, на которую не удалось отправить,
    отключается, сообщение не повторяется.
    """

    def __init__(self) -> None:
        # session_id -> SessionInfo
        self._sessions: dict[str, SessionInfo] = {}

        # room -> set of session_ids
        self._rooms: dict[str, set[str]] = {}

        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        return len(self._sessions)

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        """Принимает сокет и сразу добавляет его в личную комнату."""
        await websocket.accept()

        session_id = str(uuid4())
        self._sessions[session_id] = SessionInfo(
            websocket=websocket,
            session_id=session_id,
            user_id=user_id,
        )
        self._total_connections += 1
        self.join(session_id, user_room(user_id))
        return session_id

    def disconnect(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        for room in list(session.rooms):
            self._remove_from_room(session_id, room)

    def join(self, session_id: str, room: str) -> None:
        """
        Добавляет сессию в комнату.

        Примеры комнат:
        - user-{user_id} — личные события
        - mechanic-{mechanic_id} — назначения и отмены механика
        - unassigned-requests — новые заявки без мастерской
        """
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.rooms.add(room)
        self._rooms.setdefault(room, set()).add(session_id)

    def leave(self, session_id: str, room: str) -> None:
        self._remove_from_room(session_id, room)

    def _remove_from_room(self, session_id: str, room: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.rooms.discard(room)

        members = self._rooms.get(room)
        if members is not None:
            members.discard(session_id)
            if not members:
                del self._rooms[room]

    async def send_personal(self, session_id: str, message: dict[str, Any]) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        try:
            await session.websocket.send_json(message)
        except Exception as e:
            await log_warning(f"Сессия {session_id} недоступна: {e}")
            self.disconnect(session_id)
            return False
        self._total_messages_sent += 1
        return True

    async def emit_to_room(self, room: str, message: dict[str, Any]) -> int:
        """
        Отправляет сообщение всем сессиям комнаты.

        Returns:
            Количество успешно отправленных сообщений
        """
        sent = 0
        for session_id in list(self._rooms.get(room, ())):
            if await self.send_personal(session_id, message):
                sent += 1
        return sent

    def get_rooms(self, session_id: str) -> set[str]:
        session = self._sessions.get(session_id)
        return set(session.rooms) if session else set()

    def get_room_members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_connections": len(self._sessions),
            "total_rooms": len(self._rooms),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
        }


# Глобальный экземпляр
manager = ConnectionManager()

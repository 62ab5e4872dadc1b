# src/services/realtime_ws/app.py
"""
FastAPI приложение realtime-шлюза.

WebSocket:
- /ws/{user_id} — сессия пользователя

Входящие сообщения:
- {"action": "join-room", "room": "mechanic-xxx"}
- {"action": "leave-room", "room": "mechanic-xxx"}
- {"action": "ping"}

Исходящие сообщения: {"event": "...", "payload": {...}}
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning
from src.infra.redis_client import close_redis, init_redis
from src.services.realtime_ws.connection_manager import manager
from src.services.realtime_ws.redis_subscriber import RedisSubscriber


async def handle_room_message(room: str, data: dict[str, Any]) -> None:
    """Пересылает событие из Redis всем сессиям комнаты."""
    await manager.emit_to_room(
        room,
        {"event": data.get("event"), "payload": data.get("payload", {})},
    )


_redis_subscriber: RedisSubscriber | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _redis_subscriber

    redis = await init_redis()
    _redis_subscriber = RedisSubscriber(redis, handle_room_message)
    await _redis_subscriber.start()
    await log_info("Realtime шлюз запущен", type_msg=TypeMsg.INFO)

    yield

    if _redis_subscriber:
        await _redis_subscriber.stop()
    await close_redis()


app = FastAPI(
    title="Roadside Assist Realtime Gateway",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    return {"status": "ok", "service": "realtime_ws"}


@app.get("/stats", tags=["Stats"])
async def get_stats() -> dict[str, Any]:
    return manager.get_stats()


@app.websocket("/ws/{user_id}")
async def websocket_session(websocket: WebSocket, user_id: str) -> None:
    session_id = await manager.connect(websocket, user_id)
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                await log_warning(f"Сессия {session_id}: некорректный JSON: {e}")
                continue
            await handle_client_message(session_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(session_id)


async def handle_client_message(session_id: str, data: Any) -> None:
    if not isinstance(data, dict):
        await log_warning(f"Сессия {session_id}: ожидался объект, получено {data!r}")
        return

    action = data.get("action")
    room = data.get("room")

    if action == "join-room" and room:
        manager.join(session_id, room)
        await manager.send_personal(session_id, {"event": "joined", "payload": {"room": room}})

    elif action == "leave-room" and room:
        manager.leave(session_id, room)
        await manager.send_personal(session_id, {"event": "left", "payload": {"room": room}})

    elif action == "ping":
        await manager.send_personal(session_id, {"event": "pong", "payload": {}})

    else:
        await log_warning(f"Сессия {session_id}: неизвестное сообщение {data!r}")

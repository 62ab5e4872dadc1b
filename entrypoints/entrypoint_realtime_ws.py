#!/usr/bin/env python3
# entrypoint_realtime_ws.py
"""
Точка входа для realtime-шлюза.
Порт: settings.deployment.REALTIME_WS_PORT (8089)
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    uvicorn.run(
        "src.services.realtime_ws.app:app",
        host=settings.deployment.REALTIME_WS_HOST,
        port=settings.deployment.REALTIME_WS_PORT,
        reload=settings.system.DEBUG,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "roadside_assist"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Хосты и порты сервисов."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    REALTIME_WS_HOST: str = "0.0.0.0"
    REALTIME_WS_PORT: int = 8089
    FRONTEND_URL: str = "http://localhost:5173"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "roadside"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis (real-time комнаты)."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_MAX_CONNECTIONS: int = 50
    ROOM_CHANNEL_PREFIX: str = "room"

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ (доменные события)."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "roadside.events"

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Пароль из окружения имеет приоритет."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class ExternalSearchSettings(BaseModel):
    """Настройки внешнего поиска механиков (SerpAPI)."""
    SERP_API_KEY: str = ""
    SERP_BASE_URL: str = "https://serpapi.com/search"
    SERP_ENGINE: str = "google_local"
    SERP_ZOOM: int = 14
    DEFAULT_QUERY: str = "Mechanic"
    DEFAULT_SERVICE_TYPES: list[str] = Field(
        default_factory=lambda: ["Mechanic", "Auto Repair", "Car Service"]
    )
    RESULTS_PER_BUCKET: int = 10
    MAX_RESULTS: int = 20
    REQUEST_TIMEOUT: float = 10.0

    @field_validator("SERP_API_KEY", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает API ключ из переменных окружения."""
        if not v:
            return os.getenv("SERP_API_KEY", "")
        return v


class DiscoverySettings(BaseModel):
    """Настройки поиска ближайших мастерских."""
    DEFAULT_RADIUS_KM: float = 10.0


class AssignmentSettings(BaseModel):
    """Настройки назначения механика."""
    SERVICE_BLOCK_HOURS: float = 2.0
    SCHEDULE_TYPE: str = "SERVICE"


class AccessSettings(BaseModel):
    """Политика доступа."""
    # false: исторически широкий доступ к журналу обновлений
    STRICT_UPDATE_READ_ACCESS: bool = False


class EstimateSettings(BaseModel):
    """Тарифы предварительной оценки стоимости."""
    BASE_PRICES: dict[str, float] = Field(
        default_factory=lambda: {
            "Engine Problem": 2000,
            "Flat Tire": 300,
            "Battery Issue": 800,
            "Brake Problem": 1500,
            "AC Issue": 1200,
            "Oil Change": 500,
            "General Service": 1000,
        }
    )
    VEHICLE_MULTIPLIERS: dict[str, float] = Field(
        default_factory=lambda: {
            "Car": 1.0,
            "Motorcycle": 0.6,
            "Truck": 1.5,
            "Bus": 2.0,
            "Auto Rickshaw": 0.8,
        }
    )
    DEFAULT_BASE_PRICE: float = 1000
    DEFAULT_MULTIPLIER: float = 1.0
    SERVICE_SHARE: float = 0.7
    PARTS_SHARE: float = 0.3
    TAX_RATE: float = 0.18
    ESTIMATED_TIME: str = "1-2 hours"


class OutboxSettings(BaseModel):
    """Настройки повторного выполнения побочных эффектов."""
    REPLAY_INTERVAL: int = 30
    REPLAY_BATCH_SIZE: int = 50
    MAX_ATTEMPTS: int = 5
    # IN_FLIGHT дольше этого срока считается брошенным упавшим воркером
    CLAIM_TIMEOUT: int = 300


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    external_search: ExternalSearchSettings = Field(default_factory=ExternalSearchSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    assignment: AssignmentSettings = Field(default_factory=AssignmentSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    estimates: EstimateSettings = Field(default_factory=EstimateSettings)
    outbox: OutboxSettings = Field(default_factory=OutboxSettings)

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса инфраструктуры переопределяются из окружения.
        """
        data = load_config_json()

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "roadside_assist"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            deployment=DeploymentSettings(
                API_HOST=data.get("API_HOST", "0.0.0.0"),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 8000))),
                REALTIME_WS_HOST=data.get("REALTIME_WS_HOST", "0.0.0.0"),
                REALTIME_WS_PORT=int(os.getenv("REALTIME_WS_PORT", data.get("REALTIME_WS_PORT", 8089))),
                FRONTEND_URL=os.getenv("FRONTEND_URL", data.get("FRONTEND_URL", "http://localhost:5173")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "roadside")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=data.get("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
                ROOM_CHANNEL_PREFIX=data.get("ROOM_CHANNEL_PREFIX", "room"),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "roadside.events"),
            ),
            external_search=ExternalSearchSettings(
                SERP_API_KEY=os.getenv("SERP_API_KEY", data.get("SERP_API_KEY", "")),
                SERP_BASE_URL=data.get("SERP_BASE_URL", "https://serpapi.com/search"),
                SERP_ENGINE=data.get("SERP_ENGINE", "google_local"),
                SERP_ZOOM=data.get("SERP_ZOOM", 14),
                DEFAULT_QUERY=data.get("DEFAULT_QUERY", "Mechanic"),
                DEFAULT_SERVICE_TYPES=data.get(
                    "DEFAULT_SERVICE_TYPES", ["Mechanic", "Auto Repair", "Car Service"]
                ),
                RESULTS_PER_BUCKET=data.get("RESULTS_PER_BUCKET", 10),
                MAX_RESULTS=data.get("MAX_RESULTS", 20),
                REQUEST_TIMEOUT=data.get("REQUEST_TIMEOUT", 10.0),
            ),
            discovery=DiscoverySettings(
                DEFAULT_RADIUS_KM=data.get("DEFAULT_RADIUS_KM", 10.0),
            ),
            assignment=AssignmentSettings(
                SERVICE_BLOCK_HOURS=data.get("SERVICE_BLOCK_HOURS", 2.0),
                SCHEDULE_TYPE=data.get("SCHEDULE_TYPE", "SERVICE"),
            ),
            access=AccessSettings(
                STRICT_UPDATE_READ_ACCESS=data.get("STRICT_UPDATE_READ_ACCESS", False),
            ),
            estimates=EstimateSettings(
                BASE_PRICES=data.get("ESTIMATE_BASE_PRICES", EstimateSettings().BASE_PRICES),
                VEHICLE_MULTIPLIERS=data.get(
                    "ESTIMATE_VEHICLE_MULTIPLIERS", EstimateSettings().VEHICLE_MULTIPLIERS
                ),
                DEFAULT_BASE_PRICE=data.get("ESTIMATE_DEFAULT_BASE_PRICE", 1000),
                DEFAULT_MULTIPLIER=data.get("ESTIMATE_DEFAULT_MULTIPLIER", 1.0),
                SERVICE_SHARE=data.get("ESTIMATE_SERVICE_SHARE", 0.7),
                PARTS_SHARE=data.get("ESTIMATE_PARTS_SHARE", 0.3),
                TAX_RATE=data.get("ESTIMATE_TAX_RATE", 0.18),
                ESTIMATED_TIME=data.get("ESTIMATE_TIME", "1-2 hours"),
            ),
            outbox=OutboxSettings(
                REPLAY_INTERVAL=data.get("OUTBOX_REPLAY_INTERVAL", 30),
                REPLAY_BATCH_SIZE=data.get("OUTBOX_REPLAY_BATCH_SIZE", 50),
                MAX_ATTEMPTS=data.get("OUTBOX_MAX_ATTEMPTS", 5),
                CLAIM_TIMEOUT=data.get("OUTBOX_CLAIM_TIMEOUT", 300),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()

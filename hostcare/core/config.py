"""
Config Maker
"""

# pyright: basic

__all__ = ("settings",)

import tempfile
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from hostcare import __project__, __version__


class Settings(BaseSettings):
    PROJECT_NAME: str = __project__
    PROJECT_VERSION: str = __version__
    API_VERSION: int = 1
    DEBUG: bool = False
    LOG_MESSAGE_MAX_LEN: int = 2000

    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8084
    APP_WORKERS: int = 1
    APP_AUTH_KEY: str = ""

    STORAGE_DIR: str = "./data"
    CATALOG_PATH: str | None = None  # None = packaged default catalog
    DEFAULT_TASK_TIMEOUT_SECONDS: float = 300.0
    INIT_LOCK_TIMEOUT_SECONDS: float = 5.0
    SESSION_RETENTION_DAYS: int = 30

    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB_CACHE: int = 4
    REDIS_PASSWORD: str | None = None
    REPORT_CACHE_TTL: int = 30 * 60

    # Built-in tasks
    TEMP_CLEANUP_DIRS: list[str] = [tempfile.gettempdir()]
    TEMP_FILE_MAX_AGE_DAYS: int = 7
    DISK_CHECK_PATHS: list[str] = ["/"]
    DISK_FREE_WARN_PERCENT: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HCR_",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


settings = Settings()

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Конфигурация сервиса приёма событий BrowseTrace (загружается из .env)."""

    # --- Основная информация ---
    SERVICE_NAME: str = "BrowseTrace Event Service"
    VERSION: str = "1.0.0"
    ENV: str = os.getenv("ENV", "dev")

    # --- Адрес прослушивания (только loopback) ---
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8123"))

    # --- Хранилище (однофайловая SQLite) ---
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./browsetrace.db"
    )
    DB_BUSY_TIMEOUT_MS: int = 5000            # ожидание блокировки записи вместо мгновенной ошибки

    # --- Запросы ---
    DEFAULT_QUERY_LIMIT: int = 100            # лимит GET /events по умолчанию

    # --- Сетевые таймауты ---
    READ_TIMEOUT_SEC: float = 5.0
    WRITE_TIMEOUT_SEC: float = 5.0
    KEEP_ALIVE_TIMEOUT_SEC: int = 5
    SHUTDOWN_GRACE_SEC: int = 30              # сколько ждём in-flight запросы при остановке

    # --- Логирование ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Экземпляр настроек, который можно импортировать
settings = Settings()

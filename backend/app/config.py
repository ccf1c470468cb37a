from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """PromptStudio backend settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "PromptStudio"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "promptstudio"
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async connection string; MySQL via asyncmy unless overridden."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (task update notifications) ---
    REDIS_URL: str = "redis://localhost:6379/0"
    PUBLISH_TASK_UPDATES: bool = True

    # --- Asset storage ---
    STORAGE_DIR: str = "storage"
    ASSET_URL_PREFIX: str = "/api/assets"
    DOWNLOAD_TIMEOUT: float = 120.0

    # --- Kie.ai provider ---
    KIE_API_KEY: str = ""
    KIE_BASE_URL: str = "https://api.kie.ai"
    KIE_MAX_RETRIES: int = 3
    KIE_RETRY_BASE_DELAY: float = 1.0
    KIE_RETRY_MAX_DELAY: float = 10.0
    KIE_TIMEOUT: float = 30.0

    # --- Polling / recovery ---
    POLL_TIMEOUT_SECONDS: float = 300.0
    RESUME_MAX_TASK_AGE_SECONDS: float = 300.0
    RESUME_MAX_TASKS: int = 50

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()

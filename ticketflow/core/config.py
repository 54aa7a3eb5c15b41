# ticketflow/core/config.py
import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = Field(default="sqlite:///./tickets.db")
    APP_NAME: str = "TicketFlow API"
    APP_DESC: str = "Support ticket tracking with webhook notifications"
    APP_VERSION: str = "1.0.0"

    # Legacy flat-file store, consumed once on startup
    LEGACY_JSON_PATH: str = "./db.json"
    LEGACY_COLLECTION: str = "ticket"

    # Outbound webhook
    WEBHOOK_URL: str | None = None
    WEBHOOK_ENABLED: bool = True
    WEBHOOK_TIMEOUT: float = Field(default=5.0, gt=0)

    LOG_LEVEL: str = "INFO"

    # CORS origins, comma separated
    CORS_ORIGINS: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def cors_origins(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]

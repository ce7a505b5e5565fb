"""
Settings for starter_core services.

Values come from environment variables and are read once per process.
"""

import functools
import os

from pydantic import BaseModel, Field


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Process-wide configuration shared by the API and the worker."""

    ENVIRONMENT: str = Field(default="development")
    DATABASE_URL: str = Field(default="sqlite://")
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")  # "text" or "json"

    # Queue transport
    QUEUE_BACKEND: str = Field(default="redis")  # only "redis"; InMemoryTransport is injected by tests
    QUEUE_STREAM_NAME: str = Field(default="tasks:default")
    QUEUE_GROUP_NAME: str = Field(default="task-dispatchers")
    QUEUE_DLQ_STREAM: str = Field(default="tasks:dlq")
    QUEUE_MAX_LEN: int = Field(default=100000)
    QUEUE_MAX_DELIVERIES: int = Field(default=5)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from os.environ, falling back to defaults."""
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(name)
            if raw is None:
                continue
            values[name] = _split_csv(raw) if name == "CORS_ORIGINS" else raw
        return cls(**values)


@functools.lru_cache()
def get_settings() -> Settings:
    """
    Get settings (cached).

    Call get_settings.cache_clear() after changing the environment in tests.
    """
    return Settings.from_env()

"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "critcss"
    environment: str = "development"
    debug: bool = False
    log_format: str = "json"

    api_v1_prefix: str = "/v1"
    cors_allowed_origins: List[str] = ["*"]

    redis_url: str = "redis://localhost:6379/0"

    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    default_viewport_width: int = 1300
    default_viewport_height: int = 900
    default_timeout_ms: int = 30_000

    viewport_profiles: Dict[str, Dict[str, int]] = {
        "desktop": {"width": 1440, "height": 900},
        "tablet": {"width": 1024, "height": 768},
        "mobile": {"width": 390, "height": 844},
    }

    playwright_navigation_timeout_ms: int = 60_000
    playwright_wait_until: str = "load"
    playwright_settle_ms: int = 0
    playwright_user_agent: Optional[str] = None

    oracle_max_concurrency: int = 8
    css_fetch_timeout_seconds: float = 30.0

    auth_jwt_secret: str = ""
    auth_token_header: str = "Authorization"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()

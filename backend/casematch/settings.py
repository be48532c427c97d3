"""Centralized service settings using Pydantic BaseSettings.

Matching knobs (weights, round cap) live in services/matching/config.py;
this module covers the HTTP service around the engine.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "CaseMatch Team Formation"
    environment: str = Field("development", alias="ENVIRONMENT")
    debug: bool = False

    # URLs / CORS
    allowed_origins: str = Field("*", alias="ALLOWED_ORIGINS")
    cors_allow_credentials: bool = Field(False, alias="CORS_ALLOW_CREDENTIALS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @property
    def origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    s = Settings()  # type: ignore[call-arg]

    is_production = (s.environment or '').lower() in ('production', 'prod')
    if is_production:
        # Do not allow wildcard CORS in production
        if not s.allowed_origins.strip() or s.allowed_origins.strip() == '*':
            raise RuntimeError('ALLOWED_ORIGINS must be set to specific origins in production (no "*")')

    return s


__all__ = ["Settings", "get_settings"]

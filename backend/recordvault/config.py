"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - sensitive_fields is normalized to lower-case (name matching is case-insensitive)

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - encryption_key has a development default; production deployments must override it
"""

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_database_url(url: str) -> str:
    """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://recordvault:recordvault@db:5432/recordvault"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        if isinstance(v, str):
            return normalize_database_url(v)
        return v

    database_pool_size: int = 10
    database_max_overflow: int = 10
    connect_timeout_seconds: float = 10.0
    probe_timeout_seconds: float = 5.0

    # Encryption
    encryption_key: SecretStr = SecretStr("recordvault-development-key")
    sensitive_fields: list[str] = ["password", "token", "secret"]

    @field_validator("sensitive_fields")
    @classmethod
    def normalize_sensitive_fields(cls, v: list[str]) -> list[str]:
        return sorted({name.strip().lower() for name in v if name.strip()})

    # Record store
    default_page_limit: int = Field(100, ge=1)
    max_page_limit: int = Field(1000, ge=1)
    export_limit: int = Field(1000, ge=1)

    # Startup
    auto_fix_on_startup: bool = False

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./equipment_marketplace.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    environment: str = Field(
        default="development",
        description="Deployment environment. Error diagnostics are hidden when set to 'production'.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24 * 30, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")

    upload_dir: str = Field(default="./uploads", description="Directory where listing images are stored")
    max_upload_size_bytes: int = Field(default=5 * 1024 * 1024, description="Per-image size cap")
    max_images_per_listing_upload: int = Field(default=5, description="Images accepted per create/update call")
    allowed_image_extensions: List[str] = Field(default_factory=lambda: ["jpeg", "jpg", "png", "webp"])

    allow_skip_acceptance: bool = Field(
        default=True,
        description="Allow owners to complete a request that was never accepted.",
    )

    log_dir: str = Field(default="./logs", description="Directory for per-service audit logs")
    log_level: str = Field(default="INFO")

    users_service_port: int = 8001
    equipment_service_port: int = 8002
    requests_service_port: int = 8003

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()

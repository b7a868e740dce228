"""Service settings, read from the environment and `.env`."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings shared by the API, the Celery worker and the CLI scripts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "dropship-service"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # HTTP API
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    # -------------------------------------------------------------------------
    # Supplier API (CJ Dropshipping)
    # -------------------------------------------------------------------------
    cj_api_base_url: str = "https://developers.cjdropshipping.com/api2.0/v1"
    cj_token_url: str = (
        "https://developers.cjdropshipping.com/api2.0/v1/authentication/getAccessToken"
    )
    cj_api_key: str = ""
    cj_client_id: str = ""
    cj_client_secret: str = ""
    cj_api_timeout: float = 30.0
    cj_max_retries: int = 3
    cj_backoff_ms: int = 1000

    @property
    def supplier_credentials_configured(self) -> bool:
        """Whether enough credentials are present to request a token."""
        return bool(self.cj_api_key or (self.cj_client_id and self.cj_client_secret))

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------
    price_margin_multiplier: float = 2.5

    # -------------------------------------------------------------------------
    # Sync Defaults
    # -------------------------------------------------------------------------
    sync_default_keyword: str = "K-Beauty"
    sync_default_page_size: int = 20
    sync_default_max_pages: int = 5
    sync_products_interval_minutes: int = 60
    tracking_refresh_interval_minutes: int = 30
    tracking_refresh_batch_size: int = 50

    # -------------------------------------------------------------------------
    # PostgreSQL
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "dropship"
    postgres_password: str = ""
    postgres_db: str = "dropship"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """asyncpg URL used by the API and the worker."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """psycopg2 URL used by Alembic migrations."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Celery (Redis broker by default)
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Admin API auth
    # -------------------------------------------------------------------------
    admin_api_key: str = ""
    api_key_header: str = "X-API-Key"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; tests override this dependency."""
    return Settings()

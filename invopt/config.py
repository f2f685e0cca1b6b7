"""Application configuration."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    postgres_host: str = "postgres"
    postgres_port: int = 5432
    postgres_user: str = "invopt"
    postgres_password: str = "changeme"
    postgres_db: str = "invopt_db"
    database_url_override: Optional[str] = None

    # Reconnect-and-retry for dropped connections
    db_reconnect_attempts: int = 3
    db_reconnect_delay_seconds: float = 1.0

    # Redis
    redis_url: str = "redis://redis:6379/0"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    # Celery
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"

    # Remote optimization engine
    optimizer_api_url: str = "http://optimizer:8080/optimize"
    optimizer_batch_size: int = 200
    optimizer_timeout_seconds: float = 120.0
    optimizer_connect_timeout_seconds: float = 15.0

    # Jobs
    results_snapshot_limit: int = 1000
    job_error_max_length: int = 2000

    # Shared secret for the worker trigger endpoint
    worker_secret: str = "changeme-use-a-strong-secret"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Environment
    environment: str = "development"

    @property
    def database_url(self) -> str:
        """Build database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()

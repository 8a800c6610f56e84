"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database (catalog and stock when catalog_backend == "sql")
    database_url: str = "postgresql+asyncpg://marketplace:marketplace_dev_password@db:5432/marketplace"
    catalog_backend: str = "memory"

    # Checkout placeholders (no tax engine, no shipping rates)
    tax_rate: Decimal = Decimal("0.07")
    flat_shipping_cents: int = 500
    default_currency: str = "USD"

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    # Order events (structlog always, webhook when a URL is set)
    events_webhook_url: str | None = None
    events_webhook_secret: str = "dev-webhook-secret-change-in-production"
    events_webhook_timeout: float = 5.0
    # Recent events kept in process for in-process consumers
    event_buffer_size: int = 1000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MARKETPLACE_"


settings = Settings()

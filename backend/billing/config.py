"""Billing Settings: database pool, invoice numbering, and log output, read from the environment.

Invariants:
    - Every field has a default; tests override only DATABASE_URL and LOG_FORMAT
    - database_url always names an async driver (postgresql:// is rewritten to asyncpg)
    - get_settings() returns one cached Settings per process; lifespan and the
      subscription route dependency share it

Design Decisions:
    - invoice_prefix is a template (see core/invoicing.py); it is not validated here,
      unknown placeholders are left verbatim in the invoice number
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Runtime configuration for the billing API (env vars or .env)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://billing:billing@db:5432/billing"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Point plain postgresql:// URLs at the asyncpg driver."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Billing
    invoice_prefix: str = "INV-{YYYY}{MM}"
    default_currency: str = "inr"

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()

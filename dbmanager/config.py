"""Manager Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Settings are immutable for the lifetime of a manager (frozen model)
    - superuser is optional at load time; admin_dsn() raises ConfigurationError
      without it, before any connection attempt
    - get_settings() is cached (lru_cache), one instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - DBMANAGER_ prefix: the target app's own DATABASE_* variables stay untouched
    - collate accepts a comma-separated string so it fits in one env variable
"""

from functools import lru_cache
from typing import Annotated
from urllib.parse import quote

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from dbmanager.core.errors import ConfigurationError, ErrorContext


class Settings(BaseSettings):
    """Connection and lifecycle settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DBMANAGER_", env_file=".env", case_sensitive=False,
        extra="ignore", frozen=True,
    )

    # Target database
    host: str = "localhost"
    port: int = 5432
    database: str = "app"
    schema_name: str = "public"

    # Application owner role
    user: str = "app"
    password: str | None = None

    # Administrative access
    superuser: str | None = None
    superuser_password: str | None = None
    bootstrap_database: str = "postgres"

    # CREATE DATABASE collation candidates, tried in order
    collate: Annotated[list[str], NoDecode] = []

    # Pooled application connection
    pool_size: int = 5

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("collate", mode="before")
    @classmethod
    def split_collate(cls, v):
        """'en_US.UTF-8, C.UTF-8' → ['en_US.UTF-8', 'C.UTF-8']."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def admin_dsn(self) -> str:
        """asyncpg DSN for the superuser session on the bootstrap database."""
        if not self.superuser:
            raise ConfigurationError(
                "Database manager config must have `superuser`", "superuser",
                ErrorContext(database=self.bootstrap_database, operation="admin_connect"),
            )
        auth = quote(self.superuser, safe="")
        if self.superuser_password:
            auth += ":" + quote(self.superuser_password, safe="")
        return (
            f"postgresql://{auth}@{self.host}:{self.port}/"
            f"{quote(self.bootstrap_database, safe='')}"
        )

    def application_url(self, database: str | None = None) -> str:
        """SQLAlchemy URL for the pooled application connection."""
        auth = quote(self.user, safe="")
        if self.password:
            auth += ":" + quote(self.password, safe="")
        name = quote(database or self.database, safe="")
        return f"postgresql+asyncpg://{auth}@{self.host}:{self.port}/{name}"


@lru_cache
def get_settings() -> Settings:
    return Settings()

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PoolConfig(BaseSettings):
    """asyncpg pool and session settings read from the environment or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(..., alias="DATABASE_URL", min_length=1)
    db_pool_min_size: int = Field(default=1, alias="DB_POOL_MIN_SIZE", ge=1)
    db_pool_max_size: int = Field(default=10, alias="DB_POOL_MAX_SIZE", ge=1)
    db_pool_timeout_seconds: float | None = Field(
        default=None, alias="DB_POOL_TIMEOUT_SECONDS", gt=0
    )
    # Server-side per-statement deadline; None leaves the server default.
    db_statement_timeout_ms: int | None = Field(
        default=None, alias="DB_STATEMENT_TIMEOUT_MS", gt=0
    )
    db_application_name: str = Field(
        default="deptree", alias="DB_APPLICATION_NAME", min_length=1, max_length=63
    )

    @property
    def dsn(self) -> str:
        return self.database_url

    @property
    def min_size(self) -> int:
        return self.db_pool_min_size

    @property
    def max_size(self) -> int:
        return self.db_pool_max_size

    @property
    def timeout(self) -> float | None:
        """Seconds to wait for a new connection; None waits indefinitely."""
        return self.db_pool_timeout_seconds

    def server_settings(self) -> dict[str, str]:
        """Session GUCs sent with every pooled connection."""
        settings = {"application_name": self.db_application_name}
        if self.db_statement_timeout_ms is not None:
            settings["statement_timeout"] = str(self.db_statement_timeout_ms)
        return settings

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        url = v.strip()
        if not url.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must be a postgresql:// connection string")
        return url

    def model_post_init(self, __context: Any) -> None:
        if self.db_pool_max_size < self.db_pool_min_size:
            raise ValueError("DB_POOL_MAX_SIZE must be greater than or equal to DB_POOL_MIN_SIZE")

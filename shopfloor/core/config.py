from datetime import time
from functools import lru_cache
from typing import Literal

from pydantic import computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHOPFLOOR_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "shopfloor"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    # Storage
    DATABASE_URL: str = "sqlite://"
    DATABASE_ECHO: bool = False

    # Observability Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"
    ENABLE_METRICS: bool = False
    METRICS_PORT: int = 8001

    # Scheduling
    CALENDAR_LOOKAHEAD_DAYS: int = 30
    STATION_PRIORITY_POLICY: Literal["node_first", "worker_first"] = "node_first"
    LAUNCH_MAX_PARALLEL_NODES: int = 1
    # Fallback company calendar when no master schedule is stored (Mon-Fri)
    DEFAULT_WORK_START: time = time(7, 0)
    DEFAULT_WORK_END: time = time(16, 0)

    # Locking and ledger retries
    LOCK_TIMEOUT_SECONDS: float = 5.0
    LEDGER_MAX_RETRY_ATTEMPTS: int = 3
    LEDGER_RETRY_BASE_DELAY: float = 0.05
    LEDGER_RETRY_MAX_DELAY: float = 1.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        # Postgres URLs run on the psycopg driver
        for prefix in ("postgresql://", "postgres://"):
            if self.DATABASE_URL.startswith(prefix):
                return self.DATABASE_URL.replace(prefix, "postgresql+psycopg://", 1)
        return self.DATABASE_URL

    @model_validator(mode="after")
    def _check_scheduling_bounds(self) -> Self:
        if self.CALENDAR_LOOKAHEAD_DAYS < 1:
            raise ValueError("CALENDAR_LOOKAHEAD_DAYS must be at least 1")
        if self.LAUNCH_MAX_PARALLEL_NODES < 1:
            raise ValueError("LAUNCH_MAX_PARALLEL_NODES must be at least 1")
        if self.LEDGER_MAX_RETRY_ATTEMPTS < 1:
            raise ValueError("LEDGER_MAX_RETRY_ATTEMPTS must be at least 1")
        if self.DEFAULT_WORK_END <= self.DEFAULT_WORK_START:
            raise ValueError("DEFAULT_WORK_END must be after DEFAULT_WORK_START")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


settings = get_settings()

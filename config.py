"""Application settings. Single file, Pydantic-based.

DB selection:
  - DATABASE_URL set and non-empty -> PostgreSQL
  - DATABASE_URL absent/empty -> SQLite (DB_SQLITE_PATH, default data/nada.db)

Guard policy constants are read from GUARD_* variables.
"""

import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    """Project root. config.py lives at the root."""
    return Path(__file__).resolve().parent


def _ensure_env_loaded() -> None:
    """Load .env from project root (then its parent). Idempotent."""
    root: Path = _project_root()
    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)


_ensure_env_loaded()


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN; when set, uses Postgres.",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str | None = Field(default="data/nada.db")
    pool_size: int = Field(default=5)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)

    def _use_postgres(self) -> bool:
        return bool((self.database_url or "").strip())

    def _resolved_sqlite_path(self) -> Path:
        raw: str = (self.sqlite_path or "data/nada.db").strip()
        path: Path = Path(raw)
        if not path.is_absolute():
            path = (_project_root() / path).resolve()
        return path

    def _redacted_postgres_dsn(self) -> str:
        url: str = (self.database_url or "").strip()
        return re.sub(r":([^:@]+)@", r":***@", url) if url else ""

    @property
    def url(self) -> str:
        if self._use_postgres():
            return (self.database_url or "").strip()
        path = self._resolved_sqlite_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    def db_info_for_logging(self) -> str:
        if self._use_postgres():
            return f"PostgreSQL @ {self._redacted_postgres_dsn()}"
        return f"SQLite @ {self._resolved_sqlite_path().as_posix()}"


class GuardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GUARD_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rate / daily limits
    rate_limit_max: int = Field(default=5)
    rate_limit_window_seconds: int = Field(default=300)
    daily_limit_max: int = Field(default=10)
    timezone: str | None = Field(
        default=None,
        description="IANA zone for the daily window; None uses server-local time.",
    )

    # Amount cap
    max_single_exchange: int = Field(default=5000)

    # Fraud scoring
    high_value_threshold: int = Field(default=2000)
    high_value_weight: int = Field(default=20)
    rapid_window_seconds: int = Field(default=60)
    rapid_min_count: int = Field(default=2)
    rapid_weight: int = Field(default=30)
    new_account_hours: int = Field(default=24)
    new_account_weight: int = Field(default=25)
    ip_lookback: int = Field(default=5)
    ip_max_distinct: int = Field(default=3)
    ip_weight: int = Field(default=15)
    suspicious_threshold: int = Field(default=50)

    # Exchange
    exchange_rate: int = Field(default=50, description="App points per NADA point")
    deny_on_suspicious: bool = Field(default=False)

    # Store resilience
    retry_attempts: int = Field(default=5)
    retry_delay: float = Field(default=0.5)
    retry_backoff: float = Field(default=1.5)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NADA_",
        env_nested_delimiter="__",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    api_key: str | None = Field(default=None, description="API key for mutation endpoints")
    data_dir: Path = Field(default=Path("data"))

    # HTTP server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    reload: bool = Field(default=False)
    cors_origins: list[str] = Field(default=["http://localhost:5173", "http://127.0.0.1:5173"])

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    guard: GuardSettings = Field(default_factory=GuardSettings)

    def model_post_init(self, _context: object) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()

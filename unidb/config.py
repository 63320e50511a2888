"""Application configuration — env vars, .env, YAML files, defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


def _repo_root() -> Path:
    """Find the repository root (directory containing pyproject.toml)."""
    current = Path(__file__).resolve().parent.parent
    if (current / "pyproject.toml").exists():
        return current
    return Path.cwd()


REPO_ROOT = _repo_root()


class DatabaseSettings(BaseSettings):
    """Connection signals read from the environment.

    Field names are the Python-side names; the aliases are the environment
    variable names deployments already use (``DATABASE_URL``, ``PGHOST``...).
    """

    dialect: str = Field("", validation_alias="DB_DIALECT")
    database_url: str = Field("", validation_alias="DATABASE_URL")
    pghost: str = Field("", validation_alias="PGHOST")

    # SQLite storage
    sqlite_dir: Path | None = Field(None, validation_alias="DB_DIR")
    sqlite_file: str = Field("data.sqlite", validation_alias="DB_FILE")

    # PostgreSQL SSL
    ssl: bool = Field(False, validation_alias="DB_SSL")
    sslmode: str = Field("", validation_alias="PGSSLMODE")
    ssl_allow_unverified: bool = Field(False, validation_alias="DB_SSL_ALLOW_UNVERIFIED")

    # PostgreSQL pool
    pool_max: int = Field(10, ge=1, validation_alias="PGPOOL_MAX")
    pool_idle_timeout_ms: int = Field(30_000, ge=0, validation_alias="PGPOOL_IDLE_TIMEOUT_MS")

    model_config = {
        "env_file": ".env",
        "env_ignore_empty": True,
        "extra": "ignore",
        "populate_by_name": True,
    }


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    log_level: str = "info"

    model_config = {"env_prefix": "UNIDB_", "extra": "ignore"}

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> AppConfig:
        """Load config from YAML file, with env var overrides."""
        if path is None:
            path = REPO_ROOT / "config" / "app.yml"

        values: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                values = yaml.safe_load(f) or {}

        # Build the nested settings through __init__ so unset keys still
        # come from the environment.
        database = values.pop("database", None)
        if isinstance(database, dict):
            values["database"] = DatabaseSettings(**database)

        return cls(**values)

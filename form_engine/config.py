"""Configuration loading for the form engine service.

Rules:
- Primary source: `form_engine_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("form_engine_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str
    auto_apply_migrations: bool = Field(default=False)
    migrations_dir: str = Field(default="migrations")

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class AutosaveConfig(BaseModel):
    # Server-side retries of a value write after a revision conflict.
    max_conflict_retries: int = Field(default=3, ge=0, le=20)


class AppConfig(BaseModel):
    database: DatabaseConfig
    autosave: AutosaveConfig = Field(default_factory=AutosaveConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _truthy(text: object) -> bool:
    return str(text).strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) form_engine_config.json at project root
    4) Defaults suitable for local development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    dsn = (
        _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    auto_migrate = (
        _env("AUTO_APPLY_MIGRATIONS")
        or _read_config_file("database.auto_apply_migrations")
        or _base("database.auto_apply_migrations", "false")
    )
    migrations_dir = (
        _env("MIGRATIONS_DIR")
        or _read_config_file("database.migrations_dir")
        or _base("database.migrations_dir", "migrations")
    )
    retries_text = (
        _env("AUTOSAVE_MAX_CONFLICT_RETRIES")
        or _read_config_file("autosave.max_conflict_retries")
        or _base("autosave.max_conflict_retries", "3")
    )

    try:
        cfg = AppConfig(
            database=DatabaseConfig(
                dsn=dsn,
                auto_apply_migrations=_truthy(auto_migrate),
                migrations_dir=migrations_dir,
            ),
            autosave=AutosaveConfig(max_conflict_retries=int(str(retries_text).strip())),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "AutosaveConfig",
    "load_config",
]

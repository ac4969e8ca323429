"""Settings for taskboard, loaded once from the environment (+ optional .env).

One Settings object is built at start-up and handed to the pieces that need it
(database engine, API client, board view, sweep). Nothing else reads os.environ.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

DEFAULT_TIMEZONE = "Australia/Melbourne"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def _postgres_url() -> str:
    host = _env("POSTGRES_HOST", "localhost")
    port = int(_env("POSTGRES_PORT", "5432") or "5432")
    user = _env("POSTGRES_USER", "postgres")
    password = _env("POSTGRES_PASSWORD", "")
    dbname = _env("POSTGRES_DB", "postgres")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}"


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone in TASKS_TIMEZONE: {name!r}") from exc


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone_name: str = DEFAULT_TIMEZONE
    api_base_url: str = "http://localhost:8000/api"
    api_timeout: float = 10.0
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    sql_echo: bool = False
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        """Reference timezone every due-date comparison is made in."""
        return _zone(self.timezone_name)


def load_settings() -> Settings:
    """Build Settings from the environment. Raises ValueError on an unknown timezone."""
    load_dotenv(override=False)
    settings = Settings(
        database_url=_env("DATABASE_URL") or _postgres_url(),
        timezone_name=_env("TASKS_TIMEZONE", DEFAULT_TIMEZONE) or DEFAULT_TIMEZONE,
        api_base_url=_env("TASKS_API_BASE_URL", "http://localhost:8000/api").rstrip("/"),
        api_timeout=_env_float("TASKS_API_TIMEOUT", 10.0),
        cors_origins=_env_list("TASKS_CORS_ORIGINS", ["http://localhost:5173"]),
        sql_echo=_env_bool("TASKS_SQL_ECHO", False),
        log_level=_env("LOG_LEVEL", "INFO").upper() or "INFO",
    )
    _zone(settings.timezone_name)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide Settings, built on first use."""
    return load_settings()


def configure_logging(settings: Settings) -> None:
    """Root logging setup for entry points (API start-up, sweep CLI)."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

"""
Service settings, read once from the environment.

A dotenv file is loaded first (`config/.env` in production,
`config/.env-dev` otherwise). Real environment variables always win.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


@dataclass(frozen=True)
class Settings:
    service_env: str = "development"
    service_name: str = "model-service"
    service_host: str = "0.0.0.0"
    service_port: int = 8080
    db_uri: str = "mongodb://localhost:27017"
    db_name: str = ""
    db_max_pool_size: int = 100
    logging: bool = True
    log_level: str = "INFO"
    cache: bool = False
    cors_origins: tuple[str, ...] = ("*",)
    default_page_limit: int = 30

    # Per-call storage deadlines, in seconds.
    connect_timeout_s: float = 30.0
    index_timeout_s: float = 5.0
    query_timeout_s: float = 15.0
    close_timeout_s: float = 30.0

    @property
    def database_name(self) -> str:
        return self.db_name or self.service_name

    @property
    def is_production(self) -> bool:
        return self.service_env == "production"


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    return env.get(name, "").strip() or default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = _env_int(env, name, default)
    return value if value > 0 else default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


def _env_list(env: Mapping[str, str], name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    items = tuple(item.strip() for item in raw.split(",") if item.strip())
    return items or default


def dotenv_path(service_env: str) -> Path:
    filename = ".env" if service_env == "production" else ".env-dev"
    return CONFIG_DIR / filename


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build settings from `environ` (defaults to the process environment).

    The dotenv file is only consulted when reading the process environment.
    """
    if environ is None:
        load_dotenv(dotenv_path(os.environ.get("SERVICE_ENV", "").strip()), override=False)
        environ = os.environ

    defaults = Settings()
    return Settings(
        service_env=_env_str(environ, "SERVICE_ENV", defaults.service_env),
        service_name=_env_str(environ, "SERVICE_NAME", defaults.service_name),
        service_host=_env_str(environ, "SERVICE_HOST", defaults.service_host),
        service_port=_env_int(environ, "SERVICE_PORT", defaults.service_port),
        db_uri=_env_str(environ, "DB_URI", defaults.db_uri),
        db_name=_env_str(environ, "DB_NAME", defaults.db_name),
        db_max_pool_size=_env_int(environ, "DB_MAX_POOL_SIZE", defaults.db_max_pool_size),
        logging=_env_bool(environ, "LOGGING", defaults.logging),
        log_level=_env_str(environ, "LOG_LEVEL", defaults.log_level).upper(),
        cache=_env_bool(environ, "CACHE", defaults.cache),
        cors_origins=_env_list(environ, "CORS_ORIGINS", defaults.cors_origins),
        default_page_limit=_env_positive_int(environ, "DEFAULT_PAGE_LIMIT", defaults.default_page_limit),
    )

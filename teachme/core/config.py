from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

APP_NAME = "TeachMe.ai Backend API"
APP_VERSION = "1.0.0"

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:8080,http://localhost:5173,http://localhost:3000"
)


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    db_pool_size: int
    jwt_secret: str | None
    jwt_audience: str
    fanout_limit: int
    invitation_ttl_days: int
    cors_origins: tuple[str, ...]

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "3001")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw in _TRUE_WORDS:
        log_json = True
    elif log_json_raw in _FALSE_WORDS:
        log_json = False
    else:
        raise ValueError(f"LOG_JSON must be a boolean (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    jwt_audience = _getenv("JWT_AUDIENCE", "authenticated")
    if not jwt_audience:
        raise ValueError("JWT_AUDIENCE must be non-empty")

    cors_origins = tuple(
        origin.strip()
        for origin in _getenv("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        db_pool_size=_positive_int("DB_POOL_SIZE", _getenv("DB_POOL_SIZE", "5")),
        jwt_secret=_getenv("JWT_SECRET", "") or None,
        jwt_audience=jwt_audience,
        fanout_limit=_positive_int("FANOUT_LIMIT", _getenv("FANOUT_LIMIT", "8")),
        invitation_ttl_days=_positive_int(
            "INVITATION_TTL_DAYS", _getenv("INVITATION_TTL_DAYS", "7")
        ),
        cors_origins=cors_origins,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()

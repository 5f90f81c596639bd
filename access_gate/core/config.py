from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    supabase_url: str | None
    supabase_service_key: str | None
    session_cookie_name: str
    upstream_timeout_seconds: float

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def has_upstream(self) -> bool:
        """True when the identity provider and object store are configured."""
        return bool(self.supabase_url and self.supabase_service_key)


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("UPSTREAM_TIMEOUT_SECONDS", "10")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        upstream_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"UPSTREAM_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if upstream_timeout <= 0:
        raise ValueError(
            f"UPSTREAM_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv("LOG_JSON", "false").lower() in _TRUTHY,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        supabase_url=_getenv("SUPABASE_URL", "").rstrip("/") or None,
        supabase_service_key=_getenv("SUPABASE_SERVICE_KEY", "") or None,
        session_cookie_name=_getenv("SESSION_COOKIE_NAME", "sb-access-token")
        or "sb-access-token",
        upstream_timeout_seconds=upstream_timeout,
    )


SETTINGS = load_settings()

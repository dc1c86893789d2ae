from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_PREFIX_RE = re.compile(r"^[A-Z0-9]{2,12}$")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str = "false") -> bool:
    raw = _getenv(name, default).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    certificate_prefix: str = "CERT"
    auto_issue_certificates: bool = False
    verify_cache_ttl: int = 3600

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

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", "8000")

    prefix = _getenv("CERTIFICATE_PREFIX", "CERT").upper()
    if not _PREFIX_RE.match(prefix):
        raise ValueError(
            f"CERTIFICATE_PREFIX must be 2-12 alphanumeric chars (got {prefix!r})"
        )

    verify_cache_ttl = _getint("VERIFY_CACHE_TTL", "3600")
    if verify_cache_ttl <= 0:
        raise ValueError(
            f"VERIFY_CACHE_TTL must be positive (got {verify_cache_ttl!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        certificate_prefix=prefix,
        auto_issue_certificates=_getbool("AUTO_ISSUE_CERTIFICATES"),
        verify_cache_ttl=verify_cache_ttl,
    )


SETTINGS = load_settings()

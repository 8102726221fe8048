from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so type casting stays in one place
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # Eligibility rules
    pass_percentage: float = 60.0
    # Closure tuning
    closure_concurrency: int = 8
    write_retry_attempts: int = 3
    write_retry_base_delay: float = 0.05

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_int(
    name: str, raw: str, *, minimum: int, maximum: int | None = None
) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum or (maximum is not None and value > maximum):
        if maximum is None:
            bound = f">= {minimum}"
        else:
            bound = f"between {minimum} and {maximum}"
        raise ValueError(f"{name} must be {bound} (got {value})")
    return value


def _parse_float(name: str, raw: str, *, minimum: float, maximum: float) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if not minimum <= value <= maximum:
        raise ValueError(
            f"{name} must be between {minimum} and {maximum} (got {value})"
        )
    return value


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _parse_int("PORT", _getenv("PORT", "8000"), minimum=1)

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        pass_percentage=_parse_float(
            "PASS_PERCENTAGE",
            _getenv("PASS_PERCENTAGE", "60"),
            minimum=0.0,
            maximum=100.0,
        ),
        closure_concurrency=_parse_int(
            "CLOSURE_CONCURRENCY", _getenv("CLOSURE_CONCURRENCY", "8"), minimum=1
        ),
        write_retry_attempts=_parse_int(
            "WRITE_RETRY_ATTEMPTS", _getenv("WRITE_RETRY_ATTEMPTS", "3"), minimum=1
        ),
        write_retry_base_delay=_parse_float(
            "WRITE_RETRY_BASE_DELAY",
            _getenv("WRITE_RETRY_BASE_DELAY", "0.05"),
            minimum=0.0,
            maximum=60.0,
        ),
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()

"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Deriv Digit Tracker application, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deriv_digit_tracker.detector.models import AlertRule
from deriv_digit_tracker.ingestor.window import DEFAULT_WINDOW_SIZE, clamp_window_size

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

KNOWN_SYMBOLS = ("R_100", "R_50", "R_25", "R_10", "1HZ100V", "1HZ50V")


def parse_focus_digits(raw: str) -> tuple[int, ...]:
    """Parse ``"8,9"`` into ``(8, 9)``.

    Unparseable parts are dropped rather than raising, so a malformed value
    leaves the alert engine inactive instead of stopping the application.
    """
    digits: list[int] = []
    for part in raw.replace(";", ",").split(","):
        part = part.strip()
        if part.isdigit():
            digits.append(int(part))
    return tuple(digits)


class DerivSettings(BaseSettings):
    """Deriv WebSocket API settings."""

    model_config = SettingsConfigDict(env_prefix="DERIV_", extra="ignore")

    app_id: int = Field(
        default=39895,
        alias="DERIV_APP_ID",
        description="Deriv application id sent in the WebSocket URL",
    )
    ws_url: str = Field(
        default="wss://ws.derivws.com/websockets/v3?app_id={app_id}&l=EN&brand=deriv",
        alias="DERIV_WS_URL",
        description="WebSocket URL; {app_id} is substituted",
    )
    symbol: str = Field(
        default="R_100",
        alias="DERIV_SYMBOL",
        description="Tick symbol to subscribe to",
    )
    ping_interval_seconds: int = Field(
        default=30,
        alias="DERIV_PING_INTERVAL_SECONDS",
        ge=5,
        le=300,
        description="Interval between application-level ping messages",
    )
    initial_reconnect_delay_seconds: float = Field(
        default=1.0,
        alias="DERIV_INITIAL_RECONNECT_DELAY_SECONDS",
        gt=0,
        le=60,
    )
    max_reconnect_delay_seconds: float = Field(
        default=20.0,
        alias="DERIV_MAX_RECONNECT_DELAY_SECONDS",
        gt=0,
        le=600,
    )

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Validate WebSocket URL format."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("WebSocket URL must start with ws:// or wss://")
        return v

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("DERIV_SYMBOL must not be empty")
        return v

    @property
    def url(self) -> str:
        """WebSocket URL with the app id filled in."""
        return self.ws_url.replace("{app_id}", str(self.app_id))


class TrackerSettings(BaseSettings):
    """Statistics core settings."""

    model_config = SettingsConfigDict(env_prefix="TRACKER_", extra="ignore")

    window_size: int = Field(
        default=DEFAULT_WINDOW_SIZE,
        alias="TRACKER_WINDOW_SIZE",
        description="Rolling window length (clamped into [20, 5000])",
    )
    retention_minutes: int = Field(
        default=120,
        alias="TRACKER_RETENTION_MINUTES",
        ge=1,
        le=24 * 60,
        description="How many trailing minutes of per-minute histograms to keep",
    )
    snapshot_throttle_ms: int = Field(
        default=700,
        alias="TRACKER_SNAPSHOT_THROTTLE_MS",
        ge=0,
        le=60_000,
        description="Minimum interval between minute-history snapshot recomputations",
    )
    alpha: float = Field(
        default=0.05,
        alias="TRACKER_ALPHA",
        gt=0,
        lt=1,
        description="Significance level for the chi-square uniformity decision",
    )
    count_malformed: bool = Field(
        default=True,
        alias="TRACKER_COUNT_MALFORMED",
        description="Count unparseable quotes as digit 0 (they are always tallied separately)",
    )

    @field_validator("window_size")
    @classmethod
    def clamp_window(cls, v: int) -> int:
        return clamp_window_size(v)


class AlertSettings(BaseSettings):
    """Focus-pair alert settings."""

    model_config = SettingsConfigDict(env_prefix="ALERT_", extra="ignore")

    enabled: bool = Field(default=True, alias="ALERT_ENABLED")
    focus_digits_raw: str = Field(
        default="8,9",
        alias="ALERT_FOCUS_DIGITS",
        description="Comma-separated pair of distinct digits, e.g. 8,9",
    )
    high_threshold: float = Field(
        default=15.0,
        alias="ALERT_HIGH_THRESHOLD",
        ge=0,
        le=100,
        description="Minimum percentage of the top focus digit",
    )
    pair_threshold: float = Field(
        default=10.0,
        alias="ALERT_PAIR_THRESHOLD",
        ge=0,
        le=100,
        description="Minimum percentage of the other focus digit",
    )
    cooldown_seconds: float = Field(
        default=20.0,
        alias="ALERT_COOLDOWN_SECONDS",
        ge=0,
        le=3600,
    )
    min_samples: int = Field(
        default=20,
        alias="ALERT_MIN_SAMPLES",
        ge=1,
        description="Minimum rolling total before alerts are evaluated",
    )
    log_limit: int = Field(
        default=50,
        alias="ALERT_LOG_LIMIT",
        ge=1,
        le=10_000,
    )

    @property
    def focus_digits(self) -> tuple[int, ...]:
        return parse_focus_digits(self.focus_digits_raw)

    def to_rule(self) -> AlertRule:
        return AlertRule(
            enabled=self.enabled,
            focus_digits=self.focus_digits,
            high_threshold=self.high_threshold,
            pair_threshold=self.pair_threshold,
            cooldown_seconds=self.cooldown_seconds,
            min_samples=self.min_samples,
            log_limit=self.log_limit,
        )


class RedisSettings(BaseSettings):
    """Optional Redis publication settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; publishing is disabled when unset",
    )
    key_prefix: str = Field(
        default="deriv:digits:",
        alias="REDIS_KEY_PREFIX",
    )
    publish_interval_ms: int = Field(
        default=1000,
        alias="REDIS_PUBLISH_INTERVAL_MS",
        ge=100,
        le=60_000,
    )
    alert_stream_maxlen: int = Field(
        default=1000,
        alias="REDIS_ALERT_STREAM_MAXLEN",
        ge=1,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith("redis://"):
            raise ValueError("REDIS_URL must start with redis://")
        return v

    @property
    def enabled(self) -> bool:
        return self.url is not None


class Settings(BaseSettings):
    """Root application settings.

    Example:
        ```python
        from deriv_digit_tracker.config import get_settings

        settings = get_settings()
        print(settings.deriv.symbol)
        print(settings.tracker.window_size)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    deriv: DerivSettings = Field(
        default_factory=lambda: DerivSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    tracker: TrackerSettings = Field(
        default_factory=lambda: TrackerSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    alert: AlertSettings = Field(
        default_factory=lambda: AlertSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without publishing to Redis",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted."""
        return {
            "deriv": {
                "url": self.deriv.url,
                "symbol": self.deriv.symbol,
                "ping_interval_seconds": str(self.deriv.ping_interval_seconds),
            },
            "tracker": {
                "window_size": str(self.tracker.window_size),
                "retention_minutes": str(self.tracker.retention_minutes),
                "snapshot_throttle_ms": str(self.tracker.snapshot_throttle_ms),
                "alpha": str(self.tracker.alpha),
            },
            "alert": {
                "enabled": str(self.alert.enabled),
                "focus_digits": ",".join(str(d) for d in self.alert.focus_digits) or "(invalid)",
                "high_threshold": str(self.alert.high_threshold),
                "pair_threshold": str(self.alert.pair_threshold),
                "cooldown_seconds": str(self.alert.cooldown_seconds),
            },
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (for tests that change the environment)."""
    get_settings.cache_clear()

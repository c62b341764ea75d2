"""Settings for refresh-queue.

Configuration is explicit, validated and environment-driven: every field can
be overridden with a ``REFRESH_QUEUE_`` prefixed environment variable or a
``.env`` file.

Fields
──────
frequency_seconds : Default resend interval for ``send()`` (0 = one-shot)
relay_buffer      : Capacity of the hand-off queue between the schedule loop
                    and the record forwarder
log_level         : Structlog log level
json_logs         : Force JSON (True) or console (False) output; None = auto
service_name      : ``service.name`` field stamped on every log line

Examples:
    >>> import os
    >>> os.environ["REFRESH_QUEUE_FREQUENCY_SECONDS"] = "300"
    >>> get_settings.cache_clear()
    >>> get_settings().frequency
    datetime.timedelta(seconds=300)

Tags:
    settings, configuration, pydantic, environment, refresh-queue
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RefreshQueueSettings(BaseSettings):
    """Settings shared by every queue built with ``create_keyed_queue()``."""

    model_config = SettingsConfigDict(
        env_prefix="REFRESH_QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Dispatch ─────────────────────────────────────────────────
    frequency_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Default resend interval in seconds; 0 pops each name once",
    )
    relay_buffer: int = Field(
        default=1,
        ge=1,
        description="Capacity of the internal relay queue",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    service_name: str = "refresh-queue"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def frequency(self) -> timedelta:
        """Default resend interval as a timedelta."""
        return timedelta(seconds=self.frequency_seconds)


@lru_cache(maxsize=1)
def get_settings() -> RefreshQueueSettings:
    """Return process-wide settings, read once from the environment."""
    return RefreshQueueSettings()


__all__ = ["RefreshQueueSettings", "get_settings"]

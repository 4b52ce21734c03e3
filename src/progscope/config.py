"""Settings management for ProgScope."""

from __future__ import annotations

import os
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env from the working directory (or the nearest parent holding one)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class WebhookConfig:
    """Configuration for the remote notification handler."""
    url: str | None = None
    timeout: float = 5.0
    title: str = "progscope"
    failure_threshold: int = 3
    recovery_timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass
class Settings:
    """Global application settings.

    An instance can be passed to ``enter_scope(config=...)``; otherwise
    every scope builds one from the environment.
    """

    # Paths
    logs_dir: Path = field(default_factory=lambda: Path(os.getenv("PROGSCOPE_LOGS_DIR", "logs")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("PROGSCOPE_LOG_LEVEL", "INFO"))

    # Scope defaults
    default_handlers: list[str] = field(default_factory=lambda: _env_list("PROGSCOPE_HANDLERS", ["rich"]))
    strategy: str = field(default_factory=lambda: os.getenv("PROGSCOPE_STRATEGY", "first_only"))

    # Rendering: minimum seconds between two renders of the same handler
    min_interval: float = field(default_factory=lambda: _env_float("PROGSCOPE_MIN_INTERVAL", 0.1))

    # Cross-process channel
    queue_size: int = field(default_factory=lambda: _env_int("PROGSCOPE_QUEUE_SIZE", 10_000))
    put_timeout: float = field(default_factory=lambda: _env_float("PROGSCOPE_PUT_TIMEOUT", 1.0))
    drain_timeout: float = field(default_factory=lambda: _env_float("PROGSCOPE_DRAIN_TIMEOUT", 5.0))
    poll_interval: float = 0.05

    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    def __post_init__(self) -> None:
        if self.webhook.url is None:
            self.webhook = WebhookConfig(
                url=os.getenv("PROGSCOPE_WEBHOOK_URL") or None,
                timeout=_env_float("PROGSCOPE_WEBHOOK_TIMEOUT", self.webhook.timeout),
                title=os.getenv("PROGSCOPE_WEBHOOK_TITLE", self.webhook.title),
                failure_threshold=self.webhook.failure_threshold,
                recovery_timeout=self.webhook.recovery_timeout,
            )
        if self.queue_size < 0:
            raise ValueError("queue_size must be >= 0")
        if self.drain_timeout < 0:
            raise ValueError("drain_timeout must be >= 0")

    def ensure_dirs(self) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    """Get a settings instance built from the current environment."""
    return Settings()

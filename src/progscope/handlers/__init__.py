"""Progress handlers and the factory that builds them by name."""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from .base import BaseHandler, ProgressHandler

logger = logging.getLogger(__name__)

HANDLER_NAMES: dict[str, str] = {
    "rich": "Live console progress bar (rich)",
    "log": "Progress lines through the logging module",
    "beep": "Terminal bell when work finishes",
    "webhook": "JSON POST to PROGSCOPE_WEBHOOK_URL (httpx)",
    "record": "Keep rendered states in memory",
}


def build_handlers(names: list[str] | None = None,
                   settings: Settings | None = None) -> list[BaseHandler]:
    """Instantiate handlers by name.

    Unknown names raise ``ValueError``; ``webhook`` is skipped with a
    warning when no URL is configured.
    """
    settings = settings or get_settings()
    names = settings.default_handlers if names is None else names
    handlers: list[BaseHandler] = []

    for raw in names:
        name = raw.strip().lower()
        if name not in HANDLER_NAMES:
            raise ValueError(f"Unknown handler '{raw}'. Available: {', '.join(HANDLER_NAMES)}")

        if name == "rich":
            from .rich_bar import RichBarHandler
            handlers.append(RichBarHandler(min_interval=settings.min_interval))

        elif name == "log":
            from .log_handler import LogHandler
            handlers.append(LogHandler(min_interval=max(settings.min_interval, 1.0)))

        elif name == "beep":
            from .beep import BeepHandler
            handlers.append(BeepHandler())

        elif name == "webhook":
            if not settings.webhook.enabled:
                logger.warning("Webhook handler requested but PROGSCOPE_WEBHOOK_URL is not set, skipping")
                continue
            from ..circuit_breaker import CircuitBreaker
            from .webhook import WebhookHandler
            handlers.append(WebhookHandler(
                url=settings.webhook.url,
                title=settings.webhook.title,
                timeout=settings.webhook.timeout,
                breaker=CircuitBreaker(
                    name="webhook",
                    failure_threshold=settings.webhook.failure_threshold,
                    recovery_timeout=settings.webhook.recovery_timeout,
                ),
            ))

        elif name == "record":
            from .recording import RecordingHandler
            handlers.append(RecordingHandler(min_interval=settings.min_interval))

    return handlers


__all__ = ["BaseHandler", "ProgressHandler", "HANDLER_NAMES", "build_handlers"]

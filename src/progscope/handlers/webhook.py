"""Remote notification handler posting JSON to a webhook."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..circuit_breaker import CircuitBreaker
from ..models import AggregateState, ProgressEvent
from .base import BaseHandler

logger = logging.getLogger(__name__)


class WebhookHandler(BaseHandler):
    """Posts progress snapshots to an HTTP endpoint.

    The payload is a flat JSON object::

        {"title": ..., "label": ..., "message": ..., "completed": 7.0,
         "total": 10.0, "percent": 70.0, "events": 7, "finished": false}

    Network failures are logged and counted on a circuit breaker; once the
    breaker opens the endpoint is left alone until it recovers.
    """

    def __init__(
        self,
        url: str,
        title: str = "progscope",
        timeout: float = 5.0,
        min_interval: float = 5.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(min_interval=min_interval, **kwargs)
        if not url:
            raise ValueError("WebhookHandler requires a URL")
        self.url = url
        self.title = title
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport
        self.breaker = breaker or CircuitBreaker(name=f"webhook:{url}")
        self._client: httpx.Client | None = None
        self.sent = 0

    @property
    def name(self) -> str:
        return "webhook"

    def payload(self, state: AggregateState, message: str | None = None) -> dict[str, Any]:
        return {
            "title": self.title,
            "label": state.label,
            "message": message if message is not None else state.message,
            "completed": state.completed,
            "total": state.total,
            "percent": state.percent,
            "events": state.events,
            "finished": state.finished,
        }

    def _post(self, body: dict[str, Any]) -> None:
        if not self.breaker.allow():
            logger.debug(f"Circuit breaker open for {self.url}, skipping notification")
            return
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, headers=self.headers,
                                        transport=self._transport)
        try:
            resp = self._client.post(self.url, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self.breaker.record_failure()
            logger.warning(f"Webhook notification to {self.url} failed: {e}")
            return
        self.breaker.record_success()
        self.sent += 1

    def on_start(self, state: AggregateState) -> None:
        self.sent = 0

    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        self._post(self.payload(state, event.message))

    def close(self, state: AggregateState) -> None:
        try:
            self._post(self.payload(state))
        finally:
            if self._client is not None:
                self._client.close()
                self._client = None

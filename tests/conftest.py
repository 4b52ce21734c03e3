"""Shared fixtures for the ProgScope test suite."""

from __future__ import annotations

import pytest

from progscope.config import Settings
from progscope.handlers.recording import RecordingHandler
from progscope.registry import reset_default_handlers


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep every test away from real handlers, .env values and the global registry."""
    monkeypatch.setenv("PROGSCOPE_HANDLERS", "record")
    monkeypatch.setenv("PROGSCOPE_STRATEGY", "first_only")
    monkeypatch.setenv("PROGSCOPE_MIN_INTERVAL", "0")
    monkeypatch.setenv("PROGSCOPE_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("PROGSCOPE_WEBHOOK_URL", raising=False)
    reset_default_handlers()
    yield
    reset_default_handlers()


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def settings() -> Settings:
    return Settings(default_handlers=["record"], min_interval=0.0, drain_timeout=5.0)

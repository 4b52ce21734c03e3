"""Exceptions raised by ProgScope."""

from __future__ import annotations


class ProgScopeError(Exception):
    """Base class for all ProgScope errors."""


class NoActiveScopeError(ProgScopeError):
    """A signaler was created outside of any active progress scope."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No active progress scope. Create signalers inside "
               "'with enter_scope():' (or 'async with enter_scope():')."
        )


class ScopeAlreadyActiveError(ProgScopeError):
    """A progress scope was entered while another one is active in the same context."""

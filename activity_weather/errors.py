"""
Provider failure types.

Adapters raise these so the aggregator can tell success from failure and
decide between a plain fallback and a temporary provider disable. None of
them ever reach callers of the aggregator.
"""

from __future__ import annotations

from typing import Optional


class ProviderError(RuntimeError):
    """Base provider error."""


class OutOfRange(ProviderError):
    """The requested time is outside the provider coverage window."""


class QuotaExceeded(ProviderError):
    """The provider (or our own limiter) reports a quota/usage limit issue."""


class TransportError(ProviderError):
    """Timeouts, connection failures and HTTP error statuses."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(ProviderError):
    """The payload could not be decoded or has no data for the requested time."""


__all__ = ["MalformedResponse", "OutOfRange", "ProviderError", "QuotaExceeded", "TransportError"]

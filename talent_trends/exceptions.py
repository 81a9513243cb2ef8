"""
Error hierarchy for the talent pipeline.

Every failure raised by the ingestion layer derives from ``TalentTrendsError``
so callers can separate upstream problems from programming errors.

Run-fatal (the coordinator aborts and surfaces one error record):
  ``ConfigError``, ``AuthError``, ``FetchError``

Entry-local (the coordinator substitutes a placeholder and moves on):
  ``NotFoundError``, ``TransportError``, ``ParseError``
"""

from __future__ import annotations

from typing import Optional


class TalentTrendsError(Exception):
    """Base exception for talent pipeline errors."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class ConfigError(TalentTrendsError):
    """Raised when upstream credentials are missing."""


class AuthError(TalentTrendsError):
    """Raised when the OAuth client-credentials exchange fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(
            message,
            "Could not authenticate with Warcraft Logs. Please try again later.",
        )
        self.status_code = status_code
        self.body = body


class FetchError(TalentTrendsError):
    """Raised when the rankings query fails or returns no rankings array."""

    def __init__(self, message: str):
        super().__init__(message, "Could not load rankings from Warcraft Logs.")


class NotFoundError(TalentTrendsError):
    """Raised when an actor or talent code is absent from a report."""


class TransportError(TalentTrendsError):
    """Raised on an HTTP-level failure or an upstream error payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(TalentTrendsError):
    """Raised when a response body is missing expected fields."""

"""Custom exceptions for the rating pipeline."""

from typing import Optional


class RatingError(Exception):
    """Base exception for rating pipeline errors."""

    pass


class TransportError(RatingError):
    """Connection failure, aborted request, or non-2xx response.

    Attributes:
        status_code: HTTP status if the server answered, else None
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RatingTimeoutError(RatingError):
    """Request exceeded its timeout."""

    pass


class ParseError(RatingError):
    """Response body or event payload was not the expected JSON shape."""

    pass


class NoScoreFound(RatingError):
    """Well-formed response that lacks a SCORE_<n> token."""

    pass


class SafetyFiltered(RatingError):
    """Provider returned empty content because of its safety policy."""

    pass


class MissingCredential(RatingError):
    """No API key is configured. Not retried."""

    pass


class ContextUnavailable(RatingError):
    """Item content could not be assembled. Not retried."""

    pass


# Failures that consume a retry instead of ending the rating
RETRYABLE_ERRORS = (TransportError, RatingTimeoutError, ParseError, NoScoreFound, SafetyFiltered)

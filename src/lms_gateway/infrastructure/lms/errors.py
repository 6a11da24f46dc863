"""Exceptions for LMS infrastructure components."""

from __future__ import annotations

from lms_gateway.application.lms import (
    LmsConfigurationError,
    QuizAccessError,
    QuizRestrictionError,
)


class LmsInfrastructureError(RuntimeError):
    """Base error for LMS infrastructure failures."""


class LmsAdapterConfigurationError(LmsInfrastructureError):
    """Raised when adapter wiring or settings are invalid."""


class UnsupportedLmsTypeError(LmsConfigurationError, LmsInfrastructureError):
    """Raised when no adapter is registered for a configured LMS type."""


class TokenEndpointError(LmsInfrastructureError):
    """Raised when one token endpoint candidate does not issue a token."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenRejectedError(QuizAccessError, LmsInfrastructureError):
    """Raised when the LMS rejects an access token on an API call."""


class UpstreamResponseError(QuizAccessError, LmsInfrastructureError):
    """Raised when an LMS response shape cannot be parsed safely."""


class UpstreamRequestError(QuizAccessError, LmsInfrastructureError):
    """Raised when the LMS rejects a request as non-retryable client error."""


class UpstreamRestrictionError(QuizRestrictionError, LmsInfrastructureError):
    """Raised when the LMS denies listing for the authenticated client."""


class UpstreamServerError(QuizAccessError, LmsInfrastructureError):
    """Raised on retryable LMS server-side errors (HTTP 5xx)."""


class RetryExhaustedError(QuizAccessError, LmsInfrastructureError):
    """Raised when retry budget is exhausted for retryable errors."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts

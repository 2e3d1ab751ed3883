"""Error taxonomy for the HaloPSA integration.

Every error raised by the cipher, the API client and the resource services
derives from ``HaloError`` so callers can catch the whole family at once.
"""

from __future__ import annotations

from typing import Any


class HaloError(Exception):
    """Base class for all HaloSync errors."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigurationError(HaloError):
    """Required configuration (e.g. ENCRYPTION_KEY) is missing or invalid."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class AuthenticationFailure(HaloError):
    """Credentials were rejected, or an encrypted blob failed verification.

    Surfaced to users as "reconfigure your connection".
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message, "AUTHENTICATION_ERROR")
        self.status_code = status_code
        self.response = response


class TransientError(HaloError):
    """Network failure or 5xx from the PSA. Eligible for caller-level retry."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message, "TRANSIENT_ERROR")
        self.status_code = status_code
        self.response = response


class RateLimitError(TransientError):
    """PSA answered 429."""

    def __init__(self, retry_after: int | None = None):
        message = "Rate limit exceeded"
        if retry_after is not None:
            message = f"{message}. Retry after {retry_after} seconds"
        super().__init__(message, status_code=429)
        self.code = "RATE_LIMIT_ERROR"
        self.retry_after = retry_after


class APIError(HaloError):
    """Non-2xx resource response that is not otherwise classified."""

    def __init__(self, message: str, status_code: int, response: Any = None):
        super().__init__(message, "API_ERROR")
        self.status_code = status_code
        self.response = response


class NotFoundError(HaloError):
    """Requested entity does not exist upstream."""

    def __init__(self, resource: str, resource_id: int | str):
        super().__init__(f"{resource} with ID {resource_id} not found", "NOT_FOUND")
        self.resource = resource
        self.resource_id = resource_id


class WriteError(HaloError):
    """A PSA write returned no records."""

    def __init__(self, resource: str, operation: str = "create"):
        super().__init__(
            f"{operation.capitalize()} {resource} returned no result", "WRITE_ERROR"
        )
        self.resource = resource
        self.operation = operation


class ValidationError(HaloError):
    """Local input validation failed."""

    def __init__(self, errors: list[str]):
        super().__init__(f"Validation failed: {'; '.join(errors)}", "VALIDATION_ERROR")
        self.errors = errors


class PhaseError(HaloError):
    """One synchronization phase failed. Recorded, does not abort the run."""

    def __init__(self, phase: str, cause: BaseException):
        super().__init__(f"{phase}: {cause}", "PHASE_ERROR")
        self.phase = phase
        self.cause = cause


class NoActiveConnectionError(HaloError):
    """User has no active PSA connection configured."""

    def __init__(self) -> None:
        super().__init__(
            "No active HaloPSA connection found. Please set up a connection first.",
            "NO_ACTIVE_CONNECTION",
        )


def is_retryable(error: BaseException) -> bool:
    """Return True when a caller may retry the failed operation."""
    return isinstance(error, TransientError)

"""Service error hierarchy for storage, auth and model provider operations.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, timeouts)
- PermanentError: Non-retryable errors (authentication, validation)

Pipeline stages convert these into GenerationFailure results at the stage
boundary; they never reach the HTTP layer directly.
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (502, 503)
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Configuration errors
    """

    pass


# Object storage errors
class StorageError(ServiceError):
    """Base exception for object storage errors."""

    pass


class StorageNetworkError(TransientError):
    """Network timeout or storage service unavailable."""

    pass


class StorageAuthError(PermanentError):
    """Service role key rejected (401, 403)."""

    pass


class StorageNotFoundError(PermanentError):
    """Object or bucket does not exist (404)."""

    pass


# Auth verification errors
class AuthServiceError(TransientError):
    """Auth service could not be reached to verify a token."""

    pass

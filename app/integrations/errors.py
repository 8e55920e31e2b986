"""
Error taxonomy shared by the credential store, prober, fetcher and importer.
Each exception carries an ErrorKind so it can be converted into a
discriminated result before it crosses a component boundary.
"""

from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers."""

    INVALID_INPUT = "InvalidInput"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INSUFFICIENT_PERMISSIONS = "InsufficientPermissions"
    API_NOT_FOUND = "ApiNotFound"
    REMOTE_PLATFORM_ERROR = "RemotePlatformError"
    TRANSIENT_NETWORK_ERROR = "TransientNetworkError"
    DECRYPTION_ERROR = "DecryptionError"
    PERSISTENCE_ERROR = "PersistenceError"


class BrokerError(Exception):
    """Base exception for broker failures. `detail` must never contain secrets."""

    kind: ErrorKind = ErrorKind.REMOTE_PLATFORM_ERROR

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"{self.kind.value}: {detail}")


class InvalidInputError(BrokerError):
    """Raised when a required field is missing or malformed."""

    kind = ErrorKind.INVALID_INPUT


class InvalidCredentialsError(BrokerError):
    """Raised when the remote platform rejects authentication (401)."""

    kind = ErrorKind.INVALID_CREDENTIALS


class InsufficientPermissionsError(BrokerError):
    """Raised when the remote platform forbids the operation (403)."""

    kind = ErrorKind.INSUFFICIENT_PERMISSIONS


class ApiNotFoundError(BrokerError):
    """Raised when no candidate endpoint shape answered successfully."""

    kind = ErrorKind.API_NOT_FOUND

    def __init__(self, detail: str, attempted: list[str] | None = None):
        self.attempted = attempted or []
        super().__init__(detail)


class RemotePlatformError(BrokerError):
    """Raised when the remote platform returns an application-level error."""

    kind = ErrorKind.REMOTE_PLATFORM_ERROR

    def __init__(self, detail: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(detail)


class TransientNetworkError(BrokerError):
    """Raised for timeouts, connection resets, DNS failures, 429 and 5xx."""

    kind = ErrorKind.TRANSIENT_NETWORK_ERROR

    def __init__(self, detail: str, status_code: int | None = None, retryable: bool = True):
        self.status_code = status_code
        # False when a non-idempotent request may already have reached the server
        self.retryable = retryable
        super().__init__(detail)


class DecryptionError(BrokerError):
    """Raised when a stored credential blob cannot be decrypted."""

    kind = ErrorKind.DECRYPTION_ERROR


class PersistenceError(BrokerError):
    """Raised when the underlying table read or write fails."""

    kind = ErrorKind.PERSISTENCE_ERROR


TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def truncate_body(body: str | None, limit: int) -> str:
    """Trim a remote error body to a safe length for logs and callers."""
    if not body:
        return ""
    body = body.strip()
    if len(body) <= limit:
        return body
    return body[:limit] + "...[truncated]"


def classify_status(status_code: int, body: str | None = None, limit: int = 500) -> BrokerError:
    """
    Map a non-2xx HTTP status from a remote platform to a broker error.

    Args:
        status_code: HTTP status returned by the remote platform
        body: Response body (truncated before it is attached)
        limit: Maximum number of body characters to keep

    Returns:
        BrokerError instance (not raised)
    """
    if status_code == 401:
        return InvalidCredentialsError("Remote platform rejected the credentials (401)")
    if status_code == 403:
        return InsufficientPermissionsError(
            "Remote platform denied access; check the API key permissions (403)"
        )
    if status_code == 404:
        return ApiNotFoundError("Remote endpoint not found (404)")
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return TransientNetworkError(
            f"Remote platform temporarily unavailable ({status_code})",
            status_code=status_code,
        )
    truncated = truncate_body(body, limit)
    return RemotePlatformError(
        f"Remote platform error {status_code}: {truncated}",
        status_code=status_code,
        body=truncated,
    )


def describe_request_error(exc: httpx.RequestError, idempotent: bool = True) -> TransientNetworkError:
    """
    Convert an httpx transport error into a TransientNetworkError.
    Only the exception class name is kept; the message may embed a URL with
    query-string credentials.

    Args:
        exc: Transport error raised by httpx
        idempotent: False for writes; then only errors raised before the
            request was sent stay retryable
    """
    never_sent = isinstance(exc, httpx.ConnectError | httpx.ConnectTimeout | httpx.PoolTimeout)
    retryable = idempotent or never_sent
    if isinstance(exc, httpx.TimeoutException):
        return TransientNetworkError(
            f"Request timed out ({type(exc).__name__})", retryable=retryable
        )
    return TransientNetworkError(f"Network error ({type(exc).__name__})", retryable=retryable)

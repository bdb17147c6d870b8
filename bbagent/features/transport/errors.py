"""Error types for the HTTP transport layer."""

from enum import Enum

import httpx


class ErrorClass(str, Enum):
    """Classification of transport errors for metrics and retry decisions.

    - CONFIGURATION: Missing or malformed client/request configuration
    - TRANSPORT: Network-level failure (DNS, connection, timeout)
    - RETRYABLE_STATUS: 429 or 5xx response after retries were exhausted
    - NON_RETRYABLE_STATUS: Any other non-2xx response
    - CANCELLED: Caller cancelled the request or its deadline expired
    - CACHE_PROTOCOL: 304 received without a matching cache entry
    - REPLAY: Request body could not be reproduced for a retry
    - DECODE: Successful response body was not valid JSON
    """

    CONFIGURATION = "CONFIGURATION"
    TRANSPORT = "TRANSPORT"
    RETRYABLE_STATUS = "RETRYABLE_STATUS"
    NON_RETRYABLE_STATUS = "NON_RETRYABLE_STATUS"
    CANCELLED = "CANCELLED"
    CACHE_PROTOCOL = "CACHE_PROTOCOL"
    REPLAY = "REPLAY"
    DECODE = "DECODE"


class TransportClientError(Exception):
    """Base exception for all transport errors."""

    error_class: ErrorClass = ErrorClass.TRANSPORT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
        }


class ConfigurationError(TransportClientError):
    """Missing or malformed base URL, path, or body inputs."""

    error_class = ErrorClass.CONFIGURATION


class TransportError(TransportClientError):
    """Network-level failure surfaced after retries were exhausted."""

    error_class = ErrorClass.TRANSPORT


class ReplayError(TransportClientError):
    """A request with a body but no replay function attempted a retry."""

    error_class = ErrorClass.REPLAY


class CacheProtocolError(TransportClientError):
    """A 304 response arrived for a request with no cached entry."""

    error_class = ErrorClass.CACHE_PROTOCOL


class ResponseDecodeError(TransportClientError):
    """A 2xx response body could not be decoded as JSON."""

    error_class = ErrorClass.DECODE


class RequestCancelledError(TransportClientError):
    """The caller cancelled the request, or its deadline expired.

    Attributes:
        cause: The cancellation cause recorded on the token.
    """

    error_class = ErrorClass.CANCELLED

    def __init__(self, cause: BaseException) -> None:
        """Initialize the cancellation error.

        Args:
            cause: The cancellation cause recorded on the token.
        """
        super().__init__(f"request cancelled: {cause}")
        self.cause = cause


class ApiError(TransportClientError):
    """Structured error decoded from a non-2xx response.

    Attributes:
        status_code: HTTP status code.
        reason: HTTP reason phrase.
        detail: The message chosen from the error body (may be empty).
        headers: Response headers.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        detail: str = "",
        headers: httpx.Headers | None = None,
    ) -> None:
        """Initialize the API error.

        Args:
            status_code: HTTP status code.
            reason: HTTP reason phrase.
            detail: Message chosen from the error body.
            headers: Response headers.
        """
        status = f"{status_code} {reason}".strip()
        super().__init__(f"{status}: {detail}" if detail else status)
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        self.headers = headers if headers is not None else httpx.Headers()

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class RetryableStatusError(ApiError):
    """429 or 5xx response that remained after all retry attempts."""

    error_class = ErrorClass.RETRYABLE_STATUS


class NonRetryableStatusError(ApiError):
    """4xx (other than 429) or other non-2xx response; never retried."""

    error_class = ErrorClass.NON_RETRYABLE_STATUS

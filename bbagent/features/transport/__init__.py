"""HTTP transport layer with retries, caching, and rate limit awareness.

This module provides the resilient client used by every API call:
- Configurable retry policy with exponential backoff and Retry-After
- ETag conditional requests backed by an in-memory body cache
- Rate limit tracking with a voluntary throttle near quota exhaustion
- Replayable request bodies, including multipart uploads
- Cooperative cancellation with deadlines
- Header redaction and per-client metrics
"""

from bbagent.features.transport.builder import RequestBuilder
from bbagent.features.transport.cache import ResponseCache
from bbagent.features.transport.cancel import CancellationToken
from bbagent.features.transport.client import HttpClient
from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.constants import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_TEXT,
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from bbagent.features.transport.decode import decode_error
from bbagent.features.transport.errors import (
    ApiError,
    CacheProtocolError,
    ConfigurationError,
    ErrorClass,
    NonRetryableStatusError,
    ReplayError,
    RequestCancelledError,
    ResponseDecodeError,
    RetryableStatusError,
    TransportClientError,
    TransportError,
)
from bbagent.features.transport.metrics import TransportMetrics
from bbagent.features.transport.models import (
    MultipartFile,
    RateLimit,
    Request,
    RetryPolicy,
)
from bbagent.features.transport.rate_limit import RateLimitTracker
from bbagent.features.transport.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "HttpClient",
    "RequestBuilder",
    # Cache
    "ResponseCache",
    # Rate limits
    "RateLimitTracker",
    # Config
    "TransportConfig",
    # Cancellation
    "CancellationToken",
    # Models
    "MultipartFile",
    "RateLimit",
    "Request",
    "RetryPolicy",
    # Errors
    "ApiError",
    "CacheProtocolError",
    "ConfigurationError",
    "ErrorClass",
    "NonRetryableStatusError",
    "ReplayError",
    "RequestCancelledError",
    "ResponseDecodeError",
    "RetryableStatusError",
    "TransportClientError",
    "TransportError",
    "decode_error",
    # Constants
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_TEXT",
    "DEFAULT_CHUNK_SIZE",
    "HTTP_STATUS_NOT_MODIFIED",
    "HTTP_STATUS_TOO_MANY_REQUESTS",
    "MAX_RETRY_AFTER_SECONDS",
    # Metrics
    "TransportMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]

"""Data models for the HTTP transport layer."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Annotated, BinaryIO

import httpx
from pydantic import BaseModel, ConfigDict, Field

from bbagent.features.transport.constants import (
    DEFAULT_INITIAL_BACKOFF_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BACKOFF_MS,
)
from bbagent.features.transport.errors import ReplayError


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Controls how many attempts are made and the backoff strategy.
    Uses exponential backoff: delay = initial_backoff_ms * 2 ^ (retry - 1),
    capped at max_backoff_ms.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = DEFAULT_MAX_ATTEMPTS
    initial_backoff_ms: Annotated[int, Field(ge=0, le=60000)] = (
        DEFAULT_INITIAL_BACKOFF_MS
    )
    max_backoff_ms: Annotated[int, Field(ge=0, le=300000)] = DEFAULT_MAX_BACKOFF_MS

    def should_retry(self, attempts: int) -> bool:
        """Determine if another attempt is allowed.

        Args:
            attempts: Number of retries already performed (0 on first failure).

        Returns:
            True if the request should be retried.
        """
        return attempts + 1 < self.max_attempts

    def get_delay_ms(self, retry_number: int) -> int:
        """Calculate delay before a retry.

        Args:
            retry_number: 1-based retry number.

        Returns:
            Delay in milliseconds.
        """
        delay = self.initial_backoff_ms
        if retry_number > 1:
            delay *= 2 ** (retry_number - 1)
        return min(delay, self.max_backoff_ms)


class RateLimit(BaseModel):
    """Snapshot of server-advertised quota.

    Replaced as a whole after each response that carries quota headers,
    so readers never observe a partially updated value.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    limit: int = 0
    remaining: int = 0
    reset: datetime | None = None
    source: str = ""


@dataclass(frozen=True)
class CacheEntry:
    """Cached body for a conditional GET.

    Attributes:
        etag: Validator returned with the body.
        body: Raw response body bytes.
        stored_at: When the entry was written.
    """

    etag: str
    body: bytes
    stored_at: datetime


@dataclass(frozen=True)
class ReplayablePayload:
    """Encoded request body that can be re-read for every attempt."""

    data: bytes
    content_type: str

    def open(self) -> BinaryIO:
        """Return a fresh reader over the encoded bytes."""
        return BytesIO(self.data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Request:
    """An HTTP request ready to be executed by the transport.

    Attributes:
        method: HTTP method.
        url: Fully resolved target URL.
        headers: Request headers.
        body: Reader for the body of the next attempt, if any.
        replay: Factory returning a fresh body reader for retries.
    """

    method: str
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: BinaryIO | None = None
    replay: Callable[[], BinaryIO] | None = None

    def clone(self) -> "Request":
        """Copy the request with fresh headers and a replayed body.

        Returns:
            A new request safe to send independently of this one.

        Raises:
            ReplayError: If the request has a body but no replay function.
        """
        body: BinaryIO | None = None
        if self.body is not None:
            if self.replay is None:
                msg = "request body cannot be replayed"
                raise ReplayError(msg)
            body = self.replay()
        return Request(
            method=self.method,
            url=self.url,
            headers=self.headers.copy(),
            body=body,
            replay=self.replay,
        )


@dataclass(frozen=True)
class MultipartFile:
    """A file for multipart/form-data upload.

    Attributes:
        field_name: Form field name (e.g. "files").
        file_name: File name sent to the server.
        content: File content; None marks a missing stream.
    """

    field_name: str
    file_name: str
    content: bytes | BinaryIO | None

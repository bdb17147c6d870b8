"""HTTP client with retries, conditional caching, and adaptive throttling."""

import json
import os
import sys
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from types import TracebackType
from typing import Any, BinaryIO, TextIO

import httpx
import structlog

from bbagent.features.transport.builder import RequestBuilder
from bbagent.features.transport.cache import ResponseCache
from bbagent.features.transport.cancel import CancellationToken
from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.constants import (
    DEBUG_ENV_VAR,
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    MAX_RETRY_AFTER_SECONDS,
)
from bbagent.features.transport.decode import (
    decode_response_error,
    is_retryable_status,
)
from bbagent.features.transport.errors import (
    CacheProtocolError,
    ConfigurationError,
    RequestCancelledError,
    ResponseDecodeError,
    TransportClientError,
    TransportError,
)
from bbagent.features.transport.metrics import TransportMetrics
from bbagent.features.transport.models import MultipartFile, RateLimit, Request
from bbagent.features.transport.rate_limit import RateLimitTracker
from bbagent.features.transport.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()

# Upper bound on concurrent network calls per client
MAX_INFLIGHT_REQUESTS = 16


def parse_retry_after(value: str | None) -> float | None:
    """Parse Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    # Try parsing as integer seconds
    try:
        return float(max(0, int(value.strip())))
    except ValueError:
        pass

    # Try parsing as HTTP date
    try:
        dt = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return max(0.0, (dt - datetime.now(UTC)).total_seconds())


def _decode_json(body: bytes, url: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        msg = f"decode response from {url}: {e}"
        raise ResponseDecodeError(msg) from e


def _discard_response(future: "Future[httpx.Response]") -> None:
    """Close the response of a call the caller stopped waiting for."""
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class HttpClient:
    """Resilient HTTP client for the Bitbucket API.

    Provides:
    - Retry with exponential backoff for network errors, 429 and 5xx
    - Retry-After support
    - ETag conditional requests with an in-memory body cache
    - Rate limit tracking with a voluntary throttle near quota exhaustion
    - Request replay so retries resend identical bodies
    - Cooperative cancellation of network calls and backoff waits

    Safe for concurrent use from multiple threads.

    Example:
        config = TransportConfig(base_url="https://api.bitbucket.org/2.0")
        with HttpClient(config) as client:
            request = client.new_request("GET", "/user")
            user = client.do(request)
    """

    def __init__(
        self,
        config: TransportConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        debug_output: TextIO | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Transport configuration.
            transport: Optional httpx transport (used by tests).
            sleep: Blocking sleep used by the adaptive throttle.
            debug_output: Stream for debug echo (default: stderr).

        Raises:
            ConfigurationError: If the base URL is missing or malformed.
        """
        self._config = config
        self._builder = RequestBuilder(config)
        self._retry = config.retry_policy
        self._sleep = sleep
        self._debug = config.debug or bool(os.environ.get(DEBUG_ENV_VAR))
        self._debug_output = debug_output
        self._cache = ResponseCache()
        self._rate_limits = RateLimitTracker()
        self.metrics = TransportMetrics()
        self._http = httpx.Client(
            timeout=config.timeout_seconds,
            transport=transport,
            follow_redirects=True,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=MAX_INFLIGHT_REQUESTS, thread_name_prefix="bbagent-http"
        )
        self._log = logger.bind(component="transport")

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection pool and log the client's counters."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._http.close()
        self._log.debug("http_metrics", **self.metrics.to_dict())

    @property
    def config(self) -> TransportConfig:
        """Transport configuration."""
        return self._config

    @property
    def cache(self) -> ResponseCache:
        """Response cache (empty unless caching is enabled)."""
        return self._cache

    def new_request(self, method: str, path: str, body: Any = None) -> Request:
        """Build a request relative to the base URL.

        Body values are JSON encoded when not None.
        """
        return self._builder.new_request(method, path, body)

    def new_multipart_request(
        self,
        method: str,
        path: str,
        files: Sequence[MultipartFile],
    ) -> Request:
        """Build a multipart/form-data request for file uploads."""
        return self._builder.new_multipart_request(method, path, files)

    def rate_limit_state(self) -> RateLimit:
        """Return the last observed rate limit headers."""
        return self._rate_limits.snapshot()

    def do(
        self,
        request: Request,
        stream: BinaryIO | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> Any:
        """Execute a request and decode the JSON response.

        Args:
            request: Request built by new_request or new_multipart_request.
            stream: Optional binary target; when given, the raw body is
                copied into it and None is returned.
            token: Optional cancellation token.

        Returns:
            Decoded JSON value, or None for an empty body or a stream target.
        """
        value, _ = self.do_with_headers(request, stream, token=token)
        return value

    def do_with_headers(
        self,
        request: Request,
        stream: BinaryIO | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> tuple[Any, httpx.Headers]:
        """Execute a request and return the decoded body and response headers.

        Args:
            request: Request built by new_request or new_multipart_request.
            stream: Optional binary target for the raw body.
            token: Optional cancellation token.

        Returns:
            Tuple of (decoded JSON or None, response headers).

        Raises:
            ConfigurationError: If no request is given.
            TransportError: On network errors after retries are exhausted.
            RetryableStatusError: On 429/5xx after retries are exhausted.
            NonRetryableStatusError: On other non-2xx responses.
            RequestCancelledError: If the token is cancelled or expires.
            CacheProtocolError: On a 304 without a cached body.
            ReplayError: If a retry needs a body that cannot be replayed.
        """
        if request is None:
            msg = "request is required"
            raise ConfigurationError(msg)

        token = token or CancellationToken()
        log = self._log.bind(
            method=request.method,
            url=redact_url_credentials(request.url),
        )

        try:
            return self._execute_with_retry(request, stream, token, log)
        except TransportClientError as e:
            self.metrics.record_failure(e.error_class)
            log.debug("http_failed", **e.to_dict())
            raise

    def _execute_with_retry(
        self,
        request: Request,
        stream: BinaryIO | None,
        token: CancellationToken,
        log: structlog.typing.FilteringBoundLogger,
    ) -> tuple[Any, httpx.Headers]:
        """Run the attempt/backoff loop."""
        use_cache = self._config.enable_cache and request.method == "GET"
        attempts = 0

        while True:
            attempt_request = self._prepare_attempt(request, attempts)

            if use_cache:
                etag = self._cache.etag_for(attempt_request.method, attempt_request.url)
                if etag:
                    attempt_request.headers["If-None-Match"] = etag

            self._echo(f"--> {attempt_request.method} {attempt_request.url}")
            for name, value in redact_headers(attempt_request.headers).items():
                self._echo(f"    {name}: {value}")

            try:
                response = self._send(attempt_request, token)
            except httpx.TransportError as e:
                attempts = self._network_failure(e, attempt_request, attempts, token)
                log.warning("http_network_error", error=str(e), attempt=attempts)
                self._backoff(attempts, None, token, log)
                continue

            try:
                self._after_response(response)

                status = response.status_code
                if status == HTTP_STATUS_NOT_MODIFIED and use_cache:
                    value = self._serve_cached(attempt_request, stream, log)
                    token.raise_if_cancelled()
                    return value, response.headers

                if is_retryable_status(status):
                    response.read()
                    if not self._retry.should_retry(attempts):
                        raise decode_response_error(response)
                    retry_headers = response.headers
                elif not HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
                    response.read()
                    raise decode_response_error(response)
                else:
                    value = self._read_success(
                        attempt_request, response, stream, use_cache, token
                    )
                    token.raise_if_cancelled()
                    return value, response.headers
            except httpx.TransportError as e:
                attempts = self._network_failure(e, attempt_request, attempts, token)
                log.warning("http_body_read_error", error=str(e), attempt=attempts)
                self._backoff(attempts, None, token, log)
                continue
            finally:
                response.close()

            attempts += 1
            log.warning("http_retryable_status", status_code=status, attempt=attempts)
            self._backoff(attempts, retry_headers, token, log)

    def _network_failure(
        self,
        error: httpx.TransportError,
        request: Request,
        attempts: int,
        token: CancellationToken,
    ) -> int:
        """Classify a network error raised while sending or reading a body.

        Returns:
            The attempt count to use for the retry.

        Raises:
            RequestCancelledError: If the token was cancelled or expired.
            TransportError: If no attempts remain.
        """
        if token.is_cancelled():
            cause = token.cause or error
            raise RequestCancelledError(cause) from error
        if not self._retry.should_retry(attempts):
            self._echo(f"<-- network error: {error}")
            target = redact_url_credentials(request.url)
            msg = f"{request.method} {target}: {error}"
            raise TransportError(msg) from error
        return attempts + 1

    def _prepare_attempt(self, request: Request, attempts: int) -> Request:
        """Produce the request to send for this attempt.

        The first attempt may use a one-shot body; retries must replay it.
        """
        if attempts == 0 and request.replay is None:
            return Request(
                method=request.method,
                url=request.url,
                headers=request.headers.copy(),
                body=request.body,
            )
        return request.clone()

    def _send(self, request: Request, token: CancellationToken) -> httpx.Response:
        """Execute one network call, returning early if the token is cancelled.

        The call runs on the client's executor while this thread waits on
        the token. A response that arrives after cancellation is closed.

        Raises:
            RequestCancelledError: If the token is cancelled or expires first.
            httpx.TransportError: If the call itself fails.
        """
        token.raise_if_cancelled()

        timeout = self._config.timeout_seconds
        remaining = token.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        content = request.body.read() if request.body is not None else None
        http_request = self._http.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=content,
            timeout=timeout,
        )

        future = self._executor.submit(self._http.send, http_request, stream=True)
        finished = threading.Event()
        future.add_done_callback(lambda _: finished.set())
        unregister = token.add_callback(finished.set)
        try:
            while not future.done() and not token.is_cancelled():
                finished.wait(token.remaining())
        finally:
            unregister()

        if not future.done():
            future.add_done_callback(_discard_response)
            token.raise_if_cancelled()
        return future.result()

    def _after_response(self, response: httpx.Response) -> None:
        """Record the response and run the rate limit hooks."""
        self.metrics.record_request(response.status_code)
        self._rate_limits.update(response.headers)
        slept = self._rate_limits.apply_throttle(self._sleep)
        if slept > 0:
            self.metrics.record_throttle(slept)
        self._echo(f"<-- {response.status_code} {response.reason_phrase}")

    def _backoff(
        self,
        retry_number: int,
        headers: httpx.Headers | None,
        token: CancellationToken,
        log: structlog.typing.FilteringBoundLogger,
    ) -> None:
        """Wait before the next attempt, aborting on cancellation.

        Raises:
            RequestCancelledError: If the token is cancelled during the wait.
        """
        delay = self._retry.get_delay_ms(retry_number) / 1000.0
        if headers is not None:
            retry_after = parse_retry_after(headers.get("Retry-After"))
            if retry_after is not None:
                delay = min(retry_after, MAX_RETRY_AFTER_SECONDS)

        self.metrics.record_retry()
        log.debug(
            "http_retry",
            attempt=retry_number,
            delay_ms=round(delay * 1000),
            max_attempts=self._retry.max_attempts,
        )

        if delay <= 0:
            token.raise_if_cancelled()
            return
        if token.wait(delay):
            token.raise_if_cancelled()

    def _serve_cached(
        self,
        request: Request,
        stream: BinaryIO | None,
        log: structlog.typing.FilteringBoundLogger,
    ) -> Any:
        """Replay a cached body after a 304.

        Raises:
            CacheProtocolError: If no entry exists for the request.
        """
        entry = self._cache.lookup(request.method, request.url)
        if entry is None:
            msg = f"cached response missing for {redact_url_credentials(request.url)}"
            raise CacheProtocolError(msg)

        self.metrics.record_cache_hit()
        log.debug("cache_hit", etag=entry.etag, bytes=len(entry.body))

        if stream is not None:
            stream.write(entry.body)
            return None
        return _decode_json(entry.body, request.url)

    def _read_success(
        self,
        request: Request,
        response: httpx.Response,
        stream: BinaryIO | None,
        use_cache: bool,
        token: CancellationToken,
    ) -> Any:
        """Consume a 2xx response body.

        Raises:
            TransportError: If the connection fails after part of the body
                was written to ``stream``; such a read cannot be retried.
        """
        if stream is not None:
            total = 0
            try:
                for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
                    stream.write(chunk)
                    total += len(chunk)
            except httpx.TransportError as e:
                if total == 0 or token.is_cancelled():
                    raise
                self.metrics.record_bytes(total)
                target = redact_url_credentials(request.url)
                msg = (
                    f"{request.method} {target}: "
                    f"body interrupted after {total} bytes: {e}"
                )
                raise TransportError(msg) from e
            self.metrics.record_bytes(total)
            return None

        body = response.read()
        self.metrics.record_bytes(len(body))

        if use_cache:
            self._cache.store(
                request.method, request.url, body, response.headers.get("ETag")
            )

        return _decode_json(body, request.url)

    def _echo(self, line: str) -> None:
        if not self._debug:
            return
        output = self._debug_output or sys.stderr
        print(redact_url_credentials(line), file=output)

"""Integration tests for the HTTP transport against a local server."""

import threading
import time
from collections.abc import Generator
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from bbagent.features.transport.client import HttpClient
from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.errors import RetryableStatusError
from bbagent.features.transport.models import RetryPolicy


def get_base_url(server: HTTPServer) -> str:
    """Get the API base URL for a test server."""
    host, port = server.server_address[0], server.server_address[1]
    if isinstance(host, bytes):
        host = host.decode("utf-8")
    return f"http://{host}:{port}/2.0"


def make_client(server: HTTPServer, **kwargs: object) -> HttpClient:
    """Create a transport client for a test server."""
    config = TransportConfig(
        base_url=get_base_url(server),
        username="alice",
        password="secret",
        retry_policy=RetryPolicy(
            max_attempts=3, initial_backoff_ms=10, max_backoff_ms=50
        ),
        **kwargs,
    )
    return HttpClient(config)


class CachingHTTPHandler(BaseHTTPRequestHandler):
    """HTTP handler that answers conditional requests with 304."""

    response_body: bytes = b'{"slug": "web", "full_name": "acme/web"}'
    etag: str = '"rev-1"'
    request_count: int = 0

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests with ETag support."""
        CachingHTTPHandler.request_count += 1
        if self.headers.get("If-None-Match") == self.etag:
            self.send_response(304)
            self.send_header("ETag", self.etag)
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.response_body)))
        self.send_header("ETag", self.etag)
        self.send_header("X-RateLimit-Limit", "1000")
        self.send_header("X-RateLimit-Remaining", "998")
        self.end_headers()
        self.wfile.write(self.response_body)


class FlakyHTTPHandler(BaseHTTPRequestHandler):
    """HTTP handler that fails the first N requests of each method."""

    request_count: int = 0
    error_count: int = 1
    status: int = 503
    retry_after: str | None = None
    bodies: list[bytes] = []

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def _respond(self) -> None:
        FlakyHTTPHandler.request_count += 1
        if FlakyHTTPHandler.request_count <= FlakyHTTPHandler.error_count:
            self.send_response(self.status)
            self.send_header("Content-Type", "application/json")
            if self.retry_after is not None:
                self.send_header("Retry-After", self.retry_after)
            self.end_headers()
            self.wfile.write(b'{"error": {"message": "try again"}}')
            return

        body = b'{"ok": true}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests."""
        self._respond()

    def do_POST(self) -> None:  # noqa: N802
        """Handle POST requests, recording each body."""
        length = int(self.headers.get("Content-Length", "0"))
        FlakyHTTPHandler.bodies.append(self.rfile.read(length))
        self._respond()


def serve(handler: type[BaseHTTPRequestHandler]) -> Generator[HTTPServer]:
    """Run a local HTTP server for the duration of a test."""
    server = HTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def caching_server() -> Generator[HTTPServer]:
    """Start a local HTTP server with ETag support."""
    CachingHTTPHandler.request_count = 0
    yield from serve(CachingHTTPHandler)


@pytest.fixture
def flaky_server() -> Generator[HTTPServer]:
    """Start a local HTTP server that fails once with 503."""
    FlakyHTTPHandler.request_count = 0
    FlakyHTTPHandler.error_count = 1
    FlakyHTTPHandler.status = 503
    FlakyHTTPHandler.retry_after = None
    FlakyHTTPHandler.bodies = []
    yield from serve(FlakyHTTPHandler)


class TestConditionalRequests:
    """Integration tests for ETag revalidation."""

    def test_second_get_served_from_cache(self, caching_server: HTTPServer) -> None:
        """Test that a 304 replays the cached body."""
        with make_client(caching_server, enable_cache=True) as client:
            first = client.do(client.new_request("GET", "/repositories/acme/web"))
            second = client.do(client.new_request("GET", "/repositories/acme/web"))

            assert first == second == {"slug": "web", "full_name": "acme/web"}
            assert CachingHTTPHandler.request_count == 2
            assert client.metrics.http_cache_hits_total == 1
            assert client.metrics.http_requests_total == {200: 1, 304: 1}

    def test_rate_limit_headers_recorded(self, caching_server: HTTPServer) -> None:
        with make_client(caching_server) as client:
            client.do(client.new_request("GET", "/repositories/acme/web"))

            state = client.rate_limit_state()
            assert state.limit == 1000
            assert state.remaining == 998


class TestRetries:
    """Integration tests for retry behavior."""

    def test_503_then_success(self, flaky_server: HTTPServer) -> None:
        with make_client(flaky_server) as client:
            result = client.do(client.new_request("GET", "/repositories"))

            assert result == {"ok": True}
            assert FlakyHTTPHandler.request_count == 2
            assert client.metrics.http_retry_total == 1

    def test_post_body_replayed(self, flaky_server: HTTPServer) -> None:
        """Test that a retried POST sends the same JSON body."""
        with make_client(flaky_server) as client:
            request = client.new_request(
                "POST", "/comments", {"content": {"raw": "hi"}}
            )
            client.do(request)

            assert len(FlakyHTTPHandler.bodies) == 2
            assert FlakyHTTPHandler.bodies[0] == FlakyHTTPHandler.bodies[1]
            assert b'"raw"' in FlakyHTTPHandler.bodies[0]

    def test_retry_after_honored(self, flaky_server: HTTPServer) -> None:
        """Test that Retry-After overrides the computed backoff."""
        FlakyHTTPHandler.status = 429
        FlakyHTTPHandler.retry_after = "1"

        with make_client(flaky_server) as client:
            start = time.monotonic()
            client.do(client.new_request("GET", "/repositories"))
            elapsed = time.monotonic() - start

        assert elapsed >= 0.9
        assert FlakyHTTPHandler.request_count == 2

    def test_attempts_exhausted(self, flaky_server: HTTPServer) -> None:
        FlakyHTTPHandler.error_count = 10

        with make_client(flaky_server) as client, pytest.raises(
            RetryableStatusError, match="503"
        ) as exc_info:
            client.do(client.new_request("GET", "/repositories"))

        assert exc_info.value.detail == "try again"
        assert FlakyHTTPHandler.request_count == 3

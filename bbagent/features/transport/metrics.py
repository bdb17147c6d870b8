"""Metrics collection for the HTTP transport."""

import threading
from dataclasses import dataclass, field

from bbagent.features.transport.errors import ErrorClass


@dataclass
class TransportMetrics:
    """Counters for one transport client.

    Tracks request counts, cache hits, retries, throttle pauses, and
    failures. Each client owns its own instance so parallel clients
    (for example in tests) do not share counters.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_cache_hits_total: int = 0
    http_retry_total: int = 0
    http_throttle_total: int = 0
    http_throttle_seconds_total: float = 0.0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_request_count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_request(self, status_code: int) -> None:
        """Record a completed HTTP exchange.

        Args:
            status_code: HTTP status code.
        """
        with self._lock:
            self.http_requests_total[status_code] = (
                self.http_requests_total.get(status_code, 0) + 1
            )
            self.http_request_count += 1

    def record_bytes(self, bytes_received: int) -> None:
        """Record bytes read from a response body."""
        with self._lock:
            self.http_bytes_total += bytes_received

    def record_cache_hit(self) -> None:
        """Record a body served from cache after a 304."""
        with self._lock:
            self.http_cache_hits_total += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        with self._lock:
            self.http_retry_total += 1

    def record_throttle(self, seconds: float) -> None:
        """Record a voluntary rate-limit pause."""
        with self._lock:
            self.http_throttle_total += 1
            self.http_throttle_seconds_total += seconds

    def record_failure(self, error_class: ErrorClass) -> None:
        """Record a failed call.

        Args:
            error_class: Classification of the failure.
        """
        key = error_class.value
        with self._lock:
            self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_requests_total": dict(self.http_requests_total),
                "http_cache_hits_total": self.http_cache_hits_total,
                "http_retry_total": self.http_retry_total,
                "http_throttle_total": self.http_throttle_total,
                "http_throttle_seconds_total": self.http_throttle_seconds_total,
                "http_failures_total": dict(self.http_failures_total),
                "http_bytes_total": self.http_bytes_total,
                "http_request_count": self.http_request_count,
            }

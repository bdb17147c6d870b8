"""In-memory response cache for conditional GET requests.

Encapsulates all cache-related logic for ETag round trips: entries are
written for GET responses carrying both an ETag and a non-empty body, and
replayed when the server answers a conditional request with 304.
"""

from datetime import UTC, datetime

import structlog

from bbagent.features.transport.models import CacheEntry
from bbagent.features.transport.rwlock import ReadWriteLock


logger = structlog.get_logger()


def cache_key(method: str, url: str) -> str:
    """Build the cache key for a request."""
    return f"{method.upper()} {url}"


class ResponseCache:
    """Unbounded ETag cache that lives as long as its client.

    Thread-safe: lookups take a shared lock, writes an exclusive one.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._entries: dict[str, CacheEntry] = {}
        self._log = logger.bind(component="transport", subcomponent="cache")

    def lookup(self, method: str, url: str) -> CacheEntry | None:
        """Retrieve the cached entry for a request.

        Args:
            method: HTTP method.
            url: Full request URL.

        Returns:
            Cached entry if present, None otherwise.
        """
        with self._lock.read():
            return self._entries.get(cache_key(method, url))

    def etag_for(self, method: str, url: str) -> str | None:
        """Get the ETag to send as If-None-Match, if any."""
        entry = self.lookup(method, url)
        return entry.etag if entry else None

    def store(self, method: str, url: str, body: bytes, etag: str | None) -> bool:
        """Store a response body.

        Args:
            method: HTTP method.
            url: Full request URL.
            body: Raw response body.
            etag: ETag header value.

        Returns:
            True if an entry was written.
        """
        if not etag or not body:
            return False

        entry = CacheEntry(etag=etag, body=bytes(body), stored_at=datetime.now(UTC))
        with self._lock.write():
            self._entries[cache_key(method, url)] = entry

        self._log.debug("cache_store", url=url, etag=etag, bytes=len(body))
        return True

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

"""Rate limit tracking and adaptive throttling.

Bitbucket advertises quota through ``X-RateLimit-*`` headers; some Atlassian
endpoints use a different header family instead. The tracker records
whichever family is present and exposes an explicit post-response throttle
hook that pauses briefly when the quota is nearly exhausted.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import structlog

from bbagent.features.transport.constants import (
    MAX_THROTTLE_SECONDS,
    RATE_LIMIT_SOURCE_FALLBACK,
    RATE_LIMIT_SOURCE_PRIMARY,
    THROTTLE_REMAINING_THRESHOLD,
)
from bbagent.features.transport.models import RateLimit
from bbagent.features.transport.rwlock import ReadWriteLock


logger = structlog.get_logger()

# (limit header, remaining header) pairs for the fallback family, in order
_FALLBACK_HEADERS = (
    ("X-Attempt-RateLimit-Limit", "X-Attempt-RateLimit-Remaining"),
    ("X-RateLimit-Capacity", "X-RateLimit-Available"),
)


def _read_int(headers: Mapping[str, str], key: str) -> int:
    value = headers.get(key)
    if not value:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_reset(value: str | None) -> datetime | None:
    """Parse a rate limit reset header.

    Args:
        value: Header value (Unix epoch seconds or HTTP date).

    Returns:
        Reset time in UTC, or None if absent or not parseable.
    """
    if not value:
        return None

    value = value.strip()

    # Try parsing as epoch seconds
    try:
        epoch = int(value)
    except ValueError:
        pass
    else:
        if epoch <= 0:
            return None
        return datetime.fromtimestamp(epoch, tz=UTC)

    # Try parsing as HTTP date
    try:
        parsed = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimit | None:
    """Extract quota information from response headers.

    Args:
        headers: Response headers (case-insensitive mapping).

    Returns:
        RateLimit snapshot, or None when no header family carried data.
    """
    limit = _read_int(headers, "X-RateLimit-Limit")
    remaining = _read_int(headers, "X-RateLimit-Remaining")
    source = RATE_LIMIT_SOURCE_PRIMARY

    if limit == 0 and remaining == 0:
        source = RATE_LIMIT_SOURCE_FALLBACK
        for limit_key, remaining_key in _FALLBACK_HEADERS:
            limit = _read_int(headers, limit_key)
            remaining = _read_int(headers, remaining_key)
            if limit != 0 or remaining != 0:
                break

    if limit == 0 and remaining == 0:
        return None

    return RateLimit(
        limit=limit,
        remaining=remaining,
        reset=parse_reset(headers.get("X-RateLimit-Reset")),
        source=source,
    )


class RateLimitTracker:
    """Holds the latest quota snapshot for one client.

    Thread-safe: the snapshot is swapped under a reader/writer lock.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._state = RateLimit()
        self._log = logger.bind(component="transport", subcomponent="rate_limit")

    def snapshot(self) -> RateLimit:
        """Return the last observed rate limit state."""
        with self._lock.read():
            return self._state

    def update(self, headers: Mapping[str, str]) -> bool:
        """Record quota headers from a response.

        Args:
            headers: Response headers.

        Returns:
            True if the state changed, False if no quota headers were found.
        """
        parsed = parse_rate_limit(headers)
        if parsed is None:
            return False

        with self._lock.write():
            self._state = parsed
        return True

    def throttle_delay(self, now: datetime | None = None) -> float:
        """Seconds to pause before the next request.

        Args:
            now: Current time (defaults to the wall clock, UTC).

        Returns:
            Zero unless the quota is nearly exhausted and a future reset is
            known; otherwise the time until reset, capped.
        """
        state = self.snapshot()
        if state.remaining > THROTTLE_REMAINING_THRESHOLD or state.reset is None:
            return 0.0

        current = now or datetime.now(UTC)
        delay = (state.reset - current).total_seconds()
        if delay <= 0:
            return 0.0
        return min(delay, MAX_THROTTLE_SECONDS)

    def apply_throttle(self, sleep: Callable[[float], None]) -> float:
        """Post-response hook: pause voluntarily when quota is nearly gone.

        Args:
            sleep: Blocking sleep function.

        Returns:
            Seconds slept.
        """
        delay = self.throttle_delay()
        if delay > 0:
            state = self.snapshot()
            self._log.info(
                "rate_limit_throttle",
                remaining=state.remaining,
                source=state.source,
                sleep_seconds=round(delay, 3),
            )
            sleep(delay)
        return delay

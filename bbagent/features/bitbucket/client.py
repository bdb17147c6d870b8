"""Bitbucket Cloud API client built on the HTTP transport."""

import time
from collections.abc import Callable
from io import BytesIO
from types import TracebackType
from typing import Annotated, Any, TypeVar
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from bbagent.features.bitbucket.models import Page
from bbagent.features.transport.cancel import CancellationToken
from bbagent.features.transport.client import HttpClient
from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.constants import CONTENT_TYPE_TEXT
from bbagent.features.transport.errors import ConfigurationError
from bbagent.features.transport.models import RetryPolicy


logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"
DEFAULT_USER_AGENT = "bb-cli"

# Bitbucket Cloud's maximum page size
MAX_PAGE_LEN = 100

# Longer backoff than the transport default
BITBUCKET_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    initial_backoff_ms=1000,
    max_backoff_ms=30000,
)

M = TypeVar("M", bound=BaseModel)


def escape(segment: str) -> str:
    """Escape a value for use as one URL path segment."""
    return quote(segment, safe="")


class BitbucketOptions(BaseModel):
    """Connection options for a Bitbucket Cloud client."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str
    token: str = Field(repr=False)
    workspace: str
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: Annotated[float, Field(gt=0, le=600)] = 30.0
    enable_cache: bool = True
    retry_policy: RetryPolicy = BITBUCKET_RETRY_POLICY
    debug: bool = False

    def transport_config(self) -> TransportConfig:
        """Build the transport configuration for these options."""
        return TransportConfig(
            base_url=self.base_url or DEFAULT_BASE_URL,
            username=self.username,
            password=self.token,
            user_agent=self.user_agent,
            timeout_seconds=self.timeout_seconds,
            enable_cache=self.enable_cache,
            retry_policy=self.retry_policy,
            debug=self.debug,
        )


class BitbucketClient:
    """Access to the Bitbucket Cloud API for one workspace.

    Endpoint functions in the sibling modules take this client as their
    first argument and use the convenience verbs below.
    """

    def __init__(
        self,
        options: BitbucketOptions,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            options: Connection options.
            transport: Optional httpx transport (used by tests).
            sleep: Blocking sleep used by the rate limit throttle.

        Raises:
            ConfigurationError: If username, token, or workspace is missing,
                or the base URL is invalid.
        """
        for name, value in (
            ("username", options.username),
            ("token", options.token),
            ("workspace", options.workspace),
        ):
            if not value.strip():
                msg = f"{name} is required"
                raise ConfigurationError(msg)

        self._workspace = options.workspace
        self._http = HttpClient(
            options.transport_config(), transport=transport, sleep=sleep
        )
        self._log = logger.bind(component="bitbucket", workspace=options.workspace)

    def __enter__(self) -> "BitbucketClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._http.close()

    @property
    def http(self) -> HttpClient:
        """The underlying transport client."""
        return self._http

    @property
    def workspace(self) -> str:
        """The configured workspace slug."""
        return self._workspace

    def repo_path(self, repo_slug: str, *parts: str | int) -> str:
        """Build ``/repositories/{workspace}/{repo}/...`` with escaped segments."""
        segments = [escape(self._workspace), escape(repo_slug)]
        segments.extend(escape(str(part)) for part in parts)
        return "/repositories/" + "/".join(segments)

    def get(self, path: str, *, token: CancellationToken | None = None) -> Any:
        """GET a path and return the decoded JSON."""
        request = self._http.new_request("GET", path)
        return self._http.do(request, token=token)

    def get_with_headers(
        self, path: str, *, token: CancellationToken | None = None
    ) -> tuple[Any, httpx.Headers]:
        """GET a path and return the decoded JSON with response headers."""
        request = self._http.new_request("GET", path)
        return self._http.do_with_headers(request, token=token)

    def get_text(self, path: str, *, token: CancellationToken | None = None) -> str:
        """GET a plain-text resource such as a diff."""
        request = self._http.new_request("GET", path)
        request.headers["Accept"] = CONTENT_TYPE_TEXT
        buffer = BytesIO()
        self._http.do(request, buffer, token=token)
        return buffer.getvalue().decode("utf-8", errors="replace")

    def post(
        self,
        path: str,
        body: Any = None,
        *,
        token: CancellationToken | None = None,
    ) -> Any:
        """POST an optional JSON body and return the decoded response."""
        request = self._http.new_request("POST", path, body)
        return self._http.do(request, token=token)

    def put(
        self,
        path: str,
        body: Any = None,
        *,
        token: CancellationToken | None = None,
    ) -> Any:
        """PUT an optional JSON body and return the decoded response."""
        request = self._http.new_request("PUT", path, body)
        return self._http.do(request, token=token)

    def delete(self, path: str, *, token: CancellationToken | None = None) -> None:
        """DELETE a path, discarding any response body."""
        request = self._http.new_request("DELETE", path)
        self._http.do(request, token=token)

    def paginate(
        self,
        path: str,
        model: type[M],
        *,
        limit: int = 0,
        token: CancellationToken | None = None,
    ) -> list[M]:
        """Collect items from a paginated collection.

        Follows each page's ``next`` link until it is absent or ``limit``
        items have been gathered.

        Args:
            path: Path of the first page, including query parameters.
            model: Item model.
            limit: Maximum number of items (0 means all).
            token: Optional cancellation token.

        Returns:
            Items in server order, at most ``limit`` when set.
        """
        items: list[M] = []
        next_path: str | None = path
        pages = 0

        while next_path:
            data = self.get(next_path, token=token) or {}
            page = Page[model].model_validate(data)  # type: ignore[valid-type]
            items.extend(page.values)
            pages += 1

            if limit > 0 and len(items) >= limit:
                del items[limit:]
                break
            next_path = page.next

        self._log.debug("paginated", path=path, pages=pages, items=len(items))
        return items

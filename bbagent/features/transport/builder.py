"""Construction of transport requests against a configured base URL."""

import base64
import json
from collections.abc import Sequence
from typing import Any
from urllib.parse import SplitResult, urlsplit, urlunsplit

import httpx
from pydantic import BaseModel

from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.constants import CONTENT_TYPE_JSON
from bbagent.features.transport.errors import ConfigurationError
from bbagent.features.transport.models import (
    MultipartFile,
    ReplayablePayload,
    Request,
)


def parse_base_url(base_url: str) -> SplitResult:
    """Parse and validate the client base URL.

    Args:
        base_url: Base URL such as ``https://api.bitbucket.org/2.0``.

    Returns:
        The split URL.

    Raises:
        ConfigurationError: If the URL is missing, malformed, or has no scheme.
    """
    if not base_url.strip():
        msg = "base URL is required"
        raise ConfigurationError(msg)
    try:
        parsed = urlsplit(base_url.strip())
    except ValueError as e:
        msg = f"parse base URL: {e}"
        raise ConfigurationError(msg) from e
    if not parsed.scheme or not parsed.netloc:
        msg = "base URL must include scheme (e.g. https)"
        raise ConfigurationError(msg)
    return parsed


def encode_json_body(body: Any) -> bytes:
    """Serialize a request body as JSON.

    Pydantic models are dumped in JSON mode without None fields.

    Raises:
        ConfigurationError: If the value is not JSON serializable.
    """
    if isinstance(body, BaseModel):
        return body.model_dump_json(exclude_none=True, by_alias=True).encode("utf-8")
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as e:
        msg = f"encode request body: {e}"
        raise ConfigurationError(msg) from e


class RequestBuilder:
    """Builds requests with Bitbucket-aware defaults.

    Every request carries ``Accept: application/json``, the configured
    user agent, and Basic credentials when a username or password is set.
    Bodies are held as replayable payloads so that retries resend the exact
    same bytes.
    """

    def __init__(self, config: TransportConfig) -> None:
        """Initialize the builder.

        Args:
            config: Transport configuration.

        Raises:
            ConfigurationError: If the base URL is invalid.
        """
        self._config = config
        self._base = parse_base_url(config.base_url)
        self._authorization: str | None = None
        if config.has_credentials:
            raw = f"{config.username}:{config.password}".encode()
            self._authorization = "Basic " + base64.b64encode(raw).decode("ascii")

    @property
    def base_url(self) -> str:
        """The validated base URL."""
        return urlunsplit(self._base)

    def resolve_url(self, path: str) -> str:
        """Resolve a request path against the base URL.

        Full URLs are returned unchanged. Relative paths are appended to the
        base path unless they already start with it, so base ``.../2.0`` and
        path ``/2.0/repositories`` give ``.../2.0/repositories``. The query
        string is preserved verbatim.

        Args:
            path: Absolute URL or path relative to the base URL.

        Returns:
            The resolved URL.

        Raises:
            ConfigurationError: If the path is empty.
        """
        if not path.strip():
            msg = "path is required"
            raise ConfigurationError(msg)

        if path.startswith(("http://", "https://")):
            return path

        if not path.startswith("/"):
            path = "/" + path

        rel = urlsplit(path)
        rel_path = rel.path or "/"
        base_root = self._base.path.rstrip("/")

        if not base_root:
            joined = rel_path
        elif rel_path == base_root or rel_path.startswith(base_root + "/"):
            joined = rel_path
        else:
            joined = base_root + rel_path

        return urlunsplit(
            (self._base.scheme, self._base.netloc, joined, rel.query, "")
        )

    def standard_headers(self) -> httpx.Headers:
        """Headers attached to every request."""
        headers = httpx.Headers(
            {
                "Accept": CONTENT_TYPE_JSON,
                "User-Agent": self._config.user_agent,
            }
        )
        if self._authorization:
            headers["Authorization"] = self._authorization
        return headers

    def new_request(self, method: str, path: str, body: Any = None) -> Request:
        """Build a request, JSON-encoding ``body`` when it is not None.

        Args:
            method: HTTP method.
            path: Absolute URL or path relative to the base URL.
            body: Optional JSON-serializable value or pydantic model.

        Returns:
            The request.
        """
        url = self.resolve_url(path)
        headers = self.standard_headers()

        if body is None:
            return Request(method=method.upper(), url=url, headers=headers)

        payload = ReplayablePayload(
            data=encode_json_body(body), content_type=CONTENT_TYPE_JSON
        )
        return self._with_payload(method, url, headers, payload)

    def new_multipart_request(
        self,
        method: str,
        path: str,
        files: Sequence[MultipartFile],
    ) -> Request:
        """Build a multipart/form-data upload request.

        The whole encoded payload is buffered in memory so it can be
        replayed on retry.

        Args:
            method: HTTP method.
            path: Absolute URL or path relative to the base URL.
            files: Files to upload.

        Returns:
            The request.

        Raises:
            ConfigurationError: If no files are given or a file has no content.
        """
        url = self.resolve_url(path)

        if not files:
            msg = "at least one file is required"
            raise ConfigurationError(msg)
        for f in files:
            if f.content is None:
                msg = f"content is missing for file {f.file_name!r}"
                raise ConfigurationError(msg)

        encoder = httpx.Request(
            method.upper(),
            url,
            files=[(f.field_name, (f.file_name, f.content)) for f in files],
        )
        try:
            data = encoder.read()
        except OSError as e:
            msg = f"read multipart file content: {e}"
            raise ConfigurationError(msg) from e

        payload = ReplayablePayload(
            data=data, content_type=encoder.headers["Content-Type"]
        )
        return self._with_payload(method, url, self.standard_headers(), payload)

    @staticmethod
    def _with_payload(
        method: str,
        url: str,
        headers: httpx.Headers,
        payload: ReplayablePayload,
    ) -> Request:
        headers["Content-Type"] = payload.content_type
        headers["Content-Length"] = str(len(payload))
        return Request(
            method=method.upper(),
            url=url,
            headers=headers,
            body=payload.open(),
            replay=payload.open,
        )

"""Unit tests for request construction."""

import base64
import json

import pytest

from bbagent.features.transport.builder import RequestBuilder, parse_base_url
from bbagent.features.transport.config import TransportConfig
from bbagent.features.transport.errors import ConfigurationError
from bbagent.features.transport.models import MultipartFile


def make_builder(
    base_url: str = "https://api.bitbucket.org/2.0", **kwargs: str
) -> RequestBuilder:
    """Create a builder for the given base URL."""
    return RequestBuilder(TransportConfig(base_url=base_url, **kwargs))


class TestParseBaseUrl:
    """Tests for base URL validation."""

    def test_empty_base_url(self) -> None:
        """Test that a missing base URL is rejected."""
        with pytest.raises(ConfigurationError, match="base URL is required"):
            parse_base_url("  ")

    def test_missing_scheme(self) -> None:
        """Test that a scheme-less base URL is rejected."""
        with pytest.raises(ConfigurationError, match="must include scheme"):
            parse_base_url("api.bitbucket.org/2.0")

    def test_valid_base_url(self) -> None:
        """Test that a full base URL parses."""
        parsed = parse_base_url("https://api.bitbucket.org/2.0")

        assert parsed.scheme == "https"
        assert parsed.netloc == "api.bitbucket.org"
        assert parsed.path == "/2.0"


class TestResolveUrl:
    """Tests for path joining against the base URL."""

    @pytest.fixture
    def builder(self) -> RequestBuilder:
        """Create a builder with a versioned base path."""
        return make_builder()

    def test_relative_path_appended(self, builder: RequestBuilder) -> None:
        """Test that a relative path is joined under the base path."""
        assert builder.resolve_url("/x") == "https://api.bitbucket.org/2.0/x"

    def test_missing_leading_slash(self, builder: RequestBuilder) -> None:
        """Test that a leading slash is added when absent."""
        assert builder.resolve_url("user") == "https://api.bitbucket.org/2.0/user"

    def test_base_prefix_not_duplicated(self, builder: RequestBuilder) -> None:
        """Test that a path already carrying the base path is not doubled."""
        assert (
            builder.resolve_url("/2.0/repositories")
            == "https://api.bitbucket.org/2.0/repositories"
        )

    def test_prefix_guard_matches_whole_segments(
        self, builder: RequestBuilder
    ) -> None:
        """Test that a path merely sharing a string prefix is still joined."""
        assert (
            builder.resolve_url("/2.0x/items")
            == "https://api.bitbucket.org/2.0/2.0x/items"
        )

    def test_query_preserved(self, builder: RequestBuilder) -> None:
        """Test that query strings survive path joining."""
        url = builder.resolve_url("/repositories/ws?pagelen=10&page=2")

        assert url == "https://api.bitbucket.org/2.0/repositories/ws?pagelen=10&page=2"

    def test_absolute_url_passthrough(self, builder: RequestBuilder) -> None:
        """Test that full URLs (for example pagination links) are used as-is."""
        url = "https://api.bitbucket.org/2.0/repositories/ws?page=2"

        assert builder.resolve_url(url) == url

    def test_base_without_path(self) -> None:
        """Test that a bare host base URL takes the caller path."""
        builder = make_builder("http://localhost:8080")

        assert builder.resolve_url("/user") == "http://localhost:8080/user"

    def test_empty_path(self, builder: RequestBuilder) -> None:
        """Test that an empty path is rejected."""
        with pytest.raises(ConfigurationError, match="path is required"):
            builder.resolve_url("")


class TestNewRequest:
    """Tests for JSON request construction."""

    def test_standard_headers(self) -> None:
        """Test that Accept, User-Agent, and Basic auth are set."""
        builder = make_builder(username=" alice ", password="secret")

        request = builder.new_request("get", "/user")

        expected = base64.b64encode(b"alice:secret").decode("ascii")
        assert request.method == "GET"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"] == "bbagent"
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.body is None
        assert request.replay is None

    def test_no_credentials_no_authorization(self) -> None:
        """Test that anonymous clients send no Authorization header."""
        request = make_builder().new_request("GET", "/user")

        assert "Authorization" not in request.headers

    def test_json_body_is_replayable(self) -> None:
        """Test that a body is encoded once and replayed identically."""
        builder = make_builder()

        request = builder.new_request("POST", "/comments", {"content": {"raw": "hi"}})

        assert request.body is not None
        assert request.replay is not None
        first = request.body.read()
        assert json.loads(first) == {"content": {"raw": "hi"}}
        assert request.replay().read() == first
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Content-Length"] == str(len(first))

    def test_clone_replays_body(self) -> None:
        """Test that cloning yields a fresh reader over the same bytes."""
        request = make_builder().new_request("PUT", "/x", {"a": 1})
        assert request.body is not None
        request.body.read()

        clone = request.clone()

        assert clone.body is not None
        assert json.loads(clone.body.read()) == {"a": 1}
        assert clone.headers is not request.headers

    def test_unserializable_body(self) -> None:
        """Test that bodies json cannot encode raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="encode request body"):
            make_builder().new_request("POST", "/x", {"value": object()})


class TestNewMultipartRequest:
    """Tests for multipart upload construction."""

    def test_no_files(self) -> None:
        """Test that an empty file list is rejected."""
        with pytest.raises(ConfigurationError, match="at least one file"):
            make_builder().new_multipart_request("POST", "/downloads", [])

    def test_missing_content(self) -> None:
        """Test that a file without content is rejected before encoding."""
        files = [MultipartFile(field_name="files", file_name="a.txt", content=None)]

        with pytest.raises(ConfigurationError, match="content is missing"):
            make_builder().new_multipart_request("POST", "/downloads", files)

    def test_multipart_payload(self) -> None:
        """Test that the encoded payload carries every file and replays."""
        files = [
            MultipartFile(field_name="files", file_name="a.txt", content=b"alpha"),
            MultipartFile(field_name="files", file_name="b.txt", content=b"beta"),
        ]

        request = make_builder().new_multipart_request("POST", "/downloads", files)

        content_type = request.headers["Content-Type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        assert request.body is not None
        assert request.replay is not None
        payload = request.body.read()
        assert b'filename="a.txt"' in payload
        assert b"alpha" in payload
        assert b'filename="b.txt"' in payload
        assert request.replay().read() == payload
        assert request.headers["Content-Length"] == str(len(payload))

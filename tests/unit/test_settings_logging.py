"""Unit tests for settings loading and logging configuration."""

import json
import logging
from collections.abc import Generator
from io import StringIO

import pytest
import structlog

from bbagent.observability.logging import bind_command_context, configure_logging
from bbagent.settings import AppSettings


class TestAppSettings:
    """Tests for environment-driven settings."""

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BB_BASE_URL", raising=False)
        monkeypatch.setenv("BB_USERNAME", "alice")
        monkeypatch.setenv("BB_TOKEN", "app-password")
        monkeypatch.setenv("BB_WORKSPACE", "acme")
        monkeypatch.setenv("BB_HTTP_DEBUG", "1")

        settings = AppSettings(_env_file=None)

        assert settings.username == "alice"
        assert settings.workspace == "acme"
        assert settings.http_debug is True
        assert settings.base_url == "https://api.bitbucket.org/2.0"
        assert settings.missing_credentials() == []

    def test_missing_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BB_USERNAME", raising=False)
        monkeypatch.delenv("BB_TOKEN", raising=False)

        settings = AppSettings(_env_file=None)

        assert settings.missing_credentials() == ["BB_USERNAME", "BB_TOKEN"]

    def test_token_not_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BB_TOKEN", "app-password")

        assert "app-password" not in repr(AppSettings(_env_file=None))


class TestConfigureLogging:
    """Tests for structured logging setup."""

    @pytest.fixture(autouse=True)
    def reset_logging(self) -> Generator[None]:
        """Restore default structlog configuration after each test."""
        yield
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()

    def test_json_output(self) -> None:
        """Test that events are rendered as JSON with bound context."""
        output = StringIO()
        configure_logging(level=logging.DEBUG, output=output)
        bind_command_context("list repos", "acme")

        structlog.get_logger().info("paginated", pages=2)
        structlog.contextvars.clear_contextvars()

        event = json.loads(output.getvalue().strip().splitlines()[-1])
        assert event["event"] == "paginated"
        assert event["pages"] == 2
        assert event["command"] == "list repos"
        assert event["workspace"] == "acme"
        assert event["level"] == "info"

    def test_level_filters(self) -> None:
        output = StringIO()
        configure_logging(level=logging.WARNING, output=output)

        structlog.get_logger().debug("http_retry")

        assert output.getvalue() == ""

    def test_console_output(self) -> None:
        output = StringIO()
        configure_logging(level=logging.INFO, output=output, json_format=False)

        structlog.get_logger().warning("view_fetch_failed", part="comments")

        assert "view_fetch_failed" in output.getvalue()
        assert "part=comments" in output.getvalue()

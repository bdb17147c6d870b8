"""Unit tests for repository and user endpoints."""

import httpx
import pytest

from bbagent.features.bitbucket import repos, users
from bbagent.features.bitbucket.validation import ValidationError
from tests.helpers.bitbucket import FakeBitbucket, make_client


class TestParseScopes:
    """Tests for scope header parsing."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (None, []),
            ("", []),
            ("repository", ["repository"]),
            ("account, pullrequest:write ,,repository", [
                "account",
                "pullrequest:write",
                "repository",
            ]),
        ],
    )
    def test_parse(self, header: str | None, expected: list[str]) -> None:
        assert users.parse_scopes(header) == expected


class TestCurrentUser:
    """Tests for the current-user endpoint."""

    def test_user_with_scopes(self) -> None:
        fake = FakeBitbucket()
        fake.route(
            "GET",
            "/user",
            httpx.Response(
                200,
                json={"username": "alice", "display_name": "Alice"},
                headers={"X-OAuth-Scopes": "account, repository"},
            ),
        )

        user, scopes = users.current_user_with_scopes(make_client(fake))

        assert user.get_name() == "alice"
        assert scopes == ["account", "repository"]

    def test_auth_header_is_sent(self) -> None:
        fake = FakeBitbucket()
        fake.route("GET", "/user", {"username": "alice"})

        users.current_user(make_client(fake))

        assert fake.requests[0].headers["Authorization"].startswith("Basic ")


class TestRepositories:
    """Tests for repository endpoints."""

    def test_list_follows_pages(self) -> None:
        """Test that every page is collected when no limit is set."""
        fake = FakeBitbucket()
        fake.route(
            "GET",
            "/repositories/acme",
            lambda request: httpx.Response(
                200,
                json={"values": [{"slug": "api"}]},
            )
            if "page" in request.url.params
            else httpx.Response(
                200,
                json={
                    "values": [{"slug": "web"}],
                    "next": "https://api.example.test/2.0/repositories/acme?page=2",
                },
            ),
        )

        result = repos.list_repositories(make_client(fake))

        assert [r.slug for r in result] == ["web", "api"]
        assert fake.requests[0].url.params["pagelen"] == "100"

    def test_get_repository(self) -> None:
        fake = FakeBitbucket()
        fake.route(
            "GET",
            "/repositories/acme/web",
            {"slug": "web", "full_name": "acme/web", "is_private": True},
        )

        repo = repos.get_repository(make_client(fake), "web")

        assert repo.full_name == "acme/web"
        assert repo.is_private is True

    def test_get_repository_requires_slug(self) -> None:
        with pytest.raises(ValidationError, match="repository slug is required"):
            repos.get_repository(make_client(FakeBitbucket()), "")

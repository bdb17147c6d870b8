"""Current-user endpoints."""

from bbagent.features.bitbucket.client import BitbucketClient
from bbagent.features.bitbucket.models import User


SCOPES_HEADER = "x-oauth-scopes"


def parse_scopes(header: str | None) -> list[str]:
    """Split a comma-separated scopes header, dropping blanks."""
    if not header:
        return []
    return [scope.strip() for scope in header.split(",") if scope.strip()]


def current_user(client: BitbucketClient) -> User:
    """Return the authenticated user."""
    return User.model_validate(client.get("/user"))


def current_user_with_scopes(client: BitbucketClient) -> tuple[User, list[str]]:
    """Return the authenticated user and the OAuth scopes granted to it."""
    data, headers = client.get_with_headers("/user")
    return User.model_validate(data), parse_scopes(headers.get(SCOPES_HEADER))

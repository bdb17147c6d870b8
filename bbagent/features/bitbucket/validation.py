"""Argument validation for Bitbucket API calls."""


class ValidationError(ValueError):
    """An API call was given invalid arguments; no request was sent."""


def require(value: str | None, name: str) -> str:
    """Return ``value`` or raise if it is empty.

    Raises:
        ValidationError: If the value is None or blank.
    """
    if not value or not value.strip():
        msg = f"{name} is required"
        raise ValidationError(msg)
    return value


def require_positive(value: int, name: str) -> int:
    """Return ``value`` or raise if it is not a positive integer.

    Raises:
        ValidationError: If the value is zero or negative.
    """
    if value <= 0:
        msg = f"{name} must be positive"
        raise ValidationError(msg)
    return value


def validate_pr_args(repo_slug: str, pr_id: int) -> None:
    """Validate the arguments shared by pull request endpoints."""
    require(repo_slug, "repository slug")
    require_positive(pr_id, "pull request ID")


def validate_comment_args(repo_slug: str, pr_id: int, comment_id: int) -> None:
    """Validate the arguments shared by single-comment endpoints."""
    validate_pr_args(repo_slug, pr_id)
    require_positive(comment_id, "comment ID")

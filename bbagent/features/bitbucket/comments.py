"""Pull request comment endpoints."""

from bbagent.features.bitbucket.client import MAX_PAGE_LEN, BitbucketClient
from bbagent.features.bitbucket.models import Comment
from bbagent.features.bitbucket.validation import (
    require,
    require_positive,
    validate_comment_args,
    validate_pr_args,
)


def _comments_path(client: BitbucketClient, repo_slug: str, pr_id: int) -> str:
    validate_pr_args(repo_slug, pr_id)
    return client.repo_path(repo_slug, "pullrequests", pr_id, "comments")


def _comment_path(
    client: BitbucketClient, repo_slug: str, pr_id: int, comment_id: int, *parts: str
) -> str:
    validate_comment_args(repo_slug, pr_id, comment_id)
    return client.repo_path(
        repo_slug, "pullrequests", pr_id, "comments", comment_id, *parts
    )


def _content(message: str) -> dict[str, str]:
    require(message, "message")
    return {"raw": message}


def list_pr_comments(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[Comment]:
    """List every comment on a pull request, general and inline."""
    path = _comments_path(client, repo_slug, pr_id)
    return client.paginate(f"{path}?pagelen={MAX_PAGE_LEN}", Comment)


def list_general_comments(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[Comment]:
    """List comments that are not attached to a file location."""
    return [c for c in list_pr_comments(client, repo_slug, pr_id) if not c.is_inline]


def list_inline_comments(
    client: BitbucketClient,
    repo_slug: str,
    pr_id: int,
    file_path: str = "",
) -> list[Comment]:
    """List inline comments, optionally only those on ``file_path``."""
    return [
        c
        for c in list_pr_comments(client, repo_slug, pr_id)
        if c.inline is not None and (not file_path or c.inline.path == file_path)
    ]


def get_comment(
    client: BitbucketClient, repo_slug: str, pr_id: int, comment_id: int
) -> Comment:
    """Fetch a single comment."""
    path = _comment_path(client, repo_slug, pr_id, comment_id)
    return Comment.model_validate(client.get(path))


def create_comment(
    client: BitbucketClient, repo_slug: str, pr_id: int, message: str
) -> Comment:
    """Post a general comment."""
    path = _comments_path(client, repo_slug, pr_id)
    body = {"content": _content(message)}
    return Comment.model_validate(client.post(path, body))


def create_inline_comment(  # noqa: PLR0913
    client: BitbucketClient,
    repo_slug: str,
    pr_id: int,
    message: str,
    file_path: str,
    line_end: int,
    line_start: int = 0,
) -> Comment:
    """Post a comment on a line, or a line range, of a file.

    Args:
        client: Bitbucket client.
        repo_slug: Repository slug.
        pr_id: Pull request ID.
        message: Comment text.
        file_path: File path relative to the repository root.
        line_end: Line the comment is anchored to (new side).
        line_start: First line of a range; 0 for a single line.
    """
    path = _comments_path(client, repo_slug, pr_id)
    content = _content(message)
    require(file_path, "file path")
    require_positive(line_end, "line number")

    inline: dict[str, object] = {"path": file_path, "to": line_end}
    if line_start > 0 and line_start != line_end:
        inline["start_to"] = line_start

    body = {"content": content, "inline": inline}
    return Comment.model_validate(client.post(path, body))


def reply_to_comment(
    client: BitbucketClient,
    repo_slug: str,
    pr_id: int,
    parent_id: int,
    message: str,
) -> Comment:
    """Reply to an existing comment."""
    path = _comments_path(client, repo_slug, pr_id)
    require_positive(parent_id, "parent comment ID")
    body = {"content": _content(message), "parent": {"id": parent_id}}
    return Comment.model_validate(client.post(path, body))


def update_comment(
    client: BitbucketClient,
    repo_slug: str,
    pr_id: int,
    comment_id: int,
    message: str,
) -> Comment:
    """Replace the text of a comment."""
    path = _comment_path(client, repo_slug, pr_id, comment_id)
    body = {"content": _content(message)}
    return Comment.model_validate(client.put(path, body))


def delete_comment(
    client: BitbucketClient, repo_slug: str, pr_id: int, comment_id: int
) -> None:
    """Delete a comment."""
    client.delete(_comment_path(client, repo_slug, pr_id, comment_id))


def resolve_comment(
    client: BitbucketClient, repo_slug: str, pr_id: int, comment_id: int
) -> None:
    """Mark a comment thread as resolved."""
    client.post(_comment_path(client, repo_slug, pr_id, comment_id, "resolve"))


def reopen_comment(
    client: BitbucketClient, repo_slug: str, pr_id: int, comment_id: int
) -> None:
    """Reopen a resolved comment thread."""
    client.delete(_comment_path(client, repo_slug, pr_id, comment_id, "resolve"))

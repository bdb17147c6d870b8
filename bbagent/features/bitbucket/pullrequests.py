"""Pull request endpoints."""

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

from bbagent.features.bitbucket.client import BitbucketClient
from bbagent.features.bitbucket.models import (
    Activity,
    CommitStatus,
    FileStats,
    Participant,
    PullRequest,
)
from bbagent.features.bitbucket.validation import require, validate_pr_args


DEFAULT_PR_PAGE_LEN = 50

PR_STATES = ("OPEN", "MERGED", "DECLINED", "SUPERSEDED")


class CreatePullRequestOptions(BaseModel):
    """Options for opening a pull request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str
    source_branch: str
    destination_branch: str = ""
    close_source_branch: bool = False
    draft: bool = False

    def to_body(self) -> dict[str, object]:
        """Render the request body; an empty destination means the main branch."""
        body: dict[str, object] = {
            "title": self.title,
            "source": {"branch": {"name": self.source_branch}},
            "close_source_branch": self.close_source_branch,
            "draft": self.draft,
        }
        if self.destination_branch:
            body["destination"] = {"branch": {"name": self.destination_branch}}
        return body


def _pr_path(client: BitbucketClient, repo_slug: str, pr_id: int, *parts: str) -> str:
    validate_pr_args(repo_slug, pr_id)
    return client.repo_path(repo_slug, "pullrequests", pr_id, *parts)


def get_pull_request(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> PullRequest:
    """Fetch a single pull request."""
    path = _pr_path(client, repo_slug, pr_id)
    return PullRequest.model_validate(client.get(path))


def get_pr_diffstat(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[FileStats]:
    """Fetch per-file line statistics for a pull request."""
    path = _pr_path(client, repo_slug, pr_id, "diffstat")
    return client.paginate(path, FileStats)


def get_pr_diff(client: BitbucketClient, repo_slug: str, pr_id: int) -> str:
    """Fetch the unified diff of a pull request as text."""
    path = _pr_path(client, repo_slug, pr_id, "diff")
    return client.get_text(path)


def get_pr_file_diff(
    client: BitbucketClient, repo_slug: str, pr_id: int, file_path: str
) -> str:
    """Fetch the unified diff of one file in a pull request."""
    path = _pr_path(client, repo_slug, pr_id, "diff")
    require(file_path, "file path")
    return client.get_text(f"{path}?path={quote(file_path, safe='')}")


def get_pr_activity(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[Activity]:
    """Fetch the full activity timeline of a pull request."""
    path = _pr_path(client, repo_slug, pr_id, "activity")
    return client.paginate(path, Activity)


def get_pr_statuses(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[CommitStatus]:
    """Fetch build statuses attached to a pull request."""
    path = _pr_path(client, repo_slug, pr_id, "statuses")
    return client.paginate(path, CommitStatus)


def list_pull_requests(
    client: BitbucketClient,
    repo_slug: str,
    state: str = "",
    limit: int = 0,
) -> list[PullRequest]:
    """List pull requests of a repository.

    Args:
        client: Bitbucket client.
        repo_slug: Repository slug.
        state: OPEN, MERGED, DECLINED, SUPERSEDED, or empty for the
            server default.
        limit: Maximum number of pull requests (0 means all).
    """
    require(repo_slug, "repository slug")
    page_len = limit if 0 < limit < DEFAULT_PR_PAGE_LEN else DEFAULT_PR_PAGE_LEN
    path = f"{client.repo_path(repo_slug, 'pullrequests')}?pagelen={page_len}"
    if state:
        path += f"&state={quote(state.upper(), safe='')}"
    return client.paginate(path, PullRequest, limit=limit)


def approve_pr(client: BitbucketClient, repo_slug: str, pr_id: int) -> Participant:
    """Approve a pull request as the authenticated user."""
    path = _pr_path(client, repo_slug, pr_id, "approve")
    return Participant.model_validate(client.post(path))


def unapprove_pr(client: BitbucketClient, repo_slug: str, pr_id: int) -> None:
    """Withdraw the authenticated user's approval."""
    client.delete(_pr_path(client, repo_slug, pr_id, "approve"))


def request_changes_pr(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> Participant:
    """Mark a pull request as needing changes."""
    path = _pr_path(client, repo_slug, pr_id, "request-changes")
    return Participant.model_validate(client.post(path))


def unrequest_changes_pr(client: BitbucketClient, repo_slug: str, pr_id: int) -> None:
    """Clear the authenticated user's request for changes."""
    client.delete(_pr_path(client, repo_slug, pr_id, "request-changes"))


def create_pr(
    client: BitbucketClient,
    repo_slug: str,
    options: CreatePullRequestOptions,
) -> PullRequest:
    """Open a new pull request."""
    require(repo_slug, "repository slug")
    require(options.title, "title")
    require(options.source_branch, "source branch")
    path = client.repo_path(repo_slug, "pullrequests")
    return PullRequest.model_validate(client.post(path, options.to_body()))

"""Pipeline and commit status endpoints."""

from bbagent.features.bitbucket.client import MAX_PAGE_LEN, BitbucketClient
from bbagent.features.bitbucket.models import CommitStatus, Pipeline
from bbagent.features.bitbucket.pullrequests import get_pull_request
from bbagent.features.bitbucket.validation import (
    ValidationError,
    require,
    validate_pr_args,
)


DEFAULT_PIPELINE_PAGE_LEN = 50


def get_commit_statuses(
    client: BitbucketClient, repo_slug: str, commit_hash: str
) -> list[CommitStatus]:
    """List build statuses reported for a commit."""
    require(repo_slug, "repository slug")
    require(commit_hash, "commit hash")
    path = client.repo_path(repo_slug, "commit", commit_hash, "statuses")
    return client.paginate(f"{path}?pagelen={MAX_PAGE_LEN}", CommitStatus)


def get_pr_pipelines(
    client: BitbucketClient, repo_slug: str, pr_id: int
) -> list[CommitStatus]:
    """List build statuses of a pull request's source commit.

    Raises:
        ValidationError: If the pull request reports no source commit.
    """
    validate_pr_args(repo_slug, pr_id)
    pr = get_pull_request(client, repo_slug, pr_id)
    if pr.source_commit is None:
        msg = "pull request has no source commit"
        raise ValidationError(msg)
    return get_commit_statuses(client, repo_slug, pr.source_commit)


def normalize_pipeline_uuid(pipeline_uuid: str) -> str:
    """Wrap a pipeline UUID in braces unless it already has them."""
    if pipeline_uuid.startswith("{"):
        return pipeline_uuid
    return "{" + pipeline_uuid + "}"


def get_pipeline_status(
    client: BitbucketClient, repo_slug: str, pipeline_uuid: str
) -> Pipeline:
    """Fetch one pipeline run by UUID."""
    require(repo_slug, "repository slug")
    require(pipeline_uuid, "pipeline UUID")
    path = client.repo_path(
        repo_slug, "pipelines", normalize_pipeline_uuid(pipeline_uuid)
    )
    return Pipeline.model_validate(client.get(path))


def list_pipelines(
    client: BitbucketClient, repo_slug: str, limit: int = 0
) -> list[Pipeline]:
    """List pipeline runs of a repository."""
    require(repo_slug, "repository slug")
    page_len = (
        limit if 0 < limit < DEFAULT_PIPELINE_PAGE_LEN else DEFAULT_PIPELINE_PAGE_LEN
    )
    path = (
        f"{client.repo_path(repo_slug, 'pipelines')}/"
        f"?pagelen={page_len}"
    )
    return client.paginate(path, Pipeline, limit=limit)

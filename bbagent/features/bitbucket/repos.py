"""Repository endpoints."""

from bbagent.features.bitbucket.client import MAX_PAGE_LEN, BitbucketClient, escape
from bbagent.features.bitbucket.models import Repository
from bbagent.features.bitbucket.validation import require


def list_repositories(client: BitbucketClient, limit: int = 0) -> list[Repository]:
    """List repositories in the client's workspace.

    Args:
        client: Bitbucket client.
        limit: Maximum number of repositories (0 means all).

    Returns:
        Repositories in server order.
    """
    page_len = limit if 0 < limit < MAX_PAGE_LEN else MAX_PAGE_LEN
    path = f"/repositories/{escape(client.workspace)}?pagelen={page_len}"
    return client.paginate(path, Repository, limit=limit)


def get_repository(client: BitbucketClient, slug: str) -> Repository:
    """Fetch a single repository by slug."""
    require(slug, "repository slug")
    return Repository.model_validate(client.get(client.repo_path(slug)))

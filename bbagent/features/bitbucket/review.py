"""Aggregated pull request views for review.

A PR view combines the pull request, its diffstat, the build status of its
source commit, and its comments. The secondary calls run concurrently; the
diffstat is required, while build status and comments degrade to warnings.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

import structlog
from pydantic import BaseModel, Field

from bbagent.features.bitbucket.client import BitbucketClient
from bbagent.features.bitbucket.comments import list_pr_comments
from bbagent.features.bitbucket.models import Comment, CommitStatus, FileStats
from bbagent.features.bitbucket.pipelines import get_commit_statuses
from bbagent.features.bitbucket.pullrequests import (
    get_pr_diff,
    get_pr_diffstat,
    get_pr_file_diff,
    get_pull_request,
)
from bbagent.features.transport.errors import TransportClientError


logger = structlog.get_logger()

MAX_VIEW_WORKERS = 5

STATUS_RENAMED = "renamed"
UNKNOWN_BUILD_STATUS = "unknown"


class ReviewerInfo(BaseModel):
    """A reviewer who has acted on the pull request."""

    username: str
    state: str


class FileSummary(BaseModel):
    """Per-file summary within a PR view."""

    path: str
    old_path: str | None = None
    status: str
    additions: int
    deletions: int
    comments: int


class CommentInfo(BaseModel):
    """A comment flattened for output."""

    id: int
    line: int | None = None
    path: str | None = None
    author: str
    author_id: str
    text: str
    created: str | None = None
    inline: bool
    parent_id: int | None = None


class PRView(BaseModel):
    """Complete review context for a pull request."""

    id: int
    title: str
    description: str
    author: str
    state: str
    source: str
    target: str
    created: str | None = None
    updated: str | None = None
    reviewers: list[ReviewerInfo] = Field(default_factory=list)
    build_status: str = UNKNOWN_BUILD_STATUS
    files: list[FileSummary] = Field(default_factory=list)
    total_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    total_comments: int = 0
    comments: list[CommentInfo] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FileView(BaseModel):
    """Diff and inline comments for one file of a pull request."""

    pr: int
    file: str
    status: str = ""
    additions: int = 0
    deletions: int = 0
    diff: str
    comments: list[CommentInfo] = Field(default_factory=list)


def comment_info(comment: Comment) -> CommentInfo:
    """Flatten a comment for output."""
    user = comment.user
    inline = comment.inline
    return CommentInfo(
        id=comment.id,
        line=inline.to if inline else None,
        path=inline.path if inline else None,
        author=user.display_name if user else "",
        author_id=user.uuid if user else "",
        text=comment.content.raw if comment.content else "",
        created=comment.created_on.isoformat() if comment.created_on else None,
        inline=inline is not None,
        parent_id=comment.parent.id if comment.parent else None,
    )


def summarize_files(
    diffstat: list[FileStats], comments: list[Comment]
) -> list[FileSummary]:
    """Summarize diffstat entries with per-file inline comment counts."""
    counts: dict[str, int] = {}
    for comment in comments:
        if comment.inline is not None and comment.inline.path:
            counts[comment.inline.path] = counts.get(comment.inline.path, 0) + 1

    files = []
    for stat in diffstat:
        path = stat.get_path()
        old_path = None
        if stat.status == STATUS_RENAMED and stat.old is not None:
            old_path = stat.old.path
        files.append(
            FileSummary(
                path=path,
                old_path=old_path,
                status=stat.status,
                additions=stat.lines_added,
                deletions=stat.lines_removed,
                comments=counts.get(path, 0),
            )
        )
    return files


def build_pr_view(client: BitbucketClient, repo_slug: str, pr_id: int) -> PRView:
    """Gather the review context of a pull request.

    The pull request is fetched first; diffstat, commit statuses, and
    comments are then fetched in parallel.

    Args:
        client: Bitbucket client.
        repo_slug: Repository slug.
        pr_id: Pull request ID.

    Returns:
        The assembled view. Non-critical failures are listed in ``warnings``.

    Raises:
        TransportClientError: If the pull request or its diffstat cannot be
            fetched.
    """
    log = logger.bind(component="review", repo=repo_slug, pr_id=pr_id)
    pr = get_pull_request(client, repo_slug, pr_id)
    source_commit = pr.source_commit

    def fetch_statuses() -> list[CommitStatus]:
        if source_commit is None:
            return []
        return get_commit_statuses(client, repo_slug, source_commit)

    # name -> (fetch, critical)
    tasks: dict[str, tuple[Callable[[], Any], bool]] = {
        "diffstat": (lambda: get_pr_diffstat(client, repo_slug, pr_id), True),
        "pipeline status": (fetch_statuses, False),
        "comments": (lambda: list_pr_comments(client, repo_slug, pr_id), False),
    }

    results: dict[str, Any] = {}
    warnings: list[str] = []

    with ThreadPoolExecutor(max_workers=MAX_VIEW_WORKERS) as executor:
        future_to_name = {
            executor.submit(fetch): name for name, (fetch, _) in tasks.items()
        }
        for future in as_completed(future_to_name):
            name = future_to_name[future]
            try:
                results[name] = future.result()
            except TransportClientError as e:
                if tasks[name][1]:
                    raise
                log.warning("view_fetch_failed", part=name, error=str(e))
                warnings.append(f"failed to fetch {name}: {e}")

    diffstat: list[FileStats] = results["diffstat"]
    statuses: list[CommitStatus] = results.get("pipeline status", [])
    comments: list[Comment] = results.get("comments", [])

    files = summarize_files(diffstat, comments)
    build_status = UNKNOWN_BUILD_STATUS
    if statuses and statuses[0].state:
        build_status = statuses[0].state
    reviewers = [
        ReviewerInfo(username=p.user.display_name if p.user else "", state=p.state)
        for p in pr.participants
        if p.role == "REVIEWER" and p.state
    ]

    return PRView(
        id=pr.id,
        title=pr.title,
        description=pr.description,
        author=pr.author.display_name if pr.author else "",
        state=pr.state,
        source=_branch_name(pr.source),
        target=_branch_name(pr.destination),
        created=pr.created_on.isoformat() if pr.created_on else None,
        updated=pr.updated_on.isoformat() if pr.updated_on else None,
        reviewers=reviewers,
        build_status=build_status,
        files=files,
        total_files=len(files),
        total_additions=sum(f.additions for f in files),
        total_deletions=sum(f.deletions for f in files),
        total_comments=len(comments),
        comments=[comment_info(c) for c in comments],
        warnings=warnings,
    )


def _branch_name(side: Any) -> str:
    if side is None or side.branch is None:
        return ""
    return side.branch.name


def extract_file_diff(full_diff: str, old_path: str, new_path: str) -> str:
    """Extract the hunks of a renamed file from a full unified diff.

    Returns:
        Lines from the first ``@@`` hunk of the matching ``diff --git``
        section up to the next section, or an empty string.
    """
    capturing = False
    result: list[str] = []

    for line in full_diff.split("\n"):
        if line.startswith("diff --git"):
            if capturing:
                break
            if f"a/{old_path}" in line and f"b/{new_path}" in line:
                capturing = True
                continue
        if capturing and (line.startswith("@@") or result):
            result.append(line)

    return "\n".join(result).rstrip("\n")


def build_file_view(
    client: BitbucketClient, repo_slug: str, pr_id: int, file_path: str
) -> FileView:
    """Gather the diff and inline comments for one file of a pull request.

    The per-file diff endpoint shows a renamed file as entirely new, so for
    renames the diffstat decides what is shown: a header alone when the
    content is unchanged, otherwise the hunks taken from the full diff.
    """
    diff = get_pr_file_diff(client, repo_slug, pr_id, file_path)
    diffstat = get_pr_diffstat(client, repo_slug, pr_id)

    stat = next((s for s in diffstat if s.get_path() == file_path), None)
    status = stat.status if stat else ""
    additions = stat.lines_added if stat else 0
    deletions = stat.lines_removed if stat else 0
    old_path = stat.old.path if stat and stat.old else ""

    if status == STATUS_RENAMED and old_path:
        header = f"renamed: {old_path} -> {file_path}\n"
        fallback = f"{header}(+{additions}/-{deletions} lines changed)\n"
        if additions == 0 and deletions == 0:
            diff = header
        else:
            try:
                section = extract_file_diff(
                    get_pr_diff(client, repo_slug, pr_id), old_path, file_path
                )
            except TransportClientError as e:
                logger.warning("full_diff_failed", pr_id=pr_id, error=str(e))
                section = ""
            diff = f"{header}\n{section}" if section else fallback

    comments = [
        comment_info(c)
        for c in list_pr_comments(client, repo_slug, pr_id)
        if c.inline is not None and c.inline.path == file_path
    ]

    return FileView(
        pr=pr_id,
        file=file_path,
        status=status,
        additions=additions,
        deletions=deletions,
        diff=diff,
        comments=comments,
    )

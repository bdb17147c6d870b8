"""Response models for the Bitbucket Cloud API.

Models ignore unknown fields so that additions to the API never break
decoding; only the fields the CLI reports are declared.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    """Base class for API response models."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Link(ApiModel):
    """A single HAL link."""

    href: str = ""
    name: str | None = None


class Links(ApiModel):
    """HAL-style links attached to API resources."""

    self_link: Link | None = Field(default=None, alias="self")
    html: Link | None = None
    avatar: Link | None = None
    commits: Link | None = None
    diff: Link | None = None
    approve: Link | None = None
    comments: Link | None = None
    activity: Link | None = None
    statuses: Link | None = None
    decline: Link | None = None
    merge: Link | None = None


class User(ApiModel):
    """A Bitbucket Cloud user or account."""

    uuid: str = ""
    username: str = ""
    display_name: str = ""
    account_id: str = ""
    nickname: str | None = None
    type: str = ""
    links: Links | None = None

    def get_name(self) -> str:
        """Return the best available name: username, display name, nickname."""
        return self.username or self.display_name or self.nickname or ""


class CommitReference(ApiModel):
    """A commit reference."""

    hash: str = ""
    type: str = ""
    date: datetime | None = None
    links: Links | None = None


class Branch(ApiModel):
    """A repository branch."""

    name: str = ""
    type: str = ""
    target: CommitReference | None = None


class Project(ApiModel):
    """A Bitbucket Cloud project."""

    uuid: str = ""
    key: str = ""
    name: str = ""
    type: str = ""


class Repository(ApiModel):
    """A Bitbucket Cloud repository."""

    uuid: str = ""
    name: str = ""
    slug: str = ""
    full_name: str = ""
    is_private: bool = False
    description: str | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None
    mainbranch: Branch | None = None
    owner: User | None = None
    project: Project | None = None
    links: Links | None = None
    type: str = ""
    scm: str | None = None
    language: str | None = None
    size: int | None = None


class PullRequestBranch(ApiModel):
    """Source or destination of a pull request."""

    branch: Branch | None = None
    commit: CommitReference | None = None
    repository: Repository | None = None


class Participant(ApiModel):
    """A pull request participant."""

    user: User | None = None
    role: str = ""
    approved: bool = False
    state: str | None = None
    participated_on: datetime | None = None


class PullRequest(ApiModel):
    """A Bitbucket Cloud pull request."""

    id: int
    title: str = ""
    description: str = ""
    state: str = ""
    author: User | None = None
    source: PullRequestBranch | None = None
    destination: PullRequestBranch | None = None
    reviewers: list[User] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    created_on: datetime | None = None
    updated_on: datetime | None = None
    merge_commit: CommitReference | None = None
    links: Links | None = None
    type: str = ""
    close_source_branch: bool = False
    comment_count: int = 0
    task_count: int = 0

    @property
    def source_commit(self) -> str | None:
        """Hash of the source commit, if the API reported one."""
        if self.source is None or self.source.commit is None:
            return None
        return self.source.commit.hash or None


class FileInfo(ApiModel):
    """File information in a diffstat entry."""

    path: str = ""
    escaped_path: str | None = None
    type: str = ""
    links: Links | None = None


class FileStats(ApiModel):
    """File-level diff statistics."""

    path: str | None = None
    lines_added: int = 0
    lines_removed: int = 0
    status: str = ""
    type: str = ""
    old: FileInfo | None = None
    new: FileInfo | None = None

    def get_path(self) -> str:
        """Return the file path, preferring the new side over the old one."""
        if self.path:
            return self.path
        if self.new is not None and self.new.path:
            return self.new.path
        if self.old is not None and self.old.path:
            return self.old.path
        return ""


class Content(ApiModel):
    """Rich content (markdown, raw, html)."""

    raw: str = ""
    markup: str | None = None
    html: str | None = None
    type: str | None = None


class InlineLocation(ApiModel):
    """Location of an inline comment."""

    path: str = ""
    from_line: int | None = Field(default=None, alias="from")
    to: int | None = None
    start_to: int | None = None


class CommentRef(ApiModel):
    """Reference to a parent comment."""

    id: int


class Comment(ApiModel):
    """A pull request comment, general or inline."""

    id: int
    content: Content | None = None
    user: User | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None
    inline: InlineLocation | None = None
    parent: CommentRef | None = None
    links: Links | None = None
    type: str = ""
    deleted: bool = False

    @property
    def is_inline(self) -> bool:
        """Check whether the comment is attached to a file location."""
        return self.inline is not None


class ActivityUpdate(ApiModel):
    """A pull request update event."""

    date: datetime | None = None
    author: User | None = None
    state: str | None = None
    title: str | None = None
    description: str | None = None
    source: PullRequestBranch | None = None
    destination: PullRequestBranch | None = None


class ActivityApproval(ApiModel):
    """An approval event."""

    date: datetime | None = None
    user: User | None = None


class Activity(ApiModel):
    """One item of a pull request's activity timeline."""

    update: ActivityUpdate | None = None
    comment: Comment | None = None
    approval: ActivityApproval | None = None


class PipelineResult(ApiModel):
    """Result of a completed pipeline."""

    name: str = ""
    type: str = ""


class PipelineState(ApiModel):
    """State of a pipeline."""

    name: str = ""
    type: str = ""
    result: PipelineResult | None = None


class PipelineSelector(ApiModel):
    """Pipeline selector configuration."""

    type: str = ""
    pattern: str | None = None


class PipelineTarget(ApiModel):
    """What a pipeline is building."""

    type: str = ""
    ref_type: str | None = None
    ref_name: str | None = None
    commit: CommitReference | None = None
    selector: PipelineSelector | None = None


class Pipeline(ApiModel):
    """A Bitbucket Pipelines build."""

    uuid: str = ""
    build_number: int = 0
    state: PipelineState | None = None
    created_on: datetime | None = None
    completed_on: datetime | None = None
    target: PipelineTarget | None = None
    repository: Repository | None = None
    creator: User | None = None
    links: Links | None = None
    type: str = ""


class CommitStatus(ApiModel):
    """A commit status (build or check result)."""

    uuid: str | None = None
    key: str = ""
    refname: str | None = None
    url: str | None = None
    state: str = ""
    name: str | None = None
    description: str | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None
    type: str = ""
    links: Links | None = None


class Download(ApiModel):
    """An uploaded repository download artifact."""

    name: str = ""
    size: int = 0
    downloads: int = 0
    created_on: datetime | None = None
    user: User | None = None
    links: Links | None = None


T = TypeVar("T", bound=BaseModel)


class Page(ApiModel, Generic[T]):
    """One page of a paginated collection."""

    size: int | None = None
    page: int | None = None
    pagelen: int | None = None
    next: str | None = None
    previous: str | None = None
    values: list[T] = Field(default_factory=list)

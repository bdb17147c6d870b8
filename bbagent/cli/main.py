"""CLI commands for the Bitbucket client.

Every command prints JSON on stdout. Errors are printed as a JSON object on
stderr and the process exits non-zero.
"""

import json
import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import click
import httpx
import structlog
from pydantic import BaseModel

from bbagent import __version__
from bbagent.features.bitbucket import comments as comment_api
from bbagent.features.bitbucket import pipelines as pipeline_api
from bbagent.features.bitbucket import pullrequests as pr_api
from bbagent.features.bitbucket import repos as repo_api
from bbagent.features.bitbucket import users as user_api
from bbagent.features.bitbucket.client import BitbucketClient, BitbucketOptions
from bbagent.features.bitbucket.review import build_file_view, build_pr_view
from bbagent.features.bitbucket.validation import ValidationError
from bbagent.features.transport.errors import ApiError, TransportClientError
from bbagent.observability.logging import bind_command_context, configure_logging
from bbagent.settings import AppSettings, get_settings


logger = structlog.get_logger()

COMPONENT_CLI = "cli"

# OAuth scopes needed for every command to work
REQUIRED_SCOPES = (
    "read:user:bitbucket",
    "read:workspace:bitbucket",
    "read:repository:bitbucket",
    "read:pullrequest:bitbucket",
    "write:pullrequest:bitbucket",
    "read:pipeline:bitbucket",
)


class ExitError(Exception):
    """Terminate a command with a specific exit code and message."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class CliState:
    """Shared state for one CLI invocation.

    Tests pass an instance through ``CliRunner.invoke(obj=...)`` to supply
    settings and a mock transport.
    """

    settings: AppSettings | None = None
    transport: httpx.BaseTransport | None = None
    workspace: str | None = None
    debug: bool = False
    sleep: Callable[[float], None] | None = None

    def resolved_settings(self) -> AppSettings:
        """Return the injected settings, loading them on first use."""
        if self.settings is None:
            self.settings = get_settings()
        return self.settings

    def client(self) -> BitbucketClient:
        """Build an API client from settings and global options.

        Raises:
            ExitError: If credentials or the workspace are missing.
        """
        settings = self.resolved_settings()
        missing = settings.missing_credentials()
        workspace = self.workspace or settings.workspace
        if not workspace:
            missing.append("BB_WORKSPACE")
        if missing:
            msg = f"missing configuration: set {', '.join(missing)}"
            raise ExitError(2, msg)

        options = BitbucketOptions(
            username=settings.username or "",
            token=settings.token or "",
            workspace=workspace,
            base_url=settings.base_url,
            debug=self.debug or settings.http_debug,
        )
        kwargs: dict[str, Any] = {"transport": self.transport}
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        return BitbucketClient(options, **kwargs)


def to_jsonable(value: Any) -> Any:
    """Convert models (and lists of models) to JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    return value


def write_json(value: Any, err: bool = False) -> None:
    """Write a value as indented JSON."""
    click.echo(json.dumps(to_jsonable(value), indent=2), err=err)


def error_payload(error: Exception) -> dict[str, Any]:
    """Describe an error for the JSON error channel."""
    if isinstance(error, ApiError):
        return {
            "error": error.message,
            "error_class": error.error_class.value,
            "status_code": error.status_code,
        }
    if isinstance(error, TransportClientError):
        return {"error": error.message, "error_class": error.error_class.value}
    if isinstance(error, ValidationError):
        return {"error": str(error), "error_class": "VALIDATION"}
    return {"error": str(error)}


@contextmanager
def handle_errors(command: str) -> Iterator[None]:
    """Map domain errors to a JSON error on stderr and an exit code."""
    log = logger.bind(component=COMPONENT_CLI, command=command)
    try:
        yield
    except ExitError as e:
        log.warning("command_exit", code=e.code, error=e.message)
        write_json({"error": e.message}, err=True)
        sys.exit(e.code)
    except (TransportClientError, ValidationError) as e:
        log.warning("command_failed", error=str(e))
        write_json(error_payload(e), err=True)
        sys.exit(1)


@contextmanager
def api_client(state: CliState, command: str) -> Iterator[BitbucketClient]:
    """Open an API client inside the CLI error handler."""
    with handle_errors(command):
        bind_command_context(command, state.workspace)
        with state.client() as client:
            yield client


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--workspace",
    "-w",
    default=None,
    help="Bitbucket workspace slug (default: BB_WORKSPACE)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Echo HTTP requests and responses to stderr",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Output logs in JSON format",
)
@click.pass_context
def cli(
    ctx: click.Context,
    workspace: str | None,
    debug: bool,
    verbose: bool,
    json_logs: bool,
) -> None:
    """Bitbucket Cloud CLI with JSON output for automation."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    configure_logging(level=log_level, json_format=json_logs)

    state = ctx.ensure_object(CliState)
    if workspace:
        state.workspace = workspace
    state.debug = state.debug or debug


# Auth


@cli.group()
def auth() -> None:
    """Inspect authentication."""


@auth.command("status")
@click.pass_obj
def auth_status(state: CliState) -> None:
    """Verify credentials and report granted scopes."""
    try:
        with state.client() as client:
            user, scopes = user_api.current_user_with_scopes(client)
    except (ExitError, TransportClientError) as e:
        reason = e.message
        write_json({"authenticated": False, "reason": reason})
        return

    result: dict[str, Any] = {
        "authenticated": True,
        "username": user.get_name(),
        "workspace": client.workspace,
    }
    missing = [scope for scope in REQUIRED_SCOPES if scope not in set(scopes)]
    if missing:
        result["scopes"] = "missing"
        result["missing_scopes"] = missing
    else:
        result["scopes"] = "ok"
    write_json(result)


# List


@cli.group("list")
def list_group() -> None:
    """List workspace resources."""


@list_group.command("repos")
@click.option(
    "--limit", default=0, show_default=True, help="Maximum results (0 = all)"
)
@click.pass_obj
def list_repos(state: CliState, limit: int) -> None:
    """List repositories in the workspace."""
    with api_client(state, "list repos") as client:
        write_json(repo_api.list_repositories(client, limit=limit))


@list_group.command("prs")
@click.option("--repo", "-r", required=True, help="Repository slug")
@click.option(
    "--state",
    "pr_state",
    type=click.Choice(pr_api.PR_STATES, case_sensitive=False),
    default="OPEN",
    show_default=True,
    help="Pull request state",
)
@click.option(
    "--limit", default=20, show_default=True, help="Maximum results (0 = all)"
)
@click.pass_obj
def list_prs(state: CliState, repo: str, pr_state: str, limit: int) -> None:
    """List pull requests of a repository."""
    with api_client(state, "list prs") as client:
        write_json(
            pr_api.list_pull_requests(client, repo, state=pr_state, limit=limit)
        )


@list_group.command("pipelines")
@click.option("--repo", "-r", required=True, help="Repository slug")
@click.option(
    "--limit", default=20, show_default=True, help="Maximum results (0 = all)"
)
@click.option("--uuid", "pipeline_uuid", default=None, help="Show one pipeline by UUID")
@click.pass_obj
def list_pipelines(
    state: CliState, repo: str, limit: int, pipeline_uuid: str | None
) -> None:
    """List pipeline runs of a repository."""
    with api_client(state, "list pipelines") as client:
        if pipeline_uuid:
            write_json(pipeline_api.get_pipeline_status(client, repo, pipeline_uuid))
        else:
            write_json(pipeline_api.list_pipelines(client, repo, limit=limit))


# Review


@cli.group()
def review() -> None:
    """Review pull requests."""


repo_option = click.option("--repo", "-r", required=True, help="Repository slug")
pr_argument = click.argument("pr_id", type=click.IntRange(min=1))


@review.command("view")
@pr_argument
@click.argument("file_path", required=False)
@repo_option
@click.pass_obj
def review_view(
    state: CliState, pr_id: int, file_path: str | None, repo: str
) -> None:
    """Show PR context, or one file's diff with its inline comments."""
    with api_client(state, "review view") as client:
        if file_path:
            write_json(build_file_view(client, repo, pr_id, file_path))
        else:
            write_json(build_pr_view(client, repo, pr_id))


@review.command("diff")
@pr_argument
@repo_option
@click.option("--file", "file_path", default=None, help="Limit the diff to one file")
@click.pass_obj
def review_diff(state: CliState, pr_id: int, repo: str, file_path: str | None) -> None:
    """Print the unified diff of a pull request."""
    with api_client(state, "review diff") as client:
        if file_path:
            diff = pr_api.get_pr_file_diff(client, repo, pr_id, file_path)
        else:
            diff = pr_api.get_pr_diff(client, repo, pr_id)
        write_json({"pr": pr_id, "file": file_path, "diff": diff})


@review.command("comment")
@pr_argument
@click.argument("message")
@repo_option
@click.option("--file", "file_path", default=None, help="File for an inline comment")
@click.option("--line", type=int, default=None, help="Line for an inline comment")
@click.option("--line-start", type=int, default=0, help="First line of a range")
@click.option("--edit", "edit_id", type=int, default=None, help="Edit comment by ID")
@click.pass_obj
def review_comment(  # noqa: PLR0913
    state: CliState,
    pr_id: int,
    message: str,
    repo: str,
    file_path: str | None,
    line: int | None,
    line_start: int,
    edit_id: int | None,
) -> None:
    """Post a general or inline comment, or edit an existing one."""
    with api_client(state, "review comment") as client:
        if edit_id is not None:
            comment = comment_api.update_comment(client, repo, pr_id, edit_id, message)
        elif file_path or line is not None:
            if not file_path or line is None:
                msg = "inline comments need both --file and --line"
                raise ExitError(2, msg)
            comment = comment_api.create_inline_comment(
                client, repo, pr_id, message, file_path, line, line_start
            )
        else:
            comment = comment_api.create_comment(client, repo, pr_id, message)
        write_json(comment)


@review.command("reply")
@pr_argument
@click.argument("comment_id", type=int)
@click.argument("message")
@repo_option
@click.pass_obj
def review_reply(
    state: CliState, pr_id: int, comment_id: int, message: str, repo: str
) -> None:
    """Reply to a comment."""
    with api_client(state, "review reply") as client:
        write_json(
            comment_api.reply_to_comment(client, repo, pr_id, comment_id, message)
        )


@review.command("approve")
@pr_argument
@repo_option
@click.option("--undo", is_flag=True, default=False, help="Remove approval")
@click.pass_obj
def review_approve(state: CliState, pr_id: int, repo: str, undo: bool) -> None:
    """Approve a pull request."""
    with api_client(state, "review approve") as client:
        if undo:
            pr_api.unapprove_pr(client, repo, pr_id)
            write_json({"pr": pr_id, "approved": False})
        else:
            participant = pr_api.approve_pr(client, repo, pr_id)
            write_json({"pr": pr_id, "approved": participant.approved})


@review.command("request-change")
@pr_argument
@repo_option
@click.option("--undo", is_flag=True, default=False, help="Withdraw the request")
@click.pass_obj
def review_request_change(state: CliState, pr_id: int, repo: str, undo: bool) -> None:
    """Request changes on a pull request."""
    with api_client(state, "review request-change") as client:
        if undo:
            pr_api.unrequest_changes_pr(client, repo, pr_id)
            write_json({"pr": pr_id, "changes_requested": False})
        else:
            participant = pr_api.request_changes_pr(client, repo, pr_id)
            write_json(
                {"pr": pr_id, "changes_requested": True, "state": participant.state}
            )


@review.command("resolve")
@pr_argument
@click.argument("comment_id", type=int)
@repo_option
@click.option("--reopen", is_flag=True, default=False, help="Reopen instead")
@click.option("--delete", is_flag=True, default=False, help="Delete the comment")
@click.pass_obj
def review_resolve(  # noqa: PLR0913
    state: CliState,
    pr_id: int,
    comment_id: int,
    repo: str,
    reopen: bool,
    delete: bool,
) -> None:
    """Resolve, reopen, or delete a comment thread."""
    with api_client(state, "review resolve") as client:
        if delete:
            comment_api.delete_comment(client, repo, pr_id, comment_id)
            action = "deleted"
        elif reopen:
            comment_api.reopen_comment(client, repo, pr_id, comment_id)
            action = "reopened"
        else:
            comment_api.resolve_comment(client, repo, pr_id, comment_id)
            action = "resolved"
        write_json({"pr": pr_id, "comment": comment_id, "action": action})


@review.command("create")
@click.argument("source_branch")
@click.argument("title")
@repo_option
@click.option("--target", "-t", default="", help="Target branch (default: main branch)")
@click.option(
    "--close-source", is_flag=True, default=False, help="Close source branch on merge"
)
@click.option("--draft", is_flag=True, default=False, help="Open as a draft")
@click.pass_obj
def review_create(  # noqa: PLR0913
    state: CliState,
    source_branch: str,
    title: str,
    repo: str,
    target: str,
    close_source: bool,
    draft: bool,
) -> None:
    """Open a pull request."""
    options = pr_api.CreatePullRequestOptions(
        title=title,
        source_branch=source_branch,
        destination_branch=target,
        close_source_branch=close_source,
        draft=draft,
    )
    with api_client(state, "review create") as client:
        write_json(pr_api.create_pr(client, repo, options))


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

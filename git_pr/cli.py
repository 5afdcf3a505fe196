"""Typer CLI for acting on pull requests from a local clone."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Annotated

import httpx
import typer
from pydantic import ValidationError

from git_pr.config import GitPrConfig, load_config
from git_pr.errors import GitPrError, PullRequestNotFound
from git_pr.git import LocalRepository, find_repository
from git_pr.github_client import (
    GitHubApiError,
    GitHubAuthError,
    PullRequest,
    build_github_client,
    fetch_authenticated_user_login,
    get_github_token_with_source,
    get_repository,
    list_pull_requests,
)
from git_pr.locator import locate, require_pull, resolve_open_url
from git_pr.orchestrator import CommandKind, run_pull_request
from git_pr.output import render_pull_request_list
from git_pr.process import ProcessRunner, SubprocessRunner
from git_pr.project import Project
from git_pr.remotes import Remote, RemoteRegistry
from git_pr.resolver import resolve_project_remote

app = typer.Typer(help="Diff, merge, list and open GitHub pull requests from a local clone.")

PullArgument = Annotated[
    str | None,
    typer.Argument(help="Pull request number or branch name. Defaults to the current branch."),
]
ExtraArgs = Annotated[
    list[str] | None,
    typer.Argument(help="Arguments passed to git after '--'.", show_default=False),
]


@dataclass(frozen=True, slots=True)
class _State:
    """Options shared by every command."""

    config: GitPrConfig
    project_override: str | None


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr, at DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO; keep it out of verbose output.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_runner() -> ProcessRunner:
    """Return the process runner used for git and the browser."""
    return SubprocessRunner()


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn expected failures into a one-line message and exit status 1."""
    try:
        yield
    except GitPrError as error:
        typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(code=1) from error
    except GitHubAuthError as error:
        typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(code=1) from error
    except GitHubApiError as error:
        typer.echo(
            f"Error: GitHub request failed: status={error.status_code} endpoint={error.endpoint}.",
            err=True,
        )
        raise typer.Exit(code=1) from error
    except httpx.HTTPError as error:
        typer.echo(f"Error: network error ({error}).", err=True)
        raise typer.Exit(code=1) from error


def _split_pull_argument(
    pull_ref: str | None,
    extra_args: list[str] | None,
) -> tuple[str | None, list[str]]:
    """Separate the PR identifier from pass-through arguments.

    After '--' every token is positional, so 'git pr diff -- --stat' binds
    '--stat' to the identifier slot. Branch names cannot start with '-'.
    """
    extra = list(extra_args or [])
    if pull_ref is not None and pull_ref.startswith("-"):
        return None, [pull_ref, *extra]
    return pull_ref, extra


def _resolve(state: _State) -> tuple[LocalRepository, RemoteRegistry, Project, Remote | None]:
    repo = find_repository()
    registry = RemoteRegistry(repo, state.config.github_host)
    project, remote = resolve_project_remote(
        registry,
        state.project_override,
        state.config.remote_search_order,
    )
    return repo, registry, project, remote


def _choose_pull(client: httpx.Client, project: Project) -> PullRequest:
    """Let the user pick one of the open pull requests."""
    pulls = list_pull_requests(client=client, project=project)
    if not pulls:
        raise PullRequestNotFound("(current branch)", project.full_name)

    typer.echo(render_pull_request_list(pulls, project=project.full_name))
    number = typer.prompt("Pull request number", type=int)
    for pull in pulls:
        if pull.number == number:
            return pull
    raise PullRequestNotFound(f"#{number}", project.full_name)


def _run_pull_command(
    ctx: typer.Context,
    kind: CommandKind,
    pull_ref: str | None,
    extra_args: list[str] | None,
) -> None:
    state: _State = ctx.obj
    identifier, extra = _split_pull_argument(pull_ref, extra_args)

    with _reported_errors():
        repo, registry, project, project_remote = _resolve(state)
        with build_github_client(state.config) as client:
            target = locate(
                client=client,
                repo=repo,
                project=project,
                identifier=identifier,
                registry=registry,
            )
            if target.pull is None and identifier is None:
                pull = _choose_pull(client, project)
            else:
                pull = require_pull(target, project)

        url_style = "ssh" if project_remote is not None and project_remote.uses_ssh else "https"
        returncode = run_pull_request(
            repo,
            registry,
            build_runner(),
            pull,
            kind,
            extra,
            url_style=url_style,
        )

    raise typer.Exit(code=returncode)


@app.callback()
def main(
    ctx: typer.Context,
    project: Annotated[
        str | None,
        typer.Option(
            "--project",
            "-p",
            help="Remote name or owner/name of the project. Defaults to origin, then upstream.",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log git commands and API requests.")
    ] = False,
) -> None:
    """Act on GitHub pull requests without leaving the terminal."""
    configure_logging(verbose)
    try:
        config = load_config(verbose=verbose)
    except ValidationError as error:
        typer.echo(f"Error: invalid configuration: {error}", err=True)
        raise typer.Exit(code=1) from error
    ctx.obj = _State(config=config, project_override=project)


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    pull_ref: PullArgument = None,
    extra_args: ExtraArgs = None,
) -> None:
    """Show the changes a pull request introduces."""
    _run_pull_command(ctx, CommandKind.DIFF, pull_ref, extra_args)


@app.command("difftool")
def difftool_command(
    ctx: typer.Context,
    pull_ref: PullArgument = None,
    extra_args: ExtraArgs = None,
) -> None:
    """Open a pull request's changes in git difftool."""
    _run_pull_command(ctx, CommandKind.DIFFTOOL, pull_ref, extra_args)


@app.command("merge")
def merge_command(
    ctx: typer.Context,
    pull_ref: PullArgument = None,
    extra_args: ExtraArgs = None,
) -> None:
    """Merge a pull request into its target branch locally."""
    _run_pull_command(ctx, CommandKind.MERGE, pull_ref, extra_args)


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List open pull requests."""
    state: _State = ctx.obj
    with _reported_errors():
        _repo, _registry, project, _remote = _resolve(state)
        with build_github_client(state.config) as client:
            pulls = list_pull_requests(client=client, project=project)
    typer.echo(render_pull_request_list(pulls, project=project.full_name))


@app.command("open")
def open_command(ctx: typer.Context, pull_ref: PullArgument = None) -> None:
    """Open a pull request page, or the page to create one for a pushed branch."""
    state: _State = ctx.obj
    with _reported_errors():
        repo, registry, project, _remote = _resolve(state)
        with build_github_client(state.config) as client:
            url = resolve_open_url(
                client=client,
                repo=repo,
                registry=registry,
                project=project,
                identifier=pull_ref,
                web_base_url=state.config.web_base_url,
            )
    typer.echo(url)
    build_runner().open_url(url)


@app.command("auth-check")
def auth_check_command(
    ctx: typer.Context,
    repo: Annotated[
        str | None,
        typer.Option(help="Optional project in owner/name format for an access check."),
    ] = None,
) -> None:
    """Validate GitHub token setup and optional project read access."""
    state: _State = ctx.obj
    try:
        _token, token_source = get_github_token_with_source()
    except GitHubAuthError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Token detected in {token_source}.")

    with _reported_errors():
        project = Project.parse(repo) if repo is not None else None
        with build_github_client(state.config, require_token=True) as client:
            login = fetch_authenticated_user_login(client=client)
            typer.echo(f"Authenticated as GitHub user '{login}'.")

            if project is not None:
                repository = get_repository(client=client, project=project)
                typer.echo(
                    f"Project access check passed for {repository.full_name} "
                    f"(default branch {repository.default_branch})."
                )

    typer.echo("GitHub token setup is valid.")

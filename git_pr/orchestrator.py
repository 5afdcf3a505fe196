"""Build and run the git commands that diff or merge a pull request."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from git_pr.errors import MissingCommitError
from git_pr.git import LocalRepository
from git_pr.github_client import PullRequest
from git_pr.process import ProcessRunner
from git_pr.reconciler import UrlStyle, ensure_remotes, fetch_if_needed
from git_pr.remotes import Remote, RemoteRegistry

logger = logging.getLogger(__name__)


class CommandKind(StrEnum):
    """Supported pull request commands that run git."""

    DIFF = "diff"
    DIFFTOOL = "difftool"
    MERGE = "merge"


@dataclass(frozen=True, slots=True)
class DiffRequest:
    """Everything needed to run one diff, difftool or merge.

    Build it with prepare_request, which checks that both sides are present locally.
    """

    kind: CommandKind
    source_remote: Remote
    source_branch: str
    target_remote: Remote
    target_branch: str
    merge_base: str
    extra_args: tuple[str, ...]
    source_ref: str
    target_ref: str


def normalize_extra_args(extra_args: Sequence[str]) -> tuple[str, ...]:
    """Keep pass-through arguments verbatim, dropping empty ones."""
    return tuple(arg for arg in extra_args if arg.strip())


def _tracking_ref(
    repo: LocalRepository,
    remote: Remote,
    branch: str,
    commit_id: str,
    *,
    exact: bool,
) -> str:
    """Prefer remote/branch over a bare commit id.

    With exact set the ref is only used when it points at commit_id, so a stale
    remote-tracking branch never stands in for the pull request head.
    """
    ref = f"{remote.name}/{branch}"
    resolved = repo.resolve_ref(ref)
    if resolved is not None and (not exact or resolved == commit_id):
        return ref
    logger.debug("Ref %s does not match %s; using the commit id", ref, commit_id)
    return commit_id


def prepare_request(
    repo: LocalRepository,
    kind: CommandKind,
    source_remote: Remote,
    source_branch: str,
    target_remote: Remote,
    target_branch: str,
    *,
    source_commit: str,
    target_commit: str,
    extra_args: Sequence[str] = (),
) -> DiffRequest:
    """Validate local state and compute the merge base for a request."""
    for remote, commit_id in ((source_remote, source_commit), (target_remote, target_commit)):
        if not repo.has_object(commit_id):
            raise MissingCommitError(
                f"Commit {commit_id} from {remote.name} is not available locally."
            )

    source_ref = _tracking_ref(repo, source_remote, source_branch, source_commit, exact=True)
    target_ref = _tracking_ref(repo, target_remote, target_branch, target_commit, exact=False)
    merge_base = repo.merge_base(source_ref, target_ref)
    logger.debug("merge-base(%s, %s) = %s", source_ref, target_ref, merge_base)

    return DiffRequest(
        kind=kind,
        source_remote=source_remote,
        source_branch=source_branch,
        target_remote=target_remote,
        target_branch=target_branch,
        merge_base=merge_base,
        extra_args=normalize_extra_args(extra_args),
        source_ref=source_ref,
        target_ref=target_ref,
    )


def merge_message(pull: PullRequest) -> str:
    owner = pull.head.project.owner if pull.head.project is not None else pull.author_login
    return f"Merge pull request #{pull.number} from {owner}/{pull.head.ref}\n\n{pull.title}"


def build_commands(
    request: DiffRequest,
    *,
    current_branch: str | None = None,
    local_branches: frozenset[str] = frozenset(),
    message: str | None = None,
) -> list[list[str]]:
    """Return the git command lines for a request, in execution order."""
    if request.kind in (CommandKind.DIFF, CommandKind.DIFFTOOL):
        return [
            [
                "git",
                str(request.kind),
                *request.extra_args,
                f"{request.merge_base}..{request.source_ref}",
            ]
        ]

    commands: list[list[str]] = []
    if current_branch != request.target_branch:
        if request.target_branch in local_branches:
            commands.append(["git", "checkout", request.target_branch])
        elif request.target_ref == f"{request.target_remote.name}/{request.target_branch}":
            commands.append(
                ["git", "checkout", "-b", request.target_branch, "--track", request.target_ref]
            )
        else:
            commands.append(["git", "checkout", "-b", request.target_branch, request.target_ref])

    merge = ["git", "merge", *request.extra_args, "--no-ff"]
    if message:
        merge.extend(["-m", message])
    merge.append(request.source_ref)
    commands.append(merge)
    return commands


def run_commands(runner: ProcessRunner, commands: list[list[str]], *, repo: LocalRepository) -> int:
    """Run commands attached to the terminal, stopping at the first failure."""
    for argv in commands:
        returncode = runner.run_attached(argv, cwd=repo.path)
        if returncode != 0:
            return returncode
    return 0


def _warn_if_local_target_differs(
    repo: LocalRepository,
    request: DiffRequest,
    target_commit: str,
) -> None:
    """Warn when an existing local target branch is not where the target ref is."""
    local_tip = repo.resolve_ref(f"refs/heads/{request.target_branch}")
    if local_tip is None:
        return
    target_tip = repo.resolve_ref(request.target_ref) or target_commit
    if local_tip != target_tip:
        logger.warning(
            "Local branch %s is at %s but %s is at %s; the merge goes into the local branch.",
            request.target_branch,
            local_tip,
            request.target_ref,
            target_tip,
        )


def build_and_run(
    repo: LocalRepository,
    runner: ProcessRunner,
    kind: CommandKind,
    source_remote: Remote,
    source_branch: str,
    target_remote: Remote,
    target_branch: str,
    extra_args: Sequence[str] = (),
    *,
    source_commit: str,
    target_commit: str,
    message: str | None = None,
) -> int:
    """Compute the merge base, build the command and run it; return its exit code."""
    request = prepare_request(
        repo,
        kind,
        source_remote,
        source_branch,
        target_remote,
        target_branch,
        source_commit=source_commit,
        target_commit=target_commit,
        extra_args=extra_args,
    )
    if kind is CommandKind.MERGE:
        _warn_if_local_target_differs(repo, request, target_commit)
    commands = build_commands(
        request,
        current_branch=repo.current_branch(),
        local_branches=repo.local_branch_names() if kind is CommandKind.MERGE else frozenset(),
        message=message,
    )
    return run_commands(runner, commands, repo=repo)


def run_pull_request(
    repo: LocalRepository,
    registry: RemoteRegistry,
    runner: ProcessRunner,
    pull: PullRequest,
    kind: CommandKind,
    extra_args: Sequence[str] = (),
    *,
    url_style: UrlStyle = "https",
) -> int:
    """Reconcile remotes for a pull request, then diff or merge it."""
    source, target = ensure_remotes(repo, registry, pull, url_style=url_style)
    fetch_if_needed(repo, source, pull.head.sha)
    fetch_if_needed(repo, target, pull.base.sha)
    return build_and_run(
        repo,
        runner,
        kind,
        source,
        pull.head.ref,
        target,
        pull.base.ref,
        extra_args,
        source_commit=pull.head.sha,
        target_commit=pull.base.sha,
        message=merge_message(pull) if kind is CommandKind.MERGE else None,
    )

"""Find the pull request a command refers to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from git_pr.errors import (
    BranchNeverPushed,
    IsDefaultBranch,
    PullRequestNotFound,
    UnknownBranch,
)
from git_pr.git import LocalRepository
from git_pr.github_client import (
    PullRequest,
    get_pull_request,
    get_repository,
    list_pull_requests,
)
from git_pr.project import Project
from git_pr.remotes import RemoteRegistry, parse_remote_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Outcome of a lookup: the branch searched for and the PR found, if any."""

    identifier: str | None
    branch: str | None
    pull: PullRequest | None


def parse_pull_number(identifier: str) -> int | None:
    """Return the PR number for identifiers like '42' or '#42', else None."""
    candidate = identifier.strip().removeprefix("#")
    if candidate.isascii() and candidate.isdigit() and int(candidate) > 0:
        return int(candidate)
    return None


def _head_matches(pull: PullRequest, branch: str, head_project: Project | None) -> bool:
    if pull.head.ref != branch:
        return False
    if head_project is None:
        return True
    return pull.head.project is not None and pull.head.project.same_as(head_project)


def locate(
    *,
    client: httpx.Client,
    repo: LocalRepository,
    project: Project,
    identifier: str | None,
    registry: RemoteRegistry | None = None,
) -> ResolvedTarget:
    """Resolve a PR number, branch name, or the current branch to a pull request.

    A number is fetched directly and must exist. A branch name (or the current
    branch when identifier is None) is matched against the open pull requests;
    no match is returned as a target without a pull request, and so is a
    detached HEAD with no identifier. With a registry, a branch pushed to a
    hosted remote only matches pull requests opened from that project.
    """
    if identifier is not None:
        number = parse_pull_number(identifier)
        if number is not None:
            pull = get_pull_request(client=client, project=project, number=number)
            return ResolvedTarget(identifier=identifier, branch=None, pull=pull)

    branch = identifier or repo.current_branch()
    if branch is None:
        logger.debug("HEAD is detached and no pull request was named")
        return ResolvedTarget(identifier=None, branch=None, pull=None)

    head_project = pushed_project(repo, registry, branch) if registry is not None else None
    for pull in list_pull_requests(client=client, project=project):
        if str(pull.number) == branch or _head_matches(pull, branch, head_project):
            logger.debug("Branch %s matches pull request #%d", branch, pull.number)
            return ResolvedTarget(identifier=identifier, branch=branch, pull=pull)

    logger.debug("No open pull request for branch %s in %s", branch, project)
    return ResolvedTarget(identifier=identifier, branch=branch, pull=None)


def require_pull(target: ResolvedTarget, project: Project) -> PullRequest:
    """Return the located pull request or raise PullRequestNotFound."""
    if target.pull is None:
        raise PullRequestNotFound(target.identifier or target.branch or "", project.full_name)
    return target.pull


def compare_url(
    *,
    web_base_url: str,
    target: Project,
    default_branch: str,
    source_owner: str,
    branch: str,
) -> str:
    """Build the browser URL that starts a new pull request for branch."""
    return (
        f"{web_base_url}/{target.owner}/{target.name}/compare/"
        f"{target.owner}:{quote(default_branch, safe='/')}..."
        f"{source_owner}:{quote(branch, safe='/')}?expand=1"
    )


def pushed_project(
    repo: LocalRepository,
    registry: RemoteRegistry,
    branch: str,
) -> Project | None:
    """Return the hosted project the branch was pushed to, preferring its upstream."""
    candidates: list[tuple[str, Project]] = []
    for remote_branch in repo.remote_branches():
        if remote_branch.name != branch:
            continue
        project = parse_remote_url(remote_branch.remote_url, registry.host)
        if project is not None:
            candidates.append((remote_branch.remote_name, project))
    if not candidates:
        return None

    upstream = repo.upstream_remote(branch)
    for remote_name, project in candidates:
        if remote_name == upstream:
            return project
    return candidates[0][1]


def resolve_open_url(
    *,
    client: httpx.Client,
    repo: LocalRepository,
    registry: RemoteRegistry,
    project: Project,
    identifier: str | None,
    web_base_url: str,
) -> str:
    """Return the page to open: the PR itself or a comparison to create one."""
    target = locate(
        client=client,
        repo=repo,
        project=project,
        identifier=identifier,
        registry=registry,
    )
    if target.pull is not None:
        return target.pull.html_url

    branch = target.branch
    if branch is None:
        raise UnknownBranch("HEAD is detached; name a pull request number or branch.")

    repository = get_repository(client=client, project=project)
    if branch == repository.default_branch:
        raise IsDefaultBranch(
            f"'{branch}' is the default branch of {project}; nothing to compare."
        )
    if branch not in repo.local_branch_names():
        raise UnknownBranch(f"Unknown branch '{branch}'.")

    source = pushed_project(repo, registry, branch)
    if source is None:
        raise BranchNeverPushed(
            f"Branch '{branch}' has not been pushed to a remote on {registry.host}."
        )

    return compare_url(
        web_base_url=web_base_url,
        target=project,
        default_branch=repository.default_branch,
        source_owner=source.owner,
        branch=branch,
    )

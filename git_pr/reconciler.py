"""Make a pull request's source and target available locally."""

from __future__ import annotations

import logging
from typing import Literal

from git_pr.errors import MissingCommitError, SourceRepositoryMissing
from git_pr.git import LocalRepository
from git_pr.github_client import PullRequest
from git_pr.project import Project
from git_pr.remotes import Remote, RemoteRegistry

logger = logging.getLogger(__name__)

UrlStyle = Literal["https", "ssh"]


def remote_url(project: Project, host: str, style: UrlStyle) -> str:
    if style == "ssh":
        return project.ssh_url(host)
    return project.https_url(host)


def _unused_remote_name(registry: RemoteRegistry, project: Project) -> str:
    """Pick a remote name for project that does not clash with existing remotes."""
    existing = {remote.name for remote in registry.remotes()}
    candidates = [project.owner, f"{project.owner}-{project.name}"]
    for candidate in candidates:
        if candidate not in existing:
            return candidate
    suffix = 2
    while f"{candidates[-1]}-{suffix}" in existing:
        suffix += 1
    return f"{candidates[-1]}-{suffix}"


def ensure_remote(
    repo: LocalRepository,
    registry: RemoteRegistry,
    project: Project,
    *,
    url_style: UrlStyle = "https",
) -> Remote:
    """Return the remote pointing at project, adding one if none exists."""
    remote = registry.remote_for_project(project)
    if remote is not None:
        logger.debug("Reusing remote %s for %s", remote.name, project)
        return remote

    name = _unused_remote_name(registry, project)
    url = remote_url(project, registry.host, url_style)
    repo.add_remote(name, url)
    return Remote(name=name, url=url, project=project)


def ensure_remotes(
    repo: LocalRepository,
    registry: RemoteRegistry,
    pull: PullRequest,
    *,
    url_style: UrlStyle = "https",
) -> tuple[Remote, Remote]:
    """Return (source, target) remotes for a pull request, creating missing ones.

    Running this twice for the same pull request adds no further remotes.
    """
    if pull.head.project is None:
        raise SourceRepositoryMissing(
            f"The source repository of pull request #{pull.number} no longer exists."
        )
    if pull.base.project is None:
        raise SourceRepositoryMissing(
            f"The target repository of pull request #{pull.number} no longer exists."
        )
    target = ensure_remote(repo, registry, pull.base.project, url_style=url_style)
    source = ensure_remote(repo, registry, pull.head.project, url_style=url_style)
    return source, target


def fetch_if_needed(repo: LocalRepository, remote: Remote, commit_id: str) -> bool:
    """Fetch remote only when commit_id is missing locally.

    Returns whether a fetch was issued.
    """
    if repo.has_object(commit_id):
        logger.debug("Commit %s already present; skipping fetch of %s", commit_id, remote.name)
        return False

    repo.fetch(remote.name)
    if not repo.has_object(commit_id):
        raise MissingCommitError(
            f"Commit {commit_id} is still missing after fetching {remote.name}."
        )
    return True

"""Decide which hosted project a command targets."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from git_pr.errors import NoProjectResolved
from git_pr.project import Project
from git_pr.remotes import Remote, RemoteRegistry

logger = logging.getLogger(__name__)


def resolve_project(
    registry: RemoteRegistry,
    explicit_override: str | None,
    search_order: Sequence[str],
) -> Project:
    """Resolve the target project.

    An override naming an existing remote resolves through that remote only;
    any other override must be an owner/name string. Without an override the
    first remote in search_order that points at a hosted project wins.
    """
    return resolve_project_remote(registry, explicit_override, search_order)[0]


def resolve_project_remote(
    registry: RemoteRegistry,
    explicit_override: str | None,
    search_order: Sequence[str],
) -> tuple[Project, Remote | None]:
    """Resolve the target project along with the remote it came from, if any."""
    if explicit_override:
        remote = registry.remote(explicit_override)
        if remote is not None:
            if remote.project is None:
                raise NoProjectResolved(
                    f"Remote '{remote.name}' ({remote.url}) does not point at a "
                    f"project on {registry.host}."
                )
            logger.debug("Project %s from remote %s", remote.project, remote.name)
            return remote.project, remote

        project = Project.parse(explicit_override)
        logger.debug("Project %s from explicit override", project)
        return project, registry.remote_for_project(project)

    for name in search_order:
        remote = registry.remote(name)
        if remote is not None and remote.project is not None:
            logger.debug("Project %s from remote %s", remote.project, remote.name)
            return remote.project, remote

    raise NoProjectResolved(
        "Unable to determine the project. None of the remotes "
        f"{', '.join(search_order)} point at {registry.host}; pass --project owner/name."
    )

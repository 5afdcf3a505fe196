"""Map local git remotes to hosted project identities."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from git_pr.git import LocalRepository
from git_pr.project import Project


@dataclass(frozen=True, slots=True)
class Remote:
    """A configured local remote and the hosted project it points at, if any."""

    name: str
    url: str
    project: Project | None

    @property
    def uses_ssh(self) -> bool:
        return "://" not in self.url and "@" in self.url.partition(":")[0]


def _project_from_path(path: str) -> Project | None:
    """Build a project from an owner/name[.git] path, rejecting anything else."""
    segments = path.strip("/").split("/")
    if len(segments) != 2:
        return None
    owner, name = segments
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not owner or not name:
        return None
    return Project(owner=owner, name=name)


def parse_remote_url(url: str, host: str) -> Project | None:
    """Parse a remote URL into a project on the given host.

    Recognizes the SSH form ``git@host:owner/name`` and the HTTPS form
    ``https://host/owner/name``, each with an optional ``.git`` suffix.
    Other forms and other hosts return None.
    """
    url = url.strip()
    host = host.lower()
    if url.startswith("https://"):
        parts = urlsplit(url)
        if parts.hostname is None or parts.hostname.lower() != host:
            return None
        if parts.query or parts.fragment:
            return None
        return _project_from_path(parts.path)

    if "://" in url:
        return None

    user, at, rest = url.partition("@")
    if not at or not user:
        return None
    remote_host, colon, path = rest.partition(":")
    if not colon or remote_host.lower() != host or path.startswith("/"):
        return None
    return _project_from_path(path)


class RemoteRegistry:
    """Read-only view of a repository's remotes as hosted projects."""

    def __init__(self, repo: LocalRepository, host: str) -> None:
        self.repo = repo
        self.host = host

    def remotes(self) -> tuple[Remote, ...]:
        return tuple(
            Remote(name=name, url=url, project=parse_remote_url(url, self.host))
            for name, url in self.repo.remotes().items()
        )

    def remote(self, name: str) -> Remote | None:
        url = self.repo.remotes().get(name)
        if url is None:
            return None
        return Remote(name=name, url=url, project=parse_remote_url(url, self.host))

    def project_for_remote(self, name: str) -> Project | None:
        """Return the project a named remote points at, or None."""
        remote = self.remote(name)
        return remote.project if remote is not None else None

    def remote_for_project(self, project: Project) -> Remote | None:
        """Return the first remote pointing at project, or None."""
        for remote in self.remotes():
            if remote.project is not None and remote.project.same_as(project):
                return remote
        return None

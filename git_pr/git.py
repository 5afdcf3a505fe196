"""Local repository adapter backed by the git executable."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from git_pr.errors import GitCommandError, NotAGitRepository

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"
REMOTES_PREFIX = "refs/remotes/"


@dataclass(frozen=True, slots=True)
class RemoteBranch:
    """A remote-tracking branch and the remote it belongs to."""

    name: str
    remote_name: str
    remote_url: str


def run_git(
    *args: str,
    cwd: str | Path | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a git command with captured output.

    Raises GitCommandError on a non-zero exit when check is set.
    """
    cmd = ["git", *args]
    logger.debug("git: %s", shlex.join(cmd))
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        log = logger.warning if check else logger.debug
        log("git failed (rc=%d): %s", result.returncode, shlex.join(cmd))
        if check:
            raise GitCommandError(cmd, result.returncode, result.stderr)
    return result


def find_repository(start_path: Path | None = None) -> LocalRepository:
    """Return the repository containing start_path (default: cwd)."""
    path = (start_path or Path.cwd()).resolve()
    try:
        result = run_git("rev-parse", "--show-toplevel", cwd=path, check=False)
    except OSError as error:
        raise NotAGitRepository(f"Unable to run git: {error}") from error
    if result.returncode != 0 or not result.stdout.strip():
        raise NotAGitRepository(f"Not a git repository: {path}")
    return LocalRepository(Path(result.stdout.strip()))


class LocalRepository:
    """The developer's working clone."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return run_git(*args, cwd=self.path, check=check)

    def current_branch(self) -> str | None:
        """Return the checked-out branch name, or None on a detached HEAD."""
        result = self._git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def local_branch_names(self) -> frozenset[str]:
        result = self._git("for-each-ref", "--format=%(refname)", HEADS_PREFIX)
        return frozenset(
            line[len(HEADS_PREFIX):]
            for line in result.stdout.splitlines()
            if line.startswith(HEADS_PREFIX)
        )

    def remotes(self) -> dict[str, str]:
        """Return configured remotes mapped to their fetch URLs, in git's order."""
        result = self._git("remote", "-v", check=False)
        if result.returncode != 0:
            return {}

        remotes: dict[str, str] = {}
        for line in result.stdout.splitlines():
            # Format: "origin\tgit@github.com:org/repo.git (fetch)"
            parts = line.split()
            if len(parts) >= 3 and parts[2] == "(fetch)":
                remotes.setdefault(parts[0], parts[1])
        return remotes

    def remote_branches(self) -> tuple[RemoteBranch, ...]:
        """Return remote-tracking branches with their remote's name and URL."""
        remotes = self.remotes()
        # Longest names first so "a/b" wins over "a" for refs/remotes/a/b/main.
        remote_names = sorted(remotes, key=len, reverse=True)
        result = self._git("for-each-ref", "--format=%(refname)", REMOTES_PREFIX)

        branches: list[RemoteBranch] = []
        for line in result.stdout.splitlines():
            if not line.startswith(REMOTES_PREFIX):
                continue
            short_name = line[len(REMOTES_PREFIX):]
            for remote_name in remote_names:
                prefix = f"{remote_name}/"
                if short_name.startswith(prefix):
                    branch_name = short_name[len(prefix):]
                    if branch_name and branch_name != "HEAD":
                        branches.append(
                            RemoteBranch(
                                name=branch_name,
                                remote_name=remote_name,
                                remote_url=remotes[remote_name],
                            )
                        )
                    break
        return tuple(branches)

    def upstream_remote(self, branch: str) -> str | None:
        """Return the remote a local branch tracks, if configured."""
        result = self._git("config", "--get", f"branch.{branch}.remote", check=False)
        return result.stdout.strip() or None

    def has_object(self, commit_id: str) -> bool:
        """Return whether the commit exists in the local object store."""
        result = self._git("cat-file", "-e", f"{commit_id}^{{commit}}", check=False)
        return result.returncode == 0

    def resolve_ref(self, ref: str) -> str | None:
        """Return the commit id ref points at, or None when it does not resolve."""
        result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def merge_base(self, first: str, second: str) -> str:
        """Return the best common ancestor of two commits."""
        result = self._git("merge-base", first, second)
        return result.stdout.strip()

    def add_remote(self, name: str, url: str) -> None:
        logger.info("Adding remote %s -> %s", name, url)
        self._git("remote", "add", name, url)

    def fetch(self, remote_name: str) -> None:
        logger.info("Fetching %s", remote_name)
        self._git("fetch", remote_name)

"""Error taxonomy for pull request resolution and git orchestration."""

from __future__ import annotations


class GitPrError(RuntimeError):
    """Base class for errors that abort a command with a readable message."""


class NotAGitRepository(GitPrError):
    """Raised when the working directory is not inside a git work tree."""


class NoProjectResolved(GitPrError):
    """Raised when neither an override nor a configured remote yields a project."""


class InvalidProjectError(GitPrError, ValueError):
    """Raised when a project string is not in owner/name format."""


class PullRequestNotFound(GitPrError):
    """Raised when a pull request cannot be found for a project."""

    def __init__(self, identifier: str, project: str) -> None:
        super().__init__(f"Pull request '{identifier}' not found in {project}.")
        self.identifier = identifier
        self.project = project


class UnknownBranch(GitPrError):
    """Raised when a named branch does not exist locally."""


class BranchNeverPushed(GitPrError):
    """Raised when a branch has no remote-tracking copy on a hosted remote."""


class IsDefaultBranch(GitPrError):
    """Raised when the branch is the project's default branch."""


class SourceRepositoryMissing(GitPrError):
    """Raised when a pull request's head repository no longer exists."""


class MissingCommitError(GitPrError):
    """Raised when a required commit is absent after fetching."""


class GitCommandError(GitPrError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"Command '{' '.join(command)}' failed: {detail}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

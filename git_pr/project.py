"""Hosted project identity."""

from __future__ import annotations

from dataclasses import dataclass

from git_pr.errors import InvalidProjectError


@dataclass(frozen=True, slots=True)
class Project:
    """A hosted repository identified by owner and name."""

    owner: str
    name: str

    @classmethod
    def parse(cls, full_name: str) -> Project:
        """Parse and validate a project string in owner/name format."""
        owner, separator, name = full_name.strip().partition("/")
        if name.endswith(".git"):
            name = name[: -len(".git")]
        if not separator or not owner or not name or "/" in name or " " in full_name.strip():
            raise InvalidProjectError(
                f"Invalid project '{full_name}'. Expected format is owner/name."
            )
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        """Return the canonical owner/name string used as the API key."""
        return f"{self.owner}/{self.name}"

    def same_as(self, other: Project) -> bool:
        """Compare two projects the way the hosting service does, ignoring case."""
        return (
            self.owner.lower() == other.owner.lower()
            and self.name.lower() == other.name.lower()
        )

    def https_url(self, host: str) -> str:
        """Return the HTTPS clone URL on the given host."""
        return f"https://{host}/{self.full_name}.git"

    def ssh_url(self, host: str) -> str:
        """Return the SSH clone URL on the given host."""
        return f"git@{host}:{self.full_name}.git"

    def __str__(self) -> str:
        return self.full_name

"""Terminal rendering for pull request listings."""

from __future__ import annotations

from collections.abc import Sequence

from git_pr.github_client import PullRequest


def _source_label(pull: PullRequest) -> str:
    owner = pull.head.project.owner if pull.head.project is not None else "(deleted)"
    return f"{owner}:{pull.head.ref}"


def render_pull_request_list(pulls: Sequence[PullRequest], *, project: str) -> str:
    """Render open pull requests as aligned lines, newest first as returned by the API."""
    if not pulls:
        return f"No open pull requests in {project}."

    width = max(len(str(pull.number)) for pull in pulls) + 1
    lines = []
    for pull in pulls:
        number = f"#{pull.number}".rjust(width)
        lines.append(
            f"{number}  {pull.title}  [{_source_label(pull)} -> {pull.base.ref}] @{pull.author_login}"
        )
    return "\n".join(lines)

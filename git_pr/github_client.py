"""GitHub API wrapper and auth helpers."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv

from git_pr.config import GitPrConfig
from git_pr.errors import PullRequestNotFound
from git_pr.project import Project

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
GITHUB_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
PULLS_PER_PAGE = 100


class GitHubAuthError(RuntimeError):
    """Raised when required GitHub authentication is missing."""


class GitHubApiError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class GitHubRateLimitError(GitHubApiError):
    """Raised when GitHub API rate limiting prevents request completion."""


@dataclass(frozen=True, slots=True)
class BranchRef:
    """One side of a pull request: a branch in a (possibly deleted) project."""

    ref: str
    sha: str
    project: Project | None


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Normalized pull request snapshot, fetched fresh on every invocation."""

    number: int
    title: str
    author_login: str
    state: str
    html_url: str
    head: BranchRef
    base: BranchRef


@dataclass(frozen=True, slots=True)
class Repository:
    """Hosted repository details needed to build comparison URLs."""

    full_name: str
    default_branch: str


def _ensure_mapping(value: object, *, context: str) -> dict[str, Any]:
    """Ensure a response fragment is a JSON object."""
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected JSON object for {context}.",
            status_code=500,
            endpoint=context,
        )
    return value


def _require_str(payload: dict[str, Any], *, key: str, endpoint: str) -> str:
    """Read a required string field from payload."""
    value = payload.get(key)
    if not isinstance(value, str):
        raise GitHubApiError(
            f"Expected string field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _require_int(payload: dict[str, Any], *, key: str, endpoint: str) -> int:
    """Read a required integer field from payload."""
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise GitHubApiError(
            f"Expected integer field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _require_object(payload: dict[str, Any], *, key: str, endpoint: str) -> dict[str, Any]:
    """Read a required object field from payload."""
    value = payload.get(key)
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected object field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _optional_project(payload: dict[str, Any], *, endpoint: str) -> Project | None:
    """Read the 'repo' object of a branch payload; null means the fork was deleted."""
    repo_payload = payload.get("repo")
    if repo_payload is None:
        return None
    if not isinstance(repo_payload, dict):
        raise GitHubApiError(
            "Expected 'repo' to be an object or null in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    full_name = _require_str(repo_payload, key="full_name", endpoint=endpoint)
    owner, separator, name = full_name.partition("/")
    if not separator or not owner or not name:
        raise GitHubApiError(
            f"Unexpected repository full_name '{full_name}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return Project(owner=owner, name=name)


def _parse_branch_ref(payload: dict[str, Any], *, key: str, endpoint: str) -> BranchRef:
    branch_payload = _require_object(payload, key=key, endpoint=endpoint)
    return BranchRef(
        ref=_require_str(branch_payload, key="ref", endpoint=endpoint),
        sha=_require_str(branch_payload, key="sha", endpoint=endpoint),
        project=_optional_project(branch_payload, endpoint=endpoint),
    )


def parse_pull_request(payload: dict[str, Any], *, endpoint: str) -> PullRequest:
    """Decode a pull request payload, failing fast on missing required fields."""
    user_payload = _require_object(payload, key="user", endpoint=endpoint)
    return PullRequest(
        number=_require_int(payload, key="number", endpoint=endpoint),
        title=_require_str(payload, key="title", endpoint=endpoint),
        author_login=_require_str(user_payload, key="login", endpoint=endpoint),
        state=_require_str(payload, key="state", endpoint=endpoint),
        html_url=_require_str(payload, key="html_url", endpoint=endpoint),
        head=_parse_branch_ref(payload, key="head", endpoint=endpoint),
        base=_parse_branch_ref(payload, key="base", endpoint=endpoint),
    )


def _request_json(client: httpx.Client, endpoint: str) -> dict[str, Any]:
    """Perform a JSON request against GitHub API."""
    response = _request_with_retries(client, endpoint)
    return _ensure_mapping(response.json(), context=endpoint)


def _request_json_list(client: httpx.Client, endpoint: str) -> list[dict[str, Any]]:
    """Perform a JSON request that returns an array of objects."""
    response = _request_with_retries(client, endpoint)
    payload = response.json()
    if not isinstance(payload, list):
        raise GitHubApiError(
            "Expected JSON array in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    rows: list[dict[str, Any]] = []
    for item in payload:
        if not isinstance(item, dict):
            raise GitHubApiError(
                "Expected all array items to be JSON objects in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        rows.append(item)
    return rows


def _is_retryable_status(status_code: int) -> bool:
    """Return whether a status code is retryable under policy."""
    return status_code == 429 or 500 <= status_code < 600


def _parse_retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse Retry-After header as seconds if present and valid."""
    retry_after = response.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        parsed_value = float(retry_after)
    except ValueError:
        return None
    if parsed_value < 0:
        return None
    return parsed_value


def _compute_retry_delay_seconds(response: httpx.Response, *, attempt_number: int) -> float:
    """Compute retry delay from Retry-After header or exponential backoff."""
    retry_after_seconds = _parse_retry_after_seconds(response)
    if retry_after_seconds is not None:
        return retry_after_seconds
    return DEFAULT_RETRY_BACKOFF_SECONDS * (2 ** (attempt_number - 1))


def _sleep_for_retry(seconds: float) -> None:
    """Sleep helper for retry delays (wrapped for deterministic tests)."""
    time.sleep(seconds)


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"


def _raise_http_error(response: httpx.Response, endpoint: str) -> None:
    """Raise a typed error for a non-success GitHub API response."""
    message = f"GitHub API request failed with status {response.status_code} for '{endpoint}'."
    if _is_rate_limited(response):
        raise GitHubRateLimitError(
            message,
            status_code=response.status_code,
            endpoint=endpoint,
        )
    raise GitHubApiError(
        message,
        status_code=response.status_code,
        endpoint=endpoint,
    )


def _request_with_retries(
    client: httpx.Client,
    endpoint: str,
    *,
    max_attempts: int = GITHUB_MAX_RETRIES,
    allow_not_found: bool = False,
) -> httpx.Response:
    """Perform a GET request with retry handling for 429/5xx responses."""
    for attempt_number in range(1, max_attempts + 1):
        logger.debug("GET %s (attempt %d)", endpoint, attempt_number)
        response = client.get(endpoint)
        if response.status_code < 400:
            return response
        if allow_not_found and response.status_code == 404:
            return response

        should_retry = _is_retryable_status(response.status_code) and attempt_number < max_attempts
        if not should_retry:
            _raise_http_error(response, endpoint)

        delay_seconds = _compute_retry_delay_seconds(response, attempt_number=attempt_number)
        logger.info(
            "GitHub returned %d for %s; retrying in %.1fs",
            response.status_code,
            endpoint,
            delay_seconds,
        )
        _sleep_for_retry(delay_seconds)

    raise RuntimeError("Unexpected retry loop exit without a response.")


def list_pull_requests(*, client: httpx.Client, project: Project) -> tuple[PullRequest, ...]:
    """Fetch all open pull requests for a project with pagination."""
    base_endpoint = f"/repos/{project.owner}/{project.name}/pulls"

    pulls: list[PullRequest] = []
    page = 1
    while True:
        endpoint = f"{base_endpoint}?state=open&per_page={PULLS_PER_PAGE}&page={page}"
        rows = _request_json_list(client, endpoint)
        if not rows:
            break
        pulls.extend(parse_pull_request(row, endpoint=endpoint) for row in rows)
        if len(rows) < PULLS_PER_PAGE:
            break
        page += 1

    return tuple(pulls)


def get_pull_request(*, client: httpx.Client, project: Project, number: int) -> PullRequest:
    """Fetch one pull request; a 404 raises PullRequestNotFound."""
    endpoint = f"/repos/{project.owner}/{project.name}/pulls/{number}"
    response = _request_with_retries(client, endpoint, allow_not_found=True)
    if response.status_code == 404:
        raise PullRequestNotFound(f"#{number}", project.full_name)
    payload = _ensure_mapping(response.json(), context=endpoint)
    return parse_pull_request(payload, endpoint=endpoint)


def get_repository(*, client: httpx.Client, project: Project) -> Repository:
    """Fetch repository details, including its default branch."""
    endpoint = f"/repos/{project.owner}/{project.name}"
    payload = _request_json(client, endpoint)
    return Repository(
        full_name=_require_str(payload, key="full_name", endpoint=endpoint),
        default_branch=_require_str(payload, key="default_branch", endpoint=endpoint),
    )


def fetch_authenticated_user_login(*, client: httpx.Client) -> str:
    """Fetch authenticated GitHub user login for token validation."""
    endpoint = "/user"
    payload = _request_json(client, endpoint)
    return _require_str(payload, key="login", endpoint=endpoint)


def get_github_token_with_source() -> tuple[str, str]:
    """Read GitHub token and return token value with environment source key."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    github_token = os.getenv("GITHUB_TOKEN")
    if github_token:
        return github_token, "GITHUB_TOKEN"

    gh_token = os.getenv("GH_TOKEN")
    if gh_token:
        return gh_token, "GH_TOKEN"

    message = "Missing GitHub token. Set GITHUB_TOKEN (preferred) or GH_TOKEN."
    raise GitHubAuthError(message)


def build_github_client(config: GitPrConfig, *, require_token: bool = False) -> httpx.Client:
    """Build a GitHub HTTP client, authenticated when a token is available."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    try:
        token, source = get_github_token_with_source()
    except GitHubAuthError:
        if require_token:
            raise
        logger.warning("No GitHub token found; using unauthenticated requests.")
    else:
        logger.debug("Using GitHub token from %s", source)
        headers["Authorization"] = f"Bearer {token}"

    return httpx.Client(
        base_url=config.api_base_url,
        headers=headers,
        timeout=config.timeout_seconds,
    )

"""Runtime configuration threaded through every command."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REMOTE_SEARCH_ORDER = ("origin", "upstream")
DEFAULT_GITHUB_HOST = "github.com"
DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 20

REMOTES_ENV_VAR = "GIT_PR_REMOTES"
GITHUB_HOST_ENV_VAR = "GIT_PR_GITHUB_HOST"
API_URL_ENV_VAR = "GIT_PR_API_URL"
TIMEOUT_ENV_VAR = "GIT_PR_TIMEOUT"


class GitPrConfig(BaseModel):
    """Settings for one git-pr invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    remote_search_order: tuple[str, ...] = Field(
        default=DEFAULT_REMOTE_SEARCH_ORDER, min_length=1
    )
    github_host: str = Field(default=DEFAULT_GITHUB_HOST, min_length=1)
    api_base_url: str = Field(default=DEFAULT_API_BASE_URL, min_length=1)
    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    verbose: bool = False

    @field_validator("remote_search_order", mode="before")
    @classmethod
    def split_remote_names(cls, value: Any) -> Any:
        """Accept a comma-separated string as well as a sequence of names."""
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            names = tuple(str(name).strip() for name in value if str(name).strip())
            if not names:
                raise ValueError("remote_search_order must name at least one remote.")
            return names
        return value

    @field_validator("github_host")
    @classmethod
    def normalize_host(cls, value: str) -> str:
        """Lowercase the host and strip surrounding whitespace and slashes."""
        return value.strip().strip("/").lower()

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Drop trailing slashes so endpoint paths join cleanly."""
        return value.strip().rstrip("/")

    @property
    def web_base_url(self) -> str:
        """Return the browser base URL for the configured host."""
        return f"https://{self.github_host}"


def load_config(
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> GitPrConfig:
    """Build configuration from .env, environment variables and explicit overrides."""
    if environ is None:
        load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
        environ = os.environ

    values: dict[str, Any] = {}
    if environ.get(REMOTES_ENV_VAR):
        values["remote_search_order"] = environ[REMOTES_ENV_VAR]
    if environ.get(GITHUB_HOST_ENV_VAR):
        values["github_host"] = environ[GITHUB_HOST_ENV_VAR]
    if environ.get(API_URL_ENV_VAR):
        values["api_base_url"] = environ[API_URL_ENV_VAR]
    if environ.get(TIMEOUT_ENV_VAR):
        values["timeout_seconds"] = environ[TIMEOUT_ENV_VAR]

    values.update({key: value for key, value in overrides.items() if value is not None})

    # GitHub Enterprise serves the REST API under /api/v3 on the same host.
    host = str(values.get("github_host", DEFAULT_GITHUB_HOST)).strip().lower()
    if "api_base_url" not in values and host != DEFAULT_GITHUB_HOST:
        values["api_base_url"] = f"https://{host}/api/v3"
    return GitPrConfig(**values)

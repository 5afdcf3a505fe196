"""Tests for the git-pr command line."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fakes import (
    FakeRepository,
    RecordingRunner,
    github_handler,
    make_client,
    make_pr_payload,
)
from git_pr import cli
from git_pr.github_client import GitHubAuthError
from typer.testing import CliRunner

runner = CliRunner()

ORIGIN_URL = "git@github.com:acme/widgets.git"


def scenario_repo(**overrides: object) -> FakeRepository:
    options: dict[str, object] = {
        "remotes": {"origin": ORIGIN_URL},
        "objects": {"base-sha"},
        "refs": {"origin/main": "base-sha"},
        "fetch_results": {"bob": {"bob/feature-x": "head-sha"}},
        "merge_bases": {("bob/feature-x", "origin/main"): "mb-sha"},
    }
    options.update(overrides)
    return FakeRepository(**options)  # type: ignore[arg-type]


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory with no git-pr settings in the environment."""
    monkeypatch.chdir(tmp_path)
    for name in ("GIT_PR_REMOTES", "GIT_PR_GITHUB_HOST", "GIT_PR_API_URL", "GIT_PR_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def wire(monkeypatch: pytest.MonkeyPatch, isolated_env: None):  # type: ignore[no-untyped-def]
    """Return a function that points the CLI at a fake repository, API and runner."""

    def _wire(
        repo: FakeRepository,
        *,
        pulls: list[dict] | None = None,
        requests: list[str] | None = None,
        returncodes: tuple[int, ...] = (),
    ) -> RecordingRunner:
        recorder = RecordingRunner(returncodes)
        handler = github_handler(pulls=pulls, requests=requests)
        monkeypatch.setattr(cli, "find_repository", lambda: repo)
        monkeypatch.setattr(
            cli,
            "build_github_client",
            lambda config, require_token=False: make_client(handler),
        )
        monkeypatch.setattr(cli, "build_runner", lambda: recorder)
        return recorder

    return _wire


@pytest.mark.unit
def test_diff_by_number_with_pass_through_args(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo()
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["diff", "42", "--", "--stat"])

    assert result.exit_code == 0, result.output
    assert repo.added_remotes == [("bob", "git@github.com:bob/widgets.git")]
    assert recorder.commands == [["git", "diff", "--stat", "mb-sha..bob/feature-x"]]


@pytest.mark.unit
def test_pass_through_args_without_identifier(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch="feature-x", local_branches=("main", "feature-x"))
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["diff", "--", "--stat", "-U1"])

    assert result.exit_code == 0, result.output
    assert recorder.commands == [["git", "diff", "--stat", "-U1", "mb-sha..bob/feature-x"]]


@pytest.mark.unit
def test_unknown_pull_request_number_changes_nothing(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo()
    recorder = wire(repo, pulls=[])

    result = runner.invoke(cli.app, ["diff", "999"])

    assert result.exit_code == 1
    assert "Pull request '#999' not found in acme/widgets." in result.output
    assert repo.added_remotes == []
    assert repo.fetched == []
    assert recorder.commands == []


@pytest.mark.unit
def test_child_exit_code_becomes_cli_exit_code(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo()
    wire(repo, pulls=[make_pr_payload()], returncodes=(3,))

    result = runner.invoke(cli.app, ["difftool", "42"])

    assert result.exit_code == 3


@pytest.mark.unit
def test_merge_by_branch_name(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo()
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["merge", "feature-x"])

    assert result.exit_code == 0, result.output
    assert recorder.commands[-1][:3] == ["git", "merge", "--no-ff"]
    assert recorder.commands[-1][-1] == "bob/feature-x"


@pytest.mark.unit
def test_no_match_on_current_branch_offers_a_menu(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch="hotfix", local_branches=("main", "hotfix"))
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["diff"], input="42\n")

    assert result.exit_code == 0, result.output
    assert "#42  Add feature X" in result.output
    assert recorder.commands == [["git", "diff", "mb-sha..bob/feature-x"]]


@pytest.mark.unit
def test_detached_head_without_identifier_offers_a_menu(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch=None)
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["diff"], input="42\n")

    assert result.exit_code == 0, result.output
    assert "#42  Add feature X" in result.output
    assert recorder.commands == [["git", "diff", "mb-sha..bob/feature-x"]]


@pytest.mark.unit
def test_menu_with_invalid_choice_fails(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch="hotfix", local_branches=("main", "hotfix"))
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["diff"], input="7\n")

    assert result.exit_code == 1
    assert "Pull request '#7' not found" in result.output
    assert recorder.commands == []


@pytest.mark.unit
def test_list_open_pull_requests(wire) -> None:  # type: ignore[no-untyped-def]
    pulls = [make_pr_payload(number=7, title="Fix typo"), make_pr_payload()]
    wire(scenario_repo(), pulls=pulls)

    result = runner.invoke(cli.app, ["list"])

    assert result.exit_code == 0, result.output
    assert " #7  Fix typo  [bob:feature-x -> main] @bob" in result.output
    assert "#42  Add feature X" in result.output


@pytest.mark.unit
def test_list_with_project_override(wire) -> None:  # type: ignore[no-untyped-def]
    requests: list[str] = []
    repo = scenario_repo(remotes={"origin": "git@github.com:bob/widgets.git"})
    wire(repo, pulls=[], requests=requests)

    result = runner.invoke(cli.app, ["-p", "acme/widgets", "list"])

    assert result.exit_code == 0, result.output
    assert "No open pull requests in acme/widgets." in result.output
    assert requests == ["/repos/acme/widgets/pulls"]


@pytest.mark.unit
def test_malformed_project_override_is_rejected(wire) -> None:  # type: ignore[no-untyped-def]
    requests: list[str] = []
    wire(scenario_repo(), requests=requests)

    result = runner.invoke(cli.app, ["--project", "not a project", "list"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert requests == []


@pytest.mark.unit
def test_no_resolvable_project(wire) -> None:  # type: ignore[no-untyped-def]
    wire(scenario_repo(remotes={"mirror": "https://gitlab.com/acme/widgets.git"}))

    result = runner.invoke(cli.app, ["list"])

    assert result.exit_code == 1
    assert "--project" in result.output


@pytest.mark.unit
def test_open_existing_pull_request(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch="feature-x", local_branches=("main", "feature-x"))
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["open"])

    assert result.exit_code == 0, result.output
    assert recorder.urls == ["https://github.com/acme/widgets/pull/42"]
    assert "https://github.com/acme/widgets/pull/42" in result.output


@pytest.mark.unit
def test_open_on_default_branch_aborts(wire) -> None:  # type: ignore[no-untyped-def]
    repo = scenario_repo(current_branch="main")
    recorder = wire(repo, pulls=[make_pr_payload()])

    result = runner.invoke(cli.app, ["open"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert recorder.urls == []


@pytest.mark.unit
def test_api_failure_is_reported(monkeypatch: pytest.MonkeyPatch, isolated_env: None) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=401, json={"message": "Bad credentials"})

    monkeypatch.setattr(cli, "find_repository", lambda: scenario_repo())
    monkeypatch.setattr(
        cli, "build_github_client", lambda config, require_token=False: make_client(handler)
    )

    result = runner.invoke(cli.app, ["list"])

    assert result.exit_code == 1
    assert "Error:" in result.output


@pytest.mark.unit
def test_invalid_configuration_exits(monkeypatch: pytest.MonkeyPatch, isolated_env: None) -> None:
    monkeypatch.setenv("GIT_PR_TIMEOUT", "-5")

    result = runner.invoke(cli.app, ["list"])

    assert result.exit_code == 1
    assert "invalid configuration" in result.output


@pytest.mark.unit
def test_auth_check_fails_when_token_missing(
    monkeypatch: pytest.MonkeyPatch, isolated_env: None
) -> None:
    def _raise_missing_token() -> tuple[str, str]:
        raise GitHubAuthError("Missing token.")

    monkeypatch.setattr(cli, "get_github_token_with_source", _raise_missing_token)
    result = runner.invoke(cli.app, ["auth-check"])

    assert result.exit_code == 1
    assert "GitHub auth check failed" in result.output


@pytest.mark.unit
def test_auth_check_succeeds_with_project(
    monkeypatch: pytest.MonkeyPatch, isolated_env: None
) -> None:
    monkeypatch.setattr(cli, "get_github_token_with_source", lambda: ("token", "GITHUB_TOKEN"))
    monkeypatch.setattr(
        cli,
        "build_github_client",
        lambda config, require_token=False: make_client(github_handler()),
    )
    monkeypatch.setattr(cli, "fetch_authenticated_user_login", lambda client: "octocat")

    result = runner.invoke(cli.app, ["auth-check", "--repo", "acme/widgets"])

    assert result.exit_code == 0, result.output
    assert "Token detected in GITHUB_TOKEN." in result.output
    assert "Authenticated as GitHub user 'octocat'." in result.output
    assert "Project access check passed for acme/widgets (default branch main)." in result.output
    assert "GitHub token setup is valid." in result.output

"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from pr_assist.config import GitHubSettings, Settings
from pr_assist.git import LastCommit
from pr_assist.github.context import PullRequestContext
from pr_assist.github.files import ChangedFile

BASE_SHA = "base0000"
HEAD_SHA = "head1111"


class FakeGitHub:
    """In-memory stand-in for `GitHubClient`; contents are keyed by (path, ref)."""

    def __init__(
        self,
        *,
        pull: dict[str, Any] | None = None,
        diff: str = "",
        files: list[ChangedFile] | None = None,
        contents: dict[tuple[str, str], str] | None = None,
    ) -> None:
        self.pull = pull or {
            "number": 7,
            "title": "Add widgets",
            "body": "",
            "base": {"sha": BASE_SHA},
            "head": {"sha": HEAD_SHA, "ref": "feature/widgets", "repo": {"full_name": "octo/web"}},
        }
        self.diff = diff
        self.files = files or []
        self.contents = contents or {}
        self.updated_bodies: list[str] = []
        self.comments: list[str] = []
        self.requested_pulls: list[int] = []
        self.comment_error: Exception | None = None
        self.content_errors: dict[str, Exception] = {}
        self.closed = False

    def get_pull(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        self.requested_pulls.append(number)
        return self.pull

    def get_pull_diff(self, owner: str, repo: str, number: int) -> str:
        return self.diff

    def list_pull_files(self, owner: str, repo: str, number: int) -> list[ChangedFile]:
        return list(self.files)

    def get_file_contents(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        if path in self.content_errors:
            raise self.content_errors[path]
        return self.contents.get((path, ref))

    def update_pull_body(self, owner: str, repo: str, number: int, body: str) -> None:
        self.updated_bodies.append(body)

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        if self.comment_error is not None:
            raise self.comment_error
        self.comments.append(body)

    def close(self) -> None:
        self.closed = True


class FakeGit:
    """Records git calls made by the scaffold workflow."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root
        self.last: LastCommit | None = None
        self.staged = True
        self.push_error: Exception | None = None
        self.staged_paths: list[str] = []
        self.commits: list[str] = []
        self.pushed: list[str] = []

    def last_commit(self) -> LastCommit | None:
        return self.last

    def stage(self, paths: Sequence[str]) -> list[str]:
        self.staged_paths.extend(paths)
        return list(paths)

    def has_staged_changes(self) -> bool:
        return self.staged

    def commit(self, message: str) -> None:
        self.commits.append(message)

    def push(self, branch: str) -> None:
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(branch)


class FakeModel:
    """Returns queued replies in order; an Exception entry is raised instead."""

    def __init__(self, replies: list[str | Exception] | None = None, *, tokens: int = 0) -> None:
        self.replies = list(replies or [])
        self.tokens = tokens
        self.prompts: list[str] = []
        self.models: list[str] = []

    def generate(self, *, model: str, prompt: str) -> str:
        self.models.append(model)
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    def count_tokens(self, *, model: str, prompt: str) -> int:
        self.models.append(model)
        self.prompts.append(prompt)
        return self.tokens


@pytest.fixture()
def pr_context() -> PullRequestContext:
    return PullRequestContext(
        owner="octo",
        repo="web",
        pr_number=7,
        base_sha=BASE_SHA,
        head_sha=HEAD_SHA,
    )


@pytest.fixture()
def event_path(tmp_path: Path) -> Path:
    path = tmp_path / "event.json"
    path.write_text(
        json.dumps(
            {
                "pull_request": {
                    "number": 7,
                    "base": {"sha": BASE_SHA},
                    "head": {"sha": HEAD_SHA},
                },
            },
        ),
        "utf-8",
    )
    return path


@pytest.fixture()
def settings(event_path: Path) -> Settings:
    return Settings(
        github=GitHubSettings(repository="octo/web", event_path=event_path),
    )


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Drop CI variables that would leak the host runner's context into tests."""

    for name in (
        "GITHUB_ACTIONS",
        "GITHUB_REPOSITORY",
        "GITHUB_EVENT_PATH",
        "GITHUB_API_URL",
        "GITHUB_HEAD_REF",
        "GITHUB_REF_NAME",
        "GITHUB_TOKEN",
        "GEMINI_API_KEY",
        "PR_NUMBER",
        "COMMIT_CHANGES",
        "GIT_REMOTE",
        "GIT_EXECUTABLE",
        "GEMINI_REVIEW_FOCUS",
        "GEMINI_COMMENT_MODE",
        "GOOGLE_CLOUD_PROJECT",
        "GOOGLE_CLOUD_LOCATION",
        "GOOGLE_APPLICATION_CREDENTIALS",
        "GCP_SERVICE_ACCOUNT_EMAIL",
        "PR_ASSIST_CODE_EXTENSIONS",
        "PR_ASSIST_HTTP_TIMEOUT_SECONDS",
        "PR_ASSIST_HTTP_MAX_RETRIES",
        "PR_ASSIST_DESCRIBE_MODEL",
        "PR_ASSIST_REVIEW_MODEL",
        "PR_ASSIST_SCAFFOLD_MODEL",
        "PR_ASSIST_VERTEX_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch

"""Pull request context resolved from the CI event payload or an explicit PR number."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from pr_assist.config import Settings

logger = logging.getLogger(__name__)


class PullRequestReader(Protocol):
    def get_pull(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        """Return the pull request payload."""


@dataclass(slots=True, frozen=True)
class PullRequestContext:
    """Identifies one pull request and the commits it spans."""

    owner: str
    repo: str
    pr_number: int
    base_sha: str
    head_sha: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repository(value: str | None) -> tuple[str, str]:
    """Split `owner/repo` into its parts."""

    if not value:
        raise ValueError("GITHUB_REPOSITORY is required (expected 'owner/repo').")
    owner, separator, repo = value.strip().partition("/")
    if not separator or not owner or not repo or "/" in repo:
        raise ValueError(f"Invalid GITHUB_REPOSITORY value: {value!r}. Expected 'owner/repo'.")
    return owner, repo


def parse_pr_number(raw: str | None) -> int | None:
    """Parse a PR number override; non-numeric values are ignored with a warning."""

    if raw is None or not raw.strip():
        return None
    try:
        number = int(raw.strip(), 10)
    except ValueError:
        logger.warning("PR_NUMBER=%r is not a valid number; ignoring it.", raw)
        return None
    if number <= 0:
        logger.warning("PR_NUMBER=%r is not a positive number; ignoring it.", raw)
        return None
    return number


def load_event_payload(event_path: Path | None) -> dict[str, Any]:
    if event_path is None:
        raise ValueError("GITHUB_EVENT_PATH is not set; no event payload is available.")
    payload = json.loads(event_path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {event_path}")
    return payload


def load_pull_request_context(settings: Settings) -> PullRequestContext:
    """Build context from a `pull_request` event payload."""

    owner, repo = parse_repository(settings.github.repository)
    payload = load_event_payload(settings.github.event_path)
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, dict) or not pull_request.get("number"):
        raise ValueError(
            "Pull request context is only available for pull_request events "
            "with an associated PR.",
        )
    return PullRequestContext(
        owner=owner,
        repo=repo,
        pr_number=int(pull_request["number"]),
        base_sha=str(pull_request["base"]["sha"]),
        head_sha=str(pull_request["head"]["sha"]),
    )


def resolve_pull_request_context(
    settings: Settings,
    github: PullRequestReader,
) -> PullRequestContext:
    """Use the event payload, falling back to `PR_NUMBER` for manual dispatches."""

    try:
        return load_pull_request_context(settings)
    except (ValueError, TypeError, KeyError, OSError):
        pr_number = parse_pr_number(settings.github.pr_number_override)
        if pr_number is None:
            raise

    owner, repo = parse_repository(settings.github.repository)
    logger.info("Resolving PR #%d via the API (no pull_request event payload).", pr_number)
    pull = github.get_pull(owner, repo, pr_number)
    return PullRequestContext(
        owner=owner,
        repo=repo,
        pr_number=pr_number,
        base_sha=str(pull["base"]["sha"]),
        head_sha=str(pull["head"]["sha"]),
    )

"""Controllers for pr-assist CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pr_assist.config import Settings
from pr_assist.git import GitRunner
from pr_assist.github.client import GitHubClient
from pr_assist.github.context import resolve_pull_request_context
from pr_assist.llm import GeminiClient, TextModel
from pr_assist.redaction import redact_secrets
from pr_assist.workflows.describe import DescribePullRequest
from pr_assist.workflows.review import ReviewPullRequest
from pr_assist.workflows.scaffold import BranchHints, ScaffoldTests
from pr_assist.workflows.smoke import run_vertex_smoke

logger = logging.getLogger(__name__)

GitHubFactory = Callable[[Settings], Any]
ModelFactory = Callable[[Settings], TextModel]
GitFactory = Callable[[Settings], Any]


@dataclass(slots=True)
class DescribePrCommand:
    """CLI input for PR description generation."""


@dataclass(slots=True)
class ReviewCommand:
    """CLI input for the critical-issues review."""


@dataclass(slots=True)
class ScaffoldTestsCommand:
    """CLI input for test scaffolding.

    `commit` overrides `COMMIT_CHANGES` when set.
    """

    commit: bool | None = None


@dataclass(slots=True)
class VertexSmokeCommand:
    """CLI input for the Vertex AI connectivity check."""

    model: str | None = None


@dataclass(slots=True)
class CommandResult:
    """Command report to render in CLI."""

    lines: list[str]
    success: bool
    error: str | None = None


def build_github_client(settings: Settings) -> GitHubClient:
    return GitHubClient(
        token=settings.require_github_token(),
        api_url=settings.github.api_url,
        timeout_seconds=settings.github.request_timeout_seconds,
        max_retries=settings.github.max_retries,
    )


def build_gemini_client(settings: Settings) -> GeminiClient:
    return GeminiClient.from_api_key(settings.require_gemini_api_key())


def build_vertex_client(settings: Settings) -> GeminiClient:
    return GeminiClient.for_vertex(
        project=settings.require_vertex_project(),
        location=settings.vertex.location,
    )


def build_git_runner(settings: Settings) -> GitRunner:
    return GitRunner(
        repo_root=Path.cwd(),
        executable=settings.git.executable,
        remote=settings.git.remote,
    )


class PrAssistController:
    """Builds clients from settings and runs one workflow per command."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        github_factory: GitHubFactory = build_github_client,
        model_factory: ModelFactory = build_gemini_client,
        vertex_factory: ModelFactory = build_vertex_client,
        git_factory: GitFactory = build_git_runner,
    ) -> None:
        self.settings_factory = settings_factory
        self.github_factory = github_factory
        self.model_factory = model_factory
        self.vertex_factory = vertex_factory
        self.git_factory = git_factory

    def describe_pr(self, command: DescribePrCommand) -> CommandResult:  # noqa: ARG002
        lines = ["PR description:"]
        try:
            settings = self.settings_factory()
            github = self.github_factory(settings)
            try:
                context = resolve_pull_request_context(settings, github)
                outcome = DescribePullRequest(
                    github=github,
                    model=self.model_factory(settings),
                    model_name=settings.models.describe_model,
                ).run(context)
            finally:
                github.close()
        except Exception as error:  # noqa: BLE001
            return _failure(lines, "describe-pr", error)

        lines.append(f"pr=#{outcome.pr_number} status={outcome.status}")
        if outcome.diff_truncated:
            lines.append("diff=truncated")
        return CommandResult(lines=lines, success=True)

    def review(self, command: ReviewCommand) -> CommandResult:  # noqa: ARG002
        lines = ["Code review:"]
        try:
            settings = self.settings_factory()
            github = self.github_factory(settings)
            try:
                context = resolve_pull_request_context(settings, github)
                outcome = ReviewPullRequest(
                    github=github,
                    model=self.model_factory(settings),
                    model_name=settings.models.review_model,
                    focus=settings.review.focus,
                    comment_mode=settings.review.comment_mode,
                    code_extensions=settings.scaffold.code_extensions,
                ).run(context)
            finally:
                github.close()
        except Exception as error:  # noqa: BLE001
            return _failure(lines, "review", error)

        lines.append(
            f"pr=#{context.pr_number} status={outcome.status} "
            f"reviewed={outcome.files_reviewed} failed={outcome.files_failed} "
            f"critical={len(outcome.critical_issues)}",
        )
        return CommandResult(lines=lines, success=True)

    def scaffold_tests(self, command: ScaffoldTestsCommand) -> CommandResult:
        lines = ["Test scaffolding:"]
        try:
            settings = self.settings_factory()
            commit_changes = (
                settings.scaffold.commit_changes if command.commit is None else command.commit
            )
            github = self.github_factory(settings)
            try:
                context = resolve_pull_request_context(settings, github)
                outcome = ScaffoldTests(
                    github=github,
                    model=self.model_factory(settings),
                    model_name=settings.models.scaffold_model,
                    git=self.git_factory(settings),
                    commit_changes=commit_changes,
                    code_extensions=settings.scaffold.code_extensions,
                    branch_hints=BranchHints(
                        head_ref=settings.github.head_ref,
                        ref_name=settings.github.ref_name,
                        pr_number_override=settings.github.pr_number_override,
                    ),
                ).run(context)
            finally:
                github.close()
        except Exception as error:  # noqa: BLE001
            return _failure(lines, "scaffold-tests", error)

        lines.append(
            f"pr=#{context.pr_number} status={outcome.status} "
            f"scaffolds={len(outcome.scaffolds)}",
        )
        lines.extend(f"  {scaffold.file_path}" for scaffold in outcome.scaffolds)
        if outcome.target_branch:
            lines.append(f"pushed_to={outcome.target_branch}")
        return CommandResult(lines=lines, success=True)

    def vertex_smoke(self, command: VertexSmokeCommand) -> CommandResult:
        lines = ["Vertex AI smoke check:"]
        try:
            settings = self.settings_factory()
            result = run_vertex_smoke(self.vertex_factory(settings), settings, command.model)
        except Exception as error:  # noqa: BLE001
            return _failure(lines, "vertex-smoke", error)

        lines.extend(
            [
                f"project={result.project}",
                f"location={result.location}",
                f"model={result.model}",
                f"service_account={result.service_account or '-'}",
                f"estimated_tokens={result.total_tokens}",
                "Smoke status: passed",
            ],
        )
        return CommandResult(lines=lines, success=True)


def _failure(lines: list[str], name: str, error: Exception) -> CommandResult:
    logger.error("%s failed: %s", name, error)
    logger.debug("%s failure details", name, exc_info=True)
    reason = redact_secrets(str(error))
    lines.append(f"error={reason}")
    return CommandResult(lines=lines, success=False, error=reason)

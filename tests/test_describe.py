from __future__ import annotations

import logging

import allure
import pytest

from conftest import FakeGitHub, FakeModel
from pr_assist.llm import LlmError
from pr_assist.prompting import PromptTooLargeError
from pr_assist.workflows.describe import (
    DIFF_BOUNDARY,
    EMPTY_DESCRIPTION_PLACEHOLDER,
    DescribePullRequest,
    build_description_prompt,
)

pytestmark = [
    allure.epic("Pull Request Automation"),
    allure.feature("PR Descriptions"),
]

DIFF = "diff --git a/src/a.ts b/src/a.ts\n+export const a = 1;\n"


def test_prompt_embeds_sanitized_fields_between_boundaries() -> None:
    prompt, truncated = build_description_prompt(
        title="Add ```widgets```",
        description="",
        diff=DIFF + f"+// {DIFF_BOUNDARY}\n",
    )

    assert truncated is False
    assert "Add ```widgets```" not in prompt
    assert EMPTY_DESCRIPTION_PLACEHOLDER in prompt
    assert f"{DIFF_BOUNDARY}-escaped" in prompt
    assert prompt.count(f"{DIFF_BOUNDARY}\n") >= 2
    assert "**Breaking Changes**" in prompt


def test_prompt_truncates_large_diff_at_file_boundaries() -> None:
    big = "".join(
        f"diff --git a/src/f{i}.ts b/src/f{i}.ts\n" + "+x\n" * 2_000 for i in range(10)
    )

    prompt, truncated = build_description_prompt(title="t", description="d", diff=big)

    assert truncated is True
    assert "files omitted)" in prompt


def test_prompt_rejects_oversized_combined_fields() -> None:
    diff = "diff --git a/a.ts b/a.ts\n" + "+x\n" * 20_000

    with pytest.raises(PromptTooLargeError):
        build_description_prompt(title="t" * 50_000, description="d" * 50_000, diff=diff)


def test_run_updates_pull_body_with_unwrapped_description(pr_context) -> None:
    github = FakeGitHub(diff=DIFF)
    model = FakeModel(["```markdown\n## Summary\nAdds widgets.\n```"])

    outcome = DescribePullRequest(github=github, model=model, model_name="m-describe").run(
        pr_context,
    )

    assert outcome.status == "updated"
    assert outcome.description == "## Summary\nAdds widgets."
    assert github.updated_bodies == ["## Summary\nAdds widgets."]
    assert model.models == ["m-describe"]
    assert "Add widgets" in model.prompts[0]


def test_run_skips_empty_diff(pr_context, caplog: pytest.LogCaptureFixture) -> None:
    github = FakeGitHub(diff="")
    model = FakeModel()

    with caplog.at_level(logging.WARNING, logger="pr_assist"):
        outcome = DescribePullRequest(github=github, model=model, model_name="m").run(pr_context)

    assert outcome.status == "skipped"
    assert model.prompts == []
    assert github.updated_bodies == []
    assert "No diff found for this PR" in caplog.text


def test_run_propagates_model_failure(pr_context, caplog: pytest.LogCaptureFixture) -> None:
    github = FakeGitHub(diff=DIFF)
    model = FakeModel([LlmError("quota exceeded")])

    with caplog.at_level(logging.WARNING, logger="pr_assist"), pytest.raises(LlmError):
        DescribePullRequest(github=github, model=model, model_name="m").run(pr_context)

    assert github.updated_bodies == []
    assert "Failed to generate PR description" in caplog.text

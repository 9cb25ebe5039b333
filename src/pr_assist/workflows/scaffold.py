"""Generate test scaffolds for new source files and commit or comment them."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from pr_assist.git import (
    GitCommandError,
    LastCommit,
    is_likely_valid_branch_ref,
    sanitize_git_ref,
    sanitize_repo_path,
)
from pr_assist.github.client import GitHubApiError
from pr_assist.github.context import PullRequestContext, parse_pr_number
from pr_assist.github.files import ChangedFile, candidate_test_paths, filter_code_files
from pr_assist.llm import TextModel
from pr_assist.prompting import (
    CODE_FENCE,
    ensure_combined_prompt_length,
    prepare_for_prompt,
    unwrap_code_fence,
)

logger = logging.getLogger(__name__)

# Must match the git identity configured by the workflow, otherwise the
# repeat-commit guard never recognizes this tool's own commits.
ACTION_AUTHOR = "github-actions[bot] <github-actions[bot]@users.noreply.github.com>"
COMMIT_SUBJECT_PREFIX = "test: add generated test scaffolds for "
ACTION_COMMIT_MARKER = "Generated-by: gemini-scaffold-tests-action"

CODE_FENCE_TS = f"{CODE_FENCE}typescript"

SCAFFOLD_PROMPT = """\
You are a test generator for a TypeScript/React/Next.js project using Jest and \
@testing-library/react.

Generate a comprehensive test suite for the following source file. Follow these patterns:

**Testing Library Setup:**
- Use Jest with @testing-library/react and @testing-library/jest-dom
- Import from '@testing-library/react' for React components
- Use `describe` blocks to group related tests
- Use `it` or `test` for individual test cases
- Use `beforeEach` for setup when needed

**Test Structure:**
- For utility functions: Test all exported functions with various inputs, edge cases, \
and error conditions
- For React components: Test rendering, user interactions, props handling, and accessibility
- Use descriptive test names that explain what is being tested
- Group related tests in `describe` blocks

**Import Patterns:**
- Use path aliases: `@/` maps to `src/`
- Example: `import {{ functionName }} from '@/lib/utils'`

**Example Test Patterns:**

For utility functions:
{fence_ts}
import {{ functionName }} from './source-file';

describe('functionName', () => {{
  it('should handle normal case', () => {{
    expect(functionName(input)).toBe(expected);
  }});

  it('should handle edge case', () => {{
    expect(functionName(edgeInput)).toBe(expected);
  }});
}});
{fence}

For React components:
{fence_ts}
import {{ render, screen }} from '@testing-library/react';
import {{ ComponentName }} from './source-file';

describe('ComponentName', () => {{
  it('should render correctly', () => {{
    render(<ComponentName />);
    expect(screen.getByText(/expected text/i)).toBeInTheDocument();
  }});

  it('should handle user interactions', () => {{
    // Test user interactions
  }});
}});
{fence}

**Important:**
- Generate complete, runnable test code
- Include imports for all dependencies
- Test all exported functions/components
- Cover edge cases and error conditions
- Use explicit types (never use `any`)
- Follow the existing codebase patterns

Source file path: {path}
Source code:
{fence_ts}
{code}
{fence}

Generate the complete, runnable TypeScript test file code. You may respond either with \
raw TypeScript test code or with a single fenced {fence_ts} code block, but do not \
include any non-code commentary or explanations."""


@dataclass(slots=True)
class Scaffold:
    """Generated test code destined for `file_path`."""

    file_path: str
    test_code: str


@dataclass(slots=True)
class ScaffoldCandidate:
    source_path: str
    test_path: str


@dataclass(slots=True)
class ScaffoldOutcome:
    status: str
    scaffolds: list[Scaffold] = field(default_factory=list)
    target_branch: str | None = None


class ScaffoldGitHub(Protocol):
    def get_pull(self, owner: str, repo: str, number: int) -> dict[str, Any]: ...

    def list_pull_files(self, owner: str, repo: str, number: int) -> list[ChangedFile]: ...

    def get_file_contents(self, owner: str, repo: str, path: str, ref: str) -> str | None: ...

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> None: ...


class ScaffoldGit(Protocol):
    repo_root: Path

    def last_commit(self) -> LastCommit | None: ...

    def stage(self, paths: Sequence[str]) -> list[str]: ...

    def has_staged_changes(self) -> bool: ...

    def commit(self, message: str) -> None: ...

    def push(self, branch: str) -> None: ...


@dataclass(slots=True)
class BranchHints:
    """Branch names offered by the CI environment."""

    head_ref: str | None = None
    ref_name: str | None = None
    pr_number_override: str | None = None


def build_scaffold_prompt(*, path: str, code: str) -> str:
    safe_path = prepare_for_prompt(path)
    safe_code = prepare_for_prompt(code)
    ensure_combined_prompt_length([safe_path, safe_code])
    return SCAFFOLD_PROMPT.format(
        path=safe_path,
        code=safe_code,
        fence=CODE_FENCE,
        fence_ts=CODE_FENCE_TS,
    )


def generate_test_scaffold(*, model: TextModel, model_name: str, path: str, code: str) -> str:
    """Return generated test code; errors propagate so bad scaffolds are never used."""

    prompt = build_scaffold_prompt(path=path, code=code)
    try:
        text = model.generate(model=model_name, prompt=prompt)
    except Exception as error:
        logger.warning("Failed to generate test for %s: %s", path, error)
        raise
    return unwrap_code_fence(text)


def build_commit_message(scaffolds: Sequence[Scaffold]) -> str:
    # JSON quoting keeps control characters in paths from breaking the message format.
    file_list = ", ".join(json.dumps(scaffold.file_path) for scaffold in scaffolds)
    return (
        f"{COMMIT_SUBJECT_PREFIX}{len(scaffolds)} file(s)\n"
        "\n"
        "Generated by Gemini AI workflow\n"
        f"{ACTION_COMMIT_MARKER}\n"
        f"Files: {file_list}"
    )


def is_repeat_action_commit(last_commit: LastCommit | None) -> bool:
    """True when HEAD is a scaffold commit made by this tool (loop guard)."""

    if last_commit is None:
        return False
    return (
        last_commit.author == ACTION_AUTHOR
        and last_commit.message.startswith(COMMIT_SUBJECT_PREFIX)
        and ACTION_COMMIT_MARKER in last_commit.message
    )


def write_scaffolds(scaffolds: Sequence[Scaffold], repo_root: Path) -> list[Path]:
    written: list[Path] = []
    for scaffold in scaffolds:
        relative = sanitize_repo_path(scaffold.file_path, repo_root)
        full_path = repo_root / relative
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(scaffold.test_code, "utf-8")
        logger.info("Wrote %s", scaffold.file_path)
        written.append(full_path)
    return written


def render_scaffolds_comment(scaffolds: Sequence[Scaffold]) -> str:
    sections = "\n".join(
        f"\n### `{scaffold.file_path}`\n\n{CODE_FENCE_TS}\n{scaffold.test_code}\n{CODE_FENCE}\n"
        for scaffold in scaffolds
    )
    return f"""## 🧪 Test Scaffolding Generated

I've generated test boilerplate for {len(scaffolds)} new file(s) that don't have \
corresponding test files:

{sections}

**Instructions:**
1. Copy the test code above
2. Create the test file(s) in your branch
3. Review and customize the tests as needed
4. Run `pnpm test` to verify the tests pass

**Or:** Add the `generate-tests` label to this PR to automatically commit these tests.

These are boilerplate tests - please review and enhance them based on your specific \
requirements."""


def render_committed_comment(scaffolds: Sequence[Scaffold]) -> str:
    files = "\n".join(f"- `{scaffold.file_path}`" for scaffold in scaffolds)
    return f"""## ✅ Test Scaffolding Committed

I've generated and committed test boilerplate for {len(scaffolds)} new file(s):

{files}

**Next Steps:**
1. Review the generated tests
2. Customize them as needed
3. Run `pnpm test` to verify the tests pass

These are boilerplate tests - please review and enhance them based on your specific \
requirements."""


def resolve_target_branch(
    *,
    github: ScaffoldGitHub,
    context: PullRequestContext,
    hints: BranchHints,
) -> str | None:
    """Pick the branch to push to; None means "comment only" (e.g. fork PRs)."""

    for candidate in (hints.head_ref, hints.ref_name):
        if candidate and is_likely_valid_branch_ref(candidate):
            return sanitize_git_ref(candidate)

    # workflow_dispatch runs may have no head ref and a detached ref like pull/123/head.
    pr_number = parse_pr_number(hints.pr_number_override) or context.pr_number
    pull = github.get_pull(context.owner, context.repo, pr_number)
    head = pull.get("head") or {}
    head_ref = head.get("ref")
    head_repo = (head.get("repo") or {}).get("full_name")
    if (
        isinstance(head_ref, str)
        and head_repo == context.full_name
        and is_likely_valid_branch_ref(head_ref)
    ):
        return sanitize_git_ref(head_ref)

    logger.info(
        "PR head is from a fork or has an unsupported ref; skipping auto-push and "
        "falling back to PR comment only.",
    )
    return None


class ScaffoldTests:
    """Find new source files without tests, generate scaffolds, deliver them."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        github: ScaffoldGitHub,
        model: TextModel,
        model_name: str,
        git: ScaffoldGit,
        commit_changes: bool,
        code_extensions: tuple[str, ...],
        branch_hints: BranchHints | None = None,
    ) -> None:
        self.github = github
        self.model = model
        self.model_name = model_name
        self.git = git
        self.commit_changes = commit_changes
        self.code_extensions = code_extensions
        self.branch_hints = branch_hints or BranchHints()

    def run(self, context: PullRequestContext) -> ScaffoldOutcome:
        logger.info("Scaffolding tests for PR #%d", context.pr_number)
        candidates = self.identify_files_needing_tests(context)
        if not candidates:
            logger.info("All new files already have corresponding test files.")
            return ScaffoldOutcome(status="up-to-date")

        logger.info("Generating test scaffolds for %d files", len(candidates))
        scaffolds = self.generate_scaffolds(context, candidates)
        if not scaffolds:
            logger.info("No test scaffolds generated.")
            return ScaffoldOutcome(status="none-generated")

        logger.info("Processed test scaffolds for %d files", len(scaffolds))
        if not self.commit_changes:
            self._post_scaffolds_comment(context, scaffolds)
            return ScaffoldOutcome(status="commented", scaffolds=scaffolds)
        return self.commit_scaffolds(context, scaffolds)

    def identify_files_needing_tests(self, context: PullRequestContext) -> list[ScaffoldCandidate]:
        code_files = filter_code_files(
            self.github.list_pull_files(context.owner, context.repo, context.pr_number),
            self.code_extensions,
        )
        new_files = [changed for changed in code_files if changed.is_new]
        if not new_files:
            logger.info("No new code files in this PR.")
            return []

        logger.info("Found %d new code files", len(new_files))
        candidates: list[ScaffoldCandidate] = []
        for changed in new_files:
            paths = candidate_test_paths(changed.filename)
            if self._exists_at(context, paths.test_path) or self._exists_at(
                context,
                paths.spec_path,
            ):
                continue
            candidates.append(
                ScaffoldCandidate(source_path=changed.filename, test_path=paths.test_path),
            )
        return candidates

    def generate_scaffolds(
        self,
        context: PullRequestContext,
        candidates: Sequence[ScaffoldCandidate],
    ) -> list[Scaffold]:
        scaffolds: list[Scaffold] = []
        for candidate in candidates:
            logger.info("Generating test for %s...", candidate.source_path)
            source = self.github.get_file_contents(
                context.owner,
                context.repo,
                candidate.source_path,
                context.head_sha,
            )
            if source is None:
                logger.warning("Could not fetch content for %s", candidate.source_path)
                continue
            try:
                test_code = generate_test_scaffold(
                    model=self.model,
                    model_name=self.model_name,
                    path=candidate.source_path,
                    code=source,
                )
            except Exception:  # noqa: BLE001
                # Reported by generate_test_scaffold.
                continue
            scaffolds.append(Scaffold(file_path=candidate.test_path, test_code=test_code))
        return scaffolds

    def commit_scaffolds(
        self,
        context: PullRequestContext,
        scaffolds: Sequence[Scaffold],
    ) -> ScaffoldOutcome:
        if is_repeat_action_commit(self.git.last_commit()):
            logger.info("Last commit was made by this action. Skipping to prevent infinite loop.")
            return ScaffoldOutcome(status="loop-guard", scaffolds=list(scaffolds))

        logger.info("Writing %d test files to disk...", len(scaffolds))
        write_scaffolds(scaffolds, self.git.repo_root)
        self.git.stage([scaffold.file_path for scaffold in scaffolds])

        try:
            if not self.git.has_staged_changes():
                logger.info("No changes to commit.")
                return ScaffoldOutcome(status="no-changes", scaffolds=list(scaffolds))
            return self._commit_and_push_or_comment(context, scaffolds)
        except (GitCommandError, GitHubApiError, ValueError) as error:
            logger.warning(
                "Failed to commit/push generated test scaffolds, falling back to PR comment: %s",
                error,
            )
            self._post_scaffolds_comment(context, scaffolds)
            return ScaffoldOutcome(status="commented", scaffolds=list(scaffolds))

    def _commit_and_push_or_comment(
        self,
        context: PullRequestContext,
        scaffolds: Sequence[Scaffold],
    ) -> ScaffoldOutcome:
        self.git.commit(build_commit_message(scaffolds))
        target_branch = resolve_target_branch(
            github=self.github,
            context=context,
            hints=self.branch_hints,
        )
        if target_branch is None:
            self._post_scaffolds_comment(context, scaffolds)
            return ScaffoldOutcome(status="commented", scaffolds=list(scaffolds))

        try:
            self.git.push(target_branch)
        except GitCommandError as error:
            logger.warning("Failed to push test scaffolds to %s: %s", target_branch, error)
            raise
        self.github.create_issue_comment(
            context.owner,
            context.repo,
            context.pr_number,
            render_committed_comment(scaffolds),
        )
        return ScaffoldOutcome(
            status="committed",
            scaffolds=list(scaffolds),
            target_branch=target_branch,
        )

    def _exists_at(self, context: PullRequestContext, path: str) -> bool:
        try:
            return (
                self.github.get_file_contents(context.owner, context.repo, path, context.base_sha)
                is not None
            )
        except (GitHubApiError, ValueError) as error:
            logger.debug("Treating %s as absent at base: %s", path, error)
            return False

    def _post_scaffolds_comment(
        self,
        context: PullRequestContext,
        scaffolds: Sequence[Scaffold],
    ) -> None:
        self.github.create_issue_comment(
            context.owner,
            context.repo,
            context.pr_number,
            render_scaffolds_comment(scaffolds),
        )

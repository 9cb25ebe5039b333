"""GitHub API access and pull request context."""

from pr_assist.github.client import GitHubApiError, GitHubClient
from pr_assist.github.context import PullRequestContext, resolve_pull_request_context
from pr_assist.github.files import ChangedFile, candidate_test_paths, filter_code_files

__all__ = [
    "ChangedFile",
    "GitHubApiError",
    "GitHubClient",
    "PullRequestContext",
    "candidate_test_paths",
    "filter_code_files",
    "resolve_pull_request_context",
]

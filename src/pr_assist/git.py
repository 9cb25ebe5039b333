"""Sanitized git subprocess execution for committing generated files."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from pr_assist.redaction import sanitize_preview

logger = logging.getLogger(__name__)

# Fixed, typically unwritable system directories only.
SAFE_PATH = "/usr/bin:/bin"
DEFAULT_REMOTE = "origin"
DEFAULT_TIMEOUT_SECONDS = 120
MAX_ENV_VALUE_LENGTH = 1024

FORWARDED_ENV_NAMES: tuple[str, ...] = (
    "HOME",
    "USER",
    "GIT_AUTHOR_NAME",
    "GIT_AUTHOR_EMAIL",
    "GIT_COMMITTER_NAME",
    "GIT_COMMITTER_EMAIL",
)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_LINE_BREAKS = re.compile(r"[\x00\n\r]")
_UNSAFE_REMOTE = re.compile(r"[\x00-\x1f\x7f\s]")
_UNSAFE_BRANCH_CHARS = re.compile(r"[~^:\s?*\[\\\]]")
_SPECIAL_REF_PREFIXES = ("refs/", "pull/", "tags/", "heads/", "remotes/", "merge/")


class UnsafeInputError(ValueError):
    """A path, ref or remote failed validation before reaching git."""


class GitCommandError(RuntimeError):
    """git exited with a non-zero status."""

    def __init__(self, message: str, *, exit_code: int | None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class LastCommit:
    """Author (`name <email>`) and full message of HEAD."""

    author: str
    message: str


def sanitize_env_value(name: str, value: str | None) -> str | None:
    """Return a trimmed value safe to forward, or None when it must be dropped."""

    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if _CONTROL_CHARS.search(trimmed):
        logger.warning("Ignoring unsafe value for %s: contains control characters.", name)
        return None
    if len(trimmed) > MAX_ENV_VALUE_LENGTH:
        logger.warning("Ignoring unsafe value for %s: value is unreasonably long.", name)
        return None
    return trimmed


def build_safe_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Minimal child environment: fixed PATH plus identity variables git relies on."""

    source = os.environ if environ is None else environ
    env = {"PATH": SAFE_PATH}
    for name in FORWARDED_ENV_NAMES:
        value = sanitize_env_value(name, source.get(name))
        if value is not None:
            env[name] = value
    return env


def sanitize_repo_path(file_path: str, repo_root: Path) -> str:
    """Return `file_path` relative to `repo_root`, refusing anything that escapes it."""

    trimmed = file_path.strip()
    if _LINE_BREAKS.search(trimmed):
        raise UnsafeInputError(
            f"Refusing to use unsafe file path containing control characters: {file_path!r}",
        )
    if not trimmed or os.path.isabs(trimmed):
        raise UnsafeInputError(f"Refusing to use non-relative or empty file path: {file_path!r}")

    root = repo_root.resolve()
    resolved = (root / os.path.normpath(trimmed)).resolve()
    relative = os.path.relpath(resolved, root)
    # Generated files always live below the repository root, never at it.
    if relative in {"", "."} or relative.startswith("..") or os.path.isabs(relative):
        raise UnsafeInputError(
            f"Refusing to use file path outside repository root: {file_path!r} "
            f"(resolved to {resolved})",
        )
    return relative


def sanitize_git_ref(ref: str) -> str:
    trimmed = ref.strip()
    if _LINE_BREAKS.search(trimmed):
        raise UnsafeInputError(
            f"Refusing to use unsafe git ref containing control characters: {ref!r}",
        )
    if not trimmed or trimmed.startswith("-"):
        raise UnsafeInputError(f"Refusing to use unsafe git ref: {ref!r}")
    return trimmed


def resolve_git_remote(value: str | None) -> str:
    """Return the configured remote name, falling back to `origin` for unsafe values."""

    if value is not None:
        trimmed = value.strip()
        if trimmed and not trimmed.startswith("-") and not _UNSAFE_REMOTE.search(trimmed):
            return trimmed
        logger.warning(
            "Ignoring unsafe GIT_REMOTE value %r, falling back to default remote %r.",
            value,
            DEFAULT_REMOTE,
        )
    return DEFAULT_REMOTE


def is_likely_valid_branch_ref(ref: str) -> bool:
    """Conservative check that `ref` looks like a short user branch name.

    This is not git's full refname validation: special-looking refs are rejected,
    fully qualified ones such as `refs/heads/main` included, and git performs the
    final validation when the command runs.
    """

    trimmed = ref.strip()
    if not trimmed:
        return False
    if trimmed.startswith(_SPECIAL_REF_PREFIXES):
        return False
    if _UNSAFE_BRANCH_CHARS.search(trimmed):
        return False
    if ".." in trimmed or "@{" in trimmed:
        return False
    return not trimmed.endswith((".", "/", ".lock"))


class GitRunner:
    """Run fixed git subcommands as argv lists with a restricted environment."""

    def __init__(
        self,
        *,
        repo_root: Path,
        executable: str = "git",
        remote: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.repo_root = repo_root
        self.executable = executable.strip() or "git"
        self.remote = resolve_git_remote(remote)
        self.env = dict(env) if env is not None else build_safe_env()
        self.timeout_seconds = timeout_seconds

    def has_any_commits(self) -> bool:
        """True when HEAD resolves; an empty repository is not an error."""

        completed = self._run(["rev-parse", "--verify", "HEAD"], check=False)
        if completed.returncode == 0:
            return True
        if completed.returncode == 128:
            logger.info("Repository has no commits yet; skipping last-commit check.")
            return False
        logger.warning(
            "Could not determine commit presence via git rev-parse (exit %d): %s",
            completed.returncode,
            sanitize_preview(completed.stderr),
        )
        return False

    def last_commit(self) -> LastCommit | None:
        try:
            if not self.has_any_commits():
                return None
            author = self._run(["log", "-1", "--pretty=format:%an <%ae>"]).stdout.strip()
            message = self._run(["log", "-1", "--pretty=format:%B"]).stdout.strip()
        except GitCommandError as error:
            logger.warning("Could not check last commit via git log: %s", error)
            return None
        return LastCommit(author=author, message=message)

    def stage(self, paths: Iterable[str]) -> list[str]:
        """Stage sanitized paths; `--` keeps them from being parsed as options."""

        safe_paths = [sanitize_repo_path(path, self.repo_root) for path in paths]
        if safe_paths:
            self._run(["add", "--", *safe_paths])
        return safe_paths

    def has_staged_changes(self) -> bool:
        completed = self._run(["diff", "--cached", "--quiet"], check=False)
        if completed.returncode == 0:
            return False
        if completed.returncode == 1:
            return True
        logger.warning(
            "Could not determine staged changes via git diff --cached (exit %d); "
            "assuming changes are present.",
            completed.returncode,
        )
        return True

    def commit(self, message: str) -> None:
        self._run(["commit", "-m", message])

    def push(self, branch: str) -> None:
        target = sanitize_git_ref(branch)
        self._run(["push", self.remote, target])
        logger.info("Pushed to %s/%s", self.remote, target)

    def _run(self, args: list[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        argv = [self.executable, *args]
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                cwd=self.repo_root,
                env=self.env,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as error:
            raise GitCommandError(f"git {args[0]} timed out", exit_code=None) from error
        except OSError as error:
            raise GitCommandError(f"git failed to start: {error}", exit_code=None) from error

        if check and completed.returncode != 0:
            raise GitCommandError(
                f"git {args[0]} exited with {completed.returncode}: "
                f"{sanitize_preview(completed.stderr, max_chars=500)}",
                exit_code=completed.returncode,
            )
        return completed

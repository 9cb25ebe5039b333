"""Runtime configuration loaded from the CI environment."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CODE_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx")


@dataclass(slots=True)
class CredentialSettings:
    """Secrets injected by the workflow."""

    gemini_api_key: str | None = None
    github_token: str | None = None


@dataclass(slots=True)
class GitHubSettings:
    """GitHub API and event context settings."""

    api_url: str = "https://api.github.com"
    repository: str | None = None
    event_path: Path | None = None
    pr_number_override: str | None = None
    head_ref: str | None = None
    ref_name: str | None = None
    request_timeout_seconds: float = 30.0
    max_retries: int = 3


@dataclass(slots=True)
class ModelSettings:
    """Model ids used by each workflow."""

    describe_model: str = "gemini-1.5-flash"
    review_model: str = "gemini-2.5-flash"
    scaffold_model: str = "gemini-1.5-flash"


@dataclass(slots=True)
class ReviewSettings:
    """Review prompt tuning."""

    focus: str = "critical-only"
    comment_mode: str = "summary"


@dataclass(slots=True)
class ScaffoldSettings:
    """Test scaffolding behaviour."""

    commit_changes: bool = False
    code_extensions: tuple[str, ...] = DEFAULT_CODE_EXTENSIONS


@dataclass(slots=True)
class GitSettings:
    """Git executable and remote used for scaffold commits."""

    executable: str = "git"
    remote: str | None = None


@dataclass(slots=True)
class VertexSettings:
    """Vertex AI connectivity settings."""

    project: str | None = None
    location: str = "us-central1"
    model: str = "gemini-3-pro-preview"
    service_account_email: str | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    credentials: CredentialSettings = field(default_factory=CredentialSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    models: ModelSettings = field(default_factory=ModelSettings)
    review: ReviewSettings = field(default_factory=ReviewSettings)
    scaffold: ScaffoldSettings = field(default_factory=ScaffoldSettings)
    git: GitSettings = field(default_factory=GitSettings)
    vertex: VertexSettings = field(default_factory=VertexSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from the process environment."""

        event_path = _env_str("GITHUB_EVENT_PATH")
        return cls(
            credentials=CredentialSettings(
                gemini_api_key=_env_str("GEMINI_API_KEY"),
                github_token=_env_str("GITHUB_TOKEN"),
            ),
            github=GitHubSettings(
                api_url=_env_str("GITHUB_API_URL") or "https://api.github.com",
                repository=_env_str("GITHUB_REPOSITORY"),
                event_path=Path(event_path) if event_path else None,
                pr_number_override=_env_str("PR_NUMBER"),
                head_ref=_env_str("GITHUB_HEAD_REF"),
                ref_name=_env_str("GITHUB_REF_NAME"),
                request_timeout_seconds=_env_float("PR_ASSIST_HTTP_TIMEOUT_SECONDS", 30.0),
                max_retries=_env_int("PR_ASSIST_HTTP_MAX_RETRIES", 3),
            ),
            models=ModelSettings(
                describe_model=_env_str("PR_ASSIST_DESCRIBE_MODEL") or "gemini-1.5-flash",
                review_model=_env_str("PR_ASSIST_REVIEW_MODEL") or "gemini-2.5-flash",
                scaffold_model=_env_str("PR_ASSIST_SCAFFOLD_MODEL") or "gemini-1.5-flash",
            ),
            review=ReviewSettings(
                focus=_env_str("GEMINI_REVIEW_FOCUS") or "critical-only",
                comment_mode=_env_str("GEMINI_COMMENT_MODE") or "summary",
            ),
            scaffold=ScaffoldSettings(
                # Only the exact literal "true" enables commits.
                commit_changes=os.getenv("COMMIT_CHANGES") == "true",
                code_extensions=_collect_code_extensions(),
            ),
            git=GitSettings(
                executable=_env_str("GIT_EXECUTABLE") or "git",
                # Validated by git.resolve_git_remote.
                remote=os.getenv("GIT_REMOTE"),
            ),
            vertex=VertexSettings(
                project=_env_str("GOOGLE_CLOUD_PROJECT"),
                location=_env_str("GOOGLE_CLOUD_LOCATION") or "us-central1",
                model=_env_str("PR_ASSIST_VERTEX_MODEL") or "gemini-3-pro-preview",
                service_account_email=_service_account_email(),
            ),
        )

    def require_gemini_api_key(self) -> str:
        """Return the Gemini API key or raise a configuration error."""

        if not self.credentials.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        return self.credentials.gemini_api_key

    def require_github_token(self) -> str:
        """Return the GitHub token or raise a configuration error."""

        if not self.credentials.github_token:
            raise ValueError("GITHUB_TOKEN is required")
        return self.credentials.github_token

    def require_vertex_project(self) -> str:
        if not self.vertex.project:
            raise ValueError("GOOGLE_CLOUD_PROJECT is required for Vertex AI access")
        return self.vertex.project


def _env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error
    if value < 0:
        raise ValueError(f"{name} must be >= 0.")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {raw!r}") from error
    if value <= 0:
        raise ValueError(f"{name} must be > 0.")
    return value


def _collect_code_extensions() -> tuple[str, ...]:
    raw = _env_str("PR_ASSIST_CODE_EXTENSIONS")
    if raw is None:
        return DEFAULT_CODE_EXTENSIONS

    extensions: list[str] = []
    for part in raw.split(","):
        token = part.strip().lower()
        if not token:
            continue
        if not token.startswith("."):
            token = f".{token}"
        if token not in extensions:
            extensions.append(token)
    if not extensions:
        raise ValueError("PR_ASSIST_CODE_EXTENSIONS must list at least one extension.")
    return tuple(extensions)


def _service_account_email() -> str | None:
    explicit = _env_str("GCP_SERVICE_ACCOUNT_EMAIL")
    if explicit:
        return explicit

    credentials_path = _env_str("GOOGLE_APPLICATION_CREDENTIALS")
    if credentials_path is None:
        return None
    try:
        payload = json.loads(Path(credentials_path).read_text("utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    email = payload.get("client_email")
    if isinstance(email, str) and email.strip():
        return email.strip()
    return None

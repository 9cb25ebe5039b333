"""GitHub REST client over httpx with retries and timeout."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import httpx

from pr_assist import __version__
from pr_assist.github.files import ChangedFile

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
API_VERSION = "2022-11-28"
FILES_PAGE_SIZE = 100
DEFAULT_USER_AGENT = f"pr-assist/{__version__}"

_ALLOWED_CONTENT_ENCODINGS = frozenset({"base64", "utf-8"})


class GitHubApiError(RuntimeError):
    """GitHub request failed; `status_code` is None for transport failures."""

    def __init__(self, message: str, *, status_code: int | None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """Minimal pull request API surface used by the workflows."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        token = token.strip()
        if not token:
            raise ValueError("GITHUB_TOKEN is required")
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "User-Agent": user_agent,
                "X-GitHub-Api-Version": API_VERSION,
            },
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def get_pull(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        payload = self._request_json("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        if not isinstance(payload, dict):
            raise TypeError("Failed to fetch pull request: unexpected response type")
        return payload

    def get_pull_diff(self, owner: str, repo: str, number: int) -> str:
        """Return the unified diff of a pull request."""

        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": "application/vnd.github.diff"},
        )
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            raise TypeError("Failed to fetch PR diff: unexpected response type")
        return response.text

    def list_pull_files(self, owner: str, repo: str, number: int) -> list[ChangedFile]:
        """Return every changed file, following pagination."""

        files: list[ChangedFile] = []
        page = 1
        while True:
            payload = self._request_json(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{number}/files",
                params={"per_page": FILES_PAGE_SIZE, "page": page},
            )
            if not isinstance(payload, list):
                raise TypeError("Failed to list pull request files: unexpected response type")
            files.extend(ChangedFile.from_api(item) for item in payload if isinstance(item, dict))
            if len(payload) < FILES_PAGE_SIZE:
                return files
            page += 1

    def update_pull_body(self, owner: str, repo: str, number: int, body: str) -> None:
        self._request("PATCH", f"/repos/{owner}/{repo}/pulls/{number}", json={"body": body})

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            json={"body": body},
        )

    def get_file_contents(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        """Return UTF-8 file contents at `ref`, or None when the file does not exist.

        Traversal-like and absolute paths are rejected before any request is made,
        even though the API validates repository paths itself.
        """

        normalized = path.strip()
        if ".." in normalized:
            raise ValueError(f"Invalid file path: traversal sequences not allowed ({path})")
        if not normalized or normalized.startswith("/"):
            raise ValueError(f"Invalid file path: {path}")

        try:
            payload = self._request_json(
                "GET",
                f"/repos/{owner}/{repo}/contents/{quote(normalized, safe='/')}",
                params={"ref": ref},
            )
        except GitHubApiError as error:
            if error.status_code == 404:
                return None
            raise

        if not isinstance(payload, dict) or "content" not in payload or "encoding" not in payload:
            raise ValueError(f"File {path} is not a file")

        encoding = payload.get("encoding")
        if encoding not in _ALLOWED_CONTENT_ENCODINGS:
            raise ValueError(f"Unsupported encoding {encoding!r} for file {path}")

        content = str(payload.get("content") or "")
        if encoding == "utf-8":
            return content
        try:
            raw = base64.b64decode(content)
        except (binascii.Error, ValueError) as error:
            raise ValueError(f"Invalid base64 content for file {path}") from error
        return raw.decode("utf-8", errors="replace")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as error:
            raise GitHubApiError(
                f"GitHub returned invalid JSON for {method} {url}",
                status_code=response.status_code,
            ) from error

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as error:
            logger.warning("Timeout calling GitHub %s %s", method, url)
            raise GitHubApiError(f"GitHub {method} {url} timed out", status_code=None) from error
        except httpx.HTTPError as error:
            raise GitHubApiError(
                f"GitHub {method} {url} failed: {error}",
                status_code=None,
            ) from error

        if not response.is_success:
            raise GitHubApiError(
                f"GitHub {method} {url} failed: HTTP {response.status_code} "
                f"{_error_message(response)}".rstrip(),
                status_code=response.status_code,
            )
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return ""

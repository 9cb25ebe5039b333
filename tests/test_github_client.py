from __future__ import annotations

import base64
import json

import allure
import httpx
import pytest

from pr_assist.github.client import API_VERSION, GitHubApiError, GitHubClient

pytestmark = [
    allure.epic("Pull Request Automation"),
    allure.feature("GitHub API Client"),
]


def _client(handler, *, api_url: str = "https://api.github.test") -> GitHubClient:
    return GitHubClient(token="t0ken", api_url=api_url, transport=httpx.MockTransport(handler))


def test_requires_token() -> None:
    with pytest.raises(ValueError, match="GITHUB_TOKEN is required"):
        GitHubClient(token="  ")


def test_get_pull_sends_api_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"number": 7, "title": "T"})

    with _client(handler, api_url="https://api.github.test/") as client:
        pull = client.get_pull("octo", "web", 7)

    assert pull["title"] == "T"
    request = seen[0]
    assert request.url.path == "/repos/octo/web/pulls/7"
    assert request.headers["Authorization"] == "Bearer t0ken"
    assert request.headers["Accept"] == "application/vnd.github+json"
    assert request.headers["X-GitHub-Api-Version"] == API_VERSION


def test_get_pull_diff_requests_diff_media_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Accept"] == "application/vnd.github.diff"
        return httpx.Response(
            200,
            text="diff --git a/x b/x\n",
            headers={"content-type": "text/plain"},
        )

    with _client(handler) as client:
        assert client.get_pull_diff("octo", "web", 7) == "diff --git a/x b/x\n"


def test_get_pull_diff_rejects_json_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "not a diff"})

    with _client(handler) as client, pytest.raises(TypeError, match="unexpected response type"):
        client.get_pull_diff("octo", "web", 7)


def test_list_pull_files_follows_pagination() -> None:
    pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        pages.append(page)
        assert request.url.params["per_page"] == "100"
        if page == "1":
            items = [{"filename": f"src/f{i}.ts", "status": "added"} for i in range(100)]
        else:
            items = [{"filename": "src/last.ts", "status": "modified"}]
        return httpx.Response(200, json=items)

    with _client(handler) as client:
        files = client.list_pull_files("octo", "web", 7)

    assert pages == ["1", "2"]
    assert len(files) == 101
    assert files[-1].filename == "src/last.ts"


def test_update_body_and_comment_requests() -> None:
    seen: list[tuple[str, str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={})

    with _client(handler) as client:
        client.update_pull_body("octo", "web", 7, "new body")
        client.create_issue_comment("octo", "web", 7, "hello")

    assert seen == [
        ("PATCH", "/repos/octo/web/pulls/7", {"body": "new body"}),
        ("POST", "/repos/octo/web/issues/7/comments", {"body": "hello"}),
    ]


def test_get_file_contents_decodes_base64() -> None:
    encoded = base64.b64encode("export const x = 'é';\n".encode()).decode()

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/octo/web/contents/src/x.ts"
        assert request.url.params["ref"] == "abc123"
        return httpx.Response(200, json={"content": encoded, "encoding": "base64"})

    with _client(handler) as client:
        assert client.get_file_contents("octo", "web", "src/x.ts", "abc123") == (
            "export const x = 'é';\n"
        )


@pytest.mark.parametrize(
    ("path", "raw_path"),
    [
        ("src/c#sharp.ts", b"/repos/octo/web/contents/src/c%23sharp.ts?ref=abc"),
        ("src/what?.ts", b"/repos/octo/web/contents/src/what%3F.ts?ref=abc"),
        ("src/100%.ts", b"/repos/octo/web/contents/src/100%25.ts?ref=abc"),
        ("src/my file.ts", b"/repos/octo/web/contents/src/my%20file.ts?ref=abc"),
    ],
)
def test_get_file_contents_escapes_path_segments(path: str, raw_path: bytes) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"content": "x", "encoding": "utf-8"})

    with _client(handler) as client:
        assert client.get_file_contents("octo", "web", path, "abc") == "x"

    assert seen[0].url.raw_path == raw_path


def test_get_file_contents_returns_none_for_missing_file() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    with _client(handler) as client:
        assert client.get_file_contents("octo", "web", "src/x.test.ts", "abc") is None


@pytest.mark.parametrize(
    ("path", "match"),
    [
        ("src/../secrets.ts", "traversal sequences not allowed"),
        ("/etc/passwd", "Invalid file path"),
        ("   ", "Invalid file path"),
    ],
)
def test_get_file_contents_rejects_unsafe_paths_without_request(path: str, match: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with _client(handler) as client, pytest.raises(ValueError, match=match):
        client.get_file_contents("octo", "web", path, "abc")


@pytest.mark.parametrize(
    ("payload", "match"),
    [
        ([{"name": "a.ts"}], "is not a file"),
        ({"content": "x", "encoding": "none"}, "Unsupported encoding"),
        ({"content": "abc", "encoding": "base64"}, "Invalid base64 content"),
    ],
)
def test_get_file_contents_rejects_unexpected_payloads(payload: object, match: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with _client(handler) as client, pytest.raises(ValueError, match=match):
        client.get_file_contents("octo", "web", "src", "abc")


def test_http_error_carries_status_and_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Resource not accessible by integration"})

    with _client(handler) as client, pytest.raises(GitHubApiError) as excinfo:
        client.create_issue_comment("octo", "web", 7, "hi")

    assert excinfo.value.status_code == 403
    assert "HTTP 403 Resource not accessible by integration" in str(excinfo.value)


def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client, pytest.raises(GitHubApiError) as excinfo:
        client.get_pull("octo", "web", 7)

    assert excinfo.value.status_code is None

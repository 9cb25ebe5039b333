from __future__ import annotations

import allure

from pr_assist.redaction import redact_secrets, sanitize_preview

pytestmark = [
    allure.epic("Observability"),
    allure.feature("Secret Redaction"),
]


def test_redacts_bearer_and_github_tokens() -> None:
    text = "Authorization: Bearer abcdefghijklmnop and ghp_" + "A" * 36

    redacted = redact_secrets(text)

    assert "abcdefghijklmnop" not in redacted
    assert "ghp_" not in redacted
    assert "Bearer [redacted-token]" in redacted


def test_redacts_fine_grained_pat_and_google_key() -> None:
    text = "github_pat_" + "a1" * 15 + " AIza" + "B" * 35

    redacted = redact_secrets(text)

    assert redacted == "[redacted-token] [redacted-token]"


def test_redacts_key_assignments_and_query_credentials() -> None:
    redacted = redact_secrets("GEMINI_API_KEY=secret123 url=https://x.test/a?token=abc&page=2")

    assert "secret123" not in redacted
    assert "[redacted-secret]" in redacted
    assert "?token=[redacted]&page=2" in redacted


def test_redacts_email_addresses() -> None:
    assert redact_secrets("contact dev@example.com now") == "contact [redacted-email] now"


def test_leaves_ordinary_text_alone() -> None:
    text = "GITHUB_TOKEN is required"

    assert redact_secrets(text) == text


def test_sanitize_preview_trims_and_clamps() -> None:
    assert sanitize_preview("   ") == ""
    assert sanitize_preview("  fatal: bad ref  ") == "fatal: bad ref"
    assert sanitize_preview("y" * 50, max_chars=10) == "y" * 10

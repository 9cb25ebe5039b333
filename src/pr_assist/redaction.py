"""Masking for text that ends up in GitHub Actions workflow logs.

GitHub Actions prints every log line publicly on open-source repositories, so
git stderr, API error bodies and model errors pass through here first.
"""

from __future__ import annotations

import re
from collections.abc import Callable

_MAX_PREVIEW_CHARS = 2_000

_Replacement = str | Callable[[re.Match[str]], str]

_REPLACEMENTS: tuple[tuple[re.Pattern[str], _Replacement], ...] = (
    (
        re.compile(r"(?i)\b(bearer|token)\s+[a-z0-9._\-]{8,}\b"),
        r"\1 [redacted-token]",
    ),
    (
        re.compile(r"\b(?:ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9]{20,}\b"),
        "[redacted-token]",
    ),
    (
        re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"),
        "[redacted-token]",
    ),
    (
        re.compile(r"\bAIza[0-9A-Za-z_\-]{30,}\b"),
        "[redacted-token]",
    ),
    (
        re.compile(r"(?i)\b(sk-[a-z0-9\-]{8,})\b"),
        "[redacted-token]",
    ),
    (
        re.compile(
            r"(?i)\b(gemini|github|google|gcp|pr_assist)[a-z0-9_]*_?(api_)?(key|token)\b"
            r"\s*[:=]\s*['\"]?[^'\" \n\r\t]+['\"]?",
        ),
        "[redacted-secret]",
    ),
    (
        re.compile(r"(?i)([?&](?:token|key|signature|auth|access_token)=[^&\s]+)"),
        lambda match: match.group(1).split("=")[0] + "=[redacted]",
    ),
    (
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "[redacted-email]",
    ),
)


def redact_secrets(text: str) -> str:
    """Mask GitHub and Google credentials, key assignments and email addresses."""

    redacted = text
    for pattern, replacement in _REPLACEMENTS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


def sanitize_preview(text: str, *, max_chars: int = _MAX_PREVIEW_CHARS) -> str:
    """Masked, stripped excerpt of subprocess or API output for a log line."""

    return redact_secrets(text.strip())[:max_chars]

"""Helpers for embedding untrusted repository content into LLM prompts.

These helpers provide structural safety and size limits only. They do not
"solve" prompt injection: model output must still be treated as untrusted.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

# Two fully saturated fields plus truncation notices fit under the combined limit.
MAX_PROMPT_CONTENT_LENGTH = 39_000
MAX_COMBINED_PROMPT_CONTENT_LENGTH = 80_000

CODE_FENCE = "```"
ZERO_WIDTH_SPACE = "\u200b"

_BROKEN_FENCE = f"``{ZERO_WIDTH_SPACE}`"
_NEWLINES = re.compile(r"\r\n?")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_OPENING_FENCE = re.compile(r"^```[a-zA-Z0-9+-]*\s*\n")
_DIFF_FILE_HEADER = "diff --git "


class PromptTooLargeError(ValueError):
    """Combined prompt fields exceed the configured budget."""


@dataclass(slots=True)
class DiffExcerpt:
    """A unified diff cut down to whole-file sections."""

    text: str
    total_files: int
    included_files: int
    truncated: bool


def sanitize_prompt_text(value: str) -> str:
    """Break code fences, normalize newlines and drop control characters."""

    normalized = _NEWLINES.sub("\n", value.replace(CODE_FENCE, _BROKEN_FENCE))
    return _CONTROL_CHARS.sub("", normalized)


def prepare_for_prompt(value: str, *, max_length: int = MAX_PROMPT_CONTENT_LENGTH) -> str:
    """Sanitize user-controlled content and clamp it to a hard length limit."""

    cleaned = sanitize_prompt_text(value)
    if len(cleaned) <= max_length:
        return cleaned

    omitted = len(cleaned) - max_length
    return (
        f"{cleaned[:max_length]}\n\n"
        f"[Content truncated for safety - remaining {omitted:,} characters omitted]"
    )


def ensure_combined_prompt_length(
    values: Sequence[str],
    max_length: int = MAX_COMBINED_PROMPT_CONTENT_LENGTH,
) -> None:
    """Raise if prompt fields sharing one prompt exceed `max_length` in total."""

    total = sum(len(value) for value in values)
    if total > max_length:
        raise PromptTooLargeError(
            f"Combined prompt content length exceeds {max_length:,} characters by "
            f"{total - max_length:,} characters.",
        )


def escape_boundary(value: str, boundary: str) -> str:
    """Keep embedded data from closing a custom boundary fence early."""

    return value.replace(boundary, f"{boundary}-escaped")


def unwrap_code_fence(text: str) -> str:
    """Strip one outer markdown fence, leaving inner fenced blocks intact."""

    stripped = text.strip()
    match = _OPENING_FENCE.match(stripped)
    if match is None:
        return stripped

    opening_end = match.end()
    closing_start = stripped.rfind(CODE_FENCE)
    if closing_start < opening_end:
        return stripped
    return stripped[opening_end:closing_start].strip()


def split_diff_sections(diff: str) -> list[str]:
    """Split a unified diff into per-file sections, each starting with its header."""

    sections: list[str] = []
    current: list[str] = []
    for line in diff.splitlines(keepends=True):
        if line.startswith(_DIFF_FILE_HEADER) and current:
            sections.append("".join(current))
            current = []
        current.append(line)
    if current:
        sections.append("".join(current))
    return sections


def truncate_diff(diff: str, max_chars: int = MAX_PROMPT_CONTENT_LENGTH) -> DiffExcerpt:
    """Keep whole per-file sections of `diff` while they fit into `max_chars`."""

    sections = split_diff_sections(diff)
    total_files = sum(1 for section in sections if section.startswith(_DIFF_FILE_HEADER))
    if len(diff) <= max_chars:
        return DiffExcerpt(
            text=diff,
            total_files=total_files,
            included_files=total_files,
            truncated=False,
        )

    kept: list[str] = []
    used = 0
    for section in sections:
        if used + len(section) > max_chars:
            break
        kept.append(section)
        used += len(section)

    if not kept and sections:
        # A single oversized section is cut mid-file rather than dropped entirely.
        kept.append(sections[0][:max_chars])

    included = sum(1 for section in kept if section.startswith(_DIFF_FILE_HEADER))
    omitted = total_files - included
    body = "".join(kept).rstrip("\n")
    notice = (
        f"\n...(truncated: {omitted} of {total_files} files omitted)"
        if omitted > 0
        else "\n...(truncated)"
    )
    return DiffExcerpt(
        text=body + notice,
        total_files=total_files,
        included_files=included,
        truncated=True,
    )

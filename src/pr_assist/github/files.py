"""Changed-file model and source/test path helpers."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass

from pr_assist.config import DEFAULT_CODE_EXTENSIONS

_TEST_MARKERS = (".test", ".spec")


@dataclass(slots=True)
class ChangedFile:
    """One file entry from a pull request's file list."""

    filename: str
    status: str
    additions: int = 0
    deletions: int = 0

    @property
    def is_new(self) -> bool:
        return self.status == "added"

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> ChangedFile:
        additions = payload.get("additions")
        deletions = payload.get("deletions")
        return cls(
            filename=str(payload["filename"]),
            status=str(payload.get("status", "")),
            additions=additions if isinstance(additions, int) else 0,
            deletions=deletions if isinstance(deletions, int) else 0,
        )


@dataclass(slots=True)
class CandidateTestPaths:
    """Candidate test file locations for one source file."""

    test_path: str
    spec_path: str


def filter_code_files(
    files: Iterable[ChangedFile],
    extensions: Iterable[str] = DEFAULT_CODE_EXTENSIONS,
) -> list[ChangedFile]:
    """Keep source files with a configured extension, skipping declarations and tests."""

    allowed = {extension.lower() for extension in extensions}
    kept: list[ChangedFile] = []
    for changed in files:
        stem, extension = posixpath.splitext(changed.filename)
        if extension.lower() not in allowed:
            continue
        if changed.filename.endswith(".d.ts"):
            continue
        if stem.endswith(_TEST_MARKERS):
            continue
        kept.append(changed)
    return kept


def candidate_test_paths(source_path: str) -> CandidateTestPaths:
    """Map `src/foo.tsx` to `src/foo.test.tsx` / `src/foo.spec.tsx` (`.ts` otherwise)."""

    stem, extension = posixpath.splitext(source_path)
    directory = posixpath.dirname(source_path)
    base_name = posixpath.basename(stem)
    suffix = ".tsx" if extension == ".tsx" else ".ts"
    return CandidateTestPaths(
        test_path=posixpath.join(directory, f"{base_name}.test{suffix}"),
        spec_path=posixpath.join(directory, f"{base_name}.spec{suffix}"),
    )

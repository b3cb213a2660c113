"""Path resolution helpers for repository-scoped file access."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


@dataclass(slots=True, frozen=True)
class PathBlockedError(Exception):
    """Raised when a requested path would leave the repository root."""

    reason: str
    hint: str

    def __str__(self) -> str:
        return f"{self.reason} {self.hint}"


def _normalize_relative_input(candidate: str) -> tuple[str, bool]:
    normalized = candidate.replace("\\", "/")
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_repo_path(repo_root: Path, candidate: str) -> Path:
    """Resolve a repository-relative path, refusing anything outside the root.

    An empty candidate resolves to the root itself.
    """
    root = repo_root.resolve()
    normalized, is_absolute_style = _normalize_relative_input(candidate)
    if is_absolute_style:
        raise PathBlockedError(
            reason="Absolute paths are not accepted.",
            hint="Use a path relative to the repository root.",
        )

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a repository-relative path.",
        )

    resolved = (root / Path(*parts)).resolve(strict=False)
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes the repository root.",
            hint="Symlinks pointing outside the repository cannot be read.",
        )
    return resolved

"""Read-only file tools over indexed repositories."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from repogrep.index.models import FileRecord
from repogrep.security.paths import resolve_repo_path
from repogrep.store.metadata import MetadataStore

LINE_NUMBER_WIDTH = 6

RootResolver = Callable[[str], Path]


@dataclass(slots=True, frozen=True)
class GrepOptions:
    """Matching and output controls for ``grep_files``."""

    repo: str | None = None
    ignore_case: bool = False
    before: int = 0
    after: int = 0
    files_with_matches: bool = False
    count: bool = False
    extension: str | None = None
    limit: int | None = None


@dataclass(slots=True)
class GrepReport:
    """Rendered grep output plus per-file match counts."""

    lines: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)


def parse_repo_path(value: str) -> tuple[str, str]:
    """Split ``repo/dir/file`` into the repository name and the inner path."""
    cleaned = value.strip().replace("\\", "/").strip("/")
    repo, _, inner = cleaned.partition("/")
    return repo, inner.strip("/")


def format_line_number(number: int) -> str:
    return str(number).rjust(LINE_NUMBER_WIDTH)


def list_directory(
    metadata: MetadataStore,
    repo: str,
    directory: str = "",
    ignore: tuple[str, ...] = (),
) -> list[str]:
    """Immediate entries below ``directory``; subdirectories end with ``/``."""
    prefix = f"{directory.strip('/')}/" if directory.strip("/") else ""
    entries: set[str] = set()
    for record in metadata.list_files(repo):
        if not record.path.startswith(prefix):
            continue
        relative = record.path[len(prefix) :]
        if _ignored(relative, ignore):
            continue
        head, sep, _ = relative.partition("/")
        entries.add(f"{head}/" if sep else head)
    return sorted(entries)


def _ignored(relative: str, patterns: tuple[str, ...]) -> bool:
    segments = relative.split("/")
    for pattern in patterns:
        if fnmatch.fnmatchcase(relative, pattern):
            return True
        if any(fnmatch.fnmatchcase(segment, pattern) for segment in segments):
            return True
    return False


def glob_files(
    metadata: MetadataStore,
    pattern: str,
    *,
    repo: str | None = None,
    limit: int | None = None,
) -> list[FileRecord]:
    """Indexed files whose path or filename matches, most recently modified first."""
    matched = [
        record
        for record in metadata.list_files(repo)
        if fnmatch.fnmatchcase(record.path, pattern) or fnmatch.fnmatchcase(record.filename, pattern)
    ]
    matched.sort(key=lambda record: (-record.mtime_ms, record.repo, record.path))
    if limit is not None:
        return matched[: max(limit, 0)]
    return matched


def read_file_lines(
    root: Path,
    path: str,
    *,
    offset: int = 1,
    limit: int | None = None,
) -> list[tuple[int, str]]:
    """Return (1-based line number, text) pairs of a file slice.

    Raises ValueError when ``offset`` lies beyond the end of the file.
    """
    lines = _read_lines(resolve_repo_path(root, path))
    start = max(1, offset)
    if start > len(lines):
        raise ValueError(f"Offset {start} is beyond file length ({len(lines)} lines).")
    end = len(lines) if limit is None else min(len(lines), start - 1 + max(limit, 0))
    return [(number, lines[number - 1]) for number in range(start, end + 1)]


def grep_files(
    metadata: MetadataStore,
    resolve_root: RootResolver,
    pattern: str,
    options: GrepOptions | None = None,
) -> GrepReport:
    """Regex search across indexed files read from their checkout on disk.

    Raises re.error for an invalid pattern.
    """
    effective = options or GrepOptions()
    regex = re.compile(pattern, re.IGNORECASE if effective.ignore_case else 0)
    output_limit = effective.limit if effective.limit is not None else float("inf")
    report = GrepReport()

    for record in metadata.list_files(effective.repo):
        if len(report.lines) >= output_limit:
            break
        if effective.extension and not record.filename.endswith(f".{effective.extension.lstrip('.')}"):
            continue
        try:
            lines = _read_lines(resolve_repo_path(resolve_root(record.repo), record.path))
        except OSError:
            continue
        matched = {index for index, line in enumerate(lines) if regex.search(line)}
        if not matched:
            continue
        file_key = f"{record.repo}/{record.path}"
        report.counts[file_key] = len(matched)
        if effective.count:
            continue
        if effective.files_with_matches:
            report.lines.append(file_key)
            continue

        shown: set[int] = set()
        for index in matched:
            low = max(0, index - effective.before)
            high = min(len(lines) - 1, index + effective.after)
            shown.update(range(low, high + 1))
        report.lines.append(file_key)
        for index in sorted(shown):
            if len(report.lines) >= output_limit:
                break
            separator = ":" if index in matched else "-"
            report.lines.append(f"{format_line_number(index + 1)}{separator}{lines[index]}")
        if len(report.lines) < output_limit:
            report.lines.append("")

    if effective.count:
        report.lines.extend(f"{key}:{count}" for key, count in report.counts.items())
    return report


def _read_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8", errors="replace").split("\n")
